import os
import logging
from pathlib import Path
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    # 1. Configuración de rutas base
    BASE_DIR = Path(__file__).resolve().parent.parent
    BACKEND_DIR = BASE_DIR / 'backend'
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", str(BACKEND_DIR / 'uploads'))

    # 2. Configuración esencial
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-key-segura-123")

    # 3. Contraseñas: secreto de la aplicación y método de werkzeug
    PASSWORD_SECRET = os.getenv("PASSWORD_SECRET", "dev-password-secret")
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "pbkdf2:sha256")

    # 4. Base de datos
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", f"sqlite:///{BACKEND_DIR}/tutorias.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = os.getenv("SQLALCHEMY_ECHO", "False").lower() == "true"

    # 5. Configuración de seguridad
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    WTF_CSRF_ENABLED = True
    # Un solo mensaje para usuario inexistente, inactivo o contraseña incorrecta
    UNIFY_AUTH_ERRORS = os.getenv("UNIFY_AUTH_ERRORS", "False").lower() == "true"

    # 6. Configuración CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")

    # 7. Configuración Flask-Login
    REMEMBER_COOKIE_DURATION = timedelta(days=7)
    SESSION_PERMANENT = True
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)

    # 8. Configuración de desarrollo
    DEBUG = os.getenv("DEBUG", "False").lower() == "true"

    # 9. Notificaciones: intervalo de consulta de los paneles (segundos)
    POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 5))

    # 10. Configuración de archivos
    ALLOWED_EXTENSIONS = {'pdf'}
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE

    # 11. Administrador inicial
    DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@tutorias.edu.ec")
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "Admin1234")
    DEFAULT_ADMIN_CEDULA = os.getenv("DEFAULT_ADMIN_CEDULA", "0000000001")

    @classmethod
    def init_app(cls, app):
        """Inicialización adicional para la aplicación"""
        os.makedirs(cls.UPLOAD_FOLDER, exist_ok=True)

    @classmethod
    def verify_secrets(cls):
        """Verifica que los secretos críticos estén configurados"""
        for nombre in ('SECRET_KEY', 'PASSWORD_SECRET'):
            if not getattr(cls, nombre, None):
                raise RuntimeError(f"Secreto crítico no configurado: {nombre}")
        if not cls.DEBUG and cls.PASSWORD_SECRET == 'dev-password-secret':
            logging.getLogger(__name__).warning("PASSWORD_SECRET usa el valor de desarrollo")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    PASSWORD_SECRET = "secreto-de-pruebas"
