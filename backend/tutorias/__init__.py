import logging
from flask import Flask, jsonify, current_app
from config import Config
import pymysql
pymysql.install_as_MySQLdb()
from tutorias.extensions import db, login_manager, csrf, cors
from tutorias.errors import AlmacenNoDisponible, EscrituraConcurrente
from tutorias.models import UsuarioActual
from tutorias.services.plataforma import Plataforma, get_plataforma
from tutorias.utils.seguridad import CifradorPasswords
from tutorias.routes import register_blueprints


def create_app(config_class=Config):

    app = Flask(__name__)

    # Cargar configuración
    app.config.from_object(config_class)
    config_class.init_app(app)
    config_class.verify_secrets()

    # Iniciar extensiones
    db.init_app(app)

    # Configuración de Flask-Login
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        registro = get_plataforma().usuarios.get_user_by_id(user_id)
        if registro is None:
            current_app.logger.debug(f"load_user: usuario {user_id} no encontrado")
            return None
        return UsuarioActual(registro)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Debes iniciar sesión para acceder a este recurso.'}), 401

    # CORS y CSRF
    cors.init_app(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}}, supports_credentials=True)
    csrf.init_app(app)

    # Tabla del almacén y servicios
    with app.app_context():
        db.create_all()

    cifrador = CifradorPasswords(app.config['PASSWORD_SECRET'], app.config['PASSWORD_HASH_METHOD'])
    app.extensions['tutorias'] = Plataforma(db, cifrador)

    # Registrar blueprints
    register_blueprints(app)

    # Filtrar logs de acceso del sondeo de notificaciones
    class NoAccessLogFilter(logging.Filter):
        def filter(self, record):
            return '/api/notificaciones/resumen' not in record.getMessage()

    logging.getLogger('werkzeug').addFilter(NoAccessLogFilter())

    # Manejadores de error
    @app.errorhandler(AlmacenNoDisponible)
    def almacen_no_disponible(error):
        current_app.logger.error(f"Almacén no disponible: {error}")
        return jsonify({'error': 'Error interno del servidor'}), 500

    @app.errorhandler(EscrituraConcurrente)
    def escritura_concurrente(error):
        current_app.logger.warning(f"Escritura concurrente: {error}")
        return jsonify({'error': 'Los datos cambiaron mientras se guardaban. Intente de nuevo.'}), 409

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Recurso no encontrado'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Error interno del servidor'}), 500

    return app
