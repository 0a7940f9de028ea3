import logging
from flask import session
from flask_login import login_user, logout_user, current_user
from tutorias.errors import UsuarioNoEncontrado, CredencialesInvalidas, UsuarioInactivo
from tutorias.models.user import UsuarioActual
from tutorias.services.almacenamiento import ahora_iso
from tutorias.services.usuarios import sin_password
from tutorias.utils.roles import get_user_roles


logger = logging.getLogger(__name__)


def resolver_rol(user):
    """Rol activo tras el login, o None si el usuario debe elegirlo"""
    roles = get_user_roles(user)
    if len(roles) == 1:
        return roles[0]
    if 'coordinador' in roles:
        return 'coordinador'
    return None


class GestorSesion:
    """Sesión de cada cliente.

    Flask-Login guarda quién es el usuario; la cookie de sesión de Flask
    guarda el rol activo y la hora de inicio. Un usuario con varios roles y
    ninguno de coordinador queda autenticado sin rol activo hasta que llame a
    select_role. Necesita un contexto de petición.
    """

    def __init__(self, usuarios):
        self.usuarios = usuarios

    # --- Sesión ---

    def save_session(self, user, rol_activo=None, remember=False):
        roles = get_user_roles(user)
        if rol_activo is None and len(roles) == 1:
            rol_activo = roles[0]
        login_user(UsuarioActual(user), remember=remember)
        session['rol_activo'] = rol_activo
        session['inicio_sesion'] = ahora_iso()
        return self.get_session()

    def get_session(self):
        if not current_user.is_authenticated:
            return None
        return {
            'user': sin_password(current_user.registro),
            'rol_activo': session.get('rol_activo'),
            'inicio': session.get('inicio_sesion'),
        }

    def clear_session(self):
        logout_user()
        session.pop('rol_activo', None)
        session.pop('inicio_sesion', None)

    def update_session_user(self, user):
        """Conserva el rol activo solo si el usuario lo sigue teniendo"""
        if not current_user.is_authenticated:
            return None
        roles = get_user_roles(user)
        rol_activo = session.get('rol_activo')
        if rol_activo not in roles:
            rol_activo = resolver_rol(user)
            session['rol_activo'] = rol_activo
        current_user.registro = sin_password(user)
        return self.get_session()

    # --- Autenticación ---

    def autenticar(self, email, password):
        user = self.usuarios.get_user_by_email(email)
        if not user:
            raise UsuarioNoEncontrado(email)
        if user.get('estado') != 'activo':
            raise UsuarioInactivo(email)
        if not self.usuarios.cifrador.verify_password(password, user.get('password')):
            raise CredencialesInvalidas(email)
        return user

    def login(self, email, password, remember=False):
        user = self.autenticar(email, password)
        rol = resolver_rol(user)
        self.save_session(user, rol, remember=remember)

        if rol is None:
            logger.info(f"Usuario {user['email']} debe elegir entre {', '.join(get_user_roles(user))}")
        else:
            logger.info(f"Inicio de sesión: {user['email']} (rol activo: {rol})")
        return sin_password(user)

    @property
    def needs_role_selection(self):
        return current_user.is_authenticated and session.get('rol_activo') is None

    def select_role(self, rol):
        """Fija el rol activo. Falso si no hay sesión o el rol no le pertenece."""
        if not current_user.is_authenticated:
            return False
        user = self.usuarios.get_user_by_id(current_user.id)
        if not user or rol not in get_user_roles(user):
            return False
        session['rol_activo'] = rol
        return True

    def get_active_role(self):
        if not current_user.is_authenticated:
            return None
        return session.get('rol_activo')

    def get_current_user(self):
        sesion = self.get_session()
        return sesion['user'] if sesion else None

    def has_role(self, *roles):
        return self.get_active_role() in roles

    def refresh(self):
        """Recarga el usuario de la sesión desde el almacén"""
        if not current_user.is_authenticated:
            return None
        user = self.usuarios.get_user_by_id(current_user.id)
        if not user or user.get('estado') != 'activo':
            logger.info(f"Sesión cerrada: el usuario {current_user.email} ya no está disponible")
            self.clear_session()
            return None
        self.update_session_user(user)
        return sin_password(user)
