from functools import wraps
from flask import jsonify
from flask_login import current_user
from tutorias.services.plataforma import get_plataforma


def rol_activo():
    return get_plataforma().sesion.get_active_role()


def login_required_json(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Debes iniciar sesión para acceder a este recurso.'}), 401
        if not rol_activo():
            return jsonify({'error': 'Debes seleccionar un rol para continuar.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    return roles_required('admin')(f)


def roles_required(*roles):
    def wrapper(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'error': 'Debes iniciar sesión para acceder a este recurso.'}), 401

            if rol_activo() not in roles:
                return jsonify({'error': 'Acceso denegado: no tienes permisos para acceder a este módulo.'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return wrapper
