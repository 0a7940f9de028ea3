import logging
from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from flask_wtf.csrf import generate_csrf
from tutorias.errors import ErrorAutenticacion
from tutorias.forms.usuarios import LoginForm, SeleccionRolForm, RegistroForm, CambioPasswordForm
from tutorias.services import get_plataforma
from tutorias.services.usuarios import sin_password
from tutorias.utils.peticiones import errores_formulario


# Definición única del Blueprint
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')
auth_logger = logging.getLogger('auth')

MENSAJE_UNIFICADO = 'Credenciales incorrectas.'


def _respuesta_sesion(user):
    sesion = get_plataforma().sesion
    return {
        'user': sin_password(user),
        'roles': user.get('rol', []),
        'rol_activo': sesion.get_active_role(),
        'requiere_seleccion_rol': sesion.needs_role_selection,
        'forzar_cambio_password': bool(user.get('forzar_cambio_password')),
    }


@auth_bp.route('/csrf-token', methods=['GET'])
def get_csrf_token():
    """Endpoint para obtener token CSRF (para APIs)."""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    email = form.email.data.strip().lower()
    try:
        user = plataforma.sesion.login(email, form.password.data, remember=form.remember.data)
    except ErrorAutenticacion as e:
        auth_logger.warning(f"Login fallido para {email}: {e.tipo}")
        mensaje = MENSAJE_UNIFICADO if current_app.config['UNIFY_AUTH_ERRORS'] else e.mensaje
        return jsonify({'error': mensaje, 'tipo': e.tipo}), 401

    return jsonify(_respuesta_sesion(user))


@auth_bp.route('/select-role', methods=['POST'])
@login_required
def select_role():
    form = SeleccionRolForm()
    if not form.validate_on_submit():
        return errores_formulario(form)
    if not get_plataforma().sesion.select_role(form.rol.data):
        return jsonify({'error': 'No tienes asignado ese rol'}), 403
    return jsonify(_respuesta_sesion(current_user.registro))


@auth_bp.route('/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        auth_logger.info(f"Cierre de sesión: {current_user.email}")
    get_plataforma().sesion.clear_session()
    return jsonify({'success': True})


@auth_bp.route('/register', methods=['POST'])
def register():
    form = RegistroForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    try:
        user = plataforma.usuarios.create_user({
            'cedula': form.cedula.data,
            'nombres': form.nombres.data.strip(),
            'apellidos': form.apellidos.data.strip(),
            'email': form.email.data,
            'password': form.password.data,
            'rol': form.rol.data,
            'carrera': form.carrera.data.strip(),
            'semestre': form.semestre.data or '',
            'telefono': form.telefono.data or '',
        })
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if user is None:
        return jsonify({'error': 'La cédula o el correo ya están registrados'}), 409
    return jsonify({'success': True, 'user': sin_password(user)}), 201


@auth_bp.route('/session', methods=['GET'])
@login_required
def get_session():
    user = get_plataforma().sesion.refresh()
    if user is None:
        return jsonify({'error': 'La sesión ya no es válida. Inicie sesión de nuevo.'}), 401
    return jsonify(_respuesta_sesion(user))


@auth_bp.route('/cambiar-password', methods=['POST'])
@login_required
def cambiar_password():
    form = CambioPasswordForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    usuarios = get_plataforma().usuarios
    user = usuarios.get_user_by_id(current_user.id)

    # En el primer ingreso no se pide la contraseña actual
    if user.get('forzar_cambio_password'):
        actualizado = usuarios.set_password(user['id'], form.password_nueva.data)
    else:
        actualizado = usuarios.change_password(user['id'], form.password_actual.data, form.password_nueva.data)

    if actualizado is None:
        return jsonify({'error': 'La contraseña actual es incorrecta'}), 400
    auth_logger.info(f"Contraseña actualizada: {user['email']}")
    return jsonify({'success': True})
