from flask import Blueprint, jsonify, request, current_app, send_file
from flask_login import current_user
from tutorias.forms.usuarios import UsuarioForm, EditarUsuarioForm
from tutorias.services import get_plataforma
from tutorias.services.carga_masiva import COLUMNAS_USUARIOS
from tutorias.services.usuarios import sin_password
from tutorias.utils.decorators import admin_required, roles_required, rol_activo
from tutorias.utils.hojas import HojaInvalida, ENCABEZADOS_USUARIOS, MIMETYPE_EXCEL, generar_plantilla, ejemplo_usuarios
from tutorias.utils.peticiones import datos_json, errores_formulario, carrera_del_usuario, filas_de_peticion


usuarios_bp = Blueprint('usuarios', __name__, url_prefix='/api/usuarios')


@usuarios_bp.route('', methods=['GET'])
@roles_required('admin', 'coordinador')
def listar_usuarios():
    plataforma = get_plataforma()
    rol = request.args.get('rol')
    carrera = request.args.get('carrera')

    usuarios = plataforma.usuarios.get_users_by_role(rol) if rol else plataforma.usuarios.get_users()
    if carrera:
        usuarios = [u for u in usuarios if u.get('carrera') == carrera]

    # El coordinador solo ve a la gente de su carrera
    if rol_activo() == 'coordinador':
        propia = carrera_del_usuario(plataforma, current_user.registro)
        nombres = {propia['id'], propia['nombre'].lower()} if propia else set()
        usuarios = [u for u in usuarios if (u.get('carrera') or '').lower() in nombres or u.get('carrera') in nombres]

    return jsonify([sin_password(u) for u in usuarios])


@usuarios_bp.route('', methods=['POST'])
@admin_required
def crear_usuario():
    form = UsuarioForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    try:
        user = get_plataforma().usuarios.create_user(form.datos())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if user is None:
        return jsonify({'error': 'La cédula o el correo ya están registrados'}), 409
    current_app.logger.info(f"Usuario {user['email']} creado por {current_user.email}")
    return jsonify(sin_password(user)), 201


@usuarios_bp.route('/<user_id>', methods=['GET'])
@admin_required
def obtener_usuario(user_id):
    user = get_plataforma().usuarios.get_user_by_id(user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado'}), 404
    return jsonify(sin_password(user))


@usuarios_bp.route('/<user_id>', methods=['PUT'])
@admin_required
def editar_usuario(user_id):
    form = EditarUsuarioForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    usuarios = get_plataforma().usuarios
    if usuarios.get_user_by_id(user_id) is None:
        return jsonify({'error': 'Usuario no encontrado'}), 404
    try:
        user = usuarios.update_user(user_id, form.cambios(datos_json()))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if user is None:
        return jsonify({'error': 'La cédula o el correo ya pertenecen a otro usuario'}), 409
    return jsonify(sin_password(user))


@usuarios_bp.route('/<user_id>/estado', methods=['POST'])
@admin_required
def cambiar_estado(user_id):
    if user_id == current_user.id:
        return jsonify({'error': 'No puedes desactivar tu propia cuenta'}), 400
    user = get_plataforma().usuarios.toggle_user_status(user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado'}), 404
    return jsonify(sin_password(user))


@usuarios_bp.route('/<user_id>/restablecer-password', methods=['POST'])
@admin_required
def restablecer_password(user_id):
    """La contraseña vuelve a ser la cédula y se exige cambiarla al ingresar"""
    usuarios = get_plataforma().usuarios
    user = usuarios.get_user_by_id(user_id)
    if user is None:
        return jsonify({'error': 'Usuario no encontrado'}), 404
    if usuarios.set_password(user_id, user.get('cedula'), forzar_cambio=True) is None:
        return jsonify({'error': 'El usuario no tiene una cédula válida como contraseña'}), 400
    return jsonify({'success': True})


@usuarios_bp.route('/<user_id>', methods=['DELETE'])
@admin_required
def eliminar_usuario(user_id):
    if user_id == current_user.id:
        return jsonify({'error': 'No puedes eliminar tu propia cuenta'}), 400
    try:
        if not get_plataforma().usuarios.delete_user(user_id):
            return jsonify({'error': 'Usuario no encontrado'}), 404
        return jsonify({'success': True})
    except Exception as e:
        current_app.logger.error(f"Error eliminando usuario {user_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Error interno del servidor'}), 500


@usuarios_bp.route('/carga-masiva', methods=['POST'])
@roles_required('admin', 'coordinador')
def carga_masiva():
    """Recibe la hoja de usuarios (.xlsx/.csv) o las filas ya leídas: {"filas": [{"cedula": ..., "nombres": ...}]}"""
    plataforma = get_plataforma()
    try:
        filas = filas_de_peticion(COLUMNAS_USUARIOS, hoja_preferida='usuarios')
    except HojaInvalida as e:
        return jsonify({'error': str(e)}), 400
    if filas is None:
        return jsonify({'error': 'No se recibieron filas para procesar'}), 400

    carrera_forzada = None
    if rol_activo() == 'coordinador':
        carrera = carrera_del_usuario(plataforma, current_user.registro)
        carrera_forzada = carrera['nombre'] if carrera else current_user.registro.get('carrera')
        if not carrera_forzada:
            return jsonify({'error': 'No tienes una carrera asignada'}), 400

    resultados = plataforma.carga_masiva.importar_usuarios(filas, carrera_forzada=carrera_forzada)
    creados = sum(1 for r in resultados if r.exito)
    return jsonify({
        'creados': creados,
        'errores': len(resultados) - creados,
        'resultados': [r.to_dict() for r in resultados],
    })


@usuarios_bp.route('/plantilla', methods=['GET'])
@roles_required('admin', 'coordinador')
def plantilla_usuarios():
    """Plantilla de carga; la del coordinador trae solo estudiantes de su carrera"""
    carrera = None
    if rol_activo() == 'coordinador':
        propia = carrera_del_usuario(get_plataforma(), current_user.registro)
        carrera = propia['nombre'] if propia else current_user.registro.get('carrera') or 'carrera'

    output = generar_plantilla(ENCABEZADOS_USUARIOS, ejemplo_usuarios(carrera), 'usuarios')
    nombre = f"plantilla-estudiantes-{carrera}.xlsx" if carrera else 'plantilla_usuarios.xlsx'
    return send_file(output, mimetype=MIMETYPE_EXCEL, as_attachment=True, download_name=nombre)
