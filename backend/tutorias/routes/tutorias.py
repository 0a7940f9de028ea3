from flask import Blueprint, jsonify, current_app
from flask_login import current_user
from tutorias.forms.tutorias import (
    SolicitudTutoriaForm, EstadoTutoriaForm, ReprogramarForm, CalificacionForm, MensajeForm,
)
from tutorias.services import get_plataforma
from tutorias.utils.decorators import login_required_json, roles_required, rol_activo
from tutorias.utils.peticiones import errores_formulario, carrera_del_usuario


tutorias_bp = Blueprint('tutorias', __name__, url_prefix='/api/tutorias')


def tutorias_visibles(plataforma):
    """Lo que puede ver el usuario según su rol activo"""
    rol = rol_activo()
    repo = plataforma.tutorias
    if rol == 'admin':
        return repo.get_tutorias()
    if rol == 'estudiante':
        return repo.get_tutorias_by_estudiante(current_user.id)
    if rol == 'docente':
        return repo.get_tutorias_by_docente(current_user.id)
    if rol == 'coordinador':
        carrera = carrera_del_usuario(plataforma, current_user.registro)
        if carrera is None:
            return []
        materias = {m['id'] for m in plataforma.academico.get_materias_by_carrera(carrera['id'])}
        return [t for t in repo.get_tutorias() if t.get('materia_id') in materias]
    return []


def _tutoria_visible(plataforma, tutoria_id):
    visibles = {t['id'] for t in tutorias_visibles(plataforma)}
    if tutoria_id not in visibles:
        return None
    return plataforma.tutorias.get_tutoria_by_id(tutoria_id)


def _es_participante(tutoria):
    return current_user.id in (tutoria.get('estudiante_id'), tutoria.get('docente_id'))


@tutorias_bp.route('', methods=['GET'])
@login_required_json
def listar_tutorias():
    plataforma = get_plataforma()
    tutorias = plataforma.tutorias.get_tutorias_with_names(tutorias_visibles(plataforma))
    return jsonify(sorted(tutorias, key=lambda t: (t.get('fecha') or '', t.get('hora') or ''), reverse=True))


@tutorias_bp.route('', methods=['POST'])
@roles_required('estudiante')
def solicitar_tutoria():
    form = SolicitudTutoriaForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    docente = plataforma.usuarios.get_user_by_id(form.docente_id.data)
    if not plataforma.usuarios.user_has_role(docente, 'docente') or docente.get('estado') != 'activo':
        return jsonify({'error': 'El docente seleccionado no está disponible'}), 400
    if plataforma.academico.get_materia_by_id(form.materia_id.data) is None:
        return jsonify({'error': 'La materia seleccionada no existe'}), 400

    carrera = carrera_del_usuario(plataforma, current_user.registro)
    if not carrera:
        return jsonify({'error': 'No tienes una carrera asignada'}), 400
    asignados = plataforma.academico.get_docentes_by_materia_semestre(
        form.materia_id.data, form.semestre_id.data, carrera['id'])
    if form.docente_id.data not in [d['id'] for d in asignados]:
        return jsonify({'error': 'El docente no está asignado a esa materia y semestre'}), 400

    try:
        tutoria = plataforma.tutorias.create_tutoria({
            'estudiante_id': current_user.id,
            'docente_id': form.docente_id.data,
            'materia_id': form.materia_id.data,
            'semestre_id': form.semestre_id.data,
            'tema': form.tema.data,
            'descripcion': form.descripcion.data or '',
            'fecha': form.fecha.data,
            'hora': form.hora.data,
        })
    except Exception as e:
        current_app.logger.error(f"Error creando tutoría: {str(e)}", exc_info=True)
        return jsonify({'error': 'Error interno del servidor'}), 500

    return jsonify(plataforma.tutorias.get_tutoria_with_names(tutoria['id'])), 201


@tutorias_bp.route('/<tutoria_id>', methods=['GET'])
@login_required_json
def obtener_tutoria(tutoria_id):
    plataforma = get_plataforma()
    if _tutoria_visible(plataforma, tutoria_id) is None:
        return jsonify({'error': 'Tutoría no encontrada'}), 404
    return jsonify(plataforma.tutorias.get_tutoria_with_names(tutoria_id))


@tutorias_bp.route('/<tutoria_id>/estado', methods=['POST'])
@roles_required('docente', 'coordinador')
def cambiar_estado(tutoria_id):
    """El docente acepta o rechaza una solicitud pendiente"""
    form = EstadoTutoriaForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    tutoria = plataforma.tutorias.get_tutoria_by_id(tutoria_id)
    if tutoria is None or tutoria.get('docente_id') != current_user.id:
        return jsonify({'error': 'Tutoría no encontrada'}), 404
    if tutoria.get('estado') != 'pendiente':
        return jsonify({'error': 'Solo se pueden responder solicitudes pendientes'}), 409

    actualizada = plataforma.tutorias.update_tutoria(tutoria_id, {'estado': form.estado.data})
    return jsonify(actualizada)


@tutorias_bp.route('/<tutoria_id>/reprogramar', methods=['POST'])
@login_required_json
def reprogramar(tutoria_id):
    form = ReprogramarForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    tutoria = plataforma.tutorias.get_tutoria_by_id(tutoria_id)
    if tutoria is None or not _es_participante(tutoria):
        return jsonify({'error': 'Tutoría no encontrada'}), 404
    if tutoria.get('estado') not in ('pendiente', 'aceptada'):
        return jsonify({'error': 'Solo se pueden reprogramar tutorías pendientes o aceptadas'}), 409

    actualizada = plataforma.tutorias.update_tutoria(tutoria_id, {'fecha': form.fecha.data, 'hora': form.hora.data})
    return jsonify(actualizada)


@tutorias_bp.route('/<tutoria_id>/calificar', methods=['POST'])
@roles_required('estudiante')
def calificar(tutoria_id):
    """Calificar cierra la tutoría"""
    form = CalificacionForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    tutoria = plataforma.tutorias.get_tutoria_by_id(tutoria_id)
    if tutoria is None or tutoria.get('estudiante_id') != current_user.id:
        return jsonify({'error': 'Tutoría no encontrada'}), 404
    if tutoria.get('estado') != 'aceptada':
        return jsonify({'error': 'Solo se pueden calificar tutorías aceptadas'}), 409

    actualizada = plataforma.tutorias.update_tutoria(tutoria_id, {
        'calificacion': form.calificacion.data,
        'comentario': form.comentario.data or None,
        'estado': 'finalizada',
    })
    return jsonify(actualizada)


@tutorias_bp.route('/<tutoria_id>', methods=['DELETE'])
@login_required_json
def eliminar_tutoria(tutoria_id):
    """El administrador elimina cualquiera; el estudiante solo sus solicitudes pendientes"""
    plataforma = get_plataforma()
    tutoria = plataforma.tutorias.get_tutoria_by_id(tutoria_id)
    if tutoria is None:
        return jsonify({'error': 'Tutoría no encontrada'}), 404

    propia_pendiente = (
        rol_activo() == 'estudiante'
        and tutoria.get('estudiante_id') == current_user.id
        and tutoria.get('estado') == 'pendiente'
    )
    if rol_activo() != 'admin' and not propia_pendiente:
        return jsonify({'error': 'No tienes permisos para eliminar esta tutoría'}), 403

    plataforma.tutorias.delete_tutoria(tutoria_id)
    return jsonify({'success': True})


# ==================== MENSAJES ====================

@tutorias_bp.route('/<tutoria_id>/mensajes', methods=['GET'])
@login_required_json
def listar_mensajes(tutoria_id):
    plataforma = get_plataforma()
    tutoria = plataforma.tutorias.get_tutoria_by_id(tutoria_id)
    if tutoria is None or not (_es_participante(tutoria) or rol_activo() == 'admin'):
        return jsonify({'error': 'Tutoría no encontrada'}), 404

    mensajes = plataforma.tutorias.get_mensajes_by_tutoria(tutoria_id)
    for m in mensajes:
        m['remitente_nombre'] = plataforma.usuarios.get_user_name(m.get('remitente_id'))
    return jsonify(mensajes)


@tutorias_bp.route('/<tutoria_id>/mensajes', methods=['POST'])
@login_required_json
def enviar_mensaje(tutoria_id):
    form = MensajeForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    mensaje = get_plataforma().tutorias.create_mensaje(tutoria_id, current_user.id, form.contenido.data)
    if mensaje is None:
        return jsonify({'error': 'No puedes escribir en esta tutoría'}), 403
    return jsonify(mensaje), 201


@tutorias_bp.route('/<tutoria_id>/mensajes/leidos', methods=['POST'])
@login_required_json
def marcar_mensajes_leidos(tutoria_id):
    marcados = get_plataforma().tutorias.mark_mensajes_as_read(tutoria_id, current_user.id)
    return jsonify({'marcados': marcados})
