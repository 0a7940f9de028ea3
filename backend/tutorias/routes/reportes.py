from flask import Blueprint, jsonify, request, send_file
from flask_login import current_user
from tutorias.routes.tutorias import tutorias_visibles
from tutorias.services import get_plataforma
from tutorias.utils.decorators import admin_required, roles_required, login_required_json, rol_activo
from tutorias.utils.exportar import exportar_tabla, FORMATOS_EXPORTACION


reportes_bp = Blueprint('reportes', __name__, url_prefix='/api/reportes')


@reportes_bp.route('/usuarios', methods=['GET'])
@admin_required
def reporte_usuarios():
    return jsonify(get_plataforma().metricas.get_user_metrics())


@reportes_bp.route('/tutorias', methods=['GET'])
@login_required_json
def reporte_tutorias():
    """Estadísticas sobre las tutorías que el rol activo puede ver"""
    plataforma = get_plataforma()
    return jsonify(plataforma.metricas.get_tutoria_stats(tutorias_visibles(plataforma)))


@reportes_bp.route('/docentes', methods=['GET'])
@roles_required('admin', 'coordinador')
def reporte_docentes():
    return jsonify(get_plataforma().metricas.get_docentes_stats())


@reportes_bp.route('/docentes/<docente_id>', methods=['GET'])
@login_required_json
def reporte_docente(docente_id):
    if rol_activo() not in ('admin', 'coordinador') and docente_id != current_user.id:
        return jsonify({'error': 'Acceso denegado: no tienes permisos para acceder a este módulo.'}), 403
    plataforma = get_plataforma()
    if not plataforma.usuarios.user_has_role(plataforma.usuarios.get_user_by_id(docente_id), 'docente'):
        return jsonify({'error': 'Docente no encontrado'}), 404
    return jsonify(plataforma.metricas.get_docente_stats(docente_id))


# ==================== EXPORTACIÓN ====================

def _enviar_exportacion(filas, titulo, nombre_base):
    formato = request.args.get('formato', 'excel')
    if formato not in FORMATOS_EXPORTACION:
        return jsonify({'error': f"Formato no soportado. Use: {', '.join(FORMATOS_EXPORTACION)}"}), 400
    if not filas:
        return jsonify({'error': 'No hay datos para exportar'}), 400

    output, mimetype, extension = exportar_tabla(filas, titulo, formato)
    return send_file(output, mimetype=mimetype, as_attachment=True,
                     download_name=f"{nombre_base}.{extension}")


@reportes_bp.route('/tutorias/exportar', methods=['GET'])
@login_required_json
def exportar_tutorias():
    plataforma = get_plataforma()
    tutorias = plataforma.tutorias.get_tutorias_with_names(tutorias_visibles(plataforma))
    filas = [{
        'Fecha': t.get('fecha'),
        'Hora': t.get('hora'),
        'Estudiante': t['estudiante_nombre'],
        'Docente': t['docente_nombre'],
        'Materia': t['materia_nombre'],
        'Tema': t.get('tema'),
        'Estado': t.get('estado'),
        'Calificación': t.get('calificacion'),
    } for t in sorted(tutorias, key=lambda t: (t.get('fecha') or '', t.get('hora') or ''))]
    return _enviar_exportacion(filas, 'Reporte de tutorías', 'tutorias')


@reportes_bp.route('/docentes/exportar', methods=['GET'])
@roles_required('admin', 'coordinador')
def exportar_docentes():
    filas = [{
        'Docente': s['docente_nombre'],
        'Tutorías': s['total_tutorias'],
        'Finalizadas': s['tutorias_finalizadas'],
        'Calificaciones': s['total_calificaciones'],
        'Promedio': s['promedio_calificacion'],
    } for s in get_plataforma().metricas.get_docentes_stats()]
    return _enviar_exportacion(filas, 'Desempeño docente', 'docentes')
