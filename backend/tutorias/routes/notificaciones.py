from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from tutorias.services import get_plataforma


notificaciones_bp = Blueprint('notificaciones', __name__, url_prefix='/api/notificaciones')


@notificaciones_bp.route('', methods=['GET'])
@login_required
def listar_notificaciones():
    return jsonify(get_plataforma().notificaciones.get_notifications_by_user(current_user.id))


@notificaciones_bp.route('/resumen', methods=['GET'])
@login_required
def resumen():
    """Consultado periódicamente por los paneles"""
    return jsonify({
        'no_leidas': get_plataforma().notificaciones.get_unread_notifications_count(current_user.id),
        'intervalo': current_app.config['POLLING_INTERVAL'],
    })


@notificaciones_bp.route('/<notificacion_id>/leida', methods=['POST'])
@login_required
def marcar_leida(notificacion_id):
    notificaciones = get_plataforma().notificaciones
    propias = {n['id'] for n in notificaciones.get_notifications_by_user(current_user.id)}
    if notificacion_id not in propias:
        return jsonify({'error': 'Notificación no encontrada'}), 404
    notificaciones.mark_notification_as_read(notificacion_id)
    return jsonify({'success': True})


@notificaciones_bp.route('/leidas', methods=['POST'])
@login_required
def marcar_todas_leidas():
    marcadas = get_plataforma().notificaciones.mark_all_notifications_as_read(current_user.id)
    return jsonify({'marcadas': marcadas})
