import logging
from tutorias.services.almacenamiento import NOTIFICACIONES, generar_id, ahora_iso


logger = logging.getLogger(__name__)

TIPOS_NOTIFICACION = (
    'solicitud',
    'aceptada',
    'rechazada',
    'reprogramada',
    'calificacion',
    'mensaje',
    'pdf',
    'usuarios',
)


class DespachadorNotificaciones:
    """Crea notificaciones para un usuario, un rol o una carrera.

    Los envíos masivos arman todos los registros antes de escribir y los
    guardan con una sola escritura de la colección: si la escritura falla no
    queda visible ninguna notificación del lote.
    """

    def __init__(self, almacen, usuarios):
        self.almacen = almacen
        self.usuarios = usuarios

    def _nueva(self, user_id, mensaje, tipo, tutoria_id=None, **extra):
        if tipo not in TIPOS_NOTIFICACION:
            raise ValueError(f"Tipo de notificación inválido: {tipo}")
        registro = {
            'id': generar_id(),
            'user_id': user_id,
            'mensaje': mensaje,
            'tipo': tipo,
            'leido': False,
            'fecha': ahora_iso(),
            'tutoria_id': tutoria_id,
        }
        registro.update(extra)
        return registro

    def _agregar(self, nuevas):
        if not nuevas:
            return []
        with self.almacen.bloqueo(NOTIFICACIONES):
            notificaciones = self.almacen.cargar(NOTIFICACIONES)
            notificaciones.extend(nuevas)
            self.almacen.guardar(NOTIFICACIONES, notificaciones)
        return nuevas

    def create_notification(self, user_id, mensaje, tipo, tutoria_id=None):
        return self._agregar([self._nueva(user_id, mensaje, tipo, tutoria_id)])[0]

    def create_notification_by_role(self, rol, mensaje, tipo):
        destinatarios = self.usuarios.get_users_by_role(rol)
        nuevas = [self._nueva(u['id'], mensaje, tipo, rol_destino=rol) for u in destinatarios]
        self._agregar(nuevas)
        logger.debug(f"Notificación '{tipo}' enviada a {len(nuevas)} usuarios con rol {rol}")
        return nuevas

    def create_notification_by_carrera(self, carrera, mensaje, tipo, related_id=None, ignorar_mayusculas=False):
        if ignorar_mayusculas:
            buscada = (carrera or '').strip().lower()
            destinatarios = [u for u in self.usuarios.get_users()
                             if (u.get('carrera') or '').strip().lower() == buscada]
        else:
            destinatarios = self.usuarios.get_users_by_carrera(carrera)

        nuevas = [
            self._nueva(u['id'], mensaje, tipo, carrera_destino=carrera, related_id=related_id)
            for u in destinatarios
        ]
        self._agregar(nuevas)
        logger.debug(f"Notificación '{tipo}' enviada a {len(nuevas)} usuarios de la carrera {carrera}")
        return nuevas

    def get_notifications_by_user(self, user_id):
        propias = [n for n in self.almacen.cargar(NOTIFICACIONES) if n.get('user_id') == user_id]
        return sorted(propias, key=lambda n: n.get('fecha', ''), reverse=True)

    def get_unread_notifications_count(self, user_id):
        return sum(1 for n in self.almacen.cargar(NOTIFICACIONES)
                   if n.get('user_id') == user_id and not n.get('leido'))

    def mark_notification_as_read(self, notification_id):
        with self.almacen.bloqueo(NOTIFICACIONES):
            notificaciones = self.almacen.cargar(NOTIFICACIONES)
            notificacion = next((n for n in notificaciones if n['id'] == notification_id), None)
            if notificacion is None:
                return False
            if not notificacion.get('leido'):
                notificacion['leido'] = True
                self.almacen.guardar(NOTIFICACIONES, notificaciones)
            return True

    def mark_all_notifications_as_read(self, user_id):
        """Marca como leídas todas las del usuario. Devuelve cuántas cambiaron."""
        with self.almacen.bloqueo(NOTIFICACIONES):
            notificaciones = self.almacen.cargar(NOTIFICACIONES)
            cambiadas = 0
            for n in notificaciones:
                if n.get('user_id') == user_id and not n.get('leido'):
                    n['leido'] = True
                    cambiadas += 1
            if cambiadas:
                self.almacen.guardar(NOTIFICACIONES, notificaciones)
            return cambiadas
