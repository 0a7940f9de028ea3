import logging
from tutorias.services.almacenamiento import TUTORIAS, MENSAJES, generar_id, ahora_iso
from tutorias.services.usuarios import nombre_completo, NOMBRE_DESCONOCIDO
from tutorias.utils.seguridad import sanitize_input
from tutorias.utils.validadores import parse_fecha_hora


logger = logging.getLogger(__name__)

ESTADOS_TUTORIA = ('pendiente', 'aceptada', 'rechazada', 'finalizada')

# Literales viejos que todavía pueden llegar desde datos importados
ESTADOS_LEGADOS = {'solicitada': 'pendiente'}

CAMPOS_TEXTO = ('tema', 'descripcion', 'comentario')


def normalizar_estado(estado):
    if estado is None or estado == '':
        return 'pendiente'
    valor = str(estado).strip().lower()
    valor = ESTADOS_LEGADOS.get(valor, valor)
    if valor not in ESTADOS_TUTORIA:
        raise ValueError(f"Estado de tutoría inválido: {estado}")
    return valor


def validar_calificacion(calificacion):
    if calificacion is None:
        return None
    try:
        valor = int(calificacion)
    except (TypeError, ValueError):
        raise ValueError("La calificación debe ser un número entero")
    if valor != calificacion and str(valor) != str(calificacion).strip():
        raise ValueError("La calificación debe ser un número entero")
    if not 1 <= valor <= 5:
        raise ValueError("La calificación debe estar entre 1 y 5")
    return valor


def formatear_fecha(fecha):
    momento = parse_fecha_hora(fecha)
    return momento.strftime('%d/%m/%Y') if momento else str(fecha)


class RepositorioTutorias:
    """Solicitudes de tutoría y su chat.

    Las transiciones de estado no se restringen aquí: el flujo
    pendiente -> aceptada/rechazada -> finalizada lo hace cumplir quien llama.
    Al calificar, el llamador envía `calificacion` y `estado='finalizada'`
    juntos.
    """

    def __init__(self, almacen, usuarios, academico, notificaciones):
        self.almacen = almacen
        self.usuarios = usuarios
        self.academico = academico
        self.notificaciones = notificaciones

    # --- Consultas ---

    def get_tutorias(self):
        return self.almacen.cargar(TUTORIAS)

    def get_tutoria_by_id(self, tutoria_id):
        return next((t for t in self.get_tutorias() if t['id'] == tutoria_id), None)

    def get_tutorias_by_estudiante(self, estudiante_id):
        return [t for t in self.get_tutorias() if t.get('estudiante_id') == estudiante_id]

    def get_tutorias_by_docente(self, docente_id):
        return [t for t in self.get_tutorias() if t.get('docente_id') == docente_id]

    def get_tutorias_with_names(self, tutorias=None):
        """Agrega nombres de estudiante, docente, materia y semestre. 'Desconocido' si el registro ya no existe."""
        if tutorias is None:
            tutorias = self.get_tutorias()
        usuarios = {u['id']: u for u in self.usuarios.get_users()}
        materias = {m['id']: m for m in self.academico.get_materias()}
        semestres = {s['id']: s for s in self.academico.get_semestres()}

        enriquecidas = []
        for t in tutorias:
            enriquecidas.append({
                **t,
                'estudiante_nombre': nombre_completo(usuarios.get(t.get('estudiante_id'))),
                'docente_nombre': nombre_completo(usuarios.get(t.get('docente_id'))),
                'materia_nombre': materias.get(t.get('materia_id'), {}).get('nombre', NOMBRE_DESCONOCIDO),
                'semestre_nombre': semestres.get(t.get('semestre_id'), {}).get('nombre', NOMBRE_DESCONOCIDO),
            })
        return enriquecidas

    def get_tutoria_with_names(self, tutoria_id):
        tutoria = self.get_tutoria_by_id(tutoria_id)
        if tutoria is None:
            return None
        return self.get_tutorias_with_names([tutoria])[0]

    # --- Mutaciones ---

    def create_tutoria(self, datos):
        """Siempre crea. Que la fecha sea futura lo valida el formulario con is_future_datetime."""
        ahora = ahora_iso()
        nueva = {
            'id': generar_id(),
            'estudiante_id': datos.get('estudiante_id'),
            'docente_id': datos.get('docente_id'),
            'materia_id': datos.get('materia_id'),
            'semestre_id': datos.get('semestre_id'),
            'tema': sanitize_input(datos.get('tema')),
            'descripcion': sanitize_input(datos.get('descripcion')),
            'fecha': datos.get('fecha'),
            'hora': datos.get('hora'),
            'estado': normalizar_estado(datos.get('estado')),
            'calificacion': None,
            'comentario': None,
            'creado_en': ahora,
            'actualizado_en': ahora,
        }

        with self.almacen.bloqueo(TUTORIAS):
            tutorias = self.almacen.cargar(TUTORIAS)
            tutorias.append(nueva)
            self.almacen.guardar(TUTORIAS, tutorias)

        if nueva['docente_id']:
            estudiante = self.usuarios.get_user_name(nueva['estudiante_id'])
            self.notificaciones.create_notification(
                nueva['docente_id'],
                f'Nueva solicitud de tutoría de {estudiante}: "{nueva["tema"]}"',
                'solicitud',
                nueva['id'],
            )
        logger.info(f"Tutoría creada: {nueva['id']} ({nueva['estado']})")
        return nueva

    def update_tutoria(self, tutoria_id, cambios):
        cambios = dict(cambios)
        cambios.pop('id', None)
        cambios.pop('creado_en', None)
        if 'estado' in cambios:
            cambios['estado'] = normalizar_estado(cambios['estado'])
        if 'calificacion' in cambios:
            cambios['calificacion'] = validar_calificacion(cambios['calificacion'])
        for campo in CAMPOS_TEXTO:
            if cambios.get(campo) is not None:
                cambios[campo] = sanitize_input(cambios[campo])

        with self.almacen.bloqueo(TUTORIAS):
            tutorias = self.almacen.cargar(TUTORIAS)
            indice = next((i for i, t in enumerate(tutorias) if t['id'] == tutoria_id), None)
            if indice is None:
                return None
            anterior = tutorias[indice]
            actualizada = {**anterior, **cambios, 'actualizado_en': ahora_iso()}
            tutorias[indice] = actualizada
            self.almacen.guardar(TUTORIAS, tutorias)

        self._notificar_cambios(anterior, actualizada)
        return actualizada

    def _notificar_cambios(self, anterior, actual):
        tema = actual.get('tema', '')
        tutoria_id = actual['id']
        estudiante_id = actual.get('estudiante_id')
        docente_id = actual.get('docente_id')

        if actual.get('estado') != anterior.get('estado') and actual.get('estado') in ('aceptada', 'rechazada'):
            docente = self.usuarios.get_user_name(docente_id)
            self.notificaciones.create_notification(
                estudiante_id,
                f'Tu solicitud de tutoría "{tema}" fue {actual["estado"]} por {docente}',
                actual['estado'],
                tutoria_id,
            )

        if (actual.get('fecha'), actual.get('hora')) != (anterior.get('fecha'), anterior.get('hora')):
            mensaje = f'Tutoría "{tema}" reprogramada para {formatear_fecha(actual.get("fecha"))} a las {actual.get("hora")}'
            for destinatario in (estudiante_id, docente_id):
                if destinatario:
                    self.notificaciones.create_notification(destinatario, mensaje, 'reprogramada', tutoria_id)

        calificacion = actual.get('calificacion')
        if calificacion is not None and calificacion != anterior.get('calificacion') and docente_id:
            estudiante = self.usuarios.get_user_name(estudiante_id)
            self.notificaciones.create_notification(
                docente_id,
                f'{estudiante} calificó la tutoría "{tema}" con {calificacion}/5',
                'calificacion',
                tutoria_id,
            )

    def delete_tutoria(self, tutoria_id):
        with self.almacen.bloqueo(TUTORIAS):
            tutorias = self.almacen.cargar(TUTORIAS)
            restantes = [t for t in tutorias if t['id'] != tutoria_id]
            if len(restantes) == len(tutorias):
                return False
            self.almacen.guardar(TUTORIAS, restantes)

        # El chat se va con la tutoría
        with self.almacen.bloqueo(MENSAJES):
            mensajes = self.almacen.cargar(MENSAJES)
            conservados = [m for m in mensajes if m.get('tutoria_id') != tutoria_id]
            if len(conservados) != len(mensajes):
                self.almacen.guardar(MENSAJES, conservados)
        return True

    # ==================== MENSAJES ====================

    def get_mensajes_by_tutoria(self, tutoria_id):
        propios = [m for m in self.almacen.cargar(MENSAJES) if m.get('tutoria_id') == tutoria_id]
        return sorted(propios, key=lambda m: m.get('fecha', ''))

    def create_mensaje(self, tutoria_id, remitente_id, contenido):
        """Solo el estudiante o el docente de la tutoría pueden escribir"""
        tutoria = self.get_tutoria_by_id(tutoria_id)
        if tutoria is None:
            return None
        participantes = (tutoria.get('estudiante_id'), tutoria.get('docente_id'))
        if remitente_id not in participantes:
            return None
        contenido = sanitize_input(contenido)
        if not contenido:
            return None

        nuevo = {
            'id': generar_id(),
            'tutoria_id': tutoria_id,
            'remitente_id': remitente_id,
            'contenido': contenido,
            'leido': False,
            'fecha': ahora_iso(),
        }
        with self.almacen.bloqueo(MENSAJES):
            mensajes = self.almacen.cargar(MENSAJES)
            mensajes.append(nuevo)
            self.almacen.guardar(MENSAJES, mensajes)

        destinatario = participantes[1] if remitente_id == participantes[0] else participantes[0]
        if destinatario:
            remitente = self.usuarios.get_user_name(remitente_id)
            self.notificaciones.create_notification(
                destinatario,
                f'Nuevo mensaje de {remitente} en la tutoría "{tutoria.get("tema", "")}"',
                'mensaje',
                tutoria_id,
            )
        return nuevo

    def mark_mensajes_as_read(self, tutoria_id, user_id):
        """Marca como leídos los mensajes recibidos por el usuario en esa tutoría"""
        with self.almacen.bloqueo(MENSAJES):
            mensajes = self.almacen.cargar(MENSAJES)
            cambiados = 0
            for m in mensajes:
                if m.get('tutoria_id') == tutoria_id and m.get('remitente_id') != user_id and not m.get('leido'):
                    m['leido'] = True
                    cambiados += 1
            if cambiados:
                self.almacen.guardar(MENSAJES, mensajes)
            return cambiados
