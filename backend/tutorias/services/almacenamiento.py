import copy
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from blinker import Signal
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from tutorias.errors import AlmacenNoDisponible, EscrituraConcurrente
from tutorias.models.almacen import Almacen
from tutorias.utils.roles import normalizar_roles


logger = logging.getLogger(__name__)

ESQUEMA_VERSION = 1

# Claves bien conocidas del medio durable
USUARIOS = 'tutorias_users'
TUTORIAS = 'tutorias_data'
NOTIFICACIONES = 'tutorias_notifications'
MENSAJES = 'tutorias_mensajes'
CARRERAS = 'tutorias_carreras'
MATERIAS = 'tutorias_materias'
SEMESTRES = 'tutorias_semestres'
ASIGNACIONES = 'tutorias_docente_materia_semestre'
PERIODOS = 'tutorias_periodos'
PDFS = 'tutorias_pdfs'

COLECCIONES = (
    USUARIOS, TUTORIAS, NOTIFICACIONES, MENSAJES, CARRERAS,
    MATERIAS, SEMESTRES, ASIGNACIONES, PERIODOS, PDFS,
)


def generar_id():
    return str(uuid.uuid4())


def ahora_iso():
    return datetime.now(timezone.utc).isoformat()


def migrar(clave, valor, version):
    """Lleva un valor guardado con una versión anterior al esquema actual"""
    if version < 1:
        if clave == USUARIOS:
            for usuario in valor:
                usuario['rol'] = normalizar_roles(usuario.get('rol'))
        elif clave == TUTORIAS:
            for tutoria in valor:
                if tutoria.get('estado') == 'Solicitada':
                    tutoria['estado'] = 'pendiente'
        logger.info(f"Colección '{clave}' migrada de v{version} a v{ESQUEMA_VERSION}")
    return valor


class BloqueoColeccion:
    """Bloqueo reentrante de una colección para un ciclo leer-modificar-escribir.

    Al entrar (nivel exterior) sincroniza el espejo con la base de datos y fija
    la revisión leída; mientras dure, las lecturas de la colección no vuelven a
    consultar la base y `guardar` exige que la fila siga en esa revisión.
    """

    def __init__(self, almacen, clave):
        self.almacen = almacen
        self.clave = clave
        self._rlock = threading.RLock()

    def __enter__(self):
        self._rlock.acquire()
        niveles = self.almacen._estado_hilo('niveles')
        niveles[self.clave] = niveles.get(self.clave, 0) + 1
        if niveles[self.clave] == 1:
            try:
                self.almacen._estado_hilo('revisiones')[self.clave] = self.almacen._sincronizar(self.clave)
            except Exception:
                self._salir()
                raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self._salir()
        return False

    def _salir(self):
        niveles = self.almacen._estado_hilo('niveles')
        niveles[self.clave] -= 1
        if niveles[self.clave] == 0:
            del niveles[self.clave]
            self.almacen._estado_hilo('revisiones').pop(self.clave, None)
        self._rlock.release()


class AlmacenPersistente:
    """Colecciones con nombre sobre la tabla clave-valor `almacen`.

    Cada colección se guarda en memoria junto con la revisión de su fila y se
    reescribe completa en cada mutación. Antes de usar el espejo se compara
    esa revisión con la de la base, así que las escrituras de otro proceso
    (create_admin.py, otro worker de Gunicorn) se ven en la siguiente lectura.
    Las lecturas devuelven copias, de modo que modificar un registro leído no
    altera el espejo.

    Los repositorios envuelven cada ciclo leer-modificar-escribir en
    `bloqueo(clave)`. Sin eso dos altas simultáneas podrían pasar ambas la
    verificación de unicidad; si otro proceso escribe en medio, `guardar`
    lanza EscrituraConcurrente en lugar de pisar sus registros.
    """

    def __init__(self, db):
        self.db = db
        # clave -> (revision, valor); revision None si la fila no existe
        self._espejo = {}
        self._bloqueos = {}
        self._bloqueo_registro = threading.Lock()
        self._hilo = threading.local()
        self.modificado = Signal('almacen-modificado')

    def bloqueo(self, clave):
        with self._bloqueo_registro:
            if clave not in self._bloqueos:
                self._bloqueos[clave] = BloqueoColeccion(self, clave)
            return self._bloqueos[clave]

    def _estado_hilo(self, nombre):
        if not hasattr(self._hilo, nombre):
            setattr(self._hilo, nombre, {})
        return getattr(self._hilo, nombre)

    # --- Lectura ---

    def _revision_durable(self, clave):
        try:
            return self.db.session.query(Almacen.revision).filter_by(clave=clave).scalar()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error(f"Error leyendo la revisión de '{clave}': {e}")
            raise AlmacenNoDisponible(clave, str(e)) from e

    def _recargar(self, clave):
        try:
            fila = self.db.session.query(
                Almacen.valor, Almacen.version, Almacen.revision
            ).filter_by(clave=clave).first()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error(f"Error leyendo '{clave}' del almacén: {e}")
            raise AlmacenNoDisponible(clave, str(e)) from e

        if fila is None:
            self._espejo[clave] = (None, None)
            return None

        try:
            valor = json.loads(fila.valor)
        except ValueError as e:
            logger.error(f"Contenido corrupto en '{clave}': {e}")
            raise AlmacenNoDisponible(clave, 'contenido corrupto') from e
        if (fila.version or 0) < ESQUEMA_VERSION:
            valor = migrar(clave, valor, fila.version or 0)

        self._espejo[clave] = (fila.revision, valor)
        return valor

    def _sincronizar(self, clave):
        """Recarga la colección si otro proceso la cambió. Devuelve la revisión del espejo."""
        revision = self._revision_durable(clave)
        if clave not in self._espejo or self._espejo[clave][0] != revision:
            self._recargar(clave)
        return self._espejo[clave][0]

    def _leer_durable(self, clave):
        if clave in self._estado_hilo('revisiones') and clave in self._espejo:
            return self._espejo[clave][1]
        self._sincronizar(clave)
        return self._espejo[clave][1]

    def cargar(self, clave):
        """Devuelve una copia de la colección; vacía si nunca se guardó"""
        valor = self._leer_durable(clave)
        if valor is None:
            return []
        if not isinstance(valor, list):
            raise AlmacenNoDisponible(clave, 'se esperaba una colección')
        return copy.deepcopy(valor)

    def leer(self, clave, default=None):
        valor = self._leer_durable(clave)
        if valor is None:
            return default
        return copy.deepcopy(valor)

    # --- Escritura ---

    def _revision_esperada(self, clave):
        revisiones = self._estado_hilo('revisiones')
        if clave in revisiones:
            return revisiones[clave]
        if clave in self._espejo:
            return self._espejo[clave][0]
        # Escritura sin lectura previa: reemplaza lo que haya
        return self._revision_durable(clave)

    def guardar(self, clave, valor):
        """Reemplaza el contenido completo de la clave y confirma.

        Solo escribe si la fila sigue en la revisión que se leyó; si no,
        lanza EscrituraConcurrente y descarta el espejo de esa colección.
        """
        try:
            contenido = json.dumps(valor, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise AlmacenNoDisponible(clave, f'no serializable: {e}') from e

        esperada = self._revision_esperada(clave)
        nueva = 1 if esperada is None else esperada + 1
        try:
            if esperada is None:
                self.db.session.add(Almacen(clave=clave, valor=contenido, version=ESQUEMA_VERSION, revision=nueva))
                escritas = 1
            else:
                escritas = Almacen.query.filter_by(clave=clave, revision=esperada).update({
                    'valor': contenido,
                    'version': ESQUEMA_VERSION,
                    'revision': nueva,
                    'actualizado_en': datetime.now(timezone.utc),
                }, synchronize_session=False)
            if escritas:
                self.db.session.commit()
            else:
                self.db.session.rollback()
        except IntegrityError:
            # Otro proceso creó la fila primero
            self.db.session.rollback()
            escritas = 0
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error(f"Error guardando '{clave}' en el almacén: {e}")
            raise AlmacenNoDisponible(clave, str(e)) from e

        if not escritas:
            self._espejo.pop(clave, None)
            logger.warning(f"Escritura rechazada en '{clave}': la revisión {esperada} ya no es la actual")
            raise EscrituraConcurrente(clave)

        # El espejo solo cambia después de confirmar
        self._espejo[clave] = (nueva, copy.deepcopy(valor))
        revisiones = self._estado_hilo('revisiones')
        if clave in revisiones:
            revisiones[clave] = nueva
        self.modificado.send(self, clave=clave)

    def eliminar(self, clave):
        try:
            Almacen.query.filter_by(clave=clave).delete()
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error(f"Error eliminando '{clave}' del almacén: {e}")
            raise AlmacenNoDisponible(clave, str(e)) from e

        self._espejo[clave] = (None, None)
        revisiones = self._estado_hilo('revisiones')
        if clave in revisiones:
            revisiones[clave] = None
        self.modificado.send(self, clave=clave)

    def suscribir(self, callback):
        """Llama a callback(clave) tras cada escritura. Devuelve la función para cancelar."""
        def receptor(sender, clave=None, **kwargs):
            callback(clave)

        self.modificado.connect(receptor, weak=False)

        def cancelar():
            self.modificado.disconnect(receptor)
        return cancelar
