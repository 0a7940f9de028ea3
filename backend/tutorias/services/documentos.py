import logging
from werkzeug.utils import secure_filename
from tutorias.services.almacenamiento import PDFS, generar_id, ahora_iso
from tutorias.utils.roles import ROLES


logger = logging.getLogger(__name__)

EXTENSIONES_PERMITIDAS = {'pdf'}


def allowed_file(filename):
    """Verifica si la extensión del archivo está permitida"""
    return '.' in (filename or '') and filename.rsplit('.', 1)[1].lower() in EXTENSIONES_PERMITIDAS


class RepositorioDocumentos:
    """Metadatos de los PDF por carrera. El archivo en sí no se guarda aquí."""

    def __init__(self, almacen, academico, notificaciones):
        self.almacen = almacen
        self.academico = academico
        self.notificaciones = notificaciones

    def get_pdfs(self):
        return sorted(self.almacen.cargar(PDFS), key=lambda p: p.get('fecha', ''), reverse=True)

    def get_pdf_by_id(self, pdf_id):
        return next((p for p in self.almacen.cargar(PDFS) if p['id'] == pdf_id), None)

    def _ids_de_carrera(self, carrera):
        """La carrera puede llegar como id o como nombre libre del perfil"""
        claves = {str(carrera or '').strip().lower()}
        encontrada = self.academico.get_carrera_by_id(carrera) or self.academico.get_carrera_by_nombre(carrera)
        if encontrada:
            claves.update({encontrada['id'].lower(), encontrada['nombre'].strip().lower()})
        return claves

    def get_pdfs_by_carrera(self, carrera, solo_activos=True):
        claves = self._ids_de_carrera(carrera)
        return [p for p in self.get_pdfs()
                if str(p.get('carrera', '')).strip().lower() in claves
                and (p.get('activo') or not solo_activos)]

    def create_pdf(self, datos):
        nombre_archivo = secure_filename(datos.get('nombre_archivo') or '')
        if not allowed_file(nombre_archivo):
            raise ValueError("Solo se permiten archivos PDF")
        if datos.get('rol_subida') not in ROLES:
            raise ValueError(f"Rol de subida inválido: {datos.get('rol_subida')}")

        nuevo = {
            'id': generar_id(),
            'nombre': (datos.get('nombre') or '').strip() or nombre_archivo,
            'carrera': datos.get('carrera'),
            'rol_subida': datos.get('rol_subida'),
            'usuario_subida': datos.get('usuario_subida'),
            'nombre_archivo': nombre_archivo,
            'tamano': datos.get('tamano'),
            'descripcion': datos.get('descripcion', ''),
            'activo': bool(datos.get('activo', True)),
            'fecha': ahora_iso(),
        }
        with self.almacen.bloqueo(PDFS):
            pdfs = self.almacen.cargar(PDFS)
            pdfs.append(nuevo)
            self.almacen.guardar(PDFS, pdfs)

        carrera = self.academico.get_carrera_by_id(nuevo['carrera'])
        carrera_nombre = carrera['nombre'] if carrera else nuevo['carrera']
        self.notificaciones.create_notification_by_carrera(
            carrera_nombre,
            f"Nuevo PDF disponible: {nuevo['nombre']}",
            'pdf',
            nuevo['id'],
            ignorar_mayusculas=True,
        )
        logger.info(f"PDF registrado: {nombre_archivo} para la carrera {carrera_nombre}")
        return nuevo

    def update_pdf(self, pdf_id, cambios):
        cambios = {k: v for k, v in cambios.items() if k in ('nombre', 'descripcion', 'activo')}
        with self.almacen.bloqueo(PDFS):
            pdfs = self.almacen.cargar(PDFS)
            indice = next((i for i, p in enumerate(pdfs) if p['id'] == pdf_id), None)
            if indice is None:
                return None
            pdfs[indice] = {**pdfs[indice], **cambios}
            self.almacen.guardar(PDFS, pdfs)
            return pdfs[indice]

    def delete_pdf(self, pdf_id):
        with self.almacen.bloqueo(PDFS):
            pdfs = self.almacen.cargar(PDFS)
            restantes = [p for p in pdfs if p['id'] != pdf_id]
            if len(restantes) == len(pdfs):
                return False
            self.almacen.guardar(PDFS, restantes)
            return True
