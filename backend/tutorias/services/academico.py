import logging
import re
from datetime import datetime
from tutorias.services.almacenamiento import (
    CARRERAS, SEMESTRES, MATERIAS, ASIGNACIONES, PERIODOS, generar_id, ahora_iso,
)


logger = logging.getLogger(__name__)

UNIDADES_ACADEMICAS = ('Básica', 'Profesional', 'Titulación')
ESTADOS_MATERIA = ('pendiente', 'aprobada', 'rechazada')

SEMESTRE_FINAL = 'Final'
NUMERO_SEMESTRE_FINAL = 99
MAX_SEMESTRE = 10


def _buscar(registros, registro_id):
    return next((r for r in registros if r['id'] == registro_id), None)


def _indice(registros, registro_id):
    return next((i for i, r in enumerate(registros) if r['id'] == registro_id), None)


def _clave(texto):
    """Forma de comparación: espacios colapsados y minúsculas"""
    return ' '.join(str(texto or '').split()).lower()


def numero_semestre(nombre):
    """'3er Semestre' -> 3, 'Final' -> 99, sin número -> 0"""
    if _clave(nombre) == SEMESTRE_FINAL.lower():
        return NUMERO_SEMESTRE_FINAL
    coincidencia = re.match(r'\s*(\d+)', str(nombre or ''))
    return int(coincidencia.group(1)) if coincidencia else 0


def _numero_opcional(valor, campo):
    if valor is None or valor == '':
        return None
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        raise ValueError(f"{campo} debe ser numérico")
    if numero < 0:
        raise ValueError(f"{campo} no puede ser negativo")
    return int(numero) if numero.is_integer() else numero


def _validar_materia(cambios):
    if 'estado' in cambios and cambios['estado'] not in ESTADOS_MATERIA:
        raise ValueError(f"Estado de materia inválido: {cambios['estado']}")
    if cambios.get('unidad') and cambios['unidad'] not in UNIDADES_ACADEMICAS:
        raise ValueError(f"Unidad académica inválida: {cambios['unidad']}")
    for campo in ('creditos', 'horas'):
        if campo in cambios:
            cambios[campo] = _numero_opcional(cambios[campo], campo)
    if 'prerequisitos' in cambios:
        cambios['prerequisitos'] = [str(p).strip() for p in (cambios['prerequisitos'] or []) if str(p).strip()]
    return cambios


class RepositorioAcademico:
    """Carreras, semestres, malla curricular, asignaciones docentes y períodos"""

    def __init__(self, almacen, usuarios):
        self.almacen = almacen
        self.usuarios = usuarios

    def _crear(self, clave, nuevo, duplicado=None):
        with self.almacen.bloqueo(clave):
            registros = self.almacen.cargar(clave)
            if duplicado and any(duplicado(r) for r in registros):
                return None
            registros.append(nuevo)
            self.almacen.guardar(clave, registros)
        return nuevo

    def _actualizar(self, clave, registro_id, cambios, duplicado=None, ajustar=None):
        cambios = dict(cambios)
        cambios.pop('id', None)
        cambios.pop('creado_en', None)
        with self.almacen.bloqueo(clave):
            registros = self.almacen.cargar(clave)
            indice = _indice(registros, registro_id)
            if indice is None:
                return None
            actualizado = {**registros[indice], **cambios}
            if ajustar:
                actualizado = ajustar(actualizado, cambios)
            otros = [r for r in registros if r['id'] != registro_id]
            if duplicado and any(duplicado(actualizado, r) for r in otros):
                return None
            registros[indice] = actualizado
            self.almacen.guardar(clave, registros)
            return actualizado

    def _eliminar(self, clave, registro_id):
        with self.almacen.bloqueo(clave):
            registros = self.almacen.cargar(clave)
            restantes = [r for r in registros if r['id'] != registro_id]
            if len(restantes) == len(registros):
                return False
            self.almacen.guardar(clave, restantes)
            return True

    # ==================== CARRERAS ====================

    def get_carreras(self):
        return self.almacen.cargar(CARRERAS)

    def get_carrera_by_id(self, carrera_id):
        return _buscar(self.get_carreras(), carrera_id)

    def get_carrera_by_codigo(self, codigo):
        return next((c for c in self.get_carreras() if _clave(c.get('codigo')) == _clave(codigo)), None)

    def get_carrera_by_nombre(self, nombre):
        return next((c for c in self.get_carreras() if _clave(c.get('nombre')) == _clave(nombre)), None)

    def create_carrera(self, datos):
        nombre = (datos.get('nombre') or '').strip()
        codigo = (datos.get('codigo') or '').strip()
        if not nombre or not codigo:
            raise ValueError("La carrera requiere nombre y código")

        nueva = {
            'id': generar_id(),
            'nombre': nombre,
            'codigo': codigo,
            'descripcion': datos.get('descripcion', ''),
            'activa': bool(datos.get('activa', True)),
            'creado_en': ahora_iso(),
        }
        creada = self._crear(CARRERAS, nueva, lambda c: _clave(c.get('codigo')) == _clave(codigo))
        if creada is None:
            logger.info(f"Código de carrera ya registrado: {codigo}")
        return creada

    def update_carrera(self, carrera_id, cambios):
        return self._actualizar(
            CARRERAS, carrera_id, cambios,
            duplicado=lambda nueva, otra: _clave(nueva.get('codigo')) == _clave(otra.get('codigo')),
        )

    def delete_carrera(self, carrera_id):
        return self._eliminar(CARRERAS, carrera_id)

    # ==================== SEMESTRES ====================

    numero_semestre = staticmethod(numero_semestre)

    def get_semestres(self):
        return sorted(self.almacen.cargar(SEMESTRES), key=lambda s: s.get('numero', 0))

    def get_semestre_by_id(self, semestre_id):
        return _buscar(self.almacen.cargar(SEMESTRES), semestre_id)

    def get_semestre_by_nombre(self, nombre):
        return next((s for s in self.almacen.cargar(SEMESTRES) if _clave(s.get('nombre')) == _clave(nombre)), None)

    def create_semestre(self, datos):
        """Devuelve None si ya existe un semestre con ese nombre; el llamador vuelve a buscarlo"""
        nombre = ' '.join(str(datos.get('nombre') or '').split())
        if not nombre:
            raise ValueError("El semestre requiere nombre")
        numero = int(datos.get('numero') or numero_semestre(nombre))
        if numero != NUMERO_SEMESTRE_FINAL and not 1 <= numero <= MAX_SEMESTRE:
            raise ValueError(f"Número de semestre inválido para '{nombre}'")

        nuevo = {
            'id': generar_id(),
            'nombre': nombre,
            'numero': numero,
            'activo': bool(datos.get('activo', True)),
            'creado_en': ahora_iso(),
        }
        return self._crear(SEMESTRES, nuevo, lambda s: _clave(s.get('nombre')) == _clave(nombre))

    def get_or_create_semestre(self, nombre):
        return self.create_semestre({'nombre': nombre}) or self.get_semestre_by_nombre(nombre)

    # ==================== MATERIAS ====================

    def get_materias(self):
        return self.almacen.cargar(MATERIAS)

    def get_materia_by_id(self, materia_id):
        return _buscar(self.get_materias(), materia_id)

    def get_materia_by_codigo(self, codigo):
        return next((m for m in self.get_materias() if _clave(m.get('codigo')) == _clave(codigo)), None)

    def get_materias_by_carrera(self, carrera_id, solo_activas=False):
        return [m for m in self.get_materias()
                if m.get('carrera_id') == carrera_id and (m.get('activa') or not solo_activas)]

    def get_materias_pendientes(self):
        return [m for m in self.get_materias() if m.get('estado') == 'pendiente']

    def create_materia(self, datos):
        """Alta en la malla. El código es único en todo el sistema, no por carrera.

        Las materias propuestas por un coordinador quedan pendientes e
        inactivas; las del administrador o de la carga masiva quedan aprobadas.
        """
        codigo = (datos.get('codigo') or '').strip()
        nombre = (datos.get('nombre') or '').strip()
        if not codigo or not nombre:
            raise ValueError("La materia requiere código y nombre")

        campos = _validar_materia({
            'creditos': datos.get('creditos'),
            'horas': datos.get('horas'),
            'unidad': datos.get('unidad'),
            'prerequisitos': datos.get('prerequisitos'),
            'estado': datos.get('estado') or ('pendiente' if datos.get('coordinador_id') else 'aprobada'),
        })
        activa = datos.get('activa')
        if activa is None:
            activa = campos['estado'] == 'aprobada'
        if campos['estado'] == 'rechazada':
            activa = False

        nueva = {
            'id': generar_id(),
            'nombre': nombre,
            'codigo': codigo,
            'carrera_id': datos.get('carrera_id'),
            'semestre_id': datos.get('semestre_id'),
            'descripcion': datos.get('descripcion', ''),
            'coordinador_id': datos.get('coordinador_id'),
            'activa': bool(activa),
            'creado_en': ahora_iso(),
            **campos,
        }
        creada = self._crear(MATERIAS, nueva, lambda m: _clave(m.get('codigo')) == _clave(codigo))
        if creada is None:
            logger.info(f"Código de materia ya registrado: {codigo}")
        return creada

    def update_materia(self, materia_id, cambios):
        """Aprobar activa la materia salvo que se indique lo contrario; rechazar siempre la desactiva"""
        cambios = _validar_materia(dict(cambios))

        def ajustar(materia, cambios):
            if cambios.get('estado') == 'aprobada' and 'activa' not in cambios:
                materia['activa'] = True
            if materia.get('estado') == 'rechazada':
                materia['activa'] = False
            return materia

        return self._actualizar(
            MATERIAS, materia_id, cambios,
            duplicado=lambda nueva, otra: _clave(nueva.get('codigo')) == _clave(otra.get('codigo')),
            ajustar=ajustar,
        )

    def delete_materia(self, materia_id):
        return self._eliminar(MATERIAS, materia_id)

    # ==================== ASIGNACIONES DOCENTE-MATERIA-SEMESTRE ====================

    @staticmethod
    def _misma_terna(a, b):
        return (a.get('docente_id'), a.get('materia_id'), a.get('semestre_id')) == \
               (b.get('docente_id'), b.get('materia_id'), b.get('semestre_id'))

    def get_docente_materia_semestres(self, carrera_id=None):
        asignaciones = self.almacen.cargar(ASIGNACIONES)
        if carrera_id is None:
            return asignaciones
        return [a for a in asignaciones if a.get('carrera_id') == carrera_id]

    def get_docente_materia_semestre_by_id(self, asignacion_id):
        return _buscar(self.almacen.cargar(ASIGNACIONES), asignacion_id)

    def get_asignaciones_by_docente(self, docente_id):
        return [a for a in self.almacen.cargar(ASIGNACIONES) if a.get('docente_id') == docente_id]

    def create_docente_materia_semestre(self, datos):
        for campo in ('docente_id', 'materia_id', 'semestre_id'):
            if not datos.get(campo):
                raise ValueError(f"La asignación requiere {campo}")

        nueva = {
            'id': generar_id(),
            'docente_id': datos['docente_id'],
            'materia_id': datos['materia_id'],
            'semestre_id': datos['semestre_id'],
            'carrera_id': datos.get('carrera_id'),
            'activo': bool(datos.get('activo', True)),
            'creado_en': ahora_iso(),
        }
        creada = self._crear(ASIGNACIONES, nueva, lambda a: self._misma_terna(a, nueva))
        if creada is None:
            logger.info(f"Asignación duplicada: docente {nueva['docente_id']}, materia {nueva['materia_id']}")
        return creada

    def update_docente_materia_semestre(self, asignacion_id, cambios):
        return self._actualizar(ASIGNACIONES, asignacion_id, cambios, duplicado=self._misma_terna)

    def delete_docente_materia_semestre(self, asignacion_id):
        return self._eliminar(ASIGNACIONES, asignacion_id)

    def get_docentes_by_materia_semestre(self, materia_id, semestre_id, carrera_id):
        """Docentes con una asignación activa para la terna. Lista vacía si no hay ninguna."""
        docente_ids = [
            a.get('docente_id') for a in self.almacen.cargar(ASIGNACIONES)
            if a.get('activo')
            and a.get('materia_id') == materia_id
            and a.get('semestre_id') == semestre_id
            and a.get('carrera_id') == carrera_id
        ]
        if not docente_ids:
            return []

        usuarios = {u['id']: u for u in self.usuarios.get_users()}
        docentes = []
        for docente_id in docente_ids:
            if docente_id in usuarios and usuarios[docente_id] not in docentes:
                docentes.append(usuarios[docente_id])
        return docentes

    # ==================== PERÍODOS ====================

    def get_periodos(self):
        return sorted(self.almacen.cargar(PERIODOS), key=lambda p: p.get('fecha_inicio', ''), reverse=True)

    def get_periodo_by_id(self, periodo_id):
        return _buscar(self.almacen.cargar(PERIODOS), periodo_id)

    def get_periodo_activo(self):
        return next((p for p in self.get_periodos() if p.get('activo')), None)

    def create_periodo(self, datos):
        fecha_inicio = datos.get('fecha_inicio', '')
        anio = datos.get('anio')
        if not anio:
            try:
                anio = datetime.strptime(fecha_inicio, '%Y-%m-%d').year
            except (TypeError, ValueError):
                anio = datetime.now().year

        nuevo = {
            'id': generar_id(),
            'nombre': (datos.get('nombre') or '').strip(),
            'fecha_inicio': fecha_inicio,
            'fecha_fin': datos.get('fecha_fin', ''),
            'anio': int(anio),
            'activo': bool(datos.get('activo', False)),
            'creado_en': ahora_iso(),
        }
        return self._crear(PERIODOS, nuevo)

    def update_periodo(self, periodo_id, cambios):
        return self._actualizar(PERIODOS, periodo_id, cambios)

    def delete_periodo(self, periodo_id):
        return self._eliminar(PERIODOS, periodo_id)

    def activar_periodo(self, periodo_id):
        """Deja activo solo el período indicado"""
        with self.almacen.bloqueo(PERIODOS):
            periodos = self.almacen.cargar(PERIODOS)
            objetivo = _buscar(periodos, periodo_id)
            if objetivo is None:
                return None
            for periodo in periodos:
                periodo['activo'] = periodo['id'] == periodo_id
            self.almacen.guardar(PERIODOS, periodos)
        logger.info(f"Período activo cambiado a: {objetivo.get('nombre')}")
        return objetivo
