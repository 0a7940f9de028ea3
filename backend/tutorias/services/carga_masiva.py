import logging
import re
from tutorias.utils.roles import ROLES, normalizar_roles
from tutorias.utils.validadores import is_valid_cedula, is_valid_email
from tutorias.services.academico import UNIDADES_ACADEMICAS, SEMESTRE_FINAL, MAX_SEMESTRE


logger = logging.getLogger(__name__)

# Columnas esperadas en cada hoja
COLUMNAS_USUARIOS = ('cedula', 'nombres', 'correo', 'rol', 'carrera', 'nivel', 'estado')
COLUMNAS_MALLA = ('carrera', 'unidad', 'semestre', 'codigo_asignatura', 'nombre_asignatura',
                  'creditos', 'horas', 'prerequisitos')

ORDINALES_SEMESTRE = {
    'primer': 1, 'primero': 1, 'segundo': 2, 'tercer': 3, 'tercero': 3,
    'cuarto': 4, 'quinto': 5, 'sexto': 6, 'septimo': 7, 'séptimo': 7,
    'octavo': 8, 'noveno': 9, 'decimo': 10, 'décimo': 10,
}
SUFIJOS_SEMESTRE = {1: 'er', 2: 'do', 3: 'er', 4: 'to', 5: 'to', 6: 'to', 7: 'mo', 8: 'vo', 9: 'no', 10: 'mo'}


def nombre_semestre(numero):
    return f"{numero}{SUFIJOS_SEMESTRE[numero]} Semestre"


def normalizar_semestre(texto):
    """'tercero', '3', '3er semestre' -> '3er Semestre'; 'final' -> 'Final'"""
    original = ' '.join(str(texto or '').split())
    valor = original.lower()
    if 'final' in valor:
        return SEMESTRE_FINAL
    # Primero las palabras más largas: 'tercero' antes que 'tercer'
    for palabra in sorted(ORDINALES_SEMESTRE, key=len, reverse=True):
        if palabra in valor:
            return nombre_semestre(ORDINALES_SEMESTRE[palabra])
    coincidencia = re.match(r'(\d+)', valor)
    if coincidencia and 1 <= int(coincidencia.group(1)) <= MAX_SEMESTRE:
        return nombre_semestre(int(coincidencia.group(1)))
    return original


def separar_nombre(nombre_completo):
    """La última palabra se toma como apellido"""
    partes = str(nombre_completo or '').split()
    if len(partes) <= 1:
        return (partes[0] if partes else ''), ''
    return ' '.join(partes[:-1]), partes[-1]


def parsear_roles(texto):
    candidatos = [r.strip().lower() for r in str(texto or '').split(',')]
    validos = [r for r in candidatos if r in ROLES]
    if not validos:
        return []
    return normalizar_roles(validos)


def parsear_prerequisitos(texto):
    if not texto:
        return []
    return [p.upper() for p in re.split(r'[,;|\-\s]+', str(texto)) if p.strip()]


def _texto(fila, campo):
    valor = fila.get(campo)
    return '' if valor is None else str(valor).strip()


class ResultadoFila:
    """Resultado de procesar una fila de la hoja"""

    def __init__(self, fila, exito, identificador='', nombre='', error=None):
        self.fila = fila
        self.exito = exito
        self.identificador = identificador
        self.nombre = nombre
        self.error = error

    def to_dict(self):
        return {
            'fila': self.fila,
            'exito': self.exito,
            'identificador': self.identificador,
            'nombre': self.nombre,
            'error': self.error,
        }

    def __repr__(self):
        return f'<ResultadoFila {self.fila} {"ok" if self.exito else self.error}>'


class ServicioCargaMasiva:
    """Alta de usuarios y de la malla curricular desde filas ya leídas de una hoja.

    Cada fila es independiente: una fila inválida se reporta y no deja
    ningún registro a medias.
    """

    def __init__(self, usuarios, academico, notificaciones):
        self.usuarios = usuarios
        self.academico = academico
        self.notificaciones = notificaciones

    # ==================== USUARIOS ====================

    def _validar_usuario(self, fila, numero, carrera_forzada):
        cedula = _texto(fila, 'cedula')
        if not cedula:
            return f"Fila {numero}: Cédula es requerida"
        if not is_valid_cedula(cedula):
            return f"Fila {numero}: Cédula inválida (debe tener 10 dígitos)"
        if not _texto(fila, 'nombres'):
            return f"Fila {numero}: Nombres es requerido"
        if not _texto(fila, 'correo'):
            return f"Fila {numero}: Correo es requerido"
        if not is_valid_email(_texto(fila, 'correo')):
            return f"Fila {numero}: Correo inválido"
        if not _texto(fila, 'rol'):
            return f"Fila {numero}: Rol es requerido"

        roles = parsear_roles(fila.get('rol'))
        if not roles:
            return f"Fila {numero}: Rol inválido (debe ser: {', '.join(ROLES)})"
        if carrera_forzada is not None:
            if roles != ['estudiante']:
                return f"Fila {numero}: Solo se pueden cargar estudiantes"
            carrera = _texto(fila, 'carrera')
            if carrera and carrera.lower() != carrera_forzada.strip().lower():
                return f"Fila {numero}: La carrera debe ser {carrera_forzada}"

        estado = _texto(fila, 'estado').lower()
        if estado and estado not in ('activo', 'inactivo'):
            return f"Fila {numero}: Estado inválido (debe ser activo o inactivo)"
        return None

    def importar_usuarios(self, filas, carrera_forzada=None):
        """La contraseña inicial es la cédula y se exige cambiarla en el primer ingreso.

        Con `carrera_forzada` (carga del coordinador) solo se aceptan
        estudiantes y todos quedan en esa carrera.
        """
        resultados = []
        # La fila 1 de la hoja son los encabezados
        for numero, fila in enumerate(filas, start=2):
            cedula = _texto(fila, 'cedula')
            nombre = _texto(fila, 'nombres')

            error = self._validar_usuario(fila, numero, carrera_forzada)
            if error:
                resultados.append(ResultadoFila(numero, False, cedula or 'N/A', nombre or 'N/A', error))
                continue
            if self.usuarios.get_user_by_cedula(cedula):
                resultados.append(ResultadoFila(numero, False, cedula, nombre, 'Cédula ya registrada'))
                continue
            if self.usuarios.get_user_by_email(_texto(fila, 'correo')):
                resultados.append(ResultadoFila(numero, False, cedula, nombre, 'Correo ya registrado'))
                continue

            nombres, apellidos = separar_nombre(nombre)
            creado = self.usuarios.create_user({
                'cedula': cedula,
                'nombres': nombres,
                'apellidos': apellidos,
                'email': _texto(fila, 'correo'),
                'password': cedula,
                'rol': parsear_roles(fila.get('rol')),
                'carrera': carrera_forzada if carrera_forzada is not None else _texto(fila, 'carrera'),
                'semestre': _texto(fila, 'nivel'),
                'estado': _texto(fila, 'estado').lower() or 'activo',
                'forzar_cambio_password': True,
            })
            if creado is None:
                resultados.append(ResultadoFila(numero, False, cedula, nombre, 'Error al crear usuario'))
            else:
                resultados.append(ResultadoFila(numero, True, cedula, nombre))

        creados = sum(1 for r in resultados if r.exito)
        logger.info(f"Carga de usuarios: {creados} creados, {len(resultados) - creados} errores")
        if creados:
            if carrera_forzada is not None:
                self.notificaciones.create_notification_by_carrera(
                    carrera_forzada,
                    f"Se cargaron {creados} nuevos estudiantes en {carrera_forzada}",
                    'usuarios',
                )
            else:
                self.notificaciones.create_notification_by_role(
                    'admin', f"Se cargaron {creados} usuarios desde Excel", 'usuarios'
                )
        return resultados

    # ==================== MALLA CURRICULAR ====================

    def _buscar_carrera(self, texto):
        return self.academico.get_carrera_by_nombre(texto) or self.academico.get_carrera_by_codigo(texto)

    def _validar_materia(self, fila, numero):
        if not _texto(fila, 'carrera'):
            return f"Fila {numero}: Carrera es requerida"
        if not _texto(fila, 'codigo_asignatura'):
            return f"Fila {numero}: Código Asignatura es requerido"
        if not _texto(fila, 'nombre_asignatura'):
            return f"Fila {numero}: Nombre Asignatura es requerido"
        if not _texto(fila, 'semestre'):
            return f"Fila {numero}: Semestre es requerido"
        unidad = _texto(fila, 'unidad')
        if unidad and unidad not in UNIDADES_ACADEMICAS:
            return f"Fila {numero}: Unidad inválida (debe ser: {', '.join(UNIDADES_ACADEMICAS)})"
        if not self._buscar_carrera(_texto(fila, 'carrera')):
            return f'Fila {numero}: Carrera "{_texto(fila, "carrera")}" no existe en el sistema'
        for campo in ('creditos', 'horas'):
            valor = _texto(fila, campo)
            if not valor:
                continue
            try:
                if float(valor) < 0:
                    raise ValueError(valor)
            except ValueError:
                return f"Fila {numero}: {campo.capitalize()} debe ser un número positivo"
        return None

    def importar_malla(self, filas):
        """Crea las materias aprobadas y los semestres que falten"""
        resultados = []
        for numero, fila in enumerate(filas, start=2):
            codigo = _texto(fila, 'codigo_asignatura').upper()
            nombre = _texto(fila, 'nombre_asignatura')

            error = self._validar_materia(fila, numero)
            if error:
                resultados.append(ResultadoFila(numero, False, codigo or 'N/A', nombre or 'N/A', error))
                continue
            if self.academico.get_materia_by_codigo(codigo):
                resultados.append(ResultadoFila(numero, False, codigo, nombre,
                                                'Ya existe una materia con este código'))
                continue

            carrera = self._buscar_carrera(_texto(fila, 'carrera'))
            try:
                semestre = self.academico.get_or_create_semestre(normalizar_semestre(fila.get('semestre')))
            except ValueError as e:
                resultados.append(ResultadoFila(numero, False, codigo, nombre, f"Fila {numero}: {e}"))
                continue

            creada = self.academico.create_materia({
                'codigo': codigo,
                'nombre': nombre,
                'carrera_id': carrera['id'],
                'semestre_id': semestre['id'],
                'unidad': _texto(fila, 'unidad') or None,
                'creditos': _texto(fila, 'creditos') or None,
                'horas': _texto(fila, 'horas') or None,
                'prerequisitos': parsear_prerequisitos(fila.get('prerequisitos')),
                'estado': 'aprobada',
            })
            if creada is None:
                resultados.append(ResultadoFila(numero, False, codigo, nombre, 'Error al crear materia'))
            else:
                resultados.append(ResultadoFila(numero, True, codigo, nombre))

        creadas = sum(1 for r in resultados if r.exito)
        logger.info(f"Carga de malla: {creadas} materias creadas, {len(resultados) - creadas} errores")
        return resultados
