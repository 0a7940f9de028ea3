import logging
from io import BytesIO
import pandas as pd


logger = logging.getLogger(__name__)

EXTENSIONES_HOJA = {'xlsx', 'csv'}

MIMETYPE_EXCEL = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# Encabezados visibles de las plantillas, en el orden de las columnas
ENCABEZADOS_USUARIOS = ['cedula', 'nombres', 'correo', 'rol', 'carrera', 'nivel', 'estado']
ENCABEZADOS_MALLA = ['Carrera', 'Unidad', 'Semestre', 'Código Asignatura', 'Nombre Asignatura',
                     'Créditos', 'Horas', 'Prerequisitos']

EJEMPLO_MALLA = [
    ['Ingeniería de Software', 'Básica', 'Primer', 'SDS01', 'Programación I', '6', '96', ''],
    ['Ingeniería de Software', 'Básica', 'Segundo', 'SDS02', 'Programación II', '6', '96', 'SDS01'],
    ['Ingeniería de Software', 'Profesional', 'Tercer', 'SDS10', 'Bases de Datos', '4', '64', 'SDS01,SDS02'],
    ['Ingeniería de Software', 'Titulación', 'Final', 'SDS99', 'Proyecto de Titulación', '8', '128', ''],
]


class HojaInvalida(ValueError):
    """El archivo no se pudo leer como hoja de cálculo"""


def es_hoja(filename):
    return '.' in (filename or '') and filename.rsplit('.', 1)[1].lower() in EXTENSIONES_HOJA


def leer_hoja(archivo, columnas, hoja_preferida=None):
    """Lee un .xlsx/.csv subido y devuelve una lista de dicts por fila.

    Las columnas se asignan por posición y la primera fila (encabezados) se
    descarta, igual que en las plantillas. Las filas completamente vacías se
    ignoran y las celdas vacías llegan como None.
    """
    if not es_hoja(archivo.filename):
        raise HojaInvalida('Formato no soportado. Use .xlsx o .csv')

    opciones = {'header': None, 'skiprows': 1, 'dtype': str}
    contenido = archivo.read()
    try:
        if archivo.filename.lower().endswith('.csv'):
            separador = ';' if b';' in contenido.split(b'\n', 1)[0] else ','
            df = pd.read_csv(BytesIO(contenido), sep=separador, **opciones)
        else:
            libro = pd.ExcelFile(BytesIO(contenido), engine='openpyxl')
            hoja = hoja_preferida if hoja_preferida in libro.sheet_names else libro.sheet_names[0]
            df = libro.parse(hoja, **opciones)
    except Exception as e:
        logger.warning(f"No se pudo leer la hoja {archivo.filename}: {e}")
        raise HojaInvalida('El archivo está dañado o no tiene el formato correcto')

    # Columnas faltantes quedan vacías y las sobrantes se descartan
    df = df.reindex(columns=range(len(columnas)))
    df.columns = list(columnas)
    df = df.dropna(how='all')
    return [
        {campo: (None if pd.isna(valor) else valor) for campo, valor in fila.items()}
        for fila in df.to_dict(orient='records')
    ]


def generar_plantilla(encabezados, filas, hoja):
    """Plantilla .xlsx con encabezados y filas de ejemplo"""
    df = pd.DataFrame(filas, columns=encabezados)
    output = BytesIO()
    df.to_excel(output, index=False, sheet_name=hoja, engine='openpyxl')
    output.seek(0)
    return output


def ejemplo_usuarios(carrera=None):
    """Filas de ejemplo. Con carrera (coordinador) solo estudiantes de esa carrera."""
    if carrera:
        return [
            ['1234567890', 'Juan Pérez García', 'juan.perez@institucion.edu', 'estudiante', carrera, '5to Semestre', 'activo'],
            ['0987654321', 'María López Silva', 'maria.lopez@institucion.edu', 'estudiante', carrera, '3er Semestre', 'activo'],
        ]
    return [
        ['1234567890', 'Juan Pérez García', 'juan.perez@institucion.edu', 'estudiante', 'Ingeniería de Software', '5to Semestre', 'activo'],
        ['0987654321', 'María López Silva', 'maria.lopez@institucion.edu', 'docente', 'Ciencias de la Computación', 'N/A', 'activo'],
        ['1122334455', 'Carlos Rodríguez', 'carlos.rodriguez@institucion.edu', 'coordinador', 'Ingeniería de Software', 'N/A', 'activo'],
        ['2233445566', 'Ana Martínez', 'ana.martinez@institucion.edu', 'coordinador,docente', 'Ingeniería de Software', 'N/A', 'activo'],
    ]
