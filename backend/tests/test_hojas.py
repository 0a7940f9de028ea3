from io import BytesIO
import pandas as pd
import pytest
from werkzeug.datastructures import FileStorage
from tutorias.services.carga_masiva import COLUMNAS_USUARIOS, COLUMNAS_MALLA
from tutorias.utils.exportar import exportar_tabla
from tutorias.utils.hojas import (
    HojaInvalida, ENCABEZADOS_USUARIOS, ENCABEZADOS_MALLA, EJEMPLO_MALLA,
    leer_hoja, generar_plantilla, ejemplo_usuarios,
)


def _archivo(contenido, nombre):
    if isinstance(contenido, bytes):
        contenido = BytesIO(contenido)
    return FileStorage(stream=contenido, filename=nombre)


class TestLecturaDeHojas:
    def test_plantilla_de_usuarios(self):
        plantilla = generar_plantilla(ENCABEZADOS_USUARIOS, ejemplo_usuarios(), 'usuarios')
        filas = leer_hoja(_archivo(plantilla, 'usuarios.xlsx'), COLUMNAS_USUARIOS, 'usuarios')

        assert len(filas) == 4
        assert filas[0]['cedula'] == '1234567890'
        assert filas[0]['correo'] == 'juan.perez@institucion.edu'
        assert filas[3]['rol'] == 'coordinador,docente'

    def test_plantilla_del_coordinador(self):
        filas = ejemplo_usuarios('Medicina')
        assert {f[3] for f in filas} == {'estudiante'}
        assert {f[4] for f in filas} == {'Medicina'}

    def test_plantilla_de_malla(self):
        plantilla = generar_plantilla(ENCABEZADOS_MALLA, EJEMPLO_MALLA, 'Malla')
        filas = leer_hoja(_archivo(plantilla, 'malla.xlsx'), COLUMNAS_MALLA, 'Malla')
        assert [f['codigo_asignatura'] for f in filas] == ['SDS01', 'SDS02', 'SDS10', 'SDS99']
        assert filas[0]['prerequisitos'] is None

    def test_csv_con_punto_y_coma(self):
        contenido = (
            'cedula;nombres;correo;rol;carrera;nivel;estado\n'
            '0102030405;Ana Pérez;ana@uni.edu.ec;estudiante;;;\n'
            ';;;;;;\n'
        ).encode('utf-8')
        filas = leer_hoja(_archivo(contenido, 'usuarios.csv'), COLUMNAS_USUARIOS)
        assert filas == [{
            'cedula': '0102030405', 'nombres': 'Ana Pérez', 'correo': 'ana@uni.edu.ec',
            'rol': 'estudiante', 'carrera': None, 'nivel': None, 'estado': None,
        }]

    def test_columnas_faltantes(self):
        contenido = b'cedula,nombres\n0102030405,Ana\n'
        filas = leer_hoja(_archivo(contenido, 'usuarios.csv'), COLUMNAS_USUARIOS)
        assert filas[0]['nombres'] == 'Ana'
        assert filas[0]['estado'] is None

    def test_formato_no_soportado(self):
        with pytest.raises(HojaInvalida):
            leer_hoja(_archivo(b'hola', 'usuarios.txt'), COLUMNAS_USUARIOS)

    def test_archivo_danado(self):
        with pytest.raises(HojaInvalida):
            leer_hoja(_archivo(b'no es un xlsx', 'usuarios.xlsx'), COLUMNAS_USUARIOS)


class TestExportacion:
    filas = [
        {'Docente': 'Eva Ríos', 'Promedio': 4.5},
        {'Docente': 'Luis & Mora', 'Promedio': 3.0},
    ]

    def test_excel(self):
        output, mimetype, extension = exportar_tabla(self.filas, 'Desempeño docente', 'excel')
        assert extension == 'xlsx'
        assert 'spreadsheetml' in mimetype
        df = pd.read_excel(output, engine='openpyxl')
        assert list(df.columns) == ['Docente', 'Promedio']
        assert df['Docente'].tolist() == ['Eva Ríos', 'Luis & Mora']

    def test_csv(self):
        output, mimetype, extension = exportar_tabla(self.filas, 'Desempeño docente', 'csv')
        assert (mimetype, extension) == ('text/csv', 'csv')
        lineas = output.getvalue().decode('utf-8').splitlines()
        assert lineas[0] == 'Docente;Promedio'
        assert lineas[1] == 'Eva Ríos;4.5'

    def test_pdf(self):
        output, mimetype, extension = exportar_tabla(self.filas, 'Desempeño docente', 'pdf')
        assert extension == 'pdf'
        assert output.getvalue().startswith(b'%PDF')

    def test_formato_desconocido(self):
        with pytest.raises(ValueError):
            exportar_tabla(self.filas, 'x', 'docx')
