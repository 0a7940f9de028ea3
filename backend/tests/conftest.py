"""
Configuración y fixtures de las pruebas
"""
from datetime import date, timedelta
import pytest
from config import TestingConfig
from tutorias import create_app
from tutorias.extensions import db
from tutorias.services import get_plataforma


PASSWORD = 'clave-segura-123'


def fecha_futura(dias=7):
    return (date.today() + timedelta(days=dias)).isoformat()


@pytest.fixture
def config_pruebas(tmp_path):
    class ConfigPruebas(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')
    return ConfigPruebas


@pytest.fixture
def app(config_pruebas):
    app = create_app(config_pruebas)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def plataforma(app):
    """Servicios con un contexto de aplicación activo.

    Las pruebas de la API no lo usan: dentro de un contexto ya abierto el
    cliente de pruebas reutiliza `g` entre peticiones.
    """
    with app.app_context():
        yield get_plataforma(app)


@pytest.fixture
def peticion(app, plataforma):
    """Contexto de petición: la sesión vive en la cookie de Flask y en Flask-Login"""
    with app.test_request_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def crear_usuario(plataforma):
    contador = {'n': 0}

    def _crear(rol='estudiante', **datos):
        contador['n'] += 1
        n = contador['n']
        borrador = {
            'cedula': f'{1000000000 + n}',
            'nombres': f'Nombre{n}',
            'apellidos': f'Apellido{n}',
            'email': f'usuario{n}@uni.edu.ec',
            'password': PASSWORD,
            'rol': rol,
            'carrera': 'Ingeniería de Software',
        }
        borrador.update(datos)
        return plataforma.usuarios.create_user(borrador)
    return _crear


@pytest.fixture
def malla(plataforma):
    """Carrera, semestre y materia aprobada listos para usar"""
    academico = plataforma.academico
    carrera = academico.create_carrera({'nombre': 'Ingeniería de Software', 'codigo': 'SE'})
    semestre = academico.create_semestre({'nombre': '1er Semestre'})
    materia = academico.create_materia({
        'nombre': 'Programación I',
        'codigo': 'SE01',
        'carrera_id': carrera['id'],
        'semestre_id': semestre['id'],
    })
    return {'carrera': carrera, 'semestre': semestre, 'materia': materia}

