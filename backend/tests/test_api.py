"""
Pruebas de la API HTTP.

Los datos se siembran en contextos de aplicación cortos: el cliente de
pruebas abre su propio contexto en cada petición.
"""
from io import BytesIO
from itertools import count
import pytest
from conftest import PASSWORD, fecha_futura
from tutorias.services import get_plataforma
from tutorias.utils.hojas import ENCABEZADOS_USUARIOS, MIMETYPE_EXCEL, generar_plantilla


_secuencia = count(1)


def sembrar_usuario(app, rol='estudiante', **datos):
    n = next(_secuencia)
    borrador = {
        'cedula': f'{2000000000 + n}',
        'nombres': f'Nombre{n}',
        'apellidos': f'Apellido{n}',
        'email': f'api{n}@uni.edu.ec',
        'password': PASSWORD,
        'rol': rol,
        'carrera': 'Ingeniería de Software',
    }
    borrador.update(datos)
    with app.app_context():
        return get_plataforma(app).usuarios.create_user(borrador)


def sembrar_malla(app):
    with app.app_context():
        academico = get_plataforma(app).academico
        carrera = academico.create_carrera({'nombre': 'Ingeniería de Software', 'codigo': 'SE'})
        semestre = academico.create_semestre({'nombre': '1er Semestre'})
        materia = academico.create_materia({
            'nombre': 'Programación I', 'codigo': 'SE01',
            'carrera_id': carrera['id'], 'semestre_id': semestre['id'],
        })
    return {'carrera': carrera, 'semestre': semestre, 'materia': materia}


def asignar(app, docente, malla, carrera=None):
    with app.app_context():
        return get_plataforma(app).academico.create_docente_materia_semestre({
            'docente_id': docente['id'],
            'materia_id': malla['materia']['id'],
            'semestre_id': malla['semestre']['id'],
            'carrera_id': (carrera or malla['carrera'])['id'],
        })


def iniciar_sesion(client, user, password=PASSWORD):
    return client.post('/api/auth/login', json={'email': user['email'], 'password': password})


def cerrar_sesion(client):
    client.post('/api/auth/logout')


class TestAutenticacion:
    def test_rutas_protegidas_sin_sesion(self, client):
        for ruta in ('/api/tutorias', '/api/notificaciones', '/api/auth/session', '/api/usuarios'):
            respuesta = client.get(ruta)
            assert respuesta.status_code == 401, ruta
            assert 'error' in respuesta.get_json()

    def test_login_con_un_rol(self, app, client):
        user = sembrar_usuario(app, 'estudiante')
        respuesta = iniciar_sesion(client, user)

        assert respuesta.status_code == 200
        datos = respuesta.get_json()
        assert datos['rol_activo'] == 'estudiante'
        assert datos['requiere_seleccion_rol'] is False
        assert 'password' not in datos['user']

        sesion = client.get('/api/auth/session').get_json()
        assert sesion['user']['id'] == user['id']

    def test_login_fallido(self, app, client):
        user = sembrar_usuario(app)
        respuesta = iniciar_sesion(client, user, 'otra-clave-123')
        assert respuesta.status_code == 401
        assert respuesta.get_json()['tipo'] == 'credenciales_invalidas'

        respuesta = client.post('/api/auth/login', json={'email': 'nadie@uni.edu.ec', 'password': 'x'})
        assert respuesta.get_json()['tipo'] == 'usuario_no_encontrado'

    def test_datos_de_login_invalidos(self, client):
        respuesta = client.post('/api/auth/login', json={'email': 'no-es-correo'})
        assert respuesta.status_code == 400
        assert set(respuesta.get_json()['campos']) == {'email', 'password'}

    def test_usuario_inactivo(self, app, client):
        user = sembrar_usuario(app, estado='inactivo')
        respuesta = iniciar_sesion(client, user)
        assert respuesta.status_code == 401
        assert respuesta.get_json()['tipo'] == 'usuario_inactivo'

    def test_coordinador_entra_directo(self, app, client):
        user = sembrar_usuario(app, 'coordinador')
        datos = iniciar_sesion(client, user).get_json()
        assert datos['rol_activo'] == 'coordinador'
        assert datos['roles'] == ['coordinador', 'docente']

    def test_seleccion_de_rol(self, app, client):
        user = sembrar_usuario(app, ['admin', 'docente'])
        datos = iniciar_sesion(client, user).get_json()
        assert datos['requiere_seleccion_rol'] is True

        respuesta = client.get('/api/tutorias')
        assert respuesta.status_code == 403
        assert respuesta.get_json()['error'] == 'Debes seleccionar un rol para continuar.'

        assert client.post('/api/auth/select-role', json={'rol': 'estudiante'}).status_code == 403
        respuesta = client.post('/api/auth/select-role', json={'rol': 'docente'})
        assert respuesta.get_json()['rol_activo'] == 'docente'

        assert client.get('/api/tutorias').status_code == 200
        assert client.get('/api/usuarios').status_code == 403

        client.post('/api/auth/select-role', json={'rol': 'admin'})
        assert client.get('/api/usuarios').status_code == 200

    def test_logout(self, app, client):
        iniciar_sesion(client, sembrar_usuario(app))
        assert client.post('/api/auth/logout').get_json() == {'success': True}
        assert client.get('/api/tutorias').status_code == 401

    def test_cada_cliente_tiene_su_sesion(self, app):
        varios = sembrar_usuario(app, ['admin', 'docente'])
        estudiante = sembrar_usuario(app, 'estudiante')
        cliente_a = app.test_client()
        cliente_b = app.test_client()

        assert iniciar_sesion(cliente_a, varios).get_json()['requiere_seleccion_rol'] is True

        # b no puede tomar el rol pendiente de a
        assert cliente_b.post('/api/auth/select-role', json={'rol': 'admin'}).status_code == 401
        iniciar_sesion(cliente_b, estudiante)
        assert cliente_b.post('/api/auth/select-role', json={'rol': 'admin'}).status_code == 403

        assert cliente_a.post('/api/auth/select-role', json={'rol': 'admin'}).get_json()['rol_activo'] == 'admin'
        assert cliente_a.get('/api/auth/session').get_json()['user']['id'] == varios['id']
        sesion_b = cliente_b.get('/api/auth/session').get_json()
        assert sesion_b['user']['id'] == estudiante['id']
        assert sesion_b['rol_activo'] == 'estudiante'

    def test_sesion_de_usuario_desactivado(self, app, client):
        user = sembrar_usuario(app)
        iniciar_sesion(client, user)
        with app.app_context():
            get_plataforma(app).usuarios.toggle_user_status(user['id'])

        assert client.get('/api/auth/session').status_code == 401
        assert client.get('/api/tutorias').status_code == 401

    def test_registro(self, client):
        datos = {
            'cedula': '0102030405',
            'nombres': 'Ana',
            'apellidos': 'Pérez',
            'email': 'ana@uni.edu.ec',
            'password': PASSWORD,
            'confirm_password': PASSWORD,
            'rol': 'estudiante',
            'carrera': 'Medicina',
        }
        respuesta = client.post('/api/auth/register', json=datos)
        assert respuesta.status_code == 201
        assert 'password' not in respuesta.get_json()['user']

        assert client.post('/api/auth/register', json=datos).status_code == 409

        invalido = client.post('/api/auth/register', json={**datos, 'rol': 'admin', 'confirm_password': 'x'})
        assert invalido.status_code == 400
        assert {'rol', 'confirm_password'} <= set(invalido.get_json()['campos'])

    def test_cambio_obligatorio_de_password(self, app, client):
        user = sembrar_usuario(app, forzar_cambio_password=True)
        assert iniciar_sesion(client, user).get_json()['forzar_cambio_password'] is True

        respuesta = client.post('/api/auth/cambiar-password', json={
            'password_nueva': 'nueva-clave-99', 'confirm_password': 'nueva-clave-99',
        })
        assert respuesta.status_code == 200
        cerrar_sesion(client)

        assert iniciar_sesion(client, user, 'nueva-clave-99').get_json()['forzar_cambio_password'] is False


class TestTutorias:
    @pytest.fixture
    def escenario(self, app):
        malla = sembrar_malla(app)
        docente = sembrar_usuario(app, 'docente', nombres='Luis', apellidos='Mora')
        asignar(app, docente, malla)
        return {
            **malla,
            'estudiante': sembrar_usuario(app, 'estudiante', nombres='Ana', apellidos='Pérez'),
            'docente': docente,
        }

    def _solicitar(self, client, escenario, **extra):
        datos = {
            'docente_id': escenario['docente']['id'],
            'materia_id': escenario['materia']['id'],
            'semestre_id': escenario['semestre']['id'],
            'tema': 'Recursividad',
            'descripcion': 'Dudas con la torre de Hanoi',
            'fecha': fecha_futura(),
            'hora': '10:00',
        }
        datos.update(extra)
        return client.post('/api/tutorias', json=datos)

    def test_ciclo_completo(self, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        respuesta = self._solicitar(client, escenario)
        assert respuesta.status_code == 201
        tutoria = respuesta.get_json()
        assert tutoria['docente_nombre'] == 'Luis Mora'
        assert tutoria['estado'] == 'pendiente'

        # Aún no se puede calificar
        assert client.post(f"/api/tutorias/{tutoria['id']}/calificar", json={'calificacion': 5}).status_code == 409
        cerrar_sesion(client)

        iniciar_sesion(client, escenario['docente'])
        assert client.get('/api/notificaciones/resumen').get_json()['no_leidas'] == 1
        respuesta = client.post(f"/api/tutorias/{tutoria['id']}/estado", json={'estado': 'aceptada'})
        assert respuesta.get_json()['estado'] == 'aceptada'
        assert client.post(f"/api/tutorias/{tutoria['id']}/estado", json={'estado': 'rechazada'}).status_code == 409
        cerrar_sesion(client)

        iniciar_sesion(client, escenario['estudiante'])
        resumen = client.get('/api/notificaciones/resumen').get_json()
        assert resumen == {'no_leidas': 1, 'intervalo': 5}

        respuesta = client.post(f"/api/tutorias/{tutoria['id']}/calificar",
                                json={'calificacion': 5, 'comentario': 'Muy clara'})
        assert respuesta.status_code == 200
        assert respuesta.get_json()['estado'] == 'finalizada'
        assert respuesta.get_json()['calificacion'] == 5

        assert client.post('/api/notificaciones/leidas').get_json() == {'marcadas': 1}
        assert client.get('/api/notificaciones/resumen').get_json()['no_leidas'] == 0

    def test_fecha_pasada(self, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        respuesta = self._solicitar(client, escenario, fecha='2020-01-01')
        assert respuesta.status_code == 400
        assert 'hora' in respuesta.get_json()['campos']

    def test_docente_invalido(self, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        respuesta = self._solicitar(client, escenario, docente_id=escenario['estudiante']['id'])
        assert respuesta.status_code == 400

    def test_docente_sin_asignacion(self, app, client, escenario):
        otro = sembrar_usuario(app, 'docente')
        iniciar_sesion(client, escenario['estudiante'])
        respuesta = self._solicitar(client, escenario, docente_id=otro['id'])
        assert respuesta.status_code == 400
        assert 'asignado' in respuesta.get_json()['error']

    def test_solo_estudiantes_solicitan(self, client, escenario):
        iniciar_sesion(client, escenario['docente'])
        assert self._solicitar(client, escenario).status_code == 403

    def test_visibilidad_por_rol(self, app, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        tutoria = self._solicitar(client, escenario).get_json()
        cerrar_sesion(client)

        otro = sembrar_usuario(app, 'estudiante')
        iniciar_sesion(client, otro)
        assert client.get('/api/tutorias').get_json() == []
        assert client.get(f"/api/tutorias/{tutoria['id']}").status_code == 404
        cerrar_sesion(client)

        iniciar_sesion(client, sembrar_usuario(app, 'coordinador'))
        assert [t['id'] for t in client.get('/api/tutorias').get_json()] == [tutoria['id']]

    def test_chat(self, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        tutoria = self._solicitar(client, escenario).get_json()
        ruta = f"/api/tutorias/{tutoria['id']}/mensajes"
        assert client.post(ruta, json={'contenido': 'Hola profe'}).status_code == 201
        cerrar_sesion(client)

        iniciar_sesion(client, escenario['docente'])
        mensajes = client.get(ruta).get_json()
        assert [m['remitente_nombre'] for m in mensajes] == ['Ana Pérez']
        assert client.post(f'{ruta}/leidos').get_json() == {'marcados': 1}

    def test_estudiante_elimina_su_solicitud_pendiente(self, client, escenario):
        iniciar_sesion(client, escenario['estudiante'])
        tutoria = self._solicitar(client, escenario).get_json()
        assert client.delete(f"/api/tutorias/{tutoria['id']}").status_code == 200
        assert client.get('/api/tutorias').get_json() == []


class TestAsignaciones:
    @pytest.fixture
    def escenario(self, app):
        malla = sembrar_malla(app)
        with app.app_context():
            medicina = get_plataforma(app).academico.create_carrera({'nombre': 'Medicina', 'codigo': 'MED'})
        docente = sembrar_usuario(app, 'docente')
        return {
            **malla,
            'medicina': medicina,
            'docente': docente,
            'ajena': asignar(app, docente, malla, carrera=medicina),
            'coordinador': sembrar_usuario(app, 'coordinador'),
        }

    def test_coordinador_no_toca_otra_carrera(self, client, escenario):
        iniciar_sesion(client, escenario['coordinador'])
        ruta = f"/api/academico/asignaciones/{escenario['ajena']['id']}"
        assert client.put(ruta, json={'activo': False}).status_code == 404
        assert client.delete(ruta).status_code == 404
        assert client.get('/api/academico/asignaciones').get_json() == []

    def test_coordinador_crea_en_su_carrera(self, app, client, escenario):
        docente = sembrar_usuario(app, 'docente')
        iniciar_sesion(client, escenario['coordinador'])
        respuesta = client.post('/api/academico/asignaciones', json={
            'docente_id': docente['id'],
            'materia_id': escenario['materia']['id'],
            'semestre_id': escenario['semestre']['id'],
            'carrera_id': escenario['medicina']['id'],
        })
        assert respuesta.status_code == 201
        asignacion = respuesta.get_json()
        assert asignacion['carrera_id'] == escenario['carrera']['id']

        # Tampoco puede moverla a otra carrera
        respuesta = client.put(f"/api/academico/asignaciones/{asignacion['id']}",
                               json={'carrera_id': escenario['medicina']['id'], 'activo': False})
        assert respuesta.status_code == 200
        assert respuesta.get_json()['carrera_id'] == escenario['carrera']['id']
        assert respuesta.get_json()['activo'] is False

    def test_materia_del_coordinador_va_a_su_carrera(self, client, escenario):
        iniciar_sesion(client, escenario['coordinador'])
        respuesta = client.post('/api/academico/materias', json={
            'nombre': 'Anatomía', 'codigo': 'MED01',
            'carrera_id': escenario['medicina']['id'],
            'semestre_id': escenario['semestre']['id'],
        })
        assert respuesta.status_code == 201
        assert respuesta.get_json()['carrera_id'] == escenario['carrera']['id']

    def test_coordinador_sin_carrera(self, app, client, escenario):
        iniciar_sesion(client, sembrar_usuario(app, 'coordinador', carrera=''))
        respuesta = client.post('/api/academico/asignaciones', json={
            'docente_id': escenario['docente']['id'],
            'materia_id': escenario['materia']['id'],
            'semestre_id': escenario['semestre']['id'],
            'carrera_id': escenario['carrera']['id'],
        })
        assert respuesta.status_code == 400

    def test_admin_gestiona_cualquier_carrera(self, app, client, escenario):
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))
        ruta = f"/api/academico/asignaciones/{escenario['ajena']['id']}"
        assert client.put(ruta, json={'activo': False}).get_json()['activo'] is False
        assert client.delete(ruta).status_code == 200

    def test_asignacion_inexistente(self, app, client, escenario):
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))
        assert client.put('/api/academico/asignaciones/no-existe', json={'activo': False}).status_code == 404
        assert client.delete('/api/academico/asignaciones/no-existe').status_code == 404

    def test_asignacion_duplicada_al_editar(self, app, client, escenario):
        otro = sembrar_usuario(app, 'docente')
        propia = asignar(app, otro, escenario, carrera=escenario['medicina'])
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))
        respuesta = client.put(f"/api/academico/asignaciones/{propia['id']}",
                               json={'docente_id': escenario['docente']['id']})
        assert respuesta.status_code == 409


class TestDocumentos:
    def test_subida_y_descarga(self, app, client):
        malla = sembrar_malla(app)
        coordinador = sembrar_usuario(app, 'coordinador')
        estudiante = sembrar_usuario(app, 'estudiante')
        contenido = b'%PDF-1.4 guia de estudio'

        iniciar_sesion(client, coordinador)
        respuesta = client.post('/api/documentos', data={
            'archivo': (BytesIO(contenido), 'guia.pdf'),
            'nombre': 'Guía de estudio',
        }, content_type='multipart/form-data')
        assert respuesta.status_code == 201
        pdf = respuesta.get_json()
        assert pdf['carrera'] == malla['carrera']['id']
        assert pdf['tamano'] == len(contenido)
        assert pdf['rol_subida'] == 'coordinador'

        rechazado = client.post('/api/documentos', data={
            'archivo': (BytesIO(b'MZ'), 'programa.exe'),
        }, content_type='multipart/form-data')
        assert rechazado.status_code == 400
        cerrar_sesion(client)

        iniciar_sesion(client, estudiante)
        assert [p['id'] for p in client.get('/api/documentos').get_json()] == [pdf['id']]
        tipos = [n['tipo'] for n in client.get('/api/notificaciones').get_json()]
        assert tipos == ['pdf']

        descarga = client.get(f"/api/documentos/{pdf['id']}/descargar")
        assert descarga.status_code == 200
        assert descarga.data == contenido

        # Solo el personal sube documentos
        assert client.post('/api/documentos', data={
            'archivo': (BytesIO(contenido), 'otra.pdf'),
        }, content_type='multipart/form-data').status_code == 403

    def test_eliminar_borra_el_archivo(self, app, client):
        sembrar_malla(app)
        coordinador = sembrar_usuario(app, 'coordinador')
        iniciar_sesion(client, coordinador)
        pdf = client.post('/api/documentos', data={
            'archivo': (BytesIO(b'%PDF-1.4'), 'horario.pdf'),
        }, content_type='multipart/form-data').get_json()

        assert client.delete(f"/api/documentos/{pdf['id']}").status_code == 200
        assert client.get(f"/api/documentos/{pdf['id']}/descargar").status_code == 404


class TestAdministracion:
    def test_crud_de_usuarios(self, app, client):
        admin = sembrar_usuario(app, 'admin')
        iniciar_sesion(client, admin)

        respuesta = client.post('/api/usuarios', json={
            'cedula': '0911111111',
            'nombres': 'Eva',
            'apellidos': 'Ríos',
            'email': 'eva@uni.edu.ec',
            'password': PASSWORD,
            'rol': ['docente'],
        })
        assert respuesta.status_code == 201
        creado = respuesta.get_json()

        estado = client.post(f"/api/usuarios/{creado['id']}/estado").get_json()
        assert estado['estado'] == 'inactivo'
        assert client.delete(f"/api/usuarios/{admin['id']}").status_code == 400
        assert client.delete(f"/api/usuarios/{creado['id']}").status_code == 200

    def test_reportes(self, app, client):
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))
        metricas = client.get('/api/reportes/usuarios').get_json()
        assert metricas['total'] == 1
        assert client.get('/api/reportes/tutorias').get_json()['total'] == 0
        cerrar_sesion(client)

        iniciar_sesion(client, sembrar_usuario(app, 'estudiante'))
        assert client.get('/api/reportes/usuarios').status_code == 403


class TestCargaMasiva:
    def test_hoja_de_usuarios_del_coordinador(self, app, client):
        sembrar_malla(app)
        coordinador = sembrar_usuario(app, 'coordinador')
        iniciar_sesion(client, coordinador)

        plantilla = client.get('/api/usuarios/plantilla')
        assert plantilla.status_code == 200
        assert plantilla.mimetype == MIMETYPE_EXCEL

        hoja = generar_plantilla(ENCABEZADOS_USUARIOS, [
            ['0922222222', 'Rosa Vera', 'rosa@uni.edu.ec', 'estudiante', '', '1er Semestre', 'activo'],
            ['0933333333', 'Pedro Gil', 'pedro@uni.edu.ec', 'docente', '', '', 'activo'],
        ], 'usuarios')
        respuesta = client.post('/api/usuarios/carga-masiva', data={
            'archivo': (hoja, 'estudiantes.xlsx'),
        }, content_type='multipart/form-data')

        datos = respuesta.get_json()
        assert respuesta.status_code == 200
        assert (datos['creados'], datos['errores']) == (1, 1)
        assert datos['resultados'][1]['error'] == 'Fila 3: Solo se pueden cargar estudiantes'

        with app.app_context():
            creada = get_plataforma(app).usuarios.get_user_by_cedula('0922222222')
        assert creada['carrera'] == 'Ingeniería de Software'
        assert creada['forzar_cambio_password'] is True

    def test_filas_en_json(self, app, client):
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))
        respuesta = client.post('/api/usuarios/carga-masiva', json={'filas': [{
            'cedula': '0944444444', 'nombres': 'Eva Ríos', 'correo': 'eva@uni.edu.ec', 'rol': 'docente',
        }]})
        assert respuesta.get_json()['creados'] == 1

        assert client.post('/api/usuarios/carga-masiva', json={'filas': []}).status_code == 400
        danado = client.post('/api/usuarios/carga-masiva', data={
            'archivo': (BytesIO(b'no es excel'), 'usuarios.xlsx'),
        }, content_type='multipart/form-data')
        assert danado.status_code == 400

    def test_malla_desde_plantilla(self, app, client):
        with app.app_context():
            get_plataforma(app).academico.create_carrera({'nombre': 'Ingeniería de Software', 'codigo': 'SDS'})
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))

        plantilla = client.get('/api/academico/malla/plantilla')
        respuesta = client.post('/api/academico/malla/carga-masiva', data={
            'archivo': (BytesIO(plantilla.data), 'malla.xlsx'),
        }, content_type='multipart/form-data')
        assert respuesta.get_json()['creadas'] == 4

        with app.app_context():
            nombres = [s['nombre'] for s in get_plataforma(app).academico.get_semestres()]
        assert nombres == ['1er Semestre', '2do Semestre', '3er Semestre', 'Final']


class TestExportaciones:
    def test_reporte_de_docentes(self, app, client):
        sembrar_usuario(app, 'docente', nombres='Luis', apellidos='Mora')
        iniciar_sesion(client, sembrar_usuario(app, 'admin'))

        excel = client.get('/api/reportes/docentes/exportar')
        assert excel.status_code == 200
        assert excel.mimetype == MIMETYPE_EXCEL

        csv = client.get('/api/reportes/docentes/exportar?formato=csv')
        assert 'Luis Mora' in csv.data.decode('utf-8')

        pdf = client.get('/api/reportes/docentes/exportar?formato=pdf')
        assert pdf.data.startswith(b'%PDF')

        assert client.get('/api/reportes/docentes/exportar?formato=docx').status_code == 400

    def test_sin_tutorias_no_hay_exportacion(self, app, client):
        iniciar_sesion(client, sembrar_usuario(app, 'estudiante'))
        assert client.get('/api/reportes/tutorias/exportar').status_code == 400
