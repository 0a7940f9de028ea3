import pytest


@pytest.fixture
def academico(plataforma):
    return plataforma.academico


class TestCarreras:
    def test_crear_y_buscar(self, academico):
        carrera = academico.create_carrera({'nombre': 'Medicina', 'codigo': 'MED'})
        assert carrera['activa'] is True
        assert academico.get_carrera_by_id(carrera['id'])['nombre'] == 'Medicina'
        assert academico.get_carrera_by_codigo('med')['id'] == carrera['id']
        assert academico.get_carrera_by_nombre('  medicina ')['id'] == carrera['id']

    def test_codigo_duplicado(self, academico):
        academico.create_carrera({'nombre': 'Medicina', 'codigo': 'MED'})
        assert academico.create_carrera({'nombre': 'Otra', 'codigo': 'med'}) is None
        assert len(academico.get_carreras()) == 1

    def test_requiere_nombre_y_codigo(self, academico):
        with pytest.raises(ValueError):
            academico.create_carrera({'nombre': 'Sin código'})

    def test_actualizar_y_eliminar(self, academico):
        uno = academico.create_carrera({'nombre': 'Medicina', 'codigo': 'MED'})
        dos = academico.create_carrera({'nombre': 'Derecho', 'codigo': 'DER'})
        assert academico.update_carrera(dos['id'], {'codigo': 'MED'}) is None
        assert academico.update_carrera(dos['id'], {'descripcion': 'Leyes'})['descripcion'] == 'Leyes'
        assert academico.delete_carrera(uno['id'])
        assert not academico.delete_carrera(uno['id'])
        assert [c['codigo'] for c in academico.get_carreras()] == ['DER']


class TestSemestres:
    def test_numero_desde_el_nombre(self, academico):
        assert academico.numero_semestre('3er Semestre') == 3
        assert academico.numero_semestre('10mo Semestre') == 10
        assert academico.numero_semestre('Final') == 99
        assert academico.numero_semestre('Verano') == 0

    def test_creacion_idempotente(self, academico):
        assert academico.create_semestre({'nombre': '1er Semestre'}) is not None
        assert academico.create_semestre({'nombre': '1er  semestre'}) is None
        assert len([s for s in academico.get_semestres() if s['nombre'] == '1er Semestre']) == 1
        assert academico.get_semestre_by_nombre('1er Semestre')['numero'] == 1

    def test_get_or_create(self, academico):
        creado = academico.get_or_create_semestre('2do Semestre')
        assert academico.get_or_create_semestre('2do Semestre')['id'] == creado['id']

    def test_ordenados_por_numero(self, academico):
        for nombre in ('Final', '3er Semestre', '1er Semestre'):
            academico.create_semestre({'nombre': nombre})
        assert [s['numero'] for s in academico.get_semestres()] == [1, 3, 99]

    def test_numero_fuera_de_rango(self, academico):
        with pytest.raises(ValueError):
            academico.create_semestre({'nombre': 'Verano'})
        with pytest.raises(ValueError):
            academico.create_semestre({'nombre': '11vo Semestre'})


class TestMaterias:
    def test_materia_del_coordinador_queda_pendiente(self, academico, malla):
        materia = academico.create_materia({
            'nombre': 'Cálculo', 'codigo': 'SE02',
            'carrera_id': malla['carrera']['id'], 'semestre_id': malla['semestre']['id'],
            'coordinador_id': 'coord-1',
        })
        assert materia['estado'] == 'pendiente'
        assert materia['activa'] is False
        assert [m['id'] for m in academico.get_materias_pendientes()] == [materia['id']]

    def test_materia_del_admin_queda_aprobada(self, malla):
        assert malla['materia']['estado'] == 'aprobada'
        assert malla['materia']['activa'] is True

    def test_codigo_unico_en_todo_el_sistema(self, academico, malla):
        otra = academico.create_carrera({'nombre': 'Medicina', 'codigo': 'MED'})
        repetida = academico.create_materia({
            'nombre': 'Otra', 'codigo': 'se01',
            'carrera_id': otra['id'], 'semestre_id': malla['semestre']['id'],
        })
        assert repetida is None

    def test_aprobar_y_rechazar(self, academico, malla):
        pendiente = academico.create_materia({
            'nombre': 'Cálculo', 'codigo': 'SE02', 'carrera_id': malla['carrera']['id'],
            'coordinador_id': 'coord-1',
        })
        aprobada = academico.update_materia(pendiente['id'], {'estado': 'aprobada'})
        assert aprobada['activa'] is True

        rechazada = academico.update_materia(pendiente['id'], {'estado': 'rechazada', 'activa': True})
        assert rechazada['activa'] is False

    def test_validaciones(self, academico, malla):
        base = {'nombre': 'X', 'carrera_id': malla['carrera']['id']}
        with pytest.raises(ValueError):
            academico.create_materia({**base, 'codigo': 'A1', 'unidad': 'Avanzada'})
        with pytest.raises(ValueError):
            academico.create_materia({**base, 'codigo': 'A2', 'creditos': -1})
        with pytest.raises(ValueError):
            academico.create_materia({**base, 'codigo': 'A3', 'horas': 'muchas'})

        materia = academico.create_materia({**base, 'codigo': 'A4', 'creditos': '4', 'horas': 64,
                                            'unidad': 'Básica', 'prerequisitos': ['SE01', ' ', '']})
        assert materia['creditos'] == 4
        assert materia['prerequisitos'] == ['SE01']

    def test_materias_por_carrera(self, academico, malla):
        academico.create_materia({
            'nombre': 'Cálculo', 'codigo': 'SE02', 'carrera_id': malla['carrera']['id'],
            'coordinador_id': 'coord-1',
        })
        assert len(academico.get_materias_by_carrera(malla['carrera']['id'])) == 2
        activas = academico.get_materias_by_carrera(malla['carrera']['id'], solo_activas=True)
        assert [m['codigo'] for m in activas] == ['SE01']

    def test_cambio_de_codigo_en_colision(self, academico, malla):
        otra = academico.create_materia({'nombre': 'Cálculo', 'codigo': 'SE02',
                                         'carrera_id': malla['carrera']['id']})
        assert academico.update_materia(otra['id'], {'codigo': 'SE01'}) is None
        assert academico.get_materia_by_codigo('SE02')['id'] == otra['id']

    def test_eliminar(self, academico, malla):
        assert academico.delete_materia(malla['materia']['id'])
        assert academico.get_materia_by_id(malla['materia']['id']) is None


class TestAsignaciones:
    def _asignar(self, academico, malla, docente, **extra):
        return academico.create_docente_materia_semestre({
            'docente_id': docente['id'],
            'materia_id': malla['materia']['id'],
            'semestre_id': malla['semestre']['id'],
            'carrera_id': malla['carrera']['id'],
            **extra,
        })

    def test_terna_duplicada(self, academico, malla, crear_usuario):
        docente = crear_usuario('docente')
        assert self._asignar(academico, malla, docente) is not None
        assert self._asignar(academico, malla, docente) is None
        assert len(academico.get_asignaciones_by_docente(docente['id'])) == 1

    def test_campos_requeridos(self, academico):
        with pytest.raises(ValueError):
            academico.create_docente_materia_semestre({'docente_id': 'd1', 'materia_id': 'm1'})

    def test_docentes_por_materia_y_semestre(self, academico, malla, crear_usuario):
        uno = crear_usuario('docente')
        dos = crear_usuario('docente')
        inactivo = crear_usuario('docente')
        self._asignar(academico, malla, uno)
        self._asignar(academico, malla, dos)
        self._asignar(academico, malla, inactivo, activo=False)

        docentes = academico.get_docentes_by_materia_semestre(
            malla['materia']['id'], malla['semestre']['id'], malla['carrera']['id'])
        assert {d['id'] for d in docentes} == {uno['id'], dos['id']}

    def test_sin_coincidencias_devuelve_lista_vacia(self, academico, malla, crear_usuario):
        self._asignar(academico, malla, crear_usuario('docente'))
        assert academico.get_docentes_by_materia_semestre(
            malla['materia']['id'], malla['semestre']['id'], 'otra-carrera') == []
        assert academico.get_docentes_by_materia_semestre('x', 'y', 'z') == []

    def test_docente_eliminado_no_aparece(self, plataforma, academico, malla, crear_usuario):
        docente = crear_usuario('docente')
        self._asignar(academico, malla, docente)
        plataforma.usuarios.delete_user(docente['id'])
        assert academico.get_docentes_by_materia_semestre(
            malla['materia']['id'], malla['semestre']['id'], malla['carrera']['id']) == []

    def test_actualizar_y_filtrar(self, academico, malla, crear_usuario):
        uno = crear_usuario('docente')
        dos = crear_usuario('docente')
        a1 = self._asignar(academico, malla, uno)
        a2 = self._asignar(academico, malla, dos)

        assert academico.update_docente_materia_semestre(a2['id'], {'docente_id': uno['id']}) is None
        assert academico.update_docente_materia_semestre(a1['id'], {'activo': False})['activo'] is False
        assert len(academico.get_docente_materia_semestres(malla['carrera']['id'])) == 2
        assert academico.get_docente_materia_semestres('otra') == []
        assert academico.delete_docente_materia_semestre(a1['id'])
        assert len(academico.get_docente_materia_semestres()) == 1


class TestPeriodos:
    def test_un_solo_periodo_activo(self, academico):
        uno = academico.create_periodo({'nombre': '2030-I', 'fecha_inicio': '2030-03-01', 'fecha_fin': '2030-08-01'})
        dos = academico.create_periodo({'nombre': '2030-II', 'fecha_inicio': '2030-09-01', 'fecha_fin': '2031-02-01'})
        assert uno['anio'] == 2030
        assert academico.get_periodo_activo() is None

        academico.activar_periodo(uno['id'])
        academico.activar_periodo(dos['id'])
        activos = [p for p in academico.get_periodos() if p['activo']]
        assert [p['id'] for p in activos] == [dos['id']]
        assert academico.get_periodo_activo()['id'] == dos['id']

    def test_periodo_inexistente(self, academico):
        assert academico.activar_periodo('no-existe') is None
        assert academico.update_periodo('no-existe', {'nombre': 'x'}) is None
        assert not academico.delete_periodo('no-existe')
