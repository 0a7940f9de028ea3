from flask import Blueprint, jsonify, request, current_app, send_file
from flask_login import login_required, current_user
from tutorias.forms.academico import CarreraForm, SemestreForm, MateriaForm, AsignacionForm, PeriodoForm
from tutorias.services import get_plataforma
from tutorias.services.carga_masiva import COLUMNAS_MALLA
from tutorias.services.usuarios import sin_password
from tutorias.utils.decorators import admin_required, roles_required, rol_activo
from tutorias.utils.hojas import HojaInvalida, ENCABEZADOS_MALLA, EJEMPLO_MALLA, MIMETYPE_EXCEL, generar_plantilla
from tutorias.utils.peticiones import datos_json, errores_formulario, filas_de_peticion, carrera_del_usuario


academico_bp = Blueprint('academico', __name__, url_prefix='/api/academico')


def _no_encontrado(que):
    return jsonify({'error': f'{que} no encontrado'}), 404


def _carrera_coordinada(plataforma):
    """Carrera que coordina el usuario en sesión; None si el rol activo no es coordinador.

    Un coordinador sin carrera devuelve un dict vacío: no puede gestionar nada.
    """
    if rol_activo() != 'coordinador':
        return None
    return carrera_del_usuario(plataforma, current_user.registro) or {}


def _sin_carrera():
    return jsonify({'error': 'No tienes una carrera asignada'}), 400


# ==================== CARRERAS ====================

@academico_bp.route('/carreras', methods=['GET'])
@login_required
def listar_carreras():
    return jsonify(get_plataforma().academico.get_carreras())


@academico_bp.route('/carreras', methods=['POST'])
@admin_required
def crear_carrera():
    form = CarreraForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    carrera = get_plataforma().academico.create_carrera({
        'nombre': form.nombre.data,
        'codigo': form.codigo.data,
        'descripcion': form.descripcion.data or '',
        'activa': datos_json().get('activa', True),
    })
    if carrera is None:
        return jsonify({'error': 'Ya existe una carrera con ese código'}), 409
    return jsonify(carrera), 201


@academico_bp.route('/carreras/<carrera_id>', methods=['PUT'])
@admin_required
def editar_carrera(carrera_id):
    academico = get_plataforma().academico
    if academico.get_carrera_by_id(carrera_id) is None:
        return _no_encontrado('Carrera')
    cambios = {k: v for k, v in datos_json().items() if k in ('nombre', 'codigo', 'descripcion', 'activa')}
    carrera = academico.update_carrera(carrera_id, cambios)
    if carrera is None:
        return jsonify({'error': 'Ya existe una carrera con ese código'}), 409
    return jsonify(carrera)


@academico_bp.route('/carreras/<carrera_id>', methods=['DELETE'])
@admin_required
def eliminar_carrera(carrera_id):
    if not get_plataforma().academico.delete_carrera(carrera_id):
        return _no_encontrado('Carrera')
    return jsonify({'success': True})


# ==================== SEMESTRES ====================

@academico_bp.route('/semestres', methods=['GET'])
@login_required
def listar_semestres():
    return jsonify(get_plataforma().academico.get_semestres())


@academico_bp.route('/semestres', methods=['POST'])
@admin_required
def crear_semestre():
    form = SemestreForm()
    if not form.validate_on_submit():
        return errores_formulario(form)
    try:
        semestre = get_plataforma().academico.create_semestre({
            'nombre': form.nombre.data,
            'numero': form.numero.data,
            'activo': datos_json().get('activo', True),
        })
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    if semestre is None:
        return jsonify({'error': 'Ya existe un semestre con ese nombre'}), 409
    return jsonify(semestre), 201


# ==================== MATERIAS ====================

@academico_bp.route('/materias', methods=['GET'])
@login_required
def listar_materias():
    academico = get_plataforma().academico
    carrera_id = request.args.get('carrera_id')
    if request.args.get('pendientes'):
        return jsonify(academico.get_materias_pendientes())
    if carrera_id:
        solo_activas = rol_activo() in ('estudiante', 'docente')
        return jsonify(academico.get_materias_by_carrera(carrera_id, solo_activas=solo_activas))
    return jsonify(academico.get_materias())


@academico_bp.route('/materias', methods=['POST'])
@roles_required('admin', 'coordinador')
def crear_materia():
    """Las materias del coordinador quedan pendientes de aprobación del administrador"""
    form = MateriaForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    datos = form.datos()
    datos['prerequisitos'] = datos_json().get('prerequisitos') or []
    carrera = _carrera_coordinada(plataforma)
    if carrera is not None:
        if not carrera:
            return _sin_carrera()
        # Las materias del coordinador son siempre de su carrera
        datos['carrera_id'] = carrera['id']
        datos['coordinador_id'] = current_user.id
    try:
        materia = plataforma.academico.create_materia(datos)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    if materia is None:
        return jsonify({'error': 'Ya existe una materia con ese código'}), 409
    return jsonify(materia), 201


@academico_bp.route('/materias/<materia_id>', methods=['PUT'])
@admin_required
def editar_materia(materia_id):
    academico = get_plataforma().academico
    if academico.get_materia_by_id(materia_id) is None:
        return _no_encontrado('Materia')
    campos = ('nombre', 'codigo', 'carrera_id', 'semestre_id', 'descripcion', 'unidad',
              'creditos', 'horas', 'prerequisitos', 'activa')
    cambios = {k: v for k, v in datos_json().items() if k in campos}
    try:
        materia = academico.update_materia(materia_id, cambios)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    if materia is None:
        return jsonify({'error': 'Ya existe una materia con ese código'}), 409
    return jsonify(materia)


@academico_bp.route('/materias/<materia_id>/aprobar', methods=['POST'])
@admin_required
def aprobar_materia(materia_id):
    materia = get_plataforma().academico.update_materia(materia_id, {'estado': 'aprobada'})
    if materia is None:
        return _no_encontrado('Materia')
    return jsonify(materia)


@academico_bp.route('/materias/<materia_id>/rechazar', methods=['POST'])
@admin_required
def rechazar_materia(materia_id):
    materia = get_plataforma().academico.update_materia(materia_id, {'estado': 'rechazada'})
    if materia is None:
        return _no_encontrado('Materia')
    return jsonify(materia)


@academico_bp.route('/materias/<materia_id>', methods=['DELETE'])
@admin_required
def eliminar_materia(materia_id):
    if not get_plataforma().academico.delete_materia(materia_id):
        return _no_encontrado('Materia')
    return jsonify({'success': True})


@academico_bp.route('/malla/carga-masiva', methods=['POST'])
@admin_required
def cargar_malla():
    """Acepta la hoja de la malla (.xlsx/.csv) o las filas ya leídas en JSON"""
    try:
        filas = filas_de_peticion(COLUMNAS_MALLA, hoja_preferida='Malla')
    except HojaInvalida as e:
        return jsonify({'error': str(e)}), 400
    if filas is None:
        return jsonify({'error': 'No se recibieron filas para procesar'}), 400

    resultados = get_plataforma().carga_masiva.importar_malla(filas)
    creadas = sum(1 for r in resultados if r.exito)
    current_app.logger.info(f"Carga de malla por {current_user.email}: {creadas} de {len(resultados)} filas")
    return jsonify({
        'creadas': creadas,
        'errores': len(resultados) - creadas,
        'resultados': [r.to_dict() for r in resultados],
    })


@academico_bp.route('/malla/plantilla', methods=['GET'])
@admin_required
def plantilla_malla():
    output = generar_plantilla(ENCABEZADOS_MALLA, EJEMPLO_MALLA, 'Malla')
    return send_file(output, mimetype=MIMETYPE_EXCEL, as_attachment=True,
                     download_name='plantilla_malla_curricular.xlsx')


# ==================== ASIGNACIONES ====================

@academico_bp.route('/asignaciones', methods=['GET'])
@roles_required('admin', 'coordinador', 'docente')
def listar_asignaciones():
    plataforma = get_plataforma()
    academico = plataforma.academico
    if rol_activo() == 'docente':
        return jsonify(academico.get_asignaciones_by_docente(current_user.id))
    carrera = _carrera_coordinada(plataforma)
    if carrera is not None:
        return jsonify(academico.get_docente_materia_semestres(carrera['id']) if carrera else [])
    return jsonify(academico.get_docente_materia_semestres(request.args.get('carrera_id')))


@academico_bp.route('/asignaciones', methods=['POST'])
@roles_required('admin', 'coordinador')
def crear_asignacion():
    form = AsignacionForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    plataforma = get_plataforma()
    carrera_id = form.carrera_id.data
    carrera = _carrera_coordinada(plataforma)
    if carrera is not None:
        if not carrera:
            return _sin_carrera()
        carrera_id = carrera['id']

    if not plataforma.usuarios.user_has_role(plataforma.usuarios.get_user_by_id(form.docente_id.data), 'docente'):
        return jsonify({'error': 'El usuario indicado no es docente'}), 400
    asignacion = plataforma.academico.create_docente_materia_semestre({
        'docente_id': form.docente_id.data,
        'materia_id': form.materia_id.data,
        'semestre_id': form.semestre_id.data,
        'carrera_id': carrera_id,
    })
    if asignacion is None:
        return jsonify({'error': 'El docente ya está asignado a esa materia y semestre'}), 409
    return jsonify(asignacion), 201


def _asignacion_gestionable(plataforma, asignacion_id):
    """La asignación, si existe y el coordinador en sesión la gestiona"""
    asignacion = plataforma.academico.get_docente_materia_semestre_by_id(asignacion_id)
    if asignacion is None:
        return None
    carrera = _carrera_coordinada(plataforma)
    if carrera is not None and asignacion.get('carrera_id') != carrera.get('id'):
        return None
    return asignacion


@academico_bp.route('/asignaciones/<asignacion_id>', methods=['PUT'])
@roles_required('admin', 'coordinador')
def editar_asignacion(asignacion_id):
    plataforma = get_plataforma()
    if _asignacion_gestionable(plataforma, asignacion_id) is None:
        return _no_encontrado('Asignación')

    campos = ('docente_id', 'materia_id', 'semestre_id', 'carrera_id', 'activo')
    if rol_activo() == 'coordinador':
        # El coordinador no puede mover la asignación a otra carrera
        campos = campos[:3] + ('activo',)
    cambios = {k: v for k, v in datos_json().items() if k in campos}
    asignacion = plataforma.academico.update_docente_materia_semestre(asignacion_id, cambios)
    if asignacion is None:
        return jsonify({'error': 'El docente ya está asignado a esa materia y semestre'}), 409
    return jsonify(asignacion)


@academico_bp.route('/asignaciones/<asignacion_id>', methods=['DELETE'])
@roles_required('admin', 'coordinador')
def eliminar_asignacion(asignacion_id):
    plataforma = get_plataforma()
    if _asignacion_gestionable(plataforma, asignacion_id) is None:
        return _no_encontrado('Asignación')
    plataforma.academico.delete_docente_materia_semestre(asignacion_id)
    return jsonify({'success': True})


@academico_bp.route('/docentes-disponibles', methods=['GET'])
@login_required
def docentes_disponibles():
    materia_id = request.args.get('materia_id')
    semestre_id = request.args.get('semestre_id')
    carrera_id = request.args.get('carrera_id')
    if not materia_id or not semestre_id or not carrera_id:
        return jsonify({'error': 'Faltan parámetros requeridos (materia_id, semestre_id, carrera_id)'}), 400
    docentes = get_plataforma().academico.get_docentes_by_materia_semestre(materia_id, semestre_id, carrera_id)
    return jsonify([sin_password(d) for d in docentes])


# ==================== PERÍODOS ====================

@academico_bp.route('/periodos', methods=['GET'])
@login_required
def listar_periodos():
    return jsonify(get_plataforma().academico.get_periodos())


@academico_bp.route('/periodos/activo', methods=['GET'])
@login_required
def periodo_activo():
    periodo = get_plataforma().academico.get_periodo_activo()
    if periodo is None:
        return jsonify({'error': 'No hay un período activo'}), 404
    return jsonify(periodo)


@academico_bp.route('/periodos', methods=['POST'])
@admin_required
def crear_periodo():
    form = PeriodoForm()
    if not form.validate_on_submit():
        return errores_formulario(form)

    academico = get_plataforma().academico
    periodo = academico.create_periodo({
        'nombre': form.nombre.data,
        'fecha_inicio': form.fecha_inicio.data,
        'fecha_fin': form.fecha_fin.data,
    })
    if form.activo.data:
        periodo = academico.activar_periodo(periodo['id'])
    current_app.logger.info(f"Período creado: {periodo['nombre']}")
    return jsonify(periodo), 201


@academico_bp.route('/periodos/<periodo_id>', methods=['PUT'])
@admin_required
def editar_periodo(periodo_id):
    cambios = {k: v for k, v in datos_json().items() if k in ('nombre', 'fecha_inicio', 'fecha_fin', 'anio')}
    periodo = get_plataforma().academico.update_periodo(periodo_id, cambios)
    if periodo is None:
        return _no_encontrado('Período')
    return jsonify(periodo)


@academico_bp.route('/periodos/<periodo_id>/activar', methods=['POST'])
@admin_required
def activar_periodo(periodo_id):
    periodo = get_plataforma().academico.activar_periodo(periodo_id)
    if periodo is None:
        return _no_encontrado('Período')
    return jsonify(periodo)


@academico_bp.route('/periodos/<periodo_id>', methods=['DELETE'])
@admin_required
def eliminar_periodo(periodo_id):
    if not get_plataforma().academico.delete_periodo(periodo_id):
        return _no_encontrado('Período')
    return jsonify({'success': True})
