import os
from flask import Blueprint, jsonify, request, current_app, send_file
from flask_login import current_user
from tutorias.services import get_plataforma
from tutorias.utils.archivos import allowed_file, upload_pdf, remove_pdf, get_pdf_path
from tutorias.utils.decorators import login_required_json, roles_required, rol_activo
from tutorias.utils.peticiones import datos_json, carrera_del_usuario


documentos_bp = Blueprint('documentos', __name__, url_prefix='/api/documentos')


def _puede_gestionar(plataforma, pdf):
    """Admin gestiona todos; el coordinador solo los de su carrera"""
    if rol_activo() == 'admin':
        return True
    carrera = carrera_del_usuario(plataforma, current_user.registro)
    return carrera is not None and pdf.get('carrera') in (carrera['id'], carrera['nombre'])


@documentos_bp.route('', methods=['GET'])
@login_required_json
def listar_pdfs():
    plataforma = get_plataforma()
    if rol_activo() == 'admin':
        return jsonify(plataforma.documentos.get_pdfs())

    carrera = carrera_del_usuario(plataforma, current_user.registro)
    valor = carrera['id'] if carrera else current_user.registro.get('carrera')
    if not valor:
        return jsonify([])
    solo_activos = rol_activo() != 'coordinador'
    return jsonify(plataforma.documentos.get_pdfs_by_carrera(valor, solo_activos=solo_activos))


@documentos_bp.route('', methods=['POST'])
@roles_required('admin', 'coordinador')
def subir_pdf():
    plataforma = get_plataforma()
    archivo = request.files.get('archivo')
    if archivo is None or not archivo.filename:
        return jsonify({'error': 'No se recibió ningún archivo'}), 400
    if not allowed_file(archivo.filename):
        return jsonify({'error': 'Solo se permiten archivos PDF'}), 400

    if rol_activo() == 'coordinador':
        carrera = carrera_del_usuario(plataforma, current_user.registro)
    else:
        carrera_id = request.form.get('carrera')
        carrera = plataforma.academico.get_carrera_by_id(carrera_id) or plataforma.academico.get_carrera_by_nombre(carrera_id)
    if carrera is None:
        return jsonify({'error': 'Carrera no encontrada'}), 400

    nombre = (request.form.get('nombre') or archivo.filename.rsplit('.', 1)[0]).strip()
    guardado = upload_pdf(archivo, nombre)
    tamano = os.path.getsize(get_pdf_path(guardado))

    try:
        pdf = plataforma.documentos.create_pdf({
            'nombre': nombre,
            'carrera': carrera['id'],
            'rol_subida': rol_activo(),
            'usuario_subida': current_user.id,
            'nombre_archivo': guardado,
            'tamano': tamano,
            'descripcion': request.form.get('descripcion', ''),
        })
    except ValueError as e:
        remove_pdf(guardado)
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        remove_pdf(guardado)
        current_app.logger.error(f"Error registrando PDF: {str(e)}", exc_info=True)
        return jsonify({'error': 'Error interno del servidor'}), 500

    return jsonify(pdf), 201


@documentos_bp.route('/<pdf_id>', methods=['PUT'])
@roles_required('admin', 'coordinador')
def editar_pdf(pdf_id):
    plataforma = get_plataforma()
    pdf = plataforma.documentos.get_pdf_by_id(pdf_id)
    if pdf is None or not _puede_gestionar(plataforma, pdf):
        return jsonify({'error': 'Documento no encontrado'}), 404
    return jsonify(plataforma.documentos.update_pdf(pdf_id, datos_json()))


@documentos_bp.route('/<pdf_id>', methods=['DELETE'])
@roles_required('admin', 'coordinador')
def eliminar_pdf(pdf_id):
    plataforma = get_plataforma()
    pdf = plataforma.documentos.get_pdf_by_id(pdf_id)
    if pdf is None or not _puede_gestionar(plataforma, pdf):
        return jsonify({'error': 'Documento no encontrado'}), 404

    plataforma.documentos.delete_pdf(pdf_id)
    remove_pdf(pdf.get('nombre_archivo'))
    return jsonify({'success': True})


@documentos_bp.route('/<pdf_id>/descargar', methods=['GET'])
@login_required_json
def descargar_pdf(pdf_id):
    plataforma = get_plataforma()
    pdf = plataforma.documentos.get_pdf_by_id(pdf_id)
    if pdf is None:
        return jsonify({'error': 'Documento no encontrado'}), 404

    if rol_activo() != 'admin':
        carrera = carrera_del_usuario(plataforma, current_user.registro)
        visibles = {p['id'] for p in plataforma.documentos.get_pdfs_by_carrera(carrera['id'])} if carrera else set()
        if pdf_id not in visibles and not _puede_gestionar(plataforma, pdf):
            return jsonify({'error': 'Documento no encontrado'}), 404

    ruta = get_pdf_path(pdf.get('nombre_archivo'))
    if ruta is None:
        return jsonify({'error': 'El archivo ya no está disponible'}), 404
    return send_file(ruta, mimetype='application/pdf', as_attachment=True,
                     download_name=f"{pdf['nombre']}.pdf")
