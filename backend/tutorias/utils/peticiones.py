from flask import jsonify, request
from tutorias.utils.hojas import leer_hoja


def datos_json():
    return request.get_json(silent=True) or {}


def errores_formulario(form):
    """Respuesta 400 con el primer error de cada campo"""
    errores = {campo: mensajes[0] for campo, mensajes in form.errors.items() if mensajes}
    return jsonify({'error': 'Datos inválidos', 'campos': errores}), 400


def carrera_del_usuario(plataforma, user):
    """La carrera del perfil puede estar guardada como id o como nombre.

    Para un coordinador manda la carrera que coordina.
    """
    valor = user.get('coordinador_carrera') or user.get('carrera')
    if not valor:
        return None
    academico = plataforma.academico
    return academico.get_carrera_by_id(valor) or academico.get_carrera_by_nombre(valor)


def filas_de_peticion(columnas, hoja_preferida=None):
    """Filas de una carga masiva: archivo .xlsx/.csv en 'archivo' o JSON {"filas": [...]}.

    None si la petición no trae filas. HojaInvalida si el archivo no se puede leer.
    """
    archivo = request.files.get('archivo')
    if archivo is not None and archivo.filename:
        filas = leer_hoja(archivo, columnas, hoja_preferida)
    else:
        filas = datos_json().get('filas')
    if not isinstance(filas, list) or not filas:
        return None
    return filas
