import os
import uuid
from werkzeug.utils import secure_filename
from flask import current_app


def allowed_file(filename):
    """Verifica si la extensión del archivo está permitida"""
    extensiones = current_app.config.get('ALLOWED_EXTENSIONS', {'pdf'})
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in extensiones


def get_upload_folder(subfolder='pdfs'):
    """Obtiene la ruta completa de la carpeta de uploads según el subfolder"""
    upload_folder = os.path.join(current_app.config['UPLOAD_FOLDER'], subfolder)
    os.makedirs(upload_folder, exist_ok=True)
    return upload_folder


def upload_pdf(file, nombre_base):
    """Guarda el PDF subido y devuelve el nombre con que quedó en disco"""
    if file and file.filename and allowed_file(file.filename):
        unique_id = uuid.uuid4().hex[:8]
        safe_name = secure_filename(nombre_base)[:40] or 'documento'
        new_filename = f"{safe_name}_{unique_id}.pdf"
        file.save(os.path.join(get_upload_folder('pdfs'), new_filename))
        return new_filename
    return None


def remove_pdf(filename):
    """Elimina un PDF del servidor"""
    if filename:
        filepath = os.path.join(get_upload_folder('pdfs'), secure_filename(filename))
        if os.path.exists(filepath):
            try:
                os.remove(filepath)
                return True
            except OSError as e:
                current_app.logger.error(f"Error eliminando PDF: {str(e)}")
    return False


def get_pdf_path(filename):
    """Ruta absoluta del PDF guardado, o None si no existe"""
    if not filename:
        return None
    filepath = os.path.join(get_upload_folder('pdfs'), secure_filename(filename))
    return filepath if os.path.exists(filepath) else None
