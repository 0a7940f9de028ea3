from .auth import auth_bp
from .usuarios import usuarios_bp
from .academico import academico_bp
from .tutorias import tutorias_bp
from .notificaciones import notificaciones_bp
from .documentos import documentos_bp
from .reportes import reportes_bp


def register_blueprints(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(usuarios_bp)
    app.register_blueprint(academico_bp)
    app.register_blueprint(tutorias_bp)
    app.register_blueprint(notificaciones_bp)
    app.register_blueprint(documentos_bp)
    app.register_blueprint(reportes_bp)
