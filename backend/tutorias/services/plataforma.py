from flask import current_app
from tutorias.services.almacenamiento import AlmacenPersistente
from tutorias.services.usuarios import RepositorioUsuarios
from tutorias.services.notificaciones import DespachadorNotificaciones
from tutorias.services.academico import RepositorioAcademico
from tutorias.services.tutorias_service import RepositorioTutorias
from tutorias.services.documentos import RepositorioDocumentos
from tutorias.services.sesion import GestorSesion
from tutorias.services.metricas import ServicioMetricas
from tutorias.services.carga_masiva import ServicioCargaMasiva


class Plataforma:
    """Arma todos los servicios sobre un mismo almacén.

    create_app guarda una instancia en app.extensions['tutorias'].
    """

    def __init__(self, db, cifrador):
        self.almacen = AlmacenPersistente(db)
        self.cifrador = cifrador
        self.usuarios = RepositorioUsuarios(self.almacen, cifrador)
        self.notificaciones = DespachadorNotificaciones(self.almacen, self.usuarios)
        self.academico = RepositorioAcademico(self.almacen, self.usuarios)
        self.tutorias = RepositorioTutorias(self.almacen, self.usuarios, self.academico, self.notificaciones)
        self.documentos = RepositorioDocumentos(self.almacen, self.academico, self.notificaciones)
        self.sesion = GestorSesion(self.usuarios)
        self.metricas = ServicioMetricas(self.usuarios, self.tutorias)
        self.carga_masiva = ServicioCargaMasiva(self.usuarios, self.academico, self.notificaciones)


def get_plataforma(app=None):
    app = app or current_app
    return app.extensions['tutorias']
