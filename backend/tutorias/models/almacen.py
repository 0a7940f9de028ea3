from datetime import datetime, timezone
from tutorias.extensions import db


def _ahora():
    return datetime.now(timezone.utc)


class Almacen(db.Model):
    """Fila clave-valor del medio durable: una por colección"""
    __tablename__ = 'almacen'

    id = db.Column(db.Integer, primary_key=True)
    clave = db.Column(db.String(100), unique=True, nullable=False, index=True)
    valor = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    # Contador de escrituras; guardar solo reemplaza la fila si no cambió
    revision = db.Column(db.Integer, nullable=False, default=1)
    actualizado_en = db.Column(db.DateTime, default=_ahora, onupdate=_ahora)

    @classmethod
    def get_by_clave(cls, clave):
        return cls.query.filter_by(clave=clave).first()

    def __repr__(self):
        return f'<Almacen {self.clave} v{self.version} r{self.revision}>'
