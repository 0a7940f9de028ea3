from flask_login import UserMixin


class UsuarioActual(UserMixin):
    """Envoltura de un registro de usuario para Flask-Login.

    Los usuarios viven como registros JSON en el almacén; esta clase solo
    expone lo que Flask-Login necesita y nunca guarda la contraseña.
    """

    def __init__(self, registro):
        self.registro = {k: v for k, v in registro.items() if k != 'password'}

    @property
    def id(self):
        return self.registro['id']

    @property
    def email(self):
        return self.registro.get('email')

    @property
    def roles(self):
        return list(self.registro.get('rol') or [])

    # Método requerido por Flask-Login
    def get_id(self):
        return str(self.id)

    @property
    def is_active(self):
        return self.registro.get('estado') == 'activo'

    def __repr__(self):
        return f'<UsuarioActual {self.email}>'
