import hashlib
import hmac
import bleach
from werkzeug.security import generate_password_hash, check_password_hash


class CifradorPasswords:
    """Hash y verificación de contraseñas con el secreto de la aplicación.

    La contraseña se firma primero con HMAC-SHA256 usando el secreto y luego
    se guarda con el hash salado de werkzeug, así un volcado del almacén no
    sirve sin el secreto.
    """

    def __init__(self, secreto, metodo='pbkdf2:sha256'):
        if not secreto:
            raise ValueError("Debe configurar un secreto para las contraseñas")
        self._secreto = secreto.encode('utf-8')
        self.metodo = metodo

    def _firmar(self, password):
        return hmac.new(self._secreto, password.encode('utf-8'), hashlib.sha256).hexdigest()

    def hash_password(self, password):
        if password is None:
            raise ValueError("La contraseña es obligatoria")
        return generate_password_hash(self._firmar(password), method=self.metodo)

    def verify_password(self, password, digest):
        if password is None or not digest:
            return False
        try:
            return check_password_hash(digest, self._firmar(password))
        except (ValueError, TypeError):
            return False


def sanitize_input(texto):
    """Escapa cualquier etiqueta HTML y recorta espacios. Es idempotente."""
    if texto is None:
        return ''
    return bleach.clean(str(texto), tags=set(), attributes={}, strip=False).strip()
