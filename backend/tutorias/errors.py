"""
Excepciones del motor de almacenamiento.

Los casos esperados del dominio (duplicados, registros inexistentes) NO se
representan con excepciones: los repositorios devuelven None, False o una
lista vacía. Aquí solo viven los fallos de autenticación y de almacenamiento,
incluida la escritura rechazada porque otro proceso cambió la colección.
"""


class ErrorTutorias(Exception):
    """Excepción base de la plataforma"""


class AlmacenNoDisponible(ErrorTutorias):
    """El medio durable no se pudo leer o escribir"""

    def __init__(self, clave, detalle=None):
        self.clave = clave
        self.detalle = detalle
        mensaje = f"Almacenamiento no disponible para '{clave}'"
        if detalle:
            mensaje += f": {detalle}"
        super().__init__(mensaje)


class EscrituraConcurrente(ErrorTutorias):
    """Otro proceso escribió la colección entre la lectura y la escritura"""

    def __init__(self, clave):
        self.clave = clave
        super().__init__(f"La colección '{clave}' cambió durante la operación")


class ErrorAutenticacion(ErrorTutorias):
    """Fallo de inicio de sesión"""

    tipo = 'autenticacion'
    mensaje = 'Error al iniciar sesión'

    def __init__(self, email=None):
        self.email = email
        super().__init__(self.mensaje)


class UsuarioNoEncontrado(ErrorAutenticacion):
    tipo = 'usuario_no_encontrado'
    mensaje = 'Usuario no encontrado'


class CredencialesInvalidas(ErrorAutenticacion):
    tipo = 'credenciales_invalidas'
    mensaje = 'Contraseña incorrecta'


class UsuarioInactivo(ErrorAutenticacion):
    tipo = 'usuario_inactivo'
    mensaje = 'Usuario inactivo. Contacte al administrador.'
