import logging
from tutorias.services.almacenamiento import USUARIOS, generar_id, ahora_iso
from tutorias.utils.roles import normalizar_roles, get_user_roles, user_has_role
from tutorias.utils.validadores import is_valid_password


logger = logging.getLogger(__name__)

ESTADOS_USUARIO = ('activo', 'inactivo')
NOMBRE_DESCONOCIDO = 'Desconocido'


def sin_password(user):
    """Copia del usuario apta para respuestas y sesión"""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != 'password'}


def nombre_completo(user):
    if not user:
        return NOMBRE_DESCONOCIDO
    nombre = f"{user.get('nombres', '')} {user.get('apellidos', '')}".strip()
    return nombre or NOMBRE_DESCONOCIDO


def _normalizar_email(email):
    return (email or '').strip().lower()


def _normalizar_cedula(cedula):
    return str(cedula).strip() if cedula is not None else ''


class RepositorioUsuarios:
    """CRUD de usuarios con unicidad de cédula y email"""

    def __init__(self, almacen, cifrador):
        self.almacen = almacen
        self.cifrador = cifrador

    # --- Consultas ---

    def get_users(self):
        return self.almacen.cargar(USUARIOS)

    def get_user_by_id(self, user_id):
        return next((u for u in self.get_users() if u['id'] == user_id), None)

    def get_user_by_email(self, email):
        email = _normalizar_email(email)
        if not email:
            return None
        return next((u for u in self.get_users() if _normalizar_email(u.get('email')) == email), None)

    def get_user_by_cedula(self, cedula):
        cedula = _normalizar_cedula(cedula)
        if not cedula:
            return None
        return next((u for u in self.get_users() if u.get('cedula') == cedula), None)

    def get_users_by_carrera(self, carrera):
        return [u for u in self.get_users() if u.get('carrera') == carrera]

    def get_users_by_role(self, rol):
        return [u for u in self.get_users() if user_has_role(u, rol)]

    def get_user_name(self, user_id):
        return nombre_completo(self.get_user_by_id(user_id))

    get_user_roles = staticmethod(get_user_roles)
    user_has_role = staticmethod(user_has_role)

    # --- Mutaciones ---

    def create_user(self, datos):
        """Crea el usuario o devuelve None si la cédula o el email ya existen"""
        email = _normalizar_email(datos.get('email'))
        cedula = _normalizar_cedula(datos.get('cedula'))
        roles = normalizar_roles(datos.get('rol'))
        estado = datos.get('estado') or 'activo'
        if estado not in ESTADOS_USUARIO:
            raise ValueError(f"Estado de usuario inválido: {estado}")
        password_hash = self.cifrador.hash_password(datos.get('password'))

        with self.almacen.bloqueo(USUARIOS):
            usuarios = self.almacen.cargar(USUARIOS)

            if cedula and any(u.get('cedula') == cedula for u in usuarios):
                logger.info(f"Cédula ya registrada: {cedula}")
                return None
            if any(_normalizar_email(u.get('email')) == email for u in usuarios):
                logger.info(f"Email ya registrado: {email}")
                return None

            nuevo = {
                'id': generar_id(),
                'cedula': cedula,
                'nombres': datos.get('nombres', ''),
                'apellidos': datos.get('apellidos', ''),
                'email': email,
                'password': password_hash,
                'rol': roles,
                'carrera': datos.get('carrera', ''),
                'semestre': datos.get('semestre', ''),
                'telefono': datos.get('telefono', ''),
                'estado': estado,
                'forzar_cambio_password': bool(datos.get('forzar_cambio_password', False)),
                'coordinador_carrera': datos.get('coordinador_carrera'),
                'creado_en': ahora_iso(),
            }
            usuarios.append(nuevo)
            self.almacen.guardar(USUARIOS, usuarios)

        logger.info(f"Usuario creado: {email} ({', '.join(roles)})")
        return nuevo

    def update_user(self, user_id, cambios):
        """Mezcla los cambios. None si no existe o si el email/cédula choca con otro usuario"""
        cambios = dict(cambios)
        cambios.pop('id', None)
        cambios.pop('creado_en', None)

        if 'email' in cambios:
            cambios['email'] = _normalizar_email(cambios['email'])
        if 'cedula' in cambios:
            cambios['cedula'] = _normalizar_cedula(cambios['cedula'])
        if 'rol' in cambios:
            cambios['rol'] = normalizar_roles(cambios['rol'])
        if 'estado' in cambios and cambios['estado'] not in ESTADOS_USUARIO:
            raise ValueError(f"Estado de usuario inválido: {cambios['estado']}")
        if 'password' in cambios:
            cambios['password'] = self.cifrador.hash_password(cambios['password'])

        with self.almacen.bloqueo(USUARIOS):
            usuarios = self.almacen.cargar(USUARIOS)
            indice = next((i for i, u in enumerate(usuarios) if u['id'] == user_id), None)
            if indice is None:
                return None

            otros = [u for u in usuarios if u['id'] != user_id]
            if cambios.get('email') and any(_normalizar_email(u.get('email')) == cambios['email'] for u in otros):
                return None
            if cambios.get('cedula') and any(u.get('cedula') == cambios['cedula'] for u in otros):
                return None

            usuarios[indice] = {**usuarios[indice], **cambios}
            self.almacen.guardar(USUARIOS, usuarios)
            return usuarios[indice]

    def change_password(self, user_id, password_actual, password_nueva):
        """Cambio desde el perfil: exige la contraseña actual"""
        user = self.get_user_by_id(user_id)
        if not user or not self.cifrador.verify_password(password_actual, user.get('password')):
            return None
        if not is_valid_password(password_nueva):
            return None
        return self.update_user(user_id, {'password': password_nueva, 'forzar_cambio_password': False})

    def set_password(self, user_id, password_nueva, forzar_cambio=False):
        """Cambio obligatorio del primer ingreso, o restablecimiento por el administrador"""
        if not is_valid_password(password_nueva):
            return None
        return self.update_user(user_id, {'password': password_nueva, 'forzar_cambio_password': forzar_cambio})

    def toggle_user_status(self, user_id):
        user = self.get_user_by_id(user_id)
        if not user:
            return None
        nuevo_estado = 'inactivo' if user.get('estado') == 'activo' else 'activo'
        return self.update_user(user_id, {'estado': nuevo_estado})

    def delete_user(self, user_id):
        # Las tutorías y mensajes que lo referencian quedan huérfanos a propósito
        with self.almacen.bloqueo(USUARIOS):
            usuarios = self.almacen.cargar(USUARIOS)
            restantes = [u for u in usuarios if u['id'] != user_id]
            if len(restantes) == len(usuarios):
                return False
            self.almacen.guardar(USUARIOS, restantes)

        logger.info(f"Usuario eliminado: {user_id}")
        return True
