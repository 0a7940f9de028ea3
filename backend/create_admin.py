from tutorias import create_app
from tutorias.services import get_plataforma


def crear_admin(app):
    """Crea el administrador inicial si todavía no existe. Devuelve el usuario o None."""
    with app.app_context():
        usuarios = get_plataforma(app).usuarios
        email = app.config['DEFAULT_ADMIN_EMAIL']

        # Verificar si ya existe un usuario administrador
        if usuarios.get_user_by_email(email) or usuarios.get_users_by_role('admin'):
            return None

        return usuarios.create_user({
            'cedula': app.config['DEFAULT_ADMIN_CEDULA'],
            'nombres': 'Administrador',
            'apellidos': 'Sistema',
            'email': email,
            'password': app.config['DEFAULT_ADMIN_PASSWORD'],
            'rol': 'admin',
            'estado': 'activo',
        })


if __name__ == '__main__':
    app = create_app()
    admin = crear_admin(app)
    if admin is None:
        print("El usuario administrador ya existe.")
    else:
        print("\n¡Usuario creado exitosamente!")
        print("=================================")
        print("Rol: Administrador")
        print(f"Email: {admin['email']}")
        print(f"Contraseña: {app.config['DEFAULT_ADMIN_PASSWORD']}")
