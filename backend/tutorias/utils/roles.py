ROLES = ('admin', 'coordinador', 'docente', 'estudiante')
ROLES_AUTOREGISTRO = ('estudiante', 'docente')


def normalizar_roles(rol):
    """Devuelve siempre una lista no vacía de roles en orden canónico.

    Acepta un rol suelto o una colección. Todo coordinador es también
    docente: si falta, se agrega.
    """
    if rol is None:
        candidatos = []
    elif isinstance(rol, str):
        candidatos = [rol]
    else:
        candidatos = list(rol)

    roles = {str(r).strip().lower() for r in candidatos if r is not None and str(r).strip()}
    if not roles:
        raise ValueError("El usuario debe tener al menos un rol")

    invalidos = roles.difference(ROLES)
    if invalidos:
        raise ValueError(f"Rol inválido: {', '.join(sorted(invalidos))}")

    if 'coordinador' in roles:
        roles.add('docente')
    return [r for r in ROLES if r in roles]


def get_user_roles(user):
    if not user:
        return []
    rol = user.get('rol')
    if not rol:
        return []
    if isinstance(rol, str):
        return [rol]
    return list(rol)


def user_has_role(user, rol):
    return rol in get_user_roles(user)
