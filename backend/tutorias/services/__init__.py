from .plataforma import Plataforma, get_plataforma


__all__ = [
    'Plataforma',
    'get_plataforma',
]
