from .almacen import Almacen
from .user import UsuarioActual


__all__=[
         'Almacen',
         'UsuarioActual',
         ]
