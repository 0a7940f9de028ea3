import logging
from collections import Counter
from tutorias.utils.roles import get_user_roles


logger = logging.getLogger(__name__)


def _promedio(valores):
    if not valores:
        return 0
    return round(sum(valores) / len(valores), 2)


class ServicioMetricas:
    """Estadísticas de solo lectura para los paneles y reportes"""

    def __init__(self, usuarios, tutorias):
        self.usuarios = usuarios
        self.tutorias = tutorias

    def get_user_metrics(self):
        usuarios = self.usuarios.get_users()
        por_rol = Counter()
        for u in usuarios:
            por_rol.update(get_user_roles(u))
        por_carrera = Counter(u.get('carrera') or 'Sin carrera' for u in usuarios)
        activos = sum(1 for u in usuarios if u.get('estado') == 'activo')
        return {
            'total': len(usuarios),
            'por_rol': dict(por_rol),
            'por_carrera': dict(por_carrera),
            'activos': activos,
            'inactivos': len(usuarios) - activos,
        }

    def get_tutoria_stats(self, tutorias=None):
        if tutorias is None:
            tutorias = self.tutorias.get_tutorias()
        estados = Counter(t.get('estado') for t in tutorias)
        calificaciones = [t['calificacion'] for t in tutorias if t.get('calificacion')]
        return {
            'total': len(tutorias),
            'pendientes': estados['pendiente'],
            'aceptadas': estados['aceptada'],
            'finalizadas': estados['finalizada'],
            'rechazadas': estados['rechazada'],
            'promedio_calificacion': _promedio(calificaciones),
        }

    def get_docente_stats(self, docente_id):
        propias = self.tutorias.get_tutorias_by_docente(docente_id)
        calificaciones = [t['calificacion'] for t in propias if t.get('calificacion')]
        return {
            'docente_id': docente_id,
            'docente_nombre': self.usuarios.get_user_name(docente_id),
            'total_tutorias': len(propias),
            'tutorias_finalizadas': sum(1 for t in propias if t.get('estado') == 'finalizada'),
            'promedio_calificacion': _promedio(calificaciones),
            'total_calificaciones': len(calificaciones),
        }

    def get_docentes_stats(self):
        """Todos los docentes, mejor calificados primero"""
        stats = [self.get_docente_stats(d['id']) for d in self.usuarios.get_users_by_role('docente')]
        return sorted(stats, key=lambda s: s['promedio_calificacion'], reverse=True)
