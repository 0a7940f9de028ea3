import re
from datetime import datetime


EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
CEDULA_REGEX = re.compile(r'^[0-9]{10}$')

MIN_PASSWORD = 8


def is_valid_email(email):
    if not email or not isinstance(email, str):
        return False
    return EMAIL_REGEX.match(email.strip()) is not None


def is_valid_cedula(cedula):
    """La cédula debe tener exactamente 10 dígitos"""
    if cedula is None:
        return False
    return CEDULA_REGEX.match(str(cedula).strip()) is not None


def is_valid_password(password, min_length=MIN_PASSWORD):
    return isinstance(password, str) and len(password) >= min_length


def parse_fecha_hora(fecha, hora=None):
    """Convierte 'YYYY-MM-DD' y 'HH:MM' en datetime. Devuelve None si no se puede."""
    try:
        dia = datetime.strptime(str(fecha).strip(), '%Y-%m-%d')
        if hora:
            h = datetime.strptime(str(hora).strip()[:5], '%H:%M')
            dia = dia.replace(hour=h.hour, minute=h.minute)
        return dia
    except (TypeError, ValueError):
        return None


def is_future_datetime(fecha, hora=None, ahora=None):
    """True si la fecha (y hora, si se indica) es estrictamente posterior a ahora.

    Sin hora se compara solo el día: hoy no cuenta como futuro.
    """
    momento = parse_fecha_hora(fecha, hora)
    if momento is None:
        return False
    ahora = ahora or datetime.now()
    if hora:
        return momento > ahora
    return momento.date() > ahora.date()
