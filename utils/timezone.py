from datetime import datetime
import pytz

from config import HOTEL_TIMEZONE

HOTEL_TZ = pytz.timezone(HOTEL_TIMEZONE)


def get_hotel_now() -> datetime:
    """Hora actual en la zona del hotel"""
    return datetime.now(HOTEL_TZ)


def ahora_local() -> datetime:
    """Hora de pared del hotel sin tzinfo: es lo que se persiste en reservas, pagos y cierres"""
    return get_hotel_now().replace(tzinfo=None)
