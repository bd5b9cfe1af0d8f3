"""
Configuración del motor de ocupación y facturación
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Zona horaria del establecimiento (los timestamps se guardan en hora local)
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "America/Argentina/Buenos_Aires")

# Disponibilidad: hueco mínimo para considerar un horario libre
MIN_GAP_MINUTOS = int(os.getenv("MIN_GAP_MINUTOS", "30"))

# Anulaciones
LARGO_MAX_MOTIVO = 150

# Monitor de reservas (avisos de fin de turno)
MONITOR_HABILITADO = os.getenv("MONITOR_HABILITADO", "true").lower() == "true"
MONITOR_INTERVALO_SEGUNDOS = int(os.getenv("MONITOR_INTERVALO_SEGUNDOS", "60"))
AVISO_MINUTOS_ANTES = int(os.getenv("AVISO_MINUTOS_ANTES", "5"))

# CORS para el front
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]


def grupo_institucion(institucion_id: int) -> str:
    """Nombre del grupo de notificaciones de una institución"""
    return f"institution-{institucion_id}"
