"""
Servicios de negocio del motor de ocupación y facturación
"""

from .tarifas import TarifaService
from .inventario import InventarioService
from .ocupacion import OcupacionService
from .consumos import ConsumoService
from .pagos import PagoService
from .caja import CajaService
from .disponibilidad import DisponibilidadService, calcular_horarios_libres

__all__ = [
    "TarifaService",
    "InventarioService",
    "OcupacionService",
    "ConsumoService",
    "PagoService",
    "CajaService",
    "DisponibilidadService",
    "calcular_horarios_libres",
]
