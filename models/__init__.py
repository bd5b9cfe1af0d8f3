"""
Archivo de inicialización del paquete models.
Expone todas las clases de los diferentes archivos para que
SQLAlchemy (Base.metadata) las detecte al importar 'models'.
"""

# 1. Ocupación: instituciones, habitaciones, visitas, reservas
from .ocupacion import (
    Institucion,
    CategoriaHabitacion,
    Habitacion,
    Visita,
    Promocion,
    Reserva,
    Registro,
)

# 2. Inventario de dos niveles
from .inventario import (
    TierInventario,
    Articulo,
    InventarioHabitacion,
    InventarioGeneral,
    MovimientoStock,
)

# 3. Facturación: movimientos, consumos, pagos, cierres de caja y egresos
from .facturacion import (
    Movimiento,
    Consumo,
    MedioPago,
    Pago,
    Recargo,
    Cierre,
    Egreso,
)

__all__ = [
    "Institucion", "CategoriaHabitacion", "Habitacion", "Visita", "Promocion", "Reserva", "Registro",
    "TierInventario", "Articulo", "InventarioHabitacion", "InventarioGeneral", "MovimientoStock",
    "Movimiento", "Consumo", "MedioPago", "Pago", "Recargo", "Cierre", "Egreso",
]
