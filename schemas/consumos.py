"""
Schemas Pydantic para consumos y movimientos
"""
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict


class ConsumoItem(BaseModel):
    articulo_id: int
    cantidad: int = Field(..., gt=0)


class ConsumoRequest(BaseModel):
    """Consumos a cargar en un movimiento existente"""
    items: List[ConsumoItem] = Field(..., min_length=1)


class ConsumoVisitaRequest(ConsumoRequest):
    """Consumos de una visita en una habitación (se usa o crea el movimiento abierto)"""
    visita_id: int
    habitacion_id: int


class CantidadUpdate(BaseModel):
    cantidad: int = Field(..., gt=0)


class ConsumoResponse(BaseModel):
    id: int
    movimiento_id: int
    articulo_id: int
    cantidad: int
    precio_unitario: Decimal
    es_habitacion: bool
    cantidad_habitacion: int
    anulado: bool

    model_config = ConfigDict(from_attributes=True)


class MovimientoResponse(BaseModel):
    id: int
    institucion_id: int
    visita_id: int
    habitacion_id: int
    pago_id: Optional[int] = None
    total_facturado: Decimal
    anulado: bool
    fecha_registro: Optional[datetime] = None
    consumos: List[ConsumoResponse] = []

    model_config = ConfigDict(from_attributes=True)


class ResumenItem(BaseModel):
    consumo_id: int
    movimiento_id: int
    articulo_id: int
    articulo: str
    cantidad: int
    precio_unitario: Decimal
    es_habitacion: bool
    total: Decimal


class ResumenConsumosResponse(BaseModel):
    visita_id: int
    items: List[ResumenItem]
    total_habitacion: Decimal
    total_general: Decimal
    total_consumos: Decimal
    total_facturado: Decimal
