"""
Schemas Pydantic para liquidación de visitas
"""
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict


class RecargoCreate(BaseModel):
    valor: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    descripcion: Optional[str] = Field(None, max_length=200)


class PagoCreate(BaseModel):
    """Montos por medio; el descuento no suma a caja"""
    efectivo: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    tarjeta: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    billetera: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    descuento: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    medio_pago_id: int
    recargo: Optional[RecargoCreate] = None
    observacion: Optional[str] = None


class RecargoResponse(BaseModel):
    id: int
    valor: Decimal
    descripcion: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PagoResponse(BaseModel):
    id: int
    institucion_id: int
    monto_efectivo: Decimal
    monto_tarjeta: Decimal
    monto_billetera: Decimal
    monto_descuento: Decimal
    medio_pago_id: int
    cierre_id: Optional[int] = None
    observacion: Optional[str] = None
    fecha_hora: datetime
    recargos: List[RecargoResponse] = []

    model_config = ConfigDict(from_attributes=True)


class TotalVisitaResponse(BaseModel):
    visita_id: int
    total: Decimal
    pendiente: Decimal
    pagado: Decimal
