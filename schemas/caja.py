"""
Schemas Pydantic para apertura, cierre, egresos y estado de caja
"""
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

from schemas.pagos import PagoResponse


class AbrirCajaRequest(BaseModel):
    monto_inicial: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    observacion: Optional[str] = None
    usuario_id: Optional[int] = None


class CerrarCajaRequest(BaseModel):
    """monto_inicial_siguiente es el efectivo con el que arranca la próxima caja"""
    monto_inicial_siguiente: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    observacion: Optional[str] = None
    usuario_id: Optional[int] = None


class EgresoCreate(BaseModel):
    descripcion: str = Field(..., min_length=1, max_length=200)
    cantidad: int = Field(1, gt=0)
    precio: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    usuario_id: Optional[int] = None


class EgresoResponse(BaseModel):
    id: int
    institucion_id: int
    cierre_id: Optional[int] = None
    descripcion: str
    cantidad: int
    precio: Decimal
    total: Decimal
    fecha: datetime

    model_config = ConfigDict(from_attributes=True)


class CierreResponse(BaseModel):
    id: int
    institucion_id: int
    monto_inicial_caja: Decimal
    total_ingresos_efectivo: Decimal
    total_ingresos_tarjeta: Decimal
    total_ingresos_billetera: Decimal
    total_egresos: Decimal
    cerrado: bool
    fecha_apertura: datetime
    fecha_hora_cierre: Optional[datetime] = None
    observaciones: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CierreCajaResponse(BaseModel):
    cierre: CierreResponse
    caja_nueva: CierreResponse
    total_ingresos: Decimal
    saldo_efectivo: Decimal


class EstadoCajaResponse(BaseModel):
    cierres: List[CierreResponse]
    caja_actual: Optional[CierreResponse] = None
    pagos_pendientes: List[PagoResponse]
    total_efectivo: Decimal
    total_tarjeta: Decimal
    total_billetera: Decimal
    total: Decimal
    egresos_pendientes: List[EgresoResponse]
    total_egresos: Decimal
