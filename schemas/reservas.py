"""
Schemas Pydantic para reservas (turnos) y su ciclo de vida
"""
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


class ReservaCreate(BaseModel):
    """Schema para abrir un turno en una habitación"""
    habitacion_id: int
    total_horas: int = Field(0, ge=0)
    total_minutos: int = Field(0, ge=0)
    promocion_id: Optional[int] = None
    fecha_reserva: Optional[datetime] = None
    personas_extra: int = Field(0, ge=0)
    validar_horario: bool = False

    patente_vehiculo: Optional[str] = Field(None, max_length=20)
    numero_telefono: Optional[str] = Field(None, max_length=30)
    identificador: Optional[str] = Field(None, max_length=120)
    usuario_id: Optional[int] = None

    @model_validator(mode="after")
    def validar_duracion(self):
        if self.total_horas * 60 + self.total_minutos <= 0:
            raise ValueError("El turno debe durar al menos un minuto")
        return self


class AnularReservaRequest(BaseModel):
    """El largo máximo del motivo (LARGO_MAX_MOTIVO) lo valida el servicio"""
    motivo: str

    @field_validator("motivo")
    @classmethod
    def validar_motivo(cls, v):
        return v.strip()


class ExtenderReservaRequest(BaseModel):
    """Tiempo a sumar al turno; los minutos pueden pasar de 59"""
    horas: int = Field(0, ge=0)
    minutos: int = Field(0, ge=0)

    @model_validator(mode="after")
    def validar_extension(self):
        if self.horas * 60 + self.minutos <= 0:
            raise ValueError("La extensión debe ser de al menos un minuto")
        return self


class PromocionUpdate(BaseModel):
    """promocion_id = None vuelve a la tarifa normal de la categoría"""
    promocion_id: Optional[int] = None


class ReservaResponse(BaseModel):
    id: int
    institucion_id: int
    visita_id: int
    habitacion_id: int
    promocion_id: Optional[int] = None
    movimiento_id: Optional[int] = None
    fecha_reserva: datetime
    total_horas: int
    total_minutos: int
    pausa_horas: Optional[int] = None
    pausa_minutos: Optional[int] = None
    fecha_fin: Optional[datetime] = None
    fecha_anula: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EstadoReservaResponse(ReservaResponse):
    """Reserva con los datos de tiempo ya calculados"""
    pausada: bool
    hora_fin_prevista: datetime
    minutos_transcurridos: int
    total_facturado: Optional[Decimal] = None


class HorarioLibreResponse(BaseModel):
    inicio: datetime
    fin: datetime


class DisponibilidadResponse(BaseModel):
    habitacion_id: int
    dia: date
    horarios: List[HorarioLibreResponse]
