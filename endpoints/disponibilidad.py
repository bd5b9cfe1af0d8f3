"""
Endpoint de horarios libres por habitación
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import conexion
from schemas.reservas import DisponibilidadResponse, HorarioLibreResponse
from services.disponibilidad import DisponibilidadService
from services.errors import OcupacionError
from utils.http_errors import a_http, error_interno
from utils.timezone import ahora_local

router = APIRouter(prefix="/disponibilidad", tags=["Disponibilidad"])


@router.get("/habitaciones/{habitacion_id}", response_model=DisponibilidadResponse)
def horarios_libres(
    habitacion_id: int,
    dia: Optional[date] = Query(None, description="Día a consultar (YYYY-MM-DD), por defecto hoy"),
    db: Session = Depends(conexion.get_db)
):
    """Ventanas libres del día de al menos MIN_GAP_MINUTOS"""
    try:
        dia = dia or ahora_local().date()
        horarios = DisponibilidadService.horarios_libres(db, habitacion_id, dia)
        return DisponibilidadResponse(
            habitacion_id=habitacion_id,
            dia=dia,
            horarios=[HorarioLibreResponse(inicio=h.inicio, fin=h.fin) for h in horarios],
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("disponibilidad", "Error al calcular horarios", e, "Error al consultar disponibilidad")
