"""
Endpoints de reservas: apertura del turno, pausa, extensión, checkout, anulación y promoción
"""
from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import conexion
from models.ocupacion import Reserva
from schemas.reservas import (
    ReservaCreate, AnularReservaRequest, ExtenderReservaRequest, PromocionUpdate, EstadoReservaResponse,
)
from services.errors import OcupacionError
from services.notificaciones import broadcaster
from services.ocupacion import OcupacionService
from services.tarifas import TarifaService
from utils.http_errors import a_http, error_interno


router = APIRouter(prefix="/reservas", tags=["Reservas"])


def _estado(reserva: Reserva) -> EstadoReservaResponse:
    transcurrido = OcupacionService.tiempo_transcurrido(reserva)
    return EstadoReservaResponse(
        id=reserva.id,
        institucion_id=reserva.institucion_id,
        visita_id=reserva.visita_id,
        habitacion_id=reserva.habitacion_id,
        promocion_id=reserva.promocion_id,
        movimiento_id=reserva.movimiento_id,
        fecha_reserva=reserva.fecha_reserva,
        total_horas=reserva.total_horas,
        total_minutos=reserva.total_minutos,
        pausa_horas=reserva.pausa_horas,
        pausa_minutos=reserva.pausa_minutos,
        fecha_fin=reserva.fecha_fin,
        fecha_anula=reserva.fecha_anula,
        pausada=reserva.is_paused(),
        hora_fin_prevista=OcupacionService.hora_fin_prevista(reserva),
        minutos_transcurridos=max(int(transcurrido.total_seconds() // 60), 0),
        total_facturado=reserva.movimiento.total_facturado if reserva.movimiento else None,
    )


# ============================================================================
# APERTURA Y CONSULTA
# ============================================================================

@router.post("", response_model=EstadoReservaResponse, status_code=status.HTTP_201_CREATED)
def reservar(datos: ReservaCreate, db: Session = Depends(conexion.get_db)):
    """Abre un turno: visita, reserva y movimiento inicial con el cargo calculado"""
    try:
        reserva = OcupacionService.reservar(db, datos)
        return _estado(reserva)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al reservar", e, "Error al crear la reserva")


@router.get("/{reserva_id}", response_model=EstadoReservaResponse)
def obtener_reserva(reserva_id: int, db: Session = Depends(conexion.get_db)):
    reserva = db.query(Reserva).filter(Reserva.id == reserva_id).first()
    if not reserva:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reserva no encontrada")
    return _estado(reserva)


# ============================================================================
# RELOJ
# ============================================================================

@router.post("/visitas/{visita_id}/pausar", response_model=EstadoReservaResponse)
def pausar(visita_id: int, db: Session = Depends(conexion.get_db)):
    try:
        return _estado(OcupacionService.pausar(db, visita_id))
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al pausar", e, "Error al pausar la reserva")


@router.post("/visitas/{visita_id}/reanudar", response_model=EstadoReservaResponse)
def reanudar(visita_id: int, db: Session = Depends(conexion.get_db)):
    try:
        return _estado(OcupacionService.reanudar(db, visita_id))
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al reanudar", e, "Error al reanudar la reserva")


# ============================================================================
# CHECKOUT Y ANULACIÓN
# ============================================================================

@router.post("/habitaciones/{habitacion_id}/finalizar", response_model=EstadoReservaResponse)
def finalizar(habitacion_id: int, db: Session = Depends(conexion.get_db)):
    """Checkout de la habitación. No liquida: el pago va por /pagos."""
    try:
        return _estado(OcupacionService.finalizar(db, habitacion_id))
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al finalizar", e, "Error al finalizar la reserva")


@router.post("/{reserva_id}/anular", response_model=EstadoReservaResponse)
def anular(reserva_id: int, datos: AnularReservaRequest, db: Session = Depends(conexion.get_db)):
    try:
        return _estado(OcupacionService.anular(db, reserva_id, datos.motivo))
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al anular", e, "Error al anular la reserva")


@router.put("/{reserva_id}/promocion", response_model=EstadoReservaResponse)
def actualizar_promocion(reserva_id: int, datos: PromocionUpdate, db: Session = Depends(conexion.get_db)):
    """Cambia la promoción y recalcula el cargo del turno con la duración guardada"""
    try:
        return _estado(TarifaService.actualizar_promocion(db, reserva_id, datos.promocion_id))
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al actualizar promoción", e, "Error al actualizar la promoción")


@router.put("/{reserva_id}/extender", response_model=EstadoReservaResponse)
def extender(
    reserva_id: int,
    datos: ExtenderReservaRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(conexion.get_db)
):
    """Suma tiempo al turno, cobra la diferencia y avisa a la institución"""
    try:
        reserva = OcupacionService.extender(
            db, reserva_id, datos.horas, datos.minutos,
            avisar=partial(background_tasks.add_task, broadcaster.notify),
        )
        return _estado(reserva)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("reservas", "Error al extender", e, "Error al extender la reserva")
