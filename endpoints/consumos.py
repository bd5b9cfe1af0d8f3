"""
Endpoints de consumos: carga, corrección, anulación y resumen por visita
"""
from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import conexion
from schemas.consumos import (
    ConsumoRequest, ConsumoVisitaRequest, CantidadUpdate,
    ConsumoResponse, MovimientoResponse, ResumenConsumosResponse,
)
from services.consumos import ConsumoService
from services.errors import OcupacionError
from services.notificaciones import broadcaster
from utils.http_errors import a_http, error_interno


router = APIRouter(prefix="/consumos", tags=["Consumos"])


@router.post("/movimientos/{movimiento_id}", response_model=MovimientoResponse, status_code=status.HTTP_201_CREATED)
def consumir(movimiento_id: int, datos: ConsumoRequest, db: Session = Depends(conexion.get_db)):
    """Carga todos los ítems o ninguno"""
    try:
        return ConsumoService.consumir(db, movimiento_id, datos.items)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("consumos", "Error al consumir", e, "Error al registrar los consumos")


@router.post("/visita", response_model=MovimientoResponse, status_code=status.HTTP_201_CREATED)
def consumir_en_visita(
    datos: ConsumoVisitaRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(conexion.get_db)
):
    """Carga consumos en el movimiento abierto de la visita y avisa del pedido por WebSocket"""
    try:
        return ConsumoService.consumir_en_visita(
            db, datos.visita_id, datos.habitacion_id, datos.items,
            avisar=partial(background_tasks.add_task, broadcaster.notify),
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("consumos", "Error al consumir en visita", e, "Error al registrar los consumos")


@router.post("/{consumo_id}/anular", response_model=ConsumoResponse)
def anular_consumo(consumo_id: int, db: Session = Depends(conexion.get_db)):
    try:
        return ConsumoService.anular_consumo(db, consumo_id)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("consumos", "Error al anular consumo", e, "Error al anular el consumo")


@router.put("/{consumo_id}/cantidad", response_model=ConsumoResponse)
def actualizar_cantidad(consumo_id: int, datos: CantidadUpdate, db: Session = Depends(conexion.get_db)):
    try:
        return ConsumoService.actualizar_cantidad(db, consumo_id, datos.cantidad)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("consumos", "Error al actualizar cantidad", e, "Error al actualizar el consumo")


@router.get("/visitas/{visita_id}/resumen", response_model=ResumenConsumosResponse)
def resumen_visita(visita_id: int, db: Session = Depends(conexion.get_db)):
    try:
        return ConsumoService.resumen_visita(db, visita_id)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("consumos", "Error al resumir consumos", e, "Error al obtener el resumen")
