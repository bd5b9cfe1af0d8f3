"""
Endpoints de liquidación de visitas
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import conexion
from schemas.pagos import PagoCreate, PagoResponse, TotalVisitaResponse
from services.errors import OcupacionError
from services.pagos import PagoService
from utils.http_errors import a_http, error_interno


router = APIRouter(prefix="/pagos", tags=["Pagos"])


@router.post("/visitas/{visita_id}", response_model=PagoResponse, status_code=status.HTTP_201_CREATED)
def pagar_visita(visita_id: int, datos: PagoCreate, db: Session = Depends(conexion.get_db)):
    """Liquida todos los movimientos impagos de la visita en un único pago"""
    try:
        return PagoService.pagar_visita(
            db,
            visita_id,
            efectivo=datos.efectivo,
            tarjeta=datos.tarjeta,
            billetera=datos.billetera,
            descuento=datos.descuento,
            medio_pago_id=datos.medio_pago_id,
            recargo=datos.recargo.model_dump() if datos.recargo else None,
            observacion=datos.observacion,
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("pagos", "Error al pagar visita", e, "Error al registrar el pago")


@router.get("/visitas/{visita_id}/total", response_model=TotalVisitaResponse)
def total_visita(visita_id: int, db: Session = Depends(conexion.get_db)):
    try:
        return PagoService.total_visita(db, visita_id)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("pagos", "Error al calcular total", e, "Error al obtener el total de la visita")
