"""
Endpoints de Caja - Apertura, egresos, cierre y estado
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import conexion
from schemas.caja import (
    AbrirCajaRequest, CerrarCajaRequest, EgresoCreate,
    CierreResponse, CierreCajaResponse, EgresoResponse, EstadoCajaResponse,
)
from services.caja import CajaService
from services.errors import OcupacionError
from utils.http_errors import a_http, error_interno


router = APIRouter(prefix="/caja", tags=["Caja"])


@router.get("/{institucion_id}", response_model=EstadoCajaResponse)
def estado_caja(institucion_id: int, db: Session = Depends(conexion.get_db)):
    """Cierres anteriores, caja actual y pagos que todavía no entraron en un cierre"""
    try:
        return CajaService.estado_caja(db, institucion_id)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("caja", "Error al obtener estado", e, "Error al obtener el estado de caja")


@router.post("/{institucion_id}/abrir", response_model=CierreResponse, status_code=status.HTTP_201_CREATED)
def abrir_caja(institucion_id: int, datos: AbrirCajaRequest, db: Session = Depends(conexion.get_db)):
    try:
        return CajaService.abrir_caja(
            db, institucion_id, datos.monto_inicial, datos.observacion, usuario_id=datos.usuario_id
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("caja", "Error al abrir caja", e, "Error al abrir la caja")


@router.post("/{institucion_id}/egresos", response_model=EgresoResponse, status_code=status.HTTP_201_CREATED)
def registrar_egreso(institucion_id: int, datos: EgresoCreate, db: Session = Depends(conexion.get_db)):
    """Gasto pagado con la caja; se descuenta del efectivo en el próximo cierre"""
    try:
        return CajaService.registrar_egreso(
            db, institucion_id, datos.descripcion, datos.precio, datos.cantidad,
            usuario_id=datos.usuario_id,
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("caja", "Error al registrar egreso", e, "Error al registrar el egreso")


@router.post("/{institucion_id}/cerrar", response_model=CierreCajaResponse)
def cerrar_caja(institucion_id: int, datos: CerrarCajaRequest, db: Session = Depends(conexion.get_db)):
    """
    Cierra la caja con todos los pagos pendientes y abre la siguiente.
    No se reintenta ante conflicto: el cliente debe volver a consultar el estado.
    """
    try:
        cierre, nueva = CajaService.cerrar_caja(
            db, institucion_id, datos.monto_inicial_siguiente, datos.observacion,
            usuario_id=datos.usuario_id,
        )
        return CierreCajaResponse(
            cierre=CierreResponse.model_validate(cierre),
            caja_nueva=CierreResponse.model_validate(nueva),
            total_ingresos=cierre.total_ingresos(),
            saldo_efectivo=cierre.saldo_efectivo(),
        )
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("caja", "Error al cerrar caja", e, "Error al cerrar la caja")
