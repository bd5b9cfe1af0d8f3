"""
Endpoints de inventario
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import conexion
from schemas.inventario import ReconciliacionResponse
from services.errors import OcupacionError, con_reintento
from services.inventario import InventarioService
from utils.http_errors import a_http, error_interno


router = APIRouter(prefix="/inventario", tags=["Inventario"])


@router.post("/instituciones/{institucion_id}/reconciliar", response_model=ReconciliacionResponse)
def reconciliar(institucion_id: int, db: Session = Depends(conexion.get_db)):
    """Sincroniza el inventario general con el catálogo de artículos. Se reintenta una vez ante conflicto."""
    try:
        return con_reintento(InventarioService.reconciliar, db, institucion_id)
    except OcupacionError as e:
        raise a_http(e)
    except HTTPException:
        raise
    except Exception as e:
        raise error_interno("inventario", "Error al reconciliar", e, "Error al reconciliar el inventario")
