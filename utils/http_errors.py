from fastapi import HTTPException, status

from services.errors import OcupacionError
from utils.logging_utils import log_error


def a_http(error: OcupacionError) -> HTTPException:
    """Traduce un error de negocio a HTTPException con su código (404/409/400)"""
    return HTTPException(status_code=error.status_code, detail=error.mensaje)


def error_interno(area: str, accion: str, error: Exception, detalle: str) -> HTTPException:
    """Loguea un error inesperado y devuelve un 500 con mensaje genérico"""
    log_error(area, "sistema", accion, f"error={str(error)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detalle
    )
