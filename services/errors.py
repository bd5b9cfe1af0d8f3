"""
Errores de negocio del motor de ocupación y facturación.

Los servicios lanzan estas excepciones (después de hacer rollback) y los
routers las traducen a códigos HTTP. Cada error lleva un `mensaje` pensado
para mostrarse al operador.
"""

from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

T = TypeVar("T")


class OcupacionError(Exception):
    """Base de todos los errores de negocio"""

    status_code = 500

    def __init__(self, mensaje: str):
        super().__init__(mensaje)
        self.mensaje = mensaje


# ----------------------------------------------------------------------------
# Tipos de error
# ----------------------------------------------------------------------------

class NotFound(OcupacionError):
    status_code = 404


class InvalidState(OcupacionError):
    status_code = 409


class InvalidInput(OcupacionError):
    status_code = 400


class InsufficientStock(OcupacionError):
    status_code = 409


class ConcurrencyConflict(OcupacionError):
    status_code = 409


# ----------------------------------------------------------------------------
# Errores concretos
# ----------------------------------------------------------------------------

class RoomNotFound(NotFound):
    pass


class RoomUnavailable(InvalidState):
    pass


class InvalidPromotion(InvalidInput):
    pass


class InvalidReason(InvalidInput):
    pass


class ArticleNotFound(NotFound):
    pass


class InvalidQuantity(InvalidInput):
    pass


class NothingToSettle(InvalidState):
    pass


class InvalidPaymentMethod(NotFound):
    pass


class NothingToClose(InvalidState):
    pass


def confirmar(db: Session) -> None:
    """
    Commit de la transacción actual.
    Los conflictos del motor (lock, índice único parcial) salen como ConcurrencyConflict.
    """
    try:
        db.commit()
    except (OperationalError, IntegrityError) as e:
        db.rollback()
        raise ConcurrencyConflict("La operación entró en conflicto con otra operación concurrente") from e


def con_reintento(fn: Callable[..., T], *args, **kwargs) -> T:
    """Ejecuta una operación idempotente y la reintenta una vez ante ConcurrencyConflict"""
    try:
        return fn(*args, **kwargs)
    except ConcurrencyConflict:
        return fn(*args, **kwargs)
