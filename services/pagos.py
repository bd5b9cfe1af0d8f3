"""
Liquidación de visitas: junta los movimientos impagos y los vincula a un Pago.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from models.facturacion import Movimiento, MedioPago, Pago, Recargo
from models.ocupacion import Visita
from services.errors import (
    NotFound, InvalidInput, NothingToSettle, InvalidPaymentMethod, confirmar,
)
from utils.logging_utils import log_event


def _monto(valor) -> Decimal:
    if valor is None:
        return Decimal("0")
    if not isinstance(valor, Decimal):
        valor = Decimal(str(valor))
    if valor < 0:
        raise InvalidInput("Los montos del pago no pueden ser negativos")
    return valor


class PagoService:
    """Servicio de liquidación de visitas"""

    @staticmethod
    def pagar_visita(
        db: Session,
        visita_id: int,
        efectivo=0,
        tarjeta=0,
        billetera=0,
        descuento=0,
        medio_pago_id: Optional[int] = None,
        recargo: Optional[Dict[str, Any]] = None,
        observacion: Optional[str] = None,
        usuario: str = "sistema"
    ) -> Pago:
        """
        Crea un Pago con los montos por medio y vincula todos los movimientos
        activos e impagos de la visita. No exige checkout previo.

        `recargo` es un dict con `valor` y opcionalmente `descripcion`.

        Raises:
            NotFound, NothingToSettle, InvalidPaymentMethod, InvalidInput
        """
        try:
            montos = {
                "monto_efectivo": _monto(efectivo),
                "monto_tarjeta": _monto(tarjeta),
                "monto_billetera": _monto(billetera),
                "monto_descuento": _monto(descuento),
            }

            visita = db.query(Visita).filter(Visita.id == visita_id).first()
            if not visita:
                raise NotFound(f"Visita {visita_id} no encontrada")

            movimientos = db.query(Movimiento).filter(
                Movimiento.visita_id == visita_id,
                Movimiento.anulado == False,
                Movimiento.pago_id.is_(None),
            ).with_for_update().all()
            if not movimientos:
                raise NothingToSettle(f"La visita {visita_id} no tiene movimientos pendientes de pago")

            medio_pago = None
            if medio_pago_id is not None:
                medio_pago = db.query(MedioPago).filter(MedioPago.id == medio_pago_id).first()
            if not medio_pago or not medio_pago.activo:
                raise InvalidPaymentMethod(f"Medio de pago {medio_pago_id} no válido")

            pago = Pago(
                institucion_id=visita.institucion_id,
                medio_pago_id=medio_pago.id,
                observacion=observacion,
                **montos,
            )
            db.add(pago)

            if recargo:
                valor_recargo = _monto(recargo.get("valor"))
                pago.recargos.append(Recargo(
                    valor=valor_recargo,
                    descripcion=recargo.get("descripcion"),
                ))

            for movimiento in movimientos:
                movimiento.pago = pago

            confirmar(db)
            db.refresh(pago)

            log_event(
                "pagos", usuario, "Pagar visita",
                f"visita_id={visita_id} pago_id={pago.id} movimientos={len(movimientos)} "
                f"efectivo={montos['monto_efectivo']} tarjeta={montos['monto_tarjeta']} "
                f"billetera={montos['monto_billetera']}"
            )
            return pago

        except Exception as e:
            db.rollback()
            log_event("pagos", usuario, "Error", f"Error pagando visita {visita_id}: {str(e)}")
            raise

    @staticmethod
    def total_visita(db: Session, visita_id: int) -> Dict[str, Any]:
        """Total facturado de la visita (movimientos activos) y cuánto falta pagar"""
        visita = db.query(Visita).filter(Visita.id == visita_id).first()
        if not visita:
            raise NotFound(f"Visita {visita_id} no encontrada")

        activos = [m for m in visita.movimientos if not m.anulado]
        total = sum((m.total_facturado or Decimal("0") for m in activos), Decimal("0"))
        pendiente = sum(
            (m.total_facturado or Decimal("0") for m in activos if m.pago_id is None),
            Decimal("0"),
        )
        return {
            "visita_id": visita_id,
            "total": total,
            "pendiente": pendiente,
            "pagado": total - pendiente,
        }
