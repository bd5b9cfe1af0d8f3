"""
Resolución de tarifas y cálculo del cargo por turno.

Tarifa = precio de la promoción (si hay una válida para la categoría)
o precio_normal de la categoría. Total = tarifa * (horas + minutos / 60).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from models.ocupacion import CategoriaHabitacion, Promocion, Reserva
from models.facturacion import Movimiento
from services.errors import InvalidPromotion, InvalidState, NotFound, InvalidInput, confirmar
from utils.logging_utils import log_event

CENTAVOS = Decimal("0.01")


def _a_decimal(valor) -> Decimal:
    if isinstance(valor, Decimal):
        return valor
    return Decimal(str(valor))


class TarifaService:
    """Servicio para resolver tarifas y calcular el total de un turno"""

    @staticmethod
    def resolver_tarifa(
        db: Session,
        categoria: CategoriaHabitacion,
        promocion_id: Optional[int] = None
    ) -> Decimal:
        """
        Devuelve la tarifa horaria aplicable.

        Raises:
            InvalidPromotion: la promoción no existe, está anulada o es de otra categoría
        """
        if promocion_id is None:
            return _a_decimal(categoria.precio_normal)

        promocion = db.query(Promocion).filter(Promocion.id == promocion_id).first()
        if not promocion or promocion.anulado:
            raise InvalidPromotion(f"La promoción {promocion_id} no es válida")
        if promocion.categoria_id != categoria.id:
            raise InvalidPromotion(
                f"La promoción {promocion_id} no corresponde a la categoría {categoria.nombre}"
            )
        return _a_decimal(promocion.tarifa)

    @staticmethod
    def calcular_total(
        tarifa,
        horas: int,
        minutos: int,
        personas_extra: int = 0,
        porcentaje: int = 0
    ) -> Decimal:
        """
        tarifa * (horas + minutos/60), redondeado half-up a 2 decimales.
        Con personas_extra > 0 se suma `porcentaje`% del cargo por cada persona extra.
        """
        if horas < 0 or minutos < 0 or personas_extra < 0:
            raise InvalidInput("Horas, minutos y personas extra no pueden ser negativos")

        duracion = Decimal(horas) + Decimal(minutos) / Decimal(60)
        total = _a_decimal(tarifa) * duracion

        if personas_extra and porcentaje:
            recargo = total * Decimal(porcentaje) / Decimal(100) * Decimal(personas_extra)
            total += recargo

        return total.quantize(CENTAVOS, rounding=ROUND_HALF_UP)

    @staticmethod
    def actualizar_promocion(
        db: Session,
        reserva_id: int,
        promocion_id: Optional[int],
        usuario: str = "sistema"
    ) -> Reserva:
        """
        Cambia (o quita) la promoción de una reserva activa y recalcula el cargo
        del turno con las horas/minutos guardados. Los consumos ya cargados en el
        movimiento se conservan.
        """
        try:
            reserva = db.query(Reserva).filter(Reserva.id == reserva_id).first()
            if not reserva:
                raise NotFound(f"Reserva {reserva_id} no encontrada")
            if reserva.is_terminal():
                raise InvalidState("La reserva ya fue finalizada o anulada")

            movimiento = None
            if reserva.movimiento_id is not None:
                movimiento = db.query(Movimiento).filter(
                    Movimiento.id == reserva.movimiento_id
                ).with_for_update().first()
            if not movimiento:
                raise NotFound("El movimiento asociado a la reserva no existe")

            categoria = reserva.habitacion.categoria
            tarifa = TarifaService.resolver_tarifa(db, categoria, promocion_id)
            cargo_turno = TarifaService.calcular_total(
                tarifa, reserva.total_horas or 0, reserva.total_minutos or 0
            )
            consumos = sum(
                (c.total for c in movimiento.consumos if not c.anulado),
                Decimal("0")
            )

            reserva.promocion_id = promocion_id
            movimiento.total_facturado = (cargo_turno + consumos).quantize(CENTAVOS)

            confirmar(db)
            db.refresh(reserva)

            log_event(
                "tarifas", usuario, "Actualizar promoción",
                f"reserva_id={reserva_id} promocion_id={promocion_id} total={movimiento.total_facturado}"
            )
            return reserva

        except Exception as e:
            db.rollback()
            log_event("tarifas", usuario, "Error", f"Error actualizando promoción: {str(e)}")
            raise
