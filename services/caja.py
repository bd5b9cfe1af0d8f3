"""
Cierre de caja: barre los pagos y egresos sin cierre, acumula los totales por
medio y abre la caja siguiente con el monto inicial indicado.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from models.facturacion import Cierre, Egreso, Pago
from services.errors import ConcurrencyConflict, InvalidState, NothingToClose, InvalidInput, confirmar
from utils.logging_utils import log_event
from utils.timezone import ahora_local


class CajaService:
    """Apertura, cierre y estado de la caja de una institución"""

    @staticmethod
    def caja_abierta(db: Session, institucion_id: int, bloquear: bool = False) -> Optional[Cierre]:
        query = db.query(Cierre).filter(
            Cierre.institucion_id == institucion_id,
            Cierre.cerrado == False,
        ).order_by(Cierre.id.desc())
        if bloquear:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def abrir_caja(
        db: Session,
        institucion_id: int,
        monto_inicial=0,
        observacion: Optional[str] = None,
        ahora: Optional[datetime] = None,
        usuario_id: Optional[int] = None
    ) -> Cierre:
        """Abre una caja nueva. Falla si la institución ya tiene una abierta."""
        usuario = usuario_id or "sistema"
        try:
            monto_inicial = Decimal(str(monto_inicial or 0))
            if monto_inicial < 0:
                raise InvalidInput("El monto inicial no puede ser negativo")
            if CajaService.caja_abierta(db, institucion_id, bloquear=True):
                raise InvalidState("Ya hay una caja abierta")

            cierre = Cierre(
                institucion_id=institucion_id,
                monto_inicial_caja=monto_inicial,
                observaciones=observacion,
                fecha_apertura=ahora or ahora_local(),
                usuario_id=usuario_id,
            )
            db.add(cierre)

            confirmar(db)
            db.refresh(cierre)

            log_event("caja", usuario, "Abrir caja", f"cierre_id={cierre.id} monto_inicial={monto_inicial}")
            return cierre

        except Exception as e:
            db.rollback()
            log_event("caja", usuario, "Error", f"Error abriendo caja: {str(e)}")
            raise

    @staticmethod
    def registrar_egreso(
        db: Session,
        institucion_id: int,
        descripcion: str,
        precio,
        cantidad: int = 1,
        ahora: Optional[datetime] = None,
        usuario_id: Optional[int] = None
    ) -> Egreso:
        """Anota un gasto pagado con la caja; entra en el próximo cierre"""
        usuario = usuario_id or "sistema"
        try:
            precio = Decimal(str(precio))
            descripcion = (descripcion or "").strip()
            if not descripcion:
                raise InvalidInput("El egreso necesita una descripción")
            if precio < 0 or cantidad is None or cantidad <= 0:
                raise InvalidInput("Cantidad y precio del egreso no son válidos")

            egreso = Egreso(
                institucion_id=institucion_id,
                descripcion=descripcion,
                cantidad=cantidad,
                precio=precio,
                fecha=ahora or ahora_local(),
                usuario_id=usuario_id,
            )
            db.add(egreso)

            confirmar(db)
            db.refresh(egreso)

            log_event("caja", usuario, "Registrar egreso", f"egreso_id={egreso.id} total={egreso.total}")
            return egreso

        except Exception as e:
            db.rollback()
            log_event("caja", usuario, "Error", f"Error registrando egreso: {str(e)}")
            raise

    @staticmethod
    def cerrar_caja(
        db: Session,
        institucion_id: int,
        monto_inicial_siguiente=0,
        observacion: Optional[str] = None,
        ahora: Optional[datetime] = None,
        usuario_id: Optional[int] = None
    ) -> Tuple[Cierre, Cierre]:
        """
        Cierra la caja abierta (la crea en cero si no hay) con todos los pagos
        y egresos pendientes de la institución y abre la siguiente.

        Returns:
            (cierre_cerrado, caja_nueva)

        Raises:
            NothingToClose: no hay pagos sin cierre
            ConcurrencyConflict: otro cierre simultáneo ya abrió la caja siguiente
        """
        usuario = usuario_id or "sistema"
        try:
            monto_inicial_siguiente = Decimal(str(monto_inicial_siguiente or 0))
            if monto_inicial_siguiente < 0:
                raise InvalidInput("El monto inicial no puede ser negativo")

            ahora = ahora or ahora_local()

            cierre = CajaService.caja_abierta(db, institucion_id, bloquear=True)
            if not cierre:
                cierre = Cierre(
                    institucion_id=institucion_id,
                    monto_inicial_caja=Decimal("0"),
                    fecha_apertura=ahora,
                    usuario_id=usuario_id,
                )
                db.add(cierre)
                db.flush()

            pagos = db.query(Pago).filter(
                Pago.institucion_id == institucion_id,
                Pago.cierre_id.is_(None),
            ).with_for_update().all()
            if not pagos:
                raise NothingToClose("No hay pagos para cerrar la caja")

            egresos = db.query(Egreso).filter(
                Egreso.institucion_id == institucion_id,
                Egreso.cierre_id.is_(None),
            ).with_for_update().all()

            efectivo = Decimal("0")
            tarjeta = Decimal("0")
            billetera = Decimal("0")
            for pago in pagos:
                pago.cierre_id = cierre.id
                efectivo += pago.monto_efectivo or 0
                tarjeta += pago.monto_tarjeta or 0
                billetera += pago.monto_billetera or 0

            gastado = Decimal("0")
            for egreso in egresos:
                egreso.cierre_id = cierre.id
                gastado += egreso.total

            cierre.total_ingresos_efectivo = (cierre.total_ingresos_efectivo or 0) + efectivo
            cierre.total_ingresos_tarjeta = (cierre.total_ingresos_tarjeta or 0) + tarjeta
            cierre.total_ingresos_billetera = (cierre.total_ingresos_billetera or 0) + billetera
            cierre.total_egresos = (cierre.total_egresos or 0) + gastado
            cierre.cerrado = True
            cierre.fecha_hora_cierre = ahora
            if observacion:
                cierre.observaciones = observacion
            if usuario_id is not None:
                cierre.usuario_id = usuario_id

            # la caja vieja tiene que quedar cerrada antes de insertar la nueva (índice parcial)
            db.flush()

            nueva = Cierre(
                institucion_id=institucion_id,
                monto_inicial_caja=monto_inicial_siguiente,
                fecha_apertura=ahora,
                usuario_id=usuario_id,
            )
            db.add(nueva)

            confirmar(db)
            db.refresh(cierre)
            db.refresh(nueva)

            log_event(
                "caja", usuario, "Cerrar caja",
                f"cierre_id={cierre.id} pagos={len(pagos)} efectivo={efectivo} "
                f"tarjeta={tarjeta} billetera={billetera} egresos={len(egresos)} gastado={gastado} "
                f"nueva_caja={nueva.id}"
            )
            return cierre, nueva

        except (IntegrityError, OperationalError) as e:
            db.rollback()
            log_event("caja", usuario, "Error", f"Conflicto cerrando caja: {str(e)}")
            raise ConcurrencyConflict("Otra operación de caja se ejecutó al mismo tiempo, reintente") from e
        except Exception as e:
            db.rollback()
            log_event("caja", usuario, "Error", f"Error cerrando caja: {str(e)}")
            raise

    @staticmethod
    def estado_caja(db: Session, institucion_id: int) -> Dict[str, Any]:
        """Cierres anteriores, caja actual, y pagos y egresos todavía sin cierre con sus totales"""
        cierres = db.query(Cierre).filter(
            Cierre.institucion_id == institucion_id,
            Cierre.cerrado == True,
        ).order_by(Cierre.fecha_hora_cierre.desc(), Cierre.id.desc()).all()

        pendientes = db.query(Pago).filter(
            Pago.institucion_id == institucion_id,
            Pago.cierre_id.is_(None),
        ).order_by(Pago.fecha_hora).all()

        egresos = db.query(Egreso).filter(
            Egreso.institucion_id == institucion_id,
            Egreso.cierre_id.is_(None),
        ).order_by(Egreso.fecha).all()

        efectivo = sum((p.monto_efectivo or Decimal("0") for p in pendientes), Decimal("0"))
        tarjeta = sum((p.monto_tarjeta or Decimal("0") for p in pendientes), Decimal("0"))
        billetera = sum((p.monto_billetera or Decimal("0") for p in pendientes), Decimal("0"))

        return {
            "cierres": cierres,
            "caja_actual": CajaService.caja_abierta(db, institucion_id),
            "pagos_pendientes": pendientes,
            "total_efectivo": efectivo,
            "total_tarjeta": tarjeta,
            "total_billetera": billetera,
            "total": efectivo + tarjeta + billetera,
            "egresos_pendientes": egresos,
            "total_egresos": sum((e.total for e in egresos), Decimal("0")),
        }
