"""
Services para la sesión de ocupación de una habitación
Contiene lógica de negocio para:
- Reserva (apertura del turno con su movimiento inicial)
- Pausa y reanudación del reloj
- Extensión del turno
- Checkout (finalización)
- Anulación con reposición de stock
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from config import LARGO_MAX_MOTIVO, grupo_institucion
from models.ocupacion import Habitacion, Visita, Reserva, Registro
from models.facturacion import Movimiento
from services.consumos import ConsumoService
from services.disponibilidad import DisponibilidadService
from services.errors import (
    NotFound, InvalidState, InvalidInput, InvalidReason,
    RoomNotFound, RoomUnavailable, confirmar,
)
from services.inventario import InventarioService
from services.tarifas import TarifaService
from utils.logging_utils import log_event
from utils.timezone import ahora_local


def _minutos(horas: Optional[int], minutos: Optional[int]) -> int:
    return (horas or 0) * 60 + (minutos or 0)


def formatear_fecha(dt: datetime) -> str:
    """Formato d/M/yyyy HH:mm usado en los registros"""
    return f"{dt.day}/{dt.month}/{dt.year} {dt:%H:%M}"


class OcupacionService:
    """Servicio para reservar, pausar, finalizar y anular turnos"""

    # ------------------------------------------------------------------
    # Consultas de tiempo
    # ------------------------------------------------------------------

    @staticmethod
    def hora_fin_prevista(reserva: Reserva) -> datetime:
        return reserva.fecha_reserva + timedelta(
            hours=reserva.total_horas or 0, minutes=reserva.total_minutos or 0
        )

    @staticmethod
    def tiempo_transcurrido(reserva: Reserva, ahora: Optional[datetime] = None) -> timedelta:
        """Pausada: el offset congelado. Corriendo: ahora - inicio."""
        if reserva.is_paused():
            return timedelta(minutes=_minutos(reserva.pausa_horas, reserva.pausa_minutos))
        ahora = ahora or ahora_local()
        return ahora - reserva.fecha_reserva

    @staticmethod
    def reserva_activa_de_visita(db: Session, visita_id: int) -> Reserva:
        visita = db.query(Visita).filter(Visita.id == visita_id).first()
        if not visita:
            raise NotFound(f"Visita {visita_id} no encontrada")

        reserva = db.query(Reserva).filter(
            Reserva.visita_id == visita_id,
            Reserva.fecha_fin.is_(None),
            Reserva.fecha_anula.is_(None),
        ).order_by(Reserva.fecha_reserva.desc()).with_for_update().first()
        if not reserva:
            raise InvalidState(f"La visita {visita_id} no tiene una reserva activa")
        return reserva

    # ------------------------------------------------------------------
    # Reserva
    # ------------------------------------------------------------------

    @staticmethod
    def reservar(db: Session, datos, ahora: Optional[datetime] = None) -> Reserva:
        """
        Abre un turno: crea Visita, Reserva y el Movimiento inicial con el cargo
        del turno ya calculado, y marca la habitación como ocupada.

        `datos` es un ReservaCreate (o cualquier objeto con los mismos atributos).

        Raises:
            RoomNotFound, RoomUnavailable, InvalidPromotion, InvalidInput
        """
        usuario = getattr(datos, "usuario_id", None) or "sistema"
        try:
            horas = datos.total_horas or 0
            minutos = datos.total_minutos or 0
            if horas < 0 or minutos < 0 or horas * 60 + minutos <= 0:
                raise InvalidInput("La duración del turno no es válida")

            habitacion = db.query(Habitacion).filter(
                Habitacion.id == datos.habitacion_id
            ).with_for_update().first()
            if not habitacion or habitacion.anulado:
                raise RoomNotFound(f"Habitación {datos.habitacion_id} no encontrada")
            if not habitacion.disponible or habitacion.visita_id is not None:
                raise RoomUnavailable(f"La habitación {habitacion.nombre} no está disponible")

            ahora = ahora or ahora_local()
            inicio = getattr(datos, "fecha_reserva", None) or ahora
            fin = inicio + timedelta(hours=horas, minutes=minutos)

            if getattr(datos, "validar_horario", False):
                if not DisponibilidadService.entra_en_horario_libre(db, habitacion.id, inicio, fin, ahora):
                    raise InvalidState(
                        f"La habitación {habitacion.nombre} no tiene horario libre para ese turno"
                    )

            categoria = habitacion.categoria
            tarifa = TarifaService.resolver_tarifa(db, categoria, datos.promocion_id)
            total = TarifaService.calcular_total(
                tarifa, horas, minutos,
                personas_extra=getattr(datos, "personas_extra", 0) or 0,
                porcentaje=categoria.porcentaje_persona_extra or 0,
            )

            visita = Visita(
                institucion_id=habitacion.institucion_id,
                patente_vehiculo=getattr(datos, "patente_vehiculo", None),
                numero_telefono=getattr(datos, "numero_telefono", None),
                identificador=getattr(datos, "identificador", None),
                fecha_primer_ingreso=inicio,
                usuario_id=getattr(datos, "usuario_id", None),
            )
            db.add(visita)
            db.flush()

            movimiento = Movimiento(
                institucion_id=habitacion.institucion_id,
                visita_id=visita.id,
                habitacion_id=habitacion.id,
                total_facturado=total,
                usuario_id=getattr(datos, "usuario_id", None),
            )
            db.add(movimiento)
            db.flush()

            reserva = Reserva(
                institucion_id=habitacion.institucion_id,
                visita_id=visita.id,
                habitacion_id=habitacion.id,
                promocion_id=datos.promocion_id,
                movimiento_id=movimiento.id,
                fecha_reserva=inicio,
                total_horas=horas,
                total_minutos=minutos,
                usuario_id=getattr(datos, "usuario_id", None),
            )
            db.add(reserva)

            habitacion.disponible = False
            habitacion.visita_id = visita.id

            confirmar(db)
            db.refresh(reserva)

            log_event(
                "ocupacion", usuario, "Reservar",
                f"habitacion={habitacion.nombre} reserva_id={reserva.id} "
                f"duracion={horas}h{minutos:02d}m total={total}"
            )
            return reserva

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error reservando habitación: {str(e)}")
            raise

    # ------------------------------------------------------------------
    # Pausa
    # ------------------------------------------------------------------

    @staticmethod
    def pausar(
        db: Session,
        visita_id: int,
        ahora: Optional[datetime] = None,
        usuario: str = "sistema"
    ) -> Reserva:
        """
        Congela el reloj: offset = ahora - inicio - offset previo (mínimo cero).
        Pausar de nuevo sobrescribe el offset (la última llamada gana).
        """
        try:
            reserva = OcupacionService.reserva_activa_de_visita(db, visita_id)
            ahora = ahora or ahora_local()

            previo = timedelta(minutes=_minutos(reserva.pausa_horas, reserva.pausa_minutos))
            transcurrido = ahora - reserva.fecha_reserva - previo
            total_minutos = max(int(transcurrido.total_seconds() // 60), 0)

            reserva.pausa_horas, reserva.pausa_minutos = divmod(total_minutos, 60)

            confirmar(db)
            db.refresh(reserva)

            log_event(
                "ocupacion", usuario, "Pausar",
                f"reserva_id={reserva.id} offset={reserva.pausa_horas}h{reserva.pausa_minutos:02d}m"
            )
            return reserva

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error pausando visita {visita_id}: {str(e)}")
            raise

    @staticmethod
    def reanudar(db: Session, visita_id: int, usuario: str = "sistema") -> Reserva:
        """Limpia el offset de pausa y el reloj vuelve a correr desde el inicio"""
        try:
            reserva = OcupacionService.reserva_activa_de_visita(db, visita_id)
            reserva.pausa_horas = None
            reserva.pausa_minutos = None

            confirmar(db)
            db.refresh(reserva)

            log_event("ocupacion", usuario, "Reanudar", f"reserva_id={reserva.id}")
            return reserva

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error reanudando visita {visita_id}: {str(e)}")
            raise

    # ------------------------------------------------------------------
    # Extensión
    # ------------------------------------------------------------------

    @staticmethod
    def extender(
        db: Session,
        reserva_id: int,
        horas: int = 0,
        minutos: int = 0,
        avisar: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
        usuario: str = "sistema"
    ) -> Reserva:
        """
        Suma tiempo al turno. Los minutos se acumulan tal cual (90 minutos es
        una hora y media). El tiempo extra se cobra con la tarifa vigente de la
        reserva: la diferencia entre el cargo nuevo y el anterior va al
        movimiento inicial, o al movimiento abierto de la visita si el inicial
        ya se pagó. Después del commit avisa a la institución.

        Raises:
            NotFound, InvalidState, InvalidInput, InvalidPromotion
        """
        try:
            horas = horas or 0
            minutos = minutos or 0
            if horas < 0 or minutos < 0 or horas * 60 + minutos <= 0:
                raise InvalidInput("La extensión del turno no es válida")

            reserva = db.query(Reserva).filter(Reserva.id == reserva_id).with_for_update().first()
            if not reserva:
                raise NotFound(f"Reserva {reserva_id} no encontrada")
            if reserva.is_terminal():
                raise InvalidState("La reserva ya fue finalizada o anulada")

            tarifa = TarifaService.resolver_tarifa(db, reserva.habitacion.categoria, reserva.promocion_id)
            horas_antes = reserva.total_horas or 0
            minutos_antes = reserva.total_minutos or 0
            diferencia = (
                TarifaService.calcular_total(tarifa, horas_antes + horas, minutos_antes + minutos)
                - TarifaService.calcular_total(tarifa, horas_antes, minutos_antes)
            )

            movimiento = None
            if reserva.movimiento_id is not None:
                movimiento = db.query(Movimiento).filter(
                    Movimiento.id == reserva.movimiento_id,
                    Movimiento.anulado == False,
                    Movimiento.pago_id.is_(None),
                ).with_for_update().first()
            if movimiento is None:
                movimiento = ConsumoService.movimiento_de_visita(db, reserva.visita_id, reserva.habitacion_id)
            movimiento.total_facturado = (movimiento.total_facturado or Decimal("0")) + diferencia

            reserva.total_horas = horas_antes + horas
            reserva.total_minutos = minutos_antes + minutos

            confirmar(db)
            db.refresh(reserva)

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error extendiendo reserva {reserva_id}: {str(e)}")
            raise

        log_event(
            "ocupacion", usuario, "Extender",
            f"reserva_id={reserva.id} extension={horas}h{minutos:02d}m "
            f"movimiento_id={movimiento.id} cargo_extra={diferencia}"
        )
        if avisar is not None:
            avisar(
                grupo_institucion(reserva.institucion_id),
                {
                    "tipo": "info",
                    "habitacion_id": reserva.habitacion_id,
                    "mensaje": (
                        f"Reserva extendida - Total: {reserva.total_horas}h {reserva.total_minutos}min"
                    ),
                },
            )
        return reserva

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @staticmethod
    def finalizar(
        db: Session,
        habitacion_id: int,
        ahora: Optional[datetime] = None,
        usuario: str = "sistema"
    ) -> Reserva:
        """
        Checkout: cierra la reserva activa y libera la habitación.
        No liquida; el pago es una operación aparte.
        """
        try:
            habitacion = db.query(Habitacion).filter(
                Habitacion.id == habitacion_id
            ).with_for_update().first()
            if not habitacion or habitacion.anulado:
                raise RoomNotFound(f"Habitación {habitacion_id} no encontrada")
            if habitacion.visita_id is None:
                raise InvalidState(f"La habitación {habitacion.nombre} no tiene una visita activa")

            reserva = db.query(Reserva).filter(
                Reserva.visita_id == habitacion.visita_id,
                Reserva.habitacion_id == habitacion.id,
                Reserva.fecha_fin.is_(None),
                Reserva.fecha_anula.is_(None),
            ).order_by(Reserva.fecha_reserva.desc()).first()
            if not reserva:
                raise InvalidState(f"La habitación {habitacion.nombre} no tiene una reserva activa")

            reserva.fecha_fin = ahora or ahora_local()
            habitacion.disponible = True
            habitacion.visita_id = None

            confirmar(db)
            db.refresh(reserva)

            log_event(
                "ocupacion", usuario, "Finalizar",
                f"habitacion={habitacion.nombre} reserva_id={reserva.id}"
            )
            return reserva

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error finalizando habitación {habitacion_id}: {str(e)}")
            raise

    # ------------------------------------------------------------------
    # Anulación
    # ------------------------------------------------------------------

    @staticmethod
    def anular(
        db: Session,
        reserva_id: int,
        motivo: str,
        ahora: Optional[datetime] = None,
        usuario: str = "sistema"
    ) -> Reserva:
        """
        Anula la reserva y todo lo que colgaba de la visita: movimientos,
        consumos (reponiendo su stock) y la visita misma. Libera la habitación
        y deja un Registro con el motivo. Todo o nada.
        """
        try:
            motivo = (motivo or "").strip()
            if len(motivo) > LARGO_MAX_MOTIVO:
                raise InvalidReason(f"El motivo no puede superar {LARGO_MAX_MOTIVO} caracteres")

            reserva = db.query(Reserva).filter(Reserva.id == reserva_id).with_for_update().first()
            if not reserva:
                raise NotFound(f"Reserva {reserva_id} no encontrada")
            if reserva.is_terminal():
                raise InvalidState("La reserva ya fue finalizada o anulada")

            ahora = ahora or ahora_local()
            visita = reserva.visita
            habitacion = reserva.habitacion

            movimientos = db.query(Movimiento).filter(
                Movimiento.visita_id == visita.id,
                Movimiento.anulado == False,
            ).with_for_update().all()

            for movimiento in movimientos:
                for consumo in movimiento.consumos:
                    if consumo.anulado:
                        continue
                    InventarioService.restaurar(
                        db,
                        consumo.articulo_id,
                        movimiento.habitacion_id,
                        consumo.cantidad,
                        consumo.es_habitacion,
                        cantidad_habitacion=consumo.cantidad_habitacion,
                    )
                    consumo.anulado = True
                movimiento.anulado = True

            reserva.fecha_anula = ahora
            visita.anulado = True
            if habitacion.visita_id == visita.id:
                habitacion.disponible = True
                habitacion.visita_id = None

            db.add(Registro(
                institucion_id=reserva.institucion_id,
                reserva_id=reserva.id,
                contenido=(
                    f"Se anuló la visita a la habitación {habitacion.nombre} "
                    f"a las {formatear_fecha(ahora)} por el motivo de: {motivo}"
                ),
                fecha=ahora,
            ))

            confirmar(db)
            db.refresh(reserva)

            log_event(
                "ocupacion", usuario, "Anular",
                f"reserva_id={reserva.id} movimientos={len(movimientos)} motivo={motivo}"
            )
            return reserva

        except Exception as e:
            db.rollback()
            log_event("ocupacion", usuario, "Error", f"Error anulando reserva {reserva_id}: {str(e)}")
            raise
