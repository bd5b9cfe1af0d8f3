"""
Registro de consumos (frigobar, bar, amenities) contra el movimiento de una visita.
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from config import grupo_institucion
from models.facturacion import Movimiento, Consumo
from models.inventario import Articulo
from models.ocupacion import Habitacion, Visita, Reserva
from services.errors import (
    NotFound, InvalidState, ArticleNotFound, InvalidQuantity, RoomNotFound, confirmar,
)
from services.inventario import InventarioService
from utils.logging_utils import log_event


def _item(item) -> Tuple[int, int]:
    """Acepta dicts o schemas con articulo_id / cantidad"""
    if isinstance(item, dict):
        return item.get("articulo_id"), item.get("cantidad")
    return item.articulo_id, item.cantidad


class ConsumoService:
    """Servicio para cargar, corregir y anular consumos"""

    @staticmethod
    def _movimiento_abierto(db: Session, movimiento_id: int) -> Movimiento:
        movimiento = db.query(Movimiento).filter(
            Movimiento.id == movimiento_id
        ).with_for_update().first()
        if not movimiento:
            raise NotFound(f"Movimiento {movimiento_id} no encontrado")
        if movimiento.anulado:
            raise InvalidState(f"El movimiento {movimiento_id} está anulado")
        if movimiento.pago_id is not None:
            raise InvalidState(f"El movimiento {movimiento_id} ya fue pagado")
        return movimiento

    @staticmethod
    def _cargar_items(db: Session, movimiento: Movimiento, items: Iterable) -> List[Consumo]:
        """Descuenta stock y agrega las líneas. No hace commit."""
        lineas = []
        for item in items:
            articulo_id, cantidad = _item(item)

            articulo = db.query(Articulo).filter(Articulo.id == articulo_id).first()
            if not articulo or articulo.anulado or articulo.institucion_id != movimiento.institucion_id:
                raise ArticleNotFound(f"Artículo {articulo_id} no encontrado")
            if articulo.precio is None or articulo.precio <= 0:
                raise InvalidQuantity(f"El artículo {articulo.nombre} no tiene precio")
            if cantidad is None or cantidad <= 0:
                raise InvalidQuantity(f"Cantidad inválida para {articulo.nombre}")

            de_habitacion, _ = InventarioService.descontar(
                db, articulo.id, movimiento.habitacion_id, cantidad,
                institucion_id=movimiento.institucion_id,
            )

            consumo = Consumo(
                articulo=articulo,
                cantidad=cantidad,
                precio_unitario=articulo.precio,
                es_habitacion=de_habitacion > 0,
                cantidad_habitacion=de_habitacion,
            )
            movimiento.consumos.append(consumo)
            movimiento.total_facturado = (movimiento.total_facturado or Decimal("0")) + articulo.precio * cantidad
            lineas.append(consumo)

        if not lineas:
            raise InvalidQuantity("No se indicaron artículos para consumir")
        return lineas

    @staticmethod
    def consumir(db: Session, movimiento_id: int, items: Iterable, usuario: str = "sistema") -> Movimiento:
        """
        Carga una lista de consumos en el movimiento. Todo o nada: si un ítem
        falla no queda ningún descuento ni línea de los anteriores.
        """
        try:
            movimiento = ConsumoService._movimiento_abierto(db, movimiento_id)
            lineas = ConsumoService._cargar_items(db, movimiento, items)

            confirmar(db)
            db.refresh(movimiento)

            log_event(
                "consumos", usuario, "Consumir",
                f"movimiento_id={movimiento.id} lineas={len(lineas)} total={movimiento.total_facturado}"
            )
            return movimiento

        except Exception as e:
            db.rollback()
            log_event("consumos", usuario, "Error", f"Error cargando consumos: {str(e)}")
            raise

    @staticmethod
    def movimiento_de_visita(db: Session, visita_id: int, habitacion_id: int) -> Movimiento:
        """Devuelve el movimiento abierto de la visita en la habitación, o crea uno en cero"""
        visita = db.query(Visita).filter(Visita.id == visita_id).first()
        if not visita:
            raise NotFound(f"Visita {visita_id} no encontrada")
        if visita.anulado:
            raise InvalidState(f"La visita {visita_id} está anulada")

        habitacion = db.query(Habitacion).filter(Habitacion.id == habitacion_id).first()
        if not habitacion or habitacion.anulado or habitacion.institucion_id != visita.institucion_id:
            raise RoomNotFound(f"Habitación {habitacion_id} no encontrada")

        ocupada = db.query(Reserva.id).filter(
            Reserva.visita_id == visita_id,
            Reserva.habitacion_id == habitacion_id,
            Reserva.fecha_anula.is_(None),
        ).first()
        if not ocupada:
            raise InvalidState(f"La visita {visita_id} no ocupó la habitación {habitacion.nombre}")

        movimiento = db.query(Movimiento).filter(
            Movimiento.visita_id == visita_id,
            Movimiento.habitacion_id == habitacion_id,
            Movimiento.anulado == False,
            Movimiento.pago_id.is_(None),
        ).order_by(Movimiento.id).with_for_update().first()
        if movimiento:
            return movimiento

        movimiento = Movimiento(
            institucion_id=habitacion.institucion_id,
            visita_id=visita_id,
            habitacion_id=habitacion_id,
            total_facturado=Decimal("0"),
        )
        db.add(movimiento)
        db.flush()
        return movimiento

    @staticmethod
    def consumir_en_visita(
        db: Session,
        visita_id: int,
        habitacion_id: int,
        items: Iterable,
        avisar: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
        usuario: str = "sistema"
    ) -> Movimiento:
        """
        Igual que consumir pero ubicando (o creando) el movimiento de la visita.
        Después del commit avisa "nuevo pedido" al grupo de la institución.
        """
        try:
            movimiento = ConsumoService.movimiento_de_visita(db, visita_id, habitacion_id)
            lineas = ConsumoService._cargar_items(db, movimiento, items)

            detalle = ", ".join(f"{l.cantidad} x {l.articulo.nombre}" for l in lineas)
            habitacion_nombre = movimiento.habitacion.nombre
            institucion_id = movimiento.institucion_id

            confirmar(db)
            db.refresh(movimiento)

        except Exception as e:
            db.rollback()
            log_event("consumos", usuario, "Error", f"Error cargando consumos de la visita {visita_id}: {str(e)}")
            raise

        log_event(
            "consumos", usuario, "Consumir en visita",
            f"visita_id={visita_id} movimiento_id={movimiento.id} {detalle}"
        )
        if avisar is not None:
            avisar(
                grupo_institucion(institucion_id),
                {
                    "tipo": "pedido",
                    "habitacion_id": habitacion_id,
                    "mensaje": f"Nuevo pedido en habitación {habitacion_nombre}: {detalle}",
                },
            )
        return movimiento

    @staticmethod
    def _consumo_editable(db: Session, consumo_id: int) -> Consumo:
        consumo = db.query(Consumo).filter(Consumo.id == consumo_id).with_for_update().first()
        if not consumo:
            raise NotFound(f"Consumo {consumo_id} no encontrado")
        if consumo.anulado:
            raise InvalidState(f"El consumo {consumo_id} ya está anulado")
        movimiento = consumo.movimiento
        if movimiento.anulado or movimiento.pago_id is not None:
            raise InvalidState("El movimiento del consumo está anulado o ya fue pagado")
        return consumo

    @staticmethod
    def anular_consumo(db: Session, consumo_id: int, usuario: str = "sistema") -> Consumo:
        """Anula una línea, repone su stock y descuenta su importe del movimiento"""
        try:
            consumo = ConsumoService._consumo_editable(db, consumo_id)
            movimiento = consumo.movimiento

            InventarioService.restaurar(
                db,
                consumo.articulo_id,
                movimiento.habitacion_id,
                consumo.cantidad,
                consumo.es_habitacion,
                cantidad_habitacion=consumo.cantidad_habitacion,
            )
            consumo.anulado = True
            movimiento.total_facturado = movimiento.total_facturado - consumo.total

            confirmar(db)
            db.refresh(consumo)

            log_event("consumos", usuario, "Anular consumo", f"consumo_id={consumo_id}")
            return consumo

        except Exception as e:
            db.rollback()
            log_event("consumos", usuario, "Error", f"Error anulando consumo {consumo_id}: {str(e)}")
            raise

    @staticmethod
    def actualizar_cantidad(db: Session, consumo_id: int, cantidad: int, usuario: str = "sistema") -> Consumo:
        """
        Cambia la cantidad de una línea. Las unidades extra pasan por el ledger;
        las devueltas vuelven primero al general y después a la habitación.
        """
        try:
            if cantidad is None or cantidad <= 0:
                raise InvalidQuantity("La cantidad debe ser mayor a cero")

            consumo = ConsumoService._consumo_editable(db, consumo_id)
            movimiento = consumo.movimiento
            diferencia = cantidad - consumo.cantidad

            if diferencia > 0:
                de_habitacion, _ = InventarioService.descontar(
                    db, consumo.articulo_id, movimiento.habitacion_id, diferencia,
                    motivo="ajuste", institucion_id=movimiento.institucion_id,
                )
                consumo.cantidad_habitacion += de_habitacion
            elif diferencia < 0:
                devueltas = -diferencia
                al_general = min(devueltas, consumo.cantidad_general)
                a_habitacion = devueltas - al_general
                InventarioService.restaurar(
                    db,
                    consumo.articulo_id,
                    movimiento.habitacion_id,
                    devueltas,
                    consumo.es_habitacion,
                    cantidad_habitacion=a_habitacion,
                    motivo="ajuste",
                )
                consumo.cantidad_habitacion -= a_habitacion

            consumo.cantidad = cantidad
            consumo.es_habitacion = consumo.cantidad_habitacion > 0
            movimiento.total_facturado = movimiento.total_facturado + consumo.precio_unitario * diferencia

            confirmar(db)
            db.refresh(consumo)

            log_event(
                "consumos", usuario, "Actualizar cantidad",
                f"consumo_id={consumo_id} cantidad={cantidad} diferencia={diferencia}"
            )
            return consumo

        except Exception as e:
            db.rollback()
            log_event("consumos", usuario, "Error", f"Error actualizando consumo {consumo_id}: {str(e)}")
            raise

    @staticmethod
    def resumen_visita(db: Session, visita_id: int) -> Dict[str, Any]:
        """Totales de consumos activos de la visita separados por nivel de inventario"""
        visita = db.query(Visita).filter(Visita.id == visita_id).first()
        if not visita:
            raise NotFound(f"Visita {visita_id} no encontrada")

        movimientos = [m for m in visita.movimientos if not m.anulado]
        total_habitacion = Decimal("0")
        total_general = Decimal("0")
        items = []

        for movimiento in movimientos:
            for consumo in movimiento.consumos:
                if consumo.anulado:
                    continue
                total_habitacion += consumo.precio_unitario * consumo.cantidad_habitacion
                total_general += consumo.precio_unitario * consumo.cantidad_general
                items.append({
                    "consumo_id": consumo.id,
                    "movimiento_id": movimiento.id,
                    "articulo_id": consumo.articulo_id,
                    "articulo": consumo.articulo.nombre,
                    "cantidad": consumo.cantidad,
                    "precio_unitario": consumo.precio_unitario,
                    "es_habitacion": consumo.es_habitacion,
                    "total": consumo.total,
                })

        return {
            "visita_id": visita_id,
            "items": items,
            "total_habitacion": total_habitacion,
            "total_general": total_general,
            "total_consumos": total_habitacion + total_general,
            "total_facturado": sum((m.total_facturado for m in movimientos), Decimal("0")),
        }
