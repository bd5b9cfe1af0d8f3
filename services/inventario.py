"""
Ledger de inventario de dos niveles.

Cada artículo tiene stock en la habitación (frigobar) y en el depósito general
de la institución. Un consumo sale primero de la habitación y el faltante del
general. Todas las escrituras se hacen dentro de la transacción del llamador y
quedan auditadas en MovimientoStock.
"""

from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from models.inventario import (
    Articulo, InventarioHabitacion, InventarioGeneral, MovimientoStock, TierInventario
)
from services.errors import ArticleNotFound, InsufficientStock, InvalidQuantity, confirmar
from utils.logging_utils import log_event


class InventarioService:
    """Descuento, reposición y reconciliación de stock"""

    @staticmethod
    def _articulo(db: Session, articulo_id: int) -> Articulo:
        articulo = db.query(Articulo).filter(Articulo.id == articulo_id).first()
        if not articulo:
            raise ArticleNotFound(f"Artículo {articulo_id} no encontrado")
        return articulo

    @staticmethod
    def _inventario_habitacion(db: Session, articulo_id: int, habitacion_id: Optional[int]):
        if habitacion_id is None:
            return None
        return db.query(InventarioHabitacion).filter(
            InventarioHabitacion.habitacion_id == habitacion_id,
            InventarioHabitacion.articulo_id == articulo_id,
            InventarioHabitacion.anulado == False,
        ).with_for_update().first()

    @staticmethod
    def _inventario_general(db: Session, institucion_id: int, articulo_id: int):
        return db.query(InventarioGeneral).filter(
            InventarioGeneral.institucion_id == institucion_id,
            InventarioGeneral.articulo_id == articulo_id,
            InventarioGeneral.anulado == False,
        ).with_for_update().first()

    @staticmethod
    def _auditar(db, articulo: Articulo, habitacion_id, tier: TierInventario, cantidad: int, motivo: str):
        db.add(MovimientoStock(
            institucion_id=articulo.institucion_id,
            articulo_id=articulo.id,
            habitacion_id=habitacion_id if tier == TierInventario.HABITACION else None,
            tier=tier.value,
            cantidad=cantidad,
            motivo=motivo,
        ))

    @staticmethod
    def descontar(
        db: Session,
        articulo_id: int,
        habitacion_id: Optional[int],
        cantidad: int,
        motivo: str = "consumo",
        institucion_id: Optional[int] = None
    ) -> Tuple[int, int]:
        """
        Descuenta `cantidad` unidades: primero de la habitación, el resto del general.

        No hace commit. Valida todo antes de escribir: si el general no alcanza
        no se toca ningún registro.

        Returns:
            (cantidad_habitacion, cantidad_general)

        Raises:
            ArticleNotFound: el artículo no existe o es de otra institución
            InsufficientStock: no hay entrada general o no alcanza para el faltante
        """
        if cantidad is None or cantidad <= 0:
            raise InvalidQuantity("La cantidad debe ser mayor a cero")

        articulo = InventarioService._articulo(db, articulo_id)
        if institucion_id is not None and articulo.institucion_id != institucion_id:
            raise ArticleNotFound(f"Artículo {articulo_id} no encontrado en la institución {institucion_id}")
        inv_habitacion = InventarioService._inventario_habitacion(db, articulo_id, habitacion_id)

        disponible_habitacion = max(inv_habitacion.cantidad, 0) if inv_habitacion else 0
        de_habitacion = min(disponible_habitacion, cantidad)
        faltante = cantidad - de_habitacion

        inv_general = None
        if faltante > 0:
            inv_general = InventarioService._inventario_general(
                db, institucion_id or articulo.institucion_id, articulo_id
            )
            if not inv_general:
                raise InsufficientStock(
                    f"No hay stock suficiente de {articulo.nombre}: sin inventario general"
                )
            if inv_general.cantidad < faltante:
                raise InsufficientStock(
                    f"No hay stock suficiente de {articulo.nombre}: "
                    f"pedido {cantidad}, habitación {disponible_habitacion}, general {inv_general.cantidad}"
                )

        if de_habitacion > 0:
            inv_habitacion.cantidad -= de_habitacion
            InventarioService._auditar(
                db, articulo, habitacion_id, TierInventario.HABITACION, -de_habitacion, motivo
            )
        if faltante > 0:
            inv_general.cantidad -= faltante
            InventarioService._auditar(
                db, articulo, habitacion_id, TierInventario.GENERAL, -faltante, motivo
            )

        return de_habitacion, faltante

    @staticmethod
    def restaurar(
        db: Session,
        articulo_id: int,
        habitacion_id: Optional[int],
        cantidad: int,
        es_habitacion: bool,
        cantidad_habitacion: Optional[int] = None,
        motivo: str = "anulacion"
    ) -> Tuple[int, int]:
        """
        Devuelve stock al nivel del que salió. Con `cantidad_habitacion` se repone
        exactamente ese reparto; sin él, todo va al nivel indicado por `es_habitacion`.
        Si la entrada no existe se crea; si estaba dada de baja se reactiva. No hace commit.
        """
        if cantidad is None or cantidad <= 0:
            raise InvalidQuantity("La cantidad debe ser mayor a cero")

        if cantidad_habitacion is None:
            cantidad_habitacion = cantidad if es_habitacion else 0
        if cantidad_habitacion < 0 or cantidad_habitacion > cantidad:
            raise InvalidQuantity("El reparto de la cantidad a reponer no es válido")
        if cantidad_habitacion > 0 and habitacion_id is None:
            raise InvalidQuantity("No se puede reponer stock de habitación sin habitación")

        articulo = InventarioService._articulo(db, articulo_id)
        a_general = cantidad - cantidad_habitacion

        if cantidad_habitacion > 0:
            inv_habitacion = db.query(InventarioHabitacion).filter(
                InventarioHabitacion.habitacion_id == habitacion_id,
                InventarioHabitacion.articulo_id == articulo_id,
            ).with_for_update().first()
            if not inv_habitacion:
                inv_habitacion = InventarioHabitacion(
                    habitacion_id=habitacion_id, articulo_id=articulo_id, cantidad=0
                )
                db.add(inv_habitacion)
                db.flush()
            inv_habitacion.anulado = False
            inv_habitacion.cantidad += cantidad_habitacion
            InventarioService._auditar(
                db, articulo, habitacion_id, TierInventario.HABITACION, cantidad_habitacion, motivo
            )

        if a_general > 0:
            inv_general = db.query(InventarioGeneral).filter(
                InventarioGeneral.institucion_id == articulo.institucion_id,
                InventarioGeneral.articulo_id == articulo_id,
            ).with_for_update().first()
            if not inv_general:
                inv_general = InventarioGeneral(
                    institucion_id=articulo.institucion_id, articulo_id=articulo_id, cantidad=0
                )
                db.add(inv_general)
                db.flush()
            inv_general.anulado = False
            inv_general.cantidad += a_general
            InventarioService._auditar(
                db, articulo, habitacion_id, TierInventario.GENERAL, a_general, motivo
            )

        return cantidad_habitacion, a_general

    @staticmethod
    def reconciliar(db: Session, institucion_id: int, usuario: str = "sistema") -> Dict[str, int]:
        """
        Da de baja (anulado) las entradas de artículos anulados y crea entradas
        generales en cero para artículos activos que no tienen una.
        Idempotente: una segunda llamada no escribe nada.
        """
        try:
            articulos = db.query(Articulo).filter(Articulo.institucion_id == institucion_id).all()
            anulados = {a.id for a in articulos if a.anulado}
            activos = [a for a in articulos if not a.anulado]

            removidos = 0
            if anulados:
                generales = db.query(InventarioGeneral).filter(
                    InventarioGeneral.institucion_id == institucion_id,
                    InventarioGeneral.articulo_id.in_(anulados),
                    InventarioGeneral.anulado == False,
                ).with_for_update().all()
                de_habitacion = db.query(InventarioHabitacion).filter(
                    InventarioHabitacion.articulo_id.in_(anulados),
                    InventarioHabitacion.anulado == False,
                ).with_for_update().all()
                for entrada in list(generales) + list(de_habitacion):
                    entrada.anulado = True
                    removidos += 1

            existentes = {
                inv.articulo_id: inv
                for inv in db.query(InventarioGeneral).filter(
                    InventarioGeneral.institucion_id == institucion_id
                ).all()
            }
            agregados = 0
            for articulo in activos:
                entrada = existentes.get(articulo.id)
                if entrada is None:
                    db.add(InventarioGeneral(
                        institucion_id=institucion_id, articulo_id=articulo.id, cantidad=0
                    ))
                    agregados += 1
                elif entrada.anulado:
                    entrada.anulado = False
                    agregados += 1

            if removidos or agregados:
                confirmar(db)
            else:
                db.rollback()

            resultado = {
                "procesados": len(activos),
                "agregados": agregados,
                "removidos": removidos,
            }
            log_event(
                "inventario", usuario, "Reconciliar inventario",
                f"institucion_id={institucion_id} {resultado}"
            )
            return resultado

        except Exception as e:
            db.rollback()
            log_event("inventario", usuario, "Error", f"Error reconciliando inventario: {str(e)}")
            raise
