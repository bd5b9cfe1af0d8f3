"""
Tests del ledger de inventario de dos niveles
"""

import pytest

from models import Articulo, InventarioGeneral, InventarioHabitacion, MovimientoStock
from services.errors import InsufficientStock, InvalidQuantity, ArticleNotFound, ConcurrencyConflict, con_reintento
from services.inventario import InventarioService


class TestDescontar:
    """Tests para el descuento con fallback al inventario general"""

    def test_sale_primero_de_la_habitacion(self, db, datos, stock):
        split = InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 2)
        db.commit()
        assert split == (2, 0)
        assert stock(datos.gaseosa_id, datos.habitacion_id) == (1, 5)

    def test_faltante_sale_del_general(self, db, datos, stock):
        # habitación 3, general 5, pido 5 -> habitación 0, general 3
        split = InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 5)
        db.commit()
        assert split == (3, 2)
        assert stock(datos.gaseosa_id, datos.habitacion_id) == (0, 3)

    def test_sin_entrada_de_habitacion_usa_general(self, db, datos, stock):
        split = InventarioService.descontar(db, datos.cerveza_id, datos.habitacion_id, 4)
        db.commit()
        assert split == (0, 4)
        assert stock(datos.cerveza_id) == (None, 6)

    def test_stock_insuficiente_no_escribe_nada(self, db, datos, stock):
        inv = db.query(InventarioHabitacion).filter(
            InventarioHabitacion.articulo_id == datos.gaseosa_id
        ).one()
        inv.cantidad = 2
        gen = db.query(InventarioGeneral).filter(InventarioGeneral.articulo_id == datos.gaseosa_id).one()
        gen.cantidad = 3
        db.commit()

        with pytest.raises(InsufficientStock):
            InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 10)
        db.rollback()

        assert stock(datos.gaseosa_id, datos.habitacion_id) == (2, 3)
        assert db.query(MovimientoStock).count() == 0

    def test_sin_inventario_general(self, db, datos):
        articulo = Articulo(institucion_id=datos.institucion_id, nombre="Chocolate", precio=800)
        db.add(articulo)
        db.commit()
        with pytest.raises(InsufficientStock):
            InventarioService.descontar(db, articulo.id, datos.habitacion_id, 1)

    def test_cantidad_invalida(self, db, datos):
        with pytest.raises(InvalidQuantity):
            InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 0)

    def test_articulo_inexistente(self, db, datos):
        with pytest.raises(ArticleNotFound):
            InventarioService.descontar(db, 9999, datos.habitacion_id, 1)

    def test_articulo_de_otra_institucion(self, db, datos, stock):
        with pytest.raises(ArticleNotFound):
            InventarioService.descontar(
                db, datos.gaseosa_id, datos.habitacion_id, 5, institucion_id=datos.institucion_id + 1
            )
        db.rollback()
        assert stock(datos.gaseosa_id, datos.habitacion_id) == (3, 5)

    def test_audita_cada_nivel(self, db, datos):
        InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 5)
        db.commit()
        movimientos = db.query(MovimientoStock).order_by(MovimientoStock.id).all()
        assert [(m.tier, m.cantidad) for m in movimientos] == [("habitacion", -3), ("general", -2)]


class TestRestaurar:
    """Tests para la reposición de stock"""

    def test_descontar_y_restaurar_deja_todo_igual(self, db, datos, stock):
        antes = stock(datos.gaseosa_id, datos.habitacion_id)
        de_habitacion, _ = InventarioService.descontar(db, datos.gaseosa_id, datos.habitacion_id, 6)
        db.commit()
        InventarioService.restaurar(
            db, datos.gaseosa_id, datos.habitacion_id, 6, True, cantidad_habitacion=de_habitacion
        )
        db.commit()
        assert stock(datos.gaseosa_id, datos.habitacion_id) == antes

    def test_sin_reparto_usa_el_flag(self, db, datos, stock):
        InventarioService.restaurar(db, datos.gaseosa_id, datos.habitacion_id, 2, True)
        InventarioService.restaurar(db, datos.gaseosa_id, datos.habitacion_id, 1, False)
        db.commit()
        assert stock(datos.gaseosa_id, datos.habitacion_id) == (5, 6)

    def test_crea_la_entrada_si_no_existe(self, db, datos, stock):
        InventarioService.restaurar(db, datos.cerveza_id, datos.habitacion_id, 2, True)
        InventarioService.restaurar(db, datos.cerveza_id, datos.habitacion_id, 1, True)
        db.commit()
        assert stock(datos.cerveza_id, datos.habitacion_id) == (3, 10)

    def test_reparto_invalido(self, db, datos):
        with pytest.raises(InvalidQuantity):
            InventarioService.restaurar(db, datos.gaseosa_id, datos.habitacion_id, 2, True, cantidad_habitacion=3)


class TestReconciliar:
    """Tests para la sincronización del inventario general"""

    def test_crea_faltantes_y_da_de_baja_anulados(self, db, datos):
        nuevo = Articulo(institucion_id=datos.institucion_id, nombre="Agua", precio=700)
        db.add(nuevo)
        db.get(Articulo, datos.cerveza_id).anulado = True
        db.commit()

        resultado = InventarioService.reconciliar(db, datos.institucion_id)

        # activos: gaseosa, toalla, agua; faltaban toalla y agua
        assert resultado == {"procesados": 3, "agregados": 2, "removidos": 1}
        db.expire_all()
        cerveza = db.query(InventarioGeneral).filter(InventarioGeneral.articulo_id == datos.cerveza_id).one()
        assert cerveza.anulado is True
        agua = db.query(InventarioGeneral).filter(InventarioGeneral.articulo_id == nuevo.id).one()
        assert agua.cantidad == 0

    def test_es_idempotente(self, db, datos):
        db.get(Articulo, datos.gaseosa_id).anulado = True
        db.commit()

        primero = InventarioService.reconciliar(db, datos.institucion_id)
        filas = db.query(InventarioGeneral).count()
        segundo = InventarioService.reconciliar(db, datos.institucion_id)

        assert primero["removidos"] == 2  # general + habitación
        assert segundo["agregados"] == 0
        assert segundo["removidos"] == 0
        assert db.query(InventarioGeneral).count() == filas

    def test_reintento_ante_conflicto(self, db, datos):
        llamadas = []

        def operacion():
            llamadas.append(1)
            if len(llamadas) == 1:
                raise ConcurrencyConflict("conflicto")
            return InventarioService.reconciliar(db, datos.institucion_id)

        resultado = con_reintento(operacion)
        assert len(llamadas) == 2
        assert resultado["agregados"] == 1
