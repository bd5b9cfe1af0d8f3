"""
Tests del cálculo de tarifas
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from models import CategoriaHabitacion, Movimiento, Reserva
from services.errors import InvalidPromotion, InvalidState, NotFound, InvalidInput
from services.ocupacion import OcupacionService
from services.tarifas import TarifaService


def _reserva(db, datos, ahora, horas=2, minutos=0, promocion_id=None):
    return OcupacionService.reservar(
        db,
        SimpleNamespace(
            habitacion_id=datos.habitacion_id, total_horas=horas, total_minutos=minutos,
            promocion_id=promocion_id,
        ),
        ahora=ahora,
    )


class TestCalcularTotal:
    """Tests para tarifa * (horas + minutos/60)"""

    def test_tarifa_normal_cinco_horas(self):
        assert TarifaService.calcular_total(Decimal("5000"), 5, 0) == Decimal("25000.00")

    def test_hora_y_media(self):
        assert TarifaService.calcular_total(Decimal("3000"), 1, 30) == Decimal("4500.00")

    def test_redondeo_half_up(self):
        # 1000 / 60 = 16.666...
        assert TarifaService.calcular_total(Decimal("1000"), 0, 1) == Decimal("16.67")
        # 0.1 * 5/60 = 0.00833 -> 0.01
        assert TarifaService.calcular_total(Decimal("0.1"), 0, 5) == Decimal("0.01")

    def test_acepta_enteros_y_floats(self):
        assert TarifaService.calcular_total(2000, 2, 0) == Decimal("4000.00")
        assert TarifaService.calcular_total(1500.5, 1, 0) == Decimal("1500.50")

    def test_recargo_personas_extra(self):
        # 10% por persona extra sobre 10000
        total = TarifaService.calcular_total(Decimal("5000"), 2, 0, personas_extra=2, porcentaje=10)
        assert total == Decimal("12000.00")

    def test_duracion_negativa(self):
        with pytest.raises(InvalidInput):
            TarifaService.calcular_total(Decimal("5000"), -1, 0)


class TestResolverTarifa:
    """Tests para la elección entre promoción y precio normal"""

    def test_sin_promocion_usa_precio_normal(self, db, datos):
        categoria = db.get(CategoriaHabitacion, datos.categoria_id)
        assert TarifaService.resolver_tarifa(db, categoria, None) == Decimal("5000.00")

    def test_promocion_valida(self, db, datos):
        categoria = db.get(CategoriaHabitacion, datos.categoria_id)
        assert TarifaService.resolver_tarifa(db, categoria, datos.promocion_id) == Decimal("4000.00")

    def test_promocion_inexistente(self, db, datos):
        categoria = db.get(CategoriaHabitacion, datos.categoria_id)
        with pytest.raises(InvalidPromotion):
            TarifaService.resolver_tarifa(db, categoria, 9999)

    def test_promocion_de_otra_categoria(self, db, datos):
        categoria = db.get(CategoriaHabitacion, datos.categoria_id)
        with pytest.raises(InvalidPromotion) as exc:
            TarifaService.resolver_tarifa(db, categoria, datos.promocion_otra_id)
        assert "categoría" in exc.value.mensaje


class TestActualizarPromocion:
    """Tests para el recálculo al cambiar la promoción de una reserva"""

    def test_aplica_y_quita_promocion(self, db, datos, ahora):
        reserva = _reserva(db, datos, ahora, horas=2)
        assert db.get(Movimiento, reserva.movimiento_id).total_facturado == Decimal("10000.00")

        TarifaService.actualizar_promocion(db, reserva.id, datos.promocion_id)
        db.expire_all()
        assert db.get(Reserva, reserva.id).promocion_id == datos.promocion_id
        assert db.get(Movimiento, reserva.movimiento_id).total_facturado == Decimal("8000.00")

        TarifaService.actualizar_promocion(db, reserva.id, None)
        db.expire_all()
        assert db.get(Reserva, reserva.id).promocion_id is None
        assert db.get(Movimiento, reserva.movimiento_id).total_facturado == Decimal("10000.00")

    def test_conserva_consumos_del_movimiento(self, db, datos, ahora):
        from services.consumos import ConsumoService

        reserva = _reserva(db, datos, ahora, horas=2)
        ConsumoService.consumir(db, reserva.movimiento_id, [{"articulo_id": datos.gaseosa_id, "cantidad": 2}])

        TarifaService.actualizar_promocion(db, reserva.id, datos.promocion_id)
        db.expire_all()
        # 2h a 4000 + 2 gaseosas a 1500
        assert db.get(Movimiento, reserva.movimiento_id).total_facturado == Decimal("11000.00")

    def test_promocion_invalida_no_modifica_nada(self, db, datos, ahora):
        reserva = _reserva(db, datos, ahora, horas=2)
        with pytest.raises(InvalidPromotion):
            TarifaService.actualizar_promocion(db, reserva.id, datos.promocion_otra_id)
        db.expire_all()
        assert db.get(Reserva, reserva.id).promocion_id is None
        assert db.get(Movimiento, reserva.movimiento_id).total_facturado == Decimal("10000.00")

    def test_reserva_terminal(self, db, datos, ahora):
        reserva = _reserva(db, datos, ahora)
        OcupacionService.finalizar(db, datos.habitacion_id, ahora=ahora)
        with pytest.raises(InvalidState):
            TarifaService.actualizar_promocion(db, reserva.id, datos.promocion_id)

    def test_reserva_inexistente(self, db, datos):
        with pytest.raises(NotFound):
            TarifaService.actualizar_promocion(db, 9999, None)
