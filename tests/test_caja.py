"""
Tests de apertura y cierre de caja
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from sqlalchemy.exc import IntegrityError

from models import Cierre, Egreso, Pago
from services.caja import CajaService
from services.errors import ConcurrencyConflict, InvalidState, NothingToClose, InvalidInput
from services.ocupacion import OcupacionService
from services.pagos import PagoService


def _visita_pagada(db, datos, ahora, habitacion_id, **montos):
    reserva = OcupacionService.reservar(
        db,
        SimpleNamespace(habitacion_id=habitacion_id, total_horas=1, total_minutos=0, promocion_id=None),
        ahora=ahora,
    )
    return PagoService.pagar_visita(db, reserva.visita_id, medio_pago_id=datos.medio_pago_id, **montos)


class TestAbrirCaja:

    def test_abre_con_monto_inicial(self, db, datos, ahora):
        cierre = CajaService.abrir_caja(db, datos.institucion_id, monto_inicial=5000, ahora=ahora)
        assert cierre.cerrado is False
        assert cierre.monto_inicial_caja == Decimal("5000.00")
        assert cierre.fecha_apertura == ahora

    def test_no_abre_dos_cajas(self, db, datos, ahora):
        CajaService.abrir_caja(db, datos.institucion_id)
        with pytest.raises(InvalidState):
            CajaService.abrir_caja(db, datos.institucion_id)
        assert db.query(Cierre).count() == 1

    def test_monto_negativo(self, db, datos):
        with pytest.raises(InvalidInput):
            CajaService.abrir_caja(db, datos.institucion_id, monto_inicial=-10)


class TestCerrarCaja:
    """Tests para el barrido de pagos y la apertura de la caja siguiente"""

    def test_totales_por_medio_y_caja_nueva(self, db, datos, ahora):
        CajaService.abrir_caja(db, datos.institucion_id, monto_inicial=1000, ahora=ahora)
        _visita_pagada(db, datos, ahora, datos.habitacion_id, efectivo=40000)
        _visita_pagada(db, datos, ahora, datos.habitacion_2_id, tarjeta=15000)

        momento = ahora + timedelta(hours=8)
        cierre, nueva = CajaService.cerrar_caja(
            db, datos.institucion_id, monto_inicial_siguiente=2000, ahora=momento
        )

        assert cierre.cerrado is True
        assert cierre.fecha_hora_cierre == momento
        assert cierre.total_ingresos_efectivo == Decimal("40000.00")
        assert cierre.total_ingresos_tarjeta == Decimal("15000.00")
        assert cierre.total_ingresos_billetera == Decimal("0")
        assert cierre.total_ingresos() == Decimal("55000.00")
        assert cierre.monto_inicial_caja == Decimal("1000.00")

        assert nueva.id != cierre.id
        assert nueva.cerrado is False
        assert nueva.monto_inicial_caja == Decimal("2000.00")

        assert all(p.cierre_id == cierre.id for p in db.query(Pago).all())

    def test_sin_caja_abierta_la_crea(self, db, datos, ahora):
        _visita_pagada(db, datos, ahora, datos.habitacion_id, billetera=3000)

        cierre, nueva = CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)

        assert cierre.total_ingresos_billetera == Decimal("3000.00")
        assert cierre.monto_inicial_caja == Decimal("0")
        assert db.query(Cierre).filter(Cierre.cerrado == False).one().id == nueva.id

    def test_sin_pagos(self, db, datos, ahora):
        CajaService.abrir_caja(db, datos.institucion_id, ahora=ahora)
        with pytest.raises(NothingToClose):
            CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)
        caja = CajaService.caja_abierta(db, datos.institucion_id)
        assert caja is not None and caja.cerrado is False
        assert db.query(Cierre).count() == 1

    def test_cerrar_dos_veces_seguidas(self, db, datos, ahora):
        _visita_pagada(db, datos, ahora, datos.habitacion_id, efectivo=1000)
        CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)
        with pytest.raises(NothingToClose):
            CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)
        assert db.query(Cierre).filter(Cierre.cerrado == False).count() == 1



class TestEgresos:
    """Tests para los gastos pagados con la caja"""

    def test_egreso_entra_en_el_cierre(self, db, datos, ahora):
        CajaService.abrir_caja(db, datos.institucion_id, monto_inicial=1000, ahora=ahora)
        _visita_pagada(db, datos, ahora, datos.habitacion_id, efectivo=40000)
        egreso = CajaService.registrar_egreso(db, datos.institucion_id, "Hielo", 1500, cantidad=2, ahora=ahora)
        assert egreso.total == Decimal("3000.00")

        cierre, _ = CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)

        assert cierre.total_egresos == Decimal("3000.00")
        assert cierre.saldo_efectivo() == Decimal("38000.00")
        assert db.get(Egreso, egreso.id).cierre_id == cierre.id

    def test_egresos_pendientes_en_el_estado(self, db, datos, ahora):
        CajaService.registrar_egreso(db, datos.institucion_id, "Sábanas", 800, cantidad=3, ahora=ahora)

        estado = CajaService.estado_caja(db, datos.institucion_id)

        assert len(estado["egresos_pendientes"]) == 1
        assert estado["total_egresos"] == Decimal("2400.00")
        assert estado["total"] == Decimal("0")

    def test_egreso_invalido(self, db, datos):
        with pytest.raises(InvalidInput):
            CajaService.registrar_egreso(db, datos.institucion_id, "  ", 100)
        with pytest.raises(InvalidInput):
            CajaService.registrar_egreso(db, datos.institucion_id, "Hielo", 100, cantidad=0)
        assert db.query(Egreso).count() == 0


class TestCajaAbiertaUnica:
    """Una sola caja abierta por institución, garantizada por el índice parcial"""

    def test_el_indice_rechaza_una_segunda_caja_abierta(self, db, datos, ahora):
        db.add(Cierre(institucion_id=datos.institucion_id, fecha_apertura=ahora))
        db.commit()

        db.add(Cierre(institucion_id=datos.institucion_id, fecha_apertura=ahora))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        assert db.query(Cierre).count() == 1

    def test_cierre_simultaneo_es_conflicto(self, db, datos, ahora, monkeypatch):
        CajaService.abrir_caja(db, datos.institucion_id, monto_inicial=1000, ahora=ahora)
        _visita_pagada(db, datos, ahora, datos.habitacion_id, efectivo=4000)
        # otro cierre ya abrió la caja siguiente y esta transacción no la ve
        monkeypatch.setattr(
            CajaService, "caja_abierta",
            staticmethod(lambda db, institucion_id, bloquear=False: None),
        )

        with pytest.raises(ConcurrencyConflict):
            CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)

        db.expire_all()
        caja = db.query(Cierre).one()
        assert caja.cerrado is False
        assert caja.monto_inicial_caja == Decimal("1000.00")
        assert db.query(Pago).one().cierre_id is None


class TestEstadoCaja:

    def test_pendientes_y_cierres(self, db, datos, ahora):
        _visita_pagada(db, datos, ahora, datos.habitacion_id, efectivo=1000)
        CajaService.cerrar_caja(db, datos.institucion_id, ahora=ahora)
        _visita_pagada(db, datos, ahora, datos.habitacion_2_id, efectivo=500, tarjeta=700)

        estado = CajaService.estado_caja(db, datos.institucion_id)

        assert len(estado["cierres"]) == 1
        assert estado["caja_actual"] is not None
        assert len(estado["pagos_pendientes"]) == 1
        assert estado["total_efectivo"] == Decimal("500.00")
        assert estado["total_tarjeta"] == Decimal("700.00")
        assert estado["total"] == Decimal("1200.00")

    def test_institucion_sin_movimientos(self, db, datos):
        estado = CajaService.estado_caja(db, datos.institucion_id)
        assert estado["cierres"] == []
        assert estado["caja_actual"] is None
        assert estado["total"] == Decimal("0")
