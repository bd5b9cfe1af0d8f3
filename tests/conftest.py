"""
Fixtures compartidas: base SQLite en memoria, sesión y datos semilla
"""

import os
import sys
from pathlib import Path
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

# Agregar directorio raíz al PYTHONPATH para imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Antes de importar la app: base en memoria y sin monitor en segundo plano
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MONITOR_HABILITADO"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import conexion
from database.conexion import Base
import models
from models import (
    Institucion, CategoriaHabitacion, Habitacion, Promocion,
    Articulo, InventarioHabitacion, InventarioGeneral, MedioPago,
)

AHORA = datetime(2026, 3, 14, 20, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def datos(db):
    """Institución con dos habitaciones libres, artículos con stock, promociones y un medio de pago"""
    institucion = Institucion(nombre="Motel Centro")
    db.add(institucion)
    db.flush()

    categoria = CategoriaHabitacion(
        institucion_id=institucion.id,
        nombre="Suite",
        precio_normal=Decimal("5000.00"),
        capacidad_maxima=2,
        porcentaje_persona_extra=10,
    )
    otra_categoria = CategoriaHabitacion(
        institucion_id=institucion.id,
        nombre="Estándar",
        precio_normal=Decimal("3000.00"),
    )
    db.add_all([categoria, otra_categoria])
    db.flush()

    habitacion = Habitacion(institucion_id=institucion.id, nombre="101", categoria_id=categoria.id)
    habitacion_2 = Habitacion(institucion_id=institucion.id, nombre="102", categoria_id=otra_categoria.id)
    promocion = Promocion(
        institucion_id=institucion.id, nombre="Noche", tarifa=Decimal("4000.00"),
        cantidad_horas=8, categoria_id=categoria.id,
    )
    promocion_otra = Promocion(
        institucion_id=institucion.id, nombre="Promo estándar", tarifa=Decimal("2000.00"),
        cantidad_horas=2, categoria_id=otra_categoria.id,
    )
    gaseosa = Articulo(institucion_id=institucion.id, nombre="Gaseosa", precio=Decimal("1500.00"))
    cerveza = Articulo(institucion_id=institucion.id, nombre="Cerveza", precio=Decimal("2500.00"))
    sin_precio = Articulo(institucion_id=institucion.id, nombre="Toalla", precio=None)
    efectivo = MedioPago(nombre="Efectivo")
    db.add_all([habitacion, habitacion_2, promocion, promocion_otra, gaseosa, cerveza, sin_precio, efectivo])
    db.flush()

    db.add_all([
        InventarioHabitacion(habitacion_id=habitacion.id, articulo_id=gaseosa.id, cantidad=3),
        InventarioGeneral(institucion_id=institucion.id, articulo_id=gaseosa.id, cantidad=5),
        InventarioGeneral(institucion_id=institucion.id, articulo_id=cerveza.id, cantidad=10),
    ])
    db.commit()

    return SimpleNamespace(
        institucion_id=institucion.id,
        categoria_id=categoria.id,
        habitacion_id=habitacion.id,
        habitacion_2_id=habitacion_2.id,
        promocion_id=promocion.id,
        promocion_otra_id=promocion_otra.id,
        gaseosa_id=gaseosa.id,
        cerveza_id=cerveza.id,
        sin_precio_id=sin_precio.id,
        medio_pago_id=efectivo.id,
    )


@pytest.fixture
def stock(db):
    """Devuelve una función (articulo_id, habitacion_id) -> (cantidad habitación, cantidad general)"""

    def leer(articulo_id, habitacion_id=None):
        return _leer_stock(db, articulo_id, habitacion_id)

    return leer


@pytest.fixture
def ahora():
    return AHORA


def _leer_stock(db, articulo_id, habitacion_id=None):
    db.expire_all()
    hab = None
    if habitacion_id is not None:
        hab = db.query(InventarioHabitacion).filter(
            InventarioHabitacion.habitacion_id == habitacion_id,
            InventarioHabitacion.articulo_id == articulo_id,
        ).first()
    gen = db.query(InventarioGeneral).filter(InventarioGeneral.articulo_id == articulo_id).first()
    return (hab.cantidad if hab else None), (gen.cantidad if gen else None)


@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[conexion.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
