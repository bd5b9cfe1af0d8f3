from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    UniqueConstraint,
    Index,
    Numeric,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import ahora_local
import enum


class TierInventario(str, enum.Enum):
    """Nivel de inventario del que sale (o al que vuelve) un artículo"""
    HABITACION = "habitacion"
    GENERAL = "general"


class Articulo(Base):
    __tablename__ = "articulos"
    __table_args__ = (
        Index("idx_articulo_institucion", "institucion_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    nombre = Column(String(120), nullable=False)
    precio = Column(Numeric(12, 2), nullable=True)
    anulado = Column(Boolean, default=False, nullable=False)
    fecha_registro = Column(DateTime, default=ahora_local)


class InventarioHabitacion(Base):
    """Stock de un artículo dentro de una habitación (frigobar, amenities)"""
    __tablename__ = "inventarios"
    __table_args__ = (
        UniqueConstraint("habitacion_id", "articulo_id", name="uq_inventario_habitacion_articulo"),
        Index("idx_inventario_articulo", "articulo_id"),
        CheckConstraint("cantidad >= 0", name="ck_inventario_cantidad"),
    )

    id = Column(Integer, primary_key=True)
    habitacion_id = Column(Integer, ForeignKey("habitaciones.id", ondelete="CASCADE"), nullable=False)
    articulo_id = Column(Integer, ForeignKey("articulos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False, default=0)
    anulado = Column(Boolean, default=False, nullable=False)
    fecha_registro = Column(DateTime, default=ahora_local)

    articulo = relationship("Articulo")
    habitacion = relationship("Habitacion")


class InventarioGeneral(Base):
    """Stock del depósito general de la institución"""
    __tablename__ = "inventario_general"
    __table_args__ = (
        UniqueConstraint("institucion_id", "articulo_id", name="uq_inventario_general_articulo"),
        CheckConstraint("cantidad >= 0", name="ck_inventario_general_cantidad"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    articulo_id = Column(Integer, ForeignKey("articulos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False, default=0)
    anulado = Column(Boolean, default=False, nullable=False)
    fecha_registro = Column(DateTime, default=ahora_local)

    articulo = relationship("Articulo")


class MovimientoStock(Base):
    """
    Auditoría de cada cambio de stock hecho por el ledger.
    cantidad con signo: negativa = egreso, positiva = reposición.
    """
    __tablename__ = "movimientos_stock"
    __table_args__ = (
        Index("idx_movstock_articulo", "articulo_id"),
        Index("idx_movstock_fecha", "fecha"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    articulo_id = Column(Integer, ForeignKey("articulos.id"), nullable=False)
    habitacion_id = Column(Integer, ForeignKey("habitaciones.id"), nullable=True)
    tier = Column(String(20), nullable=False)  # habitacion | general
    cantidad = Column(Integer, nullable=False)
    motivo = Column(String(50), nullable=False)  # consumo | anulacion | ajuste
    fecha = Column(DateTime, default=ahora_local, nullable=False)
