from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Index,
    Numeric,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import ahora_local


# ============================================================================
# MOVIMIENTOS Y CONSUMOS
# ============================================================================

class Movimiento(Base):
    """
    Acumulador de cargos de una visita en una habitación (turno + consumos).
    pago_id queda NULL hasta que se liquida.
    """
    __tablename__ = "movimientos"
    __table_args__ = (
        Index("idx_movimiento_visita", "visita_id"),
        Index("idx_movimiento_pago", "pago_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    visita_id = Column(Integer, ForeignKey("visitas.id"), nullable=False)
    habitacion_id = Column(Integer, ForeignKey("habitaciones.id"), nullable=False)
    pago_id = Column(Integer, ForeignKey("pagos.id"), nullable=True)

    total_facturado = Column(Numeric(12, 2), nullable=False, default=0)
    anulado = Column(Boolean, default=False, nullable=False)
    usuario_id = Column(Integer, nullable=True)
    fecha_registro = Column(DateTime, default=ahora_local)

    visita = relationship("Visita", back_populates="movimientos")
    habitacion = relationship("Habitacion")
    pago = relationship("Pago", back_populates="movimientos")
    consumos = relationship("Consumo", back_populates="movimiento", order_by="Consumo.id")

    def is_open(self):
        """Se le pueden sumar consumos: no anulado y sin pago"""
        return not self.anulado and self.pago_id is None


class Consumo(Base):
    """
    Línea de consumo. precio_unitario es una foto del precio al momento de consumir.
    cantidad_habitacion guarda cuántas unidades salieron del stock de la habitación
    (el resto salió del general) para poder reponer exactamente lo mismo.
    """
    __tablename__ = "consumos"
    __table_args__ = (
        Index("idx_consumo_movimiento", "movimiento_id"),
        CheckConstraint("cantidad > 0", name="ck_consumo_cantidad"),
        CheckConstraint(
            "cantidad_habitacion >= 0 AND cantidad_habitacion <= cantidad",
            name="ck_consumo_cantidad_habitacion",
        ),
    )

    id = Column(Integer, primary_key=True)
    movimiento_id = Column(Integer, ForeignKey("movimientos.id"), nullable=False)
    articulo_id = Column(Integer, ForeignKey("articulos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False)
    precio_unitario = Column(Numeric(12, 2), nullable=False)
    es_habitacion = Column(Boolean, nullable=False, default=False)
    cantidad_habitacion = Column(Integer, nullable=False, default=0)
    anulado = Column(Boolean, default=False, nullable=False)
    fecha_registro = Column(DateTime, default=ahora_local)

    movimiento = relationship("Movimiento", back_populates="consumos")
    articulo = relationship("Articulo")

    @property
    def cantidad_general(self):
        return self.cantidad - self.cantidad_habitacion

    @property
    def total(self):
        return self.precio_unitario * self.cantidad


# ============================================================================
# PAGOS
# ============================================================================

class MedioPago(Base):
    __tablename__ = "medios_pago"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(60), nullable=False)
    activo = Column(Boolean, default=True, nullable=False)


class Pago(Base):
    """Liquidación de uno o más movimientos. cierre_id queda NULL hasta el cierre de caja."""
    __tablename__ = "pagos"
    __table_args__ = (
        Index("idx_pago_cierre", "cierre_id"),
        Index("idx_pago_institucion", "institucion_id"),
        CheckConstraint(
            "monto_efectivo >= 0 AND monto_tarjeta >= 0 AND monto_billetera >= 0 AND monto_descuento >= 0",
            name="ck_pago_montos",
        ),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    monto_efectivo = Column(Numeric(12, 2), nullable=False, default=0)
    monto_tarjeta = Column(Numeric(12, 2), nullable=False, default=0)
    monto_billetera = Column(Numeric(12, 2), nullable=False, default=0)
    monto_descuento = Column(Numeric(12, 2), nullable=False, default=0)
    medio_pago_id = Column(Integer, ForeignKey("medios_pago.id"), nullable=False)
    cierre_id = Column(Integer, ForeignKey("cierres.id"), nullable=True)
    observacion = Column(Text, nullable=True)
    usuario_id = Column(Integer, nullable=True)
    fecha_hora = Column(DateTime, default=ahora_local, nullable=False)

    medio_pago = relationship("MedioPago")
    cierre = relationship("Cierre", back_populates="pagos")
    movimientos = relationship("Movimiento", back_populates="pago")
    recargos = relationship("Recargo", back_populates="pago")


class Recargo(Base):
    """Recargo asociado a un pago (ej: recargo por tarjeta)"""
    __tablename__ = "recargos"

    id = Column(Integer, primary_key=True)
    pago_id = Column(Integer, ForeignKey("pagos.id"), nullable=False)
    valor = Column(Numeric(12, 2), nullable=False)
    descripcion = Column(String(200), nullable=True)

    pago = relationship("Pago", back_populates="recargos")


# ============================================================================
# CIERRE DE CAJA
# ============================================================================

class Cierre(Base):
    """Período de caja. Una sola caja abierta por institución (índice único parcial)."""
    __tablename__ = "cierres"
    __table_args__ = (
        Index("idx_cierre_institucion", "institucion_id"),
        Index(
            "uq_cierre_abierto_institucion",
            "institucion_id",
            unique=True,
            postgresql_where=text("cerrado = false"),
            sqlite_where=text("cerrado = 0"),
        ),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    usuario_id = Column(Integer, nullable=True)

    monto_inicial_caja = Column(Numeric(12, 2), nullable=False, default=0)
    total_ingresos_efectivo = Column(Numeric(12, 2), nullable=False, default=0)
    total_ingresos_tarjeta = Column(Numeric(12, 2), nullable=False, default=0)
    total_ingresos_billetera = Column(Numeric(12, 2), nullable=False, default=0)
    total_egresos = Column(Numeric(12, 2), nullable=False, default=0)

    cerrado = Column(Boolean, default=False, nullable=False)
    fecha_apertura = Column(DateTime, default=ahora_local, nullable=False)
    fecha_hora_cierre = Column(DateTime, nullable=True)
    observaciones = Column(Text, nullable=True)

    pagos = relationship("Pago", back_populates="cierre", order_by="Pago.id")
    egresos = relationship("Egreso", back_populates="cierre", order_by="Egreso.id")

    def total_ingresos(self):
        return self.total_ingresos_efectivo + self.total_ingresos_tarjeta + self.total_ingresos_billetera

    def saldo_efectivo(self):
        """Efectivo que debería quedar en caja: inicial + ingresos en efectivo - egresos"""
        return self.monto_inicial_caja + self.total_ingresos_efectivo - self.total_egresos


class Egreso(Base):
    """Gasto pagado desde la caja (compras, proveedores). cierre_id queda NULL hasta el cierre."""
    __tablename__ = "egresos"
    __table_args__ = (
        Index("idx_egreso_cierre", "cierre_id"),
        CheckConstraint("cantidad > 0 AND precio >= 0", name="ck_egreso_valores"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    cierre_id = Column(Integer, ForeignKey("cierres.id"), nullable=True)
    descripcion = Column(String(200), nullable=False)
    cantidad = Column(Integer, nullable=False, default=1)
    precio = Column(Numeric(12, 2), nullable=False)
    usuario_id = Column(Integer, nullable=True)
    fecha = Column(DateTime, default=ahora_local, nullable=False)

    cierre = relationship("Cierre", back_populates="egresos")

    @property
    def total(self):
        return self.precio * self.cantidad
