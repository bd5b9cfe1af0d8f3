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
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import ahora_local


# ============================================================================
# INSTITUCIONES Y HABITACIONES
# ============================================================================

class Institucion(Base):
    """Establecimiento (tenant). Todo lo operativo cuelga de una institución."""
    __tablename__ = "instituciones"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(150), nullable=False)
    activa = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=ahora_local)


class CategoriaHabitacion(Base):
    __tablename__ = "categorias_habitaciones"
    __table_args__ = (
        Index("idx_categoria_institucion", "institucion_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    nombre = Column(String(60), nullable=False)
    precio_normal = Column(Numeric(12, 2), nullable=False)  # tarifa por hora
    capacidad_maxima = Column(Integer, nullable=True)
    porcentaje_persona_extra = Column(Integer, nullable=False, default=0)
    anulado = Column(Boolean, default=False, nullable=False)


class Habitacion(Base):
    __tablename__ = "habitaciones"
    __table_args__ = (
        Index("idx_habitacion_institucion", "institucion_id"),
        Index("idx_habitacion_visita", "visita_id"),
        # disponible <=> sin visita vinculada
        CheckConstraint(
            "(disponible AND visita_id IS NULL) OR (NOT disponible AND visita_id IS NOT NULL)",
            name="ck_habitacion_disponible_visita",
        ),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    nombre = Column(String(60), nullable=False)
    categoria_id = Column(Integer, ForeignKey("categorias_habitaciones.id"), nullable=False)

    disponible = Column(Boolean, default=True, nullable=False)
    visita_id = Column(Integer, ForeignKey("visitas.id", ondelete="SET NULL"), nullable=True)

    anulado = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=ahora_local)

    categoria = relationship("CategoriaHabitacion")
    visita = relationship("Visita", foreign_keys=[visita_id])


# ============================================================================
# VISITAS Y RESERVAS
# ============================================================================

class Visita(Base):
    """Episodio de presencia de un huésped (patente, teléfono, identificador libre)."""
    __tablename__ = "visitas"
    __table_args__ = (
        Index("idx_visita_institucion", "institucion_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    patente_vehiculo = Column(String(20), nullable=True)
    numero_telefono = Column(String(30), nullable=True)
    identificador = Column(String(120), nullable=True)
    fecha_primer_ingreso = Column(DateTime, nullable=True)
    usuario_id = Column(Integer, nullable=True)
    anulado = Column(Boolean, default=False, nullable=False)
    fecha_registro = Column(DateTime, default=ahora_local)

    reservas = relationship("Reserva", back_populates="visita")
    movimientos = relationship("Movimiento", back_populates="visita")


class Promocion(Base):
    """Paquete fijo: tarifa plana por hora para una categoría."""
    __tablename__ = "promociones"
    __table_args__ = (
        Index("idx_promocion_categoria", "categoria_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    nombre = Column(String(80), nullable=True)
    tarifa = Column(Numeric(12, 2), nullable=False)
    cantidad_horas = Column(Integer, nullable=False, default=1)
    categoria_id = Column(Integer, ForeignKey("categorias_habitaciones.id"), nullable=False)
    anulado = Column(Boolean, default=False, nullable=False)

    categoria = relationship("CategoriaHabitacion")


class Reserva(Base):
    """
    Intervalo facturable de ocupación.
    Activa mientras fecha_fin y fecha_anula sean NULL; terminal en cuanto se setea alguna.
    """
    __tablename__ = "reservas"
    __table_args__ = (
        Index("idx_reserva_habitacion_fecha", "habitacion_id", "fecha_reserva"),
        Index("idx_reserva_visita", "visita_id"),
        CheckConstraint("total_horas >= 0 AND total_minutos >= 0", name="ck_reserva_duracion"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    visita_id = Column(Integer, ForeignKey("visitas.id"), nullable=False)
    habitacion_id = Column(Integer, ForeignKey("habitaciones.id"), nullable=False)
    promocion_id = Column(Integer, ForeignKey("promociones.id"), nullable=True)
    movimiento_id = Column(Integer, ForeignKey("movimientos.id"), nullable=True)

    fecha_reserva = Column(DateTime, nullable=False)
    total_horas = Column(Integer, nullable=False, default=0)
    total_minutos = Column(Integer, nullable=False, default=0)

    # Pausa: tiempo transcurrido congelado (NULL = corriendo)
    pausa_horas = Column(Integer, nullable=True)
    pausa_minutos = Column(Integer, nullable=True)

    fecha_fin = Column(DateTime, nullable=True)
    fecha_anula = Column(DateTime, nullable=True)

    usuario_id = Column(Integer, nullable=True)
    fecha_registro = Column(DateTime, default=ahora_local)

    visita = relationship("Visita", back_populates="reservas")
    habitacion = relationship("Habitacion")
    promocion = relationship("Promocion")
    movimiento = relationship("Movimiento", foreign_keys=[movimiento_id])
    registros = relationship("Registro", back_populates="reserva")

    def is_terminal(self):
        """Checkout hecho o reserva anulada"""
        return self.fecha_fin is not None or self.fecha_anula is not None

    def is_paused(self):
        return self.pausa_horas is not None or self.pausa_minutos is not None


class Registro(Base):
    """Bitácora legible de acciones sobre reservas (anulaciones, etc.)"""
    __tablename__ = "registros"
    __table_args__ = (
        Index("idx_registro_reserva", "reserva_id"),
    )

    id = Column(Integer, primary_key=True)
    institucion_id = Column(Integer, ForeignKey("instituciones.id", ondelete="CASCADE"), nullable=False)
    reserva_id = Column(Integer, ForeignKey("reservas.id"), nullable=True)
    contenido = Column(Text, nullable=False)
    fecha = Column(DateTime, default=ahora_local, nullable=False)

    reserva = relationship("Reserva", back_populates="registros")
