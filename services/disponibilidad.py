"""
Cálculo de horarios libres de una habitación para un día.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import MIN_GAP_MINUTOS
from models.ocupacion import Habitacion, Reserva
from services.errors import RoomNotFound
from utils.timezone import ahora_local

INICIO_DIA = time(0, 0, 0)
FIN_DIA = time(23, 59, 59)


class HorarioLibre(NamedTuple):
    inicio: datetime
    fin: datetime


def calcular_horarios_libres(
    intervalos: Iterable[Tuple[datetime, datetime]],
    dia: date,
    min_gap: Optional[timedelta] = None
) -> List[HorarioLibre]:
    """
    Devuelve las ventanas libres del día (00:00:00 a 23:59:59) de al menos `min_gap`.

    Los intervalos que cruzan de día se recortan al día pedido; los que no lo
    tocan se ignoran. Sin intervalos, el día completo está libre.
    """
    if min_gap is None:
        min_gap = timedelta(minutes=MIN_GAP_MINUTOS)

    inicio_dia = datetime.combine(dia, INICIO_DIA)
    fin_dia = datetime.combine(dia, FIN_DIA)

    recortados = []
    for inicio, fin in intervalos:
        inicio = max(inicio, inicio_dia)
        fin = min(fin, fin_dia)
        if fin < inicio:
            continue
        recortados.append((inicio, fin))

    if not recortados:
        return [HorarioLibre(inicio_dia, fin_dia)]

    libres = []
    ultimo_fin = inicio_dia
    for inicio, fin in sorted(recortados):
        if inicio - ultimo_fin >= min_gap:
            libres.append(HorarioLibre(ultimo_fin, inicio))
        ultimo_fin = max(ultimo_fin, fin)

    if fin_dia - ultimo_fin >= min_gap:
        libres.append(HorarioLibre(ultimo_fin, fin_dia))

    return libres


class DisponibilidadService:

    @staticmethod
    def intervalos_ocupados(
        db: Session,
        habitacion_id: int,
        dia: date,
        ahora: Optional[datetime] = None
    ) -> List[Tuple[datetime, datetime]]:
        """
        Intervalos de reservas no anuladas que tocan el día. Las ya finalizadas
        antes del día no se leen.
        Una reserva activa termina en su hora de fin prevista (o ahora, si ya se pasó).
        """
        ahora = ahora or ahora_local()
        inicio_dia = datetime.combine(dia, INICIO_DIA)
        fin_dia = datetime.combine(dia, FIN_DIA)

        reservas = db.query(Reserva).filter(
            Reserva.habitacion_id == habitacion_id,
            Reserva.fecha_anula.is_(None),
            Reserva.fecha_reserva <= fin_dia,
            or_(Reserva.fecha_fin.is_(None), Reserva.fecha_fin >= inicio_dia),
        ).order_by(Reserva.fecha_reserva).all()

        intervalos = []
        for reserva in reservas:
            if reserva.fecha_fin is not None:
                fin = reserva.fecha_fin
            else:
                fin = max(
                    reserva.fecha_reserva + timedelta(
                        hours=reserva.total_horas or 0, minutes=reserva.total_minutos or 0
                    ),
                    ahora,
                )
            if fin < inicio_dia:
                continue
            intervalos.append((reserva.fecha_reserva, fin))
        return intervalos

    @staticmethod
    def horarios_libres(
        db: Session,
        habitacion_id: int,
        dia: date,
        ahora: Optional[datetime] = None
    ) -> List[HorarioLibre]:
        habitacion = db.query(Habitacion).filter(Habitacion.id == habitacion_id).first()
        if not habitacion or habitacion.anulado:
            raise RoomNotFound(f"Habitación {habitacion_id} no encontrada")

        intervalos = DisponibilidadService.intervalos_ocupados(db, habitacion_id, dia, ahora)
        return calcular_horarios_libres(intervalos, dia)

    @staticmethod
    def entra_en_horario_libre(
        db: Session,
        habitacion_id: int,
        inicio: datetime,
        fin: datetime,
        ahora: Optional[datetime] = None
    ) -> bool:
        """True si [inicio, fin] cae completo dentro de ventanas libres de cada día que abarca"""
        dia = inicio.date()
        while dia <= fin.date():
            libres = DisponibilidadService.horarios_libres(db, habitacion_id, dia, ahora)
            desde = max(inicio, datetime.combine(dia, INICIO_DIA))
            hasta = min(fin, datetime.combine(dia, FIN_DIA))
            if not any(h.inicio <= desde and hasta <= h.fin for h in libres):
                return False
            dia += timedelta(days=1)
        return True
