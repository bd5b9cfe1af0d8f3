"""
Notificaciones push y monitor de reservas.

El monitor es una única tarea asyncio que cada MONITOR_INTERVALO_SEGUNDOS relee
las reservas activas y programa dos avisos por reserva: "quedan N minutos" y
"se acabó el tiempo". Los avisos pendientes se identifican por
(reserva_id, tipo), así que re-escanear no duplica nada. No modifica reservas
ni habitaciones; todo se re-deriva de la base en cada escaneo.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol, Set, Tuple

from fastapi import WebSocket

from config import AVISO_MINUTOS_ANTES, MONITOR_INTERVALO_SEGUNDOS, grupo_institucion
from models.ocupacion import Habitacion, Reserva
from services.ocupacion import OcupacionService
from utils.logging_utils import log_event, log_error
from utils.timezone import ahora_local

AVISO = "aviso"
VENCIDA = "vencida"


class Notificador(Protocol):
    async def notify(self, grupo: str, mensaje: Dict[str, Any]) -> None:
        ...


class NotificadorLog:
    """Notificador que sólo deja constancia en el log"""

    async def notify(self, grupo: str, mensaje: Dict[str, Any]) -> None:
        log_event("notificaciones", "sistema", f"Aviso a {grupo}", mensaje.get("mensaje", ""))


class BroadcasterGrupos:
    """Conexiones WebSocket agrupadas por institución (institution-{id})"""

    def __init__(self):
        self._grupos: Dict[str, Set[WebSocket]] = {}

    async def conectar(self, grupo: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._grupos.setdefault(grupo, set()).add(websocket)

    def desconectar(self, grupo: str, websocket: WebSocket) -> None:
        conexiones = self._grupos.get(grupo)
        if not conexiones:
            return
        conexiones.discard(websocket)
        if not conexiones:
            del self._grupos[grupo]

    def conexiones(self, grupo: str) -> int:
        return len(self._grupos.get(grupo, ()))

    async def notify(self, grupo: str, mensaje: Dict[str, Any]) -> None:
        for websocket in list(self._grupos.get(grupo, ())):
            try:
                await websocket.send_json(mensaje)
            except Exception as e:
                # conexión caída: se descarta y se sigue con el resto del grupo
                self.desconectar(grupo, websocket)
                log_error("notificaciones", "sistema", f"Error enviando a {grupo}", str(e))


broadcaster = BroadcasterGrupos()


class Aviso(NamedTuple):
    reserva_id: int
    tipo: str
    momento: datetime
    grupo: str
    mensaje: Dict[str, Any]

    @property
    def clave(self) -> Tuple[int, str]:
        return self.reserva_id, self.tipo


def avisos_de_reserva(reserva: Reserva, habitacion: Habitacion, aviso_minutos: int = AVISO_MINUTOS_ANTES) -> List[Aviso]:
    """Los dos avisos de una reserva activa: N minutos antes del fin y al fin"""
    fin = OcupacionService.hora_fin_prevista(reserva)
    grupo = grupo_institucion(habitacion.institucion_id)
    return [
        Aviso(
            reserva.id, AVISO, fin - timedelta(minutes=aviso_minutos), grupo,
            {
                "tipo": "warning",
                "habitacion_id": habitacion.id,
                "mensaje": f"A la habitación {habitacion.nombre} le quedan {aviso_minutos} minutos",
            },
        ),
        Aviso(
            reserva.id, VENCIDA, fin, grupo,
            {
                "tipo": "ended",
                "habitacion_id": habitacion.id,
                "mensaje": f"A la habitación {habitacion.nombre} se le acabó el tiempo",
            },
        ),
    ]


class MonitorReservas:
    """Escaneo periódico de reservas activas y programación de avisos"""

    def __init__(
        self,
        session_factory: Callable,
        notificador: Notificador,
        intervalo: int = MONITOR_INTERVALO_SEGUNDOS,
        aviso_minutos: int = AVISO_MINUTOS_ANTES,
        reloj: Callable[[], datetime] = ahora_local
    ):
        self.session_factory = session_factory
        self.notificador = notificador
        self.intervalo = intervalo
        self.aviso_minutos = aviso_minutos
        self.reloj = reloj
        self._pendientes: Dict[Tuple[int, str], Tuple[datetime, asyncio.Task]] = {}
        self._tarea: Optional[asyncio.Task] = None

    @property
    def pendientes(self) -> Set[Tuple[int, str]]:
        return {clave for clave, (_, tarea) in self._pendientes.items() if not tarea.done()}

    def leer_avisos(self) -> Tuple[Set[int], List[Aviso]]:
        """Reservas activas (habitación con la visita vinculada y sin fin/anulación) y sus avisos"""
        db = self.session_factory()
        try:
            filas = db.query(Reserva, Habitacion).join(
                Habitacion, Habitacion.id == Reserva.habitacion_id
            ).filter(
                Habitacion.visita_id == Reserva.visita_id,
                Reserva.fecha_fin.is_(None),
                Reserva.fecha_anula.is_(None),
            ).all()

            activas = set()
            avisos = []
            for reserva, habitacion in filas:
                activas.add(reserva.id)
                avisos.extend(avisos_de_reserva(reserva, habitacion, self.aviso_minutos))
            return activas, avisos
        finally:
            db.close()

    def programar(self, activas: Set[int], avisos: List[Aviso], ahora: datetime) -> None:
        """
        Programa los avisos futuros que no estén ya pendientes para el mismo momento
        y cancela los de reservas que dejaron de estar activas. Los avisos cuyo
        momento ya pasó no se disparan.
        """
        for clave in list(self._pendientes):
            if clave[0] not in activas:
                _, tarea = self._pendientes.pop(clave)
                tarea.cancel()

        for aviso in avisos:
            if aviso.momento <= ahora:
                continue
            actual = self._pendientes.get(aviso.clave)
            if actual is not None:
                momento, tarea = actual
                if momento == aviso.momento and not tarea.done():
                    continue
                tarea.cancel()

            demora = (aviso.momento - ahora).total_seconds()
            tarea = asyncio.create_task(self._disparar(aviso, demora))
            self._pendientes[aviso.clave] = (aviso.momento, tarea)

    async def _disparar(self, aviso: Aviso, demora: float) -> None:
        try:
            await asyncio.sleep(demora)
            await self.notificador.notify(aviso.grupo, aviso.mensaje)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error("monitor", "sistema", "Error enviando aviso", f"reserva_id={aviso.reserva_id} {str(e)}")
        finally:
            actual = self._pendientes.get(aviso.clave)
            if actual is not None and actual[1] is asyncio.current_task():
                del self._pendientes[aviso.clave]

    async def escanear(self) -> None:
        ahora = self.reloj()
        activas, avisos = await asyncio.to_thread(self.leer_avisos)
        self.programar(activas, avisos, ahora)

    async def _bucle(self) -> None:
        while True:
            try:
                await self.escanear()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log_error("monitor", "sistema", "Error escaneando reservas", str(e))
            await asyncio.sleep(self.intervalo)

    def iniciar(self) -> None:
        if self._tarea is None or self._tarea.done():
            self._tarea = asyncio.create_task(self._bucle())
            log_event("monitor", "sistema", "Iniciar monitor", f"intervalo={self.intervalo}s")

    async def detener(self) -> None:
        """Cancela el escaneo y todos los avisos pendientes sin propagar errores"""
        tareas = [tarea for _, tarea in self._pendientes.values()]
        if self._tarea is not None:
            tareas.append(self._tarea)
        for tarea in tareas:
            tarea.cancel()
        await asyncio.gather(*tareas, return_exceptions=True)
        self._pendientes.clear()
        self._tarea = None
        log_event("monitor", "sistema", "Detener monitor", f"avisos_cancelados={len(tareas)}")
