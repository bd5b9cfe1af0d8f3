"""
WebSocket de notificaciones por institución (avisos de fin de turno y pedidos)
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from config import grupo_institucion
from services.notificaciones import broadcaster
from utils.logging_utils import log_event

router = APIRouter(tags=["Notificaciones"])


@router.websocket("/ws/notificaciones/{institucion_id}")
async def notificaciones(websocket: WebSocket, institucion_id: int):
    grupo = grupo_institucion(institucion_id)
    await broadcaster.conectar(grupo, websocket)
    log_event("notificaciones", "sistema", "Conexión", f"grupo={grupo}")
    try:
        while True:
            # el cliente no manda nada útil; se lee para detectar el cierre
            await websocket.receive_text()
    except WebSocketDisconnect:
        broadcaster.desconectar(grupo, websocket)
        log_event("notificaciones", "sistema", "Desconexión", f"grupo={grupo}")
