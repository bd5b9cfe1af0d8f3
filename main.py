from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS, MONITOR_HABILITADO
from database.conexion import Base, engine, SessionLocal
import models  # 👈 asegura que todos los modelos estén registrados
from services.notificaciones import MonitorReservas, broadcaster

try:
    Base.metadata.create_all(bind=engine)
    print("[OK] Tablas creadas (o ya existian)")
except Exception as e:
    print(f"[ERROR] Error creando tablas: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    monitor = None
    if MONITOR_HABILITADO:
        monitor = MonitorReservas(SessionLocal, broadcaster)
        monitor.iniciar()
    app.state.monitor = monitor
    try:
        yield
    finally:
        if monitor is not None:
            await monitor.detener()


app = FastAPI(title="API Momentos", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],         # GET, POST, PUT, DELETE...
    allow_headers=["*"],
)

from endpoints import reservas, disponibilidad, consumos, inventario, pagos, caja, notificaciones
app.include_router(reservas.router)
app.include_router(disponibilidad.router)
app.include_router(consumos.router)
app.include_router(inventario.router)
app.include_router(pagos.router)
app.include_router(caja.router)
app.include_router(notificaciones.router)


@app.get("/")
def read_root():
    return {"message": "API Momentos - motor de ocupación y facturación"}
