import asyncio
import os
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from coldwatch.core import settings, logger, log_critical_error
from coldwatch.core.discord_logger import send_discord_alert
from coldwatch.core.event_channel import LoopChannel
from coldwatch.database import initialize_firebase, get_firestore_client, get_rtdb_root
from coldwatch.repositories import (
    ActivityLogRepository,
    BranchRepository,
    DeviceRepository,
    RealtimeRepository,
)
from coldwatch.services import (
    ActivityLogWriter,
    CompositeNotifier,
    DeviceService,
    FCMNotifier,
    LoggingNotifier,
    ScopeSubscriptionManager,
)
from coldwatch.routers import api_router, websocket_router

os.environ['TZ'] = 'UTC'
time.tzset()


api_description = """
API de monitoreo de refrigeradores y aires acondicionados ColdWatch.

Reconcilia la configuración de Firestore con el estado en vivo que los
dispositivos publican en Realtime Database.

## WebSocket en Tiempo Real

* **URL:** `/ws/devices`
* **Parámetros de Conexión:**
    * `token` — Token JWT del usuario.
    * `branch_id` o `region_id` — Scope a observar (sin ninguno: todos los dispositivos).
* **Ejemplo:** `wss://coldwatch.example/ws/devices?branch_id=abc&token=eyJhbGciOi...`
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Arranque ---
    logger.info("🚀 Iniciando API ColdWatch...")
    if not initialize_firebase():
        log_critical_error("No se pudo inicializar Firebase.")

    loop = asyncio.get_running_loop()
    executor = ThreadPoolExecutor(max_workers=settings.ACTIVITY_LOG_WORKERS, thread_name_prefix="coldwatch")

    client = get_firestore_client()
    device_repository = DeviceRepository(client)
    realtime_repository = RealtimeRepository(get_rtdb_root())
    # Los toasts de WebSocket los añade cada conexión al suscribirse
    notifier = CompositeNotifier(LoggingNotifier(), FCMNotifier(executor))
    log_writer = ActivityLogWriter(ActivityLogRepository(client), notifier, executor)

    app.state.device_repository = device_repository
    app.state.realtime_repository = realtime_repository
    app.state.log_writer = log_writer
    app.state.device_service = DeviceService(device_repository, realtime_repository, log_writer, notifier)
    app.state.subscription_manager = ScopeSubscriptionManager(
        device_repository,
        realtime_repository,
        log_writer=log_writer,
        notifier=notifier,
        channel=LoopChannel(loop),
        branch_repository=BranchRepository(client),
    )
    send_discord_alert("API ColdWatch iniciada correctamente.", level="INFO")

    yield

    # --- Cierre ---
    logger.info("🛑 Deteniendo servicios...")
    app.state.subscription_manager.close_all()
    executor.shutdown(wait=False)


app = FastAPI(
    title="ColdWatch API",
    description=api_description,
    version="1.0.0",
    lifespan=lifespan
)


# --- Middleware CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Routers ---
app.include_router(api_router)
app.include_router(websocket_router.router)


@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Bienvenido a la API de ColdWatch v1"}


# --- Manejo global de errores ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log_critical_error(f"Error 500 en {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Error interno del servidor."}
    )
