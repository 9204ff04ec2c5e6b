import asyncio

from fastapi import WebSocket, APIRouter, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from coldwatch.core import logger, manager, decode_token
from coldwatch.schemas import Scope
from coldwatch.services import WebSocketNotifier

router = APIRouter(prefix="/ws",tags=["WebSocket"])


async def _pump_snapshots(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        message = await queue.get()
        await manager.send_json(websocket, message)


@router.websocket("/devices")
async def device_status_websocket(
    websocket: WebSocket,
    token: str,
    branch_id: str | None = None,
    region_id: str | None = None
):
    # 1. Validar token ANTES de aceptar el WebSocket
    token_data = decode_token(token)
    if token_data is None:
        logger.warning("Token inválido en WebSocket")
        await websocket.close(code=1008)  # Policy Violation
        return

    if branch_id:
        scope = Scope.branch(branch_id)
    elif region_id:
        scope = Scope.region(region_id)
    else:
        scope = Scope.all()

    # 2. Aceptar y suscribirse al motor de reconciliación
    await manager.connect(websocket)
    logger.info(f"Dashboard de {token_data.user_id} conectado a {scope.describe()}")

    queue: asyncio.Queue = asyncio.Queue()
    # Toasts de esta conexión: solo cambios y errores de su propio scope
    notifier = WebSocketNotifier(asyncio.get_running_loop(), queue)

    def on_update(records):
        # Cada mensaje es el conjunto completo, no un delta
        queue.put_nowait({
            "type": "devices",
            "scope": scope.describe(),
            "devices": [record.model_dump(by_alias=True, mode="json") for record in records],
        })

    subscription_manager = websocket.app.state.subscription_manager
    unsubscribe = await run_in_threadpool(subscription_manager.subscribe, scope, on_update, notifier=notifier)
    sender = asyncio.create_task(_pump_snapshots(websocket, queue))

    # 3. Mantener la conexión abierta hasta que el dashboard se vaya
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Dashboard desconectado de {scope.describe()}")
    finally:
        unsubscribe()
        sender.cancel()
        manager.disconnect(websocket)
