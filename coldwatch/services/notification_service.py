# coldwatch/services/notification_service.py

import asyncio
import threading
import time
from concurrent.futures import Executor
from enum import Enum

from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from coldwatch.core import logger, settings


class NotificationKind(str, Enum):
    DEVICE_ONLINE = "device_online"
    DEVICE_OFFLINE = "device_offline"
    WARNING = "warning"
    ERROR = "error"


def build_toast(kind: NotificationKind, payload: dict) -> dict:
    """Traduce una notificación al toast que pinta el dashboard."""
    name = payload.get("device_name") or payload.get("device_id")

    if kind == NotificationKind.DEVICE_OFFLINE:
        title = "Dispositivo sin conexión"
        description = f'El dispositivo "{name}" se ha desconectado.'
        variant = "destructive"
    elif kind == NotificationKind.DEVICE_ONLINE:
        title = "Dispositivo en línea"
        description = f'El dispositivo "{name}" vuelve a estar en línea.'
        variant = "default"
    else:
        title = payload.get("title", "Aviso")
        description = payload.get("description", "")
        variant = "destructive" if kind == NotificationKind.ERROR else "default"

    return {
        "type": "toast",
        "kind": kind.value,
        "title": title,
        "description": description,
        "variant": variant,
        # Solo los cambios de estado suenan en el dashboard
        "sound": kind in (NotificationKind.DEVICE_ONLINE, NotificationKind.DEVICE_OFFLINE),
        "deviceId": payload.get("device_id"),
        "timestamp": payload.get("timestamp"),
    }


def send_push_notification(title: str, body: str, data: dict = None, topic: str = None) -> bool:
    """
    Envía una notificación push al topic FCM de estados de dispositivo.

    Returns:
        True si el envío fue exitoso, False en caso contrario.
    """
    topic = topic or settings.FCM_STATUS_TOPIC
    if not topic:
        logger.warning("Intento de enviar una notificación sin topic FCM")
        return False

    if data:
        data = {k: str(v) for k, v in data.items() if v is not None}

    message = messaging.Message(
        notification=messaging.Notification(
            title=title,
            body=body,
        ),
        android=messaging.AndroidConfig(
            notification=messaging.AndroidNotification(sound="default"),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
        ),
        topic=topic,
        data=data
    )

    try:
        response = messaging.send(message)
        logger.info(f"Notificación push enviada al topic {topic}. ID: {response}")
        return True
    except FirebaseError as e:
        logger.error(f"Error de Firebase al enviar notificación al topic {topic}: {e}")
        return False
    except ValueError as e:
        logger.error(f"Notificación push inválida para el topic {topic}: {e}")
        return False


class LoggingNotifier:
    """Notificador por defecto: solo deja constancia en el log."""

    def notify(self, kind: NotificationKind, payload: dict):
        toast = build_toast(kind, payload)
        if kind in (NotificationKind.WARNING, NotificationKind.ERROR, NotificationKind.DEVICE_OFFLINE):
            logger.warning(f"🔔 {toast['title']}: {toast['description']}")
        else:
            logger.info(f"🔔 {toast['title']}: {toast['description']}")


class FCMNotifier:
    """
    Push con sonido para los cambios online/offline. El envío va al pool de hilos.

    Cada vista abierta detecta el mismo cambio por su cuenta; un cambio
    (dispositivo + tipo) se envía una sola vez dentro de la ventana de dedup.
    """

    def __init__(self, executor: Executor, topic: str | None = None, dedup_seconds: float | None = None,
                 clock=time.monotonic):
        self.executor = executor
        self.topic = topic
        self.dedup_seconds = settings.FCM_DEDUP_SECONDS if dedup_seconds is None else dedup_seconds
        self.clock = clock
        self._last_sent: dict[tuple[str, NotificationKind], float] = {}
        self._lock = threading.Lock()

    def _is_duplicate(self, device_id: str, kind: NotificationKind) -> bool:
        now = self.clock()
        with self._lock:
            last = self._last_sent.get((device_id, kind))
            if last is not None and now - last < self.dedup_seconds:
                return True
            self._last_sent[(device_id, kind)] = now
            return False

    def notify(self, kind: NotificationKind, payload: dict):
        if kind not in (NotificationKind.DEVICE_ONLINE, NotificationKind.DEVICE_OFFLINE):
            return
        if self._is_duplicate(payload.get("device_id"), kind):
            logger.debug(f"Push duplicado omitido: {kind.value} ({payload.get('device_id')})")
            return

        toast = build_toast(kind, payload)
        self.executor.submit(
            send_push_notification,
            toast["title"],
            toast["description"],
            {"deviceId": payload.get("device_id"), "kind": kind.value, "timestamp": payload.get("timestamp")},
            self.topic,
        )


class WebSocketNotifier:
    """
    Toasts de una sola conexión de dashboard.

    Se entrega a la suscripción de esa conexión, así que solo recibe avisos
    de los dispositivos de su scope. Los mensajes se encolan junto a los
    snapshots en la cola de salida del socket.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        self.loop = loop
        self.queue = queue

    def notify(self, kind: NotificationKind, payload: dict):
        if self.loop.is_closed():
            return
        # Puede llamarse desde el hilo del loop o desde el pool de escritura de logs
        self.loop.call_soon_threadsafe(self.queue.put_nowait, build_toast(kind, payload))


class CompositeNotifier:

    def __init__(self, *notifiers):
        self.notifiers = [notifier for notifier in notifiers if notifier is not None]

    def notify(self, kind: NotificationKind, payload: dict):
        for notifier in self.notifiers:
            try:
                notifier.notify(kind, payload)
            except Exception as e:
                logger.error(f"Error en notificador {type(notifier).__name__}: {e}")
