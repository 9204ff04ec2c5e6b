import asyncio

from coldwatch.services import CompositeNotifier, FCMNotifier, NotificationKind, WebSocketNotifier
from coldwatch.services.notification_service import build_toast
from conftest import RecordingNotifier


class _RecordingExecutor:

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args):
        self.submitted.append((fn, args))


def test_offline_toast_is_destructive_with_sound():
    toast = build_toast(NotificationKind.DEVICE_OFFLINE, {"device_id": "d1", "device_name": "Cámara 1"})

    assert toast["variant"] == "destructive"
    assert toast["sound"] is True
    assert "Cámara 1" in toast["description"]
    assert toast["deviceId"] == "d1"


def test_warning_toast_uses_payload_text():
    toast = build_toast(NotificationKind.WARNING, {"title": "Error de registro", "description": "No se guardó."})

    assert (toast["title"], toast["description"]) == ("Error de registro", "No se guardó.")
    assert toast["sound"] is False


def test_composite_isolates_failing_notifier():
    class Broken:
        def notify(self, kind, payload):
            raise RuntimeError("push caído")

    recording = RecordingNotifier()
    CompositeNotifier(Broken(), recording).notify(NotificationKind.ERROR, {"title": "x"})

    assert recording.kinds() == [NotificationKind.ERROR]


def test_fcm_only_pushes_status_changes():
    executor = _RecordingExecutor()
    notifier = FCMNotifier(executor, topic="estado")

    notifier.notify(NotificationKind.WARNING, {"title": "x"})
    notifier.notify(NotificationKind.DEVICE_ONLINE, {"device_id": "d1", "timestamp": "2024-01-01T00:00:00+00:00"})

    [(_, args)] = executor.submitted
    title, _, data, topic = args
    assert title == "Dispositivo en línea"
    assert data["deviceId"] == "d1"
    assert topic == "estado"


def test_fcm_pushes_a_transition_once_across_views():
    executor = _RecordingExecutor()
    now = [1000.0]
    notifier = FCMNotifier(executor, topic="estado", dedup_seconds=30, clock=lambda: now[0])
    payload = {"device_id": "d1", "device_name": "Cámara 1"}

    # Tres vistas abiertas sobre d1 detectan el mismo cambio
    for _ in range(3):
        notifier.notify(NotificationKind.DEVICE_OFFLINE, payload)
    notifier.notify(NotificationKind.DEVICE_ONLINE, payload)
    notifier.notify(NotificationKind.DEVICE_OFFLINE, {"device_id": "d2"})
    now[0] += 31
    notifier.notify(NotificationKind.DEVICE_OFFLINE, payload)

    pushed = [(args[2]["deviceId"], args[2]["kind"]) for _, args in executor.submitted]
    assert pushed == [("d1", "device_offline"), ("d1", "device_online"), ("d2", "device_offline"), ("d1", "device_offline")]


def test_websocket_notifier_queues_toast_on_its_loop():
    loop = asyncio.new_event_loop()
    try:
        queue = asyncio.Queue()
        WebSocketNotifier(loop, queue).notify(NotificationKind.WARNING, {"device_id": "d1", "title": "Aviso"})
        loop.run_until_complete(asyncio.sleep(0))

        toast = queue.get_nowait()
        assert (toast["type"], toast["title"], toast["deviceId"]) == ("toast", "Aviso", "d1")
    finally:
        loop.close()

    # Con el loop cerrado se descarta sin error
    WebSocketNotifier(loop, queue).notify(NotificationKind.WARNING, {"title": "tarde"})
