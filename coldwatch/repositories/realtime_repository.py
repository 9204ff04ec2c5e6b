# coldwatch/repositories/realtime_repository.py

import copy
import time
from typing import Callable

from firebase_admin.exceptions import FirebaseError

from coldwatch.core import logger, settings
from coldwatch.schemas import RealtimePayload
from .listener_watchdog import ListenerWatchdog


def apply_stream_event(current, event_type: str, path: str, data):
    """
    Aplica un evento 'put'/'patch' del stream de RTDB sobre la copia local del nodo.

    Un put en la raíz reemplaza el nodo completo. En subrutas un valor null se
    conserva como clave presente con None: así 'pin' borrado llega como pin limpiado.
    """
    keys = [key for key in path.split("/") if key]

    if not keys and event_type == "put":
        return copy.deepcopy(data)

    base = copy.deepcopy(current) if isinstance(current, dict) else {}
    node = base
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child

    if event_type == "put":
        node[keys[-1]] = copy.deepcopy(data)
        return base

    # patch: mezcla clave a clave en el destino
    if keys:
        target = node.get(keys[-1])
        if not isinstance(target, dict):
            target = {}
            node[keys[-1]] = target
    else:
        target = node
    for key, value in (data or {}).items():
        target[key] = copy.deepcopy(value)
    return base


class RealtimeRepository:

    def __init__(self, root_ref, devices_path: str | None = None, check_interval: float | None = None):
        self.root = root_ref
        self.devices_path = devices_path or settings.RTDB_DEVICES_PATH
        self.check_interval = check_interval or settings.LISTENER_CHECK_INTERVAL

    def _device_ref(self, device_id: str):
        return self.root.child(f"{self.devices_path}/{device_id}")

    def watch_device(
        self,
        device_id: str,
        on_value: Callable[[dict | None], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """
        Escucha devices/{id}. on_value recibe siempre el nodo completo (o None).

        El stream corre en un hilo de firebase_admin que muere en silencio si
        la conexión no se puede recuperar; el watchdog lo detecta y llama a
        on_error para que el dispositivo pase a offline.
        """
        state = {"value": None}

        def _listener(event):
            try:
                state["value"] = apply_stream_event(state["value"], event.event_type, event.path, event.data)
                value = copy.deepcopy(state["value"])
            except Exception as e:
                on_error(e)
                return
            on_value(value if value != {} else None)

        registration = self._device_ref(device_id).listen(_listener)
        logger.info(f"Listener RTDB abierto para {self.devices_path}/{device_id}")

        watchdog = None
        stream_thread = getattr(registration, "_thread", None)
        if stream_thread is not None:
            watchdog = ListenerWatchdog(
                f"RTDB {device_id}", stream_thread.is_alive, on_error, self.check_interval
            ).start()

        def _unwatch():
            # Primero el watchdog: el cierre voluntario no es una caída
            if watchdog is not None:
                watchdog.stop()
            try:
                registration.close()
            except Exception as e:
                logger.warning(f"Error cerrando listener RTDB de {device_id}: {e}")

        return _unwatch

    def write_pin(self, device_id: str, pin: int | None) -> bool:
        try:
            self._device_ref(device_id).child("pin").set(pin)
            logger.info(f"Pin {pin if pin is not None else 'null (limpiado)'} escrito en RTDB para {device_id}")
            return True
        except (FirebaseError, ValueError) as e:
            logger.error(f"No se pudo escribir el pin en RTDB para {device_id}: {e}")
            return False

    def remove_device_node(self, device_id: str) -> bool:
        try:
            self._device_ref(device_id).delete()
            logger.info(f"Nodo RTDB eliminado para {device_id}")
            return True
        except FirebaseError as e:
            logger.warning(f"No se pudo eliminar el nodo RTDB de {device_id}: {e}")
            return False

    def write_status(self, device_id: str, status: str) -> bool:
        try:
            # Mismo nodo que escribe el firmware; el pin no se toca
            payload = RealtimePayload(status=status, last_updated=str(int(time.time())))
            self._device_ref(device_id).update(payload.model_dump(exclude={"pin"}))
            return True
        except (FirebaseError, ValueError) as e:
            logger.error(f"No se pudo escribir el estado en RTDB para {device_id}: {e}")
            return False
