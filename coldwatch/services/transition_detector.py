# coldwatch/services/transition_detector.py

from enum import Enum

from coldwatch.schemas import DeviceStatus


class TransitionKind(str, Enum):
    NO_PRIOR_DATA = "no-prior-data"
    UNCHANGED = "unchanged"
    ONLINE_TO_OFFLINE = "online->offline"
    OFFLINE_TO_ONLINE = "offline->online"
    OTHER_CHANGE = "other-change"

    @property
    def is_notifiable(self) -> bool:
        return self in (TransitionKind.ONLINE_TO_OFFLINE, TransitionKind.OFFLINE_TO_ONLINE)


def _value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


class TransitionDetector:
    """
    Compara el último estado RTDB observado por dispositivo con el nuevo.
    La caché pertenece a una sola suscripción; dos vistas del mismo
    dispositivo no comparten estado.
    """

    def __init__(self):
        self._previous: dict[str, str] = {}

    def detect(self, device_id: str, new_status) -> TransitionKind:
        new_value = _value(new_status)
        previous = self._previous.get(device_id)
        # Se actualiza siempre, también en 'unchanged'
        self._previous[device_id] = new_value

        if previous is None:
            return TransitionKind.NO_PRIOR_DATA
        if previous == new_value:
            return TransitionKind.UNCHANGED
        if previous == DeviceStatus.ONLINE.value and new_value == DeviceStatus.OFFLINE.value:
            return TransitionKind.ONLINE_TO_OFFLINE
        if previous == DeviceStatus.OFFLINE.value and new_value == DeviceStatus.ONLINE.value:
            return TransitionKind.OFFLINE_TO_ONLINE
        return TransitionKind.OTHER_CHANGE

    def previous(self, device_id: str) -> str | None:
        return self._previous.get(device_id)

    def mark(self, device_id: str, status):
        self._previous[device_id] = _value(status)

    def forget(self, device_id: str):
        self._previous.pop(device_id, None)

    def clear(self):
        self._previous.clear()

    def __len__(self):
        return len(self._previous)
