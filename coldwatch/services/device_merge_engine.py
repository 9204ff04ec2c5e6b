# coldwatch/services/device_merge_engine.py

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from coldwatch.core import logger
from coldwatch.schemas import (
    ActivityEventType,
    ActivityLogCreate,
    Device,
    DeviceStatus,
    InterpretedStatus,
    MergedDeviceRecord,
)
from .notification_service import NotificationKind
from .status_interpreter import interpret_realtime_payload
from .transition_detector import TransitionDetector, TransitionKind


@dataclass
class RealtimeState:
    """Lo último que sabemos de RTDB para un dispositivo."""
    status: DeviceStatus | None = None
    last_seen: datetime | None = None
    pin_present: bool = False
    pin: int | None = None

    def apply(self, interpreted: InterpretedStatus):
        self.status = interpreted.status
        # Sin timestamp válido se conserva el último conocido
        if interpreted.last_seen is not None:
            self.last_seen = interpreted.last_seen
        if interpreted.pin_present:
            self.pin_present = True
            self.pin = interpreted.pin


def merge_device_record(device: Device, realtime: RealtimeState | None = None, realtime_only: bool = False) -> MergedDeviceRecord:
    """
    Precedencia Firestore/RTDB:
      1. 'maintenance' en Firestore fuerza 'maintenance'.
      2. Si no, manda el estado de RTDB ('offline' si nunca llegó nada).
      3. Los dispositivos realtime-only ignoran el mantenimiento.
    """
    rtdb_status = realtime.status if realtime is not None else None
    live_status = rtdb_status or DeviceStatus.OFFLINE

    if device.in_maintenance and not realtime_only:
        status = DeviceStatus.MAINTENANCE
    else:
        status = live_status

    last_seen = device.last_seen
    if realtime is not None and realtime.last_seen is not None:
        last_seen = realtime.last_seen

    assigned_pin = device.assigned_pin
    if realtime is not None and realtime.pin_present:
        assigned_pin = realtime.pin

    data = device.model_dump()
    data.update(
        status=status.value,
        last_seen=last_seen,
        assigned_pin=assigned_pin,
        firestore_status=device.status,
        rtdb_status=rtdb_status,
    )
    return MergedDeviceRecord(**data)


TransitionHook = Callable[[str, TransitionKind, datetime], None]


class DeviceMergeEngine:
    """
    Estado reconciliado de una suscripción: documentos de Firestore, último
    estado de RTDB, registros fusionados y caché de estado previo.

    Cada suscripción crea su propio motor, así dos vistas que observan el
    mismo dispositivo no se pisan la caché.
    """

    def __init__(
        self,
        on_update: Callable[[list[MergedDeviceRecord]], None],
        log_writer=None,
        notifier=None,
        on_transition: TransitionHook | None = None,
        realtime_only_ids: Iterable[str] = (),
        label: str = "scope",
    ):
        self.on_update = on_update
        self.log_writer = log_writer
        self.notifier = notifier
        self.on_transition = on_transition
        self.realtime_only_ids = frozenset(realtime_only_ids)
        self.label = label
        self.detector = TransitionDetector()
        self.active = True

        self._durable: dict[str, Device] = {}
        self._realtime: dict[str, RealtimeState] = {}
        self._records: dict[str, MergedDeviceRecord] = {}

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._records

    def __len__(self):
        return len(self._records)

    @property
    def device_ids(self) -> set[str]:
        return set(self._records)

    def record(self, device_id: str) -> MergedDeviceRecord | None:
        return self._records.get(device_id)

    def _remerge(self, device_id: str):
        self._records[device_id] = merge_device_record(
            self._durable[device_id],
            self._realtime.get(device_id),
            realtime_only=device_id in self.realtime_only_ids,
        )

    def upsert_durable(self, device: Device) -> bool:
        """Siembra o refresca un dispositivo con datos de Firestore. True si es nuevo."""
        is_new = device.id not in self._durable
        self._durable[device.id] = device
        self._remerge(device.id)
        return is_new

    def remove(self, device_id: str):
        self._durable.pop(device_id, None)
        self._realtime.pop(device_id, None)
        self._records.pop(device_id, None)
        self.detector.forget(device_id)

    def apply_realtime(self, device_id: str, payload) -> TransitionKind | None:
        """Procesa un valor de RTDB. Los eventos de dispositivos fuera de la suscripción se descartan."""
        if not self.active or device_id not in self._durable:
            logger.debug(f"Evento RTDB descartado para {device_id} ({self.label})")
            return None

        interpreted = interpret_realtime_payload(payload)
        self._realtime.setdefault(device_id, RealtimeState()).apply(interpreted)
        self._remerge(device_id)

        previous = self.detector.previous(device_id)
        kind = self.detector.detect(device_id, interpreted.status)
        if kind.is_notifiable:
            self._on_status_transition(device_id, kind, previous, interpreted.status.value)

        self.publish()
        return kind

    def apply_realtime_error(self, device_id: str, error):
        """Error del listener: el dispositivo pasa a offline (o sigue en mantenimiento)."""
        if not self.active or device_id not in self._durable:
            return

        logger.error(f"Error en listener RTDB del dispositivo {device_id} ({self.label}): {error}")
        self._realtime.setdefault(device_id, RealtimeState()).status = DeviceStatus.OFFLINE
        self._remerge(device_id)
        self.detector.mark(device_id, DeviceStatus.OFFLINE)
        self.publish()

    def _on_status_transition(self, device_id: str, kind: TransitionKind, previous: str, current: str):
        timestamp = datetime.now(timezone.utc)
        name = self._records[device_id].name or device_id
        logger.info(
            f"[Cambio de estado] Dispositivo {device_id} \"{name}\": {previous} → {current} "
            f"({timestamp.isoformat()})"
        )

        if self.log_writer is not None:
            try:
                self.log_writer.write(ActivityLogCreate(
                    device_id=device_id,
                    event_type=ActivityEventType.RTDB_STATUS_CHANGE,
                    old_value=previous,
                    new_value=current,
                    message=f"El estado RTDB del dispositivo cambió de {previous} a {current}.",
                    user_id=None,
                ), notifier=self.notifier)
            except Exception as e:
                logger.error(f"Error registrando cambio de estado de {device_id}: {e}")

        if self.notifier is not None:
            notification = (
                NotificationKind.DEVICE_OFFLINE
                if kind == TransitionKind.ONLINE_TO_OFFLINE
                else NotificationKind.DEVICE_ONLINE
            )
            try:
                self.notifier.notify(notification, {
                    "device_id": device_id,
                    "device_name": name,
                    "timestamp": timestamp.isoformat(),
                    "transition": kind.value,
                })
            except Exception as e:
                logger.error(f"Error notificando cambio de estado de {device_id}: {e}")

        if self.on_transition is not None:
            try:
                self.on_transition(device_id, kind, timestamp)
            except Exception as e:
                logger.error(f"Error en hook on_transition para {device_id}: {e}")

    def snapshot(self) -> list[MergedDeviceRecord]:
        return [record.model_copy(deep=True) for record in self._records.values()]

    def publish(self):
        """Entrega al suscriptor el conjunto completo (no un delta)."""
        if not self.active:
            return
        try:
            self.on_update(self.snapshot())
        except Exception as e:
            logger.error(f"Error en callback de suscripción ({self.label}): {e}")

    def clear(self):
        self._durable.clear()
        self._realtime.clear()
        self._records.clear()
        self.detector.clear()

    def close(self):
        self.active = False
        self.clear()
