# coldwatch/services/device_service.py

from coldwatch.core import logger
from coldwatch.schemas import (
    ActivityEventType,
    ActivityLogCreate,
    Device,
    DeviceCreate,
    DeviceStatus,
    DeviceUpdate,
    Scope,
)
from .notification_service import NotificationKind


def _pin_label(pin: int | None) -> str:
    return "none" if pin is None else str(pin)


class DeviceService:
    """
    CRUD de dispositivos sobre Firestore con sincronización del pin a RTDB.
    El motor de reconciliación reacciona solo al cambio de listado resultante.
    """

    def __init__(self, device_repo, realtime_repo, log_writer, notifier=None):
        self.device_repo = device_repo
        self.realtime_repo = realtime_repo
        self.log_writer = log_writer
        self.notifier = notifier

    def _log(self, device_id: str, event_type: ActivityEventType, message: str, user_id: str | None,
             old_value=None, new_value=None):
        self.log_writer.write(ActivityLogCreate(
            device_id=device_id,
            event_type=event_type,
            message=message,
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
            user_id=user_id,
        ))

    def _warn(self, title: str, description: str, device_id: str | None = None):
        if self.notifier is not None:
            self.notifier.notify(NotificationKind.WARNING, {
                "device_id": device_id,
                "title": title,
                "description": description,
            })

    def get_device(self, dev_id: str) -> Device | None:
        return self.device_repo.get_device(dev_id)

    def list_devices(self, scope: Scope) -> list[Device]:
        return self.device_repo.list_devices(scope)

    def create_device(self, device_data: DeviceCreate, user_id: str | None) -> Device | None:
        new_device_data = device_data.model_dump(by_alias=True, mode="json")
        device = self.device_repo.add_device(new_device_data)
        if not device:
            return None

        # El ESP lee el pin desde RTDB, se sincroniza también cuando es null
        if not self.realtime_repo.write_pin(device.id, device_data.assigned_pin):
            logger.warning(f"No se pudo escribir el pin inicial en RTDB para {device.id}")

        pin_text = f" con pin {device_data.assigned_pin}" if device_data.assigned_pin is not None else ""
        self._log(
            device.id,
            ActivityEventType.DEVICE_CREATED,
            f'Dispositivo "{device_data.name}" creado{pin_text}. Estado inicial en Firestore: offline.',
            user_id,
            new_value=DeviceStatus.OFFLINE.value,
        )
        logger.info(f"Dispositivo {device.id} creado en la sucursal {device.branch_id}")
        return device

    def update_device(self, dev_id: str, device_data: DeviceUpdate, user_id: str | None) -> Device | None:
        current = self.device_repo.get_device(dev_id)
        if not current:
            logger.warning(f"Dispositivo {dev_id} no encontrado para actualizar")
            return None

        update_data = device_data.model_dump(exclude_unset=True, by_alias=True, mode="json")
        pin_changed = "assignedPin" in update_data

        event_type = None
        old_value = new_value = None
        message = f'Detalles del dispositivo "{update_data.get("name") or current.name}" actualizados.'

        new_status = update_data.get("status")
        if new_status == DeviceStatus.MAINTENANCE.value and not current.in_maintenance:
            event_type = ActivityEventType.MAINTENANCE_SET
            message = "Dispositivo puesto en modo mantenimiento."
            old_value, new_value = current.status, DeviceStatus.MAINTENANCE.value
        elif new_status and new_status != DeviceStatus.MAINTENANCE.value and current.in_maintenance:
            event_type = ActivityEventType.MAINTENANCE_CLEARED
            message = f"Dispositivo fuera de mantenimiento. Firestore queda en '{new_status}'; manda el estado de RTDB."
            old_value, new_value = DeviceStatus.MAINTENANCE.value, new_status

        updated = self.device_repo.update_device(dev_id, update_data)
        if not updated:
            self._warn("Error de Firestore", "No se pudieron guardar los cambios del dispositivo.", dev_id)
            return None

        if pin_changed:
            new_pin = update_data["assignedPin"]
            if self.realtime_repo.write_pin(dev_id, new_pin):
                if event_type is None:
                    event_type = ActivityEventType.DEVICE_DETAILS_UPDATED
                    old_value, new_value = _pin_label(current.assigned_pin), _pin_label(new_pin)
                    message = f'Pin del dispositivo cambiado de "{old_value}" a "{new_value}".'
                self._log(dev_id, event_type, message, user_id, old_value, new_value)
            else:
                self._log(
                    dev_id,
                    ActivityEventType.LOG_ERROR,
                    "No se pudo sincronizar el pin con RTDB. Firestore sí se actualizó.",
                    user_id,
                )
                self._warn(
                    "Aviso de sincronización RTDB",
                    "Los datos se guardaron, pero no se pudo sincronizar el pin con Realtime Database.",
                    dev_id,
                )
        elif event_type is not None:
            self._log(dev_id, event_type, message, user_id, old_value, new_value)
        elif update_data and "status" not in update_data:
            self._log(dev_id, ActivityEventType.DEVICE_DETAILS_UPDATED, self._summarize_changes(current, update_data), user_id)

        return updated

    def _summarize_changes(self, current: Device, update_data: dict) -> str:
        changes = []
        for field in ("name", "type", "location"):
            if field in update_data and update_data[field] != getattr(current, field):
                changes.append(f'{field} a "{update_data[field]}"')
        if "notes" in update_data and update_data["notes"] != current.notes:
            changes.append("notas actualizadas")

        if changes:
            return f"Detalles del dispositivo actualizados: {', '.join(changes)}."
        return "Detalles del dispositivo guardados sin cambios detectados."

    def toggle_maintenance(self, dev_id: str, user_id: str | None) -> Device | None:
        current = self.device_repo.get_device(dev_id)
        if not current:
            return None

        # Salir de mantenimiento deja 'offline' en Firestore y el estado en vivo lo pone RTDB
        target = DeviceStatus.OFFLINE if current.in_maintenance else DeviceStatus.MAINTENANCE
        return self.update_device(dev_id, DeviceUpdate(status=target), user_id)

    def delete_device(self, dev_id: str, user_id: str | None) -> bool:
        device = self.device_repo.get_device(dev_id)
        if not device:
            return False

        if not self.device_repo.delete_device(dev_id):
            self._warn("Error", "No se pudo eliminar el dispositivo.", dev_id)
            return False

        self.realtime_repo.remove_device_node(dev_id)
        self._log(
            dev_id,
            ActivityEventType.DEVICE_DETAILS_UPDATED,
            f'Dispositivo "{device.name}" y sus datos de RTDB eliminados.',
            user_id,
        )
        return True
