# coldwatch/repositories/device_repository.py

from datetime import datetime, timezone
from typing import Callable

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from coldwatch.core import logger, settings
from coldwatch.schemas import Device, Scope, ScopeKind
from .listener_watchdog import ListenerWatchdog

DEVICES_COLLECTION = "devices"

# Límite de valores de Firestore para el operador 'in'
FIRESTORE_IN_LIMIT = 30


def document_to_device(doc) -> Device | None:
    data = doc.to_dict() or {}
    try:
        return Device.model_validate({**data, "id": doc.id})
    except ValidationError as e:
        logger.warning(f"Documento de dispositivo {doc.id} inválido, se ignora: {e}")
        return None


class DeviceRepository:

    def __init__(self, client, check_interval: float | None = None):
        self.client = client
        self.check_interval = check_interval or settings.LISTENER_CHECK_INTERVAL
        self.collection = client.collection(DEVICES_COLLECTION)

    def _scope_query(self, scope: Scope):
        """Devuelve (query, filtro_local). El filtro local cubre regiones con más de 30 sucursales."""
        if scope.kind == ScopeKind.BRANCH:
            return self.collection.where(filter=FieldFilter("branchId", "==", scope.branch_id)), None

        if scope.kind == ScopeKind.BRANCHES:
            if len(scope.branch_ids) <= FIRESTORE_IN_LIMIT:
                return self.collection.where(filter=FieldFilter("branchId", "in", list(scope.branch_ids))), None
            allowed = set(scope.branch_ids)
            return self.collection, lambda device: device.branch_id in allowed

        if scope.kind == ScopeKind.ALL:
            return self.collection, None

        raise ValueError(f"Scope sin resolver: {scope.describe()}")

    def _to_devices(self, docs, local_filter) -> list[Device]:
        devices = [device for device in (document_to_device(doc) for doc in docs) if device is not None]
        if local_filter is not None:
            devices = [device for device in devices if local_filter(device)]
        return devices

    def watch_devices(
        self,
        scope: Scope,
        on_devices: Callable[[list[Device]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """
        Escucha en vivo los dispositivos del scope. Devuelve la función para dejar de escuchar.
        """
        if scope.kind == ScopeKind.BRANCHES and not scope.branch_ids:
            # Región sin sucursales: lista vacía confirmada
            on_devices([])
            return lambda: None

        query, local_filter = self._scope_query(scope)

        def _on_snapshot(doc_snapshots, changes, read_time):
            try:
                devices = self._to_devices(doc_snapshots, local_filter)
            except Exception as e:
                on_error(e)
                return
            logger.info(f"Snapshot de Firestore para {scope.describe()}: {len(devices)} dispositivos.")
            on_devices(devices)

        watch = query.on_snapshot(_on_snapshot)

        # El SDK cierra el Watch en un hilo propio cuando el RPC no se recupera
        watchdog = ListenerWatchdog(
            f"Firestore {scope.describe()}", lambda: watch.is_active, on_error, self.check_interval
        ).start()

        def _unwatch():
            watchdog.stop()
            watch.unsubscribe()

        return _unwatch

    def list_devices(self, scope: Scope) -> list[Device]:
        """Lectura puntual, sin estado en vivo de RTDB."""
        if scope.kind == ScopeKind.BRANCHES and not scope.branch_ids:
            return []
        query, local_filter = self._scope_query(scope)
        return self._to_devices(query.stream(), local_filter)

    def get_device(self, dev_id: str) -> Device | None:
        snapshot = self.collection.document(dev_id).get()
        if not snapshot.exists:
            return None
        return document_to_device(snapshot)

    def add_device(self, data: dict) -> Device | None:
        try:
            document = {
                **data,
                "status": "offline",
                "lastSeen": datetime.now(timezone.utc),
            }
            if document.get("notes") is None:
                document.pop("notes", None)

            _, doc_ref = self.collection.add(document)
            logger.info(f"Dispositivo {doc_ref.id} creado en Firestore")
            return self.get_device(doc_ref.id)
        except GoogleAPIError as e:
            logger.error(f"No se pudo agregar el dispositivo: {e}")
            return None

    def update_device(self, dev_id: str, update_data: dict) -> Device | None:
        try:
            doc_ref = self.collection.document(dev_id)
            doc_ref.update({**update_data, "lastSeen": firestore.SERVER_TIMESTAMP})
            logger.info(f"Dispositivo {dev_id} actualizado en Firestore: {sorted(update_data)}")
            return self.get_device(dev_id)
        except GoogleAPIError as e:
            logger.error(f"No se pudo actualizar el dispositivo con id {dev_id}: {e}")
            return None

    def delete_device(self, dev_id: str) -> bool:
        try:
            self.collection.document(dev_id).delete()
            logger.info(f"Se eliminó el dispositivo con id {dev_id}")
            return True
        except GoogleAPIError as e:
            logger.error(f"No se pudo eliminar el dispositivo con id {dev_id}: {e}")
            return False
