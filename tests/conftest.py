from concurrent.futures import Executor, Future

import pytest

from coldwatch.core.event_channel import SerialChannel
from coldwatch.schemas import Device, ScopeKind
from coldwatch.services import ActivityLogWriter, ScopeSubscriptionManager

REALTIME_ONLY_ID = "rt-only"


class InlineExecutor(Executor):
    """Ejecuta en el mismo hilo: los tests no esperan a ningún pool."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeDeviceStore:
    """Firestore en memoria: cada cambio re-emite el listado a los listeners."""

    def __init__(self):
        self.devices: dict[str, Device] = {}
        self.listeners: dict[object, tuple] = {}
        self.watch_error: Exception | None = None
        self.fail_updates = False
        self._next_id = 1

    @property
    def active_listeners(self) -> int:
        return len(self.listeners)

    def _matches(self, scope, device: Device) -> bool:
        if scope.kind == ScopeKind.BRANCH:
            return device.branch_id == scope.branch_id
        if scope.kind == ScopeKind.BRANCHES:
            return device.branch_id in scope.branch_ids
        return True

    def _listing(self, scope) -> list[Device]:
        return [device for device in self.devices.values() if self._matches(scope, device)]

    def watch_devices(self, scope, on_devices, on_error):
        if self.watch_error is not None:
            raise self.watch_error
        key = object()
        self.listeners[key] = (scope, on_devices, on_error)
        on_devices(self._listing(scope))
        return lambda: self.listeners.pop(key, None)

    def emit(self):
        for scope, on_devices, _ in list(self.listeners.values()):
            on_devices(self._listing(scope))

    def fail(self, error: Exception):
        for _, _, on_error in list(self.listeners.values()):
            on_error(error)

    def put(self, *devices: Device, emit: bool = True):
        for device in devices:
            self.devices[device.id] = device
        if emit:
            self.emit()

    def remove(self, device_id: str, emit: bool = True):
        self.devices.pop(device_id, None)
        if emit:
            self.emit()

    def list_devices(self, scope):
        return self._listing(scope)

    def get_device(self, dev_id):
        return self.devices.get(dev_id)

    def add_device(self, data: dict):
        device = Device.model_validate({**data, "id": f"dev-{self._next_id}", "status": "offline"})
        self._next_id += 1
        self.put(device)
        return device

    def update_device(self, dev_id, update_data: dict):
        if self.fail_updates or dev_id not in self.devices:
            return None
        current = self.devices[dev_id].model_dump(by_alias=True)
        updated = Device.model_validate({**current, **update_data})
        self.put(updated)
        return updated

    def delete_device(self, dev_id):
        if dev_id not in self.devices:
            return False
        self.remove(dev_id)
        return True


class FakeRealtimeStore:
    """RTDB en memoria que cuenta los listeners abiertos."""

    def __init__(self):
        self.watchers: dict[str, dict[object, tuple]] = {}
        self.callbacks: dict[str, list[tuple]] = {}
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.failing_watch_ids: set[str] = set()
        self.pins: dict[str, int | None] = {}
        self.removed_nodes: list[str] = []
        self.statuses: dict[str, str] = {}
        self.fail_pin_writes = False

    @property
    def active_listeners(self) -> int:
        return sum(len(watchers) for watchers in self.watchers.values())

    def watch_device(self, device_id, on_value, on_error):
        if device_id in self.failing_watch_ids:
            raise ConnectionError(f"permiso denegado para {device_id}")
        key = object()
        self.watchers.setdefault(device_id, {})[key] = (on_value, on_error)
        self.callbacks.setdefault(device_id, []).append((on_value, on_error))
        self.opened.append(device_id)

        def unwatch():
            if self.watchers.get(device_id, {}).pop(key, None) is not None:
                self.closed.append(device_id)

        return unwatch

    def push(self, device_id, payload):
        for on_value, _ in list(self.watchers.get(device_id, {}).values()):
            on_value(payload)

    def fail(self, device_id, error):
        for _, on_error in list(self.watchers.get(device_id, {}).values()):
            on_error(error)

    def write_pin(self, device_id, pin):
        if self.fail_pin_writes:
            return False
        self.pins[device_id] = pin
        return True

    def remove_device_node(self, device_id):
        self.removed_nodes.append(device_id)
        return True

    def write_status(self, device_id, status):
        self.statuses[device_id] = status
        return True


class FakeLogRepository:

    def __init__(self):
        self.entries = []
        self.fail_event_types: set = set()
        self.raise_error: Exception | None = None

    def append_log(self, entry):
        if self.raise_error is not None:
            raise self.raise_error
        if entry.event_type in self.fail_event_types:
            return None
        self.entries.append(entry)
        return f"log-{len(self.entries)}"

    def get_logs_by_device(self, device_id, limit=50):
        return [entry for entry in self.entries if entry.device_id == device_id][:limit]

    def of_type(self, event_type):
        return [entry for entry in self.entries if entry.event_type == event_type]


class RecordingNotifier:

    def __init__(self):
        self.calls = []

    def notify(self, kind, payload):
        self.calls.append((kind, payload))

    def kinds(self):
        return [kind for kind, _ in self.calls]


class SnapshotRecorder:

    def __init__(self):
        self.snapshots = []

    def __call__(self, records):
        self.snapshots.append(records)

    @property
    def last(self):
        return self.snapshots[-1]

    def last_by_id(self):
        return {record.id: record for record in self.last}


class FakeBranchRepository:

    def __init__(self, regions: dict[str, list[str]]):
        self.regions = regions

    def get_branch_ids_by_region(self, region_id):
        if region_id not in self.regions:
            raise PermissionError("sin permiso para leer sucursales")
        return self.regions[region_id]


def make_device(device_id, branch_id="branch-a", status="offline", **extra):
    return Device(id=device_id, name=f"Equipo {device_id}", type="Refrigerator", location="Cocina",
                  branch_id=branch_id, status=status, **extra)


@pytest.fixture
def device_store():
    return FakeDeviceStore()


@pytest.fixture
def realtime_store():
    return FakeRealtimeStore()


@pytest.fixture
def log_repo():
    return FakeLogRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def log_writer(log_repo, notifier):
    return ActivityLogWriter(log_repo, notifier, InlineExecutor())


@pytest.fixture
def branch_repo():
    return FakeBranchRepository({"north": ["branch-a", "branch-b"], "empty": []})


@pytest.fixture
def subscription_manager(device_store, realtime_store, log_writer, notifier, branch_repo):
    return ScopeSubscriptionManager(
        device_store,
        realtime_store,
        log_writer=log_writer,
        notifier=notifier,
        channel=SerialChannel(),
        branch_repository=branch_repo,
        realtime_only_ids={REALTIME_ONLY_ID},
    )


@pytest.fixture
def recorder():
    return SnapshotRecorder()
