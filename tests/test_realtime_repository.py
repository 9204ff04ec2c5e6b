import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from firebase_admin import _sseclient
from firebase_admin.db import ListenerRegistration
from firebase_admin.exceptions import FirebaseError

from coldwatch.repositories.realtime_repository import RealtimeRepository, apply_stream_event


def _event(event_type, path, data):
    return SimpleNamespace(event_type=event_type, path=path, data=data)


def test_root_put_replaces_node():
    assert apply_stream_event({"status": "ON", "pin": 5}, "put", "/", {"status": "OFF"}) == {"status": "OFF"}
    assert apply_stream_event({"status": "ON"}, "put", "/", None) is None


def test_child_put_keeps_cleared_pin_as_present():
    current = {"status": "ON", "pin": 5}

    result = apply_stream_event(current, "put", "/pin", None)

    assert result == {"status": "ON", "pin": None}
    assert current == {"status": "ON", "pin": 5}


def test_patch_merges_keys():
    result = apply_stream_event({"status": "ON", "pin": 5}, "patch", "/", {"status": "OFF", "last_updated": "1700000000"})

    assert result == {"status": "OFF", "pin": 5, "last_updated": "1700000000"}


def test_nested_put_on_empty_node():
    assert apply_stream_event(None, "put", "/meta/fw", "1.2") == {"meta": {"fw": "1.2"}}


def _repository():
    root = MagicMock()
    ref = root.child.return_value
    return RealtimeRepository(root, devices_path="devices"), root, ref


def test_watch_device_delivers_whole_node():
    repository, root, ref = _repository()
    values, errors = [], []

    unwatch = repository.watch_device("d1", values.append, errors.append)
    listener = ref.listen.call_args[0][0]
    listener(_event("put", "/", {"status": "ON", "pin": 5}))
    listener(_event("put", "/pin", None))
    listener(_event("put", "/", None))
    unwatch()

    root.child.assert_called_with("devices/d1")
    assert values == [{"status": "ON", "pin": 5}, {"status": "ON", "pin": None}, None]
    assert errors == []
    ref.listen.return_value.close.assert_called_once()


def test_write_pin_reports_failure():
    repository, _, ref = _repository()
    ref.child.return_value.set.side_effect = FirebaseError("UNAVAILABLE", "sin conexión")

    assert repository.write_pin("d1", 5) is False


def test_write_status_updates_node():
    repository, _, ref = _repository()

    assert repository.write_status("d1", "online") is True
    update = ref.update.call_args[0][0]
    assert update["status"] == "online"
    assert update["last_updated"].isdigit()
    assert "pin" not in update


def test_write_status_rejects_invalid_node():
    repository, _, ref = _repository()

    assert repository.write_status("d1", None) is False
    ref.update.assert_not_called()


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _DroppingStream:
    """Stream SSE que entrega un put y luego pierde la conexión sin poder reconectar."""

    def __init__(self):
        self.closed = False

    def __iter__(self):
        yield _sseclient.Event(data='{"path": "/", "data": {"status": "ON"}}', event_type="put")
        raise requests.ConnectionError("conexión rechazada al reconectar")

    def close(self):
        self.closed = True


class _OpenStream:
    """Stream SSE que entrega un put y sigue abierto hasta close()."""

    def __init__(self):
        self._closed = threading.Event()

    def __iter__(self):
        yield _sseclient.Event(data='{"path": "/", "data": {"status": "ON"}}', event_type="put")
        self._closed.wait(5)

    def close(self):
        self._closed.set()


class _StreamRef:

    def __init__(self, stream):
        self.stream = stream

    def child(self, path):
        return self

    def listen(self, callback):
        return ListenerRegistration(callback, self.stream)


@pytest.mark.filterwarnings("ignore::pytest.PytestUnhandledThreadExceptionWarning")
def test_dropped_stream_is_reported_as_error():
    values, errors = [], []
    repository = RealtimeRepository(_StreamRef(_DroppingStream()), check_interval=0.02)

    unwatch = repository.watch_device("d1", values.append, errors.append)

    assert _wait_until(lambda: errors)
    assert values == [{"status": "ON"}]
    assert len(errors) == 1
    assert isinstance(errors[0], ConnectionError)
    unwatch()


def test_unwatch_is_not_reported_as_error():
    values, errors = [], []
    repository = RealtimeRepository(_StreamRef(_OpenStream()), check_interval=0.02)

    unwatch = repository.watch_device("d1", values.append, errors.append)
    assert _wait_until(lambda: values)
    unwatch()
    time.sleep(0.1)

    assert errors == []
