from concurrent.futures import ThreadPoolExecutor

from coldwatch.schemas import ActivityEventType, ActivityLogCreate
from coldwatch.services import ActivityLogWriter, NotificationKind
from conftest import FakeLogRepository, InlineExecutor, RecordingNotifier


def _entry(event_type=ActivityEventType.DEVICE_CREATED, **extra):
    return ActivityLogCreate(
        device_id="d1",
        event_type=event_type,
        message="Dispositivo creado.",
        user_id="user-1",
        **extra,
    )


def test_successful_write_is_stored(log_writer, log_repo, notifier):
    future = log_writer.write(_entry(new_value="offline"))

    assert future.result() is True
    [stored] = log_repo.entries
    assert stored.new_value == "offline"
    assert notifier.calls == []


def test_rejected_write_warns_and_records_log_error(log_writer, log_repo, notifier):
    log_repo.fail_event_types.add(ActivityEventType.DEVICE_CREATED)

    log_writer.write(_entry())

    assert notifier.kinds() == [NotificationKind.WARNING]
    [error_entry] = log_repo.of_type(ActivityEventType.LOG_ERROR)
    assert error_entry.device_id == "d1"
    assert error_entry.user_id == "user-1"
    assert "device_created" in error_entry.message


def test_raising_repository_never_reaches_caller(log_writer, log_repo, notifier):
    log_repo.raise_error = RuntimeError("firestore caído")

    future = log_writer.write(_entry())

    assert future.exception() is not None
    assert notifier.kinds() == [NotificationKind.WARNING]
    assert log_repo.entries == []


def test_failed_log_error_is_not_retried(log_writer, log_repo, notifier):
    log_repo.fail_event_types.update({ActivityEventType.RTDB_STATUS_CHANGE, ActivityEventType.LOG_ERROR})

    log_writer.write(_entry(ActivityEventType.RTDB_STATUS_CHANGE))
    log_writer.write(_entry(ActivityEventType.LOG_ERROR))

    assert log_repo.entries == []
    assert notifier.kinds() == [NotificationKind.WARNING, NotificationKind.WARNING]


def test_write_after_shutdown_is_dropped():
    repo = FakeLogRepository()
    writer = ActivityLogWriter(repo, RecordingNotifier(), ThreadPoolExecutor(max_workers=1))
    writer.shutdown()

    assert writer.write(_entry()) is None
    assert repo.entries == []


def test_thread_pool_write_completes():
    repo = FakeLogRepository()
    writer = ActivityLogWriter(repo, RecordingNotifier(), ThreadPoolExecutor(max_workers=2))

    future = writer.write(_entry())

    assert future.result(timeout=5) is True
    writer.shutdown()
    assert len(repo.entries) == 1


def test_document_omits_empty_values():
    document = _entry().to_document()

    assert document["deviceId"] == "d1"
    assert document["eventType"] == "device_created"
    assert document["userId"] == "user-1"
    assert "oldValue" not in document
    assert "newValue" not in document


def test_device_logs_use_default_limit(log_repo):
    writer = ActivityLogWriter(log_repo, None, InlineExecutor())
    for _ in range(3):
        writer.write(_entry())

    assert len(writer.get_device_logs("d1")) == 3
    assert len(writer.get_device_logs("d1", limit=2)) == 2
    assert writer.get_device_logs("otro") == []
