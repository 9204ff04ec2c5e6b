from datetime import datetime, timezone

import pytest

from coldwatch.schemas import DeviceStatus
from coldwatch.services import interpret_realtime_payload, parse_epoch_seconds


@pytest.mark.parametrize("raw, expected", [
    ("online", DeviceStatus.ONLINE),
    ("offline", DeviceStatus.OFFLINE),
    ("ON", DeviceStatus.ONLINE),
    ("on", DeviceStatus.ONLINE),
    ("On", DeviceStatus.ONLINE),
    ("OFF", DeviceStatus.OFFLINE),
    ("off", DeviceStatus.OFFLINE),
    (" on ", DeviceStatus.OFFLINE),
    ("ON\n", DeviceStatus.OFFLINE),
    ("maintenance", DeviceStatus.OFFLINE),
    ("", DeviceStatus.OFFLINE),
    (1, DeviceStatus.OFFLINE),
    (None, DeviceStatus.OFFLINE),
])
def test_status_aliases(raw, expected):
    assert interpret_realtime_payload({"status": raw}).status == expected


def test_missing_payload_degrades_to_offline_without_touching_pin():
    for payload in (None, "ON", 42, ["online"]):
        interpreted = interpret_realtime_payload(payload)
        assert interpreted.status == DeviceStatus.OFFLINE
        assert interpreted.last_seen is None
        assert interpreted.pin_present is False


def test_epoch_seconds_string_is_parsed_as_utc():
    assert parse_epoch_seconds("1700000000") == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert parse_epoch_seconds(1700000000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert parse_epoch_seconds(" 1700000000 ") == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw", ["", None, "-1700000000", "abc", "17e8", "1700000000.5", "99999999999999999999", True, 3.5])
def test_invalid_epoch_values_give_no_timestamp(raw):
    assert parse_epoch_seconds(raw) is None


def test_pin_key_presence_is_authoritative():
    cleared = interpret_realtime_payload({"status": "online", "pin": None})
    assert cleared.pin_present is True
    assert cleared.pin is None

    assigned = interpret_realtime_payload({"status": "online", "pin": 4})
    assert assigned.pin_present is True
    assert assigned.pin == 4

    untouched = interpret_realtime_payload({"status": "online"})
    assert untouched.pin_present is False


def test_non_integer_pin_clears_assignment():
    for raw_pin in ("4", True, 4.0):
        interpreted = interpret_realtime_payload({"status": "online", "pin": raw_pin})
        assert interpreted.pin_present is True
        assert interpreted.pin is None


def test_off_payload_with_timestamp_and_null_pin():
    interpreted = interpret_realtime_payload({"status": "OFF", "last_updated": "1700000000", "pin": None})

    assert interpreted.status == DeviceStatus.OFFLINE
    assert interpreted.last_seen == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert interpreted.pin_present is True
    assert interpreted.pin is None
