# coldwatch/services/status_interpreter.py

from datetime import datetime, timezone

from coldwatch.schemas import DeviceStatus, InterpretedStatus


def _interpret_status(raw) -> DeviceStatus:
    if not isinstance(raw, str):
        return DeviceStatus.OFFLINE
    if raw == DeviceStatus.ONLINE.value:
        return DeviceStatus.ONLINE
    if raw == DeviceStatus.OFFLINE.value:
        return DeviceStatus.OFFLINE

    # El firmware manda "ON"/"OFF"; se acepta cualquier capitalización
    alias = raw.upper()
    if alias == "ON":
        return DeviceStatus.ONLINE
    return DeviceStatus.OFFLINE


def parse_epoch_seconds(raw) -> datetime | None:
    """
    Convierte un epoch en segundos (string de dígitos o entero) a datetime UTC.
    Vacíos, negativos, decimales o basura devuelven None.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        seconds = raw
    elif isinstance(raw, str) and raw.strip().isascii() and raw.strip().isdigit():
        seconds = int(raw.strip())
    else:
        return None

    if seconds < 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def interpret_realtime_payload(payload) -> InterpretedStatus:
    """
    Normaliza el nodo devices/{id} de RTDB. Nunca lanza excepciones:
    un payload ausente o mal formado se interpreta como offline sin tocar el pin.
    """
    if not isinstance(payload, dict):
        return InterpretedStatus()

    status = _interpret_status(payload.get("status"))
    last_seen = parse_epoch_seconds(payload.get("last_updated"))

    pin_present = "pin" in payload
    pin = None
    if pin_present:
        raw_pin = payload["pin"]
        # La presencia de la clave manda: null (o algo no entero) limpia la asignación
        if isinstance(raw_pin, int) and not isinstance(raw_pin, bool):
            pin = raw_pin

    return InterpretedStatus(status=status, last_seen=last_seen, pin_present=pin_present, pin=pin)
