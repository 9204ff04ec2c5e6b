# coldwatch/schemas/realtime_schema.py

from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

from .device_schema import DeviceStatus


# Nodo devices/{id} que escribe el ESP8266 en Realtime Database
class RealtimePayload(BaseModel):
    status: str
    last_updated: str | None = None
    pin: int | None = None


class InterpretedStatus(BaseModel):
    """
    Resultado normalizado de un payload de RTDB.
    pin_present distingue 'pin: null' (limpia la asignación) de una clave ausente.
    """
    model_config = ConfigDict(frozen=True)

    status: DeviceStatus = DeviceStatus.OFFLINE
    last_seen: datetime | None = None
    pin_present: bool = False
    pin: int | None = None


# Petición del endpoint de ingesta (equivalente a la función HTTP del ESP)
class StatusIngestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(min_length=1, alias="deviceId")
    status: Literal["online", "offline"]
