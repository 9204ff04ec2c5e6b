# coldwatch/schemas/device_schema.py

from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DeviceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


class DeviceType(str, Enum):
    REFRIGERATOR = "Refrigerator"
    AIR_CONDITIONER = "Air Conditioner"


# Pines GPIO válidos del ESP8266 (estilo NodeMCU)
GPIO_PINS = [
    {"label": "D0 (GPIO16)", "value": 16},
    {"label": "D1 (GPIO5)", "value": 5},
    {"label": "D2 (GPIO4)", "value": 4},
    {"label": "D3 (GPIO0)", "value": 0},
    {"label": "D4 (GPIO2)", "value": 2},
    {"label": "D5 (GPIO14)", "value": 14},
    {"label": "D6 (GPIO12)", "value": 12},
    {"label": "D7 (GPIO13)", "value": 13},
    {"label": "D8 (GPIO15)", "value": 15},
]
ALLOWED_PINS = {pin["value"] for pin in GPIO_PINS}


def _validate_pin(v: int | None) -> int | None:
    if v is not None and v not in ALLOWED_PINS:
        raise ValueError(f"Pin {v} no permitido. Pines válidos: {sorted(ALLOWED_PINS)}")
    return v


class Device(BaseModel):
    """Documento de Firestore. Solo 'maintenance' es autoritativo en status."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    type: str | None = None
    location: str = ""
    notes: str | None = None
    branch_id: str | None = Field(default=None, alias="branchId")
    status: str = DeviceStatus.OFFLINE.value
    assigned_pin: int | None = Field(default=None, alias="assignedPin")
    last_seen: datetime = Field(default=EPOCH, alias="lastSeen")

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v):
        if isinstance(v, Enum):
            v = v.value
        return v or DeviceStatus.OFFLINE.value

    @field_validator("assigned_pin", mode="before")
    @classmethod
    def only_integer_pins(cls, v):
        # Firestore puede traer null, strings o floats; solo un entero es pin
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        return v

    @field_validator("last_seen", mode="before")
    @classmethod
    def default_last_seen(cls, v):
        return v if v else EPOCH

    @property
    def in_maintenance(self) -> bool:
        return self.status == DeviceStatus.MAINTENANCE.value


class MergedDeviceRecord(Device):
    """Vista reconciliada Firestore + RTDB que recibe el dashboard."""
    firestore_status: str = Field(default=DeviceStatus.OFFLINE.value, alias="firestoreStatus")
    rtdb_status: DeviceStatus | None = Field(default=None, alias="rtdbStatus")


class DeviceCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    type: DeviceType
    location: str = Field(min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=1000)
    branch_id: str = Field(min_length=1, alias="branchId")
    assigned_pin: int | None = Field(default=None, alias="assignedPin")

    @field_validator("assigned_pin")
    @classmethod
    def check_pin(cls, v: int | None) -> int | None:
        return _validate_pin(v)


class DeviceUpdate(BaseModel):
    """
    Actualización parcial. Solo se admite 'maintenance' u 'offline' en status:
    sacar de mantenimiento deja Firestore en 'offline' y manda el estado de RTDB.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: DeviceType | None = None
    location: str | None = Field(default=None, min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=1000)
    status: DeviceStatus | None = None
    assigned_pin: int | None = Field(default=None, alias="assignedPin")

    @field_validator("assigned_pin")
    @classmethod
    def check_pin(cls, v: int | None) -> int | None:
        return _validate_pin(v)

    @field_validator("status")
    @classmethod
    def only_admin_statuses(cls, v: DeviceStatus | None) -> DeviceStatus | None:
        if v == DeviceStatus.ONLINE:
            raise ValueError("El estado 'online' solo lo reporta el dispositivo")
        return v
