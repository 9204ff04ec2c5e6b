# coldwatch/schemas/activity_log_schema.py

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class ActivityEventType(str, Enum):
    RTDB_STATUS_CHANGE = "rtdb_status_change"
    MAINTENANCE_SET = "maintenance_set"
    MAINTENANCE_CLEARED = "maintenance_cleared"
    DEVICE_CREATED = "device_created"
    DEVICE_DETAILS_UPDATED = "device_details_updated"
    LOG_ERROR = "log_error"


class ActivityLogCreate(BaseModel):
    """Entrada sin id ni timestamp; el timestamp lo asigna el servidor."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id: str = Field(alias="deviceId")
    event_type: ActivityEventType = Field(alias="eventType")
    message: str
    old_value: str | None = Field(default=None, alias="oldValue")
    new_value: str | None = Field(default=None, alias="newValue")
    user_id: str | None = Field(default=None, alias="userId")

    def to_document(self) -> dict:
        document = self.model_dump(by_alias=True, mode="json")
        # oldValue/newValue son opcionales en el documento; userId va null explícito
        for key in ("oldValue", "newValue"):
            if document[key] is None:
                document.pop(key)
        return document


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    device_id: str = Field(alias="deviceId")
    timestamp: datetime | None = None
    event_type: ActivityEventType = Field(alias="eventType")
    message: str = ""
    old_value: str | None = Field(default=None, alias="oldValue")
    new_value: str | None = Field(default=None, alias="newValue")
    user_id: str | None = Field(default=None, alias="userId")
