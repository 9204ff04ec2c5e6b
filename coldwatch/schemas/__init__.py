# Device Schemas
from .device_schema import (
    Device,
    DeviceCreate,
    DeviceUpdate,
    DeviceStatus,
    DeviceType,
    MergedDeviceRecord,
    GPIO_PINS,
    ALLOWED_PINS,
)

# Realtime Schemas
from .realtime_schema import RealtimePayload, InterpretedStatus, StatusIngestRequest

# Activity Log Schemas
from .activity_log_schema import ActivityEventType, ActivityLogCreate, ActivityLogResponse

# Scope Schemas
from .scope_schema import Scope, ScopeKind
