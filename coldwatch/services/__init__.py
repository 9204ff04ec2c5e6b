# coldwatch/services/__init__.py

# Motor de reconciliación
from .status_interpreter import interpret_realtime_payload, parse_epoch_seconds
from .transition_detector import TransitionDetector, TransitionKind
from .device_merge_engine import DeviceMergeEngine, RealtimeState, merge_device_record
from .scope_subscription_manager import ScopeSubscriptionManager, ScopeSubscription, DeviceTrackingState

# Logs y notificaciones
from .activity_log_service import ActivityLogWriter
from .notification_service import (
    NotificationKind,
    LoggingNotifier,
    FCMNotifier,
    WebSocketNotifier,
    CompositeNotifier,
    send_push_notification,
)

# CRUD e ingesta
from .device_service import DeviceService
from .ingest_service import process_status_ingest
