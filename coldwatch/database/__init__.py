from .database import (
    initialize_firebase,
    get_firestore_client,
    get_rtdb_root,
    get_device_service,
    get_realtime_repository,
    get_device_repository,
    get_activity_log_writer,
)
