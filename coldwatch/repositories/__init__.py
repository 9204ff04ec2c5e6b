# coldwatch/repositories/__init__.py

from .device_repository import DeviceRepository
from .branch_repository import BranchRepository
from .activity_log_repository import ActivityLogRepository
from .realtime_repository import RealtimeRepository
