from .settings import settings
from .logger import logger, log_critical_error
from .security import get_current_user, decode_token, TokenData
from .websocket_manager import manager
