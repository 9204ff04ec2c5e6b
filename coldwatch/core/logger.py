import logging
from logging.handlers import RotatingFileHandler
import os

from .discord_logger import send_discord_alert
from .settings import settings

# logs/ junto al paquete; el archivo rota a los 10 MB
LOG_DIR = os.path.join(os.path.dirname(__file__), "../../logs")
os.makedirs(LOG_DIR, exist_ok=True)
LOG_FILE = os.path.join(LOG_DIR, "coldwatch.log")

logger = logging.getLogger("coldwatch")
logger.setLevel(settings.LOG_LEVEL.upper())

if not logger.hasHandlers():
    # Los listeners de Firestore/RTDB corren en hilos del SDK: el nombre del hilo
    # permite seguir un evento desde el listener hasta el motor
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=10_000_000, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)


def log_critical_error(msg: str, level: str = "CRITICAL"):
    """Fallos que dejan al monitoreo ciego (Firebase caído, errores 500): log + Discord."""
    logger.error(msg)
    send_discord_alert(msg, level=level)
