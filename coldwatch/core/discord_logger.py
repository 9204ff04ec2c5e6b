import time
import requests
from .settings import settings

# Última alerta enviada por nivel; con cientos de listeners un mismo fallo
# se repite muchas veces por segundo
_last_alert_time: dict[str, float] = {}

LEVEL_EMOJIS = {
    "INFO": "ℹ️",
    "WARN": "⚠️",
    "ERROR": "🔥",
    "CRITICAL": "💀",
}


def send_discord_alert(message: str, level: str = "INFO"):
    """
    Aviso al canal de operaciones de ColdWatch. Sin webhook configurado
    (desarrollo, tests) no hace nada.
    """
    if not settings.DISCORD_WEBHOOK_URL:
        return

    now = time.time()
    if now - _last_alert_time.get(level, 0) < settings.DISCORD_FLOOD_SECONDS:
        return
    _last_alert_time[level] = now

    emoji = LEVEL_EMOJIS.get(level, "⚡")
    payload = {"content": f"{emoji} **[{level}] ColdWatch (monitoreo de equipos de frío):** {message}"}

    try:
        requests.post(settings.DISCORD_WEBHOOK_URL, json=payload, timeout=2)
    except requests.RequestException:
        # Un Discord caído no debe afectar al monitoreo
        return
