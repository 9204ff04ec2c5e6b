# coldwatch/core/settings.py

from pydantic_settings import BaseSettings

# Dispositivo heredado que solo reporta por RTDB (sin integración en Firestore)
LEGACY_REALTIME_ONLY_DEVICE_ID = "5abs449wgqcPsQEWIHO7"


class Settings(BaseSettings):
    KEY_SECRET: str = "change-me"
    ALGORITHM: str = "HS256"
    DISCORD_WEBHOOK_URL: str = ""
    FIREBASE_CREDENTIALS_PATH: str = ""
    FIREBASE_DATABASE_URL: str = ""
    FCM_STATUS_TOPIC: str = "device-status"
    RTDB_DEVICES_PATH: str = "devices"
    REALTIME_ONLY_DEVICE_IDS: list[str] = [LEGACY_REALTIME_ONLY_DEVICE_ID]
    ACTIVITY_LOG_WORKERS: int = 4
    ACTIVITY_LOG_DEFAULT_LIMIT: int = 50
    LISTENER_CHECK_INTERVAL: float = 2.0
    FCM_DEDUP_SECONDS: float = 30.0
    LOG_LEVEL: str = "INFO"
    DISCORD_FLOOD_SECONDS: float = 20.0


    model_config = {"env_file":".env"}


settings = Settings()
