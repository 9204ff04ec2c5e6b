# coldwatch/database/database.py

import firebase_admin
from firebase_admin import credentials, firestore, db
from fastapi import Request

from coldwatch.core import settings, logger


# --- Configuración de Firebase (Firestore + Realtime Database) ---
def initialize_firebase() -> bool:
    if firebase_admin._apps:
        logger.info("Firebase Admin SDK ya estaba inicializado (worker reutilizado).")
        return True

    try:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
        firebase_admin.initialize_app(cred, {"databaseURL": settings.FIREBASE_DATABASE_URL})
        logger.info("Firebase Admin SDK inicializado correctamente.")
        return True
    except (ValueError, OSError) as e:
        logger.error(f"Error al inicializar Firebase Admin SDK: {e}")
        return False


def get_firestore_client():
    return firestore.client()


def get_rtdb_root():
    return db.reference("/")


# --- Dependencias para inyectar los servicios armados en el arranque ---
def get_device_service(request: Request):
    return request.app.state.device_service


def get_realtime_repository(request: Request):
    return request.app.state.realtime_repository


def get_device_repository(request: Request):
    return request.app.state.device_repository


def get_activity_log_writer(request: Request):
    return request.app.state.log_writer
