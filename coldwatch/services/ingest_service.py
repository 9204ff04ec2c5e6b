# coldwatch/services/ingest_service.py

from coldwatch.schemas import StatusIngestRequest
from coldwatch.core import logger


def process_status_ingest(realtime_repo, device_repo, data: StatusIngestRequest) -> bool | None:
    """
    Recibe el estado que reporta un ESP por HTTP y lo deja en RTDB,
    igual que si el firmware escribiera el nodo directamente.

    Returns:
        None si el dispositivo no existe, True/False según la escritura en RTDB.
    """
    device = device_repo.get_device(data.device_id)
    if not device:
        logger.warning(f"❌ Dispositivo no registrado: {data.device_id}")
        return None

    written = realtime_repo.write_status(data.device_id, data.status)
    if written:
        logger.debug(f"📡 Estado {data.status} recibido para {data.device_id}")
    return written
