# coldwatch/routers/ingest_router.py

from fastapi import APIRouter, Depends, HTTPException

from coldwatch.database import get_device_repository, get_realtime_repository
from coldwatch.schemas import StatusIngestRequest
from coldwatch.services import process_status_ingest

router = APIRouter(prefix="/ingest", tags=["Ingestion"])

@router.post("/status")
def ingest_device_status(
    data: StatusIngestRequest,
    realtime_repo = Depends(get_realtime_repository),
    device_repo = Depends(get_device_repository)
):
    """
    Endpoint público para que un ESP reporte 'online'/'offline' por HTTP.
    El estado se escribe en RTDB y el motor lo recoge desde allí.
    """
    written = process_status_ingest(realtime_repo, device_repo, data)
    if written is None:
        raise HTTPException(status_code=404, detail="Dispositivo no registrado.")
    if not written:
        raise HTTPException(status_code=500, detail="Error interno al guardar el estado.")
    return {"status": "received", "deviceId": data.device_id}
