# coldwatch/routers/device_router.py

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status

from coldwatch.database import get_device_service, get_activity_log_writer
from coldwatch.core import TokenData, get_current_user
from coldwatch.schemas import (
    ActivityLogResponse,
    Device,
    DeviceCreate,
    DeviceUpdate,
    GPIO_PINS,
    Scope,
)
from coldwatch.services import ActivityLogWriter, DeviceService

router = APIRouter(prefix="/devices", tags=["Devices"])

@router.get("/gpio-pins")
def get_gpio_pins_route():
    return GPIO_PINS

@router.post("/", response_model=Device, status_code=status.HTTP_201_CREATED)
def create_device_route(device_data: DeviceCreate, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    device = service.create_device(device_data, user_id=current_user.user_id)
    if not device:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="No se pudo crear el dispositivo.")
    return device

@router.get("/", response_model=List[Device])
def get_devices_route(branch_id: str | None = None, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    """Lectura puntual de Firestore. El estado en vivo se obtiene por WebSocket."""
    scope = Scope.branch(branch_id) if branch_id else Scope.all()
    return service.list_devices(scope)

@router.get("/{dev_id}", response_model=Device)
def get_device_by_id_route(dev_id: str, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    device = service.get_device(dev_id)
    if not device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispositivo no encontrado.")
    return device

@router.patch("/{dev_id}", response_model=Device)
def update_device_route(dev_id: str, device_data: DeviceUpdate, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    updated_device = service.update_device(dev_id, device_data, user_id=current_user.user_id)
    if not updated_device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispositivo no encontrado o no se pudo actualizar.")
    return updated_device

@router.post("/{dev_id}/maintenance", response_model=Device)
def toggle_maintenance_route(dev_id: str, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    """
    Alterna el modo mantenimiento.

    Salir de mantenimiento deja 'offline' en Firestore y vuelve a mandar el
    estado en vivo de RTDB.
    """
    updated_device = service.toggle_maintenance(dev_id, user_id=current_user.user_id)
    if not updated_device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispositivo no encontrado o no se pudo actualizar.")
    return updated_device

@router.delete("/{dev_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_device_route(dev_id: str, service: DeviceService = Depends(get_device_service), current_user: TokenData = Depends(get_current_user)):
    success = service.delete_device(dev_id, user_id=current_user.user_id)
    if not success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dispositivo no encontrado.")

@router.get("/{dev_id}/logs", response_model=List[ActivityLogResponse])
def get_device_logs_route(
    dev_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    log_writer: ActivityLogWriter = Depends(get_activity_log_writer),
    current_user: TokenData = Depends(get_current_user)
):
    return log_writer.get_device_logs(dev_id, limit)
