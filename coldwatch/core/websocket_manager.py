from fastapi import WebSocket
from typing import List
import json

class WebSocketManager:
    """
    Registro de dashboards conectados. Cada conexión tiene su propia
    suscripción y su propia cola de salida; aquí solo se aceptan, se
    cuentan y se serializan los mensajes.
    """

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_json(self, websocket: WebSocket, message: dict):
        '''Snapshots y toasts llevan datetimes; se serializan como texto'''
        await websocket.send_text(json.dumps(message, default=str))


manager = WebSocketManager()
