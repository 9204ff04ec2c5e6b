# coldwatch/repositories/activity_log_repository.py

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from coldwatch.core import logger
from coldwatch.schemas import ActivityLogCreate, ActivityLogResponse

DEVICE_ACTIVITY_LOGS_COLLECTION = "deviceActivityLogs"


class ActivityLogRepository:

    def __init__(self, client):
        self.collection = client.collection(DEVICE_ACTIVITY_LOGS_COLLECTION)

    def append_log(self, entry: ActivityLogCreate) -> str | None:
        try:
            document = entry.to_document()
            document["timestamp"] = firestore.SERVER_TIMESTAMP
            _, doc_ref = self.collection.add(document)
            return doc_ref.id
        except GoogleAPIError as e:
            logger.error(f"No se pudo guardar el log {entry.event_type.value} de {entry.device_id}: {e}")
            return None

    def get_logs_by_device(self, device_id: str, limit: int = 50) -> list[ActivityLogResponse]:
        query = (
            self.collection
            .where(filter=FieldFilter("deviceId", "==", device_id))
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        logs = []
        for doc in query.stream():
            try:
                logs.append(ActivityLogResponse.model_validate({**(doc.to_dict() or {}), "id": doc.id}))
            except ValidationError as e:
                logger.warning(f"Log de actividad {doc.id} inválido, se ignora: {e}")
        return logs
