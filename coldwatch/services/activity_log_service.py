# coldwatch/services/activity_log_service.py

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial

from coldwatch.core import logger, settings
from coldwatch.schemas import ActivityEventType, ActivityLogCreate, ActivityLogResponse
from .notification_service import NotificationKind


class ActivityLogWriter:
    """
    Registro append-only de eventos de dispositivo.

    La escritura se delega a un pool de hilos: quien llama (el motor de fusión
    o el CRUD) nunca espera a Firestore ni recibe sus errores. Si la escritura
    falla se avisa al usuario y se intenta dejar una entrada 'log_error'.
    """

    def __init__(self, repository, notifier=None, executor: Executor | None = None):
        self.repository = repository
        self.notifier = notifier
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.ACTIVITY_LOG_WORKERS,
            thread_name_prefix="activity-log",
        )

    def write(self, entry: ActivityLogCreate, notifier=None) -> Future | None:
        """notifier sustituye al notificador por defecto para avisar de un fallo de esta escritura."""
        try:
            future = self.executor.submit(self._append, entry)
        except RuntimeError as e:
            # Pool cerrado durante el apagado
            logger.warning(f"No se pudo encolar el log {entry.event_type.value} de {entry.device_id}: {e}")
            return None

        future.add_done_callback(partial(self._on_written, entry, notifier or self.notifier))
        return future

    def _append(self, entry: ActivityLogCreate) -> bool:
        return self.repository.append_log(entry) is not None

    def _on_written(self, entry: ActivityLogCreate, notifier, future: Future):
        error = None
        try:
            written = future.result()
        except Exception as e:
            written = False
            error = e

        if written:
            logger.info(f"📝 Log de actividad guardado: {entry.event_type.value} ({entry.device_id})")
            return

        logger.error(f"❌ Error guardando log de actividad {entry.event_type.value} para {entry.device_id}: {error}")

        if notifier is not None:
            try:
                notifier.notify(NotificationKind.WARNING, {
                    "device_id": entry.device_id,
                    "title": "Error de registro",
                    "description": "No se pudo guardar el registro de actividad del dispositivo.",
                })
            except Exception as e:
                logger.error(f"Error notificando fallo de log: {e}")

        if entry.event_type != ActivityEventType.LOG_ERROR:
            self._write_log_error(entry, error)

    def _write_log_error(self, failed: ActivityLogCreate, error: Exception | None):
        entry = ActivityLogCreate(
            device_id=failed.device_id,
            event_type=ActivityEventType.LOG_ERROR,
            message=f"No se pudo guardar el evento '{failed.event_type.value}': {error or 'escritura rechazada'}.",
            user_id=failed.user_id,
        )
        try:
            self.executor.submit(self.repository.append_log, entry)
        except RuntimeError:
            logger.warning(f"No se pudo encolar log_error para {failed.device_id}")

    def get_device_logs(self, device_id: str, limit: int | None = None) -> list[ActivityLogResponse]:
        return self.repository.get_logs_by_device(device_id, limit or settings.ACTIVITY_LOG_DEFAULT_LIMIT)

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)
