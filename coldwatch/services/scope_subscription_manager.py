# coldwatch/services/scope_subscription_manager.py

from enum import Enum
from typing import Callable, Iterable

from coldwatch.core import logger, settings
from coldwatch.core.event_channel import SerialChannel
from coldwatch.schemas import Device, MergedDeviceRecord, Scope, ScopeKind
from .device_merge_engine import DeviceMergeEngine, TransitionHook
from .notification_service import CompositeNotifier, NotificationKind


class DeviceTrackingState(str, Enum):
    DURABLE_SEEDED = "durable-seeded"
    REALTIME_ATTACHED = "realtime-attached"
    TORN_DOWN = "torn-down"


class ScopeSubscription:
    """
    Una vista abierta sobre un scope: un listener de Firestore para el listado
    y exactamente un listener de RTDB por dispositivo del listado.

    Todos los eventos de los transportes pasan por el canal, de modo que el
    procesamiento es secuencial y en orden de llegada.
    """

    def __init__(
        self,
        scope: Scope,
        callback: Callable[[list[MergedDeviceRecord]], None],
        device_store,
        realtime_store,
        channel,
        log_writer=None,
        notifier=None,
        on_transition: TransitionHook | None = None,
        realtime_only_ids: Iterable[str] = (),
    ):
        self.scope = scope
        self.device_store = device_store
        self.realtime_store = realtime_store
        self.channel = channel
        self.notifier = notifier
        self.engine = DeviceMergeEngine(
            on_update=callback,
            log_writer=log_writer,
            notifier=notifier,
            on_transition=on_transition,
            realtime_only_ids=realtime_only_ids,
            label=scope.describe(),
        )
        self.states: dict[str, DeviceTrackingState] = {}
        self.active = False
        self.closed = False

        self._unwatch_durable: Callable[[], None] | None = None
        # device_id -> (token, unwatch). El token descarta eventos de listeners ya cerrados
        self._watches: dict[str, tuple[object, Callable[[], None] | None]] = {}

    @property
    def open_realtime_watches(self) -> int:
        return len(self._watches)

    def open(self):
        self.active = True
        logger.info(f"📡 Abriendo suscripción de dispositivos para {self.scope.describe()}")
        try:
            unwatch = self.device_store.watch_devices(
                self.scope,
                lambda devices: self.channel.post(self._handle_listing, devices),
                lambda error: self.channel.post(self._handle_listing_error, error),
            )
        except Exception as e:
            self.channel.post(self._handle_listing_error, e)
            return

        if self.closed:
            # Se canceló mientras se abría el listener
            self._safe_call(unwatch, "listener de Firestore")
            return
        self._unwatch_durable = unwatch

    def _handle_listing(self, devices: list[Device]):
        if not self.active:
            return

        listed_ids = {device.id for device in devices}
        for device_id in self.engine.device_ids - listed_ids:
            self._detach(device_id)

        for device in devices:
            if self.engine.upsert_durable(device):
                self.states[device.id] = DeviceTrackingState.DURABLE_SEEDED
            if self.states.get(device.id) != DeviceTrackingState.REALTIME_ATTACHED:
                self._attach(device.id)

        # También con lista vacía: el dashboard distingue 'cargando' de 'vacío'
        self.engine.publish()

    def _handle_listing_error(self, error):
        if not self.active:
            return

        logger.error(f"❌ Error en listener de Firestore para {self.scope.describe()}: {error}")
        for device_id in list(self.engine.device_ids):
            self._detach(device_id)

        if self.notifier is not None:
            try:
                self.notifier.notify(NotificationKind.ERROR, {
                    "title": "Error cargando dispositivos",
                    "description": f"No se pudieron cargar los dispositivos ({self.scope.describe()}): {error}",
                })
            except Exception as e:
                logger.error(f"Error notificando fallo de listado: {e}")

        self.engine.publish()

    def _attach(self, device_id: str):
        token = object()
        self._watches[device_id] = (token, None)

        try:
            unwatch = self.realtime_store.watch_device(
                device_id,
                lambda payload: self.channel.post(self._handle_realtime, device_id, token, payload),
                lambda error: self.channel.post(self._handle_realtime_error, device_id, token, error),
            )
        except Exception as e:
            # Queda 'durable-seeded'; se reintenta con el siguiente listado
            self._watches.pop(device_id, None)
            logger.error(f"No se pudo abrir el listener RTDB de {device_id}: {e}")
            return

        self._watches[device_id] = (token, unwatch)
        self.states[device_id] = DeviceTrackingState.REALTIME_ATTACHED

    def _detach(self, device_id: str):
        entry = self._watches.pop(device_id, None)
        if entry is not None and entry[1] is not None:
            self._safe_call(entry[1], f"listener RTDB de {device_id}")
        self.engine.remove(device_id)
        self.states[device_id] = DeviceTrackingState.TORN_DOWN
        logger.info(f"Dispositivo {device_id} fuera de {self.scope.describe()}")

    def _is_current(self, device_id: str, token) -> bool:
        entry = self._watches.get(device_id)
        return self.active and entry is not None and entry[0] is token

    def _handle_realtime(self, device_id: str, token, payload):
        if not self._is_current(device_id, token):
            return
        self.engine.apply_realtime(device_id, payload)

    def _handle_realtime_error(self, device_id: str, token, error):
        if not self._is_current(device_id, token):
            return
        self.engine.apply_realtime_error(device_id, error)

    def _safe_call(self, fn: Callable[[], None], what: str):
        try:
            fn()
        except Exception as e:
            logger.warning(f"Error cerrando {what}: {e}")

    def close(self):
        """Cierra todo de forma síncrona. Tras esto no se invoca más el callback."""
        if self.closed:
            return
        self.closed = True
        self.active = False
        self.engine.active = False

        if self._unwatch_durable is not None:
            self._safe_call(self._unwatch_durable, "listener de Firestore")
            self._unwatch_durable = None

        watches = list(self._watches.items())
        self._watches.clear()
        for device_id, (_, unwatch) in watches:
            if unwatch is not None:
                self._safe_call(unwatch, f"listener RTDB de {device_id}")

        self.states.clear()
        self.engine.close()
        logger.info(f"🛑 Suscripción cerrada para {self.scope.describe()} ({len(watches)} listeners RTDB)")


class ScopeSubscriptionManager:
    """Punto de entrada del motor de reconciliación para el dashboard."""

    def __init__(
        self,
        device_repository,
        realtime_repository,
        log_writer=None,
        notifier=None,
        channel=None,
        branch_repository=None,
        realtime_only_ids: Iterable[str] | None = None,
    ):
        self.device_repository = device_repository
        self.realtime_repository = realtime_repository
        self.log_writer = log_writer
        self.notifier = notifier
        self.channel = channel or SerialChannel()
        self.branch_repository = branch_repository
        if realtime_only_ids is None:
            realtime_only_ids = settings.REALTIME_ONLY_DEVICE_IDS
        self.realtime_only_ids = frozenset(realtime_only_ids)
        self._subscriptions: set[ScopeSubscription] = set()

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    def resolve_scope(self, scope: Scope) -> Scope:
        """Una región se traduce a sus sucursales al abrir la suscripción."""
        if scope.kind != ScopeKind.REGION:
            return scope
        if self.branch_repository is None:
            raise ValueError("Se necesita un repositorio de sucursales para suscribirse a una región")
        branch_ids = self.branch_repository.get_branch_ids_by_region(scope.region_id)
        return Scope.branches(branch_ids, region_id=scope.region_id)

    def _notifier_for(self, notifier):
        """Notificador de una vista: el global más el propio de la conexión."""
        if notifier is None:
            return self.notifier
        if self.notifier is None:
            return notifier
        return CompositeNotifier(self.notifier, notifier)

    def subscribe(
        self,
        scope: Scope,
        callback: Callable[[list[MergedDeviceRecord]], None],
        on_transition: TransitionHook | None = None,
        notifier=None,
    ) -> Callable[[], None]:
        """
        Abre la vista en vivo de un scope. callback recibe siempre el conjunto
        completo de registros fusionados. notifier recibe solo los avisos de
        esta vista (cambios de estado y errores de su scope). Devuelve la
        función para cancelar.
        """
        notifier = self._notifier_for(notifier)
        try:
            resolved = self.resolve_scope(scope)
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"❌ No se pudo resolver {scope.describe()}: {e}")
            if notifier is not None:
                notifier.notify(NotificationKind.ERROR, {
                    "title": "Error cargando dispositivos",
                    "description": f"No se pudieron obtener las sucursales de {scope.describe()}.",
                })
            resolved = Scope.branches((), region_id=scope.region_id)

        subscription = ScopeSubscription(
            scope=resolved,
            callback=callback,
            device_store=self.device_repository,
            realtime_store=self.realtime_repository,
            channel=self.channel,
            log_writer=self.log_writer,
            notifier=notifier,
            on_transition=on_transition,
            realtime_only_ids=self.realtime_only_ids,
        )
        self._subscriptions.add(subscription)
        subscription.open()

        def unsubscribe():
            subscription.close()
            self._subscriptions.discard(subscription)

        return unsubscribe

    subscribe_to_device_status = subscribe

    def close_all(self):
        for subscription in list(self._subscriptions):
            subscription.close()
        self._subscriptions.clear()
