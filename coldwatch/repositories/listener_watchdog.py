# coldwatch/repositories/listener_watchdog.py

import threading
from typing import Callable

from coldwatch.core import logger


class ListenerWatchdog:
    """
    Vigila un listener de Firebase que corre en un hilo ajeno.

    Los SDKs de Firebase cierran sus streams en hilos propios y el error no
    llega a quien abrió el listener. Si el listener deja de estar vivo sin que
    se haya llamado a stop(), se reporta una única vez por on_lost.
    """

    def __init__(self, name: str, is_alive: Callable[[], bool], on_lost: Callable[[Exception], None], interval: float):
        self.name = name
        self.is_alive = is_alive
        self.on_lost = on_lost
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"watchdog-{name}", daemon=True)

    def start(self) -> "ListenerWatchdog":
        self._thread.start()
        return self

    def stop(self):
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def _run(self):
        while not self._stopped.wait(self.interval):
            try:
                alive = self.is_alive()
            except Exception as e:
                logger.warning(f"No se pudo comprobar el listener {self.name}: {e}")
                continue
            if alive:
                continue

            if self._stopped.is_set():
                return
            self._stopped.set()
            logger.error(f"❌ Listener {self.name} cerrado inesperadamente")
            try:
                self.on_lost(ConnectionError(f"El listener {self.name} se cerró sin cancelarse"))
            except Exception as e:
                logger.error(f"Error reportando la caída del listener {self.name}: {e}")
            return
