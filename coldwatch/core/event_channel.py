# coldwatch/core/event_channel.py

import asyncio
from collections import deque
from typing import Any, Callable


class SerialChannel:
    """
    Cola FIFO que procesa eventos en el mismo hilo que los publica.

    Si un handler publica nuevos eventos mientras se está drenando la cola,
    se encolan y se ejecutan después, nunca de forma reentrante.
    """

    def __init__(self):
        self._queue: deque = deque()
        self._draining = False

    def post(self, handler: Callable[..., Any], *args):
        self._queue.append((handler, args))
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                fn, fn_args = self._queue.popleft()
                fn(*fn_args)
        finally:
            self._draining = False


class LoopChannel:
    """
    Canal hacia un event loop de asyncio.

    Los listeners de Firebase corren en hilos propios; todo evento se reenvía
    al loop con call_soon_threadsafe, que respeta el orden de llegada.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def post(self, handler: Callable[..., Any], *args):
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(handler, *args)
