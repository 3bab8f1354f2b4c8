"""Lifecycle event sink shared by request handlers and cast loops."""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodingStarted:
    path: str


@dataclass(frozen=True)
class RequestClosed:
    path: str


@dataclass(frozen=True)
class ErrorDuringCasting:
    detail: str
    code: str = "UNKNOWN"


@dataclass(frozen=True)
class CastingEnded:
    ip: str
    reason: str
    idle_reason: str = ""


NotifyMessage = EncodingStarted | RequestClosed | ErrorDuringCasting | CastingEnded

Listener = Callable[[NotifyMessage], None]


class Notifier:
    """Unbounded event queue drained by a single worker thread.

    ``send`` never blocks, so it is safe to call from request threads and
    cast loops alike. Events from independent producers are not ordered
    relative to each other.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._listeners: list[Listener] = []
        self._thread: threading.Thread | None = None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def send(self, message: NotifyMessage) -> None:
        self._queue.put_nowait(message)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="notifier", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Deliver everything already queued, then stop the worker."""
        if self._thread is None:
            return
        self._queue.put(None)  # sentinel
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            if message is None:
                break
            self.dispatch(message)

    def dispatch(self, message: NotifyMessage) -> None:
        if isinstance(message, ErrorDuringCasting):
            logger.error("Error during casting [%s]: %s", message.code, message.detail)
        else:
            logger.info("%s", message)
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Notifier listener failed for %s", message)
