"""State machine for the long-lived cast receive loop.

The machine only decides; the session performs the I/O. Every message the
device sends while casting maps to one ``Transition`` telling the session
whether to keep reading, answer a heartbeat, or disconnect and stop.
"""

import enum
import logging
from dataclasses import dataclass

from casterson.cast.channel import NS_CONNECTION, NS_HEARTBEAT, NS_MEDIA, NS_RECEIVER, Message
from casterson.models import CastOutcome, CastStatus

logger = logging.getLogger(__name__)

REASON_CONNECTION_CLOSED = "connection-closed"
REASON_LOAD_FAILED = "load-failed"
REASON_LOAD_CANCELLED = "load-cancelled"
REASON_IDLE = "idle"
REASON_CONNECTION_LOST = "connection-lost"
REASON_RECEIVE_ERRORS = "receive-errors"


class CastState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CASTING = "casting"
    CLOSING = "closing"


class Action(enum.Enum):
    CONTINUE = "continue"
    PONG = "pong"
    DISCONNECT = "disconnect"
    ABORT = "abort"


@dataclass(frozen=True)
class Transition:
    state: CastState
    action: Action
    reason: str = ""
    idle_reason: str = ""
    error: str | None = None


class CastLoop:
    """Decides how a casting session reacts to each received message.

    ``IDLE -> CONNECTING`` when the session starts connecting,
    ``CONNECTING -> CASTING`` once the media is loaded, and ``CASTING ->
    CLOSING`` on any terminating message or error. ``CLOSING`` is final.

    Transport errors other than timeouts are tolerated up to
    ``max_receive_errors`` consecutive occurrences; a successfully decoded
    message resets the count.
    """

    def __init__(self, max_receive_errors: int = 5):
        self.state = CastState.IDLE
        self.max_receive_errors = max_receive_errors
        self.receive_errors = 0
        self.outcome: CastOutcome | None = None

    @property
    def finished(self) -> bool:
        return self.state is CastState.CLOSING

    def _require(self, *states: CastState) -> None:
        if self.state not in states:
            raise RuntimeError(f"Invalid cast loop transition from {self.state.name}")

    def connecting(self) -> None:
        self._require(CastState.IDLE)
        self.state = CastState.CONNECTING

    def casting(self) -> None:
        self._require(CastState.CONNECTING)
        self.state = CastState.CASTING

    def _close(self, action: Action, reason: str, idle_reason: str = "", error: str | None = None) -> Transition:
        self.state = CastState.CLOSING
        self.outcome = CastOutcome(reason=reason, idle_reason=idle_reason)
        return Transition(self.state, action, reason, idle_reason, error)

    def _stay(self, action: Action = Action.CONTINUE) -> Transition:
        return Transition(self.state, action)

    def on_message(self, message: Message) -> Transition:
        self._require(CastState.CASTING)
        self.receive_errors = 0

        if message.namespace == NS_HEARTBEAT:
            if message.type == "PING":
                return self._stay(Action.PONG)
            return self._stay()

        if message.namespace == NS_CONNECTION:
            if message.type == "CLOSE":
                logger.info("Device closed the virtual connection")
                return self._close(Action.DISCONNECT, REASON_CONNECTION_CLOSED)
            logger.debug("[Connection] %s", message.data)
            return self._stay()

        if message.namespace == NS_MEDIA:
            if message.type == "LOAD_FAILED":
                logger.warning("Device failed to load media: %s", message.data)
                return self._close(Action.DISCONNECT, REASON_LOAD_FAILED)
            if message.type == "LOAD_CANCELLED":
                logger.warning("Media load was cancelled")
                return self._close(Action.DISCONNECT, REASON_LOAD_CANCELLED)
            if message.type == "MEDIA_STATUS":
                entries = message.data.get("status") or []
                if entries:
                    status = CastStatus.from_entry(entries[0])
                    if status.player_state == "IDLE":
                        logger.info("Player went idle (%s), closing", status.idle_reason or "no reason")
                        return self._close(Action.DISCONNECT, REASON_IDLE, status.idle_reason)
                logger.debug("[Status] %s", entries)
                return self._stay()
            logger.debug("[Media] %s", message.data)
            return self._stay()

        if message.namespace == NS_RECEIVER:
            logger.debug("[Receiver] %s", message.data)
        else:
            logger.debug("Unsupported message on %s: %s", message.namespace, message.data)
        return self._stay()

    def on_timeout(self) -> Transition:
        self._require(CastState.CASTING)
        return self._stay()

    def on_receive_error(self, error: Exception) -> Transition:
        self._require(CastState.CASTING)
        self.receive_errors += 1
        logger.warning(
            "Error receiving cast message (%d/%d): %s",
            self.receive_errors, self.max_receive_errors, error,
        )
        if self.receive_errors >= self.max_receive_errors:
            return self._close(
                Action.ABORT,
                REASON_RECEIVE_ERRORS,
                error=f"Giving up after {self.receive_errors} consecutive receive errors: {error}",
            )
        return self._stay()

    def on_connection_lost(self, error: Exception) -> Transition:
        self._require(CastState.CASTING)
        return self._close(Action.ABORT, REASON_CONNECTION_LOST, error=str(error))
