"""Cast V2 transport on pychromecast's socket client.

pychromecast owns the TLS connection, the platform virtual connection and
the heartbeat. ``CastChannel`` adds what the session needs on top of it:
blocking request/reply on the media namespace and a queue of everything the
device sends there while casting.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field

import pychromecast
from pychromecast.controllers import BaseController
from pychromecast.error import PyChromecastError
from pychromecast.socket_client import (
    CONNECTION_STATUS_DISCONNECTED,
    CONNECTION_STATUS_FAILED,
    CONNECTION_STATUS_LOST,
)

from casterson.errors import ConnectFailed, ProtocolError
from casterson.models import ReceiverApp

logger = logging.getLogger(__name__)

NS_CONNECTION = "urn:x-cast:com.google.cast.tp.connection"
NS_HEARTBEAT = "urn:x-cast:com.google.cast.tp.heartbeat"
NS_RECEIVER = "urn:x-cast:com.google.cast.receiver"
NS_MEDIA = "urn:x-cast:com.google.cast.media"

SENDER_ID = "sender-0"


class ChannelClosed(ProtocolError):
    """Raised when the connection to the device is gone for good."""


@dataclass(frozen=True)
class Message:
    """A message received from the device, with its JSON payload."""

    namespace: str
    source_id: str
    destination_id: str
    data: dict = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.data.get("type", "")

    @property
    def request_id(self) -> int | None:
        return self.data.get("requestId")


class MediaQueueController(BaseController):
    """Media namespace handler that forwards every message to a queue."""

    def __init__(self, events: queue.Queue):
        super().__init__(NS_MEDIA)
        self.events = events

    def receive_message(self, message, data: dict) -> bool:
        self.events.put(Message(message.namespace, message.source_id, message.destination_id, data))
        return True

    def channel_disconnected(self) -> None:
        # the receiver app closed its transport or stopped
        self.events.put(Message(NS_CONNECTION, "", SENDER_ID, {"type": "CLOSE"}))


class CastChannel:
    """One connection to a cast device.

    ``receive()`` returns queued media messages. Connection trouble reported
    by the socket client is queued too and raised from ``receive()``: a lost
    connection as ProtocolError, a closed or failed one as ChannelClosed.
    """

    def __init__(self, host: str, port: int, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.cast: pychromecast.Chromecast | None = None
        self.events: queue.Queue = queue.Queue()
        self.media = MediaQueueController(self.events)

    def open(self) -> None:
        try:
            self.cast = pychromecast.get_chromecast_from_host(
                (self.host, self.port, None, None, None), tries=1, timeout=self.timeout
            )
            self.cast.register_handler(self.media)
            self.cast.register_connection_listener(self)
            self.cast.wait(timeout=self.timeout)
        except PyChromecastError as e:
            self.close()
            raise ConnectFailed(f"Unable to connect to {self.host}:{self.port}: {e}") from e
        if self.cast.status is None:
            self.close()
            raise ConnectFailed(f"No receiver status from {self.host}:{self.port}")
        logger.debug("Connected to %s:%s", self.host, self.port)

    def close(self) -> None:
        """Disconnect from the device. Safe to call more than once."""
        if self.cast is None:
            return
        cast, self.cast = self.cast, None
        try:
            cast.disconnect(timeout=self.timeout)
        except (PyChromecastError, RuntimeError) as e:
            logger.warning("Error disconnecting from %s: %s", self.host, e)

    def set_timeout(self, timeout: float) -> None:
        self.timeout = timeout

    def new_connection_status(self, status) -> None:
        if status.status == CONNECTION_STATUS_LOST:
            self.events.put(ProtocolError(f"Connection to {self.host} lost"))
        elif status.status in (CONNECTION_STATUS_DISCONNECTED, CONNECTION_STATUS_FAILED):
            self.events.put(ChannelClosed(f"Connection to {self.host} closed ({status.status})"))

    def _require_open(self) -> pychromecast.Chromecast:
        if self.cast is None:
            raise ProtocolError(f"Not connected to {self.host}")
        return self.cast

    # -- receiver -----------------------------------------------------------

    def receiver_apps(self) -> list[ReceiverApp]:
        """The application running on the device, as last reported."""
        status = self._require_open().status
        if status is None or not status.app_id:
            return []
        return [ReceiverApp.from_cast_status(status)]

    def launch(self, app_id: str) -> list[ReceiverApp]:
        """Launch ``app_id``, or attach to it if it is already running."""
        try:
            self._require_open().start_app(app_id, timeout=self.timeout)
        except PyChromecastError as e:
            raise ProtocolError(f"Unable to launch {app_id} on {self.host}: {e}") from e
        return self.receiver_apps()

    # -- media namespace ----------------------------------------------------

    def send(self, data: dict) -> None:
        self._require_open()
        try:
            self.media.send_message(data)
        except PyChromecastError as e:
            raise ProtocolError(f"Unable to send {data.get('type')}: {e}") from e

    def request(self, data: dict) -> Message:
        """Send ``data`` and wait for the reply with the same request id."""
        self._require_open()
        done = threading.Event()
        replies: list[dict] = []

        def on_reply(msg_sent: bool, response: dict | None) -> None:
            if msg_sent and response is not None:
                replies.append(response)
            done.set()

        try:
            self.media.send_message(data, callback_function=on_reply)
        except PyChromecastError as e:
            raise ProtocolError(f"Unable to send {data.get('type')}: {e}") from e
        if not done.wait(self.timeout):
            raise ProtocolError(f"Timed out waiting for reply to {data.get('type')}")
        if not replies:
            raise ProtocolError(f"{data.get('type')} was not delivered")
        return Message(NS_MEDIA, "", SENDER_ID, replies[0])

    def close_transport(self, transport_id: str) -> None:
        """CLOSE the virtual connection to a receiver app."""
        self._require_open().socket_client.disconnect_channel(transport_id)

    def receive(self) -> Message:
        """Next message from the device. Raises TimeoutError when none arrives."""
        try:
            item = self.events.get(timeout=self.timeout)
        except queue.Empty:
            raise TimeoutError(f"No message from {self.host} in {self.timeout}s") from None
        if isinstance(item, Exception):
            raise item
        return item
