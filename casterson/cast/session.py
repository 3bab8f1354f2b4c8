"""Cast V2 session management for the default media receiver.

Example::

    target = CastTarget("192.168.8.106")
    status(target)          # CastStatus of the loaded media
    pause(target)
    play(target)
    cast(target, "http://192.168.8.103:3000/media/show?file=movie.mp4")
"""

import enum
import logging
from typing import Callable

from pychromecast.config import APP_MEDIA_RECEIVER

from casterson.cast.channel import CastChannel, ChannelClosed, Message
from casterson.cast.loop import Action, CastLoop
from casterson.errors import AppNotFound, AppStatusNotFound, ProtocolError
from casterson.models import DEFAULT_DESTINATION_ID, CastOutcome, CastStatus, CastTarget, ReceiverApp

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    APP_RESOLVED = "app_resolved"
    APP_CONNECTED = "app_connected"


class CastSession:
    """A control session with one device.

    Each instance owns one channel. Transport commands (play, pause, stop,
    status) open their own virtual connection to the receiver app and always
    close it again; ``cast`` keeps the session alive in a receive loop until
    the device is done with the media.
    """

    def __init__(
        self,
        target: CastTarget,
        timeout: float = 10.0,
        max_receive_errors: int = 5,
        channel_factory: Callable[..., CastChannel] | None = None,
    ):
        self.target = target
        self.timeout = timeout
        self.channel = (channel_factory or CastChannel)(target.ip, target.port, timeout)
        self.state = SessionState.DISCONNECTED
        self.app: ReceiverApp | None = None
        self.loop = CastLoop(max_receive_errors=max_receive_errors)

    def __enter__(self) -> "CastSession":
        return self

    def __exit__(self, *exc) -> None:
        self.disconnect()

    # -- connection ---------------------------------------------------------

    def connect(self) -> None:
        """Open the channel and wait for the first receiver status."""
        if self.state is not SessionState.DISCONNECTED:
            raise RuntimeError(f"Cannot connect from state {self.state.name}")
        if self.target.destination_id != DEFAULT_DESTINATION_ID:
            logger.warning(
                "Ignoring destination id %s, the socket client always uses %s",
                self.target.destination_id, DEFAULT_DESTINATION_ID,
            )
        self.channel.open()
        self.state = SessionState.CONNECTED
        logger.debug("Connected to %s:%s", self.target.ip, self.target.port)

    def disconnect(self) -> None:
        """Close the channel. Safe to call in any state."""
        self.channel.close()
        self.app = None
        self.state = SessionState.DISCONNECTED

    def _request(self, data: dict, expect: str) -> Message:
        reply = self.channel.request(data)
        if reply.type != expect:
            raise ProtocolError(f"{data['type']} failed with {reply.type or 'no type'}: {reply.data}")
        return reply

    # -- receiver app -------------------------------------------------------

    def receiver_status(self) -> list[ReceiverApp]:
        """Return the applications currently running on the device."""
        return self.channel.receiver_apps()

    def resolve_receiver_app(self) -> ReceiverApp:
        """Find the running default media receiver. Raises AppNotFound if absent."""
        if self.state is not SessionState.CONNECTED:
            raise RuntimeError(f"Cannot resolve receiver app from state {self.state.name}")
        app = next((a for a in self.receiver_status() if a.app_id == APP_MEDIA_RECEIVER), None)
        if app is None:
            raise AppNotFound(f"Default media receiver is not running on {self.target.ip}")
        self.app = app
        self.state = SessionState.APP_RESOLVED
        return app

    def launch_receiver_app(self) -> ReceiverApp:
        """Launch the default media receiver, or attach to the running instance."""
        for app in self.channel.launch(APP_MEDIA_RECEIVER):
            if app.app_id == APP_MEDIA_RECEIVER:
                self.app = app
                self.state = SessionState.APP_RESOLVED
                return app
        raise AppNotFound(f"Default media receiver did not start on {self.target.ip}")

    # -- transport commands -------------------------------------------------

    @staticmethod
    def _first_entry(reply: Message) -> dict:
        entries = reply.data.get("status") or []
        if not entries:
            raise AppStatusNotFound("Receiver reported no media status")
        return entries[0]

    def _manage(self, command: str | None) -> CastStatus:
        app = self.app or self.resolve_receiver_app()

        # the first media request opens the transport connection
        self.state = SessionState.APP_CONNECTED
        try:
            entry = self._first_entry(self._request({"type": "GET_STATUS"}, "MEDIA_STATUS"))
            if command is None:
                return CastStatus.from_entry(entry)

            reply = self._request(
                {"type": command, "mediaSessionId": entry.get("mediaSessionId")},
                "MEDIA_STATUS",
            )
            return CastStatus.from_entry(self._first_entry(reply))
        finally:
            self._close_app_connection(app)
            self.state = SessionState.APP_RESOLVED

    def play(self) -> CastStatus:
        return self._manage("PLAY")

    def pause(self) -> CastStatus:
        return self._manage("PAUSE")

    def stop(self) -> CastStatus:
        return self._manage("STOP")

    def status(self) -> CastStatus:
        return self._manage(None)

    # -- casting ------------------------------------------------------------

    def start_cast(self, url: str, content_type: str = "video/mp4") -> ReceiverApp:
        """Connect, launch the receiver and tell it to load ``url``.

        The stream type is LIVE because the duration of a stream encoded on
        the fly is not known up front.
        """
        self.loop.connecting()
        self.connect()
        try:
            for running in self.receiver_status():
                logger.info(
                    "Running app: %s (%s) %s",
                    running.display_name, running.app_id, running.status_text,
                )

            app = self.launch_receiver_app()
            self.state = SessionState.APP_CONNECTED
            self.channel.send({
                "type": "LOAD",
                "sessionId": app.session_id,
                "media": {
                    "contentId": url,
                    "contentType": content_type,
                    "streamType": "LIVE",
                },
                "autoplay": True,
            })
        except Exception:
            self.disconnect()
            raise

        logger.info("Casting %s to %s", url, self.target.ip)
        self.loop.casting()
        return app

    def run_loop(self) -> CastOutcome:
        """Keep the session alive until the device closes it or goes idle.

        Heartbeats are answered by pychromecast's socket client, so the loop
        only sees media messages and connection changes. Always disconnects.
        Raises ProtocolError when the connection is lost or receive errors
        persist.
        """
        self.channel.set_timeout(self.timeout)
        try:
            while not self.loop.finished:
                try:
                    message = self.channel.receive()
                except TimeoutError:
                    transition = self.loop.on_timeout()
                except ChannelClosed as e:
                    transition = self.loop.on_connection_lost(e)
                except ProtocolError as e:
                    transition = self.loop.on_receive_error(e)
                else:
                    transition = self.loop.on_message(message)

                if transition.action is Action.DISCONNECT:
                    if self.app is not None:
                        self._close_app_connection(self.app)
                elif transition.action is Action.ABORT:
                    raise ProtocolError(transition.error or transition.reason)
        finally:
            self.disconnect()

        logger.info("Cast to %s ended: %s", self.target.ip, self.loop.outcome)
        return self.loop.outcome

    def _close_app_connection(self, app: ReceiverApp) -> None:
        try:
            self.channel.close_transport(app.transport_id)
        except ProtocolError as e:
            logger.warning("Unable to close connection to %s: %s", app.transport_id, e)

    def cast(self, url: str) -> CastOutcome:
        self.start_cast(url)
        return self.run_loop()


def _run(target: CastTarget, command: str, timeout: float) -> CastStatus:
    with CastSession(target, timeout=timeout) as session:
        session.connect()
        return getattr(session, command)()


def play(target: CastTarget, timeout: float = 10.0) -> CastStatus:
    return _run(target, "play", timeout)


def pause(target: CastTarget, timeout: float = 10.0) -> CastStatus:
    return _run(target, "pause", timeout)


def stop(target: CastTarget, timeout: float = 10.0) -> CastStatus:
    return _run(target, "stop", timeout)


def status(target: CastTarget, timeout: float = 10.0) -> CastStatus:
    return _run(target, "status", timeout)


def cast(target: CastTarget, url: str, timeout: float = 10.0, max_receive_errors: int = 5) -> CastOutcome:
    """Cast ``url`` and block until the session ends."""
    with CastSession(target, timeout=timeout, max_receive_errors=max_receive_errors) as session:
        return session.cast(url)
