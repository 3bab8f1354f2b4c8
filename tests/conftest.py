"""Shared test fixtures."""

from pathlib import Path

import pytest

from casterson.cast.channel import NS_MEDIA, SENDER_ID, ChannelClosed, Message
from casterson.errors import ConnectFailed
from casterson.models import ReceiverApp

FIXTURES_DIR = Path(__file__).parent / "fixtures"

MEDIA_RECEIVER_ID = "CC1AD845"


class FakeChannel:
    """In-memory stand-in for CastChannel.

    ``apps`` is what the device reports running and ``launched`` what it
    reports after a launch. ``replies`` maps a media request type to a reply
    payload, an exception to raise, or a list of those consumed in order.
    ``incoming`` feeds ``receive()``; once exhausted the connection closes.
    """

    def __init__(self, apps=(), replies=None, incoming=None, launched=None, fail_open=False):
        self.apps = list(apps)
        self.launched = launched
        self.replies = dict(replies or {})
        self.incoming = list(incoming or [])
        self.fail_open = fail_open
        self.sent: list[dict] = []
        self.launches: list[str] = []
        self.closed_transports: list[str] = []
        self.opened = False
        self.closed = False

    def __call__(self, host, port, timeout=10.0):
        self.host, self.port, self.timeout = host, port, timeout
        return self

    def open(self):
        if self.fail_open:
            raise ConnectFailed("connection refused")
        self.opened = True

    def close(self):
        self.closed = True

    def set_timeout(self, timeout):
        self.timeout = timeout

    def receiver_apps(self):
        return list(self.apps)

    def launch(self, app_id):
        self.launches.append(app_id)
        if self.launched is not None:
            self.apps = list(self.launched)
        return list(self.apps)

    def send(self, data):
        self.sent.append(data)

    def request(self, data):
        self.send(data)
        reply = self.replies[data["type"]]
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return Message(NS_MEDIA, "web-5", SENDER_ID, reply)

    def close_transport(self, transport_id):
        self.closed_transports.append(transport_id)

    def receive(self):
        if not self.incoming:
            raise ChannelClosed("connection closed")
        item = self.incoming.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def sent_types(self) -> list[str]:
        return [data["type"] for data in self.sent]


def media_receiver_app(transport_id="web-5", session_id="session-1") -> ReceiverApp:
    return ReceiverApp(
        app_id=MEDIA_RECEIVER_ID,
        transport_id=transport_id,
        session_id=session_id,
        display_name="Default Media Receiver",
        status_text="Ready To Cast",
    )


def media_status(player_state="PLAYING", current_time=12.5, idle_reason=None, media_session_id=7) -> dict:
    entry = {"mediaSessionId": media_session_id, "playerState": player_state, "currentTime": current_time}
    if idle_reason:
        entry["idleReason"] = idle_reason
    return {"type": "MEDIA_STATUS", "status": [entry]}


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    (root / "movie.mp4").write_bytes(b"fake video")
    return root
