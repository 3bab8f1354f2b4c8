"""Shared data types used across Casterson."""

from dataclasses import dataclass, field

DEFAULT_CAST_PORT = 8009
DEFAULT_DESTINATION_ID = "receiver-0"

IDLE_REASONS = ("CANCELLED", "INTERRUPTED", "FINISHED", "ERROR")

# break out of a force_style entry or the filter option it is embedded in
STYLE_RESERVED = ",':=\\;[]"


@dataclass(frozen=True)
class VideoInfo:
    """Metadata of the first video stream, extracted via ffprobe."""

    codec_name: str
    width: int
    height: int
    duration: float


@dataclass
class SubtitleStyle:
    """Burned-in subtitle appearance.

    Alignment follows the SSA convention: 1=left, 2=centered, 3=right. Add 4
    for a top line and 8 for a mid line, e.g. 5 is a left-justified top line.
    """

    encoding: str = "UTF-8"
    font_name: str = "Arial"
    size: int = 32
    spacing: int = 0
    outline: int = 2
    alignment: int = 1
    margin_left: int = 50
    margin_right: int = 50
    margin_vertical: int = 30

    def __post_init__(self) -> None:
        if not 1 <= self.alignment <= 11:
            raise ValueError(f"Invalid subtitle alignment: {self.alignment}")
        for name, value in (("font name", self.font_name), ("encoding", self.encoding)):
            if any(c in value for c in STYLE_RESERVED):
                raise ValueError(f"Invalid subtitle {name}: {value!r}")

    def force_style(self) -> str:
        """Serialize to the libass ``force_style`` key=value list."""
        return ",".join([
            f"FontName={self.font_name}",
            f"Fontsize={self.size}",
            f"Spacing={self.spacing}",
            f"Outline={self.outline}",
            f"MarginL={self.margin_left}",
            f"MarginR={self.margin_right}",
            f"MarginV={self.margin_vertical}",
            f"Alignment={self.alignment}",
        ])


@dataclass
class EncodeOptions:
    """Per-request transcode options. A zero resolution component means unset."""

    seek_seconds: float = 0
    disable_subtitles: bool = False
    output_resolution: tuple[int, int] = (0, 0)
    crop_max_percent: float = 0
    subtitle_style: SubtitleStyle = field(default_factory=SubtitleStyle)


@dataclass(frozen=True)
class CastTarget:
    """Address of a cast device."""

    ip: str
    port: int = DEFAULT_CAST_PORT
    destination_id: str = DEFAULT_DESTINATION_ID


@dataclass(frozen=True)
class ReceiverApp:
    """An application running on the device."""

    app_id: str
    transport_id: str
    session_id: str
    display_name: str = ""
    status_text: str = ""

    @classmethod
    def from_cast_status(cls, status) -> "ReceiverApp":
        """Build from pychromecast's receiver ``CastStatus``."""
        return cls(
            app_id=status.app_id or "",
            transport_id=status.transport_id or "",
            session_id=status.session_id or "",
            display_name=status.display_name or "",
            status_text=status.status_text or "",
        )


@dataclass(frozen=True)
class CastStatus:
    """Playback status of the loaded media item."""

    current_time: float | None
    player_state: str
    idle_reason: str = ""

    @classmethod
    def from_entry(cls, entry: dict) -> "CastStatus":
        """Translate one entry of a MEDIA_STATUS ``status`` list."""
        current_time = entry.get("currentTime")
        idle_reason = entry.get("idleReason") or ""
        return cls(
            current_time=float(current_time) if current_time is not None else None,
            player_state=entry.get("playerState", "UNKNOWN"),
            idle_reason=idle_reason if idle_reason in IDLE_REASONS else "",
        )

    def to_dict(self) -> dict:
        return {
            "current_time": self.current_time,
            "player_state": self.player_state,
            "idle_reason": self.idle_reason,
        }


@dataclass(frozen=True)
class CastOutcome:
    """How a cast receive loop ended."""

    reason: str
    idle_reason: str = ""
