"""JSON server configuration — the contract between the CLI and the server."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from casterson.models import SubtitleStyle

DEFAULT_MEDIA_EXTS = ["mp4", "mkv", "avi", "mov"]


@dataclass
class EncoderSettings:
    """How the encoder process is invoked. Codec settings are fixed per server."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    hwaccel: str = "auto"
    video_codec: str = "h264_nvenc"
    preset: str = "slow"
    bitrate: str = "8M"
    audio_codec: str = "aac"
    chunk_size: int = 64 * 1024
    terminate_timeout: float = 5.0


@dataclass
class CastSettings:
    """Cast protocol client tuning."""

    timeout: float = 10.0
    max_receive_errors: int = 5


@dataclass
class ServerConfig:
    """Top-level server configuration."""

    media_dirs: list[Path] = field(default_factory=list)
    media_exts: list[str] = field(default_factory=lambda: list(DEFAULT_MEDIA_EXTS))
    host: str = "0.0.0.0"
    port: int = 3000
    public_url: str | None = None
    encoder: EncoderSettings = field(default_factory=EncoderSettings)
    cast: CastSettings = field(default_factory=CastSettings)
    subtitle_style: SubtitleStyle = field(default_factory=SubtitleStyle)

    def base_url(self) -> str:
        """URL the cast device uses to reach this server."""
        if self.public_url:
            return self.public_url.rstrip("/")
        return f"http://{self.host}:{self.port}"


def load_config(path: str | Path) -> ServerConfig:
    """Load and validate a server configuration from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if not data.get("media_dirs"):
        raise ValueError("Config must contain a non-empty 'media_dirs' list")

    encoder = EncoderSettings(**data["encoder"]) if "encoder" in data else EncoderSettings()
    cast = CastSettings(**data["cast"]) if "cast" in data else CastSettings()
    style = SubtitleStyle(**data["subtitle_style"]) if "subtitle_style" in data else SubtitleStyle()

    return ServerConfig(
        media_dirs=[Path(d) for d in data["media_dirs"]],
        media_exts=[e.lstrip(".").lower() for e in data.get("media_exts", DEFAULT_MEDIA_EXTS)],
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 3000)),
        public_url=data.get("public_url"),
        encoder=encoder,
        cast=cast,
        subtitle_style=style,
    )
