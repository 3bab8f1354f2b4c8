"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
from pathlib import Path

from casterson.errors import ProbeFailed
from casterson.models import VideoInfo

logger = logging.getLogger(__name__)


class FFmpegNotFoundError(RuntimeError):
    pass


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path, ffprobe: str = "ffprobe") -> VideoInfo:
    """Extract first video stream metadata and container duration via ffprobe."""
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=codec_name,width,height:format=duration",
        "-print_format", "json",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise ProbeFailed(f"Unable to run {ffprobe}: {e}") from e

    if result.returncode != 0:
        raise ProbeFailed(
            f"ffprobe failed (rc={result.returncode}): {result.stderr.strip()[-500:]}"
        )

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeFailed(f"Unable to parse ffprobe output for {input_path}") from e

    streams = data.get("streams") or []
    if not streams:
        raise ProbeFailed(f"No video stream found in {input_path}")
    stream = streams[0]

    raw_duration = (data.get("format") or {}).get("duration")
    try:
        duration = float(raw_duration)
    except (TypeError, ValueError) as e:
        raise ProbeFailed(f"Invalid duration {raw_duration!r} in {input_path}") from e

    try:
        info = VideoInfo(
            codec_name=stream.get("codec_name", ""),
            width=int(stream["width"]),
            height=int(stream["height"]),
            duration=duration,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProbeFailed(f"Missing stream dimensions in {input_path}") from e

    logger.debug("Probed %s: %s", input_path, info)
    return info
