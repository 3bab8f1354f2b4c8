"""Video filter graph planning: crop to the TV aspect ratio and burn in subtitles."""

import logging
from pathlib import Path

from casterson import ffutil
from casterson.errors import ProbeFailed
from casterson.models import EncodeOptions, SubtitleStyle, VideoInfo

logger = logging.getLogger(__name__)


def format_number(value: float) -> str:
    """Render a number for a filter expression: integers without a decimal point."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def escape_filter_value(value: str) -> str:
    """Escape a value for use inside a quoted filter option.

    The backslash has to go first, otherwise the escapes added for quotes and
    colons would be escaped again.
    """
    return value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


def sidecar_subtitle_path(video_path: Path) -> Path:
    return Path(video_path).with_suffix(".srt")


def crop_filter(info: VideoInfo, opts: EncodeOptions) -> str | None:
    """Return a crop expression fitting the output aspect ratio, or None.

    The crop never removes more than ``crop_max_percent`` of the source width.
    Nothing is returned when the output is as wide as or wider than the
    source, since there is nothing to remove.
    """
    if not needs_probe(opts) or info.width <= 0 or info.height <= 0:
        return None

    out_w, out_h = opts.output_resolution
    # output aspect ratio times source height, multiplied first to stay exact
    crop_width = out_w * info.height / out_h
    crop_height = info.height
    crop_percent = 100 * (info.width - crop_width) / info.width

    if crop_percent > opts.crop_max_percent:
        crop_width = (1.0 - opts.crop_max_percent / 100) * info.width
        crop_percent = opts.crop_max_percent

    if crop_percent <= 0:
        return None

    return f"crop={format_number(crop_width)}:{format_number(crop_height)}"


def subtitle_filters(
    subtitle_path: Path, seek_seconds: float, style: SubtitleStyle
) -> list[str]:
    """Burn in a subtitle file, keeping it in sync after a seek.

    The input seek resets timestamps to zero, so they are shifted forward by
    the seek offset while the subtitles are rendered and reset afterwards.
    """
    escaped = escape_filter_value(str(subtitle_path))
    return [
        f"setpts=PTS+{format_number(seek_seconds)}/TB",
        f"subtitles='{escaped}':charenc='{style.encoding}':force_style='{style.force_style()}'",
        "setpts=PTS-STARTPTS",
    ]


def plan_filters(
    info: VideoInfo | None,
    opts: EncodeOptions,
    subtitle_path: Path | None,
) -> list[str]:
    """Compute the ordered ``-vf`` filter list.

    Args:
        info: Probed source info, or None when it is unavailable (no crop).
        opts: Requested encode options.
        subtitle_path: Existing sidecar subtitle file, or None.
    """
    filters: list[str] = []

    if info is not None:
        crop = crop_filter(info, opts)
        if crop:
            filters.append(crop)

    if not opts.disable_subtitles and subtitle_path is not None:
        filters.extend(
            subtitle_filters(subtitle_path, opts.seek_seconds, opts.subtitle_style)
        )

    return filters


def needs_probe(opts: EncodeOptions) -> bool:
    out_w, out_h = opts.output_resolution
    return opts.crop_max_percent > 0 and out_w > 0 and out_h > 0


def plan_file_filters(
    video_path: Path, opts: EncodeOptions, ffprobe: str = "ffprobe"
) -> list[str]:
    """Plan filters for a file on disk.

    The file is probed only when cropping is requested. A failed probe or a
    missing sidecar degrades to no crop / no subtitles instead of aborting.
    """
    info = None
    if needs_probe(opts):
        try:
            info = ffutil.probe(video_path, ffprobe=ffprobe)
        except ProbeFailed as e:
            logger.warning("Probe failed, encoding without crop: %s", e)

    subtitle_path = None
    if not opts.disable_subtitles:
        candidate = sidecar_subtitle_path(video_path)
        if candidate.is_file():
            subtitle_path = candidate
        else:
            logger.debug("No subtitle sidecar at %s", candidate)

    return plan_filters(info, opts, subtitle_path)
