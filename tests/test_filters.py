"""Unit tests for filter graph planning."""

from pathlib import Path
from unittest.mock import patch

import pytest

from casterson.errors import ProbeFailed
from casterson.filters import (
    crop_filter,
    escape_filter_value,
    format_number,
    plan_file_filters,
    plan_filters,
    sidecar_subtitle_path,
    subtitle_filters,
)
from casterson.models import EncodeOptions, SubtitleStyle, VideoInfo

FULL_HD = VideoInfo(codec_name="h264", width=1920, height=1080, duration=600.0)


def _crop_width(expr: str) -> float:
    return float(expr.removeprefix("crop=").split(":")[0])


# ---------------------------------------------------------------------------
# crop_filter
# ---------------------------------------------------------------------------

class TestCropFilter:
    def test_same_aspect_ratio_emits_nothing(self):
        opts = EncodeOptions(output_resolution=(1280, 720), crop_max_percent=12)
        assert crop_filter(FULL_HD, opts) is None

    def test_crop_within_limit(self):
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=30)
        assert crop_filter(FULL_HD, opts) == "crop=1440:1080"

    def test_crop_clamped_to_max_percent(self):
        # 4:3 would remove 25% of the width; the limit is 12%
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=12)
        expr = crop_filter(FULL_HD, opts)
        assert expr == "crop=1689.6:1080"
        assert _crop_width(expr) == pytest.approx((1 - 12 / 100) * 1920)

    def test_ultrawide_source(self):
        info = VideoInfo(codec_name="hevc", width=2560, height=1080, duration=10.0)
        opts = EncodeOptions(output_resolution=(1920, 1080), crop_max_percent=30)
        assert crop_filter(info, opts) == "crop=1920:1080"

    def test_output_wider_than_source_emits_nothing(self):
        info = VideoInfo(codec_name="h264", width=1440, height=1080, duration=10.0)
        opts = EncodeOptions(output_resolution=(1920, 1080), crop_max_percent=20)
        assert crop_filter(info, opts) is None

    @pytest.mark.parametrize("resolution,max_percent", [
        ((0, 0), 12),
        ((1024, 0), 12),
        ((1024, 768), 0),
    ])
    def test_disabled(self, resolution, max_percent):
        opts = EncodeOptions(output_resolution=resolution, crop_max_percent=max_percent)
        assert crop_filter(FULL_HD, opts) is None

    @pytest.mark.parametrize("out_w,out_h,max_percent", [
        (1024, 768, 5),
        (1024, 768, 50),
        (720, 576, 10),
        (800, 800, 40),
        (640, 480, 99),
    ])
    def test_width_never_exceeds_source(self, out_w, out_h, max_percent):
        opts = EncodeOptions(output_resolution=(out_w, out_h), crop_max_percent=max_percent)
        expr = crop_filter(FULL_HD, opts)
        assert expr is not None
        width = _crop_width(expr)
        assert 0 < width <= FULL_HD.width
        assert 100 * (FULL_HD.width - width) / FULL_HD.width <= max_percent + 1e-9


# ---------------------------------------------------------------------------
# escaping and style
# ---------------------------------------------------------------------------

class TestEscapeFilterValue:
    def test_windows_unc_path(self):
        assert escape_filter_value(r"\\nas\Downloads\movie.srt") == r"\\\\nas\\Downloads\\movie.srt"

    def test_drive_letter_colon(self):
        assert escape_filter_value(r"C:\movies\a.srt") == r"C\:\\movies\\a.srt"

    def test_quote(self):
        assert escape_filter_value("/media/Schindler's List.srt") == r"/media/Schindler\'s List.srt"

    def test_backslash_escaped_before_quote(self):
        # a literal backslash followed by a quote must not collapse into one escape
        assert escape_filter_value("a\\'b") == "a\\\\\\'b"

    def test_plain_path_unchanged(self):
        assert escape_filter_value("/media/movie.srt") == "/media/movie.srt"


class TestSubtitleStyle:
    def test_default_force_style(self):
        assert SubtitleStyle().force_style() == (
            "FontName=Arial,Fontsize=32,Spacing=0,Outline=2,"
            "MarginL=50,MarginR=50,MarginV=30,Alignment=1"
        )

    def test_invalid_alignment(self):
        with pytest.raises(ValueError, match="alignment"):
            SubtitleStyle(alignment=12)

    @pytest.mark.parametrize("font", ["Arial,Outline=40", "Arial':original_size=1x1", "Ari\\al"])
    def test_font_name_cannot_inject_options(self, font):
        with pytest.raises(ValueError, match="font name"):
            SubtitleStyle(font_name=font)

    def test_font_name_with_spaces(self):
        assert SubtitleStyle(font_name="DejaVu Sans").force_style().startswith("FontName=DejaVu Sans,")


class TestFormatNumber:
    def test_integer_float(self):
        assert format_number(1920.0) == "1920"

    def test_fraction(self):
        assert format_number(90.5) == "90.5"


# ---------------------------------------------------------------------------
# plan_filters
# ---------------------------------------------------------------------------

SRT = Path("/media/movie.srt")


class TestPlanFilters:
    def test_subtitle_bracket(self):
        opts = EncodeOptions(seek_seconds=90)
        filters = plan_filters(None, opts, SRT)
        assert filters[0] == "setpts=PTS+90/TB"
        assert filters[1].startswith("subtitles='/media/movie.srt':charenc='UTF-8':force_style='FontName=Arial")
        assert filters[2] == "setpts=PTS-STARTPTS"
        assert len(filters) == 3

    def test_crop_comes_first(self):
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=30)
        filters = plan_filters(FULL_HD, opts, SRT)
        assert filters[0] == "crop=1440:1080"
        assert filters[1] == "setpts=PTS+0/TB"

    def test_subtitles_disabled(self):
        opts = EncodeOptions(disable_subtitles=True)
        assert plan_filters(None, opts, SRT) == []

    def test_no_sidecar(self):
        assert plan_filters(FULL_HD, EncodeOptions(), None) == []

    def test_no_sidecar_with_crop_keeps_only_crop(self):
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=30)
        assert plan_filters(FULL_HD, opts, None) == ["crop=1440:1080"]

    def test_subtitle_filters_escape_path(self):
        filters = subtitle_filters(Path("/media/it's: here.srt"), 0, SubtitleStyle())
        assert r"subtitles='/media/it\'s\: here.srt'" in filters[1]


class TestPlanFileFilters:
    def test_sidecar_path(self):
        assert sidecar_subtitle_path(Path("/m/movie.mkv")) == Path("/m/movie.srt")

    def test_uses_existing_sidecar(self, tmp_path):
        video = tmp_path / "movie.mp4"
        video.write_bytes(b"")
        (tmp_path / "movie.srt").write_text("1\n")
        filters = plan_file_filters(video, EncodeOptions())
        assert len(filters) == 3
        assert str(tmp_path / "movie.srt") in filters[1]

    @patch("casterson.filters.ffutil.probe")
    def test_missing_sidecar_is_empty(self, mock_probe, tmp_path):
        video = tmp_path / "movie.mp4"
        video.write_bytes(b"")
        assert plan_file_filters(video, EncodeOptions()) == []
        mock_probe.assert_not_called()

    @patch("casterson.filters.ffutil.probe", return_value=FULL_HD)
    def test_probes_only_for_crop(self, mock_probe, tmp_path):
        video = tmp_path / "movie.mp4"
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=30)
        assert plan_file_filters(video, opts) == ["crop=1440:1080"]
        mock_probe.assert_called_once_with(video, ffprobe="ffprobe")

    @patch("casterson.filters.ffutil.probe", side_effect=ProbeFailed("boom"))
    def test_probe_failure_degrades_to_no_crop(self, mock_probe, tmp_path):
        video = tmp_path / "movie.mp4"
        (tmp_path / "movie.srt").write_text("1\n")
        opts = EncodeOptions(output_resolution=(1024, 768), crop_max_percent=30)
        filters = plan_file_filters(video, opts)
        assert not any(f.startswith("crop=") for f in filters)
        assert len(filters) == 3
