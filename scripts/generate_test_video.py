#!/usr/bin/env python3
"""Generate a synthetic 16:9-ish test video with a subtitle sidecar for Casterson.

Produces a ~20-second 640x360 video with a 440 Hz tone and a moving test
pattern, plus ``<name>.srt`` next to it so ``/media/show`` exercises the
subtitle burn-in and crop filters end to end:

    python scripts/generate_test_video.py media/sample.mp4
    casterson serve media/ --public-url http://<this-host>:3000
"""

import subprocess
import sys
from pathlib import Path

SUBTITLES = """\
1
00:00:01,000 --> 00:00:05,000
Casterson test pattern

2
00:00:06,000 --> 00:00:12,000
Subtitles: burned in, kept in sync after a seek

3
00:00:13,000 --> 00:00:19,000
Colons: and 'quotes' survive escaping
"""


def generate_test_video(output: Path, duration: int = 20) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", f"testsrc2=size=640x360:rate=30:duration={duration}",
        "-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    output.with_suffix(".srt").write_text(SUBTITLES, encoding="utf-8")
    print(f"Generated: {output} (+ {output.with_suffix('.srt').name})")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("media/sample.mp4")
    generate_test_video(out)
