"""On-demand transcoding to fragmented MP4 streamed from the encoder's stdout."""

import logging
import subprocess
import tempfile
from pathlib import Path

from casterson.config import EncoderSettings
from casterson.errors import SpawnFailed
from casterson.filters import format_number, plan_file_filters
from casterson.models import EncodeOptions

logger = logging.getLogger(__name__)


def build_encode_command(
    input_path: Path,
    opts: EncodeOptions,
    filters: list[str],
    settings: EncoderSettings,
) -> list[str]:
    """Build the ffmpeg argument list writing fragmented MP4 to stdout."""
    cmd = [
        settings.ffmpeg,
        "-nostdin",
        "-ss", format_number(opts.seek_seconds),
        "-hwaccel", settings.hwaccel,
        "-i", str(input_path),
    ]
    if filters:
        cmd += ["-vf", ",".join(filters)]
    cmd += [
        "-acodec", settings.audio_codec,
        "-c:v", settings.video_codec,
        "-preset", settings.preset,
        "-b:v", settings.bitrate,
        "-movflags", "frag_keyframe+empty_moov",
        "-f", "mp4",
        "pipe:1",
    ]
    return cmd


class EncodeStream:
    """Single-pass byte stream owning a running encoder process.

    Iterating reads the encoder's stdout in chunks; a consumer that stops
    reading blocks the encoder through the pipe. ``close()`` runs on
    exhaustion, on consumer error and when the WSGI server closes an abandoned
    response. After end of stream it waits for the encoder to exit and reports
    its exit code; before that it terminates the encoder.
    """

    def __init__(self, cmd: list[str], chunk_size: int = 64 * 1024, terminate_timeout: float = 5.0):
        self.cmd = cmd
        self.chunk_size = chunk_size
        self.terminate_timeout = terminate_timeout
        self._stderr = tempfile.TemporaryFile()
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
            )
        except OSError as e:
            self._stderr.close()
            raise SpawnFailed(f"Unable to start encoder {cmd[0]}: {e}") from e
        self._started = False
        self._eof = False
        self._closed = False
        logger.info("Encoder started (pid %s)", self.process.pid)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self):
        if self._started or self._closed:
            raise RuntimeError("EncodeStream is single-pass and cannot be restarted")
        self._started = True
        return self._read()

    def _read(self):
        try:
            while True:
                chunk = self.process.stdout.read(self.chunk_size)
                if not chunk:
                    self._eof = True
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        """Stop the encoder and release its pipes. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if self._eof:
            # stdout is done but the encoder may still be flushing or exiting
            try:
                self.process.wait(timeout=self.terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Encoder pid %s still running after end of stream", self.process.pid)

        if self.process.poll() is None:
            self._stop()
            logger.info("Encoder pid %s stopped before end of stream", self.process.pid)
        elif self.process.returncode != 0:
            logger.warning(
                "Encoder exited with rc=%s: %s", self.process.returncode, self._stderr_tail()
            )
        else:
            logger.info("Encoder pid %s finished", self.process.pid)

        if self.process.stdout is not None:
            self.process.stdout.close()
        self._stderr.close()

    def _stop(self) -> None:
        self.process.terminate()
        try:
            self.process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Encoder pid %s did not exit, killing", self.process.pid)
            self.process.kill()
            self.process.wait()

    def _stderr_tail(self, limit: int = 500) -> str:
        self._stderr.seek(0)
        return self._stderr.read().decode(errors="replace").strip()[-limit:]

    def __enter__(self) -> "EncodeStream":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def encode(
    input_path: Path,
    opts: EncodeOptions,
    settings: EncoderSettings | None = None,
) -> EncodeStream:
    """Start transcoding ``input_path`` and return the output stream.

    Raises SpawnFailed if the encoder cannot be started.
    """
    settings = settings or EncoderSettings()
    filters = plan_file_filters(input_path, opts, ffprobe=settings.ffprobe)
    cmd = build_encode_command(input_path, opts, filters, settings)
    logger.debug("Encoder command: %s", cmd)
    return EncodeStream(
        cmd,
        chunk_size=settings.chunk_size,
        terminate_timeout=settings.terminate_timeout,
    )
