"""Orchestrator — validates show requests and drives cast sessions."""

import ipaddress
import logging
import threading
import urllib.parse
from pathlib import Path

from casterson import transcoder
from casterson.cast import session as cast_session
from casterson.cast.session import CastSession
from casterson.config import CastSettings, ServerConfig
from casterson.errors import CastersonError, ValidationError
from casterson.media import is_safe_file
from casterson.models import (
    DEFAULT_CAST_PORT,
    DEFAULT_DESTINATION_ID,
    CastStatus,
    CastTarget,
    EncodeOptions,
)
from casterson.notifier import CastingEnded, EncodingStarted, ErrorDuringCasting, Notifier

logger = logging.getLogger(__name__)

COMMANDS = ("play", "pause", "stop", "status")


def show_media(
    path: str | Path,
    opts: EncodeOptions,
    config: ServerConfig,
    notifier: Notifier,
) -> transcoder.EncodeStream:
    """Validate ``path`` and start streaming it as fragmented MP4."""
    if not is_safe_file(path, config.media_dirs, config.media_exts):
        raise ValidationError(f"Not an allowed media file: {path}")

    notifier.send(EncodingStarted(str(path)))
    return transcoder.encode(Path(path).resolve(), opts, config.encoder)


def show_url(config: ServerConfig, path: str | Path, **params) -> str:
    """URL under which the device can pull ``path`` from this server."""
    query = {"file": str(path)}
    query.update({k: str(v) for k, v in params.items() if v is not None})
    return f"{config.base_url()}/media/show?{urllib.parse.urlencode(query)}"


def make_target(ip: str, port: int | None = None, dest_id: str | None = None) -> CastTarget:
    if not ip:
        raise ValidationError("Cast target requires an 'ip'")
    try:
        ipaddress.ip_address(ip if isinstance(ip, str) else "")
    except ValueError:
        raise ValidationError(f"Invalid cast ip: {ip!r}") from None
    try:
        port = int(port) if port is not None else DEFAULT_CAST_PORT
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid cast port: {port!r}") from None
    return CastTarget(
        ip=ip,
        port=port,
        destination_id=dest_id or DEFAULT_DESTINATION_ID,
    )


def run_command(target: CastTarget, command: str, settings: CastSettings | None = None) -> CastStatus:
    """Run one transport command (play/pause/stop/status) on its own session."""
    if command not in COMMANDS:
        raise ValueError(f"Unknown cast command: {command}")
    settings = settings or CastSettings()
    return getattr(cast_session, command)(target, timeout=settings.timeout)


def _cast_worker(session: CastSession, notifier: Notifier) -> None:
    ip = session.target.ip
    try:
        outcome = session.run_loop()
    except CastersonError as e:
        notifier.send(ErrorDuringCasting(detail=f"{ip}: {e}", code=e.code))
    except Exception as e:
        logger.exception("Cast loop for %s crashed", ip)
        notifier.send(ErrorDuringCasting(detail=f"{ip}: {e}"))
    else:
        notifier.send(CastingEnded(ip=ip, reason=outcome.reason, idle_reason=outcome.idle_reason))


def start_cast(
    target: CastTarget,
    url: str,
    notifier: Notifier,
    settings: CastSettings | None = None,
) -> threading.Thread:
    """Tell the device to load ``url`` and keep the session alive in the background.

    Connection and launch errors are raised to the caller; anything that goes
    wrong once the receive loop runs is reported to ``notifier``.
    """
    settings = settings or CastSettings()
    session = CastSession(
        target,
        timeout=settings.timeout,
        max_receive_errors=settings.max_receive_errors,
    )
    session.start_cast(url)

    thread = threading.Thread(
        target=_cast_worker,
        args=(session, notifier),
        name=f"cast-{target.ip}",
        daemon=True,
    )
    thread.start()
    return thread
