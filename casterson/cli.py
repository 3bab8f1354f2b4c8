"""Thin CLI entry point — builds a ServerConfig and calls the engine or the server."""

import argparse
import json
import logging
import sys
from pathlib import Path

from casterson import engine, ffutil
from casterson.cast import session as cast_session
from casterson.config import DEFAULT_MEDIA_EXTS, ServerConfig, load_config
from casterson.errors import CastersonError
from casterson.media import scan_media_files
from casterson.models import DEFAULT_CAST_PORT, DEFAULT_DESTINATION_ID

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def _add_target_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("ip", help="IP address of the cast device")
    parser.add_argument("--device-port", type=int, default=DEFAULT_CAST_PORT, help="Cast device port")
    parser.add_argument("--dest-id", default=DEFAULT_DESTINATION_ID, help="Platform destination id")


def _build_config(args: argparse.Namespace) -> ServerConfig:
    cfg = load_config(args.config) if args.config else ServerConfig()
    if getattr(args, "dirs", None):
        cfg.media_dirs = args.dirs
    if getattr(args, "media_exts", None):
        cfg.media_exts = [e.strip().lstrip(".").lower() for e in args.media_exts.split(",") if e.strip()]
    if getattr(args, "host", None):
        cfg.host = args.host
    if getattr(args, "port", None):
        cfg.port = args.port
    if getattr(args, "public_url", None):
        cfg.public_url = args.public_url
    return cfg


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="casterson",
        description="Casterson: it just keeps on casting. Transcode local videos and cast them.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="Verbose mode (-v, -vv)")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("dirs", nargs="*", type=Path, help="Directories of media files")
    serve.add_argument("--host", type=str, help="Address to bind to (default: 0.0.0.0)")
    serve.add_argument("--port", "-p", type=int, help="Port to listen on (default: 3000)")
    serve.add_argument("--media-exts", "-e", help=f"Media extensions (default: {','.join(DEFAULT_MEDIA_EXTS)})")
    serve.add_argument("--public-url", help="Base URL the cast device uses to reach this server")

    scan = sub.add_parser("scan", help="List media files")
    scan.add_argument("dirs", nargs="*", type=Path, help="Directories of media files")
    scan.add_argument("--media-exts", "-e", help="Media extensions")

    cast = sub.add_parser("cast", help="Cast a URL and stay attached until playback ends")
    _add_target_args(cast)
    cast.add_argument("url", help="Media URL the device should load")

    for name in engine.COMMANDS:
        cmd = sub.add_parser(name, help=f"Send {name} to the device and print its status")
        _add_target_args(cmd)

    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    cfg = _build_config(args)

    if args.command == "serve":
        if not cfg.media_dirs:
            print("Error: provide media directories or a --config with media_dirs.", file=sys.stderr)
            sys.exit(1)
        try:
            ffutil.check_ffmpeg(cfg.encoder.ffmpeg, cfg.encoder.ffprobe)
        except ffutil.FFmpegNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        from casterson.notifier import Notifier
        from casterson.web import create_app
        notifier = Notifier()
        notifier.start()
        app = create_app(cfg, notifier)
        print(f"Casterson listening at http://{cfg.host}:{cfg.port}")
        try:
            app.run(host=cfg.host, port=cfg.port, debug=False, threaded=True)
        finally:
            notifier.stop(timeout=5)
        return

    if args.command == "scan":
        for path in scan_media_files(cfg.media_dirs, cfg.media_exts):
            print(path)
        return

    try:
        target = engine.make_target(args.ip, args.device_port, args.dest_id)
        if args.command == "cast":
            outcome = cast_session.cast(
                target,
                args.url,
                timeout=cfg.cast.timeout,
                max_receive_errors=cfg.cast.max_receive_errors,
            )
            print(f"Casting ended: {outcome.reason} {outcome.idle_reason}".rstrip())
        else:
            result = engine.run_command(target, args.command, cfg.cast)
            print(json.dumps(result.to_dict(), indent=2))
    except CastersonError as e:
        print(f"Error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(1)
