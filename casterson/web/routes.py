"""HTTP routes: media inventory, on-demand transcoding and cast control."""

from flask import Blueprint, Response, current_app, jsonify, request

from casterson import engine
from casterson.config import ServerConfig
from casterson.errors import ValidationError
from casterson.media import is_safe_file, scan_media_files
from casterson.models import EncodeOptions
from casterson.notifier import Notifier, RequestClosed
from casterson.web import error_response

bp = Blueprint("api", __name__)

_TRUE = ("1", "true", "yes", "on")


def _config() -> ServerConfig:
    return current_app.config["CASTERSON"]


def _notifier() -> Notifier:
    return current_app.config["NOTIFIER"]


def _number(params, name: str, cast=float, default=0):
    value = params.get(name)
    if value in (None, ""):
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for '{name}': {value!r}") from None


def _encode_options(params) -> EncodeOptions:
    opts = EncodeOptions(
        seek_seconds=_number(params, "seek"),
        disable_subtitles=str(params.get("disable_subtitles", "")).lower() in _TRUE,
        output_resolution=(_number(params, "width", int), _number(params, "height", int)),
        crop_max_percent=_number(params, "crop"),
        subtitle_style=_config().subtitle_style,
    )
    if opts.seek_seconds < 0:
        raise ValidationError("'seek' must not be negative")
    if not 0 <= opts.crop_max_percent < 100:
        raise ValidationError("'crop' must be between 0 and 100")
    return opts


@bp.route("/media_files")
def media_files():
    cfg = _config()
    files = scan_media_files(cfg.media_dirs, cfg.media_exts)
    return jsonify({"files": [str(p) for p in files]})


@bp.route("/media/show")
def media_show():
    path = request.args.get("file")
    if not path:
        return error_response("VALIDATION_ERROR", "Missing 'file' parameter", 400)

    opts = _encode_options(request.args)
    notifier = _notifier()
    stream = engine.show_media(path, opts, _config(), notifier)

    response = Response(stream, mimetype="video/mp4")
    response.headers["Cache-Control"] = "no-cache"
    response.call_on_close(lambda: notifier.send(RequestClosed(path)))
    return response


@bp.route("/chromecast/<command>", methods=["POST"])
def chromecast(command: str):
    if command not in ("start", "cast") + engine.COMMANDS:
        return error_response("NOT_FOUND", f"Unknown command '{command}'", 404)

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return error_response("JSON_ERROR", "Request body must be a JSON object", 400)

    target = engine.make_target(body.get("ip"), body.get("port"), body.get("dest_id"))
    cfg = _config()

    if command in ("start", "cast"):
        url = body.get("url")
        if not url:
            path = body.get("file")
            if not path:
                return error_response("VALIDATION_ERROR", "Provide 'url' or 'file'", 400)
            if not is_safe_file(path, cfg.media_dirs, cfg.media_exts):
                raise ValidationError(f"Not an allowed media file: {path}")
            opts = _encode_options(body)
            url = engine.show_url(
                cfg,
                path,
                seek=opts.seek_seconds or None,
                disable_subtitles=1 if opts.disable_subtitles else None,
                width=opts.output_resolution[0] or None,
                height=opts.output_resolution[1] or None,
                crop=opts.crop_max_percent or None,
            )
        engine.start_cast(target, url, _notifier(), cfg.cast)
        return jsonify({"status": "started", "url": url})

    result = engine.run_command(target, command, cfg.cast)
    return jsonify(result.to_dict())
