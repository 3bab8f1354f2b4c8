"""Flask application factory for the Casterson HTTP API."""

from flask import Flask, jsonify

from casterson.config import ServerConfig
from casterson.errors import (
    AppNotFound,
    AppStatusNotFound,
    CastError,
    CastersonError,
    ValidationError,
)
from casterson.notifier import Notifier

ERROR_STATUS = {
    ValidationError: 400,
    AppNotFound: 404,
    AppStatusNotFound: 404,
    CastError: 502,
}


def error_response(code: str, msg: str, status: int):
    return jsonify({"error": code, "msg": msg}), status


def create_app(config: ServerConfig | None = None, notifier: Notifier | None = None) -> Flask:
    app = Flask(__name__)
    app.config["CASTERSON"] = config or ServerConfig()
    if notifier is None:
        notifier = Notifier()
        notifier.start()
    app.config["NOTIFIER"] = notifier

    from casterson.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(CastersonError)
    def casterson_error(error: CastersonError):
        status = next(
            (s for cls, s in ERROR_STATUS.items() if isinstance(error, cls)), 500
        )
        return error_response(error.code, str(error), status)

    @app.errorhandler(404)
    def not_found(error):
        return error_response("NOT_FOUND", "No such endpoint", 404)

    return app
