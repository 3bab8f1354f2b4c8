"""Exception hierarchy shared by the transcode pipeline and the cast client."""


class CastersonError(Exception):
    """Base class for all errors raised by Casterson."""

    code = "UNKNOWN"


class ValidationError(CastersonError, ValueError):
    """Raised when a requested media path is outside the allowed roots or extensions."""

    code = "VALIDATION_ERROR"


class ProbeFailed(CastersonError):
    """Raised when ffprobe cannot produce usable stream information."""

    code = "PROBE_FAILED"


class SpawnFailed(CastersonError):
    """Raised when the encoder process cannot be started."""

    code = "SPAWN_FAILED"


class CastError(CastersonError):
    code = "CAST_ERROR"


class ConnectFailed(CastError):
    """Raised when the device cannot be reached or refuses the platform connection."""

    code = "CONNECT_FAILED"


class AppNotFound(CastError):
    """Raised when the default media receiver is not running on the device."""

    code = "APP_NOT_FOUND"


class AppStatusNotFound(CastError):
    """Raised when the receiver reports no loaded media."""

    code = "APP_STATUS_NOT_FOUND"


class ProtocolError(CastError):
    """Wraps transport failures and error replies from the device."""

    code = "PROTOCOL_ERROR"
