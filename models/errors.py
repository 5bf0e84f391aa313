class EngineError(Exception):
    """Base class for every error raised by the image engine."""


class DecodeError(EngineError):
    """Source could not be fetched or decoded (network, format, corrupt data)."""


class BackendUnavailable(EngineError):
    """Hardware context, device or shader program could not be initialised."""


class FilterError(EngineError):
    """A filter parameter produced a non-finite or out-of-domain computation."""


class ColorAnalysisError(EngineError):
    """No palette can be computed (empty image, no opaque pixels, bad count)."""
