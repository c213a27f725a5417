"""Capture errors raised by capture sources and reported through `on_error`."""


class CaptureError(Exception):
    """A capture stream could not be acquired or released."""


class CapturePermissionError(CaptureError):
    """The process is not authorized to capture audio."""


class CaptureUnavailableError(CaptureError):
    """No capturable target or backend is available."""
