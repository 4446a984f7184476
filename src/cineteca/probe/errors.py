"""Duration probing errors."""


class ProbeError(Exception):
    """Raised when a file exposes no usable duration."""


class ProbeUnavailableError(ProbeError):
    """Raised when the ffprobe executable cannot be located."""
