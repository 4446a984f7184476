"""Media duration probing backed by ffprobe."""

from .errors import ProbeError, ProbeUnavailableError
from .ffprobe import DurationProber, initialize

__all__ = ["DurationProber", "ProbeError", "ProbeUnavailableError", "initialize"]
