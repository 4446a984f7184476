"""Configuration models describing Cineteca settings."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CinetecaBaseModel(BaseModel):
    """Shared configuration for Cineteca Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class ScanOptions(CinetecaBaseModel):
    """Options governing how a library root is scanned.

    Attributes:
        extensions: File extensions (without the dot) considered playable.
        min_duration_seconds: Shortest duration that still counts as a movie.
        min_size_mb: Files smaller than this are skipped before probing; 0 disables.
        workers: Number of scan workers; defaults to the CPU count when unset.
    """

    extensions: List[str] = Field(default_factory=lambda: ["mkv", "mp4", "avi", "mov"])
    min_duration_seconds: int = 3600
    min_size_mb: int = 0
    workers: Optional[int] = None

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        return [ext.lower().lstrip(".") for ext in value if ext.strip(". ")]


class ProbeSettings(CinetecaBaseModel):
    """Duration probing settings.

    Attributes:
        ffprobe_path: Executable name or absolute path of ``ffprobe``.
    """

    ffprobe_path: str = "ffprobe"


class ArchiveSettings(CinetecaBaseModel):
    """Archive persistence settings.

    Attributes:
        filename: Name of the state document stored inside the library root.
    """

    filename: str = ".movies.json"


class PlayerSettings(CinetecaBaseModel):
    """External viewer settings.

    Attributes:
        command: Command prefix used to open a movie; the path is appended.
    """

    command: List[str] = Field(default_factory=lambda: ["xdg-open"])


class WatchSettings(CinetecaBaseModel):
    """Continuous refresh settings.

    Attributes:
        debounce_seconds: Quiet period after the last filesystem event before rescanning.
    """

    debounce_seconds: float = 5.0


class LoggingSettings(CinetecaBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: str = "WARNING"


class CLIOptions(CinetecaBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class CinetecaConfig(CinetecaBaseModel):
    """Top-level configuration struct for Cineteca."""

    scan: ScanOptions = Field(default_factory=ScanOptions)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    player: PlayerSettings = Field(default_factory=PlayerSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "CinetecaBaseModel",
    "ScanOptions",
    "ProbeSettings",
    "ArchiveSettings",
    "PlayerSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "CinetecaConfig",
]
