"""
Error taxonomy for the GeoNames supply pipeline.

Every error is fatal for the current run: the pipeline never skips a row and
continues. Callers catch GeonamesError at the command boundary.
"""

from pathlib import Path


class GeonamesError(Exception):
    """Base class for all pipeline errors."""
    pass


class DownloadError(GeonamesError):
    """Raised when a remote resource is unreachable or its archive is corrupt."""

    def __init__(self, message: str, url: str = None, status_code: int = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(GeonamesError):
    """Raised when a source row does not match its declared column schema."""

    def __init__(self, message: str, path: Path = None, line: int = None):
        location = f" ({path}:{line})" if path is not None and line is not None else ""
        super().__init__(f"{message}{location}")
        self.path = path
        self.line = line


class ReferentialError(GeonamesError):
    """Raised when a parent lookup (continent code, country code) has no match."""

    def __init__(self, message: str, geoname_id: int = None):
        super().__init__(message)
        self.geoname_id = geoname_id


class StoreError(GeonamesError):
    """Raised when the persistence layer rejects a write."""
    pass


class UpdateError(GeonamesError):
    """Raised when a stage of the daily update workflow fails."""

    def __init__(self, stage, cause: Exception):
        super().__init__(f"Stage {stage.value} failed: {cause}")
        self.stage = stage
        self.cause = cause
