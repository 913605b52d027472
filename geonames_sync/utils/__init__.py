"""Utility modules for the supply pipeline."""

from geonames_sync.utils.http import stream_download
from geonames_sync.utils.logging import setup_logging

__all__ = [
    # HTTP utilities
    "stream_download",
    # Logging
    "setup_logging",
]
