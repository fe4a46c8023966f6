"""
errors — Exception hierarchy shared by the checker, the updater and the CLI.
"""
from __future__ import annotations


class CountryTVError(Exception):
    """Base class for all countrytv errors."""


class PlaylistIOError(CountryTVError):
    """playlist.json could not be read or written."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(f"{message} ({self.path})")


class PlaylistFormatError(CountryTVError, ValueError):
    """playlist.json parsed but does not look like a playlist."""


class SourceError(CountryTVError):
    """The upstream song source could not be fetched or parsed."""


class MergeError(CountryTVError, ValueError):
    """A scraped candidate is malformed and cannot be merged."""
