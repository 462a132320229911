"""Exception types raised by the scene-graph compiler and asset resolver."""

from typing import List, Optional


class SceneGraphError(Exception):
    """Base class for all scene-graph errors."""


class ParseError(SceneGraphError):
    """Raised when the input has no recognizable document root."""


class AssetFetchError(SceneGraphError):
    """A single chunk of the image-export request failed.

    Recovered locally: the keys in the chunk stay unresolved.
    """

    def __init__(self, message: str, ids: Optional[List[str]] = None, status: Optional[int] = None):
        super().__init__(message)
        self.ids = list(ids or [])
        self.status = status


class AuthError(SceneGraphError):
    """The image API rejected the token (401/403). Never retried."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class CancellationError(SceneGraphError):
    """An asset-resolution job was cancelled or superseded."""


class StyleComputeWarning(UserWarning):
    """An unrecognized fill, stroke or effect variant was skipped."""
