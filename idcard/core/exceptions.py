"""
Custom exceptions for the ID card rendering engine.
"""


class IdCardError(Exception):
    """Base exception for all ID card rendering failures."""
    pass


class AssetFetchError(IdCardError):
    """Raised when a vector or logo asset cannot be fetched."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Asset fetch failed: {source}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ImageLoadError(IdCardError):
    """Raised when an image source cannot be fetched or decoded into a bitmap."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Image load failed: {_shorten(source)}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SerializationError(IdCardError):
    """Raised when a render surface cannot be encoded to PNG."""
    pass


def _shorten(source: str, limit: int = 80) -> str:
    # data URLs can be megabytes long
    if len(source) <= limit:
        return source
    return source[:limit] + "..."
