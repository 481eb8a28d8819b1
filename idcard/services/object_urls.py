"""
Blob and Object URL Handles
In-memory byte buffers and the temporary blob: handles used to decode them
"""

import base64
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

BLOB_URL_PREFIX = "blob:"


@dataclass(frozen=True)
class Blob:
    """Immutable byte buffer tagged with a MIME type"""
    data: bytes
    mime_type: str = "image/png"

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        """Encode as a data URL for inline previews"""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ObjectURLRegistry:
    """
    Registry of temporary blob: handles

    A handle is created for a Blob, dereferenced by the image loader and then
    revoked. Creation and revocation are counted so leaks can be detected.
    """

    def __init__(self):
        self._blobs: Dict[str, Blob] = {}
        self.created_count = 0
        self.revoked_count = 0

    @property
    def active_count(self) -> int:
        return len(self._blobs)

    def create(self, blob: Blob) -> str:
        url = f"{BLOB_URL_PREFIX}{uuid.uuid4()}"
        self._blobs[url] = blob
        self.created_count += 1
        logger.debug(f"Created object URL {url} ({blob.mime_type}, {blob.size} bytes)")
        return url

    def revoke(self, url: str) -> None:
        """Release a handle; revoking an unknown or already revoked URL is a no-op"""
        if self._blobs.pop(url, None) is not None:
            self.revoked_count += 1
            logger.debug(f"Revoked object URL {url}")

    def resolve(self, url: str) -> Blob:
        """Dereference a live handle, raising KeyError if it is unknown or revoked"""
        return self._blobs[url]

    @contextmanager
    def object_url(self, blob: Blob) -> Iterator[str]:
        """Create a handle for the duration of the block and revoke it on every exit path"""
        url = self.create(blob)
        try:
            yield url
        finally:
            self.revoke(url)


def is_object_url(source: str) -> bool:
    return source.startswith(BLOB_URL_PREFIX)
