"""
Image Loading Service for the ID Card Engine

Resolves an image source into a decoded RGBA bitmap:
- http(s):// URLs fetched with httpx
- data: URLs (base64 or percent-encoded)
- blob: object URLs from the ObjectURLRegistry
- paths relative to the static asset root
Raster formats are decoded with Pillow, SVG markup with CairoSVG.
"""

import asyncio
import base64
import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union
from urllib.parse import unquote_to_bytes

import cairosvg
import httpx
from PIL import Image

from idcard.core.exceptions import IdCardError, ImageLoadError
from idcard.services.object_urls import ObjectURLRegistry, is_object_url

logger = logging.getLogger(__name__)

SVG_MIME_TYPE = "image/svg+xml"


def is_http_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def parse_data_url(source: str) -> Tuple[bytes, Optional[str]]:
    """Split a data: URL into its payload bytes and MIME type"""
    header, sep, payload = source[len("data:"):].partition(",")
    if not sep:
        raise ValueError("data URL has no payload separator")
    params = header.split(";")
    mime_type = params[0] or None
    if "base64" in params[1:]:
        return base64.b64decode(payload, validate=True), mime_type
    return unquote_to_bytes(payload), mime_type


def looks_like_svg(data: bytes, mime_type: Optional[str] = None) -> bool:
    if mime_type and "svg" in mime_type:
        return True
    head = data[:1024].lstrip()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head)


def decode_image(data: bytes, mime_type: Optional[str] = None,
                 size: Optional[Tuple[int, int]] = None) -> Image.Image:
    """
    Decode raster or SVG bytes into a fully loaded RGBA image

    SVG markup is rendered directly at size when given; raster data keeps its
    own dimensions.
    """
    if looks_like_svg(data, mime_type):
        if size is not None:
            data = cairosvg.svg2png(bytestring=data, output_width=size[0], output_height=size[1])
        else:
            data = cairosvg.svg2png(bytestring=data)
    image = Image.open(io.BytesIO(data))
    image.load()
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return image


class AssetFetcher:
    """
    Reads raw bytes for http(s) URLs and static asset paths

    Paths must stay inside the asset root. When allowed_hosts is given, only
    those hosts may be fetched and redirects are not followed; None leaves
    remote fetching unrestricted.
    """

    def __init__(self, asset_root: Path, timeout: float = 30.0,
                 http_client: Optional[httpx.AsyncClient] = None,
                 allowed_hosts: Optional[Sequence[str]] = None):
        self.asset_root = Path(asset_root)
        self.timeout = timeout
        self._client = http_client
        self.allowed_hosts = None if allowed_hosts is None else {h.strip().lower() for h in allowed_hosts}

    def resolve_path(self, source: str) -> Path:
        """
        Resolve source against the asset root

        Raises:
            ValueError: the resolved path lies outside the asset root
        """
        root = self.asset_root.resolve()
        path = (root / source).resolve()
        if not path.is_relative_to(root):
            raise ValueError(f"path is outside the asset root: {source}")
        return path

    def check_host(self, url: str) -> None:
        """
        Raises:
            ValueError: the URL's host is not on the allow-list
            httpx.InvalidURL: the URL cannot be parsed
        """
        if self.allowed_hosts is None:
            return
        host = httpx.URL(url).host.lower()
        if host not in self.allowed_hosts:
            raise ValueError(f"host is not allowed: {host or url}")

    async def fetch(self, source: str) -> Tuple[bytes, Optional[str]]:
        """
        Fetch the bytes behind a URL or asset path

        Returns:
            Tuple of (content, content type or None)

        Raises:
            httpx.HTTPError for network/status failures, httpx.InvalidURL for
            malformed URLs, OSError for file failures, ValueError for paths or
            hosts that are not permitted
        """
        if is_http_url(source):
            self.check_host(source)
            return await self._fetch_http(source)

        path = self.resolve_path(source)
        content = await asyncio.to_thread(path.read_bytes)
        mime_type = SVG_MIME_TYPE if path.suffix.lower() == ".svg" else None
        return content, mime_type

    async def _fetch_http(self, url: str) -> Tuple[bytes, Optional[str]]:
        if self._client is not None:
            response = await self._client.get(url)
        else:
            async with httpx.AsyncClient(timeout=self.timeout,
                                         follow_redirects=self.allowed_hosts is None) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content, response.headers.get("content-type")


class AssetPolicy(Enum):
    """How a failed asset load is treated by the caller"""
    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class Loaded:
    source: str
    bitmap: Image.Image


@dataclass(frozen=True)
class LoadFailed:
    source: str
    error: IdCardError


LoadResult = Union[Loaded, LoadFailed]


class ImageLoader:
    """Decodes image sources into bitmaps; every call is independent (no caching)"""

    def __init__(self, fetcher: AssetFetcher, object_urls: ObjectURLRegistry):
        self.fetcher = fetcher
        self.object_urls = object_urls

    async def load(self, source: str, size: Optional[Tuple[int, int]] = None) -> Image.Image:
        """
        Load and decode an image source, rendering vector sources at size if given

        Raises:
            ImageLoadError: the source is unreachable, malformed or unsupported
        """
        if not source:
            raise ImageLoadError(source, "empty source")

        try:
            data, mime_type = await self._read(source)
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError, KeyError) as e:
            raise ImageLoadError(source, str(e) or type(e).__name__) from e

        try:
            bitmap = await asyncio.to_thread(decode_image, data, mime_type, size)
        except Exception as e:
            raise ImageLoadError(source, f"decode failed: {e}") from e

        logger.debug(f"Decoded image {bitmap.size[0]}x{bitmap.size[1]} from {source[:60]}")
        return bitmap

    async def _read(self, source: str) -> Tuple[bytes, Optional[str]]:
        if source.startswith("data:"):
            return parse_data_url(source)
        if is_object_url(source):
            blob = self.object_urls.resolve(source)
            return blob.data, blob.mime_type
        return await self.fetcher.fetch(source)

    async def try_load(self, source: str) -> LoadResult:
        try:
            return Loaded(source, await self.load(source))
        except ImageLoadError as e:
            return LoadFailed(source, e)

    async def load_asset(self, source: Optional[str], policy: AssetPolicy) -> Optional[Image.Image]:
        """
        Load an asset applying the caller's failure policy

        REQUIRED failures raise the underlying error; BEST_EFFORT failures are
        logged and yield None. An absent source always yields None.
        """
        if not source:
            return None

        result = await self.try_load(source)
        if isinstance(result, Loaded):
            return result.bitmap

        if policy is AssetPolicy.REQUIRED:
            raise result.error
        logger.warning(f"Skipping optional asset: {result.error}")
        return None
