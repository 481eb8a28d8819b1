"""
Vector Asset Resolver
Rasterizes SVG assets through a temporary object URL and the image loader
"""

import logging
from typing import Optional, Tuple

import httpx
from PIL import Image

from idcard.core.exceptions import AssetFetchError
from idcard.services.image_loader import SVG_MIME_TYPE, AssetFetcher, ImageLoader
from idcard.services.object_urls import Blob, ObjectURLRegistry

logger = logging.getLogger(__name__)


class VectorAssetResolver:
    """Fetches SVG markup and decodes it into a bitmap"""

    def __init__(self, fetcher: AssetFetcher, loader: ImageLoader, object_urls: ObjectURLRegistry):
        self.fetcher = fetcher
        self.loader = loader
        self.object_urls = object_urls

    async def fetch_text(self, path: str) -> str:
        try:
            content, _ = await self.fetcher.fetch(path)
            return content.decode("utf-8")
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            raise AssetFetchError(path, str(e) or type(e).__name__) from e

    async def rasterize(self, path: str, size: Optional[Tuple[int, int]] = None) -> Image.Image:
        """
        Rasterize the vector asset at path, directly at size when given

        Raises:
            AssetFetchError: the markup could not be fetched
            ImageLoadError: the markup could not be decoded
        """
        svg = await self.fetch_text(path)
        blob = Blob(svg.encode("utf-8"), SVG_MIME_TYPE)

        with self.object_urls.object_url(blob) as url:
            bitmap = await self.loader.load(url, size=size)

        logger.debug(f"Rasterized vector asset {path} to {bitmap.size[0]}x{bitmap.size[1]}")
        return bitmap
