"""
Employee ID Card Generation Service
Renders the front, back and side-by-side combined card faces as PNG blobs
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import httpx
from PIL import Image

from idcard.core.config import Settings, get_settings
from idcard.schemas.id_card import BackCardParams, CombinedCardParams, FrontCardParams
from idcard.services.compositor import (
    BACK_COORDINATES,
    COMBINED_GAP,
    COMBINED_WIDTH,
    FACE_HEIGHT,
    FACE_WIDTH,
    FRONT_COORDINATES,
    HEADER_HEIGHT,
    CardCompositor,
    RenderSurface,
)
from idcard.services.image_loader import AssetFetcher, AssetPolicy, ImageLoader
from idcard.services.object_urls import Blob, ObjectURLRegistry
from idcard.services.vector_assets import VectorAssetResolver
from idcard.utils.formatting import display_value, format_date, format_gender

logger = logging.getLogger(__name__)


def _coerce(params: Any, model):
    if isinstance(params, model):
        return params
    return model.model_validate(params)


class IdCardGenerator:
    """
    Employee ID card generator

    Each render allocates its own surface; the only shared state is the
    object URL registry used for temporary decode handles.
    """

    def __init__(
        self,
        asset_root: Union[str, Path],
        header_asset: str = "id-header.svg",
        default_logo: Optional[str] = "Sfw-Logo.svg",
        office_phone: str = "",
        office_address_lines: Sequence[str] = (),
        font_dirs: Sequence[Union[str, Path]] = (),
        fetch_timeout: float = 30.0,
        concurrent_faces: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
        allowed_hosts: Optional[Sequence[str]] = None,
        object_urls: Optional[ObjectURLRegistry] = None,
    ):
        self.object_urls = object_urls or ObjectURLRegistry()
        self.fetcher = AssetFetcher(Path(asset_root), fetch_timeout, http_client, allowed_hosts)
        self.loader = ImageLoader(self.fetcher, self.object_urls)
        self.vector_assets = VectorAssetResolver(self.fetcher, self.loader, self.object_urls)
        self.compositor = CardCompositor([Path(p) for p in font_dirs])

        self.header_asset = header_asset
        self.default_logo = default_logo
        self.office_phone = office_phone
        self.office_address_lines = list(office_address_lines)
        self.concurrent_faces = concurrent_faces
        self.version = "1.0-IDCARD"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "IdCardGenerator":
        settings = settings or get_settings()
        options = dict(
            asset_root=settings.get_static_asset_root(),
            header_asset=settings.HEADER_ASSET,
            default_logo=settings.DEFAULT_LOGO,
            office_phone=settings.OFFICE_PHONE,
            office_address_lines=settings.OFFICE_ADDRESS_LINES,
            font_dirs=settings.get_font_dirs(),
            fetch_timeout=settings.ASSET_FETCH_TIMEOUT_SECONDS,
            concurrent_faces=settings.RENDER_FACES_CONCURRENTLY,
            allowed_hosts=settings.ALLOWED_ASSET_HOSTS,
        )
        options.update(overrides)
        return cls(**options)

    async def _paint_face_base(self, surface: RenderSurface, logo_source: Optional[str]) -> None:
        """Background, header bands and logo shared by both faces"""
        self.compositor.paint_background(surface)

        header = await self.vector_assets.rasterize(self.header_asset, size=(FACE_WIDTH, HEADER_HEIGHT))
        self.compositor.paint_header_bands(surface, header)

        logo = await self.loader.load_asset(logo_source or self.default_logo, AssetPolicy.BEST_EFFORT)
        self.compositor.paint_logo(surface, logo)

    async def generate_front(self, params: Union[FrontCardParams, Mapping[str, Any]]) -> Blob:
        """
        Generate the front face: photo, name, designation and personal rows

        Raises:
            AssetFetchError, ImageLoadError: header graphic or supplied photo failed
            SerializationError: PNG encoding failed
        """
        params = _coerce(params, FrontCardParams)
        logger.info(f"Generating ID card front for {params.full_name!r}")

        surface = self.compositor.new_surface(FACE_WIDTH, FACE_HEIGHT)
        await self._paint_face_base(surface, params.logo)

        photo = await self.loader.load_asset(params.photo, AssetPolicy.REQUIRED)
        self.compositor.paint_photo(surface, photo)

        self.compositor.paint_centered_text(
            surface, params.full_name.upper(), FRONT_COORDINATES["name_y"], "name", "name")
        self.compositor.paint_centered_text(
            surface, (params.designation or "").upper(), FRONT_COORDINATES["designation_y"],
            "designation", "designation")

        rows = [
            ("Gender", format_gender(params.gender)),
            ("Blood", params.blood_group),
            ("Phone", params.phone),
            ("DOB", format_date(params.dob)),
        ]
        self.compositor.paint_rows(
            surface, rows,
            top=FRONT_COORDINATES["rows_top"],
            labels_x=FRONT_COORDINATES["labels_x"],
            values_x=FRONT_COORDINATES["values_x"],
            row_height=FRONT_COORDINATES["row_height"],
            value_prefix=": ",
        )

        return surface.to_blob()

    async def generate_back(self, params: Union[BackCardParams, Mapping[str, Any]]) -> Blob:
        """
        Generate the back face: emergency details, office contact block and validity

        Raises:
            AssetFetchError, ImageLoadError: header graphic failed
            SerializationError: PNG encoding failed
        """
        params = _coerce(params, BackCardParams)
        logger.info("Generating ID card back")

        surface = self.compositor.new_surface(FACE_WIDTH, FACE_HEIGHT)
        await self._paint_face_base(surface, params.logo)

        coords = BACK_COORDINATES
        heading_x, heading_y = coords["heading"]
        self.compositor.paint_text(surface, "EMERGENCY INFO", heading_x, heading_y, "heading", "name")

        rows = [
            ("Emergency Contact", params.emergency_contact_name),
            ("Contact Number", params.emergency_contact_number),
            ("Blood Group", params.blood_group),
            ("Address", params.address),
        ]
        y = self.compositor.paint_rows(
            surface, rows, coords["rows_top"], coords["labels_x"], coords["values_x"], coords["row_height"])

        y += coords["office_gap"]
        y = self.compositor.paint_rows(
            surface, [("Office Phone", self.office_phone)], y,
            coords["labels_x"], coords["values_x"], coords["office_phone_height"])

        self.compositor.paint_text(surface, "Office Address", coords["labels_x"], y)
        y += coords["address_header_height"]
        y = self.compositor.paint_lines(
            surface, self.office_address_lines, coords["values_x"], y, coords["address_line_height"])

        y += coords["validity_gap"]
        self.compositor.paint_text(
            surface, "Validation On: " + display_value(params.joining_date), coords["labels_x"], y)
        self.compositor.paint_text(
            surface, "Valid Till: " + display_value(params.expire_date), coords["valid_till_x"], y)

        return surface.to_blob()

    async def _render_faces(self, params: CombinedCardParams):
        if self.concurrent_faces:
            tasks = [
                asyncio.ensure_future(self.generate_front(params.front)),
                asyncio.ensure_future(self.generate_back(params.back)),
            ]
            try:
                return await asyncio.gather(*tasks)
            except BaseException:
                # a failed face must not leave its sibling rendering in the background
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        front_blob = await self.generate_front(params.front)
        back_blob = await self.generate_back(params.back)
        return front_blob, back_blob

    async def _decode_blob(self, blob: Blob) -> Image.Image:
        with self.object_urls.object_url(blob) as url:
            return await self.loader.load(url)

    async def combine(self, front_blob: Blob, back_blob: Blob) -> Blob:
        """Place two rendered faces side by side separated by the card gap"""
        front_img = await self._decode_blob(front_blob)
        back_img = await self._decode_blob(back_blob)

        surface = self.compositor.new_surface(COMBINED_WIDTH, FACE_HEIGHT)
        self.compositor.paint_background(surface)
        surface.draw_image(front_img, 0, 0, FACE_WIDTH, FACE_HEIGHT)
        surface.draw_image(back_img, FACE_WIDTH + COMBINED_GAP, 0, FACE_WIDTH, FACE_HEIGHT)
        return surface.to_blob()

    async def generate_combined(self, params: Union[CombinedCardParams, Mapping[str, Any]]) -> Blob:
        """
        Generate both faces and combine them into one image

        Any face failure fails the whole call; there is no partial output.
        """
        params = _coerce(params, CombinedCardParams)
        front_blob, back_blob = await self._render_faces(params)
        return await self.combine(front_blob, back_blob)

    async def generate_card_set(self, params: Union[CombinedCardParams, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Generate front, back and combined images in one pass

        Returns:
            Dictionary with the three blobs and generation metadata
        """
        params = _coerce(params, CombinedCardParams)
        started = time.perf_counter()

        front_blob, back_blob = await self._render_faces(params)
        combined_blob = await self.combine(front_blob, back_blob)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Generated ID card set for {params.front.full_name!r} in {elapsed_ms:.0f} ms "
                    f"({front_blob.size + back_blob.size + combined_blob.size:,} bytes total)")

        return {
            "front": front_blob,
            "back": back_blob,
            "combined": combined_blob,
            "generator_version": self.version,
            "file_sizes": {
                "front_image_bytes": front_blob.size,
                "back_image_bytes": back_blob.size,
                "combined_image_bytes": combined_blob.size,
            },
        }


# Service instance for dependency injection
id_card_generator = IdCardGenerator.from_settings()
