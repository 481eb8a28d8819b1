"""
ID Card Endpoints
Render card faces for the onboarding form preview and upload steps
"""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status

from idcard.core.config import Settings, get_settings
from idcard.core.exceptions import AssetFetchError, IdCardError, ImageLoadError
from idcard.schemas.id_card import (
    BackCardParams,
    CardPreviewResponse,
    CombinedCardParams,
    FrontCardParams,
)
from idcard.services.card_generator import IdCardGenerator, id_card_generator
from idcard.services.compositor import get_card_specifications
from idcard.services.object_urls import Blob
from idcard.utils.formatting import card_validity

logger = logging.getLogger(__name__)
router = APIRouter()

GENERIC_FAILURE = "Could not generate the ID card. Please check the photo and try again."


def get_card_generator() -> IdCardGenerator:
    return id_card_generator


def _png_response(blob: Blob, filename: str) -> Response:
    return Response(
        content=blob.data,
        media_type=blob.mime_type,
        headers={
            "Content-Disposition": f"inline; filename={filename}",
            "Cache-Control": "no-cache",
        },
    )


def _render_failed(error: IdCardError) -> HTTPException:
    logger.error(f"ID card rendering failed: {error}")
    if isinstance(error, (AssetFetchError, ImageLoadError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERIC_FAILURE)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_FAILURE)


@router.post("/front", summary="Generate ID Card Front")
async def generate_front(
    params: FrontCardParams,
    generator: IdCardGenerator = Depends(get_card_generator),
) -> Response:
    """Render the front face as a PNG image"""
    try:
        blob = await generator.generate_front(params)
    except IdCardError as e:
        raise _render_failed(e) from e
    return _png_response(blob, "id_card_front.png")


@router.post("/back", summary="Generate ID Card Back")
async def generate_back(
    params: BackCardParams,
    generator: IdCardGenerator = Depends(get_card_generator),
) -> Response:
    """Render the back face as a PNG image"""
    try:
        blob = await generator.generate_back(params)
    except IdCardError as e:
        raise _render_failed(e) from e
    return _png_response(blob, "id_card_back.png")


@router.post("/combined", summary="Generate Combined ID Card")
async def generate_combined(
    params: CombinedCardParams,
    generator: IdCardGenerator = Depends(get_card_generator),
) -> Response:
    """Render both faces side by side as a single PNG image"""
    try:
        blob = await generator.generate_combined(params)
    except IdCardError as e:
        raise _render_failed(e) from e
    return _png_response(blob, "id_card.png")


@router.post("/preview", response_model=CardPreviewResponse, summary="Preview ID Card")
async def preview_card(
    params: CombinedCardParams,
    generator: IdCardGenerator = Depends(get_card_generator),
    settings: Settings = Depends(get_settings),
) -> CardPreviewResponse:
    """
    Render all three images as data URLs for the form preview

    Missing validity dates default to today and today plus the configured
    validity period.
    """
    back = params.back
    if not back.joining_date or not back.expire_date:
        joining, expire = card_validity(date.today(), settings.CARD_VALIDITY_MONTHS)
        back = back.model_copy(update={
            "joining_date": back.joining_date or joining,
            "expire_date": back.expire_date or expire,
        })
        params = CombinedCardParams(front=params.front, back=back)

    try:
        card_set = await generator.generate_card_set(params)
    except IdCardError as e:
        raise _render_failed(e) from e

    return CardPreviewResponse(
        front=card_set["front"].to_data_url(),
        back=card_set["back"].to_data_url(),
        combined=card_set["combined"].to_data_url(),
        joining_date=back.joining_date,
        expire_date=back.expire_date,
        generated_at=datetime.now(timezone.utc),
    )


@router.get("/specifications", summary="Get ID Card Specifications")
def get_specifications() -> dict:
    """Card dimensions and layout constants"""
    return get_card_specifications()
