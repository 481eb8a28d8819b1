"""Tests for front, back and combined card generation.

Covers the card contract: face and combined dimensions, best-effort logo,
fatal photo failures, stable row positions and handle accounting.
"""

import pytest
from PIL import ImageChops

from idcard.core.exceptions import AssetFetchError, ImageLoadError
from idcard.schemas.id_card import BackCardParams, CombinedCardParams, FrontCardParams, Gender
from idcard.services.card_generator import IdCardGenerator
from idcard.services.compositor import (
    COMBINED_GAP,
    COMBINED_WIDTH,
    FACE_HEIGHT,
    FACE_WIDTH,
    FRONT_COORDINATES,
)

from tests.conftest import OFFICE_LINES, open_png, png_data_url


def _assert_no_leaks(generator: IdCardGenerator):
    registry = generator.object_urls
    assert registry.created_count == registry.revoked_count
    assert registry.active_count == 0


async def test_front_without_photo_is_600_by_900_png(generator, front_params):
    front_params.pop("photo")
    blob = await generator.generate_front(front_params)

    image = open_png(blob.data)
    assert blob.mime_type == "image/png"
    assert image.format == "PNG"
    assert image.size == (FACE_WIDTH, FACE_HEIGHT)

    x, y, w, h = FRONT_COORDINATES["photo"]
    assert image.getpixel((x + w // 2, y + h // 2)) == (238, 242, 247)


async def test_example_employee_front(generator, front_params):
    blob = await generator.generate_front(FrontCardParams.model_validate(front_params))

    image = open_png(blob.data)
    assert image.size == (FACE_WIDTH, FACE_HEIGHT)

    x, y, w, h = FRONT_COORDINATES["photo"]
    red, green, blue = image.getpixel((x + w // 2, y + h // 2))
    assert red > 190 and green < 45 and blue < 45
    # rounded corner of the photo frame stays background
    assert image.getpixel((x, y + h - 1)) == (255, 255, 255)


async def test_front_is_deterministic(generator, front_params):
    first = await generator.generate_front(front_params)
    second = await generator.generate_front(front_params)
    assert first.data == second.data


async def test_failing_logo_does_not_fail_render(asset_root, mock_http_client, front_params):
    generator = IdCardGenerator(asset_root=asset_root, default_logo=None, font_dirs=[],
                                http_client=mock_http_client)

    without_logo = await generator.generate_front({**front_params, "logo": None})
    missing_logo = await generator.generate_front({**front_params, "logo": "missing-logo.png"})
    broken_logo = await generator.generate_front(
        {**front_params, "logo": "https://cdn.example.com/broken.png"})

    assert open_png(missing_logo.data).size == (FACE_WIDTH, FACE_HEIGHT)
    assert missing_logo.data == without_logo.data
    assert broken_logo.data == without_logo.data


async def test_logo_is_drawn_when_available(generator, front_params):
    with_logo = open_png((await generator.generate_front(front_params)).data)
    without_logo = open_png((await generator.generate_front({**front_params, "logo": "missing.png"})).data)
    assert ImageChops.difference(with_logo, without_logo).getbbox() is not None


async def test_failing_photo_raises_image_load_error(generator, front_params):
    with pytest.raises(ImageLoadError):
        await generator.generate_front({**front_params, "photo": "data:image/png;base64,bm90IGFuIGltYWdl"})
    _assert_no_leaks(generator)


async def test_missing_header_asset_is_fatal(asset_root, front_params):
    generator = IdCardGenerator(asset_root=asset_root, header_asset="gone.svg", font_dirs=[])
    with pytest.raises(AssetFetchError):
        await generator.generate_front(front_params)


async def test_empty_name_still_renders(generator):
    blob = await generator.generate_front({"fullName": ""})
    assert open_png(blob.data).size == (FACE_WIDTH, FACE_HEIGHT)


async def test_absent_gender_only_changes_gender_row(generator, front_params):
    with_gender = open_png((await generator.generate_front(front_params)).data)
    without_gender = open_png((await generator.generate_front({**front_params, "gender": None})).data)

    bbox = ImageChops.difference(with_gender, without_gender).getbbox()
    assert bbox is not None

    gender_baseline = FRONT_COORDINATES["rows_top"]
    row_height = FRONT_COORDINATES["row_height"]
    _, top, _, bottom = bbox
    assert top >= gender_baseline - row_height
    assert bottom <= gender_baseline + 10


async def test_unknown_gender_renders_like_absent(generator, front_params):
    unknown = await generator.generate_front({**front_params, "gender": "robot"})
    absent = await generator.generate_front({**front_params, "gender": None})
    assert unknown.data == absent.data


async def test_back_is_600_by_900_png(generator, back_params):
    blob = await generator.generate_back(BackCardParams.model_validate(back_params))
    assert open_png(blob.data).size == (FACE_WIDTH, FACE_HEIGHT)


async def test_back_with_no_fields_still_renders(generator):
    blob = await generator.generate_back({})
    assert open_png(blob.data).size == (FACE_WIDTH, FACE_HEIGHT)


async def test_office_block_comes_from_configuration(asset_root, back_params):
    default = IdCardGenerator(asset_root=asset_root, font_dirs=[], office_address_lines=OFFICE_LINES)
    moved = IdCardGenerator(asset_root=asset_root, font_dirs=[],
                            office_address_lines=["1 New Street,", "Chennai - 600001"])
    first = await default.generate_back(back_params)
    second = await moved.generate_back(back_params)
    assert first.data != second.data


@pytest.mark.parametrize("concurrent", [True, False])
async def test_combined_halves_match_independent_faces(asset_root, mock_http_client,
                                                      front_params, back_params, concurrent):
    generator = IdCardGenerator(asset_root=asset_root, default_logo="logo.png", font_dirs=[],
                                office_address_lines=OFFICE_LINES, concurrent_faces=concurrent,
                                http_client=mock_http_client)
    params = CombinedCardParams(front=front_params, back=back_params)

    combined = open_png((await generator.generate_combined(params)).data)
    front = open_png((await generator.generate_front(params.front)).data)
    back = open_png((await generator.generate_back(params.back)).data)

    assert combined.size == (COMBINED_WIDTH, FACE_HEIGHT) == (1250, 900)

    left = combined.crop((0, 0, FACE_WIDTH, FACE_HEIGHT))
    right = combined.crop((FACE_WIDTH + COMBINED_GAP, 0, COMBINED_WIDTH, FACE_HEIGHT))
    assert ImageChops.difference(left, front).getbbox() is None
    assert ImageChops.difference(right, back).getbbox() is None

    gap = combined.crop((FACE_WIDTH, 0, FACE_WIDTH + COMBINED_GAP, FACE_HEIGHT))
    assert gap.getextrema() == ((255, 255), (255, 255), (255, 255))
    _assert_no_leaks(generator)


async def test_combined_fails_when_a_face_fails(generator, front_params, back_params):
    params = {"front": {**front_params, "photo": "missing-photo.png"}, "back": back_params}
    with pytest.raises(ImageLoadError):
        await generator.generate_combined(params)
    _assert_no_leaks(generator)


async def test_card_set_reuses_rendered_faces(generator, front_params, back_params):
    card_set = await generator.generate_card_set({"front": front_params, "back": back_params})

    assert open_png(card_set["front"].data).size == (FACE_WIDTH, FACE_HEIGHT)
    assert open_png(card_set["combined"].data).size == (COMBINED_WIDTH, FACE_HEIGHT)
    assert card_set["file_sizes"]["front_image_bytes"] == card_set["front"].size
    # one header handle per face plus one decode handle per face
    assert generator.object_urls.created_count == 4
    _assert_no_leaks(generator)


async def test_repeated_renders_do_not_leak_handles(generator, front_params, back_params):
    front_params["photo"] = png_data_url(64, 64)
    params = {"front": front_params, "back": back_params}

    for _ in range(100):
        await generator.generate_front(front_params)
    for _ in range(100):
        await generator.generate_combined(params)

    registry = generator.object_urls
    assert registry.created_count == 100 + 100 * 4
    _assert_no_leaks(generator)


def test_params_accept_form_field_names():
    params = FrontCardParams.model_validate({
        "fullName": "Asha Rao",
        "gender": "Female",
        "photoDataUrl": "data:image/png;base64,AAAA",
        "logoSrc": "assets/Sfw-Logo.svg",
    })
    assert params.full_name == "Asha Rao"
    assert params.gender is Gender.FEMALE
    assert params.photo.startswith("data:")
    assert params.logo == "assets/Sfw-Logo.svg"

    back = BackCardParams.model_validate({"emergencyName": "Ravi", "emergencyNumber": "1"})
    assert back.emergency_contact_name == "Ravi"
    assert back.emergency_contact_number == "1"
