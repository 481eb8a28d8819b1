"""Shared fixtures for the ID card tests.

All tests run fully offline: assets live in a temporary directory and any
http(s) source is served by an httpx MockTransport.
"""

import base64
import io
import shutil
from pathlib import Path

import httpx
import pytest
from PIL import Image

from idcard.services.card_generator import IdCardGenerator

REPO_ASSETS = Path(__file__).resolve().parent.parent / "assets"

OFFICE_LINES = [
    "7/2A, Shreesha Building,",
    "First Floor, Central Studio Road,",
    "Tamil Nadu - 641005",
]


def make_png(width: int, height: int, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_data_url(width: int, height: int, color=(200, 30, 30)) -> str:
    return "data:image/png;base64," + base64.b64encode(make_png(width, height, color)).decode("ascii")


def open_png(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def _mock_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/logo.png":
        return httpx.Response(200, content=make_png(280, 96, (20, 60, 200)),
                              headers={"content-type": "image/png"})
    if request.url.path == "/broken.png":
        return httpx.Response(200, content=b"definitely not a png")
    return httpx.Response(404, content=b"not found")


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    shutil.copy(REPO_ASSETS / "id-header.svg", tmp_path / "id-header.svg")
    (tmp_path / "logo.png").write_bytes(make_png(280, 96, (20, 60, 200)))
    (tmp_path / "broken.svg").write_text("<svg xmlns='http://www.w3.org/2000/svg'><rect", encoding="utf-8")
    return tmp_path


@pytest.fixture
def outside_png(tmp_path_factory) -> Path:
    """An image file that sits beside, not inside, the asset root"""
    path = tmp_path_factory.mktemp("outside") / "secret.png"
    path.write_bytes(make_png(50, 50, (0, 255, 0)))
    return path


@pytest.fixture
def mock_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(_mock_handler))


@pytest.fixture
def generator(asset_root: Path, mock_http_client: httpx.AsyncClient) -> IdCardGenerator:
    return IdCardGenerator(
        asset_root=asset_root,
        header_asset="id-header.svg",
        default_logo="logo.png",
        office_phone="+91 7397720330",
        office_address_lines=OFFICE_LINES,
        font_dirs=[],
        http_client=mock_http_client,
    )


@pytest.fixture
def front_params() -> dict:
    return {
        "fullName": "Asha Rao",
        "gender": "female",
        "phone": "9999999999",
        "bloodGroup": "O+",
        "dob": "1995-06-21T00:00:00Z",
        "photo": png_data_url(400, 400),
        "logo": "logo.png",
    }


@pytest.fixture
def back_params() -> dict:
    return {
        "emergencyContactName": "Ravi Rao",
        "emergencyContactNumber": "8888888888",
        "bloodGroup": "O+",
        "address": "12 Lake View Road, Coimbatore, Tamil Nadu, India",
        "joiningDate": "19-10-2026",
        "expireDate": "19-01-2027",
        "logo": "logo.png",
    }
