"""
ID Card Canvas Compositor
Render surface with canvas-style transform/clip state and the card drawing primitives
"""

import io
import logging
import math
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageChops, ImageDraw, ImageFont

from idcard.core.exceptions import SerializationError
from idcard.services.object_urls import Blob
from idcard.utils.formatting import display_value

logger = logging.getLogger(__name__)

# ---------- CARD CONSTANTS ----------
FACE_WIDTH = 600
FACE_HEIGHT = 900
COMBINED_GAP = 50
COMBINED_WIDTH = FACE_WIDTH * 2 + COMBINED_GAP   # 1250

HEADER_HEIGHT = 220

FONT_SIZES = {
    "name": 40,
    "designation": 22,
    "heading": 28,
    "row": 20,
}
BOLD_FONTS = {"name", "heading"}

COLORS = {
    "white": (255, 255, 255),
    "photo_placeholder": (238, 242, 247),   # #eef2f7
    "name": (15, 23, 42),                   # #0f172a
    "designation": (37, 99, 235),           # #2563eb
    "text": (17, 24, 39),                   # #111827
}

LOGO_COORDINATES = {
    "width": 140,
    "right_margin": 30,
    "top": 90,
}

FRONT_COORDINATES = {
    # Photo: 260x260 square centered horizontally
    "photo": ((FACE_WIDTH - 260) // 2, 160, 260, 260),
    "photo_radius": 20,
    "name_y": 460,
    "designation_y": 495,
    "labels_x": 60,
    "values_x": 210,
    "rows_top": 560,
    "row_height": 36,
}

BACK_COORDINATES = {
    "heading": (40, 240),
    "labels_x": 60,
    "values_x": 280,
    "rows_top": 310,
    "row_height": 40,
    "office_gap": 20,
    "office_phone_height": 50,
    "address_header_height": 36,
    "address_line_height": 26,
    "validity_gap": 40,
    "valid_till_x": 330,
}

TEXT_RIGHT_MARGIN = 30
ELLIPSIS = "…"

BOLD_FONT_OPTIONS = [
    "Inter-Bold.ttf",
    "DejaVuSans-Bold.ttf",
    "Arial-Bold.ttf",
    "ARIALBD.TTF",
]
REGULAR_FONT_OPTIONS = [
    "Inter-Regular.ttf",
    "DejaVuSans.ttf",
    "Arial.ttf",
    "arial.ttf",
]

Color = Union[str, Tuple[int, ...]]
# Canvas-style affine matrix (a, b, c, d, e, f): x' = a*x + c*y + e, y' = b*x + d*y + f
Matrix = Tuple[float, float, float, float, float, float]
IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

# Axis-aligned linear parts (signs only) mapped to the equivalent Pillow transpose
_TRANSPOSES = {
    (1, 0, 0, 1): None,
    (-1, 0, 0, -1): Image.Transpose.ROTATE_180,
    (-1, 0, 0, 1): Image.Transpose.FLIP_LEFT_RIGHT,
    (1, 0, 0, -1): Image.Transpose.FLIP_TOP_BOTTOM,
    (0, 1, -1, 0): Image.Transpose.ROTATE_270,
    (0, -1, 1, 0): Image.Transpose.ROTATE_90,
    (0, 1, 1, 0): Image.Transpose.TRANSPOSE,
    (0, -1, -1, 0): Image.Transpose.TRANSVERSE,
}

_TEXT_ANCHORS = {"left": "ls", "center": "ms", "right": "rs"}


def _clean(value: float) -> float:
    value = round(value, 9)
    return 0.0 if value == 0 else value


def _sign(value: float) -> int:
    return 1 if value > 0 else -1


class RenderSurface:
    """
    Fixed-size RGBA raster with a save/restore stack of transform and clip state

    Coordinates are in user space and mapped through the current transform.
    Every draw honours the current clip mask.
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        self._transform: Matrix = IDENTITY
        self._clip: Optional[Image.Image] = None
        self._stack: List[Tuple[Matrix, Optional[Image.Image]]] = []

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def transform(self) -> Matrix:
        return self._transform

    @property
    def clip_mask(self) -> Optional[Image.Image]:
        return self._clip

    @property
    def save_depth(self) -> int:
        return len(self._stack)

    # ---------- state ----------

    def save(self) -> None:
        self._stack.append((self._transform, self._clip))

    def restore(self) -> None:
        if not self._stack:
            logger.debug("restore() called with an empty state stack")
            return
        self._transform, self._clip = self._stack.pop()

    @contextmanager
    def saved(self) -> Iterator["RenderSurface"]:
        """Scope transform and clip changes to the block"""
        self.save()
        try:
            yield self
        finally:
            self.restore()

    def translate(self, tx: float, ty: float) -> None:
        a, b, c, d, e, f = self._transform
        self._transform = (a, b, c, d, _clean(e + a * tx + c * ty), _clean(f + b * tx + d * ty))

    def rotate(self, radians: float) -> None:
        a, b, c, d, e, f = self._transform
        cos, sin = math.cos(radians), math.sin(radians)
        self._transform = (
            _clean(a * cos + c * sin),
            _clean(b * cos + d * sin),
            _clean(c * cos - a * sin),
            _clean(d * cos - b * sin),
            e,
            f,
        )

    def clip_round_rect(self, x: float, y: float, width: float, height: float, radius: float) -> None:
        """Intersect the clip region with a rounded rectangle"""
        mask = Image.new("L", self.size, 0)
        draw = ImageDraw.Draw(mask)
        if self._is_axis_aligned():
            x0, y0, x1, y1 = self._device_box(x, y, width, height)
            if x1 > x0 and y1 > y0:
                draw.rounded_rectangle([x0, y0, x1 - 1, y1 - 1], radius=round(radius * self._scale()), fill=255)
        else:
            draw.polygon(self._device_corners(x, y, width, height), fill=255)

        if self._clip is not None:
            mask = ImageChops.multiply(mask, self._clip)
        self._clip = mask

    # ---------- drawing ----------

    def fill_rect(self, x: float, y: float, width: float, height: float, color: Color) -> None:
        layer = Image.new("RGBA", self.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        if self._is_axis_aligned():
            x0, y0, x1, y1 = self._device_box(x, y, width, height)
            if x1 <= x0 or y1 <= y0:
                return
            draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=color)
        else:
            draw.polygon(self._device_corners(x, y, width, height), fill=color)
        self._composite(layer)

    def draw_image(self, bitmap: Image.Image, x: float, y: float, width: float, height: float,
                   src_box: Optional[Tuple[float, float, float, float]] = None) -> None:
        """Draw bitmap (or the src_box region of it) into the destination rectangle"""
        if bitmap.mode != "RGBA":
            bitmap = bitmap.convert("RGBA")
        if src_box is not None:
            bitmap = bitmap.crop(tuple(round(v) for v in src_box))

        if self._is_axis_aligned():
            layer = self._axis_aligned_layer(bitmap, x, y, width, height)
        else:
            layer = self._affine_layer(bitmap, x, y, width, height)
        if layer is None:
            return
        image, offset = layer
        self._composite(image, offset)

    def fill_text(self, text: str, x: float, y: float, font: ImageFont.FreeTypeFont,
                  fill: Color, align: str = "left") -> None:
        """Draw single-line text with its baseline at y"""
        if not text:
            return
        anchor = _TEXT_ANCHORS[align]

        if self._transform[:4] != IDENTITY[:4]:
            # render upright, then place the text box through the full transform
            bbox = font.getbbox(text, anchor=anchor)
            left, top = math.floor(bbox[0]), math.floor(bbox[1])
            right, bottom = math.ceil(bbox[2]), math.ceil(bbox[3])
            if right <= left or bottom <= top:
                return
            glyphs = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
            ImageDraw.Draw(glyphs).text((-left, -top), text, font=font, fill=fill, anchor=anchor)
            self.draw_image(glyphs, x + left, y + top, right - left, bottom - top)
            return

        point = self._apply(x, y)
        if self._clip is None:
            ImageDraw.Draw(self.image).text(point, text, font=font, fill=fill, anchor=anchor)
            return

        layer = Image.new("RGBA", self.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(point, text, font=font, fill=fill, anchor=anchor)
        self._composite(layer)

    def measure_text(self, text: str, font: ImageFont.FreeTypeFont) -> float:
        return font.getlength(text)

    def to_blob(self) -> Blob:
        """Serialize to an opaque PNG blob"""
        try:
            rgb_img = Image.new("RGB", self.size, COLORS["white"])
            rgb_img.paste(self.image, mask=self.image.getchannel("A"))
            buffer = io.BytesIO()
            rgb_img.save(buffer, format="PNG")
        except (OSError, ValueError) as e:
            raise SerializationError(f"PNG encoding failed: {e}") from e
        return Blob(buffer.getvalue(), "image/png")

    # ---------- internals ----------

    def _apply(self, x: float, y: float) -> Tuple[float, float]:
        a, b, c, d, e, f = self._transform
        return (a * x + c * y + e, b * x + d * y + f)

    def _device_corners(self, x, y, width, height) -> List[Tuple[float, float]]:
        return [
            self._apply(x, y),
            self._apply(x + width, y),
            self._apply(x + width, y + height),
            self._apply(x, y + height),
        ]

    def _device_box(self, x, y, width, height) -> Tuple[int, int, int, int]:
        corners = self._device_corners(x, y, width, height)
        xs = [round(px) for px, _ in corners]
        ys = [round(py) for _, py in corners]
        return min(xs), min(ys), max(xs), max(ys)

    def _is_axis_aligned(self) -> bool:
        a, b, c, d, _, _ = self._transform
        return (b == 0 and c == 0 and a != 0 and d != 0) or (a == 0 and d == 0 and b != 0 and c != 0)

    def _scale(self) -> float:
        a, b, c, d, _, _ = self._transform
        return math.sqrt(abs(a * d - b * c))

    def _axis_aligned_layer(self, bitmap, x, y, width, height):
        a, b, c, d, _, _ = self._transform
        if b == 0 and c == 0:
            key = (_sign(a), 0, 0, _sign(d))
        else:
            key = (0, _sign(b), _sign(c), 0)

        x0, y0, x1, y1 = self._device_box(x, y, width, height)
        if x1 <= x0 or y1 <= y0:
            return None

        operation = _TRANSPOSES[key]
        if operation is not None:
            bitmap = bitmap.transpose(operation)
        if bitmap.size != (x1 - x0, y1 - y0):
            bitmap = bitmap.resize((x1 - x0, y1 - y0), Image.Resampling.LANCZOS)
        return bitmap, (x0, y0)

    def _affine_layer(self, bitmap, x, y, width, height):
        target = (max(1, round(abs(width))), max(1, round(abs(height))))
        scaled = bitmap.resize(target, Image.Resampling.LANCZOS)
        sx = width / scaled.width
        sy = height / scaled.height

        a, b, c, d, e, f = self._transform
        # scaled pixel (u, v) -> device (A*u + C*v + E, B*u + D*v + F)
        A, B, C, D = a * sx, b * sx, c * sy, d * sy
        E, F = a * x + c * y + e, b * x + d * y + f
        det = A * D - B * C
        if det == 0:
            return None

        inverse = (D / det, -C / det, (C * F - D * E) / det,
                   -B / det, A / det, (B * E - A * F) / det)
        layer = scaled.transform(self.size, Image.Transform.AFFINE, inverse,
                                 resample=Image.Resampling.BICUBIC)
        return layer, (0, 0)

    def _composite(self, layer: Optional[Image.Image], offset: Tuple[int, int] = (0, 0)) -> None:
        if layer is None:
            return
        if offset != (0, 0) or layer.size != self.size:
            full = Image.new("RGBA", self.size, (0, 0, 0, 0))
            full.paste(layer, offset)
            layer = full
        if self._clip is not None:
            alpha = ImageChops.multiply(layer.getchannel("A"), self._clip)
            layer = layer.copy()
            layer.putalpha(alpha)
        self.image.alpha_composite(layer)


def cover_box(width: int, height: int, size: float) -> Tuple[float, float, float, float]:
    """Centered source region that covers a size x size square when scaled"""
    scale = max(size / width, size / height)
    side_w = size / scale
    side_h = size / scale
    left = (width - side_w) / 2
    top = (height - side_h) / 2
    return (left, top, left + side_w, top + side_h)


class CardCompositor:
    """Drawing primitives for ID card faces; holds fonts but no per-render state"""

    def __init__(self, font_dirs: Sequence[Path] = ()):
        self.font_dirs = [Path(p) for p in font_dirs]
        self.fonts = self._load_fonts()

    def _load_fonts(self) -> Dict[str, ImageFont.FreeTypeFont]:
        """Load fonts with fallbacks"""
        fonts = {}

        for font_name, size in FONT_SIZES.items():
            font_options = BOLD_FONT_OPTIONS if font_name in BOLD_FONTS else REGULAR_FONT_OPTIONS
            fonts[font_name] = self._find_font(font_options, size)

            if fonts[font_name] is None:
                fonts[font_name] = ImageFont.load_default(size=size)
                logger.warning(f"Using default font for {font_name}")

        return fonts

    def _find_font(self, font_options: Iterable[str], size: int) -> Optional[ImageFont.FreeTypeFont]:
        for font_dir in self.font_dirs:
            for font_file in font_options:
                full_path = font_dir / font_file
                if not full_path.exists():
                    continue
                try:
                    font = ImageFont.truetype(str(full_path), size)
                except OSError as e:
                    logger.warning(f"Could not load font {full_path}: {e}")
                    continue
                logger.debug(f"Loaded font {full_path} at {size}pt")
                return font
        return None

    def new_surface(self, width: int = FACE_WIDTH, height: int = FACE_HEIGHT) -> RenderSurface:
        return RenderSurface(width, height)

    def paint_background(self, surface: RenderSurface) -> None:
        surface.fill_rect(0, 0, surface.width, surface.height, COLORS["white"])

    def paint_header_bands(self, surface: RenderSurface, header: Image.Image) -> None:
        """Header graphic across the top and the same graphic rotated 180° across the bottom"""
        surface.draw_image(header, 0, 0, surface.width, HEADER_HEIGHT)

        with surface.saved():
            surface.translate(surface.width, surface.height)
            surface.rotate(math.pi)
            surface.draw_image(header, 0, 0, surface.width, HEADER_HEIGHT)

    def paint_logo(self, surface: RenderSurface, logo: Optional[Image.Image]) -> None:
        if logo is None or logo.width == 0:
            return
        logo_w = LOGO_COORDINATES["width"]
        logo_h = logo.height / logo.width * logo_w
        logo_x = surface.width - logo_w - LOGO_COORDINATES["right_margin"]
        surface.draw_image(logo, logo_x, LOGO_COORDINATES["top"], logo_w, logo_h)

    def paint_photo(self, surface: RenderSurface, photo: Optional[Image.Image]) -> None:
        """Rounded photo frame with placeholder fill, photo cover-scaled inside it"""
        photo_x, photo_y, photo_w, photo_h = FRONT_COORDINATES["photo"]

        with surface.saved():
            surface.clip_round_rect(photo_x, photo_y, photo_w, photo_h, FRONT_COORDINATES["photo_radius"])
            surface.fill_rect(photo_x, photo_y, photo_w, photo_h, COLORS["photo_placeholder"])

            if photo is not None and photo.width and photo.height:
                box = cover_box(photo.width, photo.height, photo_w)
                surface.draw_image(photo, photo_x, photo_y, photo_w, photo_h, src_box=box)

    def paint_text(self, surface: RenderSurface, text: str, x: float, y: float,
                   font_key: str = "row", color_key: str = "text", align: str = "left") -> None:
        surface.fill_text(text, x, y, self.fonts[font_key], COLORS[color_key], align=align)

    def paint_centered_text(self, surface: RenderSurface, text: str, y: float,
                            font_key: str, color_key: str) -> None:
        max_width = surface.width - 2 * TEXT_RIGHT_MARGIN
        text = self.fit_text(text, max_width, font_key)
        self.paint_text(surface, text, surface.width / 2, y, font_key, color_key, align="center")

    def paint_rows(self, surface: RenderSurface, rows: Sequence[Tuple[str, Optional[str]]],
                   top: float, labels_x: float, values_x: float, row_height: float,
                   value_prefix: str = "") -> float:
        """
        Draw label/value rows from top; missing values render as the placeholder.

        Returns:
            The cursor position below the last row
        """
        y = top
        max_width = surface.width - values_x - TEXT_RIGHT_MARGIN
        for label, value in rows:
            self.paint_text(surface, label, labels_x, y)
            text = self.fit_text(value_prefix + display_value(value), max_width)
            self.paint_text(surface, text, values_x, y)
            y += row_height
        return y

    def paint_lines(self, surface: RenderSurface, lines: Sequence[str], x: float,
                    top: float, line_height: float) -> float:
        y = top
        max_width = surface.width - x - TEXT_RIGHT_MARGIN
        for line in lines:
            self.paint_text(surface, self.fit_text(line, max_width), x, y)
            y += line_height
        return y

    def fit_text(self, text: str, max_width: float, font_key: str = "row") -> str:
        """Truncate text with an ellipsis so it fits max_width"""
        font = self.fonts[font_key]
        if font.getlength(text) <= max_width:
            return text
        while text and font.getlength(text + ELLIPSIS) > max_width:
            text = text[:-1]
        return text.rstrip() + ELLIPSIS


def get_card_specifications() -> Dict[str, object]:
    """Get ID card dimensions and layout constants"""
    return {
        "dimensions": {
            "face_width_px": FACE_WIDTH,
            "face_height_px": FACE_HEIGHT,
            "combined_width_px": COMBINED_WIDTH,
            "combined_height_px": FACE_HEIGHT,
            "combined_gap_px": COMBINED_GAP,
            "header_height_px": HEADER_HEIGHT,
        },
        "logo": LOGO_COORDINATES,
        "front": FRONT_COORDINATES,
        "back": BACK_COORDINATES,
        "font_sizes": FONT_SIZES,
        "colors": COLORS,
    }
