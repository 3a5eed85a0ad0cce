# app/watermark/rasterizer.py
from __future__ import annotations

import io
import math
import sys
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image, ImageColor, ImageDraw, ImageFont

from app.config import get_settings
from app.watermark.errors import InvalidSpecError

# Line-height multiplier covering ascenders/descenders without real font metrics
LINE_HEIGHT = 1.5

# Padding on each side, as a fraction of the larger text dimension.
# 0.5 keeps the glyphs inside the buffer at any rotation.
PADDING_RATIO = 0.5

# RGBA canvas limit (4 bytes per pixel, so about 100 MB)
MAX_RASTER_PIXELS = 25_000_000

DEFAULT_FONT_CANDIDATES = (
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
)


@dataclass(frozen=True)
class RasterImage:
    png_bytes: bytes
    logical_width: float  # points
    logical_height: float  # points
    pixel_width: int
    pixel_height: int
    scale: int
    padding_px: int

    @property
    def logical_size(self) -> tuple[float, float]:
        return self.logical_width, self.logical_height


@lru_cache(maxsize=32)
def _load_font(font_path: str | None, size_px: int) -> ImageFont.FreeTypeFont:
    candidates = ([font_path] if font_path else []) + list(DEFAULT_FONT_CANDIDATES)
    for cand in candidates:
        try:
            return ImageFont.truetype(cand, size_px)
        except OSError:
            if cand == font_path:
                print(f"WARN: watermark font not loadable: {font_path}", file=sys.stderr)
            continue
    return ImageFont.load_default(size=size_px)


def rasterize(
    text: str,
    font_size_pt: float,
    color_hex: str,
    *,
    scale: int | None = None,
    font_path: str | None = None,
) -> RasterImage:
    """
    Render `text` centred on a transparent, generously padded canvas.

    The canvas is `scale` pixels per point; the returned logical size is in
    points so it can be drawn straight onto a PDF page. Empty text gives a
    blank (but valid) image.
    """
    settings = get_settings()
    scale = int(scale or settings.raster_scale)
    if scale < 2:
        raise ValueError(f"raster scale must be >= 2, got {scale}")
    font_path = font_path or settings.font_path

    size_px = max(1, int(round(font_size_pt * scale)))
    font = _load_font(font_path, size_px)

    measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    text_w = math.ceil(measure.textlength(text, font=font)) if text else 0
    text_h = math.ceil(font_size_pt * scale * LINE_HEIGHT)

    padding = math.ceil(max(text_w, text_h) * PADDING_RATIO)
    canvas_w = max(1, text_w + padding * 2)
    canvas_h = max(1, text_h + padding * 2)
    if canvas_w * canvas_h > MAX_RASTER_PIXELS:
        raise InvalidSpecError(
            f"watermark too large to rasterize ({canvas_w}x{canvas_h} px); "
            "use shorter text or a smaller font size"
        )

    img = Image.new("RGBA", (canvas_w, canvas_h), (0, 0, 0, 0))
    if text.strip():
        r, g, b = ImageColor.getrgb(color_hex)[:3]
        draw = ImageDraw.Draw(img)
        draw.text((canvas_w / 2, canvas_h / 2), text, font=font, fill=(r, g, b, 255), anchor="mm")

    buf = io.BytesIO()
    img.save(buf, format="PNG")

    return RasterImage(
        png_bytes=buf.getvalue(),
        logical_width=canvas_w / scale,
        logical_height=canvas_h / scale,
        pixel_width=canvas_w,
        pixel_height=canvas_h,
        scale=scale,
        padding_px=padding,
    )
