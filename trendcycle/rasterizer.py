"""
Share-card images for current trends, drawn with Pillow.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple, Union

from PIL import Image, ImageChops, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

CARD_SIZE: Tuple[int, int] = (1200, 630)
GRADIENT = ("#FF0080", "#7928CA")
GRID_STEP = 50
TITLE_CHARS = 25
CAPTION = "TREND-CYCLE VERIFIED VIBES // SYSTEM v2"

FONT_CANDIDATES: Sequence[Path] = (
    Path("/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc"),
    Path("/usr/share/fonts/noto-cjk/NotoSansCJK-Bold.ttc"),
    Path("/System/Library/Fonts/ヒラギノ角ゴシック W6.ttc"),
    Path(r"C:\Windows\Fonts\meiryob.ttc"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
)

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class Rasterizer(Protocol):
    def render(self, title: str, slug: str, *, width: int, height: int) -> bytes:
        ...


def _load_font(size: int, font_path: Optional[Path] = None) -> FontType:
    candidates = [font_path] if font_path else []
    candidates.extend(FONT_CANDIDATES)
    for path in candidates:
        if path and path.exists():
            try:
                return ImageFont.truetype(str(path), size)
            except OSError:
                logger.debug("Font %s could not be loaded", path)
                continue
    return ImageFont.load_default(size=size)


def display_title(title: str, limit: int = TITLE_CHARS) -> str:
    return title if len(title) <= limit else title[:limit] + "..."


class VibeCardRasterizer:
    """
    Gradient card with a faint grid, the (shortened) title and the slug as an ID line.

    Output is deterministic for a given title/slug/size, so re-publishing an
    unchanged trend produces identical bytes.
    """

    def __init__(self, font_path: Optional[Path] = None, colors: Tuple[str, str] = GRADIENT) -> None:
        self.font_path = Path(font_path) if font_path else None
        self.colors = colors

    def render(self, title: str, slug: str, *, width: int = CARD_SIZE[0], height: int = CARD_SIZE[1]) -> bytes:
        card = self._background(width, height)
        card = Image.alpha_composite(card, self._grid(width, height))

        draw = ImageDraw.Draw(card)
        self._draw_centered(draw, display_title(title), 55, width, height // 2)
        self._draw_centered(draw, CAPTION, 20, width, height // 2 + 80)
        self._draw_centered(draw, f"ID: {slug.upper()}", 15, width, height - 50)

        buffer = io.BytesIO()
        card.convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()

    def _background(self, width: int, height: int) -> Image.Image:
        start = Image.new("RGBA", (width, height), self.colors[0])
        end = Image.new("RGBA", (width, height), self.colors[1])
        vertical = Image.linear_gradient("L").resize((width, height))
        horizontal = Image.linear_gradient("L").rotate(90).resize((width, height))
        mask = ImageChops.add(vertical, horizontal, scale=2.0)
        return Image.composite(end, start, mask)

    @staticmethod
    def _grid(width: int, height: int) -> Image.Image:
        overlay = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        for x in range(0, width, GRID_STEP):
            draw.line([(x, 0), (x, height)], fill=(255, 255, 255, 26), width=1)
        for y in range(0, height, GRID_STEP):
            draw.line([(0, y), (width, y)], fill=(255, 255, 255, 26), width=1)
        return overlay

    def _draw_centered(self, draw: ImageDraw.ImageDraw, text: str, size: int, width: int, y: int) -> None:
        font = _load_font(size, self.font_path)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (width - (right - left)) / 2 - left
        draw.text((x, y - (bottom - top) / 2 - top), text, font=font, fill="#FFFFFF")
