"""
Certificate rendering — draws the textual overlays onto a source image.

Layout, with ``m`` the margin:
    programme name  semibold, upper-case, bottom-left
    level           regular, upper-case, left at height/2 + 1.5*m
    #<id>           semibold, bottom-right
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont

from certmint.core.config import Settings


@dataclass(frozen=True)
class FontSet:
    """Font files used for the overlays.  Empty path → Pillow's default font."""

    regular_path: str = ""
    semibold_path: str = ""
    size: int = 32

    @classmethod
    def from_settings(cls, settings: Settings) -> FontSet:
        return cls(
            regular_path=settings.FONT_REGULAR_PATH,
            semibold_path=settings.FONT_SEMIBOLD_PATH or settings.FONT_REGULAR_PATH,
            size=settings.FONT_SIZE,
        )

    def load(self, path: str) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        if path:
            return ImageFont.truetype(path, self.size)
        return ImageFont.load_default(size=self.size)


class CertificateRenderer:
    def __init__(self, fonts: FontSet | None = None, margin: int = 80, quality: int = 95) -> None:
        self.fonts = fonts or FontSet()
        self.margin = margin
        self.quality = quality

    def render(self, source: bytes, programme: str, level: str, certificate_id: str) -> bytes:
        """Return the source image with overlays, encoded as JPEG."""
        regular = self.fonts.load(self.fonts.regular_path)
        semibold = self.fonts.load(self.fonts.semibold_path)
        m = self.margin

        with Image.open(io.BytesIO(source)) as opened:
            image = opened.convert("RGB")
        width, height = image.size
        draw = ImageDraw.Draw(image)

        programme_text = programme.upper()
        _, programme_h = _text_size(draw, programme_text, semibold)
        draw.text((m, height - m - programme_h), programme_text, font=semibold, fill="white")

        draw.text((m, height / 2 + m * 1.5), level.upper(), font=regular, fill="white")

        tag = f"#{certificate_id}"
        tag_w, tag_h = _text_size(draw, tag, semibold)
        draw.text((width - tag_w - m, height - m - tag_h), tag, font=semibold, fill="white")

        out = io.BytesIO()
        image.save(out, format="JPEG", quality=self.quality)
        return out.getvalue()


def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> tuple[int, int]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return int(right - left), int(bottom - top)
