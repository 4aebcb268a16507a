# comic_captions/features/compose/service.py
from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional

from PIL import Image, ImageDraw, ImageFont, features

from comic_captions.config import config
from comic_captions.exceptions import CompositionError
from comic_captions.features.captions.schemas import PANEL_IDS
from comic_captions.lib.imaging import load_image, to_png_data_url
from comic_captions.logger import get_logger

from .layout import caption_bar, fit_single_line, initial_font_size, panel_rects
from .schemas import CompositorOptions

log = get_logger(__name__)

BAR_FILL = (255, 255, 255, 230)      # white at 0.90
BAR_OUTLINE = (0x33, 0x33, 0x33, 255)
BAR_OUTLINE_WIDTH = 2                # 1.5px rounded up; Pillow strokes whole pixels
TEXT_FILL = (0x11, 0x11, 0x11, 255)

_FALLBACK_FONTS = (
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
)

# Hebrew, Arabic and presentation forms
_RTL_RE = re.compile(r"[\u0590-\u08FF\uFB1D-\uFDFF\uFE70-\uFEFF]")


@lru_cache(maxsize=1)
def _has_raqm() -> bool:
    return bool(features.check("raqm"))


@lru_cache(maxsize=256)
def load_font(family: Optional[str], size: int):
    """Bold TrueType font at `size`; falls back to DejaVu, then Pillow's default."""
    candidates = ((family,) if family else ()) + _FALLBACK_FONTS
    for name in candidates:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    log.warning(f"no TrueType font found for {family!r}; using Pillow default")
    return ImageFont.load_default(size=size)


def is_rtl(text: str) -> bool:
    return bool(_RTL_RE.search(text or ""))


class _Renderer:
    """Measures and draws single-line captions with one font family."""

    def __init__(self, draw: ImageDraw.ImageDraw, family: Optional[str]):
        self.draw = draw
        self.family = family

    def _prepare(self, text: str):
        if not is_rtl(text):
            return text, {}
        if _has_raqm():
            return text, {"direction": "rtl"}
        # no bidi shaping available: draw characters in visual order
        return text[::-1], {}

    def measure(self, text: str, size: int) -> float:
        shown, kwargs = self._prepare(text)
        return self.draw.textlength(shown, font=load_font(self.family, size), **kwargs)

    def draw_centered(self, text: str, size: int, center) -> None:
        shown, kwargs = self._prepare(text)
        font = load_font(self.family, size)
        left, top, right, bottom = self.draw.textbbox((0, 0), shown, font=font, **kwargs)
        cx, cy = center
        xy = (cx - (right - left) / 2 - left, cy - (bottom - top) / 2 - top)
        self.draw.text(xy, shown, font=font, fill=TEXT_FILL, **kwargs)


def compose_comic_image(options: CompositorOptions) -> Image.Image:
    """
    Draw one caption bar per panel on top of the source image and return the
    composited RGBA image at the source's native size.
    Raises ImageLoadError when the source cannot be loaded, CompositionError
    when drawing fails.
    """
    texts = options.source.texts()
    base = load_image(options.image_source)
    family = options.font_family or config.caption_font

    try:
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        renderer = _Renderer(draw, family)

        rects = panel_rects(*base.size)
        for pid, caption in zip(PANEL_IDS, texts):
            bar = caption_bar(rects[pid], options.caption_height_ratio, options.padding_ratio)
            box = bar.box
            draw.rounded_rectangle(
                (box.x, box.y, box.right, box.bottom),
                radius=bar.radius,
                fill=BAR_FILL,
                outline=BAR_OUTLINE,
                width=BAR_OUTLINE_WIDTH,
            )

            # captions are drawn on one line; line breaks become spaces
            caption = " ".join((caption or "").split())
            if not caption:
                continue

            fitted = fit_single_line(
                caption,
                bar.max_text_width,
                initial_font_size(bar.area.height, options.font_scale, options.min_font_size),
                renderer.measure,
                options.min_font_size,
            )
            if fitted.truncated:
                log.debug(f"Panel {pid.value}: caption truncated to fit at {fitted.size}px")
            if not fitted.text:
                continue
            center = (rects[pid].center[0], bar.area.center[1])
            renderer.draw_centered(fitted.text, fitted.size, center)

        return Image.alpha_composite(base, overlay)
    except (OSError, ValueError) as e:
        raise CompositionError(f"drawing captions failed: {e}") from e


def compose_comic_page(options: CompositorOptions) -> str:
    """Composite captions onto the page image and return a PNG data URL."""
    image = compose_comic_image(options)
    log.info(f"composed {image.width}x{image.height} page from {options.source.kind} captions")
    return to_png_data_url(image)
