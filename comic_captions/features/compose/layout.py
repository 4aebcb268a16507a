# comic_captions/features/compose/layout.py
"""
Pure geometry for the 2x2 caption layout.

Nothing here touches Pillow: text measurement is passed in as a
`measure(text, size) -> width` callable so sizing decisions can be
reproduced exactly in tests.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict

from comic_captions.features.captions.schemas import PANEL_IDS, PANEL_QUADRANTS, PanelId

ELLIPSIS = "…"
BAR_INSET = 2
BAR_TEXT_MARGIN = 8
MIN_PADDING = 6
MAX_CORNER_RADIUS = 8

Measure = Callable[[str, int], float]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass(frozen=True)
class CaptionBar:
    area: Rect          # bottom strip of the panel reserved for the caption
    box: Rect           # visible bar, inset on every side
    radius: float
    padding: float
    max_text_width: float


@dataclass(frozen=True)
class FittedText:
    text: str
    size: int
    truncated: bool = False


def panel_rects(width: float, height: float) -> Dict[PanelId, Rect]:
    """Four equal quadrants; A top-right, B top-left, C bottom-right, D bottom-left."""
    pw, ph = width / 2, height / 2
    rects = {}
    for pid in PANEL_IDS:
        col, row = PANEL_QUADRANTS[pid]
        rects[pid] = Rect(col * pw, row * ph, pw, ph)
    return rects


def caption_bar(panel: Rect, ratio: float = 0.20, padding_ratio: float = 0.08) -> CaptionBar:
    caption_h = panel.height * ratio
    area = Rect(panel.x, panel.bottom - caption_h, panel.width, caption_h)
    padding = max(MIN_PADDING, caption_h * padding_ratio)
    box = Rect(
        area.x + BAR_INSET,
        area.y + BAR_INSET,
        max(0.0, area.width - 2 * BAR_INSET),
        max(0.0, area.height - 2 * BAR_INSET),
    )
    return CaptionBar(
        area=area,
        box=box,
        radius=min(caption_h * 0.15, MAX_CORNER_RADIUS),
        padding=padding,
        max_text_width=panel.width - 2 * padding - BAR_TEXT_MARGIN,
    )


def initial_font_size(caption_height: float, scale: float = 0.50, min_size: int = 10) -> int:
    return max(min_size, math.floor(caption_height * scale))


def fit_single_line(text: str, max_width: float, initial_size: int, measure: Measure, min_size: int = 10) -> FittedText:
    """
    Largest size <= initial_size (and >= min_size) at which `text` fits on one
    line. When nothing fits, stay at min_size and drop characters from the end
    until text + ellipsis fits; this can leave the ellipsis alone, or nothing
    at all when even the ellipsis is wider than the bar.
    """
    size = max(initial_size, min_size)
    while size >= min_size:
        if measure(text, size) <= max_width:
            return FittedText(text, size)
        size -= 1

    if measure(ELLIPSIS, min_size) > max_width:
        return FittedText("", min_size, truncated=True)

    truncated = text
    while truncated and measure(truncated + ELLIPSIS, min_size) > max_width:
        truncated = truncated[:-1]
    return FittedText(truncated.rstrip() + ELLIPSIS, min_size, truncated=True)
