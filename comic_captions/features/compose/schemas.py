# comic_captions/features/compose/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from comic_captions.features.captions.schemas import PanelCaptions
from comic_captions.features.captions.splitting import split_into_four


@dataclass(frozen=True)
class StructuredCaptions:
    """Per-panel captions. Rendered as-is in A, B, C, D order."""
    captions: PanelCaptions
    kind: Literal["structured"] = "structured"

    def texts(self) -> List[str]:
        return self.captions.ordered()


@dataclass(frozen=True)
class FreeTextCaptions:
    """One block of page text, split into four panels by sentence or word."""
    text: str
    kind: Literal["free_text"] = "free_text"

    def texts(self) -> List[str]:
        return split_into_four(self.text)


CaptionSource = Union[StructuredCaptions, FreeTextCaptions]


def caption_source(captions: Optional[PanelCaptions], text: Optional[str] = None) -> CaptionSource:
    """
    Pick the caption source once. Structured captions always win: when they
    are present the free text is never looked at.
    """
    if captions is not None:
        return StructuredCaptions(captions)
    return FreeTextCaptions(text or "")


@dataclass(frozen=True)
class CompositorOptions:
    image_source: str
    source: CaptionSource
    caption_height_ratio: float = 0.20
    padding_ratio: float = 0.08
    font_family: Optional[str] = None
    min_font_size: int = 10
    font_scale: float = 0.50


# -------------------------------------------------------------------
# API models
# -------------------------------------------------------------------

class ComposeRequest(BaseModel):
    image: str = Field(..., description="data URL, raw base64, gs://, http(s) URL or local path")
    captions: Optional[PanelCaptions] = Field(None, description="Per-panel captions; takes priority over text")
    text: Optional[str] = Field(None, description="Legacy page text, split into four when captions are absent")
    caption_height_ratio: Optional[float] = Field(None, gt=0, le=0.5, description="Bar height as a share of panel height")
    padding_ratio: Optional[float] = Field(None, ge=0, le=0.5)
    font_family: Optional[str] = Field(None, description="TrueType font file name or path")

    def to_options(
        self,
        *,
        caption_height_ratio: float = 0.20,
        padding_ratio: float = 0.08,
        min_font_size: int = 10,
    ) -> CompositorOptions:
        """Request fields win; the keyword arguments fill whatever was left out."""
        return CompositorOptions(
            image_source=self.image,
            source=caption_source(self.captions, self.text),
            caption_height_ratio=self.caption_height_ratio or caption_height_ratio,
            padding_ratio=padding_ratio if self.padding_ratio is None else self.padding_ratio,
            font_family=self.font_family,
            min_font_size=min_font_size,
        )


class ComposeResponse(BaseModel):
    image_data_url: str
    source: Literal["structured", "free_text"]
