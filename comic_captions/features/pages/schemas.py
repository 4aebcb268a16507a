# comic_captions/features/pages/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from comic_captions.features.captions.schemas import PanelCaptions, PanelId


class PanelSource(BaseModel):
    """Upstream per-panel data from the script generator."""
    id: PanelId
    scene: str = Field("", description="English description of what the panel shows")
    caption: str = Field("", description="Caption proposed upstream; re-validated before use")


class PageRecord(BaseModel):
    page_number: Optional[int] = Field(None, ge=1, description="Defaults to the page's position in the request")
    image: str = Field(..., description="data URL, raw base64, gs://, http(s) URL or local path of the 2x2 page art")
    panel_captions: Optional[PanelCaptions] = Field(None, description="Persisted captions; reused without regeneration")
    panels: Optional[List[PanelSource]] = None
    image_prompt: Optional[str] = Field(None, description="Combined scene description used when panels are absent")
    text: Optional[str] = Field(None, description="Legacy page text, only used when no captions can be produced")


class ComicPagesRequest(BaseModel):
    job_id: Optional[str] = None
    title: str = ""
    target_age: str = "3-8"
    theme: str = ""
    upload: bool = Field(False, description="Upload each composed page to GCS_BUCKET under jobs/<job_id>/pages/")
    pages: List[PageRecord]

    @field_validator("pages")
    @classmethod
    def pages_not_empty(cls, v):
        if not v:
            raise ValueError("pages must contain at least one page")
        return v


CaptionOrigin = Literal["persisted", "upstream", "regenerated", "extracted", "fallback", "none"]


@dataclass(frozen=True)
class PageCaptions:
    captions: Optional[PanelCaptions]
    origin: CaptionOrigin
    degraded: bool = False
