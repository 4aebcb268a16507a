# comic_captions/features/captions/schemas.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PanelId(str, Enum):
    A = "A"  # top-right, read first
    B = "B"  # top-left
    C = "C"  # bottom-right
    D = "D"  # bottom-left


# RTL reading order. Never recomputed.
PANEL_IDS: Tuple[PanelId, ...] = (PanelId.A, PanelId.B, PanelId.C, PanelId.D)

# id -> (column, row) on the 2x2 grid
PANEL_QUADRANTS: Dict[PanelId, Tuple[int, int]] = {
    PanelId.A: (1, 0),
    PanelId.B: (0, 0),
    PanelId.C: (1, 1),
    PanelId.D: (0, 1),
}


class PanelScene(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: PanelId
    scene_prompt: str = Field("", alias="scenePrompt", description="What is visible in this panel (English)")


class PanelCaptions(BaseModel):
    A: str
    B: str
    C: str
    D: str

    def get(self, panel_id: PanelId | str) -> str:
        return getattr(self, PanelId(panel_id).value)

    def ordered(self) -> List[str]:
        return [self.A, self.B, self.C, self.D]

    def total_words(self) -> int:
        return sum(len(c.split()) for c in self.ordered())

    @classmethod
    def from_mapping(cls, data: Dict[PanelId | str, str]) -> "PanelCaptions":
        return cls(**{PanelId(k).value: v for k, v in data.items()})


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


# -------------------------------------------------------------------
# Rules & languages
# -------------------------------------------------------------------

@dataclass(frozen=True)
class CaptionRules:
    max_chars: int = 65
    min_words: int = 5
    max_words: int = 10

    @classmethod
    def preset(cls, name: str) -> "CaptionRules":
        try:
            return RULE_PRESETS[name.strip().lower()]
        except KeyError:
            raise ValueError(f"unknown caption rules preset: {name!r} (expected one of {sorted(RULE_PRESETS)})")


# The per-panel repair path enforces "strict"; the batch prompt of the first
# generation advertised "lenient". Which one is authoritative is a product call.
RULE_PRESETS: Dict[str, CaptionRules] = {
    "strict": CaptionRules(max_chars=65, min_words=5, max_words=10),
    "lenient": CaptionRules(max_chars=55, min_words=3, max_words=12),
}


@dataclass(frozen=True)
class CaptionLanguage:
    code: str
    name: str
    letters: str                       # regex character-class body for the script's letters
    connectors: frozenset
    placeholders: Dict[PanelId, str]   # per-panel fallback after repair exhaustion
    verbose_fallback: Dict[PanelId, str]
    rtl: bool = False
    # allowed besides letters and whitespace: . , ! ? - … and quote marks
    punctuation: str = field(default=r".,!?\-…\"'״׳")


HEBREW = CaptionLanguage(
    code="he",
    name="Hebrew",
    letters="\u0590-\u05FF",
    connectors=frozenset({"ו", "ואז", "אבל", "כי", "ש", "לכן", "אז", "רק", "גם", "את", "של", "אם", "כש"}),
    placeholders={
        PanelId.A: "זהו הפאנל הראשון בסיפור המיוחד",
        PanelId.B: "כאן רואים את הפאנל השני",
        PanelId.C: "עכשיו הגענו אל הפאנל השלישי",
        PanelId.D: "ולסיום הנה הפאנל הרביעי בדף",
    },
    verbose_fallback={
        PanelId.A: "זהו הפאנל הראשון בסיפור המיוחד והמרתק שלנו",
        PanelId.B: "כאן רואים את הפאנל השני המלא בפעולה",
        PanelId.C: "עכשיו הגענו אל הפאנל השלישי המעניין מאוד",
        PanelId.D: "ולסיום הנה הפאנל הרביעי והאחרון בדף",
    },
    rtl=True,
)

ENGLISH = CaptionLanguage(
    code="en",
    name="English",
    letters="A-Za-z",
    connectors=frozenset({"and", "but", "because", "then", "also", "only", "so", "that", "which", "if", "when", "or"}),
    placeholders={
        PanelId.A: "Our special story starts right here",
        PanelId.B: "Here we see the second panel",
        PanelId.C: "Now we reach the third panel",
        PanelId.D: "Finally here is the fourth panel",
    },
    verbose_fallback={
        PanelId.A: "Our special story starts right here with a smile",
        PanelId.B: "Here we see the second panel full of action",
        PanelId.C: "Now we reach the third panel with a surprise",
        PanelId.D: "Finally here is the fourth and last panel",
    },
)

LANGUAGES: Dict[str, CaptionLanguage] = {lang.code: lang for lang in (HEBREW, ENGLISH)}


def get_language(code: str) -> CaptionLanguage:
    try:
        return LANGUAGES[code.strip().lower()]
    except KeyError:
        raise ValueError(f"unsupported caption language: {code!r}")


# -------------------------------------------------------------------
# Structured response shape (validated at the boundary)
# -------------------------------------------------------------------

class BatchCaptionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_id: str = Field("", alias="pageId")
    panel_captions: PanelCaptions = Field(..., alias="panelCaptions")


def batch_caption_json_schema() -> dict:
    string = {"type": "string"}
    captions = {
        "type": "object",
        "additionalProperties": False,
        "properties": {pid.value: string for pid in PANEL_IDS},
        "required": [pid.value for pid in PANEL_IDS],
    }
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {"pageId": string, "panelCaptions": captions},
        "required": ["pageId", "panelCaptions"],
    }


# -------------------------------------------------------------------
# API models
# -------------------------------------------------------------------

class GenerateCaptionsRequest(BaseModel):
    page_id: str = Field(..., description="Identifier echoed back in logs and the response")
    panels: List[PanelScene] = Field(..., description="Scene per panel, ids A-D")
    target_age: str = Field("3-8", description="Reader age range, free text")
    theme: str = Field("", description="Story theme, free text")

    @field_validator("panels")
    @classmethod
    def panels_must_be_4(cls, v):
        if len(v) != 4 or {p.id for p in v} != set(PANEL_IDS):
            raise ValueError("panels must contain exactly one scene for each of A, B, C, D")
        return v


class GenerateCaptionsResponse(BaseModel):
    page_id: str
    captions: PanelCaptions
    validation: ValidationResult


class NormalizeRequest(BaseModel):
    text: str


class NormalizeResponse(BaseModel):
    text: str


class ExtractScenesRequest(BaseModel):
    prompt: str = Field("", description="Combined English scene description of the whole page")


class ExtractScenesResponse(BaseModel):
    panels: List[PanelScene]

