# comic_captions/features/captions/validation.py
from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional

from .schemas import (
    HEBREW,
    PANEL_IDS,
    CaptionLanguage,
    CaptionRules,
    PanelCaptions,
    PanelId,
    ValidationResult,
)

DEFAULT_RULES = CaptionRules()

_DANGLING_START_RE = re.compile(r"^[,،;:\-…]")
_WS_RE = re.compile(r"\s+")
_DOTS_RE = re.compile(r"\.{2,}")
_BANGS_RE = re.compile(r"!{2,}")
_QUESTIONS_RE = re.compile(r"\?{2,}")
# stripped from a word's edges before the connector lookup
_WORD_EDGE_PUNCT = ".,!?…:;\"'״׳-"


@lru_cache(maxsize=None)
def _charset_re(letters: str, punctuation: str) -> re.Pattern:
    return re.compile(rf"^[{letters}\s{punctuation}]+$")


def _native_re(language: CaptionLanguage) -> re.Pattern:
    return _charset_re(language.letters, language.punctuation)


def _is_connector(word: str, language: CaptionLanguage) -> bool:
    bare = word.strip(_WORD_EDGE_PUNCT)
    return bool(bare) and (bare in language.connectors or bare.lower() in language.connectors)


def validate_caption(
    caption: str,
    panel_id: PanelId | str,
    *,
    rules: Optional[CaptionRules] = None,
    language: Optional[CaptionLanguage] = None,
) -> ValidationResult:
    rules = rules or DEFAULT_RULES
    language = language or HEBREW
    pid = PanelId(panel_id).value
    errors: List[str] = []
    trimmed = (caption or "").strip()

    if not trimmed:
        errors.append(f"Panel {pid}: empty")

    if trimmed and not _native_re(language).match(trimmed):
        errors.append(f"Panel {pid}: non-native characters (expected {language.name} only)")

    if "\n" in trimmed or "\r" in trimmed:
        errors.append(f"Panel {pid}: multiline")

    if len(trimmed) > rules.max_chars:
        errors.append(f"Panel {pid}: too long ({len(trimmed)} > {rules.max_chars} chars)")

    words = trimmed.split()
    if len(words) < rules.min_words:
        errors.append(f"Panel {pid}: too few words ({len(words)} < {rules.min_words})")
    elif len(words) > rules.max_words:
        errors.append(f"Panel {pid}: too many words ({len(words)} > {rules.max_words})")

    if words and _is_connector(words[0], language):
        errors.append(f"Panel {pid}: forbidden start ({words[0]!r} is a connector)")

    if words and _is_connector(words[-1], language):
        errors.append(f"Panel {pid}: forbidden end ({words[-1]!r} is a connector)")

    if _DANGLING_START_RE.match(trimmed):
        errors.append(f"Panel {pid}: dangling punctuation start")

    return ValidationResult(valid=not errors, errors=errors)


def validate_all(
    captions: PanelCaptions,
    *,
    rules: Optional[CaptionRules] = None,
    language: Optional[CaptionLanguage] = None,
) -> ValidationResult:
    errors: List[str] = []
    for pid in PANEL_IDS:
        errors.extend(validate_caption(captions.get(pid), pid, rules=rules, language=language).errors)
    return ValidationResult(valid=not errors, errors=errors)


def normalize_caption(text: str, *, max_chars: Optional[int] = None) -> str:
    """
    Canonical single-line form of a caption.

    The length cap is a hard cut with no ellipsis; visual truncation with an
    ellipsis belongs to the compositor. Idempotent.
    """
    max_chars = DEFAULT_RULES.max_chars if max_chars is None else max_chars
    s = _WS_RE.sub(" ", (text or "").strip())
    s = _DOTS_RE.sub("…", s)
    s = _BANGS_RE.sub("!", s)
    s = _QUESTIONS_RE.sub("?", s)
    return s[:max_chars].rstrip()
