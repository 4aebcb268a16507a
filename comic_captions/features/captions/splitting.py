# comic_captions/features/captions/splitting.py
"""
Compatibility helpers for pages that arrive without structured panel data.

Neither function is used when per-panel captions exist.
"""
from __future__ import annotations

import math
import re
from typing import List

from .schemas import PANEL_IDS, PanelScene

_SENTENCE_END_RE = re.compile(r"(?<=[.!?。؟…])\s+")


def _word_chunks(words: List[str]) -> List[str]:
    per = math.ceil(len(words) / 4)
    return [" ".join(words[i * per:(i + 1) * per]).strip() for i in range(4)]


def split_into_four(text: str) -> List[str]:
    """Always returns exactly 4 parts (padded with '')."""
    clean = (text or "").strip()
    if not clean:
        return ["", "", "", ""]

    sentences = [s.strip() for s in _SENTENCE_END_RE.split(clean) if s.strip()]
    if len(sentences) >= 4:
        parts = ["", "", "", ""]
        per = math.ceil(len(sentences) / 4)
        p = 0
        for i, sentence in enumerate(sentences):
            if p < 3 and i > 0 and i % per == 0:
                p += 1
            parts[p] = f"{parts[p]} {sentence}" if parts[p] else sentence
        return parts

    return _word_chunks(clean.split())


def _panel_patterns(n: int) -> List[re.Pattern]:
    return [
        re.compile(rf"Panel\s*{n}(?!\d)[:\s]+([^.]+)", re.IGNORECASE),
        re.compile(rf"\bP{n}(?!\d)[:\s]+([^.]+)", re.IGNORECASE),
    ]


_PATTERNS = [_panel_patterns(n) for n in range(1, 5)]


def extract_panel_scenes(combined_prompt: str) -> List[PanelScene]:
    """
    Split a single English page description into four panel scenes.

    Explicit "Panel 1: ..." / "P1: ..." markers win; any panel without a marker
    gets the matching quarter of the prompt's words instead.
    """
    prompt = combined_prompt or ""
    chunks = _word_chunks(prompt.split())
    scenes: List[PanelScene] = []

    for i, pid in enumerate(PANEL_IDS):
        scene = None
        for pattern in _PATTERNS[i]:
            m = pattern.search(prompt)
            if m and m.group(1).strip():
                scene = m.group(1).strip()
                break
        if scene is None:
            scene = chunks[i] or prompt.strip()
        scenes.append(PanelScene(id=pid, scene_prompt=scene))

    return scenes
