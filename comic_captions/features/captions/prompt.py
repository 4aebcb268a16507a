# comic_captions/features/captions/prompt.py
from typing import Dict

from .schemas import CaptionLanguage, CaptionRules, PanelId

_DEFAULT_SCENES = {
    PanelId.A: "Opening scene",
    PanelId.B: "Action scene",
    PanelId.C: "Reaction scene",
    PanelId.D: "Resolution scene",
}

_POSITIONS = {
    PanelId.A: "Top-Right (first)",
    PanelId.B: "Top-Left (second)",
    PanelId.C: "Bottom-Right (third)",
    PanelId.D: "Bottom-Left (fourth)",
}


def batch_system(language: CaptionLanguage) -> str:
    return (
        f"You are a {language.name} children's comic caption editor. "
        "Return STRICT JSON only: exactly one JSON object with the keys 'pageId' and 'panelCaptions', "
        "where panelCaptions has the string keys 'A', 'B', 'C', 'D'. "
        "No extra text, no comments, no markdown."
    )


def single_system(language: CaptionLanguage) -> str:
    return (
        f"You are a {language.name} children's comic caption editor. "
        f"Return ONLY the {language.name} caption text, on one line, with no quotes and no commentary."
    )


def _connector_line(language: CaptionLanguage) -> str:
    return ", ".join(sorted(language.connectors))


def _reading_order(language: CaptionLanguage) -> str:
    if language.rtl:
        return "\n".join(f"{pid.value} = {_POSITIONS[pid]}" for pid in _POSITIONS)
    return "A, B, C, D in reading order"


def build_batch_prompt(
    *,
    page_id: str,
    scenes: Dict[PanelId, str],
    target_age: str,
    theme: str,
    rules: CaptionRules,
    language: CaptionLanguage,
) -> str:
    lang = language.name
    scene_lines = "\n".join(
        f"* Panel {pid.value}: {scenes.get(pid) or _DEFAULT_SCENES[pid]}" for pid in _DEFAULT_SCENES
    )
    isolation = "\n".join(
        f"- Panel {pid.value} caption describes ONLY Panel {pid.value}'s scene" for pid in _DEFAULT_SCENES
    )
    return f"""
You are writing captions for a {lang} children's comic for ages {target_age}.

**TASK:** Create 4 {lang} captions for a 4-panel comic page laid out as a 2x2 grid.

**READING ORDER:**
{_reading_order(language)}

**PANEL SCENES (what is visible in each panel):**
{scene_lines}

**THEME:** {theme or "general"}

**HARD RULES FOR EACH CAPTION:**
* {lang} ONLY
* EXACTLY ONE line (no newlines)
* {rules.min_words}-{rules.max_words} words
* Maximum {rules.max_chars} characters
* A COMPLETE, natural sentence
* Describe ONLY what happens in THAT panel (no leakage to other panels)
* DO NOT start or end with connector words: {_connector_line(language)}
* Each caption must stand alone without context from the other panels

**PANEL ISOLATION:**
{isolation}

**JSON SCHEMA:**
```json
{{"pageId": "{page_id}", "panelCaptions": {{"A": "...", "B": "...", "C": "...", "D": "..."}}}}
```""".strip()


def build_single_panel_prompt(
    *,
    panel_id: PanelId,
    scene: str,
    target_age: str,
    theme: str,
    rules: CaptionRules,
    language: CaptionLanguage,
) -> str:
    lang = language.name
    return f"""
You are writing one caption for a {lang} children's comic for ages {target_age}.

**TASK:** Create ONE {lang} caption for panel {panel_id.value} of a comic page.

**PANEL SCENE (what is visible in this panel):**
{scene or _DEFAULT_SCENES[panel_id]}

**THEME:** {theme or "general"}

**RULES (strict):**
* {lang} ONLY
* EXACTLY ONE line (no newlines)
* {rules.min_words}-{rules.max_words} words
* Maximum {rules.max_chars} characters
* A COMPLETELY STANDALONE sentence
* DO NOT start or end with connector words: {_connector_line(language)}
* Describe ONLY the visual action in this panel

Return ONLY the {lang} caption text, nothing else.""".strip()
