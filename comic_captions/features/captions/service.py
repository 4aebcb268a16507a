# comic_captions/features/captions/service.py
from __future__ import annotations

import asyncio
from typing import Dict, Iterable, Optional

from pydantic import ValidationError

from comic_captions.exceptions import TextGenerationError
from comic_captions.lib.text_generation import TextGenerator
from comic_captions.logger import get_logger

from .prompt import batch_system, build_batch_prompt, build_single_panel_prompt, single_system
from .schemas import (
    HEBREW,
    PANEL_IDS,
    BatchCaptionPayload,
    CaptionLanguage,
    CaptionRules,
    PanelCaptions,
    PanelId,
    PanelScene,
    batch_caption_json_schema,
)
from .validation import normalize_caption, validate_all, validate_caption

log = get_logger(__name__)


def scene_map(panels: Iterable[PanelScene]) -> Dict[PanelId, str]:
    """id -> scene text; missing ids map to '' and the first scene per id wins."""
    out: Dict[PanelId, str] = {pid: "" for pid in PANEL_IDS}
    seen = set()
    for p in panels:
        if p.id in seen:
            continue
        seen.add(p.id)
        out[p.id] = (p.scene_prompt or "").strip()
    return out


class CaptionOrchestrator:
    """
    Produces one validated caption per panel.

    Tier 1 asks for all four captions in one structured request. Panels that
    fail validation are regenerated one by one (tier 2), each up to
    `max_attempts` times, and finally replaced by the language's fixed
    placeholder. If tier 1 itself fails (transport, bad JSON, wrong shape),
    all four panels go through tier 2. Never raises for caption problems.
    """

    def __init__(
        self,
        generator: TextGenerator,
        *,
        rules: Optional[CaptionRules] = None,
        language: Optional[CaptionLanguage] = None,
        max_attempts: int = 5,
    ):
        self.generator = generator
        self.rules = rules or CaptionRules()
        self.language = language or HEBREW
        self.max_attempts = max_attempts

    # -- helpers ---------------------------------------------------------

    def normalize(self, text: str) -> str:
        return normalize_caption(text, max_chars=self.rules.max_chars)

    def placeholder(self, panel_id: PanelId) -> str:
        return self.normalize(self.language.placeholders[panel_id])

    def validate(self, caption: str, panel_id: PanelId):
        return validate_caption(caption, panel_id, rules=self.rules, language=self.language)

    def validate_all(self, captions: PanelCaptions):
        return validate_all(captions, rules=self.rules, language=self.language)

    # -- tiers -----------------------------------------------------------

    async def _generate_batch(self, page_id: str, scenes: Dict[PanelId, str], target_age: str, theme: str) -> Dict[PanelId, str]:
        prompt = build_batch_prompt(
            page_id=page_id, scenes=scenes, target_age=target_age, theme=theme,
            rules=self.rules, language=self.language,
        )
        data = await self.generator.generate_json(
            prompt,
            system=batch_system(self.language),
            schema_name="PanelCaptionsResponse",
            schema=batch_caption_json_schema(),
        )
        payload = BatchCaptionPayload.model_validate(data)
        return {pid: self.normalize(payload.panel_captions.get(pid)) for pid in PANEL_IDS}

    async def generate_single_panel(self, panel_id: PanelId, scene: str, target_age: str, theme: str) -> str:
        prompt = build_single_panel_prompt(
            panel_id=panel_id, scene=scene, target_age=target_age, theme=theme,
            rules=self.rules, language=self.language,
        )
        for attempt in range(1, self.max_attempts + 1):
            try:
                caption = self.normalize(await self.generator.generate_text(prompt, system=single_system(self.language)))
            except TextGenerationError as e:
                log.error(f"Panel {panel_id.value} attempt {attempt}/{self.max_attempts} error: {e}")
                continue

            result = self.validate(caption, panel_id)
            if result.valid:
                return caption
            log.warning(f"Panel {panel_id.value} attempt {attempt}/{self.max_attempts} failed: {result.errors}")

        log.warning(f"Panel {panel_id.value}: retries exhausted, using placeholder")
        return self.placeholder(panel_id)

    async def _repair(self, captions: Dict[PanelId, str], panel_ids, scenes, target_age, theme) -> None:
        panel_ids = list(panel_ids)
        repaired = await asyncio.gather(
            *(self.generate_single_panel(pid, scenes[pid], target_age, theme) for pid in panel_ids)
        )
        captions.update(zip(panel_ids, repaired))

    # -- public ------------------------------------------------------------

    async def generate_captions(
        self,
        page_id: str,
        panels: Iterable[PanelScene],
        target_age: str = "3-8",
        theme: str = "",
    ) -> PanelCaptions:
        scenes = scene_map(panels)

        try:
            captions = await self._generate_batch(page_id, scenes, target_age, theme)
        except (TextGenerationError, ValidationError) as e:
            log.error(f"Page {page_id}: batch caption request failed, generating panels one by one: {e}")
            captions = {}
            await self._repair(captions, PANEL_IDS, scenes, target_age, theme)
            return PanelCaptions.from_mapping(captions)

        result = self.validate_all(PanelCaptions.from_mapping(captions))
        if result.valid:
            log.info(f"Page {page_id}: all captions valid on first attempt")
            return PanelCaptions.from_mapping(captions)

        failed = [pid for pid in PANEL_IDS if not self.validate(captions[pid], pid).valid]
        log.warning(f"Page {page_id}: panels {[p.value for p in failed]} failed validation, retrying them: {result.errors}")
        await self._repair(captions, failed, scenes, target_age, theme)

        final = PanelCaptions.from_mapping(captions)
        check = self.validate_all(final)
        if check.valid:
            log.info(f"Page {page_id}: all captions valid after per-panel retry")
        else:
            log.warning(f"Page {page_id}: still invalid after retries, returning best effort: {check.errors}")
        return final
