# comic_captions/features/pages/service.py
from __future__ import annotations

import asyncio
import os
from typing import Dict, List, Optional

from comic_captions.config import config
from comic_captions.exceptions import CompositionError, ImageLoadError
from comic_captions.features.captions.schemas import PANEL_IDS, PanelCaptions, PanelScene
from comic_captions.features.captions.service import CaptionOrchestrator
from comic_captions.features.captions.splitting import extract_panel_scenes
from comic_captions.features.compose.schemas import CompositorOptions, caption_source
from comic_captions.features.compose.service import compose_comic_image
from comic_captions.lib.gcs_inventory import upload_to_gcs
from comic_captions.lib.jobs import is_cancelled, load_manifest, mark_page_status, set_final
from comic_captions.logger import get_logger

from .schemas import ComicPagesRequest, PageCaptions, PageRecord, PanelSource

log = get_logger(__name__)

# -------------------------------------------------------------------
# Caption assembly for one page
# -------------------------------------------------------------------

def _first_per_id(panels: List[PanelSource]) -> Dict[str, PanelSource]:
    out: Dict[str, PanelSource] = {}
    for p in panels:
        out.setdefault(p.id.value, p)
    return out

def _uses_placeholder(captions: PanelCaptions, orchestrator: CaptionOrchestrator) -> bool:
    return any(captions.get(pid) == orchestrator.placeholder(pid) for pid in PANEL_IDS)

def _verbose_fallback(orchestrator: CaptionOrchestrator) -> PanelCaptions:
    block = orchestrator.language.verbose_fallback
    return PanelCaptions.from_mapping({pid: orchestrator.normalize(block[pid]) for pid in PANEL_IDS})

async def ensure_page_captions(
    page: PageRecord,
    orchestrator: CaptionOrchestrator,
    *,
    page_id: str = "",
    target_age: str = "3-8",
    theme: str = "",
    min_total_words: int = 16,
) -> PageCaptions:
    """
    Decide the captions for one page, cheapest source first:
    persisted captions, then upstream per-panel captions (regenerated from
    their scenes when any fails validation), then scenes extracted from the
    combined image prompt. A page with none of those has no captions.

    Generated captions must add up to `min_total_words`; one more full
    generation is tried before the language's verbose fallback block is used.
    """
    page_id = page_id or str(page.page_number or "")

    if page.panel_captions is not None:
        log.debug(f"Page {page_id}: reusing persisted captions")
        return PageCaptions(page.panel_captions, "persisted")

    if page.panels:
        by_id = _first_per_id(page.panels)
        scenes = [PanelScene(id=pid, scene_prompt=by_id[pid.value].scene if pid.value in by_id else "") for pid in PANEL_IDS]
        upstream = PanelCaptions.from_mapping(
            {pid: orchestrator.normalize(by_id[pid.value].caption if pid.value in by_id else "") for pid in PANEL_IDS}
        )
        check = orchestrator.validate_all(upstream)
        if check.valid:
            captions, origin = upstream, "upstream"
        else:
            log.warning(f"Page {page_id}: upstream captions invalid, regenerating: {check.errors}")
            captions = await orchestrator.generate_captions(page_id, scenes, target_age, theme)
            origin = "regenerated"
    elif page.image_prompt and page.image_prompt.strip():
        scenes = extract_panel_scenes(page.image_prompt)
        captions = await orchestrator.generate_captions(page_id, scenes, target_age, theme)
        origin = "extracted"
    else:
        log.info(f"Page {page_id}: no caption source")
        return PageCaptions(None, "none")

    total = captions.total_words()
    if total >= min_total_words:
        return PageCaptions(captions, origin, degraded=_uses_placeholder(captions, orchestrator))

    log.warning(f"Page {page_id}: only {total} words across panels (< {min_total_words}), regenerating once")
    retry = await orchestrator.generate_captions(page_id, scenes, target_age, theme)
    if retry.total_words() >= min_total_words:
        return PageCaptions(retry, "regenerated", degraded=_uses_placeholder(retry, orchestrator))

    log.warning(f"Page {page_id}: still {retry.total_words()} words after regeneration, using fallback block")
    return PageCaptions(_verbose_fallback(orchestrator), "fallback", degraded=True)

# -------------------------------------------------------------------
# Batch job
# -------------------------------------------------------------------

def _write_png_atomic(image, filename: str) -> None:
    tmpname = f"{filename}.part"
    os.makedirs(os.path.dirname(filename) or ".", exist_ok=True)
    with open(tmpname, "wb") as f:
        image.save(f, format="PNG")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmpname, filename)

async def process_pages(
    job_id: str,
    req: ComicPagesRequest,
    orchestrator: CaptionOrchestrator,
    *,
    manifest_file: str,
    workdir: str,
    gcs_prefix: Optional[str] = None,
) -> List[str]:
    """
    Caption and compose pages one at a time, writing page-<n>.png into
    `workdir`. Cancellation is checked before each page; pages already
    written stay as they are. A page whose image cannot be loaded is marked
    failed and the batch moves on.
    """
    results: List[str] = []
    out_prefix = os.path.join(workdir, "page")
    failed = 0
    cancelled = False

    for idx, page in enumerate(req.pages):
        page_no = page.page_number or idx + 1

        # cancellation check
        if is_cancelled(manifest_file):
            log.info(f"[{job_id}] cancelled; stopping before page {page_no}")
            cancelled = True
            break

        mark_page_status(manifest_file, page_no, "running")

        caps = await ensure_page_captions(
            page,
            orchestrator,
            page_id=f"{job_id}:{page_no}",
            target_age=req.target_age,
            theme=req.theme,
            min_total_words=config.page_min_total_words,
        )
        options = CompositorOptions(
            image_source=page.image,
            source=caption_source(caps.captions, page.text),
            caption_height_ratio=config.caption_height_ratio,
            padding_ratio=config.caption_padding_ratio,
            min_font_size=config.caption_min_font_size,
        )
        caption_meta = {
            "captions": caps.captions.model_dump() if caps.captions else None,
            "caption_origin": caps.origin,
            "captions_degraded": caps.degraded,
        }

        try:
            image = await asyncio.to_thread(compose_comic_image, options)
        except ImageLoadError as e:
            log.error(f"[{job_id}] page {page_no}: image load failed: {e}")
            mark_page_status(manifest_file, page_no, "failed", {"error_kind": "image_load", "error": str(e), **caption_meta})
            failed += 1
            continue
        except CompositionError as e:
            log.exception(f"[{job_id}] page {page_no}: composition failed")
            mark_page_status(manifest_file, page_no, "failed", {"error_kind": "composition", "error": str(e), **caption_meta})
            failed += 1
            continue

        filename = f"{out_prefix}-{page_no}.png"
        _write_png_atomic(image, filename)
        results.append(filename)

        if not gcs_prefix:
            mark_page_status(manifest_file, page_no, "done", {"local": filename, **caption_meta})
            continue

        try:
            info = upload_to_gcs(filename, object_name=f"{gcs_prefix}/pages/page-{page_no}.png")
            local = filename
            if not config.keep_outputs:
                # the bucket copy is canonical once uploaded
                os.remove(filename)
                local = None
            mark_page_status(manifest_file, page_no, "done", {"local": local, "uploaded": True, "gcs": info, **caption_meta})
        except Exception as up_e:
            log.exception(f"GCS upload failed for page {page_no}: {up_e}")
            mark_page_status(
                manifest_file,
                page_no,
                "rendered",
                {"local": filename, "uploaded": False, "upload_error": str(up_e), **caption_meta},
            )

    status = "cancelled" if cancelled else ("completed_with_errors" if failed else "completed")
    if load_manifest(manifest_file).get("final") is None:
        set_final(manifest_file, {"status": status, "pages_written": len(results), "pages_failed": failed})
    log.info(f"[{job_id}] {status}: {len(results)} page(s) written, {failed} failed")
    return results
