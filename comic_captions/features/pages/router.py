# comic_captions/features/pages/router.py
from __future__ import annotations

import json
import os

from fastapi import APIRouter, BackgroundTasks, HTTPException

from comic_captions.config import config
from comic_captions.dependencies import Orchestrator
from comic_captions.features.captions.service import CaptionOrchestrator
from comic_captions.lib.jobs import load_manifest, manifest_path, save_manifest, seed_manifest_pending, set_cancelled
from comic_captions.lib.paths import job_dir, make_job_dir_with_id
from comic_captions.logger import get_logger
from .schemas import ComicPagesRequest
from .service import process_pages

router = APIRouter(prefix="/api/v1", tags=["pages"])
log = get_logger(__name__)


def _existing_job_dir(job_id: str) -> str:
    try:
        workdir = job_dir(job_id, create=False)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not os.path.exists(manifest_path(workdir)):
        raise HTTPException(404, f"unknown job_id {job_id}")
    return workdir


async def _run_job(job_id: str, req: ComicPagesRequest, orchestrator: CaptionOrchestrator, workdir: str) -> None:
    gcs_prefix = f"jobs/{job_id}" if req.upload and config.gcs_bucket else None
    try:
        await process_pages(
            job_id,
            req,
            orchestrator,
            manifest_file=manifest_path(workdir),
            workdir=workdir,
            gcs_prefix=gcs_prefix,
        )
    except Exception as e:
        # background task: nobody awaits us, so record the failure where the status endpoint can see it
        log.exception(f"[{job_id}] job crashed")
        mf = load_manifest(manifest_path(workdir))
        mf["final"] = {"status": "error", "error": str(e)}
        save_manifest(manifest_path(workdir), mf)


@router.post("/generate/comic/pages", status_code=202)
async def enqueue_comic_pages(req: ComicPagesRequest, background_tasks: BackgroundTasks, orchestrator: Orchestrator) -> dict:
    """
    Fire-and-forget. Creates the job dir, persists request.json and a
    pending manifest, then captions and composes the pages in the background.
    """
    log.info(f"enqueueing {len(req.pages)} page(s) for {req.title or 'untitled comic'}")
    if req.job_id:
        job_id = req.job_id
        try:
            workdir = job_dir(job_id)
        except ValueError as e:
            raise HTTPException(400, str(e))
    else:
        job_id, workdir = make_job_dir_with_id()

    # persist locally for debugging / resume
    with open(os.path.join(workdir, "request.json"), "w", encoding="utf-8") as f:
        json.dump(req.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    mf_path = manifest_path(workdir)
    if load_manifest(mf_path).get("cancelled"):
        log.info(f"[{job_id}] already cancelled; not re-running")
        return {"job_id": job_id, "cancelled": True}
    seed_manifest_pending(mf_path, [p.page_number or i + 1 for i, p in enumerate(req.pages)])

    background_tasks.add_task(_run_job, job_id, req, orchestrator, workdir)
    return {
        "job_id": job_id,
        "status_url": f"/api/v1/generate/comic/status/{job_id}",
        "stop_url": f"/api/v1/generate/comic/stop/{job_id}",
    }


@router.get("/generate/comic/status/{job_id}")
async def comic_job_status(job_id: str) -> dict:
    workdir = _existing_job_dir(job_id)
    return {"job_id": job_id, **load_manifest(manifest_path(workdir))}


@router.post("/generate/comic/stop/{job_id}")
async def stop_comic_job(job_id: str) -> dict:
    workdir = _existing_job_dir(job_id)
    mf_path = manifest_path(workdir)

    # a running job checks this flag before each page
    set_cancelled(mf_path, True)
    mf = load_manifest(mf_path)
    if mf.get("final") is None:
        mf["final"] = {"status": "cancelled"}
        save_manifest(mf_path, mf)

    return {"job_id": job_id, "cancelled": True}
