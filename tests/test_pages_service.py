# tests/test_pages_service.py
import os
from dataclasses import replace

import pytest
from PIL import Image

from comic_captions.features.captions.schemas import HEBREW, CaptionRules, PanelCaptions, PanelId
from comic_captions.features.captions.service import CaptionOrchestrator
from comic_captions.features.pages import service as pages_service
from comic_captions.features.pages.schemas import ComicPagesRequest, PageRecord, PanelSource
from comic_captions.features.pages.service import ensure_page_captions, process_pages
from comic_captions.lib.jobs import load_manifest, manifest_path, seed_manifest_pending, set_cancelled

from conftest import VALID_HE, FakeTextGenerator, batch_reply

SHORT_HE = {
    "A": "הילד רץ אל הגן הירוק",
    "B": "החתול קופץ על הגדר הגבוהה",
    "C": "הילדה צוחקת מול הים הכחול",
    "D": "כולם אוכלים עוגה מתוקה יחד",
}  # 5 words each, valid, 20 words


def _orch(gen):
    return CaptionOrchestrator(gen, rules=CaptionRules(), language=HEBREW, max_attempts=2)


def _upstream(captions):
    return [PanelSource(id=pid, scene=f"scene {pid.value}", caption=captions[pid.value]) for pid in PanelId]


@pytest.mark.asyncio
async def test_persisted_captions_are_reused_unchanged():
    gen = FakeTextGenerator()
    page = PageRecord(image="x", panel_captions=PanelCaptions(A="a", B="b", C="c", D="d"), image_prompt="ignored")
    res = await ensure_page_captions(page, _orch(gen))
    assert res.origin == "persisted"
    assert res.captions.model_dump() == {"A": "a", "B": "b", "C": "c", "D": "d"}
    assert gen.json_calls == [] and gen.text_calls == []


@pytest.mark.asyncio
async def test_valid_upstream_captions_are_used_without_generation():
    gen = FakeTextGenerator()
    page = PageRecord(image="x", panels=_upstream(VALID_HE))
    res = await ensure_page_captions(page, _orch(gen))
    assert res.origin == "upstream"
    assert res.captions.model_dump() == VALID_HE
    assert not res.degraded
    assert gen.json_calls == []


@pytest.mark.asyncio
async def test_invalid_upstream_captions_regenerate_from_scenes():
    gen = FakeTextGenerator(json=[batch_reply(VALID_HE)])
    page = PageRecord(image="x", panels=_upstream(dict(VALID_HE, B="English caption leaked here")))
    res = await ensure_page_captions(page, _orch(gen))
    assert res.origin == "regenerated"
    assert res.captions.model_dump() == VALID_HE
    assert "scene B" in gen.json_calls[0]


@pytest.mark.asyncio
async def test_image_prompt_goes_through_scene_extraction():
    gen = FakeTextGenerator(json=[batch_reply(VALID_HE)])
    page = PageRecord(image="x", image_prompt="Panel 1: boy. Panel 2: cat. Panel 3: girl. Panel 4: cake.")
    res = await ensure_page_captions(page, _orch(gen))
    assert res.origin == "extracted"
    assert "Panel B: cat" in gen.json_calls[0]


@pytest.mark.asyncio
async def test_no_source_means_no_captions():
    gen = FakeTextGenerator()
    res = await ensure_page_captions(PageRecord(image="x", text="legacy text"), _orch(gen))
    assert res.origin == "none"
    assert res.captions is None


@pytest.mark.asyncio
async def test_low_word_count_regenerates_once():
    gen = FakeTextGenerator(json=[batch_reply(VALID_HE)])
    page = PageRecord(image="x", panels=_upstream(SHORT_HE))
    res = await ensure_page_captions(page, _orch(gen), min_total_words=21)
    assert res.origin == "regenerated"
    assert res.captions.model_dump() == VALID_HE
    assert len(gen.json_calls) == 1


@pytest.mark.asyncio
async def test_low_word_count_twice_uses_verbose_fallback():
    gen = FakeTextGenerator(json=[batch_reply(SHORT_HE)])
    page = PageRecord(image="x", panels=_upstream(SHORT_HE))
    res = await ensure_page_captions(page, _orch(gen), min_total_words=21)
    assert res.origin == "fallback"
    assert res.degraded
    assert res.captions.model_dump() == {pid.value: HEBREW.verbose_fallback[pid] for pid in PanelId}
    assert res.captions.total_words() >= 21


@pytest.mark.asyncio
async def test_placeholder_output_is_flagged_degraded():
    gen = FakeTextGenerator(json=[batch_reply(dict(VALID_HE, C="bad"))], text=lambda p: "still bad")
    page = PageRecord(image="x", image_prompt="boy cat girl cake")
    res = await ensure_page_captions(page, _orch(gen), min_total_words=16)
    assert res.captions.C == HEBREW.placeholders[PanelId.C]
    assert res.degraded


# -------- batch job --------

def _job(tmp_path, pages):
    workdir = str(tmp_path)
    mf = manifest_path(workdir)
    seed_manifest_pending(mf, range(1, len(pages) + 1))
    return ComicPagesRequest(job_id="job1", pages=pages), workdir, mf


@pytest.mark.asyncio
async def test_process_pages_writes_pages_and_manifest(tmp_path, page_png_data_url):
    pages = [
        PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE)),
        PageRecord(image=page_png_data_url, text="One. Two. Three. Four."),
    ]
    req, workdir, mf = _job(tmp_path, pages)
    files = await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir)

    assert files == [os.path.join(workdir, "page-1.png"), os.path.join(workdir, "page-2.png")]
    for f in files:
        assert Image.open(f).size == (400, 400)
    assert not any(name.endswith(".part") for name in os.listdir(workdir))

    manifest = load_manifest(mf)
    assert manifest["pages"]["1"]["status"] == "done"
    assert manifest["pages"]["1"]["captions"] == VALID_HE
    assert manifest["pages"]["1"]["caption_origin"] == "persisted"
    assert manifest["pages"]["2"]["captions"] is None
    assert manifest["final"]["status"] == "completed"


@pytest.mark.asyncio
async def test_image_load_failure_marks_page_and_continues(tmp_path, page_png_data_url):
    pages = [
        PageRecord(image="not an image ref!", panel_captions=PanelCaptions(**VALID_HE)),
        PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE)),
    ]
    req, workdir, mf = _job(tmp_path, pages)
    files = await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir)

    assert files == [os.path.join(workdir, "page-2.png")]
    manifest = load_manifest(mf)
    assert manifest["pages"]["1"]["status"] == "failed"
    assert manifest["pages"]["1"]["error_kind"] == "image_load"
    assert manifest["pages"]["1"]["captions_degraded"] is False
    assert manifest["pages"]["2"]["status"] == "done"
    assert manifest["final"]["status"] == "completed_with_errors"


@pytest.mark.asyncio
async def test_cancellation_stops_before_next_page(tmp_path, page_png_data_url, monkeypatch):
    pages = [PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE)) for _ in range(3)]
    req, workdir, mf = _job(tmp_path, pages)

    real_compose = pages_service.compose_comic_image

    def compose_then_cancel(options):
        set_cancelled(mf, True)
        return real_compose(options)

    monkeypatch.setattr(pages_service, "compose_comic_image", compose_then_cancel)
    files = await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir)

    assert files == [os.path.join(workdir, "page-1.png")]
    manifest = load_manifest(mf)
    assert manifest["pages"]["1"]["status"] == "done"
    assert manifest["pages"]["2"]["status"] == "pending"
    assert manifest["final"]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_upload_failure_keeps_page_rendered(tmp_path, page_png_data_url, monkeypatch):
    def no_bucket(*args, **kwargs):
        raise RuntimeError("GCS_BUCKET not configured")
    monkeypatch.setattr(pages_service, "upload_to_gcs", no_bucket)

    pages = [PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE))]
    req, workdir, mf = _job(tmp_path, pages)
    await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir, gcs_prefix="jobs/job1")

    entry = load_manifest(mf)["pages"]["1"]
    assert entry["status"] == "rendered"
    assert entry["uploaded"] is False
    assert os.path.exists(entry["local"])


@pytest.mark.asyncio
async def test_upload_success_marks_done(tmp_path, page_png_data_url, monkeypatch):
    uploads = []

    def fake_upload(path, *, object_name):
        uploads.append(object_name)
        return {"gs_uri": f"gs://bucket/{object_name}"}

    monkeypatch.setattr(pages_service, "upload_to_gcs", fake_upload)
    pages = [PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE))]
    req, workdir, mf = _job(tmp_path, pages)
    await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir, gcs_prefix="jobs/job1")

    assert uploads == ["jobs/job1/pages/page-1.png"]
    assert load_manifest(mf)["pages"]["1"]["gcs"]["gs_uri"] == "gs://bucket/jobs/job1/pages/page-1.png"


@pytest.mark.asyncio
async def test_uploaded_pages_are_removed_when_outputs_not_kept(tmp_path, page_png_data_url, monkeypatch):
    monkeypatch.setattr(pages_service, "config", replace(pages_service.config, keep_outputs=False))
    monkeypatch.setattr(pages_service, "upload_to_gcs", lambda path, *, object_name: {"gs_uri": f"gs://b/{object_name}"})
    pages = [PageRecord(image=page_png_data_url, panel_captions=PanelCaptions(**VALID_HE))]
    req, workdir, mf = _job(tmp_path, pages)
    await process_pages("job1", req, _orch(FakeTextGenerator()), manifest_file=mf, workdir=workdir, gcs_prefix="jobs/job1")

    entry = load_manifest(mf)["pages"]["1"]
    assert entry["status"] == "done"
    assert entry["local"] is None
    assert not os.path.exists(os.path.join(workdir, "page-1.png"))
