# comic_captions/features/captions/router.py
from fastapi import APIRouter

from comic_captions.dependencies import Language, Orchestrator, Rules
from .schemas import (
    ExtractScenesRequest,
    ExtractScenesResponse,
    GenerateCaptionsRequest,
    GenerateCaptionsResponse,
    NormalizeRequest,
    NormalizeResponse,
    PanelCaptions,
    ValidationResult,
)
from .splitting import extract_panel_scenes
from .validation import normalize_caption, validate_all

router = APIRouter(prefix="/api/v1/captions", tags=["captions"])

@router.post("/generate", response_model=GenerateCaptionsResponse)
async def generate_captions_endpoint(req: GenerateCaptionsRequest, orchestrator: Orchestrator):
    captions = await orchestrator.generate_captions(req.page_id, req.panels, req.target_age, req.theme)
    return GenerateCaptionsResponse(
        page_id=req.page_id,
        captions=captions,
        validation=orchestrator.validate_all(captions),
    )

@router.post("/validate", response_model=ValidationResult)
async def validate_captions_endpoint(captions: PanelCaptions, rules: Rules, language: Language):
    return validate_all(captions, rules=rules, language=language)

@router.post("/normalize", response_model=NormalizeResponse)
async def normalize_caption_endpoint(req: NormalizeRequest, rules: Rules):
    return NormalizeResponse(text=normalize_caption(req.text, max_chars=rules.max_chars))

@router.post("/extract-scenes", response_model=ExtractScenesResponse)
async def extract_scenes_endpoint(req: ExtractScenesRequest):
    return ExtractScenesResponse(panels=extract_panel_scenes(req.prompt))
