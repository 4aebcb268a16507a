# comic_captions/features/compose/router.py
from fastapi import APIRouter, HTTPException

from comic_captions.config import config
from comic_captions.exceptions import CompositionError, ImageLoadError
from comic_captions.logger import get_logger
from .schemas import ComposeRequest, ComposeResponse
from .service import compose_comic_page

log = get_logger(__name__)
router = APIRouter(prefix="/api/v1/compose", tags=["compose"])

@router.post("/comic-page", response_model=ComposeResponse)
def compose_comic_page_endpoint(req: ComposeRequest):
    options = req.to_options(
        caption_height_ratio=config.caption_height_ratio,
        padding_ratio=config.caption_padding_ratio,
        min_font_size=config.caption_min_font_size,
    )
    try:
        data_url = compose_comic_page(options)
    except ImageLoadError as e:
        log.warning(f"compose: image load failed: {e}")
        raise HTTPException(status_code=422, detail=f"Could not load image: {e}")
    except CompositionError as e:
        log.exception("compose: drawing failed")
        raise HTTPException(status_code=500, detail=f"Composition failed: {e}")
    return ComposeResponse(image_data_url=data_url, source=options.source.kind)
