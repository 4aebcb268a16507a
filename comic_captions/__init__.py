# comic_captions/__init__.py
from .config import config
from .logger import get_logger
from .features.captions.schemas import CaptionRules, PanelCaptions, PanelId, PanelScene, ValidationResult
from .features.captions.service import CaptionOrchestrator
from .features.captions.splitting import extract_panel_scenes, split_into_four
from .features.captions.validation import normalize_caption, validate_all, validate_caption
from .features.compose.schemas import CompositorOptions, FreeTextCaptions, StructuredCaptions, caption_source
from .features.compose.service import compose_comic_page


__all__ = ["config",
           "get_logger",
           "CaptionRules",
           "PanelCaptions",
           "PanelId",
           "PanelScene",
           "ValidationResult",
           "CaptionOrchestrator",
           "extract_panel_scenes",
           "split_into_four",
           "normalize_caption",
           "validate_all",
           "validate_caption",
           "CompositorOptions",
           "FreeTextCaptions",
           "StructuredCaptions",
           "caption_source",
           "compose_comic_page",
           ]
