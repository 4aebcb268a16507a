# comic_captions/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}

def _env_csv(name: str, default: str = "*") -> List[str]:
    raw = os.getenv(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default

@dataclass(frozen=True)
class Config:
    # OpenAI
    openai_api_key: str
    openai_text_model: str
    openai_text_temperature: float
    # API / CORS
    allowed_origins: List[str]
    # Output handling
    base_output_dir: Path
    keep_outputs: bool
    # Logging
    log_level: str
    # Storage
    gcs_bucket: str
    http_timeout: int

    # Captions
    caption_language: str                   # "he" | "en"
    caption_rules_preset: str               # "strict" (65/5/10) | "lenient" (55/3/12)
    caption_max_chars: int | None           # overrides the preset when set
    caption_min_words: int | None
    caption_max_words: int | None
    caption_max_attempts: int               # per-panel repair attempts
    page_min_total_words: int               # word floor across A-D

    # Text generation transport retries
    llm_retries: int
    llm_retry_base_delay: float

    # Compositor
    caption_height_ratio: float
    caption_padding_ratio: float
    caption_font: str
    caption_min_font_size: int

    def caption_rules(self):
        # local import: the captions feature imports config
        from comic_captions.features.captions.schemas import CaptionRules

        base = CaptionRules.preset(self.caption_rules_preset)
        return CaptionRules(
            max_chars=self.caption_max_chars or base.max_chars,
            min_words=self.caption_min_words or base.min_words,
            max_words=self.caption_max_words or base.max_words,
        )

def _optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else None

def load_config() -> Config:
    return Config(
        openai_api_key = os.getenv("OPENAI_API_KEY", ""),
        openai_text_model = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini"),
        openai_text_temperature = _env_float("OPENAI_TEXT_TEMPERATURE", 0.4),
        allowed_origins = _env_csv("ALLOWED_ORIGINS", "*"),
        base_output_dir = Path(os.getenv("OUTPUT_DIR") or (Path(__file__).resolve().parent / "output")),
        keep_outputs = _env_bool("KEEP_OUTPUTS", True),
        log_level = os.getenv("LOG_LEVEL", "INFO"),
        gcs_bucket = os.getenv("GCS_BUCKET", ""),
        http_timeout = _env_int("HTTP_TIMEOUT", 30),
        caption_language = os.getenv("CAPTION_LANGUAGE", "he"),
        caption_rules_preset = os.getenv("CAPTION_RULES", "strict"),
        caption_max_chars = _optional_int("CAPTION_MAX_CHARS"),
        caption_min_words = _optional_int("CAPTION_MIN_WORDS"),
        caption_max_words = _optional_int("CAPTION_MAX_WORDS"),
        caption_max_attempts = _env_int("CAPTION_MAX_ATTEMPTS", 5),
        page_min_total_words = _env_int("PAGE_MIN_TOTAL_WORDS", 16),
        llm_retries = _env_int("LLM_RETRIES", 3),
        llm_retry_base_delay = _env_float("LLM_RETRY_BASE_DELAY", 1.0),
        caption_height_ratio = _env_float("CAPTION_HEIGHT_RATIO", 0.20),
        caption_padding_ratio = _env_float("CAPTION_PADDING_RATIO", 0.08),
        caption_font = os.getenv("CAPTION_FONT", "DejaVuSans-Bold.ttf"),
        caption_min_font_size = _env_int("CAPTION_MIN_FONT_SIZE", 10),
    )

# Load once and ensure output directory exists
config = load_config()
config.base_output_dir.mkdir(parents=True, exist_ok=True)
