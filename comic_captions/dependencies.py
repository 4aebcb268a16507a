"""FastAPI dependency injection for the caption pipeline."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from comic_captions.config import config
from comic_captions.features.captions.schemas import CaptionLanguage, CaptionRules, get_language
from comic_captions.features.captions.service import CaptionOrchestrator
from comic_captions.lib.openai_client import make_client
from comic_captions.lib.retry import RetryPolicy
from comic_captions.lib.text_generation import OpenAITextGenerator, TextGenerator


def get_caption_rules() -> CaptionRules:
    """Get the configured length / word-count rules."""
    return config.caption_rules()


def get_caption_language() -> CaptionLanguage:
    """Get the configured target language."""
    return get_language(config.caption_language)


# One client per process, built on first use rather than at import
@lru_cache(maxsize=1)
def get_text_generator() -> TextGenerator:
    """Get the OpenAI-backed text generator."""
    return OpenAITextGenerator(
        make_client(config),
        model=config.openai_text_model,
        temperature=config.openai_text_temperature,
        retry_policy=RetryPolicy(retries=config.llm_retries, base_delay=config.llm_retry_base_delay),
    )


def get_orchestrator(
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
    rules: Annotated[CaptionRules, Depends(get_caption_rules)],
    language: Annotated[CaptionLanguage, Depends(get_caption_language)],
) -> CaptionOrchestrator:
    """Get a CaptionOrchestrator with injected generator, rules and language."""
    return CaptionOrchestrator(
        generator,
        rules=rules,
        language=language,
        max_attempts=config.caption_max_attempts,
    )


# Type aliases for cleaner route signatures
Rules = Annotated[CaptionRules, Depends(get_caption_rules)]
Language = Annotated[CaptionLanguage, Depends(get_caption_language)]
Orchestrator = Annotated[CaptionOrchestrator, Depends(get_orchestrator)]
