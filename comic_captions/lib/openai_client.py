# comic_captions/lib/openai_client.py
from openai import AsyncOpenAI
from comic_captions.config import Config, config as default_config

def make_client(cfg: Config = default_config) -> AsyncOpenAI:
    """Build the client once at startup and pass it to whoever needs it."""
    return AsyncOpenAI(api_key=cfg.openai_api_key or None)
