# comic_captions/logger.py
import logging
import sys
from typing import Optional
from comic_captions.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# follow the app level
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "asyncio")
# chatty client libraries; never below WARNING
CLIENT_LOGGERS = ("openai", "httpx", "PIL")

_configured = False


def _level(name: Optional[str]) -> int:
    return getattr(logging, (name or config.log_level).upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, fmt: str = LOG_FORMAT) -> None:
    """Set up the root logger once. LOG_LEVEL applies unless `level` is given."""
    global _configured
    if _configured:
        return

    value = _level(level)
    root = logging.getLogger()
    root.setLevel(value)

    handlers = root.handlers or [logging.StreamHandler(sys.stdout)]
    for handler in handlers:
        handler.setLevel(value)
        if handler.formatter is None:
            handler.setFormatter(logging.Formatter(fmt))
        if handler not in root.handlers:
            root.addHandler(handler)

    for name in SERVER_LOGGERS:
        logging.getLogger(name).setLevel(value)
    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(value, logging.WARNING))

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "comic_captions")
