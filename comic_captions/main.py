# comic_captions/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from comic_captions.config import config
from comic_captions.features.captions.router import router as captions_router
from comic_captions.features.compose.router import router as compose_router
from comic_captions.features.pages.router import router as pages_router
from comic_captions.logger import configure_logging

configure_logging()

app = FastAPI(title="Comic Captions API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    # credentials cannot be combined with a wildcard origin
    allow_credentials="*" not in config.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(captions_router)
app.include_router(compose_router)
app.include_router(pages_router)

@app.get("/healthz", tags=["health"])
async def healthz() -> dict:
    return {"ok": True}
