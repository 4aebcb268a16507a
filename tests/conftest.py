# tests/conftest.py
import base64
import io
import os
import re
import tempfile

import pytest

# Keep job artifacts out of the package tree
os.environ.setdefault("OUTPUT_DIR", tempfile.mkdtemp(prefix="comic_captions_test_"))

from fastapi.testclient import TestClient
from PIL import Image

from comic_captions.dependencies import get_orchestrator
from comic_captions.exceptions import TextGenerationError
from comic_captions.features.captions.schemas import HEBREW, CaptionRules
from comic_captions.features.captions.service import CaptionOrchestrator
from comic_captions.main import app

# -------- Sample captions --------
VALID_HE = {
    "A": "הילד הקטן רץ מהר אל הגן הירוק",
    "B": "החתול השחור קופץ על הגדר הגבוהה",
    "C": "הילדה צוחקת בקול רם מול הים",
    "D": "כולם יושבים יחד ואוכלים עוגה מתוקה",
}

_PANEL_RE = re.compile(r"panel ([ABCD]) of a comic page")

def panel_of(prompt: str) -> str:
    """Which panel a single-panel prompt is about."""
    m = _PANEL_RE.search(prompt)
    assert m, "not a single-panel prompt"
    return m.group(1)

def batch_reply(captions: dict, page_id: str = "p1") -> dict:
    return {"pageId": page_id, "panelCaptions": dict(captions)}

# -------- Fake text generator --------
class FakeTextGenerator:
    """
    Scripted stand-in for the OpenAI generator.

    `json` / `text` are either a list of replies consumed in order or a
    callable(prompt) -> reply. A reply that is an Exception is raised.
    """

    def __init__(self, *, json=None, text=None):
        self.json = list(json) if isinstance(json, (list, tuple)) else json
        self.text = list(text) if isinstance(text, (list, tuple)) else text
        self.json_calls = []
        self.text_calls = []

    @staticmethod
    def _next(source, prompt):
        if callable(source):
            reply = source(prompt)
        elif source:
            reply = source.pop(0)
        else:
            reply = TextGenerationError("no scripted reply left")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_json(self, prompt, *, system, schema_name, schema):
        self.json_calls.append(prompt)
        return self._next(self.json, prompt)

    async def generate_text(self, prompt, *, system):
        self.text_calls.append(prompt)
        return self._next(self.text, prompt)

@pytest.fixture
def fake_generator():
    return FakeTextGenerator(json=[batch_reply(VALID_HE)])

@pytest.fixture
def orchestrator(fake_generator):
    return CaptionOrchestrator(fake_generator, rules=CaptionRules(), language=HEBREW, max_attempts=5)

# -------- Images --------
def make_png_bytes(size=(400, 400), color=(90, 140, 200)) -> bytes:
    im = Image.new("RGB", size, color)
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()

@pytest.fixture
def page_png_data_url() -> str:
    return "data:image/png;base64," + base64.b64encode(make_png_bytes()).decode("ascii")

def decode_data_url(data_url: str) -> Image.Image:
    header, b64 = data_url.split(",", 1)
    assert header == "data:image/png;base64"
    return Image.open(io.BytesIO(base64.b64decode(b64)))

# -------- Test client --------
@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
