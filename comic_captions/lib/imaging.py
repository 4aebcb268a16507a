from __future__ import annotations
import base64
import binascii
import io
import os
import re
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, UnidentifiedImageError

from comic_captions.config import config
from comic_captions.exceptions import CompositionError, ImageLoadError
from comic_captions.lib.gcs_inventory import download_gcs_object_bytes
from comic_captions import logger

log = logger.get_logger(__name__)

_DATAURL_RE = re.compile(r"^data:([\w/+.\-]*)(?:;[\w=\-]+)*;base64,(.*)$", re.IGNORECASE | re.DOTALL)
_RAW_B64_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")

def _sniff_content_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
        return "image/gif"
    # WEBP: RIFF....WEBP
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return ""  # unknown

def _is_data_url(s: str) -> bool:
    # accept any data:*;base64, not only data:image/*
    return s.startswith("data:") and ";base64," in s

def _b64decode(payload: str) -> bytes:
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageLoadError(f"invalid base64 image payload: {e}") from e

def _https_to_gs(url: str) -> str | None:
    """
    Convert common GCS HTTPS forms to gs://bucket/key
    Works for:
      https://storage.googleapis.com/<bucket>/<key>[?...]
      https://<bucket>.storage.googleapis.com/<key>[?...]
      https://storage.cloud.google.com/<bucket>/<key>[?...]
    """
    u = urlparse(url)
    host = u.netloc.lower()
    path = unquote(u.path)

    if host in ("storage.googleapis.com", "storage.cloud.google.com"):
        # /bucket/key...
        parts = path.lstrip("/").split("/", 1)
        if len(parts) == 2 and all(parts):
            bucket, key = parts
            return f"gs://{bucket}/{key}"

    if host.endswith(".storage.googleapis.com"):
        # bucket.storage.googleapis.com/key...
        bucket = host.split(".storage.googleapis.com", 1)[0]
        key = path.lstrip("/")
        if bucket and key:
            return f"gs://{bucket}/{key}"
    return None

def _fetch_gs(gs_uri: str) -> bytes:
    try:
        return download_gcs_object_bytes(gs_uri)
    except Exception as e:
        raise ImageLoadError(f"gs fetch failed {gs_uri}: {e}") from e

def _fetch_http(url: str, timeout: Optional[float] = None) -> bytes:
    """
    Fetch over HTTP(S). An HTTP error on a GCS URL (usually an expired signed
    URL) is retried as gs://.
    """
    try:
        r = requests.get(url, timeout=timeout or config.http_timeout)
        r.raise_for_status()
        return r.content
    except requests.HTTPError as e:
        alt_gs = _https_to_gs(url)
        if not alt_gs:
            raise ImageLoadError(f"http fetch failed and no gs fallback for {url}: {e}") from e
        log.warning(f"http fetch failed {url} ({e}); retrying as {alt_gs}")
        return _fetch_gs(alt_gs)
    except requests.RequestException as e:
        raise ImageLoadError(f"http fetch failed {url}: {e}") from e

def load_image_bytes(source: str, *, timeout: Optional[float] = None) -> bytes:
    """
    Turn an image reference into raw bytes:
    - data URL (any mime): decode
    - gs://bucket/key: download from GCS
    - http(s) URL: GET, with gs:// fallback for GCS URLs
    - existing local path: read
    - raw base64: decode
    Anything else raises ImageLoadError.
    """
    ref = (source or "").strip()
    if not ref:
        raise ImageLoadError("empty image reference")

    if _is_data_url(ref):
        m = _DATAURL_RE.match(ref)
        if not m:
            raise ImageLoadError("malformed data URL")
        data = _b64decode(m.group(2))
    elif ref.startswith("gs://"):
        data = _fetch_gs(ref)
    elif ref.startswith("http://") or ref.startswith("https://"):
        data = _fetch_http(ref, timeout=timeout)
    elif os.path.exists(ref):
        with open(ref, "rb") as f:
            data = f.read()
    elif _RAW_B64_RE.fullmatch(ref):
        data = _b64decode(ref)
    else:
        # unsupported reference
        raise ImageLoadError(f"unsupported image reference: {ref[:60]}")

    if not data:
        raise ImageLoadError("image reference resolved to zero bytes")
    log.debug(f"loaded {len(data)} bytes ({_sniff_content_type(data) or 'unknown type'})")
    return data

def decode_image(data: bytes) -> Image.Image:
    """Decode bytes with Pillow into an RGBA image. Decode failure is a hard error."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            return im.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageLoadError(f"could not decode image: {e}") from e

def load_image(source: str, *, timeout: Optional[float] = None) -> Image.Image:
    return decode_image(load_image_bytes(source, timeout=timeout))

def to_png_data_url(image: Image.Image) -> str:
    try:
        buf = io.BytesIO()
        image.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise CompositionError(f"PNG encoding failed: {e}") from e
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
