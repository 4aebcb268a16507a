# comic_captions/lib/gcs_inventory.py
import os
import re
import uuid
from typing import Tuple

from google.cloud import storage

from comic_captions.config import config
from comic_captions.exceptions import ComicCaptionsError
from comic_captions import logger

log = logger.get_logger(__name__)

_storage = None
def _client():
    global _storage
    if _storage is None:
        _storage = storage.Client()
    return _storage

_GS_RE = re.compile(r"^gs://([^/]+)/(.+)$")

def _parse_gs_uri(gs_uri: str) -> Tuple[str, str]:
    """
    Parse 'gs://bucket/key' -> (bucket, key)
    """
    m = _GS_RE.match(gs_uri)
    if not m:
        raise ValueError(f"Invalid gs:// URI: {gs_uri}")
    return m.group(1), m.group(2)

def download_gcs_object_bytes(gs_uri: str) -> bytes:
    """Download a 'gs://bucket/key' object into memory."""
    bucket_name, object_name = _parse_gs_uri(gs_uri)
    blob = _client().bucket(bucket_name).blob(object_name)
    return blob.download_as_bytes()

def upload_to_gcs(local_path: str, *, object_name: str | None = None, subdir: str = "pages") -> dict:
    if not config.gcs_bucket:
        raise ComicCaptionsError("GCS_BUCKET not configured")

    bucket = _client().bucket(config.gcs_bucket)

    if not object_name:
        object_name = f"{subdir}/{uuid.uuid4().hex}.png"

    blob = bucket.blob(object_name)
    blob.cache_control = "public, max-age=31536000"
    blob.upload_from_filename(local_path, content_type="image/png")
    log.debug(f"uploaded {os.path.basename(local_path)} -> gs://{config.gcs_bucket}/{object_name}")

    return {
        "bucket": config.gcs_bucket,
        "object": object_name,
        "gs_uri": f"gs://{config.gcs_bucket}/{object_name}",
        "content_type": "image/png",
    }
