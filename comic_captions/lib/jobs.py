# comic_captions/lib/jobs.py
from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable


def manifest_path(workdir: str) -> str:
    return os.path.join(workdir, "manifest.json")


def load_manifest(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {"pages": {}, "cancelled": False, "final": None}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_manifest(path: str, manifest: Dict[str, Any]) -> None:
    # readers never see a half-written manifest
    tmp = f"{path}.part"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def seed_manifest_pending(path: str, page_numbers: Iterable[int]) -> None:
    mf = {
        "pages": {str(n): {"status": "pending"} for n in page_numbers},
        "cancelled": False,
        "final": None,
    }
    save_manifest(path, mf)


def mark_page_status(path: str, page_number: int, status: str, meta: Dict[str, Any] | None = None) -> None:
    mf = load_manifest(path)
    entry = mf.setdefault("pages", {}).setdefault(str(page_number), {})
    entry["status"] = status
    if meta:
        entry.update(meta)
    save_manifest(path, mf)


def is_cancelled(path: str) -> bool:
    return bool(load_manifest(path).get("cancelled"))


def set_cancelled(manifest_file: str, cancelled: bool = True) -> None:
    mf = load_manifest(manifest_file)
    mf["cancelled"] = bool(cancelled)
    save_manifest(manifest_file, mf)


def set_final(manifest_file: str, final: Dict[str, Any]) -> None:
    mf = load_manifest(manifest_file)
    mf["final"] = final
    save_manifest(manifest_file, mf)
