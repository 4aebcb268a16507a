# comic_captions/lib/json_tools.py
import json
import re

from comic_captions.exceptions import MalformedResponseError

def extract_json_block(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s)
    try:
        json.loads(s)
        return s
    except ValueError:
        pass
    m = re.search(r"\{.*\}", s, flags=re.DOTALL)
    return m.group(0) if m else s

def loads_object(text: str) -> dict:
    """Parse a model reply that should hold one JSON object."""
    try:
        data = json.loads(extract_json_block(text or ""))
    except ValueError as e:
        raise MalformedResponseError(f"model did not return valid JSON: {e}; raw: {text[:200]!r}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(f"expected a JSON object, got {type(data).__name__}")
    return data

def strip_code_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        s = re.sub(r"^```\w*\s*", "", s)
        s = re.sub(r"\s*```$", "", s)
    return s.strip()
