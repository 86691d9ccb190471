"""Pull JSON objects out of free-form oracle replies.

Oracle output is untrusted text: it may be wrapped in markdown fences,
prefixed with chatter, truncated by the token cap, or not JSON at all.
"""
from __future__ import annotations

import json
from typing import Any

from placement_engine.log import get_logger

log = get_logger(__name__)

_decoder = json.JSONDecoder()


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if "```json" in cleaned:
        start = cleaned.find("```json") + 7
        end = cleaned.find("```", start)
        if end != -1:
            return cleaned[start:end].strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        end = cleaned.rfind("```")
        if end != -1:
            cleaned = cleaned[:end]
    return cleaned.strip()


def extract_first_object(response: str | None) -> dict[str, Any] | None:
    """Return the first well-formed JSON object in ``response``, or None.

    Each ``{`` is tried in turn as the start of an object, so leading prose
    or a broken fragment before the real payload does not hide it.
    """
    if not response:
        return None
    text = strip_code_fences(response)
    pos = text.find("{")
    while pos != -1:
        try:
            obj, _ = _decoder.raw_decode(text, pos)
        except ValueError:
            pos = text.find("{", pos + 1)
            continue
        if isinstance(obj, dict):
            return obj
        pos = text.find("{", pos + 1)
    log.debug("No JSON object in oracle reply: %s", response[:200])
    return None
