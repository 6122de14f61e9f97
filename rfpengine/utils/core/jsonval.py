import json
import re
from typing import Any, Optional

from rfpengine.utils.core.errors import ExtractionError
from rfpengine.utils.core.log import get_logger

"""
Helpers for validating and correcting JSON from LLM output.
"""

_FENCE_OPEN = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```$")


def clean_model_json(raw: str) -> str:
    """Strip markdown code fences the models like to wrap JSON in."""
    text = (raw or "").strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def clean_malformed_json(raw: str, *, label: Optional[str] = None) -> str:
    """
    Best-effort scrub for common JSON glitches in model output.

    The heuristics are idempotent - running twice is safe.
    """
    logger = get_logger()

    try:
        # fix '}, ], {' breaks in arrays
        raw = re.sub(r"\},\s*\],\s*\{", r"}, {", raw)

        # drop trailing commas before ] or }
        raw = re.sub(r",\s*([\]}])", r"\1", raw)

        # replace raw control characters (0x00-0x1F) with space
        raw = re.sub(r"(?<!\\)[\x00-\x08\x0B\x0C\x0E-\x1F]", " ", raw)

        return raw
    except re.error as e:
        logger.debug(f"[clean_malformed_json] ({label or 'json'}) failed: {e}")
        return raw


def parse_model_json(raw: str, *, label: Optional[str] = None) -> dict:
    """
    Turn raw model text into a JSON object.

    Fences are stripped and known glitches scrubbed first. A list holding
    exactly one object is unwrapped.
    """
    logger = get_logger()
    cleaned = clean_malformed_json(clean_model_json(raw), label=label)
    if not cleaned:
        raise ExtractionError(f"{label or 'model'} returned empty content")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug(f"Failed to parse {label or 'model'} JSON:\n{cleaned}")
        raise ExtractionError(f"{label or 'model'} returned invalid JSON: {e}") from e

    if isinstance(data, list):
        if len(data) == 1 and isinstance(data[0], dict):
            data = data[0]
        else:
            raise ExtractionError("List must contain exactly one object.")

    if not isinstance(data, dict):
        raise ExtractionError(
            f"Invalid format from {label or 'model'}: expected a JSON object."
        )
    return data


def _coerce_json(value):
    """Return a Python object from storage: handles dict/list/str/bytes/None."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return json.loads(value.decode("utf-8"))
    if isinstance(value, str):
        return json.loads(value)
    return value
