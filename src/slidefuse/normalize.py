"""Turn a vision model's JSON reply into typed slide elements.

Model replies are loosely structured: fenced in Markdown, wrapped in
prose, truncated mid-array, with boxes as dicts, lists, ``"12%"`` strings
or 0-1 fractions.  This module absorbs that variance so the geometric
core only ever sees :class:`~slidefuse.models.BoundingBox` values in
percent space.

Public API
----------
clean_json_string        – strip fences / prose around the JSON object
parse_detector_json      – json.loads with truncation repair
find_elements_array      – locate the element list inside a reply
normalize_element        – one raw element -> TextElement | VisualElement
parse_detector_response  – full reply -> (elements, background colour)
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from typing import Any, List, Optional, Tuple

from .models import (
    BoundingBox,
    DetectedElement,
    TextElement,
    TextStyle,
    VisualElement,
)

log = logging.getLogger(__name__)

DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_MISSING_CONFIDENCE = 0.5

_RE_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_RE_FENCE_CLOSE = re.compile(r"\s*```$")


class ResponseParseError(ValueError):
    """Raised when a detector reply is not JSON even after repair."""


# ── Text-level cleanup ─────────────────────────────────────────────────


def clean_json_string(text: Optional[str]) -> str:
    """Strip Markdown fences and surrounding prose from a JSON reply."""
    if not text:
        return "{}"
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _RE_FENCE_CLOSE.sub("", _RE_FENCE_OPEN.sub("", cleaned))

    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first : last + 1]
    return cleaned


def parse_detector_json(text: str) -> Any:
    """Parse *text*, closing a truncated element array if needed."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        log.warning("detector JSON parse failed, attempting repair: %s", exc)
        first_error = exc

    repaired = text.strip()
    if repaired.rfind("]") == -1 or repaired.rfind("]") < repaired.rfind("["):
        if repaired.endswith(","):
            repaired = repaired[:-1]
        repaired += "]}"
    elif repaired.rfind("}") == -1:
        repaired += "}"

    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        raise ResponseParseError(
            f"JSON parse error: {first_error}. Raw: {text[:100]}..."
        ) from first_error


def find_elements_array(obj: Any) -> list:
    """Return the list of raw elements inside a parsed reply."""
    if not obj:
        return []
    if isinstance(obj, list):
        return obj
    if not isinstance(obj, dict):
        return []
    for key in ("elements", "items", "layers"):
        if isinstance(obj.get(key), list):
            return obj[key]
    for val in obj.values():
        if isinstance(val, list) and val:
            head = val[0]
            if isinstance(head, dict) and (head.get("type") or head.get("box")):
                return val
    return []


# ── Field-level normalisation ──────────────────────────────────────────


def parse_coord(value: Any) -> float:
    """Coerce a coordinate to float; ``"12.5%"`` -> 12.5, garbage -> NaN."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace("%", "").strip())
        except ValueError:
            return math.nan
    return 0.0


def clamp_confidence(value: Any, default: float = DEFAULT_MISSING_CONFIDENCE) -> float:
    """Clamp a reported confidence into [0, 1]; missing -> *default*."""
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return max(0.0, min(1.0, float(value)))


def _normalize_box(raw_box: Any) -> BoundingBox:
    if not raw_box:
        return BoundingBox(top=10, left=10, width=20, height=20)
    if isinstance(raw_box, (list, tuple)):
        if len(raw_box) < 4:
            return BoundingBox(top=0, left=0, width=10, height=10)
        raw_box = dict(zip(("top", "left", "width", "height"), raw_box))
    if not isinstance(raw_box, dict):
        return BoundingBox(top=10, left=10, width=20, height=20)

    box = BoundingBox(
        top=parse_coord(raw_box.get("top")),
        left=parse_coord(raw_box.get("left")),
        width=parse_coord(raw_box.get("width")),
        height=parse_coord(raw_box.get("height")),
    )

    # All fields <= 1 means the model answered in 0-1 fractions.
    values = (box.top, box.left, box.width, box.height)
    if all(v <= 1 for v in values) and (box.width > 0 or box.height > 0):
        box = BoundingBox(*(v * 100 for v in values))
    return box


def _is_text_type(raw_type: Any) -> bool:
    if not isinstance(raw_type, str):
        return False
    upper = raw_type.upper()
    return "TEXT" in upper or "TXT" in upper


def normalize_element(
    raw: dict,
    index: int,
    missing_confidence: float = DEFAULT_MISSING_CONFIDENCE,
) -> DetectedElement:
    """Convert one raw element dict into a typed element.

    Anything not recognisably text becomes a visual element.
    """
    box = _normalize_box(raw.get("box"))
    el_id = raw.get("id") or f"el-{int(time.time() * 1000)}-{index}"
    confidence = clamp_confidence(raw.get("confidence"), missing_confidence)

    if _is_text_type(raw.get("type")):
        style = raw.get("style")
        return TextElement(
            id=el_id,
            content=raw.get("content") or "Detected Text",
            box=box,
            style=TextStyle.from_dict(style if isinstance(style, dict) else None),
            confidence=confidence,
        )
    return VisualElement(
        id=el_id,
        description=raw.get("description") or "Visual Element",
        box=box,
        original_box=BoundingBox(**box.to_dict()),
        confidence=confidence,
    )


def parse_detector_response(
    text: str,
    missing_confidence: float = DEFAULT_MISSING_CONFIDENCE,
) -> Tuple[List[DetectedElement], str]:
    """Parse a full layout-analysis reply.

    Returns
    -------
    (elements, background_color)
        Normalised elements in reply order and the slide background colour.
    """
    data = parse_detector_json(clean_json_string(text))
    raw_elements = find_elements_array(data)
    elements = [
        normalize_element(raw, idx, missing_confidence)
        for idx, raw in enumerate(raw_elements)
        if isinstance(raw, dict)
    ]
    background = DEFAULT_BACKGROUND
    if isinstance(data, dict) and data.get("backgroundColor"):
        background = data["backgroundColor"]
    return elements, background
