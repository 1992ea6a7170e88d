"""Shared test fixtures for slidefuse."""

import json

import pytest

from slidefuse.config import FusionConfig
from slidefuse.models import BoundingBox, TextElement, TextStyle, VisualElement

# ── Helpers ────────────────────────────────────────────────────────────


def make_box(
    top: float = 10.0,
    left: float = 10.0,
    width: float = 20.0,
    height: float = 10.0,
) -> BoundingBox:
    """Create a percent-space BoundingBox with sane defaults."""
    return BoundingBox(top=top, left=left, width=width, height=height)


def make_text(
    el_id: str,
    top: float = 10.0,
    left: float = 10.0,
    width: float = 20.0,
    height: float = 10.0,
    content: str = "Hello",
    confidence: float | None = None,
    **style,
) -> TextElement:
    """Create a TextElement; extra keyword args go to TextStyle."""
    return TextElement(
        id=el_id,
        content=content,
        box=make_box(top, left, width, height),
        style=TextStyle(**style),
        confidence=confidence,
    )


def make_visual(
    el_id: str,
    top: float = 10.0,
    left: float = 10.0,
    width: float = 20.0,
    height: float = 10.0,
    description: str = "Icon",
    confidence: float | None = None,
) -> VisualElement:
    """Create a VisualElement with sane defaults."""
    return VisualElement(
        id=el_id,
        description=description,
        box=make_box(top, left, width, height),
        confidence=confidence,
    )


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def default_cfg() -> FusionConfig:
    """Return a default FusionConfig."""
    return FusionConfig()


@pytest.fixture
def hybrid_cfg() -> FusionConfig:
    """Return a FusionConfig with hybrid detection on."""
    return FusionConfig(enable_hybrid_detection=True)


@pytest.fixture
def slide_response() -> str:
    """A fenced vision-model reply with a title, a body line and an icon.

    Layout (percent):
        title  top=10 left=10 w=30 h=10
        body   top=40 left=10 w=50 h=6
        icon   top=40 left=70 w=15 h=15
    """
    payload = {
        "backgroundColor": "#102030",
        "elements": [
            {
                "id": "g-title",
                "type": "TEXT",
                "content": "Quarterly Results",
                "box": {"top": 10, "left": 10, "width": 30, "height": 10},
                "style": {"fontSize": "title", "fontWeight": "bold"},
                "confidence": 0.95,
            },
            {
                "id": "g-body",
                "type": "TEXT",
                "content": "Revenue grew 12%",
                "box": {"top": 40, "left": 10, "width": 50, "height": 6},
                "confidence": 0.9,
            },
            {
                "id": "g-icon",
                "type": "VISUAL",
                "description": "Bar chart icon",
                "box": {"top": 40, "left": 70, "width": 15, "height": 15},
                "confidence": 0.85,
            },
        ],
    }
    return "```json\n" + json.dumps(payload) + "\n```"
