from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class ElementType(str, Enum):
    """Discriminant for the two kinds of detected slide element."""

    TEXT = "TEXT"
    VISUAL = "VISUAL"


@dataclass
class BoundingBox:
    """Axis-aligned rectangle in percent of the slide canvas (0-100).

    Anchored at ``(left, top)`` and extending right and down.
    """

    top: float
    left: float
    width: float
    height: float

    def right(self) -> float:
        """Right edge in percent."""
        return self.left + self.width

    def bottom(self) -> float:
        """Bottom edge in percent."""
        return self.top + self.height

    def area(self) -> float:
        """Area in square percent, clamped to zero."""
        return max(0.0, self.width) * max(0.0, self.height)

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "top": self.top,
            "left": self.left,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "BoundingBox":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            top=float(d["top"]),
            left=float(d["left"]),
            width=float(d["width"]),
            height=float(d["height"]),
        )


@dataclass
class TextStyle:
    """Categorical text styling; carried through unchanged by the core."""

    font_size: str = "medium"  # "small" | "medium" | "large" | "title"
    font_weight: str = "normal"  # "normal" | "bold"
    color: str = "#000000"
    alignment: str = "left"  # "left" | "center" | "right"

    def to_dict(self) -> dict:
        return {
            "fontSize": self.font_size,
            "fontWeight": self.font_weight,
            "color": self.color,
            "alignment": self.alignment,
        }

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "TextStyle":
        d = d or {}
        return cls(
            font_size=d.get("fontSize", "medium"),
            font_weight=d.get("fontWeight", "normal"),
            color=d.get("color", "#000000"),
            alignment=d.get("alignment", "left"),
        )


@dataclass
class TextElement:
    """A text region: readable characters with their content and style."""

    id: str
    content: str
    box: BoundingBox
    style: TextStyle = field(default_factory=TextStyle)
    confidence: Optional[float] = None  # 0-1; None when the detector gave none
    is_hidden: bool = False
    type: ElementType = field(default=ElementType.TEXT, init=False)

    def to_dict(self) -> dict:
        """Serialize to the editor's element shape."""
        d = {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "box": self.box.to_dict(),
            "style": self.style.to_dict(),
            "isHidden": self.is_hidden,
        }
        if self.confidence is not None:
            d["confidence"] = self.confidence
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "TextElement":
        return cls(
            id=d["id"],
            content=d.get("content", ""),
            box=BoundingBox.from_dict(d["box"]),
            style=TextStyle.from_dict(d.get("style")),
            confidence=d.get("confidence"),
            is_hidden=d.get("isHidden", False),
        )


@dataclass
class VisualElement:
    """A non-text region (icon, photo, chart, shape).

    ``original_box`` is the detector's box before any manual correction;
    it is used to re-derive crops from the source image.
    """

    id: str
    description: str
    box: BoundingBox
    original_box: Optional[BoundingBox] = None
    confidence: Optional[float] = None
    is_hidden: bool = False
    type: ElementType = field(default=ElementType.VISUAL, init=False)

    def __post_init__(self) -> None:
        if self.original_box is None:
            self.original_box = BoundingBox(**self.box.to_dict())

    def to_dict(self) -> dict:
        """Serialize to the editor's element shape."""
        d = {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "box": self.box.to_dict(),
            "originalBox": self.original_box.to_dict(),
            "isHidden": self.is_hidden,
        }
        if self.confidence is not None:
            d["confidence"] = self.confidence
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "VisualElement":
        original = d.get("originalBox")
        return cls(
            id=d["id"],
            description=d.get("description", ""),
            box=BoundingBox.from_dict(d["box"]),
            original_box=BoundingBox.from_dict(original) if original else None,
            confidence=d.get("confidence"),
            is_hidden=d.get("isHidden", False),
        )


DetectedElement = Union[TextElement, VisualElement]


def element_from_dict(d: dict) -> DetectedElement:
    """Deserialize a text or visual element, dispatching on ``type``."""
    kind = d.get("type")
    if kind == ElementType.TEXT.value:
        return TextElement.from_dict(d)
    if kind == ElementType.VISUAL.value:
        return VisualElement.from_dict(d)
    raise ValueError(f"unknown element type: {kind!r}")
