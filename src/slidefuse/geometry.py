"""Pure geometry over percent-space boxes: validity, IoU, padding.

Public API
----------
is_valid_box    – reject off-canvas boxes and detector slivers
calculate_iou   – intersection-over-union of two boxes
expand_box      – grow a box symmetrically, clamped to the canvas
"""

from __future__ import annotations

import math

from .models import BoundingBox

# Canvas extent in percent on each axis.
CANVAS_EXTENT = 100.0
# Boxes this thin (percent of the canvas) or thinner are detector noise.
MIN_BOX_SIZE = 0.5


def _is_finite(box: BoundingBox) -> bool:
    return all(math.isfinite(v) for v in (box.top, box.left, box.width, box.height))


def is_valid_box(box: BoundingBox) -> bool:
    """Return True if *box* lies on the canvas and is larger than a sliver.

    Non-finite fields (NaN from an unparseable coordinate, inf) make the
    box invalid.
    """
    if not _is_finite(box):
        return False
    return (
        0.0 <= box.top <= CANVAS_EXTENT
        and 0.0 <= box.left <= CANVAS_EXTENT
        and MIN_BOX_SIZE < box.width <= CANVAS_EXTENT
        and MIN_BOX_SIZE < box.height <= CANVAS_EXTENT
        and box.top + box.height <= CANVAS_EXTENT
        and box.left + box.width <= CANVAS_EXTENT
    )


def calculate_iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection-over-union of two axis-aligned boxes.

    Boxes that only share an edge score exactly 0.
    """
    if not (_is_finite(a) and _is_finite(b)):
        return 0.0

    x1 = max(a.left, b.left)
    y1 = max(a.top, b.top)
    x2 = min(a.right(), b.right())
    y2 = min(a.bottom(), b.bottom())

    if x2 <= x1 or y2 <= y1:
        return 0.0

    inter = (x2 - x1) * (y2 - y1)
    union = a.area() + b.area() - inter
    return inter / union if union > 0 else 0.0


def expand_box(box: BoundingBox, padding: float = 0.5) -> BoundingBox:
    """Grow *box* by *padding* percent points per side, clamped to the canvas.

    Used to pull blur and shadow margins around text into an inpainting
    region.
    """
    top = max(0.0, box.top - padding)
    left = max(0.0, box.left - padding)
    return BoundingBox(
        top=top,
        left=left,
        width=min(CANVAS_EXTENT - left, box.width + padding * 2),
        height=min(CANVAS_EXTENT - top, box.height + padding * 2),
    )
