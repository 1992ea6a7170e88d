"""Inpainting masks for removing detected text from a slide image.

Public API
----------
text_boxes           – boxes of the visible TEXT elements
render_inpaint_mask  – white-on-black "L" mask covering padded boxes
"""

from __future__ import annotations

import math
from typing import Iterable, List

from PIL import Image, ImageDraw

from ..geometry import expand_box
from ..models import BoundingBox, DetectedElement, ElementType


def text_boxes(elements: Iterable[DetectedElement]) -> List[BoundingBox]:
    """Return the boxes of text elements, in order."""
    return [el.box for el in elements if el.type is ElementType.TEXT]


def render_inpaint_mask(
    boxes: Iterable[BoundingBox],
    width: int,
    height: int,
    padding: float = 1.0,
) -> Image.Image:
    """Rasterise percent-space *boxes* into a ``width`` x ``height`` mask.

    Black (0) pixels are kept, white (255) pixels are to be inpainted.
    Each box is grown by *padding* percent points and snapped outward to
    whole pixels so that anti-aliased glyph edges are covered.
    """
    mask = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(mask)

    for box in boxes:
        padded = expand_box(box, padding)
        x0 = max(0, math.floor(padded.left * width / 100))
        y0 = max(0, math.floor(padded.top * height / 100))
        x1 = min(width, math.ceil(padded.right() * width / 100))
        y1 = min(height, math.ceil(padded.bottom() * height / 100))
        if x1 <= x0 or y1 <= y0:
            continue
        # PIL rectangles include the end pixel
        draw.rectangle((x0, y0, x1 - 1, y1 - 1), fill=255)

    return mask
