"""Debug overlay for two-detector fusion results.

Public API
----------
draw_fusion_debug   – render a multi-layer debug overlay
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..models import BoundingBox, ElementType
from ..pipeline import DetectionResult

log = logging.getLogger(__name__)

_GREY = (180, 180, 180, 90)
_BLUE = (0, 120, 255, 180)
_GREEN = (0, 200, 0, 220)
_ORANGE = (255, 140, 0, 200)
_MAGENTA = (220, 0, 200, 220)


def draw_fusion_debug(
    result: DetectionResult,
    width: int,
    height: int,
    out_path: Path | str,
    background: Optional[Image.Image] = None,
) -> None:
    """Render a debug overlay showing how detections were fused.

    Colour key
    ----------
    * **Light grey** – every secondary (OCR) line offered to fusion
      (``result.secondary``).
    * **Blue outline** – visual elements.
    * **Green box + label** – text elements matched with an OCR line.
    * **Orange outline** – text elements with no OCR match.
    * **Magenta box + label** – OCR lines added as new text elements.
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if background is not None:
        base = background.copy().convert("RGBA")
        if base.size != (width, height):
            base = base.resize((width, height), Image.LANCZOS)
    else:
        base = Image.new("RGBA", (width, height), (255, 255, 255, 255))

    overlay = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    try:
        font = ImageFont.truetype("arial.ttf", max(10, height // 60))
    except OSError:
        font = ImageFont.load_default()

    def _rect(b: BoundingBox) -> Tuple[float, float, float, float]:
        """Percent-space box to pixel rectangle."""
        return (
            b.left * width / 100,
            b.top * height / 100,
            b.right() * width / 100,
            b.bottom() * height / 100,
        )

    matched_ids = set()
    added_ids = set()
    if result.fusion is not None:
        matched_ids = {m.primary_id for m in result.fusion.matches}
        added_ids = set(result.fusion.added_ids())

    # Layer 1: raw OCR lines
    for s_el in result.secondary:
        draw.rectangle(_rect(s_el.box), outline=_GREY, width=1)

    # Layer 2: final elements coloured by provenance
    for el in result.elements:
        r = _rect(el.box)
        if el.type is ElementType.VISUAL:
            draw.rectangle(r, outline=_BLUE, width=2)
        elif el.id in added_ids:
            draw.rectangle(r, outline=_MAGENTA, width=2)
            draw.text((r[0], r[1] - 12), el.content[:30], fill=_MAGENTA, font=font)
        elif el.id in matched_ids:
            draw.rectangle(r, outline=_GREEN, width=2)
            draw.text((r[0], r[1] - 12), el.content[:30], fill=_GREEN, font=font)
        else:
            draw.rectangle(r, outline=_ORANGE, width=2)

    out = Image.alpha_composite(base, overlay)
    out.convert("RGB").save(str(out_path))
    log.info("fusion overlay written to %s", out_path)
