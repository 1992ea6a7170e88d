"""Secondary detector – PaddleOCR text lines as percent-space TextElements.

Public API
----------
infer_font_size          – bucket a line height into a font-size category
ocr_results_to_elements  – convert raw PaddleOCR output to TextElements
extract_text_elements    – run the OCR engine on a slide image
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List

from PIL import Image

from ..config import FusionConfig
from ..models import BoundingBox, TextElement, TextStyle

log = logging.getLogger(__name__)


def infer_font_size(height_px: float, image_height: float) -> str:
    """Map a text line's pixel height to the editor's font-size categories."""
    height_pct = height_px / image_height * 100
    if height_pct > 8:
        return "title"
    if height_pct > 5:
        return "large"
    if height_pct > 3:
        return "medium"
    return "small"


def _result_field(page_result: Any, name: str):
    """Read *name* from a dict-like or attribute-style OCRResult."""
    if hasattr(page_result, "get"):
        return page_result.get(name)
    return getattr(page_result, name, None)


def ocr_results_to_elements(
    results: Iterable[Any],
    image_width: int,
    image_height: int,
    min_conf: float = 0.6,
) -> List[TextElement]:
    """Convert PaddleOCR page results into TextElements in percent space.

    Blank lines and lines scoring at or below *min_conf* are dropped.  Box
    fields are pixel extents divided by the image size, times 100.
    """
    stamp = int(time.time() * 1000)
    elements: List[TextElement] = []

    for page_result in results:
        polys = _result_field(page_result, "dt_polys")
        texts = _result_field(page_result, "rec_texts")
        scores = _result_field(page_result, "rec_scores")
        if polys is None or texts is None or scores is None:
            continue

        for poly, text, conf in zip(polys, texts, scores):
            text = (text or "").strip()
            if not text or conf <= min_conf:
                continue

            # poly is [[x0,y0],[x1,y1],[x2,y2],[x3,y3]] in image pixels
            xs = [float(p[0]) for p in poly]
            ys = [float(p[1]) for p in poly]
            x0, x1 = min(xs), max(xs)
            y0, y1 = min(ys), max(ys)

            elements.append(
                TextElement(
                    id=f"ocr-{stamp}-{len(elements)}",
                    content=text,
                    box=BoundingBox(
                        top=y0 / image_height * 100,
                        left=x0 / image_width * 100,
                        width=(x1 - x0) / image_width * 100,
                        height=(y1 - y0) / image_height * 100,
                    ),
                    style=TextStyle(font_size=infer_font_size(y1 - y0, image_height)),
                    confidence=float(conf),
                )
            )

    return elements


def extract_text_elements(image: Image.Image, cfg: FusionConfig) -> List[TextElement]:
    """Run OCR on a slide image and return its text lines.

    Raises
    ------
    OcrUnavailableError
        When PaddleOCR is not installed.
    """
    import numpy as np

    from ._engine import _get_ocr

    ocr = _get_ocr(cfg)

    # PaddleOCR needs 3 channels
    if image.mode != "RGB":
        image = image.convert("RGB")
    img_w, img_h = image.size

    t0 = time.perf_counter()
    results = ocr.predict(np.array(image))
    elements = ocr_results_to_elements(results, img_w, img_h, cfg.ocr_min_confidence)
    log.info(
        "OCR: %d text lines from %dx%d px in %.1fs",
        len(elements),
        img_w,
        img_h,
        time.perf_counter() - t0,
    )
    return elements
