"""Secondary text detector (PaddleOCR) producing percent-space TextElements.

Public API
----------
- :func:`extract_text_elements` — run OCR on a slide image
- :func:`ocr_results_to_elements` — convert raw engine output
- :func:`infer_font_size` — line height to font-size category
- :class:`OcrUnavailableError` — PaddleOCR is not installed
"""

from ._engine import OcrUnavailableError
from .extract import extract_text_elements, infer_font_size, ocr_results_to_elements

__all__ = [
    "OcrUnavailableError",
    "extract_text_elements",
    "infer_font_size",
    "ocr_results_to_elements",
]
