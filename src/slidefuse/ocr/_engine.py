"""Shared PaddleOCR singleton for the secondary (geometric) text detector.

The engine is cached by model tier so that changing
``ocr_model_tier`` in :class:`~slidefuse.config.FusionConfig`
transparently returns a matching PaddleOCR instance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import FusionConfig

# Model-name lookup by tier.
_MODEL_TIERS: dict[str, tuple[str, str]] = {
    "mobile": ("PP-OCRv5_mobile_det", "en_PP-OCRv5_mobile_rec"),
    "server": ("PP-OCRv5_server_det", "en_PP-OCRv5_server_rec"),
}

# Cache: tier -> PaddleOCR instance.
_ocr_cache: dict[str, object] = {}


class OcrUnavailableError(RuntimeError):
    """Raised when the OCR engine cannot be imported."""


def _get_ocr(cfg: "FusionConfig | None" = None):
    """Return a lazily-initialised PaddleOCR recogniser for the configured tier."""
    tier = cfg.ocr_model_tier if cfg is not None else "mobile"
    if tier not in _MODEL_TIERS:
        tier = "mobile"

    if tier not in _ocr_cache:
        import os

        os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")
        try:
            from paddleocr import PaddleOCR
        except ImportError as exc:
            raise OcrUnavailableError(
                "paddleocr is not installed; install the 'ocr' extra"
            ) from exc

        det_model, rec_model = _MODEL_TIERS[tier]
        _ocr_cache[tier] = PaddleOCR(
            text_detection_model_name=det_model,
            text_recognition_model_name=rec_model,
            use_doc_orientation_classify=False,
            use_doc_unwarping=False,
            use_textline_orientation=False,
        )
    return _ocr_cache[tier]
