"""Detection post-processing and two-detector fusion for slide layouts.

Frequently-used symbols are re-exported here for convenience.
For specialised imports (response repair helpers, OCR conversion,
fusion internals, etc.) import directly from the relevant
submodule, e.g.::

    from slidefuse.normalize import clean_json_string
    from slidefuse.ocr.extract import ocr_results_to_elements
    from slidefuse.export.mask import render_inpaint_mask
"""

# ── Core models & config ──────────────────────────────────────────────

from .config import ConfigValidationError, FusionConfig
from .confidence import filter_by_confidence
from .dedup import deduplicate_elements
from .export.mask import render_inpaint_mask, text_boxes
from .export.overlay import draw_fusion_debug
from .fusion import (
    FusionMatch,
    FusionOptions,
    FusionResult,
    FusionStats,
    fuse_detections,
    is_secondary_result_valid,
)
from .geometry import calculate_iou, expand_box, is_valid_box
from .models import (
    BoundingBox,
    DetectedElement,
    ElementType,
    TextElement,
    TextStyle,
    VisualElement,
    element_from_dict,
)
from .normalize import ResponseParseError, parse_detector_response
from .ocr import OcrUnavailableError, extract_text_elements
from .pipeline import (
    DetectionResult,
    SkipReason,
    StageResult,
    postprocess_elements,
    run_detection,
)

__all__ = [
    # Models & config
    "FusionConfig",
    "ConfigValidationError",
    "BoundingBox",
    "ElementType",
    "TextStyle",
    "TextElement",
    "VisualElement",
    "DetectedElement",
    "element_from_dict",
    # Geometry & filtering
    "is_valid_box",
    "calculate_iou",
    "expand_box",
    "deduplicate_elements",
    "filter_by_confidence",
    # Fusion
    "FusionOptions",
    "FusionStats",
    "FusionMatch",
    "FusionResult",
    "fuse_detections",
    "is_secondary_result_valid",
    # Normalisation
    "ResponseParseError",
    "parse_detector_response",
    # OCR
    "OcrUnavailableError",
    "extract_text_elements",
    # Pipeline
    "DetectionResult",
    "SkipReason",
    "StageResult",
    "postprocess_elements",
    "run_detection",
    # Export
    "draw_fusion_debug",
    "render_inpaint_mask",
    "text_boxes",
]
