"""Detection pipeline: gating, timing, and stage-result recording.

Provides the canonical flow from a vision model's layout reply to the
element list handed to the slide editor:

    normalize → filter → ocr → fusion

Every stage produces a :class:`StageResult`.  Gating logic is
centralised in :func:`gate` so that the CLI runner and tests behave
identically.  :func:`run_detection` performs no file I/O.
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Generator, List, Optional, Sequence, Tuple

from .confidence import filter_by_confidence
from .config import FusionConfig
from .dedup import deduplicate_elements
from .fusion import FusionOptions, FusionResult, fuse_detections, is_secondary_result_valid
from .geometry import is_valid_box
from .models import DetectedElement, ElementType, TextElement
from .normalize import parse_detector_response

if TYPE_CHECKING:
    from PIL import Image

logger = logging.getLogger("slidefuse.pipeline")

# ── Skip reasons (exhaustive enumeration) ──────────────────────────────


class SkipReason(str, Enum):
    """Why a pipeline stage was skipped."""

    disabled_by_config = "disabled_by_config"
    missing_inputs = "missing_inputs"
    secondary_rejected = "secondary_rejected"
    not_applicable = "not_applicable"


# ── Stage result ───────────────────────────────────────────────────────


@dataclass
class StageResult:
    """Outcome record for a single pipeline stage."""

    stage: str
    enabled: bool = False
    ran: bool = False
    status: str = "skipped"  # "success" | "skipped" | "failed"
    skip_reason: Optional[str] = None
    duration_ms: int = 0
    counts: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize stage result to a JSON-compatible dict."""
        d: Dict[str, Any] = {
            "stage": self.stage,
            "enabled": self.enabled,
            "ran": self.ran,
            "status": self.status,
        }
        if self.skip_reason is not None:
            d["skip_reason"] = self.skip_reason
        d["duration_ms"] = self.duration_ms
        if self.counts:
            d["counts"] = self.counts
        if self.inputs:
            d["inputs"] = self.inputs
        if self.outputs:
            d["outputs"] = self.outputs
        if self.error is not None:
            d["error"] = self.error
        return d


# ── Canonical gating function ──────────────────────────────────────────

STAGE_ORDER: List[str] = ["normalize", "filter", "ocr", "fusion"]


def gate(
    stage: str,
    cfg: FusionConfig,
    inputs: Dict[str, Any] | None = None,
) -> tuple[bool, Optional[str]]:
    """Decide whether *stage* should run.

    Parameters
    ----------
    stage : str
        One of :data:`STAGE_ORDER`.
    cfg : FusionConfig
        Effective configuration for the run.
    inputs : dict, optional
        Lightweight metadata about upstream outputs (e.g.
        ``{"has_image": True, "has_secondary": False}``).

    Returns
    -------
    (should_run, skip_reason)
    """
    if inputs is None:
        inputs = {}

    if stage in ("normalize", "filter"):
        return True, None

    if stage == "ocr":
        if not cfg.enable_hybrid_detection or not cfg.enable_ocr:
            return False, SkipReason.disabled_by_config.value
        if inputs.get("has_secondary"):
            # Caller already supplied secondary detections.
            return False, SkipReason.not_applicable.value
        if not inputs.get("has_image"):
            return False, SkipReason.missing_inputs.value
        return True, None

    if stage == "fusion":
        if not cfg.enable_hybrid_detection:
            return False, SkipReason.disabled_by_config.value
        if not inputs.get("has_secondary"):
            return False, SkipReason.missing_inputs.value
        if not inputs.get("secondary_valid", True):
            return False, SkipReason.secondary_rejected.value
        return True, None

    return False, SkipReason.not_applicable.value


def _stage_enabled(stage: str, cfg: FusionConfig) -> bool:
    if stage == "ocr":
        return cfg.enable_hybrid_detection and cfg.enable_ocr
    if stage == "fusion":
        return cfg.enable_hybrid_detection
    return True


# ── Stage context manager ──────────────────────────────────────────────


@contextmanager
def run_stage(
    stage: str,
    cfg: FusionConfig,
    inputs: Dict[str, Any] | None = None,
) -> Generator[StageResult, None, None]:
    """Context manager that wraps a pipeline stage with gating + timing.

    Usage::

        with run_stage("fusion", cfg, inputs) as sr:
            if sr.ran:
                # … do the work …
                sr.counts["matched_count"] = 3

    Failures are recorded on the StageResult and re-raised so the caller
    can decide fallback policy.
    """
    should_run, skip_reason = gate(stage, cfg, inputs)

    sr = StageResult(stage=stage, enabled=_stage_enabled(stage, cfg))
    if inputs:
        sr.inputs = inputs

    if not should_run:
        sr.skip_reason = skip_reason
        yield sr
        return

    sr.ran = True
    t0 = time.perf_counter()
    try:
        yield sr
        if sr.status not in ("success", "failed"):
            sr.status = "success"
    except Exception as exc:
        sr.status = "failed"
        sr.error = {
            "type": type(exc).__name__,
            "message": str(exc),
            "stack": traceback.format_exc(),
        }
        raise
    finally:
        sr.duration_ms = int((time.perf_counter() - t0) * 1000)


# ── Result container ───────────────────────────────────────────────────


@dataclass
class DetectionResult:
    """Structured result from :func:`run_detection` for a single slide."""

    elements: List[DetectedElement] = field(default_factory=list)
    background_color: str = "#ffffff"
    fusion: Optional[FusionResult] = None
    stages: Dict[str, StageResult] = field(default_factory=dict)
    raw_response: str = ""
    # Secondary text lines offered to fusion, after box validation.
    secondary: List[TextElement] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the editor's analysis-result shape."""
        return {
            "backgroundColor": self.background_color,
            "elements": [el.to_dict() for el in self.elements],
            "rawResponse": self.raw_response,
        }

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a lightweight summary suitable for JSON serialisation."""
        n_text = sum(1 for el in self.elements if el.type is ElementType.TEXT)
        d: Dict[str, Any] = {
            "background_color": self.background_color,
            "stages": {n: sr.to_dict() for n, sr in self.stages.items()},
            "counts": {
                "elements": len(self.elements),
                "text": n_text,
                "visual": len(self.elements) - n_text,
            },
        }
        if self.fusion is not None:
            d["fusion"] = {"source": self.fusion.source, **self.fusion.stats.to_dict()}
        return d


# ── Stage helpers ──────────────────────────────────────────────────────


def postprocess_elements(
    elements: Sequence[DetectedElement],
    cfg: FusionConfig,
) -> Tuple[List[DetectedElement], Dict[str, int]]:
    """Confidence filter, then box validity, then first-seen-wins dedup.

    Returns the surviving elements and per-step drop counts.
    """
    confident = filter_by_confidence(elements, cfg.confidence_threshold)
    valid = [el for el in confident if is_valid_box(el.box)]
    kept = deduplicate_elements(valid, cfg.dedup_iou)
    counts = {
        "input": len(elements),
        "dropped_low_confidence": len(elements) - len(confident),
        "dropped_invalid": len(confident) - len(valid),
        "dropped_duplicates": len(valid) - len(kept),
        "kept": len(kept),
    }
    return kept, counts


def _run_ocr_stage(
    result: DetectionResult,
    image: Optional["Image.Image"],
    secondary: Optional[List[TextElement]],
    cfg: FusionConfig,
) -> Optional[List[TextElement]]:
    """Stage 3: OCR the slide image when no secondary list was given."""
    inputs = {"has_image": image is not None, "has_secondary": secondary is not None}
    try:
        with run_stage("ocr", cfg, inputs) as sr:
            if sr.ran:
                from .ocr.extract import extract_text_elements

                secondary = extract_text_elements(image, cfg)
                sr.counts = {"text_lines": len(secondary)}
    except Exception:
        logger.warning(
            "OCR stage failed; continuing with vision-model elements only",
            exc_info=True,
        )
        secondary = None
    result.stages["ocr"] = sr
    return secondary


def _run_fusion_stage(
    result: DetectionResult,
    secondary: Optional[List[TextElement]],
    cfg: FusionConfig,
) -> None:
    """Stage 4: fuse the filtered elements with the secondary detections."""
    valid_secondary: Optional[List[TextElement]] = None
    secondary_ok = False
    if secondary is not None:
        valid_secondary = [el for el in secondary if is_valid_box(el.box)]
        result.secondary = valid_secondary
        n_text = sum(1 for el in result.elements if el.type is ElementType.TEXT)
        secondary_ok = is_secondary_result_valid(
            valid_secondary, n_text, cfg.secondary_max_ratio
        )

    inputs = {
        "has_secondary": valid_secondary is not None,
        "secondary_valid": secondary_ok,
    }
    with run_stage("fusion", cfg, inputs) as sr:
        if sr.ran:
            opts = FusionOptions(
                iou_threshold=cfg.fusion_iou_threshold,
                prefer_client_boxes=cfg.prefer_client_boxes,
            )
            fusion = fuse_detections(result.elements, valid_secondary, opts)
            result.fusion = fusion
            result.elements = fusion.elements
            sr.counts = fusion.stats.to_dict()
            sr.outputs = {"source": fusion.source}
    if sr.skip_reason == SkipReason.secondary_rejected.value:
        logger.warning(
            "secondary detections rejected (%d lines); keeping vision-model elements",
            len(valid_secondary or []),
        )
    result.stages["fusion"] = sr


# ── Public entry point ─────────────────────────────────────────────────


def run_detection(
    response: str,
    cfg: Optional[FusionConfig] = None,
    image: Optional["Image.Image"] = None,
    secondary: Optional[List[TextElement]] = None,
) -> DetectionResult:
    """Run the detection pipeline on one slide's layout-analysis reply.

    Parameters
    ----------
    response : str
        Raw text reply from the vision model.
    cfg : FusionConfig, optional
        Configuration; defaults to ``FusionConfig()``.
    image : PIL.Image.Image, optional
        Slide image; OCR'd when hybrid detection is on and *secondary* is
        not supplied.
    secondary : list[TextElement], optional
        Pre-computed secondary text detections.

    Returns
    -------
    DetectionResult

    Raises
    ------
    ResponseParseError
        When *response* cannot be parsed as JSON.
    """
    if cfg is None:
        cfg = FusionConfig()
    result = DetectionResult(raw_response=response)

    with run_stage("normalize", cfg) as sr:
        elements, background = parse_detector_response(response, cfg.missing_confidence)
        result.background_color = background
        sr.counts = {"elements": len(elements)}
    result.stages["normalize"] = sr

    with run_stage("filter", cfg) as sr:
        result.elements, sr.counts = postprocess_elements(elements, cfg)
    result.stages["filter"] = sr

    secondary = _run_ocr_stage(result, image, secondary, cfg)
    _run_fusion_stage(result, secondary, cfg)

    logger.info(
        "detection: %d elements (%s)",
        len(result.elements),
        ", ".join(f"{n}={s.status}" for n, s in result.stages.items()),
    )
    return result
