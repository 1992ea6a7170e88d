"""Two-detector fusion: vision-model elements + OCR text boxes.

The primary detector (a vision model) classifies regions and reads their
text but draws loose boxes.  The secondary detector (local OCR) only finds
text lines, with tight pixel-accurate boxes.  Fusion keeps the primary
semantics and borrows the secondary geometry.

Public API
----------
fuse_detections            – merge primary and secondary element lists
is_secondary_result_valid  – decide whether OCR output is worth fusing
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Union

from .geometry import calculate_iou
from .models import DetectedElement, ElementType, TextElement

log = logging.getLogger(__name__)

# IoU a vision/OCR pair needs to be treated as the same text line.
DEFAULT_FUSION_IOU_THRESHOLD = 0.3
# Confidence assumed for either source when it reports none.
DEFAULT_FUSION_CONFIDENCE = 0.8
# OCR finding more than this many times the model's text count is noise.
DEFAULT_SECONDARY_MAX_RATIO = 10.0

SOURCE_PRIMARY = "gemini"
SOURCE_FUSED = "fused"

# ── Data structures ────────────────────────────────────────────────────


@dataclass
class FusionOptions:
    """Matching knobs for :func:`fuse_detections`."""

    iou_threshold: float = DEFAULT_FUSION_IOU_THRESHOLD
    # When True, matched TEXT elements take the secondary (OCR) box.
    prefer_client_boxes: bool = True


@dataclass
class FusionStats:
    """Counters describing one fusion pass."""

    primary_count: int = 0
    secondary_count: int = 0
    matched_count: int = 0
    added_from_secondary: int = 0

    def to_dict(self) -> dict:
        return {
            "primary_count": self.primary_count,
            "secondary_count": self.secondary_count,
            "matched_count": self.matched_count,
            "added_from_secondary": self.added_from_secondary,
        }


@dataclass
class FusionMatch:
    """One accepted primary/secondary pairing."""

    primary_id: str
    secondary_id: str
    iou: float

    def to_dict(self) -> dict:
        return {
            "primary_id": self.primary_id,
            "secondary_id": self.secondary_id,
            "iou": round(self.iou, 4),
        }


@dataclass
class FusionResult:
    """Output of :func:`fuse_detections`."""

    elements: List[DetectedElement] = field(default_factory=list)
    source: str = SOURCE_PRIMARY  # "gemini" | "fused"
    stats: FusionStats = field(default_factory=FusionStats)
    matches: List[FusionMatch] = field(default_factory=list)

    def added_ids(self) -> List[str]:
        """Ids of elements appended from the secondary detector."""
        n = self.stats.added_from_secondary
        return [el.id for el in self.elements[len(self.elements) - n :]] if n else []

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "elements": [el.to_dict() for el in self.elements],
            "source": self.source,
            "stats": self.stats.to_dict(),
            "matches": [m.to_dict() for m in self.matches],
        }


# ── Matching helpers ───────────────────────────────────────────────────


def _resolve_options(options: Union[FusionOptions, float, None]) -> FusionOptions:
    """Accept a FusionOptions, None, or a bare number (legacy iou_threshold)."""
    if options is None:
        return FusionOptions()
    if isinstance(options, (int, float)) and not isinstance(options, bool):
        return FusionOptions(iou_threshold=float(options))
    return options


def _find_best_match(
    primary: TextElement,
    secondary: Sequence[TextElement],
    used: set,
    iou_threshold: float,
) -> tuple[int, float]:
    """Return ``(index, iou)`` of the best unused secondary match, or ``(-1, 0)``.

    Greedy: only strictly better IoU replaces the current best, so ties
    keep the earlier secondary element.
    """
    best_idx = -1
    best_iou = 0.0
    for idx, cand in enumerate(secondary):
        if idx in used:
            continue
        iou = calculate_iou(primary.box, cand.box)
        if iou > best_iou and iou >= iou_threshold:
            best_iou = iou
            best_idx = idx
    return best_idx, best_iou


def _merge_text(
    primary: TextElement, secondary: TextElement, prefer_client_boxes: bool
) -> TextElement:
    """Combine a matched pair, keeping the primary's semantics."""
    p_conf = (
        primary.confidence
        if primary.confidence is not None
        else DEFAULT_FUSION_CONFIDENCE
    )
    s_conf = (
        secondary.confidence
        if secondary.confidence is not None
        else DEFAULT_FUSION_CONFIDENCE
    )
    return replace(
        primary,
        box=secondary.box if prefer_client_boxes else primary.box,
        confidence=max(p_conf, s_conf),
        content=primary.content or secondary.content,
    )


def _overlaps_placed_text(
    candidate: TextElement,
    placed: Sequence[DetectedElement],
    iou_threshold: float,
) -> bool:
    """Return True if *candidate* overlaps a text element already in the output."""
    for el in placed:
        if el.type is not ElementType.TEXT:
            continue
        if calculate_iou(el.box, candidate.box) > iou_threshold:
            return True
    return False


# ── Public entry points ────────────────────────────────────────────────


def fuse_detections(
    primary: Sequence[DetectedElement],
    secondary: Sequence[TextElement],
    options: Union[FusionOptions, float, None] = None,
) -> FusionResult:
    """Merge vision-model detections with OCR text boxes.

    Parameters
    ----------
    primary : list[TextElement | VisualElement]
        Semantic detections; their order decides matching priority.
    secondary : list[TextElement]
        Geometric text detections (OCR lines).
    options : FusionOptions | float, optional
        Matching knobs.  A bare number is taken as ``iou_threshold``.

    Returns
    -------
    FusionResult
        Fused elements, a source tag, counters and the accepted matches.
    """
    opts = _resolve_options(options)
    iou_threshold = opts.iou_threshold

    fused: List[DetectedElement] = []
    matches: List[FusionMatch] = []
    used: set = set()

    for p_el in primary:
        # OCR never detects visuals, so there is nothing to fuse them with.
        if p_el.type is ElementType.VISUAL:
            fused.append(p_el)
            continue

        best_idx, best_iou = _find_best_match(p_el, secondary, used, iou_threshold)
        if best_idx < 0:
            fused.append(p_el)
            continue

        s_el = secondary[best_idx]
        used.add(best_idx)
        fused.append(_merge_text(p_el, s_el, opts.prefer_client_boxes))
        matches.append(FusionMatch(primary_id=p_el.id, secondary_id=s_el.id, iou=best_iou))
        log.debug("fusion: %s <- %s (iou=%.3f)", p_el.id, s_el.id, best_iou)

    added = 0
    stamp = int(time.time() * 1000)
    for idx, s_el in enumerate(secondary):
        if idx in used:
            continue
        if _overlaps_placed_text(s_el, fused, iou_threshold):
            continue
        fused.append(replace(s_el, id=f"ocr-added-{stamp}-{idx}"))
        added += 1

    if not secondary:
        source = SOURCE_PRIMARY
    elif matches or added:
        source = SOURCE_FUSED
    else:
        source = SOURCE_PRIMARY

    stats = FusionStats(
        primary_count=len(primary),
        secondary_count=len(secondary),
        matched_count=len(matches),
        added_from_secondary=added,
    )
    log.info(
        "fusion: %d primary + %d secondary -> %d elements (%d matched, %d added, source=%s)",
        stats.primary_count,
        stats.secondary_count,
        len(fused),
        stats.matched_count,
        stats.added_from_secondary,
        source,
    )
    return FusionResult(elements=fused, source=source, stats=stats, matches=matches)


def is_secondary_result_valid(
    secondary: Sequence[TextElement],
    primary_text_count: int,
    max_ratio: float = DEFAULT_SECONDARY_MAX_RATIO,
) -> bool:
    """Sanity-check OCR output before fusing it.

    Returns False when OCR found nothing although the model found text
    (the engine likely failed), or when OCR found more than *max_ratio*
    times the model's text count (likely hallucinating on a photo).
    """
    n = len(secondary)
    if n == 0 and primary_text_count > 0:
        return False
    if primary_text_count > 0 and n > primary_text_count * max_ratio:
        return False
    return True
