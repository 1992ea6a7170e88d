from __future__ import annotations

import logging
from typing import List, Sequence, TypeVar

from .geometry import calculate_iou

log = logging.getLogger(__name__)

# IoU above which a later detection duplicates an earlier one.
DEFAULT_DEDUP_IOU = 0.8

T = TypeVar("T")


def deduplicate_elements(elements: Sequence[T], threshold: float = DEFAULT_DEDUP_IOU) -> List[T]:
    """Drop elements whose box overlaps an earlier kept element.

    First seen wins regardless of confidence, and input order is kept.
    Sort by confidence beforehand if the best detection should survive.
    """
    kept: List[T] = []
    for el in elements:
        if any(calculate_iou(el.box, k.box) > threshold for k in kept):
            continue
        kept.append(el)

    dropped = len(elements) - len(kept)
    if dropped:
        log.debug("dedup: %d -> %d elements (iou > %.2f)", len(elements), len(kept), threshold)
    return kept
