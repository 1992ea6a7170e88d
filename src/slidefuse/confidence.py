from __future__ import annotations

from typing import List, Sequence, TypeVar

DEFAULT_CONFIDENCE_THRESHOLD = 0.6

T = TypeVar("T")


def filter_by_confidence(
    elements: Sequence[T], threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
) -> List[T]:
    """Keep elements whose confidence is at least *threshold*.

    A missing confidence is trusted (treated as 1.0).
    """
    return [
        el
        for el in elements
        if (el.confidence if el.confidence is not None else 1.0) >= threshold
    ]
