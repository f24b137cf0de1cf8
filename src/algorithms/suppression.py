"""
Greedy Non-Maximum Suppression.
"""

from __future__ import annotations

from typing import List, Sequence

from models.detection import Detection
from .geometry import iou


def is_sorted_by_score(detections: Sequence[Detection]) -> bool:
    """True if scores are non-increasing."""
    return all(
        detections[i].score >= detections[i + 1].score
        for i in range(len(detections) - 1)
    )


def non_max_suppression(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Keep the highest-scoring detections, dropping later ones that overlap.

    Walks the candidates in order; every still-active candidate suppresses
    each later candidate whose IoU with it exceeds iou_threshold. Survivors
    are returned in input order. O(n^2), n is bounded by the detector's slot
    count.

    Args:
        detections: Candidates sorted by score, highest first.
        iou_threshold: Overlap above which a later candidate is dropped.

    Raises:
        ValueError: If detections are not sorted by descending score.
    """
    if not is_sorted_by_score(detections):
        raise ValueError("non_max_suppression expects detections sorted by descending score")

    active = [True] * len(detections)
    selected: List[Detection] = []

    for i, candidate in enumerate(detections):
        if not active[i]:
            continue
        selected.append(candidate)
        for j in range(i + 1, len(detections)):
            if active[j] and iou(candidate.box, detections[j].box) > iou_threshold:
                active[j] = False

    return selected
