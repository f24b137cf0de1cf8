"""
Detection post-processing algorithms.

- geometry: IoU, containment and guide region helpers
- suppression: greedy Non-Maximum Suppression
"""

from .geometry import contains_fully, guide_region, iou
from .suppression import is_sorted_by_score, non_max_suppression

__all__ = [
    "contains_fully",
    "guide_region",
    "iou",
    "is_sorted_by_score",
    "non_max_suppression",
]
