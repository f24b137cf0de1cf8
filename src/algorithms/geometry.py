"""
Box geometry helpers.

Shared by the suppression stage (IoU) and the decision policy (guide region
containment).
"""

from __future__ import annotations

from typing import Union

from models.detection import BoundingBox, NormalizedBox


Box = Union[NormalizedBox, BoundingBox]


def _edges(box: Box):
    """Return (top, left, bottom, right) for either box type."""
    if isinstance(box, NormalizedBox):
        return box.y_min, box.x_min, box.y_max, box.x_max
    return box.y1, box.x1, box.y2, box.x2


def iou(box_a: Box, box_b: Box) -> float:
    """
    Intersection-over-Union of two axis-aligned boxes.

    Both boxes must use the same coordinate space. Disjoint boxes (including
    boxes that only touch along an edge) give 0.0.
    """
    top_a, left_a, bottom_a, right_a = _edges(box_a)
    top_b, left_b, bottom_b, right_b = _edges(box_b)

    inter_top = max(top_a, top_b)
    inter_left = max(left_a, left_b)
    inter_bottom = min(bottom_a, bottom_b)
    inter_right = min(right_a, right_b)

    if inter_right < inter_left or inter_bottom < inter_top:
        return 0.0

    intersection = (inter_right - inter_left) * (inter_bottom - inter_top)
    union = box_a.area + box_b.area - intersection

    if union <= 0.0:
        # Zero-area boxes: identical points/segments overlap completely.
        return 1.0 if (top_a, left_a, bottom_a, right_a) == (top_b, left_b, bottom_b, right_b) else 0.0

    return max(0.0, min(1.0, intersection / union))


def contains_fully(inner: BoundingBox, outer: BoundingBox) -> bool:
    """True iff every edge of inner lies within outer (edges inclusive)."""
    return (
        inner.x1 >= outer.x1
        and inner.y1 >= outer.y1
        and inner.x2 <= outer.x2
        and inner.y2 <= outer.y2
    )


def guide_region(
    frame_width: float,
    frame_height: float,
    width_ratio: float = 0.6,
    height_ratio: float = 0.4,
) -> BoundingBox:
    """
    Centered guide rectangle in pixel coordinates.

    Args:
        frame_width: Width of the frame in pixels.
        frame_height: Height of the frame in pixels.
        width_ratio: Guide width as a fraction of the frame width.
        height_ratio: Guide height as a fraction of the frame height.
    """
    guide_w = frame_width * width_ratio
    guide_h = frame_height * height_ratio
    x = (frame_width - guide_w) / 2
    y = (frame_height - guide_h) / 2
    return BoundingBox.from_xywh(x, y, guide_w, guide_h)
