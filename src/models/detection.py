"""
Detection models for document detection results.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)


@dataclass(frozen=True)
class NormalizedBox:
    """
    A box in canonical detector order (y_min, x_min, y_max, x_max).

    Coordinates are fractions of the frame dimensions.
    """
    y_min: float
    x_min: float
    y_max: float
    x_max: float

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_valid(self) -> bool:
        """Finite coordinates with y_min <= y_max and x_min <= x_max."""
        coords = self.as_tuple()
        if not all(math.isfinite(c) for c in coords):
            return False
        return self.y_min <= self.y_max and self.x_min <= self.x_max

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (y_min, x_min, y_max, x_max) tuple."""
        return (self.y_min, self.x_min, self.y_max, self.x_max)

    def clipped(self) -> "NormalizedBox":
        """Clamp every coordinate to [0, 1]."""
        return NormalizedBox(*(min(1.0, max(0.0, c)) for c in self.as_tuple()))

    def to_pixels(self, width: float, height: float) -> BoundingBox:
        """Project onto a frame of the given pixel size."""
        return BoundingBox(
            x1=self.x_min * width,
            y1=self.y_min * height,
            x2=self.x_max * width,
            y2=self.y_max * height,
        )

    @classmethod
    def from_sequence(cls, values, box_order: str = "yxyx") -> "NormalizedBox":
        """
        Build from four raw coordinates in the given axis order.

        Args:
            values: Four numbers as emitted by a detector.
            box_order: "yxyx" for (y_min, x_min, y_max, x_max) or
                "xyxy" for (x_min, y_min, x_max, y_max).
        """
        a, b, c, d = (float(v) for v in values)
        if box_order == "yxyx":
            return cls(y_min=a, x_min=b, y_max=c, x_max=d)
        if box_order == "xyxy":
            return cls(y_min=b, x_min=a, y_max=d, x_max=c)
        raise ValueError(f"Unknown box order: {box_order!r}")


@dataclass(frozen=True)
class Detection:
    """
    A single document detection.

    Attributes:
        box: Normalized box in canonical order.
        score: Detection confidence score (0-1).
        class_id: Canonical class ID (0 = front, 1 = back).
        class_name: Optional human-readable class name.
    """
    box: NormalizedBox
    score: float
    class_id: int
    class_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation used for worker messages and the web API."""
        return {
            "box": list(self.box.as_tuple()),
            "score": self.score,
            "class_id": self.class_id,
            "class_name": self.class_name,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Detection":
        return cls(
            box=NormalizedBox(*(float(v) for v in d["box"])),
            score=float(d["score"]),
            class_id=int(d["class_id"]),
            class_name=d.get("class_name"),
        )


def detections_to_dicts(detections: List[Detection]) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in detections]


def detections_from_dicts(items: List[Dict[str, Any]]) -> List[Detection]:
    return [Detection.from_dict(d) for d in items or []]
