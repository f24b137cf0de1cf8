"""
Render stage: draw the guide region, detections and status onto a frame.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from models.config import DEFAULT_CLASS_LABELS
from models.detection import BoundingBox
from models.result import DecisionSignal, FrameResult

# Colors (BGR)
COLOR_GUIDE = (0, 255, 255)  # Yellow
COLOR_BEST = (0, 255, 0)  # Green
COLOR_FRONT = (0, 0, 255)  # Red
COLOR_OTHER = (255, 0, 0)  # Blue
COLOR_TEXT = (255, 255, 255)

STATUS_TEXT = {
    DecisionSignal.NO_DETECTION: "No document detected",
    DecisionSignal.SEARCHING: "Searching for document front",
    DecisionSignal.MISPLACED: "Document detected, place it inside the guide",
    DecisionSignal.CONFIRMED: "Document front confirmed",
    DecisionSignal.ERROR: "Detection error",
}

FONT = cv2.FONT_HERSHEY_SIMPLEX


def _draw_dashed_rect(
    frame: np.ndarray,
    box: BoundingBox,
    color: Tuple[int, int, int],
    thickness: int = 2,
    dash: int = 10,
) -> None:
    x1, y1, x2, y2 = box.as_int_tuple()
    for x in range(x1, x2, dash * 2):
        cv2.line(frame, (x, y1), (min(x + dash, x2), y1), color, thickness)
        cv2.line(frame, (x, y2), (min(x + dash, x2), y2), color, thickness)
    for y in range(y1, y2, dash * 2):
        cv2.line(frame, (x1, y), (x1, min(y + dash, y2)), color, thickness)
        cv2.line(frame, (x2, y), (x2, min(y + dash, y2)), color, thickness)


class OverlayRenderer:
    """Draws FrameResults onto copies of the captured frames."""

    def __init__(self, class_labels: Optional[Dict[int, str]] = None, front_class_id: int = 0):
        self.class_labels = dict(class_labels or DEFAULT_CLASS_LABELS)
        self.front_class_id = front_class_id

    def label_for(self, class_id: int) -> str:
        return self.class_labels.get(class_id, f"class {class_id}")

    def render(self, frame: np.ndarray, result: FrameResult) -> np.ndarray:
        out = frame.copy()
        h, w = out.shape[:2]

        if result.decision.guide is not None:
            _draw_dashed_rect(out, result.decision.guide, COLOR_GUIDE, 2)

        for det in result.detections:
            box = det.box.to_pixels(w, h)
            x1, y1, x2, y2 = box.as_int_tuple()
            is_best = result.best is det
            if is_best:
                color = COLOR_BEST
            elif det.class_id == self.front_class_id:
                color = COLOR_FRONT
            else:
                color = COLOR_OTHER

            cv2.rectangle(out, (x1, y1), (x2, y2), color, 4 if is_best else 2)

            # Label with background, below the top edge when there is no room above
            label = f"{det.class_name or self.label_for(det.class_id)} {det.score * 100:.1f}%"
            (tw, th), _ = cv2.getTextSize(label, FONT, 0.5, 1)
            top = y1 - th - 6 if y1 > th + 6 else y1
            cv2.rectangle(out, (x1, top), (x1 + tw + 8, top + th + 6), color, -1)
            cv2.putText(out, label, (x1 + 4, top + th + 2), FONT, 0.5, COLOR_TEXT, 1)

        status = STATUS_TEXT.get(result.signal, result.signal.value)
        if result.error:
            status = f"{STATUS_TEXT[DecisionSignal.ERROR]}: {result.error}"
        status_color = COLOR_FRONT if result.signal in (DecisionSignal.NO_DETECTION, DecisionSignal.ERROR) else COLOR_BEST
        cv2.putText(out, status, (20, 40), FONT, 0.8, status_color, 2)

        return out
