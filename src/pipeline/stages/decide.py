"""
Decide stage: pick the best detection and decide whether capture is done.
"""

from __future__ import annotations

from typing import Optional, Sequence

from algorithms.geometry import contains_fully, guide_region
from models.config import DecisionConfig
from models.detection import Detection
from models.result import Decision, DecisionSignal


def select_best(detections: Sequence[Detection]) -> Optional[Detection]:
    """Highest-scoring detection; the earliest one wins ties."""
    best: Optional[Detection] = None
    for det in detections:
        if best is None or det.score > best.score:
            best = det
    return best


class DecisionPolicy:
    """
    Confirmation gate for a frame's detections.

    A frame confirms the session when its best detection is the front side,
    scores above confirm_threshold and lies fully inside the guide region
    (in pixel space of the current frame). A front-side detection that passes
    the score gate but sits outside the guide is reported as MISPLACED.
    """

    def __init__(self, config: DecisionConfig):
        self.config = config

    def evaluate(self, detections: Sequence[Detection], frame_width: int, frame_height: int) -> Decision:
        guide = guide_region(
            frame_width,
            frame_height,
            self.config.guide_width_ratio,
            self.config.guide_height_ratio,
        )

        best = select_best(detections)
        if best is None:
            return Decision(DecisionSignal.NO_DETECTION, guide=guide)

        qualifies = (
            best.class_id == self.config.front_class_id
            and best.score > self.config.confirm_threshold
        )
        if not qualifies:
            return Decision(DecisionSignal.SEARCHING, best=best, guide=guide)

        if contains_fully(best.box.to_pixels(frame_width, frame_height), guide):
            return Decision(DecisionSignal.CONFIRMED, best=best, guide=guide)

        return Decision(DecisionSignal.MISPLACED, best=best, guide=guide)
