"""
Per-cycle result models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .detection import BoundingBox, Detection


class SessionPhase(str, Enum):
    """Capture session states."""
    SCANNING = "scanning"
    CONFIRMED = "confirmed"


class DecisionSignal(str, Enum):
    """Outcome of the decision policy for one frame."""
    NO_DETECTION = "no_detection"
    SEARCHING = "searching"
    MISPLACED = "misplaced"
    CONFIRMED = "confirmed"
    ERROR = "error"


@dataclass(frozen=True)
class Decision:
    """
    Decision policy output.

    Attributes:
        signal: What the frame means for the session.
        best: Highest-scoring detection, if any.
        guide: Guide region in pixel coordinates of the evaluated frame.
    """
    signal: DecisionSignal
    best: Optional[Detection] = None
    guide: Optional[BoundingBox] = None

    @property
    def confirmed(self) -> bool:
        return self.signal is DecisionSignal.CONFIRMED


@dataclass
class FrameResult:
    """Everything produced by one inference cycle."""
    frame_id: int
    detections: List[Detection] = field(default_factory=list)
    decision: Decision = field(default_factory=lambda: Decision(DecisionSignal.NO_DETECTION))
    error: Optional[str] = None
    latency_ms: Optional[float] = None

    @property
    def best(self) -> Optional[Detection]:
        return self.decision.best

    @property
    def signal(self) -> DecisionSignal:
        return self.decision.signal

    @property
    def confirmed(self) -> bool:
        return self.decision.confirmed

    def to_dict(self) -> Dict[str, Any]:
        guide = self.decision.guide
        return {
            "frame_id": self.frame_id,
            "detections": [d.to_dict() for d in self.detections],
            "best": self.best.to_dict() if self.best else None,
            "signal": self.signal.value,
            "confirmed": self.confirmed,
            "guide": list(guide.as_tuple()) if guide else None,
            "error": self.error,
            "latency_ms": self.latency_ms,
        }
