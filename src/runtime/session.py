"""
Capture session state.

Owned by the pipeline engine and passed through the capture loop; nothing
here is process-global. The engine thread is the only writer of the frame
counter; the stop flag is a threading.Event so waits can be interrupted.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.result import FrameResult, SessionPhase


@dataclass
class SessionState:
    """
    Mutable state of one capture session.

    Attributes:
        phase: SCANNING until a frame confirms the document, then CONFIRMED.
        stop_event: Set to stop the capture loop before the next cycle.
        expected_frame_id: Id of the most recently dispatched frame. Results
            tagged with any other id are stale.
        last_result: Result of the most recent completed cycle.
        last_error: Most recent error text (per-frame or fatal).
        fatal: True when the session ended on an unrecoverable error.
    """
    phase: SessionPhase = SessionPhase.SCANNING
    stop_event: threading.Event = field(default_factory=threading.Event)
    expected_frame_id: int = 0
    last_result: Optional[FrameResult] = None
    last_error: Optional[str] = None
    fatal: bool = False
    frames_processed: int = 0
    started_at: Optional[float] = None
    confirmed_at: Optional[float] = None

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    @property
    def confirmed(self) -> bool:
        return self.phase is SessionPhase.CONFIRMED

    def next_frame_id(self) -> int:
        self.expected_frame_id += 1
        return self.expected_frame_id

    def is_current(self, frame_id: int) -> bool:
        return frame_id == self.expected_frame_id and not self.stopped

    def confirm(self) -> None:
        self.phase = SessionPhase.CONFIRMED
        self.confirmed_at = time.time()

    def request_stop(self) -> None:
        self.stop_event.set()

    def reset(self) -> None:
        """Return to SCANNING with a fresh result history. Frame ids keep increasing."""
        self.phase = SessionPhase.SCANNING
        self.stop_event.clear()
        self.last_result = None
        self.last_error = None
        self.fatal = False
        self.frames_processed = 0
        self.started_at = None
        self.confirmed_at = None

    def snapshot(self) -> Dict[str, Any]:
        result = self.last_result
        return {
            "phase": self.phase.value,
            "running": self.started_at is not None and not self.stopped,
            "frame_id": self.expected_frame_id,
            "frames_processed": self.frames_processed,
            "last_signal": result.signal.value if result else None,
            "best": result.best.to_dict() if result and result.best else None,
            "detections": len(result.detections) if result else 0,
            "last_error": self.last_error,
            "fatal": self.fatal,
            "started_at": self.started_at,
            "confirmed_at": self.confirmed_at,
        }
