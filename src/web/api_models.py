from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DetectionModel(BaseModel):
    box: List[float] = Field(..., description="[y_min, x_min, y_max, x_max], normalized to the frame")
    score: float
    class_id: int
    class_name: Optional[str] = None


class SessionStatusResponse(BaseModel):
    """
    Scanning session status, polled by the UI.
    """
    phase: str = Field(..., description="scanning|confirmed")
    running: bool = Field(..., description="True while the capture loop is active")
    frame_id: int = Field(0, description="Id of the most recently dispatched frame")
    frames_processed: int = 0
    last_signal: Optional[str] = Field(None, description="no_detection|searching|misplaced|confirmed|error")
    best: Optional[DetectionModel] = None
    detections: int = Field(0, description="Detections kept on the last frame")
    last_error: Optional[str] = None
    fatal: bool = Field(False, description="True if the session ended on an acquisition/model failure")
    started_at: Optional[float] = None
    confirmed_at: Optional[float] = None
    fps: float = 0.0
    last_frame_age_s: Optional[float] = Field(None, description="Seconds since last rendered frame")
