"""
Error taxonomy for the scanning pipeline.

- DecodeError: detector outputs could not be interpreted (recoverable,
  the frame yields no detections).
- DetectorError: the inference call itself failed (recoverable, the cycle
  is retried with backoff).
- AcquisitionError: the capture source is unavailable (fatal to the session).
"""

from __future__ import annotations

from typing import Optional


class ScannerError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, frame_id: Optional[int] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.frame_id = frame_id
        self.stage = stage

    def __str__(self) -> str:
        parts = []
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.frame_id is not None:
            parts.append(f"frame_id={self.frame_id}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class DecodeError(ScannerError):
    """Expected output roles are missing or malformed."""


class DetectorError(ScannerError):
    """The underlying inference call failed."""


class AcquisitionError(ScannerError):
    """The capture source could not be opened or was lost."""


class LayoutError(ValueError):
    """An output layout does not match the loaded model."""
