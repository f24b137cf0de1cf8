"""
Capture source contract.

The scanner asks a source for one frame per cycle. Sources must honor close()
before the next read(): once closed, read() returns None, which is how a
stop request takes effect within a single cycle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Attributes:
        source_id: Name used in logs and FrameData.source.
        resolution: Requested (width, height); None keeps the device default.
        fps: Requested frame rate; None keeps the device default.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    Base class for capture sources.

    open() acquires the device and raises AcquisitionError when it cannot.
    read() returns the next FrameData, or None when no frame is available;
    a None with exhausted set means the input has ended, not failed.
    close() releases the device and may be called any number of times.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._exhausted = False

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Frames read since the last open()."""
        return self._frame_index

    @property
    def exhausted(self) -> bool:
        """True once a finite source (a video file) has no frames left."""
        return self._exhausted

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
