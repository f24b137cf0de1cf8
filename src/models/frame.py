"""
Frame models: captured video frames and preprocessed detector input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .detection import NormalizedBox


@dataclass
class FrameData:
    """
    Metadata and payload for a captured video frame.

    Attributes:
        frame: The raw frame data as a numpy array (BGR format).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when frame was captured.
        frame_index: Sequential frame number since start.
        source: Identifier for the camera/video source.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
        )


@dataclass
class PixelBuffer:
    """
    Detector input produced by the frame preprocessor.

    Holds an H x W x 3 uint8 image plus the letterbox geometry used to
    produce it, so detector coordinates can be mapped back onto the source
    frame.

    Attributes:
        data: Pixel array, or None once ownership has been transferred.
        source_width: Width of the frame the buffer was made from.
        source_height: Height of the frame the buffer was made from.
        scale_x: Horizontal source-to-input scale factor.
        scale_y: Vertical source-to-input scale factor.
        pad_x: Left padding in input pixels.
        pad_y: Top padding in input pixels.
    """
    data: Optional[np.ndarray]
    source_width: int
    source_height: int
    scale_x: float = 1.0
    scale_y: float = 1.0
    pad_x: float = 0.0
    pad_y: float = 0.0

    @property
    def is_transferred(self) -> bool:
        return self.data is None

    @property
    def width(self) -> int:
        return int(self._pixels().shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels().shape[0])

    def _pixels(self) -> np.ndarray:
        if self.is_transferred:
            raise RuntimeError("PixelBuffer data has been transferred to another owner")
        return self.data

    def transfer(self) -> "PixelBuffer":
        """
        Hand the underlying array to a new PixelBuffer without copying.

        The sender loses access: its data is set to None and further pixel
        access raises RuntimeError.
        """
        data = self._pixels()
        moved = PixelBuffer(
            data=data,
            source_width=self.source_width,
            source_height=self.source_height,
            scale_x=self.scale_x,
            scale_y=self.scale_y,
            pad_x=self.pad_x,
            pad_y=self.pad_y,
        )
        self.data = None
        return moved

    def to_frame_box(self, box: NormalizedBox, input_size: Tuple[int, int]) -> NormalizedBox:
        """
        Map a box normalized to the detector input onto the source frame.

        Args:
            box: Box relative to the (possibly padded) detector input.
            input_size: Detector input (width, height) in pixels.

        Returns:
            Box relative to the source frame, clipped to [0, 1].
        """
        in_w, in_h = input_size
        sx = self.scale_x * self.source_width
        sy = self.scale_y * self.source_height
        if sx <= 0 or sy <= 0:
            return box.clipped()

        def fx(v: float) -> float:
            return (v * in_w - self.pad_x) / sx

        def fy(v: float) -> float:
            return (v * in_h - self.pad_y) / sy

        mapped = NormalizedBox(
            y_min=fy(box.y_min),
            x_min=fx(box.x_min),
            y_max=fy(box.y_max),
            x_max=fx(box.x_max),
        )
        return mapped.clipped()
