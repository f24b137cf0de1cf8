"""
Webcam / video file capture through cv2.VideoCapture.

An int device_id selects a local camera index; a str is handed to OpenCV as
a file path or stream URL. Orientation fixes (rotation, mirroring, R/B swap)
are applied to every frame before it leaves the source, so the pipeline and
the guide region always see the frame the user sees.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.errors import AcquisitionError
from models.frame import FrameData
from .base import ObservationConfig, ObservationSource

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Attributes:
        device_id: Camera index, or path/URL of a video.
        buffer_size: Driver-side frame queue length. 1 keeps the preview live.
        max_retries: Open attempts before the camera is reported unavailable.
        swap_rb: Swap the red and blue channels.
        rotate: Clockwise rotation in degrees (0, 90, 180 or 270).
        flip_horizontal: Mirror the frame (front-facing cameras).
        flip_vertical: Flip the frame upside down.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """Build from the `camera` config section, ignoring keys this source does not use."""
        known = {f.name for f in fields(cls)} - {"source_id"}
        kwargs = {k: v for k, v in camera_cfg.items() if k in known and v is not None}
        if kwargs.get("resolution"):
            kwargs["resolution"] = tuple(kwargs["resolution"])
        return cls(source_id=source_id, **kwargs)


def apply_transforms(frame: np.ndarray, cfg: OpenCVSourceConfig) -> np.ndarray:
    """Rotate, mirror and channel-swap a BGR frame as configured."""
    rotation = _ROTATIONS.get(cfg.rotate)
    if rotation is not None:
        frame = cv2.rotate(frame, rotation)

    if cfg.flip_horizontal and cfg.flip_vertical:
        frame = cv2.flip(frame, -1)
    elif cfg.flip_horizontal:
        frame = cv2.flip(frame, 1)
    elif cfg.flip_vertical:
        frame = cv2.flip(frame, 0)

    if cfg.swap_rb:
        frame = np.ascontiguousarray(frame[..., ::-1])
    return frame


class OpenCVSource(ObservationSource):
    """
    Capture source backed by cv2.VideoCapture.

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0, resolution=(1280, 720)))
        source.open()          # raises AcquisitionError if the camera is unavailable
        frame_data = source.read()
        source.close()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self.cfg = config
        self._capture: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self.cfg.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.cfg.device_id, str) and os.path.exists(self.cfg.device_id)

    def _try_open(self) -> Optional[cv2.VideoCapture]:
        capture = cv2.VideoCapture(self.cfg.device_id)
        if capture.isOpened():
            return capture
        capture.release()
        return None

    def _configure_camera(self, capture: cv2.VideoCapture) -> None:
        w, h = self.cfg.resolution
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, w)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        if self.cfg.fps:
            capture.set(cv2.CAP_PROP_FPS, self.cfg.fps)
        capture.set(cv2.CAP_PROP_BUFFERSIZE, self.cfg.buffer_size)
        logging.info(
            f"Camera negotiated {capture.get(cv2.CAP_PROP_FRAME_WIDTH):.0f}x"
            f"{capture.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f} @ {capture.get(cv2.CAP_PROP_FPS):.1f} fps"
        )

    def open(self) -> None:
        if self._is_open:
            return

        attempts = max(1, self.cfg.max_retries)
        capture = None
        for attempt in range(1, attempts + 1):
            capture = self._try_open()
            if capture is not None:
                break
            if attempt < attempts:
                backoff = min(2 ** attempt, 10)
                logging.warning(f"Camera {self.device_id} not available, retrying in {backoff}s ({attempt}/{attempts})")
                time.sleep(backoff)

        if capture is None:
            raise AcquisitionError(
                f"Failed to open device {self.device_id} after {attempts} attempts",
                stage="acquire",
            )

        # Size/fps requests only make sense for live cameras
        if isinstance(self.device_id, int) and self.cfg.resolution:
            self._configure_camera(capture)

        self._capture = capture
        self._is_open = True
        self._frame_index = 0
        self._exhausted = False
        logging.info(f"Capture source {self.source_id} opened on device {self.device_id}")

    def read(self) -> Optional[FrameData]:
        if self._capture is None:
            return None

        ok, frame = self._capture.read()
        if not ok or frame is None:
            if self.is_file:
                self._exhausted = True
                logging.info(f"Capture source {self.source_id}: end of video")
            return None

        self._frame_index += 1
        return FrameData.from_numpy(
            apply_transforms(frame, self.cfg),
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logging.info(f"Capture source {self.source_id} closed")
        self._is_open = False
