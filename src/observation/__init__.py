"""
Observation layer for capture sources.

Abstracts where frames come from (webcam, video file) from the scanning
pipeline. Each source implements the ObservationSource interface and
returns FrameData objects.
"""

from typing import Any, Dict

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "camera") -> ObservationSource:
    """Build the capture source selected by camera.backend."""
    backend = camera_cfg.get("backend", "opencv")
    if backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
