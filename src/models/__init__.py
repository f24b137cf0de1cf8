"""
Typed models for the document scanner.

Detections, frames, per-cycle results, configuration and the error taxonomy
shared by every stage of the pipeline.
"""

from .frame import FrameData, PixelBuffer
from .detection import BoundingBox, Detection, NormalizedBox
from .result import Decision, DecisionSignal, FrameResult, SessionPhase
from .errors import AcquisitionError, DecodeError, DetectorError, LayoutError, ScannerError
from .config import (
    Config,
    CameraConfig,
    ModelConfig,
    OutputLayoutConfig,
    DecisionConfig,
    SchedulerConfig,
    PipelineConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    "PixelBuffer",
    # Detection
    "BoundingBox",
    "Detection",
    "NormalizedBox",
    # Results
    "Decision",
    "DecisionSignal",
    "FrameResult",
    "SessionPhase",
    # Errors
    "AcquisitionError",
    "DecodeError",
    "DetectorError",
    "LayoutError",
    "ScannerError",
    # Config
    "Config",
    "CameraConfig",
    "ModelConfig",
    "OutputLayoutConfig",
    "DecisionConfig",
    "SchedulerConfig",
    "PipelineConfig",
    "WebConfig",
]
