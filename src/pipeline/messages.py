"""
Messages exchanged between the engine and the inference worker.

Shapes:
    {type: "init", model_path, config}
    {type: "predict", frame_id, buffer}      buffer ownership moves to the worker
    {type: "result", frame_id, detections}
    {type: "ready"}
    {type: "error", message, frame_id?}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from models.frame import PixelBuffer


@dataclass(frozen=True)
class InitMessage:
    model_path: str
    config: Dict[str, Any] = field(default_factory=dict)
    type: str = "init"


@dataclass(frozen=True)
class PredictMessage:
    frame_id: int
    buffer: PixelBuffer
    type: str = "predict"


@dataclass(frozen=True)
class ResultMessage:
    frame_id: int
    detections: List[Dict[str, Any]] = field(default_factory=list)
    decode_error: Optional[str] = None
    type: str = "result"


@dataclass(frozen=True)
class ReadyMessage:
    type: str = "ready"


@dataclass(frozen=True)
class ErrorMessage:
    message: str
    frame_id: Optional[int] = None
    type: str = "error"


@dataclass(frozen=True)
class ShutdownMessage:
    type: str = "shutdown"


WorkerRequest = Union[InitMessage, PredictMessage, ShutdownMessage]
WorkerReply = Union[ResultMessage, ReadyMessage, ErrorMessage]
