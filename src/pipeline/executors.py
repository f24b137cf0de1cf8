"""
Where inference runs.

Both executors expose the same call, infer(frame_id, buffer), and return a
PostProcessResult for that frame. InlineExecutor runs the detector and the
post-processing on the caller's thread; WorkerExecutor hands the buffer to
an InferenceWorker and waits for the matching reply.
"""

from __future__ import annotations

import logging
import queue
import time
from typing import Callable, Optional, Protocol, Tuple

from inference.backend import Detector
from models.detection import detections_from_dicts
from models.errors import DecodeError, DetectorError
from models.frame import PixelBuffer
from .messages import ErrorMessage, InitMessage, PredictMessage, ReadyMessage, ResultMessage
from .stages.postprocess import PostProcessor, PostProcessResult
from .worker import InferenceWorker


class InferenceExecutor(Protocol):
    def start(self) -> None:
        ...

    def infer(self, frame_id: int, buffer: PixelBuffer) -> PostProcessResult:
        """Raises DetectorError when inference fails or times out."""
        ...

    def close(self) -> None:
        ...


class InlineExecutor:
    """
    Detector and post-processing on the capture thread.

    Pass a ready detector and postprocessor, or a loader returning both;
    the loader runs in start() so model load errors reach the engine.
    """

    def __init__(
        self,
        detector: Optional[Detector] = None,
        postprocessor: Optional[PostProcessor] = None,
        loader: Optional[Callable[[], Tuple[Detector, PostProcessor]]] = None,
    ):
        self.detector = detector
        self.postprocessor = postprocessor
        self._loader = loader

    def start(self) -> None:
        if self.detector is None and self._loader is not None:
            self.detector, self.postprocessor = self._loader()

    def infer(self, frame_id: int, buffer: PixelBuffer) -> PostProcessResult:
        if self.detector is None or self.postprocessor is None:
            raise DetectorError("Model is not loaded", frame_id=frame_id, stage="predict")
        try:
            raw = self.detector.predict(buffer)
        except DetectorError as e:
            e.frame_id = frame_id
            raise
        except Exception as e:
            raise DetectorError(f"Prediction error: {e}", frame_id=frame_id, stage="predict") from e
        return self.postprocessor.process(raw, buffer, frame_id=frame_id)

    def close(self) -> None:
        pass


class WorkerExecutor:
    """
    Detector and post-processing on an InferenceWorker thread.

    Each frame's buffer is transferred to the worker, not copied. Replies
    carry the frame id; replies for any other frame are stale and dropped.
    """

    def __init__(
        self,
        worker: InferenceWorker,
        model_path: str,
        model_config: Optional[dict] = None,
        result_timeout: float = 2.0,
        init_timeout: float = 30.0,
    ):
        self.worker = worker
        self.model_path = model_path
        self.model_config = model_config or {}
        self.result_timeout = result_timeout
        self.init_timeout = init_timeout
        self.stale_discarded = 0

    def start(self) -> None:
        if not self.worker.is_alive():
            self.worker.start()
        self.worker.post(InitMessage(model_path=self.model_path, config=self.model_config))

        deadline = time.monotonic() + self.init_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RuntimeError(f"Inference worker did not become ready within {self.init_timeout}s")
            try:
                reply = self.worker.outbox.get(timeout=remaining)
            except queue.Empty:
                continue
            if isinstance(reply, ReadyMessage):
                return
            if isinstance(reply, ErrorMessage) and reply.frame_id is None:
                raise RuntimeError(reply.message)
            self._discard(reply)

    def infer(self, frame_id: int, buffer: PixelBuffer) -> PostProcessResult:
        self.worker.post(PredictMessage(frame_id=frame_id, buffer=buffer.transfer()))

        deadline = time.monotonic() + self.result_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise DetectorError(
                    f"No result within {self.result_timeout}s",
                    frame_id=frame_id,
                    stage="predict",
                )
            try:
                reply = self.worker.outbox.get(timeout=remaining)
            except queue.Empty:
                continue

            if getattr(reply, "frame_id", None) != frame_id:
                self._discard(reply)
                continue

            if isinstance(reply, ErrorMessage):
                raise DetectorError(reply.message, frame_id=frame_id, stage="predict")

            if isinstance(reply, ResultMessage):
                error = None
                if reply.decode_error:
                    error = DecodeError(reply.decode_error, frame_id=frame_id, stage="decode")
                return PostProcessResult(
                    detections=detections_from_dicts(reply.detections),
                    error=error,
                )

    def _discard(self, reply) -> None:
        self.stale_discarded += 1
        logging.debug(f"Discarding stale worker reply: type={reply.type} frame_id={getattr(reply, 'frame_id', None)}")

    def close(self) -> None:
        self.worker.shutdown()
