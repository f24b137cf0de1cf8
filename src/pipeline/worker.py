"""
Inference worker thread.

Owns the detector and the shared PostProcessor, and talks to the engine
only through its inbox/outbox queues using the messages in
pipeline.messages. Every failure is turned into an ErrorMessage; the worker
thread itself keeps running until it receives a ShutdownMessage.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Dict, Mapping, Optional

from inference.backend import Detector
from inference.layout import ModelOutputLayout
from models.config import ModelConfig
from models.detection import detections_to_dicts
from models.errors import DetectorError
from .messages import (
    ErrorMessage,
    InitMessage,
    PredictMessage,
    ReadyMessage,
    ResultMessage,
    ShutdownMessage,
    WorkerReply,
    WorkerRequest,
)
from .stages.postprocess import PostProcessor, create_postprocessor


DetectorFactory = Callable[[str, Dict[str, Any]], Detector]


class InferenceWorker(threading.Thread):
    """
    Background inference context.

    Example:
        worker = InferenceWorker(create_tflite_detector, layout, model_cfg)
        worker.start()
        worker.post(InitMessage(model_path=model_cfg.path, config=model_cfg.to_dict()))
        reply = worker.outbox.get()  # ReadyMessage or ErrorMessage
    """

    def __init__(
        self,
        detector_factory: DetectorFactory,
        layout: ModelOutputLayout,
        model_cfg: ModelConfig,
        class_labels: Optional[Mapping[int, str]] = None,
    ):
        super().__init__(name="inference-worker", daemon=True)
        self._detector_factory = detector_factory
        self._layout = layout
        self._model_cfg = model_cfg
        self._class_labels = dict(class_labels or {})
        self._detector: Optional[Detector] = None
        self._postprocessor: Optional[PostProcessor] = None
        self.inbox: "queue.Queue[WorkerRequest]" = queue.Queue()
        self.outbox: "queue.Queue[WorkerReply]" = queue.Queue()

    @property
    def ready(self) -> bool:
        return self._postprocessor is not None

    def post(self, message: WorkerRequest) -> None:
        self.inbox.put(message)

    def shutdown(self, timeout: Optional[float] = 2.0) -> None:
        self.post(ShutdownMessage())
        if self.is_alive():
            self.join(timeout)

    def run(self) -> None:
        while True:
            message = self.inbox.get()
            if isinstance(message, ShutdownMessage):
                break
            if isinstance(message, InitMessage):
                self._handle_init(message)
            elif isinstance(message, PredictMessage):
                self._handle_predict(message)
            else:
                logging.warning(f"Inference worker ignoring unknown message: {message!r}")
        logging.info("Inference worker stopped")

    def _handle_init(self, message: InitMessage) -> None:
        try:
            detector = self._detector_factory(message.model_path, message.config)
            self._postprocessor = create_postprocessor(
                self._layout,
                self._model_cfg,
                detector.output_names,
                class_labels=self._class_labels,
            )
            self._detector = detector
        except Exception as e:
            logging.error(f"Inference worker failed to load model {message.model_path}: {e}")
            self.outbox.put(ErrorMessage(message=f"Model loading error: {e}"))
            return
        logging.info(f"Inference worker ready: model={message.model_path}")
        self.outbox.put(ReadyMessage())

    def _handle_predict(self, message: PredictMessage) -> None:
        frame_id = message.frame_id
        if self._detector is None or self._postprocessor is None:
            self.outbox.put(ErrorMessage(message="Model not loaded", frame_id=frame_id))
            return

        buffer = message.buffer
        try:
            raw = self._detector.predict(buffer)
            result = self._postprocessor.process(raw, buffer, frame_id=frame_id)
        except DetectorError as e:
            logging.warning(f"[WORKER] frame_id={frame_id} prediction failed: {e}")
            self.outbox.put(ErrorMessage(message=f"Prediction error: {e}", frame_id=frame_id))
            return
        except Exception as e:
            logging.exception(f"[WORKER] frame_id={frame_id} unexpected error")
            self.outbox.put(ErrorMessage(message=f"Prediction error: {e}", frame_id=frame_id))
            return

        self.outbox.put(
            ResultMessage(
                frame_id=frame_id,
                detections=detections_to_dicts(result.detections),
                decode_error=str(result.error) if result.error else None,
            )
        )
