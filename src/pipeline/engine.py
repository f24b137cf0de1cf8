"""
Pipeline engine for the document scanner.

Runs the capture loop: one cycle at a time, read a frame, preprocess,
infer (inline or on a worker), decide, render, then schedule the next cycle.
The loop ends when a frame confirms the document, when stopped, or when the
capture source is lost.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

import cv2

from models.config import Config, ModelConfig, PipelineConfig
from models.errors import AcquisitionError, DetectorError
from models.frame import FrameData
from models.result import Decision, DecisionSignal, FrameResult, SessionPhase
from observation import ObservationSource, create_source_from_config
from runtime.context import RuntimeContext
from runtime.session import SessionState
from .executors import InferenceExecutor, InlineExecutor, WorkerExecutor
from .scheduler import CycleScheduler
from .stages.decide import DecisionPolicy
from .stages.preprocess import letterbox
from .stages.render import OverlayRenderer


class PipelineEngine:
    """
    Capture loop driving one scanning session.

    Example:
        engine = create_engine_from_config(config, ctx)
        phase = engine.run()   # blocks until confirmed, stopped or source lost
        engine.reset()         # back to SCANNING for another run
    """

    def __init__(
        self,
        source: ObservationSource,
        executor: InferenceExecutor,
        policy: DecisionPolicy,
        renderer: OverlayRenderer,
        ctx: RuntimeContext,
        model_cfg: ModelConfig,
        scheduler: CycleScheduler,
        config: PipelineConfig,
        session: Optional[SessionState] = None,
    ):
        self.source = source
        self.executor = executor
        self.policy = policy
        self.renderer = renderer
        self.ctx = ctx
        self.model_cfg = model_cfg
        self.scheduler = scheduler
        self.config = config
        self.session = session or SessionState()
        self._executor_started = False
        self._start_requested = threading.Event()
        self._last_stats_log_time = time.time()
        self._callbacks: List[Callable[[FrameData, FrameResult], None]] = []

    def add_callback(self, callback: Callable[[FrameData, FrameResult], None]) -> None:
        """
        Add a callback to be called after each frame is processed.

        Args:
            callback: Function taking (frame_data, frame_result) as arguments.
        """
        self._callbacks.append(callback)

    def run(self) -> SessionPhase:
        """
        Run capture cycles until the session is confirmed or stopped.

        Returns the session phase at exit. Never raises for per-frame
        errors; acquisition failures end the session and are recorded on it.
        """
        session = self.session
        if session.confirmed:
            logging.info("Session already confirmed; reset it before scanning again")
            return session.phase

        self._start_requested.clear()
        session.started_at = time.time()

        if not self._start_executor():
            return session.phase

        try:
            self.source.open()
        except (AcquisitionError, RuntimeError) as e:
            self._fail(f"Camera unavailable: {e}")
            return session.phase

        logging.info(f"Pipeline started: source={self.source.source_id}, topology={self.config.topology}")
        consecutive_failures = 0

        try:
            while not session.stopped:
                frame_data = self.source.read()

                if frame_data is None:
                    if self.source.exhausted:
                        logging.info(
                            f"Capture source {self.source.source_id} ended after "
                            f"{self.source.frame_index} frames"
                        )
                        session.request_stop()
                        break
                    consecutive_failures += 1
                    if consecutive_failures >= self.config.max_consecutive_failures:
                        self._fail(f"Too many consecutive frame read failures ({consecutive_failures})")
                        break
                    logging.warning(
                        f"Frame read failed ({consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    if not self.scheduler.wait(self.scheduler.next_delay(ok=False), session.stop_event):
                        break
                    continue

                consecutive_failures = 0
                result, ok = self.run_cycle(frame_data)

                if result is not None:
                    self._publish(frame_data, result)
                    if result.confirmed:
                        session.confirm()
                        logging.info(
                            f"Document confirmed: frame_id={result.frame_id}, "
                            f"score={result.best.score:.3f}"
                        )
                        session.request_stop()
                        break

                if self.config.display and not self._handle_display():
                    session.request_stop()
                    break

                self._handle_periodic_tasks()

                if not self.scheduler.wait(self.scheduler.next_delay(ok), session.stop_event):
                    break

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        finally:
            self._cleanup()

        return session.phase

    def run_cycle(self, frame_data: FrameData) -> Tuple[Optional[FrameResult], bool]:
        """
        Process one frame.

        Returns (result, ok). result is None when the frame was dropped
        because the session stopped while it was in flight. ok is False
        when the cycle should be followed by the error delay.
        """
        session = self.session
        frame_id = session.next_frame_id()
        started = time.perf_counter()
        frame = frame_data.frame

        try:
            buffer = letterbox(
                frame,
                self.model_cfg.input_size,
                keep_aspect=self.model_cfg.keep_aspect,
                color_order=self.model_cfg.color_order,
            )
        except Exception as e:
            logging.warning(f"[PREPROCESS] frame_id={frame_id} failed: {e}")
            return self._error_result(frame_id, f"Preprocess error: {e}"), False

        try:
            post = self.executor.infer(frame_id, buffer)
        except DetectorError as e:
            logging.warning(f"[PREDICT] frame_id={frame_id} failed: {e}")
            return self._error_result(frame_id, str(e)), False

        if not session.is_current(frame_id):
            logging.debug(f"Dropping result for frame_id={frame_id}: session stopped")
            return None, True

        decision = self.policy.evaluate(post.detections, frame_data.width, frame_data.height)
        result = FrameResult(
            frame_id=frame_id,
            detections=post.detections,
            decision=decision,
            error=str(post.error) if post.error else None,
            latency_ms=(time.perf_counter() - started) * 1000.0,
        )
        session.frames_processed += 1
        session.last_result = result
        session.last_error = result.error

        if decision.signal is DecisionSignal.MISPLACED:
            logging.info(
                f"[DECIDE] frame_id={frame_id} document front detected outside guide "
                f"(score={decision.best.score:.3f})"
            )
        else:
            logging.debug(
                f"[DECIDE] frame_id={frame_id} signal={decision.signal.value} "
                f"detections={len(post.detections)}"
            )
        return result, post.error is None

    def stop(self) -> None:
        """Signal the loop to stop before the next cycle."""
        self.session.request_stop()

    def reset(self) -> None:
        """Return the session to SCANNING and request a new run."""
        self.session.reset()
        self.scheduler.reset()
        self._start_requested.set()
        logging.info("Session reset")

    def wait_for_start(self, timeout: Optional[float] = None) -> bool:
        """Block until reset() requests a new run."""
        return self._start_requested.wait(timeout)

    def close(self) -> None:
        """Release the executor (stops the inference worker, if any)."""
        try:
            self.executor.close()
        except Exception as e:
            logging.warning(f"Error closing executor: {e}")

    def _start_executor(self) -> bool:
        if self._executor_started:
            return True
        try:
            self.executor.start()
        except Exception as e:
            self._fail(f"Model unavailable: {e}")
            return False
        self._executor_started = True
        return True

    def _error_result(self, frame_id: int, message: str) -> FrameResult:
        self.session.last_error = message
        return FrameResult(frame_id=frame_id, decision=Decision(DecisionSignal.ERROR), error=message)

    def _fail(self, message: str) -> None:
        logging.error(message)
        self.session.fatal = True
        self.session.last_error = message
        self.session.request_stop()

    def _publish(self, frame_data: FrameData, result: FrameResult) -> None:
        annotated = self.renderer.render(frame_data.frame, result)
        fps = 1000.0 / result.latency_ms if result.latency_ms else 0.0
        self.ctx.update_frame(annotated, fps=fps)

        for callback in self._callbacks:
            try:
                callback(frame_data, result)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _handle_display(self) -> bool:
        """
        Show the latest annotated frame.

        Returns False if user pressed 'q' to quit.
        """
        frame = self.ctx.get_frame()
        if frame is not None:
            cv2.imshow("Document Scanner", frame)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self._last_stats_log_time >= self.config.stats_log_interval:
            result = self.session.last_result
            logging.info(
                f"Pipeline stats: frames={self.session.frames_processed}, "
                f"last_signal={result.signal.value if result else None}, "
                f"fps={self.ctx.stats_snapshot().get('fps', 0.0):.1f}"
            )
            self._last_stats_log_time = now

    def _cleanup(self) -> None:
        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self.config.display:
            cv2.destroyAllWindows()

        logging.info(f"Pipeline stopped: phase={self.session.phase.value}")


def create_executor(config: Config) -> InferenceExecutor:
    """
    Build the inference executor for the configured topology.

    The TFLite backend is imported here so that tflite-runtime is only
    needed when a real model is used. The model itself is loaded by
    executor.start() in either topology.
    """
    from inference.layout import layout_from_config
    from inference.tflite_backend import TFLiteConfig, TFLiteDetector, create_tflite_detector
    from .stages.postprocess import create_postprocessor
    from .worker import InferenceWorker

    model_cfg = config.model
    layout = layout_from_config(config.output_layout)
    labels = config.decision.class_labels

    if config.pipeline.topology == "worker":
        worker = InferenceWorker(create_tflite_detector, layout, model_cfg, class_labels=labels)
        return WorkerExecutor(
            worker,
            model_path=model_cfg.path,
            model_config=model_cfg.to_dict(),
            result_timeout=config.pipeline.result_timeout,
        )

    def load_model():
        detector = TFLiteDetector(TFLiteConfig(model_path=model_cfg.path, num_threads=model_cfg.num_threads))
        postprocessor = create_postprocessor(layout, model_cfg, detector.output_names, class_labels=labels)
        return detector, postprocessor

    return InlineExecutor(loader=load_model)


def create_engine_from_config(
    config: Config,
    ctx: RuntimeContext,
    executor: Optional[InferenceExecutor] = None,
    source: Optional[ObservationSource] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the typed config.

    Args:
        config: Full application config.
        ctx: RuntimeContext for frame/status sharing.
        executor: Override the inference executor (defaults to the
            configured topology with the TFLite backend).
        source: Override the capture source (defaults to the camera config).
    """
    if source is None:
        source = create_source_from_config(config.camera.to_dict(), source_id="main-camera")
    if executor is None:
        executor = create_executor(config)

    return PipelineEngine(
        source=source,
        executor=executor,
        policy=DecisionPolicy(config.decision),
        renderer=OverlayRenderer(config.decision.class_labels, config.decision.front_class_id),
        ctx=ctx,
        model_cfg=config.model,
        scheduler=CycleScheduler(config.scheduler),
        config=config.pipeline,
    )
