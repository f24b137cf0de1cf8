"""
Tests for the pipeline engine.
"""

import time
from typing import Optional
from unittest.mock import MagicMock

import numpy as np

from models.config import Config, ModelConfig, PipelineConfig, SchedulerConfig, DecisionConfig
from models.detection import Detection, NormalizedBox
from models.errors import AcquisitionError, DecodeError, DetectorError
from models.frame import FrameData
from models.result import DecisionSignal, SessionPhase
from observation.base import ObservationSource, ObservationConfig
from pipeline.engine import PipelineEngine, create_engine_from_config, create_executor
from pipeline.executors import InlineExecutor, WorkerExecutor
from pipeline.scheduler import CycleScheduler
from pipeline.stages.decide import DecisionPolicy
from pipeline.stages.postprocess import PostProcessResult
from pipeline.stages.render import OverlayRenderer
from runtime.context import RuntimeContext

INSIDE_GUIDE = NormalizedBox(0.35, 0.3, 0.65, 0.7)
OUTSIDE_GUIDE = NormalizedBox(0.35, 0.0, 0.65, 0.4)


class MockObservationSource(ObservationSource):
    """Mock source for testing."""

    def __init__(self, config: ObservationConfig, max_frames: int = 10, fail_open: bool = False, finite: bool = False):
        super().__init__(config)
        self._max_frames = max_frames
        self._fail_open = fail_open
        self._finite = finite
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        if self._fail_open:
            raise AcquisitionError("permission denied", stage="acquire")
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        if not self._is_open:
            return None
        if self._pos >= self._max_frames:
            self._exhausted = self._finite
            return None
        self._pos += 1
        self._frame_index += 1
        frame = np.zeros((500, 1000, 3), dtype=np.uint8)
        return FrameData(
            frame=frame,
            width=frame.shape[1],
            height=frame.shape[0],
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


def _result(*dets):
    return PostProcessResult(detections=list(dets))


def _front(score, box=INSIDE_GUIDE):
    return Detection(box=box, score=score, class_id=0, class_name="document_front")


def _engine(executor, source=None, max_failures=3):
    config = Config()
    return PipelineEngine(
        source=source or MockObservationSource(ObservationConfig(source_id="test"), max_frames=20),
        executor=executor,
        policy=DecisionPolicy(DecisionConfig()),
        renderer=OverlayRenderer(),
        ctx=RuntimeContext(config=config),
        model_cfg=ModelConfig(path="m.tflite"),
        scheduler=CycleScheduler(SchedulerConfig(success_delay=0, error_delay=0, max_error_delay=0)),
        config=PipelineConfig(max_consecutive_failures=max_failures),
    )


class TestPipelineEngine:
    def test_confirm_stops_capture(self):
        executor = MagicMock()
        executor.infer.side_effect = [_result(), _result(_front(0.95))]
        engine = _engine(executor)

        phase = engine.run()

        assert phase is SessionPhase.CONFIRMED
        assert executor.infer.call_count == 2
        assert engine.session.stopped
        assert engine.source.closed
        assert engine.session.last_result.signal is DecisionSignal.CONFIRMED

    def test_misplaced_keeps_scanning(self):
        executor = MagicMock()
        executor.infer.side_effect = [_result(_front(0.95, OUTSIDE_GUIDE)), _result(_front(0.95))]
        engine = _engine(executor)
        signals = []
        engine.add_callback(lambda fd, result: signals.append(result.signal))

        assert engine.run() is SessionPhase.CONFIRMED
        assert signals == [DecisionSignal.MISPLACED, DecisionSignal.CONFIRMED]

    def test_detector_error_is_retried(self):
        executor = MagicMock()
        executor.infer.side_effect = [DetectorError("busy"), DetectorError("busy"), _result(_front(0.95))]
        engine = _engine(executor)
        engine.scheduler = MagicMock(wraps=engine.scheduler)

        phase = engine.run()

        assert phase is SessionPhase.CONFIRMED
        assert [c.args[0] for c in engine.scheduler.next_delay.call_args_list] == [False, False]
        assert engine.session.frames_processed == 1
        assert not engine.session.fatal

    def test_decode_error_yields_empty_frame(self):
        executor = MagicMock()
        executor.infer.side_effect = [
            PostProcessResult(error=DecodeError("bad output", stage="decode")),
            _result(_front(0.95)),
        ]
        engine = _engine(executor)
        results = []
        engine.add_callback(lambda fd, result: results.append(result))

        engine.run()

        assert results[0].detections == []
        assert results[0].error is not None
        assert results[0].signal is DecisionSignal.NO_DETECTION

    def test_acquisition_failure_is_fatal(self):
        executor = MagicMock()
        source = MockObservationSource(ObservationConfig(), fail_open=True)
        engine = _engine(executor, source=source)

        phase = engine.run()

        assert phase is SessionPhase.SCANNING
        assert engine.session.fatal
        assert "Camera unavailable" in engine.session.last_error
        executor.infer.assert_not_called()

    def test_repeated_read_failures_are_fatal(self):
        executor = MagicMock()
        executor.infer.return_value = _result()
        source = MockObservationSource(ObservationConfig(), max_frames=2)
        engine = _engine(executor, source=source, max_failures=3)

        engine.run()

        assert executor.infer.call_count == 2
        assert engine.session.fatal
        assert source.closed

    def test_end_of_video_stops_cleanly(self):
        executor = MagicMock()
        executor.infer.return_value = _result()
        source = MockObservationSource(ObservationConfig(), max_frames=2, finite=True)
        engine = _engine(executor, source=source, max_failures=3)

        phase = engine.run()

        assert phase is SessionPhase.SCANNING
        assert executor.infer.call_count == 2
        assert not engine.session.fatal
        assert engine.session.last_error is None
        assert engine.session.stopped
        assert source.closed

    def test_model_load_failure_is_fatal(self):
        executor = MagicMock()
        executor.start.side_effect = RuntimeError("Model loading error: not found")
        engine = _engine(executor)

        assert engine.run() is SessionPhase.SCANNING
        assert engine.session.fatal
        assert "Model unavailable" in engine.session.last_error

    def test_inline_model_load_failure_is_fatal(self, tmp_path):
        config = Config.from_dict({
            "model": {"path": str(tmp_path / "missing.tflite")},
            "pipeline": {"topology": "inline"},
        })
        source = MockObservationSource(ObservationConfig())
        engine = create_engine_from_config(config, RuntimeContext(config=config), source=source)

        assert isinstance(engine.executor, InlineExecutor)
        assert engine.run() is SessionPhase.SCANNING
        assert engine.session.fatal
        assert "Model unavailable" in engine.session.last_error
        assert source.read() is None

    def test_stop_ends_loop(self):
        executor = MagicMock()
        executor.infer.return_value = _result()
        engine = _engine(executor)
        engine.add_callback(lambda fd, result: engine.stop())

        phase = engine.run()

        assert phase is SessionPhase.SCANNING
        assert executor.infer.call_count == 1

    def test_result_after_stop_is_dropped(self, make_frame_data):
        engine = _engine(MagicMock())

        def infer(frame_id, buffer):
            engine.stop()
            return _result(_front(0.95))

        engine.executor.infer.side_effect = infer
        result, ok = engine.run_cycle(make_frame_data(1000, 500))

        assert result is None
        assert engine.session.phase is SessionPhase.SCANNING
        assert engine.session.frames_processed == 0

    def test_frame_ids_increase(self, make_frame_data):
        executor = MagicMock()
        executor.infer.return_value = _result()
        engine = _engine(executor)

        first, _ = engine.run_cycle(make_frame_data())
        second, _ = engine.run_cycle(make_frame_data())

        assert second.frame_id == first.frame_id + 1
        assert [c.args[0] for c in executor.infer.call_args_list] == [first.frame_id, second.frame_id]

    def test_publishes_annotated_frame(self):
        executor = MagicMock()
        executor.infer.return_value = _result(_front(0.95))
        engine = _engine(executor)

        engine.run()

        frame = engine.ctx.get_frame()
        assert frame is not None
        assert frame.shape == (500, 1000, 3)
        assert frame.any()

    def test_confirmed_session_needs_reset(self):
        executor = MagicMock()
        executor.infer.return_value = _result(_front(0.95))
        engine = _engine(executor)
        engine.run()

        assert engine.run() is SessionPhase.CONFIRMED
        assert executor.infer.call_count == 1

        engine.reset()
        assert engine.wait_for_start(timeout=0)
        assert engine.session.phase is SessionPhase.SCANNING
        assert engine.run() is SessionPhase.CONFIRMED
        assert executor.infer.call_count == 2
        executor.start.assert_called_once()


class TestCreateEngine:
    def test_uses_supplied_collaborators(self):
        config = Config()
        source = MockObservationSource(ObservationConfig())
        executor = MagicMock()
        engine = create_engine_from_config(config, RuntimeContext(config=config), executor=executor, source=source)

        assert engine.source is source
        assert engine.executor is executor
        assert engine.model_cfg == config.model

    def test_worker_topology(self):
        config = Config.from_dict({"model": {"path": "m.tflite"}, "pipeline": {"topology": "worker"}})
        executor = create_executor(config)
        assert isinstance(executor, WorkerExecutor)
        assert not executor.worker.is_alive()
