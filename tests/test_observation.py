"""
Tests for observation layer.
"""

import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from models.errors import AcquisitionError
from models.frame import FrameData
from observation import create_source_from_config
from observation.base import ObservationSource, ObservationConfig
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig


class MockSource(ObservationSource):
    """Mock observation source for testing."""

    def __init__(self, config: ObservationConfig, frames: list = None):
        super().__init__(config)
        self._frames = frames or []
        self._pos = 0

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self):
        if not self._is_open or self._pos >= len(self._frames):
            return None

        frame = self._frames[self._pos]
        self._pos += 1
        self._frame_index += 1

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


class TestOpenCVSourceConfig:
    def test_from_camera_config(self):
        camera_cfg = {
            "device_id": "samples/card.mp4",
            "resolution": [1280, 720],
            "fps": 30,
            "swap_rb": True,
            "rotate": 90,
        }
        config = OpenCVSourceConfig.from_camera_config(camera_cfg, source_id="doc-cam")

        assert config.source_id == "doc-cam"
        assert config.device_id == "samples/card.mp4"
        assert config.resolution == (1280, 720)
        assert config.fps == 30
        assert config.swap_rb is True
        assert config.rotate == 90


class TestMockSource:
    def test_source_lifecycle(self):
        config = ObservationConfig(source_id="test")
        frames = [np.zeros((100, 100, 3), dtype=np.uint8) for _ in range(3)]
        source = MockSource(config, frames)

        assert not source.is_open
        source.open()
        assert source.is_open

        fd = source.read()
        assert fd is not None
        assert fd.source == "test"
        assert source.frame_index == 1

        source.close()
        assert not source.is_open
        assert source.read() is None

    def test_context_manager(self):
        frames = [np.zeros((50, 50, 3), dtype=np.uint8) for _ in range(2)]

        with MockSource(ObservationConfig(source_id="ctx-test"), frames) as source:
            assert source.is_open
            assert source.read().frame_index == 1

        assert not source.is_open


class TestOpenCVSource:
    def test_open_failure_raises_acquisition_error(self):
        cap = MagicMock()
        cap.isOpened.return_value = False
        source = OpenCVSource(OpenCVSourceConfig(device_id=3, max_retries=1))

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap):
            with pytest.raises(AcquisitionError, match="Failed to open device 3"):
                source.open()

        assert not source.is_open
        cap.release.assert_called_once()

    def test_reads_and_transforms_frames(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (True, frame)
        source = OpenCVSource(OpenCVSourceConfig(device_id="video.mp4", rotate=90, source_id="cam"))

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap):
            source.open()
            fd = source.read()
            source.close()

        assert (fd.width, fd.height) == (480, 640)
        assert fd.frame_index == 1
        assert fd.source == "cam"
        cap.release.assert_called_once()

    def test_read_failure_returns_none(self):
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (False, None)
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap):
            source.open()
            assert source.read() is None
        assert not source.exhausted

    def test_end_of_video_marks_exhausted(self, tmp_path):
        video = tmp_path / "card.mp4"
        video.write_bytes(b"")
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.side_effect = [(True, np.zeros((48, 64, 3), dtype=np.uint8)), (False, None)]
        source = OpenCVSource(OpenCVSourceConfig(device_id=str(video)))

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap):
            source.open()
            assert source.read() is not None
            assert not source.exhausted
            assert source.read() is None

        assert source.exhausted

    def test_read_when_closed(self):
        assert OpenCVSource(OpenCVSourceConfig()).read() is None


class TestCreateSourceFromConfig:
    def test_opencv_backend(self):
        source = create_source_from_config({"device_id": 1, "resolution": [640, 480]}, source_id="main-camera")
        assert isinstance(source, OpenCVSource)
        assert source.source_id == "main-camera"
        assert source.device_id == 1

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="backend"):
            create_source_from_config({"backend": "picamera2"})
