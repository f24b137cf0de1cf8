"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.config import ModelConfig  # noqa: E402
from models.detection import Detection, NormalizedBox  # noqa: E402
from models.frame import FrameData  # noqa: E402

# Output names of a qi8-style export, in model order.
QI8_OUTPUT_NAMES = [
    "StatefulPartitionedCall:0",
    "StatefulPartitionedCall:01",
    "StatefulPartitionedCall:02",
    "StatefulPartitionedCall:03",
]


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30

model:
  path: "models/test.tflite"
  score_threshold: 0.5
  iou_threshold: 0.5
  max_results: 10

output_layout:
  preset: "qi8"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "model": {
            "path": "models/test.tflite",
            "input_size": [320, 320],
            "score_threshold": 0.5,
            "iou_threshold": 0.5,
            "max_results": 10,
        },
        "output_layout": {"preset": "qi8"},
        "decision": {
            "confirm_threshold": 0.7,
            "guide": {"width_ratio": 0.6, "height_ratio": 0.4},
        },
        "pipeline": {"topology": "inline"},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def model_cfg():
    return ModelConfig(path="models/test.tflite")


@pytest.fixture
def make_detection():
    """Factory for detections: make_detection(score, box=(y1, x1, y2, x2), class_id=0)."""
    def _make(score, box=(0.4, 0.4, 0.6, 0.6), class_id=0):
        return Detection(box=NormalizedBox(*box), score=score, class_id=class_id)
    return _make


@pytest.fixture
def make_qi8_raw():
    """
    Factory for raw qi8 outputs.

    make_qi8_raw(slots) where slots is a list of (yxyx_box, class_id, score);
    boxes are written in the model's (x, y, x, y) order and padded to 10 slots.
    """
    def _make(slots, num_slots=10, count=None):
        boxes = np.zeros((1, num_slots, 4), dtype=np.float32)
        classes = np.zeros((1, num_slots), dtype=np.float32)
        scores = np.zeros((1, num_slots), dtype=np.float32)
        for i, ((y1, x1, y2, x2), class_id, score) in enumerate(slots):
            boxes[0, i] = (x1, y1, x2, y2)
            classes[0, i] = class_id
            scores[0, i] = score
        n = len(slots) if count is None else count
        return {
            QI8_OUTPUT_NAMES[0]: boxes,
            QI8_OUTPUT_NAMES[1]: classes,
            QI8_OUTPUT_NAMES[2]: scores,
            QI8_OUTPUT_NAMES[3]: np.array([float(n)], dtype=np.float32),
        }
    return _make


@pytest.fixture
def make_frame_data():
    def _make(width=640, height=480, frame_index=0):
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        return FrameData(frame=frame, width=width, height=height, timestamp=time.time(), frame_index=frame_index)
    return _make


@pytest.fixture
def qi8_output_names():
    return list(QI8_OUTPUT_NAMES)


@pytest.fixture
def qi8_layout():
    from inference.layout import PRESETS
    return PRESETS["qi8"].resolve(QI8_OUTPUT_NAMES)
