"""
Tests for the output decoder.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from inference.decoder import OutputDecoder
from inference.layout import PRESETS, ModelOutputLayout
from models.config import ModelConfig
from models.errors import DecodeError, DetectorError
from models.frame import PixelBuffer

FRONT_BOX = (0.3, 0.2, 0.7, 0.8)


@pytest.fixture
def decoder(qi8_layout, model_cfg):
    return OutputDecoder(qi8_layout, model_cfg, class_labels={0: "document_front", 1: "document_back"})


class TestOutputDecoder:
    def test_requires_resolved_layout(self, model_cfg):
        with pytest.raises(ValueError, match="resolved"):
            OutputDecoder(PRESETS["qi8"], model_cfg)

    def test_decodes_xyxy_boxes_to_canonical_order(self, decoder, make_qi8_raw):
        decoded = decoder.decode(make_qi8_raw([(FRONT_BOX, 0, 0.9)]))

        assert decoded.ok
        assert len(decoded.detections) == 1
        det = decoded.detections[0]
        assert det.box.as_tuple() == pytest.approx(FRONT_BOX)
        assert det.class_id == 0
        assert det.class_name == "document_front"
        assert det.score == pytest.approx(0.9)

    def test_drops_below_score_threshold(self, decoder, make_qi8_raw):
        raw = make_qi8_raw([
            (FRONT_BOX, 0, 0.9),
            ((0.1, 0.1, 0.2, 0.2), 1, 0.49),
            ((0.5, 0.5, 0.6, 0.6), 1, 0.5),
        ])
        scores = [d.score for d in decoder.decode(raw).detections]
        assert scores == pytest.approx([0.9, 0.5])

    def test_count_limits_slots(self, decoder, make_qi8_raw):
        raw = make_qi8_raw([(FRONT_BOX, 0, 0.9), ((0.1, 0.1, 0.2, 0.2), 1, 0.8)], count=1)
        assert len(decoder.decode(raw).detections) == 1

    def test_never_exceeds_max_results(self, qi8_layout, make_qi8_raw):
        decoder = OutputDecoder(qi8_layout, ModelConfig(path="m", max_results=3))
        slots = [((0.1 * i, 0.0, 0.1 * i + 0.05, 0.1), 0, 0.9 - 0.01 * i) for i in range(8)]
        decoded = decoder.decode(make_qi8_raw(slots))
        assert len(decoded.detections) == 3
        assert all(d.score >= 0.5 for d in decoded.detections)

    def test_sorted_by_descending_score(self, decoder, make_qi8_raw):
        raw = make_qi8_raw([
            ((0.1, 0.1, 0.2, 0.2), 1, 0.6),
            (FRONT_BOX, 0, 0.95),
            ((0.5, 0.5, 0.6, 0.6), 1, 0.7),
        ])
        scores = [d.score for d in decoder.decode(raw).detections]
        assert scores == sorted(scores, reverse=True)

    def test_equal_scores_keep_slot_order(self, decoder, make_qi8_raw):
        raw = make_qi8_raw([
            ((0.1, 0.1, 0.2, 0.2), 0, 0.8),
            ((0.3, 0.1, 0.4, 0.2), 1, 0.9),
            ((0.5, 0.1, 0.6, 0.2), 0, 0.8),
        ])

        decoded = decoder.decode(raw)

        assert [d.box.y_min for d in decoded.detections] == pytest.approx([0.3, 0.1, 0.5])
        assert [d.class_id for d in decoded.detections] == [1, 0, 0]

    def test_missing_role_is_decode_error(self, decoder, make_qi8_raw, qi8_output_names):
        raw = make_qi8_raw([(FRONT_BOX, 0, 0.9)])
        del raw[qi8_output_names[2]]

        decoded = decoder.decode(raw, frame_id=7)

        assert not decoded.ok
        assert decoded.detections == []
        assert isinstance(decoded.error, DecodeError)
        assert decoded.error.frame_id == 7

    def test_logit_scores_rejected(self, decoder, make_qi8_raw, qi8_output_names):
        raw = make_qi8_raw([(FRONT_BOX, 0, 0.9)])
        raw[qi8_output_names[2]][0, 0] = 4.2
        decoded = decoder.decode(raw)
        assert decoded.error is not None
        assert "logits" in str(decoded.error)

    def test_mismatched_slot_counts(self, decoder, make_qi8_raw, qi8_output_names):
        raw = make_qi8_raw([(FRONT_BOX, 0, 0.9)])
        raw[qi8_output_names[1]] = np.zeros((1, 5), dtype=np.float32)
        assert not decoder.decode(raw).ok

    def test_empty_outputs(self, decoder, make_qi8_raw):
        decoded = decoder.decode(make_qi8_raw([], count=0))
        assert decoded.ok
        assert decoded.detections == []

    def test_unknown_class_dropped(self, qi8_output_names, model_cfg, make_qi8_raw):
        layout = ModelOutputLayout(
            roles={"boxes": 0, "classes": 1, "scores": 2, "count": 3},
            box_order="xyxy",
            class_remap={1: 0},
        ).resolve(qi8_output_names)
        decoder = OutputDecoder(layout, model_cfg)
        raw = make_qi8_raw([(FRONT_BOX, 1, 0.9), ((0.1, 0.1, 0.2, 0.2), 5, 0.8)])

        decoded = decoder.decode(raw)

        assert [d.class_id for d in decoded.detections] == [0]

    def test_inverted_box_dropped(self, decoder, make_qi8_raw):
        raw = make_qi8_raw([((0.7, 0.2, 0.3, 0.8), 0, 0.9)])
        assert decoder.decode(raw).detections == []

    def test_yxyx_layout_without_count(self, model_cfg):
        layout = ModelOutputLayout(roles={"boxes": "b", "classes": "c", "scores": "s"}).resolve(["b", "c", "s"])
        decoder = OutputDecoder(layout, model_cfg)
        raw = {
            "b": np.array([[FRONT_BOX, (0.0, 0.0, 0.1, 0.1)]], dtype=np.float32),
            "c": np.array([[1.0, 0.0]], dtype=np.float32),
            "s": np.array([[0.8, 0.2]], dtype=np.float32),
        }
        decoded = decoder.decode(raw)
        assert len(decoded.detections) == 1
        assert decoded.detections[0].box.as_tuple() == pytest.approx(FRONT_BOX)
        assert decoded.detections[0].class_id == 1


class TestDequantize:
    def test_uint8_scores_use_tensor_quantization(self):
        from inference.tflite_backend import dequantize

        values = np.array([[0, 128, 255]], dtype=np.uint8)
        out = dequantize(values, {"quantization": (1.0 / 255.0, 0)})

        assert out.dtype == np.float32
        assert out[0].tolist() == pytest.approx([0.0, 128 / 255.0, 1.0])

    def test_zero_point_is_subtracted(self):
        from inference.tflite_backend import dequantize

        out = dequantize(np.array([10, 20], dtype=np.int8), {"quantization": (0.5, 10)})
        assert out.tolist() == pytest.approx([0.0, 5.0])

    def test_float_outputs_pass_through(self):
        from inference.tflite_backend import dequantize

        values = np.array([0.25, 0.75], dtype=np.float16)
        out = dequantize(values, {"quantization": (0.1, 3)})
        assert out.dtype == np.float32
        assert out.tolist() == pytest.approx([0.25, 0.75])


class TestTFLiteDetector:
    @pytest.fixture
    def detector(self):
        from inference.tflite_backend import TFLiteConfig, TFLiteDetector

        # Skip __init__: the interpreter is replaced by a mock.
        detector = TFLiteDetector.__new__(TFLiteDetector)
        detector.cfg = TFLiteConfig(model_path="models/test.tflite")
        detector._interpreter = MagicMock()
        detector._input = {"index": 0, "shape": np.array([1, 320, 320, 3]), "dtype": np.uint8}
        detector._outputs = [{"name": "scores", "index": 1, "quantization": (1.0 / 255.0, 0)}]
        return detector

    def test_rejects_buffer_of_wrong_size(self, detector):
        buffer = PixelBuffer(data=np.zeros((300, 320, 3), dtype=np.uint8), source_width=320, source_height=300)

        with pytest.raises(DetectorError, match="model expects 320x320"):
            detector.predict(buffer)
        detector._interpreter.invoke.assert_not_called()

    def test_outputs_are_dequantized(self, detector):
        detector._interpreter.get_tensor.return_value = np.array([[255, 0]], dtype=np.uint8)
        buffer = PixelBuffer(data=np.zeros((320, 320, 3), dtype=np.uint8), source_width=320, source_height=320)

        out = detector.predict(buffer)

        assert out["scores"].dtype == np.float32
        assert out["scores"][0, 0] == pytest.approx(1.0)
        assert out["scores"][0, 1] == pytest.approx(0.0)
