"""
TFLite inference backend for the SSD-MobileNet document models.

Uses tflite-runtime if installed. Integer outputs are dequantized with the
tensor's quantization parameters, so the decoder always sees real-valued
scores and boxes regardless of the model variant (qi8 vs qf16).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

from models.errors import DetectorError
from models.frame import PixelBuffer
from .backend import Detector, RawOutputSet


@dataclass(frozen=True)
class TFLiteConfig:
    model_path: str
    num_threads: int = 4


def dequantize(values: np.ndarray, detail: Dict[str, Any]) -> np.ndarray:
    """Convert a quantized output tensor to float32; float tensors pass through."""
    if np.issubdtype(values.dtype, np.floating):
        return values.astype(np.float32, copy=False)
    scale, zero_point = detail.get("quantization", (0.0, 0))
    if not scale:
        return values.astype(np.float32)
    return (values.astype(np.float32) - float(zero_point)) * float(scale)


class TFLiteDetector(Detector):
    def __init__(self, cfg: TFLiteConfig):
        self.cfg = cfg
        try:
            from tflite_runtime.interpreter import Interpreter  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "tflite-runtime is not installed. Install with `pip install tflite-runtime`."
            ) from e

        self._interpreter = Interpreter(model_path=cfg.model_path, num_threads=cfg.num_threads)
        self._interpreter.allocate_tensors()
        self._input = self._interpreter.get_input_details()[0]
        self._outputs = self._interpreter.get_output_details()

        logging.info(
            f"TFLite model loaded: {cfg.model_path}, input={tuple(self._input['shape'])} "
            f"{np.dtype(self._input['dtype']).name}, outputs={self.output_names}"
        )

    @property
    def output_names(self) -> List[str]:
        return [d["name"] for d in self._outputs]

    @property
    def input_size(self):
        """Model input as (width, height)."""
        shape = self._input["shape"]
        return int(shape[2]), int(shape[1])

    def predict(self, buffer: PixelBuffer) -> RawOutputSet:
        if (buffer.width, buffer.height) != self.input_size:
            raise DetectorError(
                f"Buffer is {buffer.width}x{buffer.height}, model expects "
                f"{self.input_size[0]}x{self.input_size[1]}",
                stage="predict",
            )
        try:
            tensor = np.expand_dims(buffer.data, 0).astype(self._input["dtype"], copy=False)
            self._interpreter.set_tensor(self._input["index"], tensor)
            self._interpreter.invoke()
            return {
                d["name"]: dequantize(self._interpreter.get_tensor(d["index"]), d)
                for d in self._outputs
            }
        except Exception as e:
            raise DetectorError(f"TFLite inference failed: {e}", stage="predict") from e


def create_tflite_detector(model_path: str, config: Dict[str, Any]) -> TFLiteDetector:
    """Factory used by the inference worker's init message."""
    return TFLiteDetector(
        TFLiteConfig(model_path=model_path, num_threads=int(config.get("num_threads", 4)))
    )
