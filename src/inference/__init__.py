"""
Inference layer: detector interface, output layouts and decoding.

The TFLite backend is imported lazily by callers so the rest of the package
works without tflite-runtime installed.
"""

from .backend import Detector, RawOutputSet
from .decoder import DecodedOutput, OutputDecoder
from .layout import PRESETS, ModelOutputLayout, layout_from_config

__all__ = [
    "Detector",
    "RawOutputSet",
    "DecodedOutput",
    "OutputDecoder",
    "PRESETS",
    "ModelOutputLayout",
    "layout_from_config",
]
