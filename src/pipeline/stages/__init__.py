"""
Pipeline stages for the document scanner.

Each stage handles a specific part of the processing cycle:
- preprocess: letterbox frames into the detector input
- postprocess: decode outputs and suppress overlaps
- decide: best-detection selection and confirmation gate
- render: frame annotation
"""

from .preprocess import letterbox
from .postprocess import PostProcessor, PostProcessResult, create_postprocessor
from .decide import DecisionPolicy, select_best
from .render import OverlayRenderer

__all__ = [
    "letterbox",
    "PostProcessor",
    "PostProcessResult",
    "create_postprocessor",
    "DecisionPolicy",
    "select_best",
    "OverlayRenderer",
]
