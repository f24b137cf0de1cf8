"""
Inference backend interface.

A detector maps a preprocessed PixelBuffer to its raw output tensors, keyed
by output name. Interpreting those tensors is the decoder's job.
"""

from __future__ import annotations

from typing import Dict, List, Protocol

import numpy as np

from models.frame import PixelBuffer


RawOutputSet = Dict[str, np.ndarray]


class Detector(Protocol):
    @property
    def output_names(self) -> List[str]:
        """Output tensor names in model order."""
        ...

    def predict(self, buffer: PixelBuffer) -> RawOutputSet:
        """Run inference. Raises DetectorError on failure."""
        ...
