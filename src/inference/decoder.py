"""
Output decoder: raw SSD tensors -> Detection list.

The decoder never raises. Anything it cannot interpret is reported as a
DecodeError value alongside an empty detection list, so one bad frame cannot
take down the capture loop.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np

from models.config import ModelConfig
from models.detection import Detection, NormalizedBox
from models.errors import DecodeError
from .backend import RawOutputSet
from .layout import ModelOutputLayout

# Quantized scores sometimes land a hair outside [0, 1].
SCORE_TOLERANCE = 1e-3


@dataclass
class DecodedOutput:
    """Decoder result: detections sorted by descending score, or an error."""
    detections: List[Detection] = field(default_factory=list)
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OutputDecoder:
    """
    Decode raw detector outputs using an explicit output layout.

    Example:
        layout = PRESETS["qi8"].resolve(detector.output_names)
        decoder = OutputDecoder(layout, model_cfg)
        decoded = decoder.decode(detector.predict(buffer))
    """

    def __init__(
        self,
        layout: ModelOutputLayout,
        model_cfg: ModelConfig,
        class_labels: Optional[Mapping[int, str]] = None,
    ):
        if not layout.is_resolved:
            raise ValueError("OutputDecoder needs a layout resolved against the model's output names")
        self.layout = layout
        self.model_cfg = model_cfg
        self.class_labels: Dict[int, str] = dict(class_labels or {})

    def decode(self, raw: RawOutputSet, frame_id: Optional[int] = None) -> DecodedOutput:
        try:
            return DecodedOutput(detections=self._decode(raw, frame_id))
        except DecodeError as e:
            logging.warning(f"Decode failed: {e}")
            return DecodedOutput(error=e)
        except Exception as e:
            err = DecodeError(f"Malformed detector output: {e}", frame_id=frame_id, stage="decode")
            logging.warning(f"Decode failed: {err}")
            return DecodedOutput(error=err)

    def _tensor(self, raw: RawOutputSet, role: str, frame_id: Optional[int]) -> Optional[np.ndarray]:
        name = self.layout.name_for(role)
        if name is None:
            return None
        if name not in raw:
            raise DecodeError(
                f"Output {name!r} for role {role!r} not found; got {sorted(raw)}",
                frame_id=frame_id,
                stage="decode",
            )
        return np.asarray(raw[name])

    def _decode(self, raw: RawOutputSet, frame_id: Optional[int]) -> List[Detection]:
        boxes = self._tensor(raw, "boxes", frame_id)
        scores = self._tensor(raw, "scores", frame_id)
        classes = self._tensor(raw, "classes", frame_id)
        count = self._tensor(raw, "count", frame_id)

        scores = scores.reshape(-1)
        classes = classes.reshape(-1)
        if boxes.size % 4 != 0:
            raise DecodeError(f"Boxes tensor of shape {boxes.shape} is not N x 4", frame_id=frame_id, stage="decode")
        boxes = boxes.reshape(-1, 4)

        slots = min(len(scores), len(classes), len(boxes))
        if not (len(scores) == len(classes) == len(boxes)):
            raise DecodeError(
                f"Slot counts disagree: scores={len(scores)} classes={len(classes)} boxes={len(boxes)}",
                frame_id=frame_id,
                stage="decode",
            )

        if count is not None:
            flat = count.reshape(-1)
            if flat.size == 0:
                raise DecodeError("Count tensor is empty", frame_id=frame_id, stage="decode")
            slots = min(slots, max(0, int(round(float(flat[0])))))

        slots = min(slots, self.model_cfg.max_results)

        considered = scores[:slots]
        finite = considered[np.isfinite(considered)]
        if finite.size and (finite.min() < -SCORE_TOLERANCE or finite.max() > 1.0 + SCORE_TOLERANCE):
            raise DecodeError(
                f"Scores outside [0, 1] (min={finite.min():.3f}, max={finite.max():.3f}); "
                "outputs look like raw logits or undequantized values",
                frame_id=frame_id,
                stage="decode",
            )

        detections: List[Detection] = []
        for i in range(slots):
            score = float(scores[i])
            if not math.isfinite(score) or score < self.model_cfg.score_threshold:
                continue

            raw_class = float(classes[i])
            if not math.isfinite(raw_class):
                continue
            class_id = self.layout.canonical_class(int(round(raw_class)))
            if class_id is None:
                logging.debug(f"Dropping slot {i}: unrecognized class {raw_class}")
                continue

            box = NormalizedBox.from_sequence(boxes[i], self.layout.box_order)
            if not box.is_valid:
                logging.debug(f"Dropping slot {i}: invalid box {box.as_tuple()}")
                continue

            detections.append(
                Detection(
                    box=box,
                    score=min(1.0, max(0.0, score)),
                    class_id=class_id,
                    class_name=self.class_labels.get(class_id),
                )
            )

        detections.sort(key=lambda d: d.score, reverse=True)
        return detections
