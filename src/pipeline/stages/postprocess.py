"""
Postprocess stage: decode, map back to the frame, suppress overlaps.

This is the single implementation shared by the inline engine and the
inference worker; only the transport around it differs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from algorithms.suppression import non_max_suppression
from inference.backend import RawOutputSet
from inference.decoder import OutputDecoder
from inference.layout import ModelOutputLayout
from models.config import ModelConfig
from models.detection import Detection
from models.errors import DecodeError
from models.frame import PixelBuffer


@dataclass
class PostProcessResult:
    detections: List[Detection] = field(default_factory=list)
    error: Optional[DecodeError] = None


class PostProcessor:
    """
    Turn raw detector outputs into the final per-frame detection list.

    Steps: decode (threshold, slot limit, class remap, box order) -> map
    boxes from detector input space to frame space -> greedy NMS.
    """

    def __init__(self, decoder: OutputDecoder, model_cfg: ModelConfig):
        self.decoder = decoder
        self.model_cfg = model_cfg

    def process(
        self,
        raw: RawOutputSet,
        buffer: Optional[PixelBuffer] = None,
        frame_id: Optional[int] = None,
    ) -> PostProcessResult:
        decoded = self.decoder.decode(raw, frame_id=frame_id)
        if decoded.error is not None:
            return PostProcessResult(error=decoded.error)

        detections = decoded.detections
        if buffer is not None:
            detections = [
                Detection(
                    box=buffer.to_frame_box(d.box, self.model_cfg.input_size),
                    score=d.score,
                    class_id=d.class_id,
                    class_name=d.class_name,
                )
                for d in detections
            ]

        detections.sort(key=lambda d: d.score, reverse=True)
        kept = non_max_suppression(detections, self.model_cfg.iou_threshold)

        if len(kept) != len(detections):
            logging.debug(
                f"[NMS] frame_id={frame_id} kept {len(kept)}/{len(detections)} candidates"
            )
        return PostProcessResult(detections=kept)


def create_postprocessor(
    layout: ModelOutputLayout,
    model_cfg: ModelConfig,
    output_names: Sequence[str],
    class_labels: Optional[Mapping[int, str]] = None,
) -> PostProcessor:
    """
    Factory: validate the layout against the loaded model and build the stage.

    Raises:
        LayoutError: If the layout does not fit the model's outputs.
    """
    resolved = layout.resolve(output_names)
    logging.info(f"Output layout resolved: roles={dict(resolved.roles)}, box_order={resolved.box_order}")
    decoder = OutputDecoder(resolved, model_cfg, class_labels=class_labels)
    return PostProcessor(decoder, model_cfg)
