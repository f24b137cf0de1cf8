"""
Preprocess stage: fit a camera frame into the detector input geometry.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from models.frame import PixelBuffer


def letterbox(
    frame: np.ndarray,
    input_size: Tuple[int, int],
    keep_aspect: bool = True,
    color_order: str = "rgb",
) -> PixelBuffer:
    """
    Resize a BGR frame to input_size, padding with black to keep aspect ratio.

    The scaled frame is centered; the result depends only on the frame and
    input dimensions.

    Args:
        frame: H x W x 3 BGR frame.
        input_size: Detector input (width, height).
        keep_aspect: Letterbox when True, stretch to fill when False.
        color_order: "rgb" or "bgr" channel order of the output.

    Returns:
        PixelBuffer with an input_size[1] x input_size[0] x 3 uint8 array.
    """
    target_w, target_h = input_size
    src_h, src_w = frame.shape[:2]
    if src_w <= 0 or src_h <= 0:
        raise ValueError(f"Cannot preprocess empty frame of shape {frame.shape}")

    if keep_aspect:
        scale = min(target_w / src_w, target_h / src_h)
        scale_x = scale_y = scale
    else:
        scale_x = target_w / src_w
        scale_y = target_h / src_h

    draw_w = min(target_w, max(1, int(round(src_w * scale_x))))
    draw_h = min(target_h, max(1, int(round(src_h * scale_y))))
    pad_x = (target_w - draw_w) // 2
    pad_y = (target_h - draw_h) // 2

    resized = cv2.resize(frame, (draw_w, draw_h), interpolation=cv2.INTER_LINEAR)
    if color_order == "rgb":
        resized = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

    canvas = np.zeros((target_h, target_w, 3), dtype=np.uint8)
    canvas[pad_y:pad_y + draw_h, pad_x:pad_x + draw_w] = resized

    return PixelBuffer(
        data=canvas,
        source_width=src_w,
        source_height=src_h,
        scale_x=draw_w / src_w,
        scale_y=draw_h / src_h,
        pad_x=float(pad_x),
        pad_y=float(pad_y),
    )
