#!/usr/bin/env python3
"""
Inspect a TFLite detection model.

Prints the input and output tensors (name, shape, dtype, quantization) and,
if a preset is given, which output each role of that preset resolves to.
Use it to write the output_layout section for a new model export.

Usage:
    python tools/inspect_model.py --model models/ssd_mobilenet_qi8.tflite --preset qi8
"""

import argparse
import os
import sys

import numpy as np

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from inference.layout import PRESETS
from models.errors import LayoutError


def _describe(detail):
    scale, zero_point = detail.get("quantization", (0.0, 0))
    quant = f" quant=(scale={scale}, zero_point={zero_point})" if scale else ""
    return f"{detail['name']}: shape={list(detail['shape'])} dtype={np.dtype(detail['dtype']).name}{quant}"


def main():
    """Main function for model inspection."""
    parser = argparse.ArgumentParser(description='Inspect TFLite model tensors')
    parser.add_argument('--model', type=str, required=True,
                        help='Path to the .tflite model')
    parser.add_argument('--preset', type=str, choices=sorted(PRESETS), default=None,
                        help='Resolve this output layout preset against the model')
    args = parser.parse_args()

    if not os.path.exists(args.model):
        print(f"ERROR: Model not found: {args.model}")
        return 1

    try:
        from tflite_runtime.interpreter import Interpreter
    except ImportError:
        print("ERROR: tflite-runtime is not installed. Install with `pip install tflite-runtime`.")
        return 1

    interpreter = Interpreter(model_path=args.model)
    interpreter.allocate_tensors()

    print("Inputs:")
    for detail in interpreter.get_input_details():
        print(f"  {_describe(detail)}")

    outputs = interpreter.get_output_details()
    print("Outputs:")
    for i, detail in enumerate(outputs):
        print(f"  [{i}] {_describe(detail)}")

    if args.preset:
        try:
            layout = PRESETS[args.preset].resolve([d["name"] for d in outputs])
        except LayoutError as e:
            print(f"ERROR: preset {args.preset} does not fit this model: {e}")
            return 1
        print(f"Preset {args.preset} (box_order={layout.box_order}):")
        for role, name in layout.roles.items():
            print(f"  {role:8s} -> {name}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
