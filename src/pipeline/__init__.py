"""
Pipeline module for the document scanner.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Preprocessing and inference (inline or on a worker thread)
- Decoding, suppression and the confirmation decision
- Rendering and runtime state updates
"""

from .engine import PipelineEngine, create_engine_from_config, create_executor
from .executors import InferenceExecutor, InlineExecutor, WorkerExecutor
from .scheduler import CycleScheduler
from .worker import InferenceWorker

__all__ = [
    "PipelineEngine",
    "create_engine_from_config",
    "create_executor",
    "InferenceExecutor",
    "InlineExecutor",
    "WorkerExecutor",
    "CycleScheduler",
    "InferenceWorker",
]
