"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


DEFAULT_CLASS_LABELS = {0: "document_front", 1: "document_back"}


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass(frozen=True)
class ModelConfig:
    """
    Detector configuration. Fixed for the lifetime of a capture session.

    Attributes:
        path: Path to the .tflite model file.
        input_size: Detector input (width, height).
        score_threshold: Minimum score kept by the decoder.
        iou_threshold: NMS overlap threshold.
        max_results: Maximum number of detector slots considered.
        keep_aspect: Letterbox (True) or stretch (False) frames to input_size.
        color_order: Channel order the detector expects ("rgb" or "bgr").
        num_threads: Interpreter thread count.
    """
    path: str = ""
    input_size: Tuple[int, int] = (320, 320)
    score_threshold: float = 0.5
    iou_threshold: float = 0.5
    max_results: int = 10
    keep_aspect: bool = True
    color_order: str = "rgb"
    num_threads: int = 4

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        input_size = d.get("input_size", [320, 320])
        return cls(
            path=d.get("path", ""),
            input_size=(int(input_size[0]), int(input_size[1])),
            score_threshold=float(d.get("score_threshold", 0.5)),
            iou_threshold=float(d.get("iou_threshold", 0.5)),
            max_results=int(d.get("max_results", 10)),
            keep_aspect=d.get("keep_aspect", True),
            color_order=d.get("color_order", "rgb"),
            num_threads=int(d.get("num_threads", 4)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "input_size": list(self.input_size),
            "score_threshold": self.score_threshold,
            "iou_threshold": self.iou_threshold,
            "max_results": self.max_results,
            "keep_aspect": self.keep_aspect,
            "color_order": self.color_order,
            "num_threads": self.num_threads,
        }


@dataclass
class OutputLayoutConfig:
    """
    Output layout selection.

    Either a named preset ("qi8", "qf16") or explicit role mappings. Explicit
    roles override the preset's.
    """
    preset: Optional[str] = None
    roles: Dict[str, Union[int, str]] = field(default_factory=dict)
    box_order: Optional[str] = None
    class_remap: Optional[Dict[int, int]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OutputLayoutConfig":
        roles = {
            role: d[role]
            for role in ("boxes", "classes", "scores", "count")
            if d.get(role) is not None
        }
        remap = d.get("class_remap")
        return cls(
            preset=d.get("preset"),
            roles=roles,
            box_order=d.get("box_order"),
            class_remap={int(k): int(v) for k, v in remap.items()} if remap else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.roles)
        if self.preset is not None:
            d["preset"] = self.preset
        if self.box_order is not None:
            d["box_order"] = self.box_order
        if self.class_remap is not None:
            d["class_remap"] = dict(self.class_remap)
        return d


@dataclass(frozen=True)
class DecisionConfig:
    """Confirmation policy configuration."""
    confirm_threshold: float = 0.7
    front_class_id: int = 0
    guide_width_ratio: float = 0.6
    guide_height_ratio: float = 0.4
    class_labels: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_CLASS_LABELS))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DecisionConfig":
        guide = d.get("guide", {}) or {}
        labels = d.get("class_labels") or DEFAULT_CLASS_LABELS
        return cls(
            confirm_threshold=float(d.get("confirm_threshold", 0.7)),
            front_class_id=int(d.get("front_class_id", 0)),
            guide_width_ratio=float(guide.get("width_ratio", 0.6)),
            guide_height_ratio=float(guide.get("height_ratio", 0.4)),
            class_labels={int(k): str(v) for k, v in labels.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confirm_threshold": self.confirm_threshold,
            "front_class_id": self.front_class_id,
            "guide": {
                "width_ratio": self.guide_width_ratio,
                "height_ratio": self.guide_height_ratio,
            },
            "class_labels": dict(self.class_labels),
        }


@dataclass
class SchedulerConfig:
    """Capture cycle timing."""
    success_delay: float = 0.1
    error_delay: float = 0.2
    backoff_factor: float = 2.0
    max_error_delay: float = 2.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            success_delay=float(d.get("success_delay", 0.1)),
            error_delay=float(d.get("error_delay", 0.2)),
            backoff_factor=float(d.get("backoff_factor", 2.0)),
            max_error_delay=float(d.get("max_error_delay", 2.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_delay": self.success_delay,
            "error_delay": self.error_delay,
            "backoff_factor": self.backoff_factor,
            "max_error_delay": self.max_error_delay,
        }


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        topology: "inline" runs inference on the engine thread,
            "worker" hands frames to an inference worker thread.
        result_timeout: Seconds to wait for a worker result.
        max_consecutive_failures: Max frame read failures before the
            source is considered lost.
        stats_log_interval: Seconds between status log messages.
        display: Show annotated frames in an OpenCV window.
    """
    topology: str = "inline"
    result_timeout: float = 2.0
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    display: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        return cls(
            topology=d.get("topology", "inline"),
            result_timeout=float(d.get("result_timeout", 2.0)),
            max_consecutive_failures=int(d.get("max_consecutive_failures", 10)),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
            display=d.get("display", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topology": self.topology,
            "result_timeout": self.result_timeout,
            "max_consecutive_failures": self.max_consecutive_failures,
            "stats_log_interval": self.stats_log_interval,
            "display": self.display,
        }


@dataclass
class WebConfig:
    """Status/control API configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    output_layout: OutputLayoutConfig = field(default_factory=lambda: OutputLayoutConfig(preset="qi8"))
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/doc_scanner.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        layout_dict = d.get("output_layout") or {"preset": "qi8"}
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            output_layout=OutputLayoutConfig.from_dict(layout_dict),
            decision=DecisionConfig.from_dict(d.get("decision", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            pipeline=PipelineConfig.from_dict(d.get("pipeline", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/doc_scanner.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "model": self.model.to_dict(),
            "output_layout": self.output_layout.to_dict(),
            "decision": self.decision.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
