"""
Live document scanner.

Captures camera frames, detects ID documents with a TFLite SSD model and
stops once a front-side document is confidently framed inside the guide.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the annotated preview window
    --topology: Run inference inline or on a worker thread
    --no-web: Disable the status/control API (exit after one session)
"""

import os
import sys
import argparse
import logging
import threading
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from models.config import Config, OutputLayoutConfig
from models.errors import LayoutError
from inference.layout import BOX_ORDERS, PRESETS, layout_from_config
from ops.logging import setup_logging
from runtime.context import RuntimeContext
from pipeline.engine import create_engine_from_config
from web.app import create_app

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
VALID_TOPOLOGIES = ('inline', 'worker')


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_ratio(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'model', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera', {}) or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (path/URL)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2 or not all(isinstance(x, int) and x > 0 for x in res):
            return False, "camera.resolution must be a list of two positive integers"
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"

    # Model
    model = config.get('model', {}) or {}
    if not isinstance(model.get('path'), str) or not model.get('path'):
        return False, "model.path is required"
    for key in ('score_threshold', 'iou_threshold'):
        if key in model and not _is_ratio(model[key]):
            return False, f"model.{key} must be between 0 and 1"
    if 'input_size' in model:
        size = model['input_size']
        if not isinstance(size, list) or len(size) != 2 or not all(isinstance(x, int) and x > 0 for x in size):
            return False, "model.input_size must be a list of two positive integers"
    if 'max_results' in model:
        if not isinstance(model['max_results'], int) or model['max_results'] <= 0:
            return False, "model.max_results must be a positive integer"
    if model.get('color_order', 'rgb') not in ('rgb', 'bgr'):
        return False, "model.color_order must be one of: rgb, bgr"

    # Output layout
    layout = config.get('output_layout', {}) or {}
    preset = layout.get('preset')
    if preset is not None and preset not in PRESETS:
        return False, f"output_layout.preset must be one of: {', '.join(sorted(PRESETS))}"
    if layout.get('box_order') is not None and layout['box_order'] not in BOX_ORDERS:
        return False, f"output_layout.box_order must be one of: {', '.join(BOX_ORDERS)}"
    try:
        layout_from_config(OutputLayoutConfig.from_dict(layout or {"preset": "qi8"}))
    except (LayoutError, ValueError, TypeError) as e:
        return False, f"output_layout is invalid: {e}"

    # Decision
    decision = config.get('decision', {}) or {}
    if 'confirm_threshold' in decision and not _is_ratio(decision['confirm_threshold']):
        return False, "decision.confirm_threshold must be between 0 and 1"
    guide = decision.get('guide', {}) or {}
    for key in ('width_ratio', 'height_ratio'):
        if key in guide and (not _is_ratio(guide[key]) or guide[key] == 0):
            return False, f"decision.guide.{key} must be in (0, 1]"

    # Pipeline
    pipeline = config.get('pipeline', {}) or {}
    if pipeline.get('topology', 'inline') not in VALID_TOPOLOGIES:
        return False, f"pipeline.topology must be one of: {', '.join(VALID_TOPOLOGIES)}"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def _start_web(app, host: str, port: int) -> threading.Thread:
    def run_web_app():
        uvicorn.run(app, host=host, port=port, log_level="info")

    web_thread = threading.Thread(target=run_web_app, daemon=True, name="web")
    web_thread.start()
    logging.info(f"Web interface started on {host}:{port}")
    return web_thread


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Live Document Scanner')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show annotated preview window')
    parser.add_argument('--topology', choices=VALID_TOPOLOGIES, default=None,
                        help='Override pipeline.topology')
    parser.add_argument('--no-web', action='store_true',
                        help='Disable the status/control API')
    args = parser.parse_args()

    raw_config = load_config(args.config)
    if args.topology:
        raw_config.setdefault('pipeline', {})['topology'] = args.topology
    if args.display:
        raw_config.setdefault('pipeline', {})['display'] = True
    if args.no_web:
        raw_config.setdefault('web', {})['enabled'] = False

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info(
        f"Starting Document Scanner: model={config.model.path}, "
        f"layout={config.output_layout.preset or 'custom'}, topology={config.pipeline.topology}"
    )

    ctx = RuntimeContext(config=config)
    engine = create_engine_from_config(config, ctx)

    if config.web.enabled:
        _start_web(create_app(engine, ctx), config.web.host, config.web.port)

    try:
        while True:
            phase = engine.run()
            status = engine.session.snapshot()
            logging.info(f"Session ended: phase={phase.value}, frames={status['frames_processed']}")
            if not config.web.enabled:
                break
            logging.info("Waiting for POST /api/session/start")
            engine.wait_for_start()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        engine.close()
        logging.info("Document Scanner stopped")

    if engine.session.fatal:
        sys.exit(1)


if __name__ == "__main__":
    main()
