from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from models.config import Config


@dataclass
class RuntimeContext:
    """
    State shared between the engine thread and the web API.

    The engine publishes each annotated frame here; API handlers read copies.
    """

    config: Config
    started_at: float = field(default_factory=time.time)
    stats: Dict[str, Any] = field(default_factory=dict)

    # Latest annotated frame for /api/frame.jpg and the preview window
    latest_frame: Optional[np.ndarray] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def update_frame(self, frame: np.ndarray, fps: float) -> None:
        with self._lock:
            self.latest_frame = frame
            self.stats["fps"] = fps
            self.stats["last_frame_ts"] = time.time()

    def get_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self.latest_frame is None else self.latest_frame.copy()

    def frame_age(self) -> Optional[float]:
        """Seconds since the last published frame, None before the first."""
        last = self.stats.get("last_frame_ts")
        return time.time() - last if last else None

    def stats_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            snapshot = dict(self.stats)
        snapshot["uptime_s"] = time.time() - self.started_at
        return snapshot
