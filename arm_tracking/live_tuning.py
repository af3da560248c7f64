"""Hot-reload control parameters from a JSON file while the loop is running.

Recognised keys (all optional)::

    {
      "deadzone_px": 60,
      "depth_enabled": true,
      "area_min_pct": 6.0,
      "area_max_pct": 10.0,
      "mirrored": false
    }
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from arm_tracking.config import ControlConfig

logger = logging.getLogger(__name__)

_FLOAT_KEYS = ("deadzone_px", "area_min_pct", "area_max_pct")
_BOOL_KEYS = ("depth_enabled",)


class ControlTuner:
    """Watch ``path`` and push changed values into a :class:`ControlConfig`."""

    def __init__(self, control: ControlConfig, path: str | Path = "runtime_params.json") -> None:
        self.control = control
        self.path = Path(path).expanduser().resolve()
        self.mirrored: Optional[bool] = None
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                params = json.load(fp)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("[Tuning] Could not read %s: %s", self.path, exc)
            return None
        if not isinstance(params, dict):
            logger.warning("[Tuning] %s must hold a JSON object", self.path)
            return None
        return params

    def apply(self, params: Dict[str, Any]) -> None:
        for key in _FLOAT_KEYS:
            if key in params:
                try:
                    value = float(params[key])
                except (TypeError, ValueError):
                    logger.warning("[Tuning] Ignoring non-numeric %s=%r", key, params[key])
                    continue
                if value < 0:
                    logger.warning("[Tuning] Ignoring negative %s=%r", key, value)
                    continue
                setattr(self.control, key, value)
        for key in _BOOL_KEYS:
            if key in params:
                setattr(self.control, key, bool(params[key]))
        if "mirrored" in params:
            self.mirrored = bool(params["mirrored"])

        if self.control.area_min_pct > self.control.area_max_pct:
            logger.warning(
                "[Tuning] area_min_pct %.1f > area_max_pct %.1f; depth will never hold",
                self.control.area_min_pct,
                self.control.area_max_pct,
            )

    def maybe_reload(self) -> bool:
        """Reload if the file changed since the last call; True when applied."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False

        mtime, fsize = self._stamp
        if stat.st_size == fsize and stat.st_mtime == mtime:
            return False
        self._stamp = (stat.st_mtime, stat.st_size)

        params = self._read()
        if params is None:
            return False
        self.apply(params)
        logger.info("[Tuning] Reloaded %s: %s", self.path, self.control)
        return True
