"""Thin VideoCapture wrapper that hands out :class:`Frame` objects."""
from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import cv2

from arm_tracking.common import VALID_ROTATIONS, Frame
from arm_tracking.config import CameraConfig

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, config: CameraConfig) -> None:
        if config.rotation not in VALID_ROTATIONS:
            raise ValueError(f"Unsupported camera rotation {config.rotation!r}")
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None
        self.mirrored = config.mirrored

        self.actual_width: int = 0
        self.actual_height: int = 0
        self.actual_fps: float = 0.0
        self.actual_fourcc_str: str = ""
        self._seq = 0
        self._reopen_failures = 0

    @staticmethod
    def _get_fourcc_str(fourcc_val: int) -> str:
        if fourcc_val == 0:
            return ""
        return "".join(chr((fourcc_val >> (8 * i)) & 0xFF) for i in range(4))

    # ------------------------------------------------------------------ #
    #   P U B L I C   A P I
    # ------------------------------------------------------------------ #
    def open(self) -> bool:
        backend = cv2.CAP_V4L2 if self.config.use_v4l2 else cv2.CAP_ANY
        self.cap = cv2.VideoCapture(self.config.device_index, backend)
        if not self.cap or not self.cap.isOpened():
            logger.error("[Camera] Could not open device %s", self.config.device_index)
            self.cap = None
            return False

        if self.config.fourcc_str:
            self.cap.set(
                cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*self.config.fourcc_str)
            )
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        if self.config.fps_request > 0:
            self.cap.set(cv2.CAP_PROP_FPS, self.config.fps_request)
        # Keep only the latest frame; a slow consumer must not see stale ones.
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self.actual_fourcc_str = self._get_fourcc_str(
            int(self.cap.get(cv2.CAP_PROP_FOURCC))
        )
        self.actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.actual_fps = self.cap.get(cv2.CAP_PROP_FPS)

        logger.info(
            "[Camera] %dx%d@%.1f FPS (FOURCC='%s', rotation=%d, mirrored=%s)",
            self.actual_width,
            self.actual_height,
            self.actual_fps,
            self.actual_fourcc_str,
            self.config.rotation,
            self.mirrored,
        )
        if self.actual_width == 0 or self.actual_height == 0:
            logger.error("[Camera] Camera returned zero resolution")
            self.release()
            return False
        self._reopen_failures = 0
        return True

    def read(self) -> Optional[Frame]:
        """Grab one frame; None on failure (after a bounded reopen attempt)."""
        if not self.is_opened():
            self._try_reopen()
            return None
        ts = time.time()
        ret, image = self.cap.read()
        if not ret or image is None:
            return None
        self._seq += 1
        return Frame(
            image=image,
            rotation=self.config.rotation,
            mirrored=self.mirrored,
            seq=self._seq,
            timestamp=ts,
        )

    def _try_reopen(self) -> None:
        if self._reopen_failures >= self.config.max_reopen_attempts:
            return
        logger.warning("[Camera] Device closed, reopening...")
        if not self.open():
            self._reopen_failures += 1

    @property
    def reopen_exhausted(self) -> bool:
        return self._reopen_failures >= self.config.max_reopen_attempts

    def is_opened(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def release(self) -> None:
        if self.cap:
            logger.info("[Camera] Releasing capture device")
            self.cap.release()
            self.cap = None

    def get_properties(self) -> Tuple[int, int, float, str]:
        return (
            self.actual_width,
            self.actual_height,
            self.actual_fps,
            self.actual_fourcc_str,
        )
