"""Detector back-ends: colour blob (OpenCV), face and generic object (MediaPipe)."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

import cv2
import numpy as np

from arm_tracking.common import Detection, Rect
from arm_tracking.config import DetectorConfig
from arm_tracking.errors import DetectorError

logger = logging.getLogger(__name__)


def _load_mediapipe():
    import mediapipe as mp

    return mp


class Detector(Protocol):
    """Anything that finds at most one target in a BGR image."""

    def detect(self, frame_bgr: np.ndarray) -> Optional[Detection]:
        ...

    def close(self) -> None:
        ...


def _clamp_box(x: float, y: float, w: float, h: float, iw: int, ih: int) -> Rect:
    x = max(0.0, min(x, iw - w))
    y = max(0.0, min(y, ih - h))
    return Rect.from_xywh(x, y, min(w, iw), min(h, ih))


# ---------------------------------------------------------------------- #
#   C O L O U R   B L O B
# ---------------------------------------------------------------------- #
class ColorBlobDetector:
    """Largest blob inside an HSV range (yellow by default)."""

    label = "color"

    def __init__(self, config: DetectorConfig):
        self.config = config
        self._lower = np.array(config.hsv_lower, dtype=np.uint8)
        self._upper = np.array(config.hsv_upper, dtype=np.uint8)

    def detect(self, frame_bgr: np.ndarray) -> Optional[Detection]:
        if frame_bgr.ndim == 2:
            frame_bgr = cv2.cvtColor(frame_bgr, cv2.COLOR_GRAY2BGR)
        elif frame_bgr.shape[2] == 4:
            frame_bgr = cv2.cvtColor(frame_bgr, cv2.COLOR_BGRA2BGR)
        hsv = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2HSV)
        mask = cv2.inRange(hsv, self._lower, self._upper)
        # [-2] works for both the 2- and 3-tuple return of findContours
        contours = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)[-2]
        if not contours:
            return None

        best = max(contours, key=cv2.contourArea)
        area = cv2.contourArea(best)
        if area <= self.config.min_blob_area_px:
            return None
        x, y, w, h = cv2.boundingRect(best)
        return Detection(Rect.from_xywh(x, y, w, h), label=self.label)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------- #
#   F A C E
# ---------------------------------------------------------------------- #
class FaceDetector:
    """MediaPipe face-detection adapter; reports the highest-scoring face."""

    label = "face"

    def __init__(self, config: DetectorConfig):
        self.config = config
        mp = _load_mediapipe()
        self.detector = mp.solutions.face_detection.FaceDetection(
            model_selection=config.model_selection,
            min_detection_confidence=config.min_detection_confidence,
        )

    def detect(self, frame_bgr: np.ndarray) -> Optional[Detection]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        results = self.detector.process(rgb)
        ih, iw = rgb.shape[:2]

        best: Optional[Detection] = None
        for det in results.detections or []:
            bb = getattr(det.location_data, "relative_bounding_box", None)
            if bb is None:
                continue
            conf = float(det.score[0]) if det.score else 0.0
            if best is not None and conf <= (best.confidence or 0.0):
                continue
            rect = _clamp_box(bb.xmin * iw, bb.ymin * ih, bb.width * iw, bb.height * ih, iw, ih)
            best = Detection(rect, label=self.label, confidence=conf)
        return best

    def close(self) -> None:
        self.detector.close()


# ---------------------------------------------------------------------- #
#   G E N E R I C   O B J E C T
# ---------------------------------------------------------------------- #
class ObjectDetector:
    """
    MediaPipe Tasks object detector (EfficientDet-Lite style ``.tflite``).

    Objects whose label is in ``target_labels`` win; if none of those is in
    view the best-scoring object is tracked instead.
    """

    def __init__(self, config: DetectorConfig):
        self.config = config
        path = Path(config.object_model_path or "")
        if not path.is_file():
            raise DetectorError(f"Object detector model not found: {path}")

        self._mp = _load_mediapipe()
        from mediapipe.tasks import python as mp_tasks
        from mediapipe.tasks.python import vision as mp_vision

        options = mp_vision.ObjectDetectorOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(path)),
            running_mode=mp_vision.RunningMode.IMAGE,
            max_results=config.max_results,
            score_threshold=config.score_threshold,
        )
        self.detector = mp_vision.ObjectDetector.create_from_options(options)
        self._targets = {label.lower() for label in config.target_labels}

    def detect(self, frame_bgr: np.ndarray) -> Optional[Detection]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self.detector.detect(image)
        ih, iw = rgb.shape[:2]

        candidates = []
        for det in result.detections:
            if not det.categories:
                continue
            cat = det.categories[0]
            logger.debug("[ObjectDetector] Saw %r (%.2f)", cat.category_name, cat.score)
            candidates.append((det.bounding_box, cat.category_name, float(cat.score)))
        if not candidates:
            return None

        wanted = [c for c in candidates if (c[1] or "").lower() in self._targets]
        box, name, score = max(wanted or candidates, key=lambda c: c[2])
        rect = _clamp_box(box.origin_x, box.origin_y, box.width, box.height, iw, ih)
        return Detection(rect, label=name, confidence=score)

    def close(self) -> None:
        self.detector.close()


def create_detector(config: DetectorConfig) -> Detector:
    kind = config.kind.lower()
    if kind == "color":
        return ColorBlobDetector(config)
    if kind == "face":
        return FaceDetector(config)
    if kind == "object":
        return ObjectDetector(config)
    raise ValueError(f"Unknown detector kind: {config.kind!r}")
