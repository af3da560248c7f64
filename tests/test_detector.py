"""Tests for the detector back-ends."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from arm_tracking.common import Rect
from arm_tracking.config import DetectorConfig
from arm_tracking.detector import (
    ColorBlobDetector,
    FaceDetector,
    ObjectDetector,
    create_detector,
)
from arm_tracking.errors import DetectorError

YELLOW_BGR = (0, 255, 255)


def _image_with_square(x, y, size, color=YELLOW_BGR, shape=(120, 160)):
    img = np.zeros((*shape, 3), dtype=np.uint8)
    img[y:y + size, x:x + size] = color
    return img


class TestColorBlobDetector:
    def test_finds_yellow_square(self):
        det = ColorBlobDetector(DetectorConfig())
        result = det.detect(_image_with_square(20, 30, 40))
        assert result is not None
        assert result.rect == Rect(20, 30, 60, 70)
        assert result.label == "color"

    def test_picks_largest_blob(self):
        img = _image_with_square(10, 10, 30)
        img[60:110, 90:140] = YELLOW_BGR
        result = ColorBlobDetector(DetectorConfig()).detect(img)
        assert result.rect == Rect(90, 60, 140, 110)

    def test_ignores_small_blobs(self):
        assert ColorBlobDetector(DetectorConfig()).detect(_image_with_square(5, 5, 10)) is None

    def test_ignores_other_colours(self):
        blue = _image_with_square(20, 30, 40, color=(255, 0, 0))
        assert ColorBlobDetector(DetectorConfig()).detect(blue) is None

    def test_black_frame(self):
        black = np.zeros((10, 10, 3), dtype=np.uint8)
        assert ColorBlobDetector(DetectorConfig()).detect(black) is None


def _face(xmin, ymin, w, h, score):
    bb = SimpleNamespace(xmin=xmin, ymin=ymin, width=w, height=h)
    return SimpleNamespace(location_data=SimpleNamespace(relative_bounding_box=bb), score=[score])


class TestFaceDetector:
    @pytest.fixture
    def mp(self):
        mp = MagicMock()
        with patch("arm_tracking.detector._load_mediapipe", return_value=mp):
            yield mp

    def test_returns_best_face_in_pixels(self, mp):
        backend = mp.solutions.face_detection.FaceDetection.return_value
        backend.process.return_value = SimpleNamespace(
            detections=[_face(0.5, 0.5, 0.1, 0.1, 0.6), _face(0.1, 0.2, 0.2, 0.3, 0.9)]
        )
        det = FaceDetector(DetectorConfig(kind="face"))
        result = det.detect(np.zeros((100, 200, 3), dtype=np.uint8))

        assert result.confidence == pytest.approx(0.9)
        assert result.rect.left == pytest.approx(20)
        assert result.rect.top == pytest.approx(20)
        assert result.rect.right == pytest.approx(60)
        assert result.rect.bottom == pytest.approx(50)

    def test_no_faces(self, mp):
        backend = mp.solutions.face_detection.FaceDetection.return_value
        backend.process.return_value = SimpleNamespace(detections=None)
        det = FaceDetector(DetectorConfig(kind="face"))
        assert det.detect(np.zeros((10, 10, 3), dtype=np.uint8)) is None

    def test_close(self, mp):
        det = FaceDetector(DetectorConfig(kind="face"))
        det.close()
        mp.solutions.face_detection.FaceDetection.return_value.close.assert_called_once()


class TestFactory:
    def test_color(self):
        assert isinstance(create_detector(DetectorConfig(kind="color")), ColorBlobDetector)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_detector(DetectorConfig(kind="lidar"))

    def test_object_detector_needs_model(self, tmp_path):
        cfg = DetectorConfig(kind="object", object_model_path=str(tmp_path / "missing.tflite"))
        with pytest.raises(DetectorError):
            ObjectDetector(cfg)
