"""Typed configuration blobs for the whole system."""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class CameraConfig:
    device_index: int = 0
    width: int = 320
    height: int = 240
    fps_request: int = 30
    use_v4l2: bool = True
    fourcc_str: str = "MJPG"
    rotation: int = 0                 # 0/90/180/270, clockwise to upright
    mirrored: bool = False            # front-facing / selfie camera
    max_reopen_attempts: int = 5


@dataclass
class DetectorConfig:
    kind: str = "color"               # color | face | object | none (stream only)
    # Color blob (HSV, OpenCV ranges: H 0‒180)
    hsv_lower: Tuple[int, int, int] = (20, 100, 100)
    hsv_upper: Tuple[int, int, int] = (35, 255, 255)
    min_blob_area_px: float = 500.0
    # Face
    model_selection: int = 0
    min_detection_confidence: float = 0.5
    # Generic object
    object_model_path: Optional[str] = "efficientdet_lite0.tflite"
    score_threshold: float = 0.3
    max_results: int = 5
    target_labels: List[str] = field(
        default_factory=lambda: ["sports ball", "bottle", "cup"]
    )


@dataclass
class ControlConfig:
    deadzone_px: float = 60.0
    depth_enabled: bool = False
    area_min_pct: float = 6.0
    area_max_pct: float = 10.0


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    command_port: int = 6000
    video_port: int = 6001
    command_enabled: bool = True
    video_enabled: bool = True
    jpeg_quality: int = 50
    write_timeout_s: float = 2.0
    rotate_upright: bool = False
