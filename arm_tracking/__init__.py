"""Vision-to-motion tracking package – re-export high-level API."""
from .command_server import CommandServer        # noqa: F401
from .common import (                            # noqa: F401
    Command, ControlResult, Detection, ErrorVector, Frame, Rect,
    TrackingReport,
)
from .config import (                            # noqa: F401
    CameraConfig, ControlConfig, DetectorConfig, ServerConfig,
)
from .control import compute_command             # noqa: F401
from .errors import DetectorError, TrackingError, TransportError  # noqa: F401
from .geometry import normalize                  # noqa: F401
from .processor import TrackingProcessor         # noqa: F401
from .transport import ConnectionState           # noqa: F401
from .video_server import VideoServer            # noqa: F401
