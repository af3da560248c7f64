"""Objects that are shared across multiple modules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    A single camera sample.

    ``image`` is in *sensor* orientation; ``rotation`` says how many degrees
    clockwise it has to be turned to be upright.  ``seq`` increases by one per
    captured frame and is never reused.
    """
    image: np.ndarray
    rotation: int = 0
    mirrored: bool = False
    seq: int = 0
    timestamp: float = 0.0

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def upright_size(self) -> Tuple[int, int]:
        if self.rotation in (90, 270):
            return self.height, self.width
        return self.width, self.height


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, pixel units, (left, top, right, bottom)."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Rect":
        return cls(float(x), float(y), float(x + w), float(y + h))


@dataclass(frozen=True)
class Detection:
    rect: Rect
    label: Optional[str] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class ErrorVector:
    """Signed pixel offset of the target centre from the frame centre."""
    err_x: float
    err_y: float
    depth: Optional[int] = None


@dataclass(frozen=True)
class Command:
    """
    One actuation command as it goes over the wire.

    ``z`` is only present when area-based depth control is enabled; it is
    always one of -1, 0, +1.
    """
    x: int
    y: int
    z: Optional[int] = None

    @classmethod
    def from_values(cls, x: float, y: float, z: Optional[float] = None) -> "Command":
        # int() truncates toward zero
        return cls(int(x), int(y), None if z is None else int(z))

    @classmethod
    def stop(cls, depth_enabled: bool = False) -> "Command":
        return cls(0, 0, 0 if depth_enabled else None)

    def to_line(self) -> str:
        fields = [self.x, self.y] if self.z is None else [self.x, self.y, self.z]
        return ",".join(str(v) for v in fields) + "\n"

    def encode(self) -> bytes:
        return self.to_line().encode("utf-8")


@dataclass(frozen=True)
class ControlResult:
    command: Command
    locked: bool
    error: Optional[ErrorVector]
    area_pct: float
    depth_status: str
    status: str


@dataclass(frozen=True)
class TrackingReport:
    """
    Per-frame snapshot handed to whatever renders the UI.
    The rectangle is already upright / mirror-corrected.
    """
    seq: int
    frame_size: Tuple[int, int]
    rect: Optional[Rect]
    label: Optional[str]
    confidence: Optional[float]
    result: ControlResult

    @property
    def command(self) -> Command:
        return self.result.command

    @property
    def locked(self) -> bool:
        return self.result.locked

    @property
    def status(self) -> str:
        return self.result.status
