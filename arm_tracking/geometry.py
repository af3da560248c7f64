"""Sensor-space → upright / mirrored rectangle transforms."""
from __future__ import annotations

from typing import Optional, Tuple

from arm_tracking.common import VALID_ROTATIONS, Rect


def _check_rotation(rotation: int) -> None:
    if rotation not in VALID_ROTATIONS:
        raise ValueError(f"rotation must be one of {VALID_ROTATIONS}, got {rotation!r}")


def upright_size(img_w: float, img_h: float, rotation: int) -> Tuple[float, float]:
    """Frame dimensions after turning the sensor image upright."""
    _check_rotation(rotation)
    if rotation in (90, 270):
        return img_h, img_w
    return img_w, img_h


def rotate_rect(rect: Rect, rotation: int, img_w: float, img_h: float) -> Rect:
    """
    Rotate ``rect`` clockwise by ``rotation`` degrees.

    ``img_w`` / ``img_h`` are the dimensions of the image *before* rotation.
    """
    _check_rotation(rotation)
    if rotation == 90:
        return Rect(img_h - rect.bottom, rect.left, img_h - rect.top, rect.right)
    if rotation == 270:
        return Rect(rect.top, img_w - rect.right, rect.bottom, img_w - rect.left)
    if rotation == 180:
        return Rect(
            img_w - rect.right,
            img_h - rect.bottom,
            img_w - rect.left,
            img_h - rect.top,
        )
    return rect


def unrotate_rect(rect: Rect, rotation: int, img_w: float, img_h: float) -> Rect:
    """Undo :func:`rotate_rect` (same pre-rotation ``img_w`` / ``img_h``)."""
    rot_w, rot_h = upright_size(img_w, img_h, rotation)
    return rotate_rect(rect, (360 - rotation) % 360, rot_w, rot_h)


def mirror_rect(rect: Rect, width: float) -> Rect:
    """Flip horizontally about a frame of the given width. Self-inverse."""
    return Rect(width - rect.right, rect.top, width - rect.left, rect.bottom)


def normalize(
    rect: Optional[Rect],
    frame_w: float,
    frame_h: float,
    rotation: int = 0,
    mirrored: bool = False,
) -> Optional[Rect]:
    """
    Map a detector rectangle (sensor orientation, ``frame_w`` x ``frame_h``)
    into upright, optionally mirrored frame coordinates.
    """
    _check_rotation(rotation)
    if rect is None:
        return None
    out = rotate_rect(rect, rotation, frame_w, frame_h)
    if mirrored:
        out_w, _ = upright_size(frame_w, frame_h, rotation)
        out = mirror_rect(out, out_w)
    return out
