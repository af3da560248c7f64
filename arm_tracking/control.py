"""Proportional dead-zone controller: upright rectangle → actuation command."""
from __future__ import annotations

from typing import Optional

from arm_tracking.common import Command, ControlResult, ErrorVector, Rect

SCANNING_STATUS = "Scanning..."

DEPTH_FORWARD = 1
DEPTH_BACKWARD = -1
DEPTH_HOLD = 0

_DEPTH_LABELS = {DEPTH_FORWARD: "FWD", DEPTH_BACKWARD: "BCK", DEPTH_HOLD: "OK"}


def apply_deadzone(err: float, deadzone: float) -> float:
    """Zero ``err`` when it sits inside the centred band of width ``deadzone``."""
    return 0.0 if abs(err) < deadzone / 2.0 else err


def area_percentage(rect: Rect, frame_w: float, frame_h: float) -> float:
    total = frame_w * frame_h
    if total <= 0:
        return 0.0
    return rect.area / total * 100.0


def depth_command(area_pct: float, area_min: float, area_max: float) -> int:
    """+1 approach when the target looks too small, -1 retreat when too big."""
    if area_pct < area_min:
        return DEPTH_FORWARD
    if area_pct > area_max:
        return DEPTH_BACKWARD
    return DEPTH_HOLD


def compute_command(
    rect: Optional[Rect],
    frame_w: float,
    frame_h: float,
    deadzone: float,
    area_min: Optional[float] = None,
    area_max: Optional[float] = None,
) -> ControlResult:
    """
    Turn the normalised target rectangle into a command.

    Each axis is dead-zoned on its own: X can be zeroed while Y is still
    reporting error.  Depth is only computed when both ``area_min`` and
    ``area_max`` are given.  No state is kept between calls.
    """
    depth_enabled = area_min is not None and area_max is not None

    if rect is None:
        return ControlResult(
            command=Command.stop(depth_enabled),
            locked=False,
            error=None,
            area_pct=0.0,
            depth_status="",
            status=SCANNING_STATUS,
        )

    center_x, center_y = rect.center
    err_x = center_x - frame_w / 2.0
    err_y = center_y - frame_h / 2.0

    out_x = apply_deadzone(err_x, deadzone)
    out_y = apply_deadzone(err_y, deadzone)

    area_pct = area_percentage(rect, frame_w, frame_h)
    depth: Optional[int] = None
    depth_status = ""
    if depth_enabled:
        depth = depth_command(area_pct, area_min, area_max)
        depth_status = _DEPTH_LABELS[depth]

    command = Command.from_values(out_x, out_y, depth)
    locked = out_x == 0.0 and out_y == 0.0 and not depth

    if locked:
        status = "LOCKED (All Axes)" if depth_enabled else "LOCKED"
    else:
        status = f"X:{command.x} Y:{command.y}"
        if depth_enabled:
            status += f" Z:{depth_status}"

    return ControlResult(
        command=command,
        locked=locked,
        error=ErrorVector(err_x, err_y, depth),
        area_pct=area_pct,
        depth_status=depth_status,
        status=status,
    )
