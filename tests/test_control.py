"""Tests for the dead-zone control law."""
import pytest

from arm_tracking.common import Command, Rect
from arm_tracking.control import SCANNING_STATUS, apply_deadzone, compute_command

FRAME_W, FRAME_H = 320, 240
DEADZONE = 60


class TestScenarios:
    def test_centred_target_is_locked(self):
        result = compute_command(Rect(140, 100, 180, 140), FRAME_W, FRAME_H, DEADZONE)
        assert result.error.err_x == 0 and result.error.err_y == 0
        assert result.command.to_line() == "0,0\n"
        assert result.locked is True
        assert result.status == "LOCKED"

    def test_error_on_threshold_is_not_zeroed(self):
        result = compute_command(Rect(200, 100, 240, 140), FRAME_W, FRAME_H, DEADZONE)
        assert result.error.err_x == 60
        assert result.command == Command(60, 0)
        assert result.command.to_line() == "60,0\n"
        assert result.locked is False
        assert result.status == "X:60 Y:0"

    def test_no_target_sends_stop(self):
        result = compute_command(None, FRAME_W, FRAME_H, DEADZONE)
        assert result.command == Command(0, 0)
        assert result.locked is False
        assert result.error is None
        assert result.status == SCANNING_STATUS

    def test_no_target_with_depth_sends_three_field_stop(self):
        result = compute_command(None, FRAME_W, FRAME_H, DEADZONE, 6, 10)
        assert result.command.to_line() == "0,0,0\n"


class TestDepth:
    @pytest.mark.parametrize(
        "rect, expected, label",
        [
            (Rect(128, 96, 192, 144), 1, "FWD"),    # 4 %
            (Rect(112, 72, 208, 168), -1, "BCK"),   # 12 %
            (Rect(112, 88, 208, 152), 0, "OK"),     # 8 %
        ],
    )
    def test_area_band(self, rect, expected, label):
        result = compute_command(rect, FRAME_W, FRAME_H, DEADZONE, area_min=6, area_max=10)
        assert result.command.z == expected
        assert result.depth_status == label

    def test_area_percentage_reported(self):
        result = compute_command(Rect(128, 96, 192, 144), FRAME_W, FRAME_H, DEADZONE, 6, 10)
        assert result.area_pct == pytest.approx(4.0)

    def test_locked_needs_depth_hold_too(self):
        too_small = compute_command(Rect(150, 110, 170, 130), FRAME_W, FRAME_H, DEADZONE, 6, 10)
        assert too_small.command == Command(0, 0, 1)
        assert too_small.locked is False
        assert too_small.status == "X:0 Y:0 Z:FWD"

        good = compute_command(Rect(112, 88, 208, 152), FRAME_W, FRAME_H, DEADZONE, 6, 10)
        assert good.locked is True
        assert good.status == "LOCKED (All Axes)"

    def test_depth_disabled_unless_both_bounds_given(self):
        result = compute_command(Rect(150, 110, 170, 130), FRAME_W, FRAME_H, DEADZONE, area_min=6)
        assert result.command.z is None
        assert result.depth_status == ""

    def test_zero_area_frame(self):
        result = compute_command(Rect(0, 0, 0, 0), 0, 0, DEADZONE, 6, 10)
        assert result.area_pct == 0.0


class TestAxisIndependence:
    @pytest.mark.parametrize("deadzone", [1, 10, 60, 200])
    @pytest.mark.parametrize("other_err", [0, 50, 500, -500])
    def test_axis_inside_band_is_zero_regardless_of_other(self, deadzone, other_err):
        inside = deadzone / 2 - 0.5
        for err in (inside, -inside, 0):
            # Build a 2x2 rect whose centre is offset by (err, other_err)
            cx, cy = FRAME_W / 2 + err, FRAME_H / 2 + other_err
            result = compute_command(Rect(cx - 1, cy - 1, cx + 1, cy + 1), FRAME_W, FRAME_H, deadzone)
            assert result.command.x == 0
            if abs(other_err) >= deadzone / 2:
                assert result.command.y == int(other_err)

    def test_apply_deadzone(self):
        assert apply_deadzone(29.9, 60) == 0.0
        assert apply_deadzone(-29.9, 60) == 0.0
        assert apply_deadzone(30, 60) == 30
        assert apply_deadzone(-31, 60) == -31


class TestCommand:
    def test_truncates_toward_zero(self):
        cmd = Command.from_values(-60.7, 45.9, 1.0)
        assert cmd == Command(-60, 45, 1)
        assert cmd.to_line() == "-60,45,1\n"
        assert cmd.encode() == b"-60,45,1\n"

    def test_stop(self):
        assert Command.stop().to_line() == "0,0\n"
        assert Command.stop(depth_enabled=True) == Command(0, 0, 0)
