"""Tests for the command-line entry point wiring."""
from unittest.mock import patch

import pytest

from arm_tracking.command_server import CommandServer
from arm_tracking.video_server import VideoServer
from cli.main import _parse_args, main


class TestParseArgs:
    def test_defaults(self):
        args = _parse_args([])
        assert args.detector == "color"
        assert args.no_command is False
        assert args.no_video is False
        assert (args.command_port, args.video_port) == (6000, 6001)

    def test_stream_only_flags(self):
        args = _parse_args(["--detector", "none", "--no-command"])
        assert args.detector == "none"
        assert args.no_command is True

    def test_unknown_detector_rejected(self):
        with pytest.raises(SystemExit):
            _parse_args(["--detector", "lidar"])


@patch("cli.main.Camera")
@patch("cli.main.create_detector")
@patch("cli.main.TrackingProcessor")
class TestMainWiring:
    def _kwargs(self, processor_cls):
        processor_cls.assert_called_once()
        args, kwargs = processor_cls.call_args
        return args[0], kwargs

    def test_default_serves_both_channels(self, processor_cls, create_detector, _camera):
        assert main([]) == 0
        detector, kwargs = self._kwargs(processor_cls)
        assert detector is create_detector.return_value
        assert isinstance(kwargs["command_server"], CommandServer)
        assert isinstance(kwargs["video_server"], VideoServer)
        processor_cls.return_value.run.assert_called_once()

    def test_no_command_leaves_command_server_out(self, processor_cls, create_detector, _camera):
        assert main(["--no-command"]) == 0
        detector, kwargs = self._kwargs(processor_cls)
        assert detector is create_detector.return_value
        assert kwargs["command_server"] is None
        assert isinstance(kwargs["video_server"], VideoServer)

    def test_detector_none_streams_video_only(self, processor_cls, create_detector, _camera):
        assert main(["--detector", "none"]) == 0
        detector, kwargs = self._kwargs(processor_cls)
        assert detector is None
        create_detector.assert_not_called()
        assert kwargs["command_server"] is None
        assert isinstance(kwargs["video_server"], VideoServer)

    def test_detector_none_without_video_refuses(self, processor_cls, create_detector, _camera):
        assert main(["--detector", "none", "--no-video"]) == 2
        processor_cls.assert_not_called()
