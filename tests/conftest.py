"""Shared fixtures for the tracking test-suite."""
import logging
import socket
import time
from typing import Callable

import numpy as np
import pytest

from arm_tracking.command_server import CommandServer
from arm_tracking.common import Frame
from arm_tracking.video_server import VideoServer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

LOOPBACK = "127.0.0.1"


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is truthy or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def stalled_reader(address) -> socket.socket:
    """Connect with a tiny receive window and never read, so the peer's writes block."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 1024)
    sock.connect(address[:2])
    return sock


@pytest.fixture
def make_frame():
    """Factory for black BGR frames in sensor orientation."""
    def _make(width=320, height=240, rotation=0, mirrored=False, seq=1):
        image = np.zeros((height, width, 3), dtype=np.uint8)
        return Frame(image=image, rotation=rotation, mirrored=mirrored, seq=seq)

    return _make


@pytest.fixture
def command_server():
    server = CommandServer(LOOPBACK, 0, write_timeout_s=1.0, accept_timeout_s=0.05)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def video_server():
    server = VideoServer(LOOPBACK, 0, write_timeout_s=1.0, accept_timeout_s=0.05)
    server.start()
    yield server
    server.stop()
