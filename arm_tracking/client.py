"""Controller-side readers for the command and video streams."""
from __future__ import annotations

import socket
import struct
from typing import Iterator, Optional

import cv2
import numpy as np

from arm_tracking.common import Command

_LENGTH = struct.Struct(">I")


def parse_command(line: str) -> Command:
    """Parse ``"x,y"`` or ``"x,y,z"`` (trailing newline allowed)."""
    fields = line.strip().split(",")
    if len(fields) not in (2, 3):
        raise ValueError(f"Malformed command line: {line!r}")
    values = [int(f) for f in fields]
    return Command(*values)


def recv_exact(sock: socket.socket, size: int) -> Optional[bytes]:
    """Read exactly ``size`` bytes; None if the peer closed first."""
    chunks = []
    remaining = size
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            return None
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class CommandClient:
    def __init__(self, host: str, port: int = 6000, timeout: Optional[float] = 5.0):
        self.sock = socket.create_connection((host, port), timeout=timeout)
        self._reader = self.sock.makefile("r", encoding="utf-8", newline="\n")

    def read_command(self) -> Optional[Command]:
        line = self._reader.readline()
        if not line:
            return None
        return parse_command(line)

    def __iter__(self) -> Iterator[Command]:
        while True:
            cmd = self.read_command()
            if cmd is None:
                return
            yield cmd

    def close(self) -> None:
        self._reader.close()
        self.sock.close()

    def __enter__(self) -> "CommandClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class VideoClient:
    def __init__(self, host: str, port: int = 6001, timeout: Optional[float] = 5.0):
        self.sock = socket.create_connection((host, port), timeout=timeout)

    def read_jpeg(self) -> Optional[bytes]:
        header = recv_exact(self.sock, _LENGTH.size)
        if header is None:
            return None
        (length,) = _LENGTH.unpack(header)
        return recv_exact(self.sock, length)

    def read_frame(self) -> Optional[np.ndarray]:
        payload = self.read_jpeg()
        if payload is None:
            return None
        return cv2.imdecode(np.frombuffer(payload, dtype=np.uint8), cv2.IMREAD_COLOR)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "VideoClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
