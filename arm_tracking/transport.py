"""Socket plumbing shared by the command and video servers."""
from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from arm_tracking.errors import TransportError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    CONNECTED = "connected"


@dataclass
class TransportStats:
    connections: int = 0
    accept_errors: int = 0
    bytes_sent: int = 0
    send_errors: int = 0
    # Command only
    messages_sent: int = 0
    # Video only
    frames_sent: int = 0
    frames_dropped: int = 0
    encode_count: int = 0


def bind_listener(host: str, port: int, accept_timeout_s: float) -> socket.socket:
    """
    Create a listening TCP socket.

    The accept timeout lets the accept thread notice ``stop()`` even on
    platforms where closing a socket does not wake a blocked ``accept()``.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(1)
    except OSError as exc:
        sock.close()
        raise TransportError(f"Cannot listen on {host}:{port}: {exc}") from exc
    sock.settimeout(accept_timeout_s)
    return sock


def configure_client(conn: socket.socket, write_timeout_s: Optional[float]) -> None:
    conn.settimeout(write_timeout_s)
    conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def close_quietly(sock: Optional[socket.socket]) -> None:
    """Shut down and close, ignoring 'already closed' races."""
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    try:
        sock.close()
    except OSError as exc:
        logger.debug("[Transport] close() failed: %s", exc)
