"""Length-prefixed JPEG preview stream for a single viewer."""
from __future__ import annotations

import logging
import socket
import struct
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import cv2
import numpy as np

from arm_tracking.common import Frame
from arm_tracking.transport import (
    ConnectionState,
    TransportStats,
    bind_listener,
    close_quietly,
    configure_client,
)

logger = logging.getLogger(__name__)

_LENGTH = struct.Struct(">I")

_UPRIGHT_ROTATE = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class VideoServer:
    """
    Stream ``[length:4 BE][jpeg]`` units to one viewer.

    One viewer per lifecycle: after the viewer goes away the server stays
    idle until ``stop()`` / ``start()``.  At most one frame is encoded or
    written at a time; frames that arrive meanwhile are dropped.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 6001,
        *,
        jpeg_quality: int = 50,
        write_timeout_s: float = 2.0,
        rotate_upright: bool = False,
        accept_timeout_s: float = 0.5,
    ) -> None:
        self.host = host
        self.port = port
        self.jpeg_quality = int(jpeg_quality)
        self.write_timeout_s = write_timeout_s
        self.rotate_upright = rotate_upright
        self.accept_timeout_s = accept_timeout_s
        self.stats = TransportStats()

        self._lock = threading.Lock()
        self._in_flight = threading.Lock()
        self._listener: Optional[socket.socket] = None
        self._client: Optional[socket.socket] = None
        self._client_addr: Optional[Tuple[str, int]] = None
        self._state = ConnectionState.IDLE
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_client(self) -> bool:
        return self._client is not None

    @property
    def client_address(self) -> Optional[Tuple[str, int]]:
        return self._client_addr

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        listener = self._listener
        return listener.getsockname() if listener is not None else None

    # ------------------------------------------------------------------ #
    #   L I F E C Y C L E
    # ------------------------------------------------------------------ #
    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._listener = bind_listener(self.host, self.port, self.accept_timeout_s)
            # A frame cancelled by the previous stop() never released this.
            self._in_flight = threading.Lock()
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="video-writer"
            )
            self._running = True
            self._state = ConnectionState.LISTENING
            self._accept_thread = threading.Thread(
                target=self._accept_once,
                args=(self._listener,),
                name="video-accept",
                daemon=True,
            )
            self._accept_thread.start()
            host, port = self._listener.getsockname()[:2]
        logger.info("[VideoServer] Opening video server on %s:%s", host, port)

    def stop(self) -> None:
        pending = self._client
        if pending is not None:
            try:
                pending.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

        with self._lock:
            was_running = self._running
            self._running = False
            client, self._client = self._client, None
            listener, self._listener = self._listener, None
            executor, self._executor = self._executor, None
            thread, self._accept_thread = self._accept_thread, None
            self._client_addr = None
            self._state = ConnectionState.IDLE

        close_quietly(client)
        close_quietly(listener)
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.accept_timeout_s * 4)
        if was_running:
            logger.info("[VideoServer] Stopped")

    def __enter__(self) -> "VideoServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def _accept_once(self, listener: socket.socket) -> None:
        while self._running:
            try:
                conn, addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running:
                    return
                self.stats.accept_errors += 1
                logger.error("[VideoServer] Accept error: %s", exc)
                continue

            try:
                configure_client(conn, self.write_timeout_s)
            except OSError as exc:
                self.stats.accept_errors += 1
                logger.error("[VideoServer] Could not configure viewer %s: %s", addr, exc)
                close_quietly(conn)
                continue

            with self._lock:
                if not self._running:
                    close_quietly(conn)
                    return
                self._client = conn
                self._client_addr = addr
                self._state = ConnectionState.CONNECTED
                self.stats.connections += 1
            logger.info("[VideoServer] Viewer connected from %s:%s", *addr)
            return

    # ------------------------------------------------------------------ #
    #   S E N D
    # ------------------------------------------------------------------ #
    def send_frame(self, frame: Frame) -> bool:
        """
        Queue ``frame`` for encoding + sending.

        Returns True if the frame was queued.  Nothing is encoded when no
        viewer is attached.
        """
        executor = self._executor
        if not self._running or executor is None or self._client is None:
            return False
        if not self._in_flight.acquire(blocking=False):
            self.stats.frames_dropped += 1
            return False
        try:
            executor.submit(self._encode_and_write, frame)
        except RuntimeError:
            self._in_flight.release()
            return False
        return True

    def encode(self, frame: Frame) -> Optional[bytes]:
        image = frame.image
        if self.rotate_upright and frame.rotation in _UPRIGHT_ROTATE:
            image = cv2.rotate(image, _UPRIGHT_ROTATE[frame.rotation])
        self.stats.encode_count += 1
        ok, buf = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        )
        if not ok:
            logger.warning("[VideoServer] JPEG encode failed for frame %d", frame.seq)
            return None
        return np.asarray(buf).tobytes()

    def _encode_and_write(self, frame: Frame) -> bool:
        try:
            if self._client is None:
                return False
            payload = self.encode(frame)
            if payload is None:
                return False
            packet = _LENGTH.pack(len(payload)) + payload
            with self._lock:
                conn = self._client
                if conn is None:
                    return False
                try:
                    conn.sendall(packet)
                except OSError as exc:
                    # A partial frame may be on the wire; never write after it.
                    self.stats.send_errors += 1
                    logger.warning("[VideoServer] Send error, dropping viewer: %s", exc)
                    self._client = None
                    self._client_addr = None
                    self._state = ConnectionState.IDLE
                    close_quietly(conn)
                    return False
                self.stats.bytes_sent += len(packet)
                self.stats.frames_sent += 1
            return True
        finally:
            self._in_flight.release()
