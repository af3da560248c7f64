"""Reconnect-tolerant TCP server that pushes command lines to one controller."""
from __future__ import annotations

import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from arm_tracking.common import Command
from arm_tracking.transport import (
    ConnectionState,
    TransportStats,
    bind_listener,
    close_quietly,
    configure_client,
)

logger = logging.getLogger(__name__)


class CommandServer:
    """
    Serve the most recent :class:`Command` to whichever controller is attached.

    The accept loop runs on its own thread and goes straight back to
    ``accept()`` after every connection, so a controller that restarts simply
    reconnects and replaces the previous one.  ``send()`` only enqueues work;
    the socket write happens on a single writer thread.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 6000,
        *,
        write_timeout_s: float = 2.0,
        accept_timeout_s: float = 0.5,
    ) -> None:
        self.host = host
        self.port = port
        self.write_timeout_s = write_timeout_s
        self.accept_timeout_s = accept_timeout_s
        self.stats = TransportStats()

        self._lock = threading.Lock()
        self._listener: Optional[socket.socket] = None
        self._client: Optional[socket.socket] = None
        self._client_addr: Optional[Tuple[str, int]] = None
        self._state = ConnectionState.IDLE
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------ #
    #   P R O P E R T I E S
    # ------------------------------------------------------------------ #
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
        """Actual bound (host, port); useful when constructed with port 0."""
        listener = self._listener
        return listener.getsockname() if listener is not None else None

    # ------------------------------------------------------------------ #
    #   L I F E C Y C L E
    # ------------------------------------------------------------------ #
    def start(self) -> None:
        """Bind and start accepting. Raises TransportError if the port is taken."""
        with self._lock:
            if self._running:
                return
            self._listener = bind_listener(self.host, self.port, self.accept_timeout_s)
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="command-writer"
            )
            self._running = True
            self._state = ConnectionState.LISTENING
            self._accept_thread = threading.Thread(
                target=self._accept_loop,
                args=(self._listener,),
                name="command-accept",
                daemon=True,
            )
            self._accept_thread.start()
            host, port = self._listener.getsockname()[:2]
        logger.info("[CommandServer] Listening on %s:%s", host, port)

    def stop(self) -> None:
        """Close writer and listener. Safe to call repeatedly."""
        # Unblock a writer stuck in sendall() before waiting for the lock.
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
            logger.info("[CommandServer] Stopped")

    def __enter__(self) -> "CommandServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ------------------------------------------------------------------ #
    #   S E N D
    # ------------------------------------------------------------------ #
    def send(self, command: Command) -> None:
        """Fire-and-forget. Never raises, never blocks on the network."""
        executor = self._executor
        if not self._running or executor is None or self._client is None:
            return
        try:
            executor.submit(self._write, command.encode())
        except RuntimeError:
            # Executor shut down by a concurrent stop()
            pass

    def _write(self, payload: bytes) -> bool:
        with self._lock:
            conn = self._client
            if conn is None:
                return False
            try:
                conn.sendall(payload)
            except OSError as exc:
                self.stats.send_errors += 1
                logger.warning("[CommandServer] Send error, dropping client: %s", exc)
                self._drop_client_locked(conn)
                return False
            self.stats.bytes_sent += len(payload)
            self.stats.messages_sent += 1
        return True

    def _drop_client_locked(self, conn: socket.socket) -> None:
        if self._client is conn:
            self._client = None
            self._client_addr = None
            if self._running:
                self._state = ConnectionState.LISTENING
        close_quietly(conn)

    # ------------------------------------------------------------------ #
    #   A C C E P T   L O O P
    # ------------------------------------------------------------------ #
    def _accept_loop(self, listener: socket.socket) -> None:
        while self._running:
            logger.debug("[CommandServer] Waiting for controller...")
            try:
                conn, addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running:
                    break
                self.stats.accept_errors += 1
                logger.error("[CommandServer] Accept error: %s", exc)
                time.sleep(self.accept_timeout_s)
                continue

            try:
                configure_client(conn, self.write_timeout_s)
            except OSError as exc:
                self.stats.accept_errors += 1
                logger.error("[CommandServer] Could not configure client %s: %s", addr, exc)
                close_quietly(conn)
                continue

            with self._lock:
                if not self._running:
                    close_quietly(conn)
                    break
                previous = self._client
                self._client = conn
                self._client_addr = addr
                self._state = ConnectionState.CONNECTED
                self.stats.connections += 1
            if previous is not None:
                logger.info("[CommandServer] Replacing previous controller")
                close_quietly(previous)
            logger.info("[CommandServer] Controller connected from %s:%s", *addr)
