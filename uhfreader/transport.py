"""TCP session to one reader with a background receive thread."""

from __future__ import annotations

import queue
import socket
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from uhfreader.config import Endpoint

_READ_SIZE = 4096
_PACKET_QUEUE_SIZE = 256
_ERROR_QUEUE_SIZE = 32
_DISCONNECT_WAIT = 1.2


class TransportError(Exception):
    """Raised when the transport cannot perform a request."""


@dataclass(frozen=True)
class Packet:
    """Raw bytes received from the reader."""

    data: bytes
    when: datetime = field(default_factory=datetime.now)


@dataclass
class _Session:
    endpoint: Endpoint
    sock: socket.socket
    packets: "queue.Queue[Optional[Packet]]" = field(
        default_factory=lambda: queue.Queue(_PACKET_QUEUE_SIZE)
    )
    errors: "queue.Queue[Optional[BaseException]]" = field(
        default_factory=lambda: queue.Queue(_ERROR_QUEUE_SIZE)
    )
    done: threading.Event = field(default_factory=threading.Event)
    send_lock: threading.Lock = field(default_factory=threading.Lock)


def _offer(q: queue.Queue, item) -> None:
    try:
        q.put_nowait(item)
    except queue.Full:
        pass


def _end_stream(q: queue.Queue) -> None:
    while True:
        try:
            q.put_nowait(None)
            return
        except queue.Full:
            try:
                q.get_nowait()
            except queue.Empty:
                pass


class ReaderTransport:
    """Manages a single reader TCP session.

    Received data arrives on the queue from :meth:`packets`; read errors on
    the queue from :meth:`errors`. Both queues end with ``None`` when the
    session closes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[_Session] = None

    def connect(self, endpoint: Endpoint, timeout: float = 3.0) -> None:
        """Open a TCP connection to ``endpoint``."""
        if not endpoint.host or endpoint.port <= 0:
            raise TransportError("invalid endpoint")
        with self._lock:
            if self._session is not None:
                raise TransportError("already connected")

        sock = socket.create_connection(
            (endpoint.host, endpoint.port), timeout=timeout if timeout > 0 else None
        )
        sock.settimeout(None)
        session = _Session(endpoint=endpoint, sock=sock)

        with self._lock:
            if self._session is not None:
                sock.close()
                raise TransportError("already connected")
            self._session = session

        threading.Thread(
            target=self._read_loop,
            args=(session,),
            name=f"reader-rx-{endpoint.address()}",
            daemon=True,
        ).start()

    def _read_loop(self, session: _Session) -> None:
        try:
            while True:
                try:
                    data = session.sock.recv(_READ_SIZE)
                except TimeoutError:
                    continue
                except OSError as exc:
                    _offer(session.errors, exc)
                    return
                if not data:
                    _offer(session.errors, EOFError("EOF"))
                    return
                _offer(session.packets, Packet(data=data))
        finally:
            with self._lock:
                if self._session is session:
                    self._session = None
            session.sock.close()
            _end_stream(session.packets)
            _end_stream(session.errors)
            session.done.set()

    def disconnect(self) -> None:
        """Close the session, waiting briefly for the receive thread to end."""
        with self._lock:
            session = self._session
        if session is None:
            return
        try:
            session.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        session.sock.close()
        session.done.wait(_DISCONNECT_WAIT)

    def is_connected(self) -> bool:
        """True while a session is open."""
        with self._lock:
            return self._session is not None

    def endpoint(self) -> Optional[Endpoint]:
        """Endpoint of the open session, or None."""
        with self._lock:
            return self._session.endpoint if self._session else None

    def packets(self) -> "Optional[queue.Queue[Optional[Packet]]]":
        """Queue of received packets for the open session, or None."""
        with self._lock:
            return self._session.packets if self._session else None

    def errors(self) -> "Optional[queue.Queue[Optional[BaseException]]]":
        """Queue of read errors for the open session, or None."""
        with self._lock:
            return self._session.errors if self._session else None

    def send_raw(self, data: bytes, timeout: float = 2.0) -> None:
        """Write ``data`` to the reader within ``timeout`` seconds."""
        data = bytes(data)
        if not data:
            raise TransportError("empty payload")
        with self._lock:
            session = self._session
        if session is None:
            raise TransportError("not connected")
        with session.send_lock:
            session.sock.settimeout(timeout if timeout > 0 else None)
            try:
                session.sock.sendall(data)
            finally:
                try:
                    session.sock.settimeout(None)
                except OSError:
                    pass