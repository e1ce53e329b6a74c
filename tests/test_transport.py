import socket
import time

import pytest

from uhfreader.config import Endpoint
from uhfreader.transport import ReaderTransport, TransportError

GET_READER_INFO = bytes([0x04, 0x00, 0x21, 0xD9, 0x6A])


@pytest.fixture
def server():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    srv.settimeout(5)
    yield srv
    srv.close()


@pytest.fixture
def transport():
    tr = ReaderTransport()
    yield tr
    tr.disconnect()


def _endpoint(srv):
    host, port = srv.getsockname()
    return Endpoint(host, port)


def _accept(srv):
    conn, _ = srv.accept()
    conn.settimeout(5)
    return conn


def _wait_disconnected(tr, limit=5.0):
    deadline = time.monotonic() + limit
    while tr.is_connected() and time.monotonic() < deadline:
        time.sleep(0.01)
    return tr.is_connected()


@pytest.mark.parametrize("endpoint", [Endpoint("", 6000), Endpoint("127.0.0.1", 0)])
def test_connect_rejects_invalid_endpoint(transport, endpoint):
    with pytest.raises(TransportError, match="invalid endpoint"):
        transport.connect(endpoint, 1.0)


def test_send_raw_requires_payload(transport):
    with pytest.raises(TransportError, match="empty payload"):
        transport.send_raw(b"", 1.0)


def test_send_raw_requires_connection(transport):
    with pytest.raises(TransportError, match="not connected"):
        transport.send_raw(GET_READER_INFO, 1.0)


def test_send_reaches_peer(server, transport):
    endpoint = _endpoint(server)
    transport.connect(endpoint, 2.0)
    conn = _accept(server)
    try:
        assert transport.is_connected()
        assert transport.endpoint() == endpoint
        transport.send_raw(GET_READER_INFO, 2.0)
        assert conn.recv(64) == GET_READER_INFO
    finally:
        conn.close()


def test_received_bytes_arrive_as_packets(server, transport):
    transport.connect(_endpoint(server), 2.0)
    conn = _accept(server)
    try:
        packets = transport.packets()
        conn.sendall(GET_READER_INFO)
        packet = packets.get(timeout=5)
        assert packet.data == GET_READER_INFO
    finally:
        conn.close()


def test_connect_twice_fails(server, transport):
    transport.connect(_endpoint(server), 2.0)
    conn = _accept(server)
    try:
        with pytest.raises(TransportError, match="already connected"):
            transport.connect(_endpoint(server), 2.0)
    finally:
        conn.close()


def test_disconnect_clears_session(server, transport):
    transport.connect(_endpoint(server), 2.0)
    conn = _accept(server)
    try:
        packets = transport.packets()
        transport.disconnect()
        assert _wait_disconnected(transport) is False
        assert transport.endpoint() is None
        assert transport.packets() is None
        assert transport.errors() is None
        assert packets.get(timeout=5) is None
    finally:
        conn.close()


def test_peer_close_ends_streams(server, transport):
    transport.connect(_endpoint(server), 2.0)
    conn = _accept(server)
    packets = transport.packets()
    errors = transport.errors()
    conn.close()
    assert packets.get(timeout=5) is None
    first_error = errors.get(timeout=5)
    assert isinstance(first_error, EOFError)
    assert errors.get(timeout=5) is None
    assert _wait_disconnected(transport) is False


def test_disconnect_without_session_keeps_state(transport):
    transport.disconnect()
    assert transport.is_connected() is False
    assert transport.endpoint() is None