import socket
import threading

import pytest

from relay.errors import ConnectFailure, ReadFailure
from relay.fetcher import fetch


class OneShotServer:
    """Accepts one client and sends ``payload`` in pieces.

    With ``close=False`` the server keeps the connection open and records
    whether the client hung up on it.
    """

    def __init__(self, payload: bytes, close: bool = True):
        self.payload = payload
        self.close_after = close
        self.client_closed = threading.Event()
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.port = self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        peer, _ = self.listener.accept()
        with peer:
            for i in range(0, len(self.payload), 7):
                peer.sendall(self.payload[i:i + 7])
            if not self.close_after:
                peer.settimeout(10)
                try:
                    if peer.recv(1) == b"":
                        self.client_closed.set()
                except OSError:
                    pass

    def stop(self):
        self.thread.join(5)
        self.listener.close()


def test_reads_until_peer_closes():
    payload = b'<GANGLIA_XML VERSION="3.7.2" SOURCE="gmond">' + b"<CLUSTER/>" * 50 + b"</GANGLIA_XML>"
    server = OneShotServer(payload)
    try:
        assert fetch("127.0.0.1", server.port) == payload
    finally:
        server.stop()


def test_empty_stream_returns_empty_bytes():
    server = OneShotServer(b"")
    try:
        assert fetch("127.0.0.1", server.port) == b""
    finally:
        server.stop()


def test_connection_refused_raises_connect_failure():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    with pytest.raises(ConnectFailure, match=f"127.0.0.1:{port}"):
        fetch("127.0.0.1", port, connect_timeout=2)


def test_stalled_peer_hits_read_deadline():
    server = OneShotServer(b"<GANGLIA_XML>", close=False)
    try:
        with pytest.raises(ReadFailure, match="longer than 0.3s"):
            fetch("127.0.0.1", server.port, read_timeout=0.3)
    finally:
        server.stop()


def test_socket_is_closed_after_read_deadline():
    server = OneShotServer(b"<GANGLIA_XML>", close=False)
    try:
        with pytest.raises(ReadFailure):
            fetch("127.0.0.1", server.port, read_timeout=0.3)
        assert server.client_closed.wait(5)
    finally:
        server.stop()


@pytest.mark.parametrize("address", ["gmond..example", "a" * 64 + ".example"])
def test_malformed_hostname_raises_connect_failure(address):
    with pytest.raises(ConnectFailure, match="Couldn't reach gmond"):
        fetch(address, 8649, connect_timeout=2)
