from __future__ import annotations

import gzip
import socket
import threading

import pytest

from pushport import config
from pushport.main import run_client
from pushport.storage import PayloadStore
from stomplink.protocol import encode_frame

PPORT_XML = b'<Pport ts="2024-05-01T10:00:00"><uR><TS rid="1"/></uR></Pport>'


def _serve_once(listener: socket.socket, replies: bytes, received: list) -> None:
    peer, _ = listener.accept()
    with peer:
        peer.settimeout(5)
        data = b""
        while data.count(b"\x00") < 2:
            chunk = peer.recv(4096)
            if not chunk:
                break
            data += chunk
        received.append(data)
        peer.sendall(replies)


@pytest.fixture
def feed_env(monkeypatch, tmp_path):
    for key in config.DEFAULT_CONFIG:
        monkeypatch.delenv(f"{config.ENV_PREFIX}{key.upper()}", raising=False)
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    monkeypatch.setenv("DARWIN_HOST", "127.0.0.1")
    monkeypatch.setenv("DARWIN_PORT", str(listener.getsockname()[1]))
    monkeypatch.setenv("DARWIN_USERNAME", "user")
    monkeypatch.setenv("DARWIN_PASSWORD", "secret")
    monkeypatch.setenv("DARWIN_DB_PATH", str(tmp_path / "feed.db"))
    monkeypatch.setenv("DARWIN_RENDER", "false")
    yield listener, tmp_path
    listener.close()


def test_run_client_consumes_feed_until_server_closes(feed_env):
    listener, tmp_path = feed_env
    body = gzip.compress(PPORT_XML)
    replies = encode_frame("CONNECTED", [("version", "1.2")]) + encode_frame(
        "MESSAGE",
        [
            ("destination", "/topic/darwin.pushport-v16"),
            ("content-type", "application/xml"),
            ("content-length", str(len(body))),
        ],
        body,
    )
    received: list = []
    server = threading.Thread(target=_serve_once, args=(listener, replies, received), daemon=True)
    server.start()

    assert run_client(str(tmp_path / "missing.env")) == 0
    server.join(timeout=5)

    assert received[0].startswith(b"CONNECT\naccept-version:1.2\nhost:127.0.0.1\n")
    assert b"SUBSCRIBE\nid:0\ndestination:/topic/darwin.pushport-v16\nack:auto\n\n\x00" in received[0]
    store = PayloadStore(str(tmp_path / "feed.db"))
    try:
        assert store.by_timestamp("2024-05-01T10:00:00")[0]["body"] == body
    finally:
        store.close()


def test_run_client_reports_connect_failure(feed_env):
    listener, tmp_path = feed_env
    listener.close()
    assert run_client(str(tmp_path / "missing.env")) == 1
