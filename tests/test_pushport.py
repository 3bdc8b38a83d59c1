from __future__ import annotations

import gzip
import logging
import queue

import pytest

from pushport import config
from pushport.config import ConfigError, load_config, topic_list
from pushport.consumer import FrameConsumer, render_frame, render_node
from pushport.document import parse_document, payload_bytes
from pushport.errors import ApplicationError
from pushport.storage import PayloadStore
from stomplink.core import Terminated
from stomplink.protocol import ErrorCode, Frame

PPORT_XML = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    b'<Pport xmlns="http://www.thalesgroup.com/rtti/PushPort/v16" ts="2024-05-01T10:00:00.000+01:00" version="16.0">'
    b'<uR updateOrigin="TD">'
    b'<TS rid="202405011234567" uid="C12345"><Location tpl="PADTON" wta="10:01"/></TS>'
    b"</uR>"
    b"</Pport>"
)


def _message(body: bytes, content_type: str = "application/xml") -> Frame:
    return Frame(
        command="MESSAGE",
        headers=[
            ("destination", "/topic/darwin.pushport-v16"),
            ("message-id", "ID:1"),
            ("content-type", content_type),
            ("content-length", str(len(body))),
        ],
        body=body,
    )


@pytest.fixture
def store(tmp_path):
    repo = PayloadStore(str(tmp_path / "payloads.db"))
    yield repo
    repo.close()


@pytest.fixture
def darwin_env(monkeypatch, tmp_path):
    for key in config.DEFAULT_CONFIG:
        monkeypatch.delenv(f"{config.ENV_PREFIX}{key.upper()}", raising=False)
    monkeypatch.setenv("DARWIN_HOST", "darwin.example.org")
    monkeypatch.setenv("DARWIN_USERNAME", "user")
    monkeypatch.setenv("DARWIN_PASSWORD", "secret")
    return tmp_path


def test_load_config_from_environment(darwin_env):
    cfg = load_config(str(darwin_env / "missing.env"))
    assert cfg["host"] == "darwin.example.org"
    assert cfg["port"] == 61613
    assert cfg["connect_timeout"] == 10.0
    assert topic_list() == ["/topic/darwin.pushport-v16"]


def test_load_config_reads_env_file(darwin_env, monkeypatch):
    monkeypatch.delenv("DARWIN_HOST")
    env_file = darwin_env / ".env"
    env_file.write_text(
        "DARWIN_HOST=push.example.net\nDARWIN_PORT=61614\nDARWIN_TOPICS=/topic/a, /topic/b\nDARWIN_ESCAPE_HEADERS=yes\n"
    )
    # Register as unset so monkeypatch removes what load_dotenv writes.
    for key in ("DARWIN_PORT", "DARWIN_TOPICS", "DARWIN_ESCAPE_HEADERS"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    cfg = load_config(str(env_file))
    assert cfg["host"] == "push.example.net"
    assert cfg["port"] == 61614
    assert cfg["escape_headers"] is True
    assert topic_list() == ["/topic/a", "/topic/b"]


def test_invalid_port_is_rejected(darwin_env, monkeypatch):
    monkeypatch.setenv("DARWIN_PORT", "70000")
    with pytest.raises(ConfigError):
        load_config(str(darwin_env / "missing.env"))


def test_missing_credentials_are_rejected(darwin_env, monkeypatch):
    monkeypatch.delenv("DARWIN_PASSWORD")
    with pytest.raises(ConfigError):
        load_config(str(darwin_env / "missing.env"))


def test_parse_document_builds_index_arena():
    document = parse_document(PPORT_XML)
    assert document.declaration.version == "1.0"
    assert document.declaration.encoding == "UTF-8"
    assert document.declaration.standalone is True

    root = document.root
    assert root.name == "Pport"
    assert root.attributes["ts"] == "2024-05-01T10:00:00.000+01:00"
    update = document.find_child(0, "uR")
    assert update is not None
    assert document.nodes[update].parent == 0
    assert [n.name for n in document.children_of(update)] == ["TS"]
    assert [(depth, document.nodes[i].name) for depth, i in document.walk()] == [
        (0, "Pport"),
        (1, "uR"),
        (2, "TS"),
        (3, "Location"),
    ]


def test_parse_document_rejects_invalid_xml():
    with pytest.raises(ApplicationError):
        parse_document(b"<Pport><uR></Pport>")


def test_payload_bytes_unzips_gzip_bodies():
    frame = _message(gzip.compress(PPORT_XML), content_type="application/xml")
    assert payload_bytes(frame) == PPORT_XML
    assert payload_bytes(_message(PPORT_XML)) == PPORT_XML


def test_payload_bytes_rejects_corrupt_deflate_stream():
    body = bytearray(gzip.compress(PPORT_XML))
    body[10] = 0xFF  # first deflate block header: reserved block type
    with pytest.raises(ApplicationError) as info:
        payload_bytes(_message(bytes(body)))
    assert info.value.code == ErrorCode.UNEXPECTED_CONTENT


def test_store_roundtrip(store):
    row_id = store.save("2024-05-01T10:00:00", b"\x1f\x8b\x00", "/topic/x", "ID:9")
    assert row_id > 0
    assert store.count() == 1
    records = store.by_timestamp("2024-05-01T10:00:00")
    assert records[0]["body"] == b"\x1f\x8b\x00"
    assert records[0]["message_id"] == "ID:9"
    assert store.recent(limit=5)[0]["destination"] == "/topic/x"


def test_consumer_persists_raw_body_keyed_by_timestamp(store):
    consumer = FrameConsumer(store, render=False)
    body = gzip.compress(PPORT_XML)
    document = consumer.handle(_message(body))
    assert document.root.name == "Pport"
    records = store.by_timestamp("2024-05-01T10:00:00.000+01:00")
    assert len(records) == 1
    assert records[0]["body"] == body
    assert records[0]["destination"] == "/topic/darwin.pushport-v16"


def test_consumer_rejects_unexpected_content_type(store):
    consumer = FrameConsumer(store)
    with pytest.raises(ApplicationError) as info:
        consumer.handle(_message(b"{}", content_type="application/json"))
    assert info.value.code == ErrorCode.UNEXPECTED_CONTENT
    assert store.count() == 0


def test_consumer_accepts_content_type_parameters(store):
    consumer = FrameConsumer(store, render=False)
    consumer.handle(_message(PPORT_XML, content_type="application/xml; charset=utf-8"))
    assert store.count() == 1


def test_consumer_requires_timestamp(store):
    consumer = FrameConsumer(store)
    with pytest.raises(ApplicationError) as info:
        consumer.handle(_message(b"<Pport><uR/></Pport>"))
    assert info.value.code == ErrorCode.MISSING_ATTRIBUTE


def test_consumer_renders_update_tree(caplog):
    consumer = FrameConsumer(render=True)
    with caplog.at_level(logging.INFO, logger="pushport.consumer"):
        consumer.handle(_message(PPORT_XML))
    messages = [record.getMessage() for record in caplog.records]
    assert "@ 2024-05-01T10:00:00.000+01:00" in messages
    assert "<TS>" in messages
    assert "  rid: 202405011234567" not in messages
    assert " rid: 202405011234567" in messages
    assert "  tpl: PADTON" in messages


def test_render_helpers():
    document = parse_document(PPORT_XML)
    lines = render_node(document, document.find_child(0, "uR"))
    assert lines[0] == "<uR>"
    assert " updateOrigin: TD" in lines
    error = Frame(command="ERROR", headers=[("message", "bad login")], body=b"denied")
    assert render_frame(error) == ["ERROR", "message: bad login", "", "denied"]


def test_consumer_run_drains_until_terminated(store):
    channel: queue.Queue = queue.Queue()
    channel.put(Frame(command="CONNECTED", headers=[("version", "1.2")]))
    channel.put(_message(b"not xml", content_type="text/plain"))
    channel.put(_message(PPORT_XML))
    channel.put(Frame(command="ERROR", headers=[("message", "bad login")]))
    channel.put(Terminated())

    consumer = FrameConsumer(store, render=False)
    result = consumer.run(channel)
    assert result.ok
    assert consumer.handled == 4
    assert consumer.failures == 1
    assert store.count() == 1


def test_consumer_run_survives_corrupt_gzip_payload(store, caplog):
    corrupt = bytearray(gzip.compress(PPORT_XML))
    corrupt[10] = 0xFF
    channel: queue.Queue = queue.Queue()
    channel.put(_message(bytes(corrupt)))
    channel.put(_message(PPORT_XML))
    channel.put(Terminated())

    consumer = FrameConsumer(store, render=False)
    with caplog.at_level(logging.WARNING, logger="pushport.consumer"):
        assert consumer.run(channel).ok
    assert consumer.failures == 1
    assert store.count() == 1
    assert any("'error_code': 1010" in record.getMessage() for record in caplog.records)


def test_consumer_flags_client_frames_from_server(caplog):
    consumer = FrameConsumer(render=False)
    with caplog.at_level(logging.WARNING, logger="pushport.consumer"):
        consumer.handle(Frame(command="SUBSCRIBE", headers=[("id", "0")]))
    assert "Client-only SUBSCRIBE frame received from server" in [r.getMessage() for r in caplog.records]
