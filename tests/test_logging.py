import json
import logging

from agenttrust.logging_config import AuditLogger, StructuredFormatter, configure_logging, set_request_id


def test_structured_formatter_emits_one_json_object():
    record = logging.LogRecord("agenttrust.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    record.extra_fields = {"event_type": "TEST", "key_id": "k1"}
    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["logger"] == "agenttrust.test"
    assert data["event_type"] == "TEST"
    assert data["key_id"] == "k1"


def test_request_id_attached():
    request_id = set_request_id("req-123")
    try:
        record = logging.LogRecord("agenttrust.test", logging.INFO, __file__, 10, "m", (), None)
        assert json.loads(StructuredFormatter().format(record))["request_id"] == "req-123"
    finally:
        set_request_id("")
    assert request_id == "req-123"
    assert set_request_id()


def test_audit_events(caplog):
    audit = AuditLogger("agenttrust.audit.test")
    with caplog.at_level(logging.INFO, logger="agenttrust.audit.test"):
        audit.credentials_issued("agent-1", "local", "2026-01-01T12:15:00Z", ["a/"], ["b/"], [])
        audit.signing_key_revoked("k1")

    issued, revoked = caplog.records
    assert issued.extra_fields["event_type"] == "CREDENTIALS_ISSUED"
    assert issued.extra_fields["read_prefixes"] == ["b/"]
    assert revoked.levelno == logging.WARNING
    assert revoked.extra_fields["key_id"] == "k1"


def test_audit_events_never_carry_secrets(caplog):
    audit = AuditLogger("agenttrust.audit.test")
    with caplog.at_level(logging.INFO, logger="agenttrust.audit.test"):
        audit.object_certified("k1", "agenttrust", "2026-01-01T13:00:00Z")
    fields = caplog.records[0].extra_fields
    assert set(fields) == {"event_type", "request_id", "key_id", "issuer", "expires_at", "message"}


def test_configure_logging_plain_format():
    configure_logging(level="debug", json_format=False)
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0].formatter, StructuredFormatter)
