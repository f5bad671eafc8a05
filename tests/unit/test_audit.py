"""Unit tests for sync audit logging."""

import json

import pytest

from membersync import audit


@pytest.fixture
def audit_file(_isolated_audit):
    return audit.AUDIT_LOG_FILE


def test_log_sync_event_creates_file(audit_file):
    """Test that logging creates the audit file."""
    assert not audit_file.exists()

    audit.log_sync_event("member_provisioned", "1a2b", source="webhook")

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600


def test_log_sync_event_creates_valid_json(audit_file):
    audit.log_sync_event(
        "run_completed",
        "migrate",
        source="cli",
        details={"succeeded": 10, "failed": 1},
    )

    event = json.loads(audit_file.read_text().splitlines()[0])

    assert event["event_type"] == "run_completed"
    assert event["subject"] == "migrate"
    assert event["source"] == "cli"
    assert event["success"] is True
    assert event["details"] == {"succeeded": 10, "failed": 1}
    assert "timestamp" in event
    assert "signature" in event


def test_verify_audit_log_with_valid_signatures(audit_file):
    for i in range(5):
        audit.log_sync_event("arrival_logged", f"a{i}", source="brivo")

    assert audit.verify_audit_log() == (5, 5)


def test_verify_audit_log_detects_tampering(audit_file):
    """Test that signature verification detects tampered events."""
    audit.log_sync_event("member_deactivated", "1a2b", source="webhook")

    event = json.loads(audit_file.read_text())
    event["subject"] = "ffff"
    audit_file.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_log_event_without_signing_key(audit_file, monkeypatch):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")

    audit.log_sync_event("member_provisioned", "1a2b")

    event = json.loads(audit_file.read_text())
    assert "signature" not in event


def test_audit_directory_permissions(_isolated_audit):
    audit.log_sync_event("run_completed", "sync")

    assert _isolated_audit.stat().st_mode & 0o777 == 0o700


def test_safe_log_never_raises(monkeypatch, capsys):
    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(audit, "log_sync_event", boom)

    assert audit.safe_log_sync_event("arrival_logged", "1a2b") is False
    assert "[audit] Warning" in capsys.readouterr().err


def test_configure_moves_audit_trail(tmp_path, monkeypatch):
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit.AUDIT_LOG_DIR)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit.AUDIT_LOG_FILE)

    audit.configure(tmp_path / "elsewhere")
    audit.log_sync_event("run_completed", "clean")

    assert (tmp_path / "elsewhere" / "sync-events.jsonl").exists()


def test_verify_empty_audit_log(audit_file):
    assert audit.verify_audit_log() == (0, 0)
