"""Audit logging for membership sync operations (webhook outcomes, bulk runs)."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Literal

AUDIT_LOG_DIR = Path(os.environ.get("MEMBERSYNC_AUDIT_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "sync-events.jsonl"


def configure(audit_dir: str | Path) -> None:
    """Point the audit trail at ``audit_dir`` (called once at startup)."""
    global AUDIT_LOG_DIR, AUDIT_LOG_FILE
    AUDIT_LOG_DIR = Path(audit_dir)
    AUDIT_LOG_FILE = AUDIT_LOG_DIR / "sync-events.jsonl"


def _get_signing_key() -> bytes:
    """Get the audit signing key from environment (read lazily, after settings load)."""
    key = os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip()
    if key:
        return key.encode("utf-8")
    secret_file = Path("/run/secrets/audit_log_signing_key")
    if secret_file.exists():
        try:
            return secret_file.read_text(encoding="utf-8").strip().encode("utf-8")
        except OSError:
            return b""
    return b""


EventType = Literal[
    # Webhook events
    "member_provisioned", "member_deactivated", "webhook_rejected",
    # Access events
    "arrival_logged",
    # Bulk runs
    "run_completed", "run_aborted",
]


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    # Canonical JSON representation for signing
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_sync_event(
    event_type: EventType,
    subject: str,
    *,
    source: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append one signed event to the audit trail.

    Args:
        event_type: Type of sync operation
        subject: Member barcode id, or run name for bulk runs
        source: What triggered the operation ("webhook", "cli", ...)
        details: Additional context (failure reason, counts, ...)
        success: Whether the operation succeeded
    """
    _ensure_audit_dir()

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "subject": subject,
        "source": source,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    # Append to JSONL file (one JSON object per line)
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_sync_event(
    event_type: EventType,
    subject: str,
    *,
    source: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log a sync event, never raising.

    Audit failures are reported on stderr and must not break the sync itself.

    Returns:
        True if event was logged successfully, False if logging failed
    """
    try:
        log_sync_event(event_type, subject, source=source, details=details, success=success)
        return True
    except Exception as e:
        print(f"[audit] Warning: Failed to log {event_type} event for {subject}: {e}", file=sys.stderr)
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid
