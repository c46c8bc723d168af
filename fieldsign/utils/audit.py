"""In-memory audit log for editing session operations."""

from datetime import datetime, timezone
from typing import Any

_audit_log: list[dict[str, Any]] = []


def log_operation(
    operation: str,
    session_id: str | None = None,
    field_id: str | None = None,
    recipient: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append an operation to the audit log."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation,
        "session_id": session_id,
        "field_id": field_id,
        "recipient": recipient,
        "metadata": metadata or {},
    }
    _audit_log.append(entry)


def get_audit_log(limit: int | None = None, operation: str | None = None) -> list[dict[str, Any]]:
    """Get audit log entries, optionally filtered by operation and limited to the latest."""
    entries = [e for e in _audit_log if operation is None or e["operation"] == operation]
    if limit is None:
        return entries
    return entries[-limit:]


def clear_audit_log() -> None:
    """Clear the audit log (for testing)."""
    _audit_log.clear()
