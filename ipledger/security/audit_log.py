"""Audit trail for registry mutations.

Every register, transfer, and status change (successful or rejected) is
appended as one JSON line to a daily file under the audit directory
(``~/.ipledger/audit_logs/`` by default). The trail can be filtered,
looked up per file hash, and exported as JSON or CSV.
"""

from __future__ import annotations

import csv
import io
import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ipledger.utils.logger import get_logger

logger = get_logger("security.audit_log")

RESOURCE_REGISTRATION = "registration"

CSV_COLUMNS = (
    "id", "recorded_at", "actor", "action", "resource_id", "logical_time", "success", "error_code",
)


@dataclass
class AuditEntry:
    """A single audit log entry."""

    id: str
    recorded_at: str  # Wall clock, ISO 8601
    actor: str  # Principal text of the caller
    action: str
    resource_type: str
    resource_id: str  # File hash
    logical_time: int = 0  # Host time of the operation
    details: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error_code: str = ""


class AuditLogger:
    """File-based JSON audit logger.

    Events are persisted as newline-delimited JSON in daily log files.
    """

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else Path.home() / ".ipledger" / "audit_logs"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def _read_all_entries(self) -> list[AuditEntry]:
        """Read every entry from all log files, oldest file first."""
        entries: list[AuditEntry] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
                if not line.strip():
                    continue
                try:
                    entries.append(AuditEntry(**json.loads(line)))
                except (json.JSONDecodeError, TypeError):
                    logger.warning(f"Skipping unreadable audit line {path.name}:{lineno}")
        return entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_event(
        self,
        actor: str,
        action: str,
        resource_id: str,
        *,
        logical_time: int = 0,
        details: Optional[dict[str, Any]] = None,
        success: bool = True,
        error_code: str = "",
        resource_type: str = RESOURCE_REGISTRATION,
    ) -> AuditEntry:
        """Record an audit event and return the created entry."""
        now = datetime.now(timezone.utc)
        entry = AuditEntry(
            id=uuid.uuid4().hex[:16],
            recorded_at=now.isoformat(),
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            logical_time=logical_time,
            details=details or {},
            success=success,
            error_code=error_code,
        )
        with self._log_file_for_date(now).open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry)) + "\n")
        return entry

    def get_events(
        self,
        *,
        actor: Optional[str] = None,
        action: Optional[str] = None,
        resource_id: Optional[str] = None,
        success: Optional[bool] = None,
        limit: Optional[int] = 200,
    ) -> list[AuditEntry]:
        """Return filtered audit events, newest first."""
        entries = self._read_all_entries()

        if actor:
            entries = [e for e in entries if e.actor == actor]
        if action:
            entries = [e for e in entries if e.action == action]
        if resource_id:
            entries = [e for e in entries if e.resource_id == resource_id]
        if success is not None:
            entries = [e for e in entries if e.success == success]

        # Same-instant events stay newest first
        entries.reverse()
        entries.sort(key=lambda e: e.recorded_at, reverse=True)
        return entries if limit is None else entries[:limit]

    def get_events_for_file_hash(self, file_hash: str) -> list[AuditEntry]:
        """Return every event that touched ``file_hash``, newest first."""
        return self.get_events(resource_id=file_hash, limit=None)

    def export_events(self, fmt: str = "json", **filters: Any) -> str:
        """Export audit events as ``json`` or ``csv``."""
        filters.setdefault("limit", None)
        entries = self.get_events(**filters)

        if fmt == "csv":
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            writer.writerow(CSV_COLUMNS)
            for e in entries:
                writer.writerow([getattr(e, column) for column in CSV_COLUMNS])
            return buf.getvalue().rstrip("\n")

        return json.dumps([asdict(e) for e in entries], indent=2)
