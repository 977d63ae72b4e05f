"""Tests for the registry audit trail."""

import csv
import io
import json
import tempfile
from pathlib import Path

from ipledger.security.audit_log import CSV_COLUMNS, AuditLogger


def test_log_and_query_events():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        audit.log_event("alice", "register", "h1", logical_time=10)
        audit.log_event("alice", "transfer", "h1", logical_time=20, details={"to": "bob"})
        audit.log_event("bob", "register", "h2", logical_time=30)

        events = audit.get_events()
        assert [e.logical_time for e in events] == [30, 20, 10]

        assert [e.resource_id for e in audit.get_events(actor="alice")] == ["h1", "h1"]
        assert [e.actor for e in audit.get_events(action="register")] == ["bob", "alice"]
        assert len(audit.get_events(limit=1)) == 1


def test_events_for_file_hash():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        audit.log_event("alice", "register", "h1")
        audit.log_event("bob", "register", "h2")
        audit.log_event("alice", "transfer", "h1", success=False, error_code="NOT_FOUND")

        events = audit.get_events_for_file_hash("h1")
        assert [e.action for e in events] == ["transfer", "register"]
        assert events[0].error_code == "NOT_FOUND"
        assert not events[0].success


def test_events_are_newline_delimited_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        entry = audit.log_event("alice", "register", "h1")

        files = list(Path(tmpdir).glob("*.jsonl"))
        assert len(files) == 1
        lines = files[0].read_text().splitlines()
        assert json.loads(lines[0])["id"] == entry.id
        assert json.loads(lines[0])["resource_type"] == "registration"


def test_unreadable_lines_are_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        audit.log_event("alice", "register", "h1")
        with (Path(tmpdir) / "2000-01-01.jsonl").open("w") as fh:
            fh.write("not json\n\n")

        assert len(audit.get_events()) == 1


def test_export_formats():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        audit.log_event("alice", "register", "h1", logical_time=7)

        exported = json.loads(audit.export_events("json"))
        assert exported[0]["actor"] == "alice"

        csv_lines = audit.export_events("csv").splitlines()
        assert csv_lines[0].startswith("id,recorded_at,actor")
        assert ",alice,register,h1,7,True," in csv_lines[1]


def test_csv_export_quotes_free_form_fields():
    with tempfile.TemporaryDirectory() as tmpdir:
        audit = AuditLogger(Path(tmpdir))
        audit.log_event("alice", "register", 'report, "final"\nv2', logical_time=3)

        rows = list(csv.reader(io.StringIO(audit.export_events("csv"))))
        assert len(rows) == 2
        assert rows[0] == list(CSV_COLUMNS)
        record = dict(zip(rows[0], rows[1]))
        assert record["resource_id"] == 'report, "final"\nv2'
        assert record["logical_time"] == "3"
        assert record["success"] == "True"
