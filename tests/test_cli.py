"""Tests for the ipledger command-line interface."""

import hashlib
import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from ipledger.cli import main
from ipledger.registry.context import StaticCallerContext
from ipledger.registry.identity import Identity
from ipledger.registry.service import IPRegistry
from ipledger.registry.store import FileRegistryStore

ALICE = Identity(b"alice")
BOB = Identity(b"bob")


def _invoke(tmpdir: str, *args: str, caller: Identity | None = None):
    env = {
        "IPLEDGER_REGISTRY_DIR": f"{tmpdir}/registry",
        "IPLEDGER_AUDIT_DIR": f"{tmpdir}/audit",
        "IPLEDGER_CONFIG": None,
        "IPLEDGER_CALLER": caller.to_text() if caller else None,
    }
    return CliRunner().invoke(main, list(args), env=env)


def _register(tmpdir: str, caller: Identity = ALICE, file_hash: str = "h1"):
    return _invoke(
        tmpdir,
        "register", "Solar Panel Design", file_hash,
        "--description", "Photovoltaic schematics",
        "--license", "CC-BY-4.0",
        "--meta", "format=pdf",
        caller=caller,
    )


def test_register_and_show():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _register(tmpdir)
        assert result.exit_code == 0, result.output
        assert "Registered" in result.output

        result = _invoke(tmpdir, "show", ALICE.to_text())
        assert result.exit_code == 0
        assert "Solar Panel Design" in result.output
        assert "Active" in result.output
        assert "format = pdf" in result.output


def test_show_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        result = _invoke(tmpdir, "show", "--json", ALICE.to_text())
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["owner"] == ALICE.to_text()
        assert data["metadata"] == {"format": "pdf"}


def test_cli_reads_registry_written_by_library():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = IPRegistry(FileRegistryStore(Path(tmpdir) / "registry"))
        registry.register_ip(StaticCallerContext(BOB, 5), "Wind Turbine", "", "h9", "MIT", {})

        result = _invoke(tmpdir, "verify", BOB.to_text(), "h9")
        assert result.exit_code == 0
        assert "owns h9" in result.output


def test_mutation_requires_caller():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "register", "Title", "h1")
        assert result.exit_code == 2
        assert "needs a caller" in result.output


def test_invalid_principal_is_usage_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "show", "not-a-principal!")
        assert result.exit_code == 2


def test_transfer_flow():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)

        result = _invoke(tmpdir, "transfer", BOB.to_text(), "h1", caller=ALICE)
        assert result.exit_code == 0, result.output
        assert "Transferred" in result.output

        result = _invoke(tmpdir, "show", ALICE.to_text())
        assert "No registration held" in result.output

        result = _invoke(tmpdir, "history", "h1")
        assert result.exit_code == 0
        assert BOB.to_text() in result.output

        result = _invoke(tmpdir, "transfer", BOB.to_text(), "h1", caller=ALICE)
        assert result.exit_code == 1
        assert "IP registration not found" in result.output


def test_transfer_wrong_hash():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        result = _invoke(tmpdir, "transfer", BOB.to_text(), "other", caller=ALICE)
        assert result.exit_code == 1
        assert "You don't own this IP" in result.output


def test_set_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        result = _invoke(tmpdir, "set-status", "expired", "h1", caller=ALICE)
        assert result.exit_code == 0, result.output
        assert "Expired" in result.output


def test_verify_exit_codes():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        assert _invoke(tmpdir, "verify", ALICE.to_text(), "h1").exit_code == 0
        assert _invoke(tmpdir, "verify", ALICE.to_text(), "h2").exit_code == 1
        assert _invoke(tmpdir, "verify", BOB.to_text(), "h1").exit_code == 1


def test_search_and_list():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        _register(tmpdir, caller=BOB, file_hash="h2")

        result = _invoke(tmpdir, "search", "SOLAR")
        assert result.exit_code == 0
        assert "h1" in result.output and "h2" in result.output

        result = _invoke(tmpdir, "search", "nothing")
        assert "No matching registrations" in result.output

        result = _invoke(tmpdir, "list")
        assert "2 registrations" in result.output


def test_history_unknown_hash():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "history", "missing")
        assert result.exit_code == 1


def test_audit_export():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)
        _invoke(tmpdir, "transfer", BOB.to_text(), "wrong", caller=ALICE)

        result = _invoke(tmpdir, "audit", "--format", "json")
        assert result.exit_code == 0
        events = json.loads(result.output)
        assert [e["action"] for e in events] == ["transfer", "register"]
        assert events[0]["error_code"] == "OWNERSHIP_MISMATCH"


def test_identity_command():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert _invoke(tmpdir, "identity", "--anonymous").output.strip() == "2vxsx-fae"

        key = Path(tmpdir) / "key.der"
        key.write_bytes(b"public-key-bytes")
        result = _invoke(tmpdir, "identity", "--public-key", str(key))
        assert result.output.strip() == Identity.self_authenticating(b"public-key-bytes").to_text()


def test_show_defaults_to_caller():
    with tempfile.TemporaryDirectory() as tmpdir:
        _register(tmpdir)

        result = _invoke(tmpdir, "show", caller=ALICE)
        assert result.exit_code == 0, result.output
        assert "Solar Panel Design" in result.output

        result = _invoke(tmpdir, "show", caller=BOB)
        assert "No registration held" in result.output

        result = _invoke(tmpdir, "show")
        assert result.exit_code == 2


def test_file_option_hashes_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        document = Path(tmpdir) / "design.pdf"
        document.write_bytes(b"%PDF-1.7 solar panel schematics")
        digest = hashlib.sha256(b"%PDF-1.7 solar panel schematics").hexdigest()

        result = _invoke(tmpdir, "register", "Solar Panel Design", "--file", str(document), caller=ALICE)
        assert result.exit_code == 0, result.output
        assert digest in result.output

        assert _invoke(tmpdir, "verify", ALICE.to_text(), digest).exit_code == 0
        assert _invoke(tmpdir, "verify", ALICE.to_text(), "--file", str(document)).exit_code == 0

        result = _invoke(tmpdir, "set-status", "expired", "--file", str(document), caller=ALICE)
        assert result.exit_code == 0, result.output

        result = _invoke(tmpdir, "transfer", BOB.to_text(), "--file", str(document), caller=ALICE)
        assert result.exit_code == 0, result.output
        assert _invoke(tmpdir, "verify", BOB.to_text(), digest).exit_code == 0


def test_file_hash_and_file_option_are_exclusive():
    with tempfile.TemporaryDirectory() as tmpdir:
        document = Path(tmpdir) / "design.pdf"
        document.write_bytes(b"content")

        result = _invoke(tmpdir, "register", "Title", "h1", "--file", str(document), caller=ALICE)
        assert result.exit_code == 2
        assert "either FILE_HASH or --file" in result.output

        result = _invoke(tmpdir, "register", "Title", caller=ALICE)
        assert result.exit_code == 2
