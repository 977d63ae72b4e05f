"""Tests for settings resolution and registry wiring."""

import tempfile
from pathlib import Path

import pytest
import yaml

from ipledger.config import Settings, build_registry, load_settings
from ipledger.registry.context import StaticCallerContext
from ipledger.registry.errors import ConfigurationError
from ipledger.registry.identity import Identity
from ipledger.registry.store import FileRegistryStore


def test_defaults():
    settings = load_settings(environ={})
    assert settings.registry_dir == Path.home() / ".ipledger" / "registry"
    assert settings.audit_dir == Path.home() / ".ipledger" / "audit_logs"
    assert settings.log_level == "INFO"
    assert settings.audit_enabled


def test_yaml_file_then_environment():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "ipledger.yaml"
        with open(path, "w") as f:
            yaml.dump({"registry_dir": f"{tmpdir}/from-yaml", "log_level": "debug", "audit_enabled": False}, f)

        settings = load_settings(path, environ={})
        assert settings.registry_dir == Path(tmpdir) / "from-yaml"
        assert settings.log_level == "DEBUG"
        assert not settings.audit_enabled

        env = {"IPLEDGER_CONFIG": str(path), "IPLEDGER_REGISTRY_DIR": f"{tmpdir}/from-env", "IPLEDGER_AUDIT": "yes"}
        settings = load_settings(environ=env)
        assert settings.registry_dir == Path(tmpdir) / "from-env"
        assert settings.log_level == "DEBUG"
        assert settings.audit_enabled


def test_empty_yaml_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "empty.yaml"
        path.write_text("")
        assert load_settings(path, environ={}) == Settings()


@pytest.mark.parametrize("content", ["- a list\n", "unknown_key: 1\n", "audit_enabled: maybe\n", "key: [unclosed\n"])
def test_invalid_yaml_settings(content):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "bad.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_settings(path, environ={})


def test_missing_config_file():
    with pytest.raises(ConfigurationError):
        load_settings("/nonexistent/ipledger.yaml", environ={})


def test_build_registry_uses_file_store():
    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(registry_dir=Path(tmpdir) / "reg", audit_dir=Path(tmpdir) / "audit", log_level="WARNING")
        registry = build_registry(settings)
        assert isinstance(registry.store, FileRegistryStore)
        assert registry.audit is not None

        alice = Identity(b"alice")
        registry.register_ip(StaticCallerContext(alice, 1), "Title", "", "h1", "MIT", {})
        assert (Path(tmpdir) / "reg" / FileRegistryStore.STORE_FILE).exists()
        assert len(registry.audit.get_events()) == 1


def test_build_registry_without_audit():
    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(registry_dir=Path(tmpdir), audit_enabled=False, log_level="WARNING")
        assert build_registry(settings).audit is None
