"""Configuration for ipledger hosts.

Settings resolve in three layers, later layers winning:

1. built-in defaults (``~/.ipledger/registry``, ``~/.ipledger/audit_logs``)
2. a YAML file, given explicitly or through ``IPLEDGER_CONFIG``
3. environment variables ``IPLEDGER_REGISTRY_DIR``, ``IPLEDGER_AUDIT_DIR``,
   ``IPLEDGER_LOG_LEVEL`` and ``IPLEDGER_AUDIT``

A YAML file looks like::

    registry_dir: /var/lib/ipledger
    audit_dir: /var/log/ipledger
    log_level: DEBUG
    audit_enabled: true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

import yaml

from ipledger.registry.errors import ConfigurationError
from ipledger.registry.service import IPRegistry
from ipledger.registry.store import FileRegistryStore
from ipledger.security.audit_log import AuditLogger
from ipledger.utils.logger import set_log_level

ENV_CONFIG = "IPLEDGER_CONFIG"
ENV_REGISTRY_DIR = "IPLEDGER_REGISTRY_DIR"
ENV_AUDIT_DIR = "IPLEDGER_AUDIT_DIR"
ENV_LOG_LEVEL = "IPLEDGER_LOG_LEVEL"
ENV_AUDIT = "IPLEDGER_AUDIT"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _default_home() -> Path:
    return Path.home() / ".ipledger"


@dataclass
class Settings:
    registry_dir: Path = field(default_factory=lambda: _default_home() / "registry")
    audit_dir: Path = field(default_factory=lambda: _default_home() / "audit_logs")
    log_level: str = "INFO"
    audit_enabled: bool = True


def load_settings(
    config_path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings from defaults, an optional YAML file, and the environment."""
    env = os.environ if environ is None else environ
    settings = Settings()

    path = config_path or env.get(ENV_CONFIG)
    if path:
        _apply(settings, _read_yaml(Path(path)), source=str(path))

    overrides = {}
    if env.get(ENV_REGISTRY_DIR):
        overrides["registry_dir"] = env[ENV_REGISTRY_DIR]
    if env.get(ENV_AUDIT_DIR):
        overrides["audit_dir"] = env[ENV_AUDIT_DIR]
    if env.get(ENV_LOG_LEVEL):
        overrides["log_level"] = env[ENV_LOG_LEVEL]
    if env.get(ENV_AUDIT):
        overrides["audit_enabled"] = env[ENV_AUDIT]
    _apply(settings, overrides, source="environment")

    return settings


def build_registry(settings: Settings) -> IPRegistry:
    """Wire a file-backed registry (and audit trail, if enabled) from settings."""
    set_log_level(settings.log_level)
    audit = AuditLogger(settings.audit_dir) if settings.audit_enabled else None
    return IPRegistry(FileRegistryStore(settings.registry_dir), audit=audit)


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}", path=str(path))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping", path=str(path))
    return data


def _apply(settings: Settings, values: Mapping, source: str) -> None:
    known = {f.name for f in fields(Settings)}
    for key, value in values.items():
        if key not in known:
            raise ConfigurationError(f"Unknown setting {key!r} in {source}", key=key)
        if key in ("registry_dir", "audit_dir"):
            value = Path(str(value)).expanduser()
        elif key == "log_level":
            value = str(value).upper()
        elif key == "audit_enabled":
            value = _to_bool(value, key, source)
        setattr(settings, key, value)


def _to_bool(value, key: str, source: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"Setting {key!r} in {source} must be a boolean, got {value!r}", key=key)
