"""Audit configuration dataclass and loader."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = ".go-audit.yaml"

_DEFAULT_VENDOR_DIRS = frozenset({"vendor"})


@dataclass(frozen=True)
class AuditConfig:
    """Immutable configuration shared by discovery, walker and CLI.

    All parameters are optional and have sensible defaults.
    """

    include_tests: bool = True
    vendor_dirs: frozenset[str] = field(default_factory=lambda: _DEFAULT_VENDOR_DIRS)
    extensions: tuple[str, ...] = (".go",)
    context_before: int = 1
    context_after: int = 1
    log_level: str = "WARNING"

    def with_overrides(self, **changes: Any) -> "AuditConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/env value to the type of field *name*."""
    if name == "include_tests":
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)
    if name == "vendor_dirs":
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",")]
        return frozenset(v for v in value if v)
    if name == "extensions":
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",")]
        return tuple(v for v in value if v)
    if name in ("context_before", "context_after"):
        return int(value)
    if name == "log_level":
        return str(value).upper()
    return value


_ENV_VARS = {
    "GO_AUDIT_INCLUDE_TESTS": "include_tests",
    "GO_AUDIT_VENDOR_DIRS": "vendor_dirs",
    "GO_AUDIT_LOG_LEVEL": "log_level",
}


def load_config(path: Path | str | None = None) -> AuditConfig:
    """Build an :class:`AuditConfig` from a YAML file and the environment.

    Parameters
    ----------
    path:
        YAML file to read.  Default: ``.go-audit.yaml`` in the current
        directory, silently ignored when absent.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* does not exist.
    ValueError
        If the YAML is malformed or not a mapping.
    """
    values: dict[str, Any] = {}
    known = {f.name for f in fields(AuditConfig)}

    cfg_path = Path(path) if path is not None else Path(DEFAULT_CONFIG_FILE)
    if cfg_path.exists():
        try:
            raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{cfg_path}: invalid YAML: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"{cfg_path}: expected a mapping at top level")
        for key, value in raw.items():
            key = str(key).replace("-", "_")
            if key in known:
                values[key] = _coerce(key, value)
    elif path is not None:
        raise FileNotFoundError(f"config file does not exist: {cfg_path}")

    # Environment variables override the file
    for env_key, name in _ENV_VARS.items():
        env_value = os.getenv(env_key)
        if env_value is not None:
            values[name] = _coerce(name, env_value)

    return AuditConfig(**values)
