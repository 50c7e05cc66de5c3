"""Local bootstrap configuration.

Holds backend connection settings only.  The passphrase and plaintext notes
are never part of it; a config file that tries to store a passphrase is
rejected.

Resolution order (later wins)::

    defaults  <  YAML file  <  environment  <  keyword overrides

The YAML file defaults to ``~/.config/safedocs/config.yaml`` and can be moved
with ``SAFEDOCS_CONFIG``::

    store_url: https://docs.example.com/api
    api_token: s3cr3t-token
    record_id: main
    cache_path: ~/.cache/safedocs/cache.duckdb
    quiet_interval_ms: 1000
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from safedocs.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("~/.config/safedocs/config.yaml")

_FORBIDDEN_KEYS = {"passphrase", "password", "session_key"}

_ENV_VARS = {
    "store_url": "SAFEDOCS_STORE_URL",
    "api_token": "SAFEDOCS_API_TOKEN",
    "record_id": "SAFEDOCS_RECORD_ID",
    "cache_path": "SAFEDOCS_CACHE_PATH",
    "quiet_interval_ms": "SAFEDOCS_QUIET_MS",
}


@dataclass
class SafeDocsConfig:
    store_url: str = ""
    api_token: str = ""
    record_id: str = "main"
    cache_path: Path | None = None
    quiet_interval_ms: int = 1000
    timeout: float = 10.0
    kdf_iterations: int = 390_000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SafeDocsConfig":
        forbidden = _FORBIDDEN_KEYS & set(data)
        if forbidden:
            raise ConfigError(f"configuration must not contain secrets: {', '.join(sorted(forbidden))}")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
        try:
            cfg = cls(**data)
            cfg.quiet_interval_ms = int(cfg.quiet_interval_ms)
            cfg.timeout = float(cfg.timeout)
            cfg.kdf_iterations = int(cfg.kdf_iterations)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid configuration value: {exc}") from exc
        if cfg.cache_path is not None:
            cfg.cache_path = Path(cfg.cache_path).expanduser()
        if cfg.quiet_interval_ms < 0:
            raise ConfigError("quiet_interval_ms must not be negative")
        return cfg


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def load_config(path: Path | str | None = None, **overrides: Any) -> SafeDocsConfig:
    """Resolve the configuration from file, environment and *overrides*."""
    if path is None:
        path = os.getenv("SAFEDOCS_CONFIG") or DEFAULT_CONFIG_PATH
    data = _read_file(Path(path).expanduser())
    for key, var in _ENV_VARS.items():
        value = os.getenv(var)
        if value:
            data[key] = value
    data.update({k: v for k, v in overrides.items() if v is not None})
    return SafeDocsConfig.from_dict(data)


def build_store(config: SafeDocsConfig):
    """Build the remote store described by *config*.

    With ``cache_path`` set the HTTP store is wrapped in a DuckDB-backed
    :class:`~safedocs.sync.duckdb_cache.CachedStore` for offline reads.
    """
    from safedocs.sync.http import HttpRecordStore

    if not config.store_url:
        raise ConfigError("store_url is not configured")
    store = HttpRecordStore(config.store_url, api_token=config.api_token, timeout=config.timeout)
    if config.cache_path is None:
        return store

    from safedocs.sync.duckdb_cache import CachedStore, DuckDBRecordCache

    return CachedStore(store, DuckDBRecordCache(config.cache_path))


def build_engine(config: SafeDocsConfig):
    """Build a :class:`~safedocs.engine.SyncEngine` wired to :func:`build_store`."""
    from safedocs.crypto import CryptoGateway
    from safedocs.engine import SyncEngine

    return SyncEngine(
        build_store(config),
        crypto=CryptoGateway(iterations=config.kdf_iterations),
        record_id=config.record_id,
    )
