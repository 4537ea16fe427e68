from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


_CONFIG_PATH_ENV = "COLLECTOR_CONFIG"
_QUEUE_SIZE_ENV = "COLLECTOR_QUEUE_SIZE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_FLUSH_INTERVAL = 30


class ConfigurationError(Exception):
    """Raised when the configuration cannot be read or is unusable."""


@dataclass(frozen=True)
class ServerSettings:
    listen_addr: str = ":8080"
    request_timeout: float = 10.0

    @property
    def host(self) -> str:
        host, _, _ = self.listen_addr.rpartition(":")
        return host.strip("[]") or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.listen_addr.rpartition(":")
        try:
            return int(port)
        except ValueError as exc:
            raise ConfigurationError(
                f"invalid listen address {self.listen_addr!r}"
            ) from exc


@dataclass(frozen=True)
class InfluxSettings:
    address: str = "http://localhost:8086"
    username: str = ""
    password: str = ""
    measurement_prefix: str = ""
    database: str = ""
    retention_policy: str = ""
    token: str = ""
    organization: str = ""
    bucket: str = ""
    skip_verify_ssl: bool = False
    flush_interval: int = DEFAULT_FLUSH_INTERVAL
    batch_size: int = 5000


@dataclass(frozen=True)
class Settings:
    server: ServerSettings = field(default_factory=ServerSettings)
    influxdb: InfluxSettings = field(default_factory=InfluxSettings)
    queue_size: int = 1
    log_level: str = "INFO"


# Environment overrides per section: env name -> dataclass attribute.
_SERVER_ENV = {
    "SERVER_LISTEN_ADDR": "listen_addr",
    "SERVER_REQUEST_TIMEOUT": "request_timeout",
}
_INFLUX_ENV = {
    "INFLUXDB_ADDRESS": "address",
    "INFLUXDB_USERNAME": "username",
    "INFLUXDB_PASSWORD": "password",
    "INFLUXDB_MEASUREMENT_PREFIX": "measurement_prefix",
    "INFLUXDB_DATABASE": "database",
    "INFLUXDB_RETENTION_POLICY": "retention_policy",
    "INFLUXDB_TOKEN": "token",
    "INFLUXDB_ORGANIZATION": "organization",
    "INFLUXDB_BUCKET": "bucket",
    "INFLUXDB_SKIP_VERIFY_SSL": "skip_verify_ssl",
    "INFLUXDB_FLUSH_INTERVAL": "flush_interval",
    "INFLUXDB_BATCH_SIZE": "batch_size",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _normalize_key(key: object) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def _normalize_section(raw: Any, section: str) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"section {section!r} must be a mapping")
    return {_normalize_key(key): value for key, value in raw.items()}


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a file or environment value to the type of ``default``."""
    if value is None:
        return default
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        candidate = str(value).strip().lower()
        if candidate in _TRUE_VALUES:
            return True
        if candidate in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
    if isinstance(default, int):
        if isinstance(value, bool):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        try:
            return int(str(value).strip())
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if isinstance(default, float):
        try:
            return float(str(value).strip())
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    return str(value)


def _build_section(cls, section: str, raw: Dict[str, Any], env: Mapping[str, str]):
    defaults = cls()
    values: Dict[str, Any] = {}
    for attr in cls.__dataclass_fields__:
        default = getattr(defaults, attr)
        value = raw.get(_normalize_key(attr))
        values[attr] = _coerce(f"{section}.{attr}", value, default)

    for env_name, attr in env.items():
        override = os.getenv(env_name)
        if override is None:
            continue
        values[attr] = _coerce(env_name, override, getattr(defaults, attr))

    return cls(**values)


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"error reading config file {path}: {exc}") from exc

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"unable to decode config file {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return {_normalize_key(key): value for key, value in document.items()}


def load_settings(path: str | os.PathLike[str]) -> Settings:
    """Read the YAML configuration at ``path`` and apply environment overrides."""
    document = _read_config_file(Path(path))

    server = _build_section(
        ServerSettings, "server", _normalize_section(document.get("server"), "server"), _SERVER_ENV
    )
    influxdb = _build_section(
        InfluxSettings,
        "influxdb",
        _normalize_section(document.get("influxdb"), "influxdb"),
        _INFLUX_ENV,
    )

    queue_size = _coerce("queuesize", document.get("queuesize"), 1)
    queue_size = _coerce(_QUEUE_SIZE_ENV, os.getenv(_QUEUE_SIZE_ENV), queue_size)
    if queue_size < 1:
        raise ConfigurationError(f"queue size must be at least 1, got {queue_size}")

    log_level = str(document.get("loglevel") or "INFO").upper()

    return Settings(
        server=server,
        influxdb=influxdb,
        queue_size=queue_size,
        log_level=_read_log_level(log_level),
    )


def config_path_from_env(default: Optional[str] = None) -> str:
    return _read_str_env(_CONFIG_PATH_ENV, default or DEFAULT_CONFIG_PATH)


@lru_cache
def get_settings() -> Settings:
    return load_settings(config_path_from_env())
