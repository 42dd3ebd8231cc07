# oxtel/app/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from oxtel.core.errors import ConfigError
from oxtel.protocol.engine import DEFAULT_EVENT_QUEUE_SIZE, DEFAULT_RESPONSE_TIMEOUT_S
from oxtel.runtime.client import DEFAULT_CONNECT_TIMEOUT_S, DEFAULT_PORT, DEFAULT_READ_TIMEOUT_S

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class OxtelConfig:
    address: str
    port: int = DEFAULT_PORT
    response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    log_level: str = "INFO"


# field name -> schema type name
_SCHEMA: Dict[str, str] = {
    "address": "str",
    "port": "int",
    "response_timeout_s": "float",
    "connect_timeout_s": "float",
    "read_timeout_s": "float",
    "event_queue_size": "int",
    "log_level": "str",
}


def _cast_param(value: Any, type_name: str) -> Any:
    if type_name == "str":
        if not isinstance(value, str):
            raise TypeError(f"Expected str, got {type(value).__name__}")
        return value

    if type_name == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected int, got {type(value).__name__}")
        return value

    if type_name == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Expected float, got {type(value).__name__}")
        return float(value)

    raise TypeError(f"Unknown schema type '{type_name}'")


def _validate(values: Mapping[str, Any]) -> None:
    if not values["address"].strip():
        raise ValueError("address must not be empty")
    if not 0 < values["port"] < 65536:
        raise ValueError(f"port must be in 1..65535, got {values['port']}")
    for name in ("response_timeout_s", "connect_timeout_s", "read_timeout_s"):
        if values[name] <= 0:
            raise ValueError(f"{name} must be > 0, got {values[name]}")
    if values["event_queue_size"] < 1:
        raise ValueError(f"event_queue_size must be >= 1, got {values['event_queue_size']}")
    if values["log_level"].upper() not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {values['log_level']!r}")


def build_config(values: Mapping[str, Any], *, source: str = "<overrides>") -> OxtelConfig:
    """Validate + cast a raw mapping into an OxtelConfig."""
    for key in values:
        if key not in _SCHEMA:
            raise ConfigError(
                f"Unknown config key '{key}'.",
                hint=f"Valid keys: {sorted(_SCHEMA)}",
                details={"source": source, "key": key},
            ) from None

    if values.get("address") is None:
        raise ConfigError(
            "Missing required config key 'address'.",
            hint="Set it in the config file or pass --address.",
            details={"source": source},
        ) from None

    resolved: Dict[str, Any] = {}
    for name, type_name in _SCHEMA.items():
        if values.get(name) is None:
            continue
        try:
            resolved[name] = _cast_param(values[name], type_name)
        except TypeError as e:
            raise ConfigError(
                f"Invalid value for config key '{name}'.",
                hint=str(e),
                details={"source": source, "key": name, "value": values[name], "expected_type": type_name},
            ) from None

    defaults = {f.name: f.default for f in fields(OxtelConfig) if f.name != "address"}
    merged = {**defaults, **resolved}
    try:
        _validate(merged)
    except ValueError as e:
        raise ConfigError(
            "Invalid client configuration.",
            hint=str(e),
            details={"source": source},
        ) from None

    merged["log_level"] = merged["log_level"].upper()
    return OxtelConfig(**merged)


def load_config(path: str | Path, overrides: Optional[Mapping[str, Any]] = None) -> OxtelConfig:
    """
    Load a YAML config file; non-None `overrides` (e.g. CLI flags) win over file values.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(
            f"Config file not found: {path}",
            details={"path": str(path)},
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Config file is not valid YAML: {path}",
            hint=str(e),
            details={"path": str(path)},
        ) from None

    if not isinstance(doc, dict):
        raise ConfigError(
            f"Config file must contain a mapping: {path}",
            details={"path": str(path)},
        )

    values = dict(doc)
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return build_config(values, source=str(path))
