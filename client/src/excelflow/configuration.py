from __future__ import annotations

import hashlib
import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from excelflow.errors import ConfigurationError

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL_S = 3.0


class ConfigError(ConfigurationError):
    pass


class ServiceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1)
    # Transport timeout; no application-level timeout is layered on top.
    timeout_s: float = Field(default=30.0, gt=0)


class PollingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval_s: float = Field(default=DEFAULT_POLL_INTERVAL_S, gt=0)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoints_path: Path = Path("endpoints.yaml")
    download_dir: Path | None = None


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_yaml(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return payload


def dump_yaml(path: str | Path, payload: Any) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)


def load_client_config(path: str | Path) -> ClientConfig:
    config = load_client_config_dict(load_yaml(path))
    endpoints_path = config.storage.endpoints_path
    if not endpoints_path.is_absolute():
        # Relative storage paths are anchored at the config file.
        base = Path(path).resolve().parent
        storage = config.storage.model_copy(update={"endpoints_path": base / endpoints_path})
        config = config.model_copy(update={"storage": storage})
    return config


def load_client_config_dict(payload: Mapping[str, Any]) -> ClientConfig:
    try:
        return ClientConfig.model_validate(resolve_env_vars(dict(payload)))
    except PydanticValidationError as exc:
        raise ConfigError(_format_validation_error("client", exc)) from exc


def resolve_env_vars(payload: Any) -> Any:
    return _resolve_env_vars(payload, path="$")


def _resolve_env_vars(payload: Any, *, path: str) -> Any:
    if isinstance(payload, Mapping):
        return {
            str(key): _resolve_env_vars(value, path=f"{path}.{key}")
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [
            _resolve_env_vars(value, path=f"{path}[{index}]") for index, value in enumerate(payload)
        ]
    if isinstance(payload, str):
        return _substitute_env(payload, path=path)
    return payload


def _substitute_env(value: str, *, path: str) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        env_value = os.environ.get(key)
        if env_value is None:
            raise ConfigError(f"Missing environment variable '{key}' at {path}")
        return env_value

    return _ENV_VAR_PATTERN.sub(replace, value)


def stable_hash(payload: Any, *, length: int = 12) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode(
        "utf-8"
    )
    return hashlib.sha256(encoded).hexdigest()[:length]


def _format_validation_error(prefix: str, exc: PydanticValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in error["loc"])
        details.append(f"{prefix}.{loc}: {error['msg']}")
    return "; ".join(details)
