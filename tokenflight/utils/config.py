"""Client configuration loading and validation."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from tokenflight.core.errors import ConfigError

ENV_PREFIX = "TOKENFLIGHT_"

# Environment variables recognised by load_config, mapped to config fields.
_ENV_FIELDS = {
    "BASE_URL": "base_url",
    "REFRESH_PATH": "refresh_path",
    "LOGIN_PATH": "login_path",
    "SIGNUP_PATH": "signup_path",
    "AUTH_HEADER": "auth_header",
    "AUTH_SCHEME": "auth_scheme",
    "TIMEOUT_S": "timeout_s",
    "QUEUE_TIMEOUT_S": "queue_timeout_s",
}


class ClientConfig(BaseModel):
    """Connection and auth settings for a SessionClient."""

    base_url: str
    refresh_path: str = "/users/refresh-token"
    login_path: str = "/users/login"
    signup_path: str = "/users/create"
    auth_header: str = "Authorization"
    auth_scheme: str = "Bearer"
    auth_failure_statuses: list[int] = Field(default_factory=lambda: [401])
    timeout_s: float = 30.0
    # None keeps queued requests waiting until the in-flight refresh settles.
    queue_timeout_s: float | None = None
    user_agent: str = "tokenflight/0.1"

    @field_validator("base_url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("auth_failure_statuses")
    @classmethod
    def _require_error_statuses(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("auth_failure_statuses cannot be empty")
        for status in value:
            if not 400 <= status <= 499:
                raise ValueError(f"auth failure status {status} is not a 4xx code")
        return value

    @field_validator("timeout_s", "queue_timeout_s")
    @classmethod
    def _require_positive(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"


def load_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Build a ClientConfig from YAML, then TOKENFLIGHT_* env vars, then overrides.

    A missing file is not an error; the remaining layers must then supply
    ``base_url``.
    """
    payload: dict[str, Any] = {}
    if path is not None and Path(path).exists():
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        payload.update(loaded)

    env = os.environ if environ is None else environ
    for suffix, field_name in _ENV_FIELDS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value:
            payload[field_name] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            payload[key] = value

    try:
        return ClientConfig(**payload)
    except ValidationError as exc:
        raise ConfigError(_summarize(exc)) from exc


def write_config(config: ClientConfig, path: str | Path) -> None:
    """Write a config YAML file."""
    resolved = Path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with open(resolved, "w") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, sort_keys=True)


def _summarize(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "config"
        problems.append(f"{location}: {error['msg']}")
    return "Invalid configuration: " + "; ".join(problems)
