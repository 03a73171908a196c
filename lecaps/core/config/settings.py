from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from lecaps.core.store.holdings_store import DEFAULT_STORE_PATH

CONFIG_ENV_VAR = "LECAPS_CONFIG"
_ENV_OVERRIDES = {
    "LECAPS_STORE_PATH": "store_path",
    "LECAPS_DEFAULT_PORTFOLIO": "default_portfolio_name",
    "LECAPS_LOG_LEVEL": "log_level",
    "LECAPS_PASSWORD_HASH_ITERATIONS": "password_hash_iterations",
}
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    store_path: str = DEFAULT_STORE_PATH
    default_portfolio_name: str = "General"
    log_level: str = "INFO"
    password_hash_iterations: int = Field(default=200_000, ge=1)

    @field_validator("default_portfolio_name")
    @classmethod
    def require_portfolio_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("default_portfolio_name cannot be empty")
        return name

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {value}")
        return level


def load_settings(path: str | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """
    Defaults, then the optional YAML file (``path`` or ``$LECAPS_CONFIG``),
    then ``LECAPS_*`` environment variables.
    """
    environ = os.environ if env is None else env
    config_path = path or str(environ.get(CONFIG_ENV_VAR, "")).strip()

    values: dict[str, Any] = {}
    if config_path:
        raw = yaml.safe_load(Path(config_path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"config file {config_path} must contain a mapping")
        section = raw.get("lecaps", raw)
        if isinstance(section, dict):
            values.update(section)

    for env_name, key in _ENV_OVERRIDES.items():
        value = str(environ.get(env_name, "")).strip()
        if value:
            values[key] = value

    return Settings.model_validate(values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    logging.getLogger("lecaps").setLevel(level.upper())
