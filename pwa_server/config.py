"""Application configuration via pydantic-settings."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pwa_server.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Hardening headers sent with every response. Content-Security-Policy is
# left out: it depends entirely on the app being served.
DEFAULT_SECURITY_HEADERS: Dict[str, str] = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PWA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Listening socket
    host: str = "127.0.0.1"
    port: int = Field(8080, ge=0, le=65535)  # 0 picks a random port

    # Files
    root: Path = Path(".")
    entrypoint: str = "index.html"

    # Cache-Control for everything except the entrypoint and service workers
    cache_control: str = "max-age=60"

    # Hand errors to the enclosing app's exception handlers instead of
    # writing a plain-text response
    forward_errors: bool = False

    # Response wrapping
    compression: bool = True
    security_headers: Optional[Dict[str, Optional[str]]] = Field(
        default_factory=lambda: dict(DEFAULT_SECURITY_HEADERS)
    )

    log_level: str = "info"

    @field_validator("root")
    @classmethod
    def _resolve_root(cls, value: Path) -> Path:
        root = value.expanduser().resolve()
        if not root.is_dir():
            raise ValueError(f"root is not a directory: {value}")
        return root

    @field_validator("entrypoint")
    @classmethod
    def _strip_entrypoint(cls, value: str) -> str:
        value = value.lstrip("/")
        if not value:
            raise ValueError("entrypoint must name a file")
        return value

    @field_validator("security_headers")
    @classmethod
    def _drop_unset_headers(cls, value):
        # A header mapped to null in a config file removes that default
        if value is None:
            return None
        return {name: v for name, v in value.items() if v is not None}

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value in ``override``
    replaces the one in ``base``.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_config_file(config_file: Path) -> Dict[str, Any]:
    """Parse a JSON configuration file into a dict of settings."""
    try:
        data = json.loads(Path(config_file).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f'Could not load config file "{config_file}": {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'Config file "{config_file}" must contain a JSON object.')
    return data


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> Settings:
    """Build settings from explicit overrides, a config file and the environment.

    Values from ``config_file`` are merged over ``overrides``; environment
    variables (``PWA_*``) and defaults fill in whatever neither sets.
    """
    values: Dict[str, Any] = dict(overrides)
    if config_file:
        logger.info(f'Loading config from "{config_file}".')
        file_values = read_config_file(config_file)
        if isinstance(file_values.get("security_headers"), dict):
            values.setdefault("security_headers", dict(DEFAULT_SECURITY_HEADERS))
        values = _deep_merge(values, file_values)
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
