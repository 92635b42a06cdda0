"""Configuration loading and validation for the homework assistant."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
from typing import Any
from urllib.parse import urlparse

from platformdirs import user_config_path, user_state_path
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigValidationError

import tomllib

LOGGER = logging.getLogger(__name__)

APP_NAME = "acctsolver"
CONFIG_DIR = user_config_path(APP_NAME)
CONFIG_PATH = CONFIG_DIR / "config.toml"
STATE_DIR = user_state_path(APP_NAME)

ASPECT_RATIO_PATTERN = re.compile(r"^\d+:\d+$")
STORAGE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "AcctSolver AI"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _non_empty_string(value)


class BackendConfig(BaseModel):
    """Inference backend endpoint, models and generation settings."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2-vision"
    image_model: str = ""
    timeout: int = Field(default=120, ge=1, le=3600)
    retries: int = Field(default=2, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0.0, le=60.0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    image_aspect_ratio: str = "4:3"
    system_prompt: str = ""

    @field_validator("host", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty_string(value)

    @field_validator("image_model", "system_prompt", mode="before")
    @classmethod
    def _normalize_optional_string(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @field_validator("image_aspect_ratio", mode="before")
    @classmethod
    def _validate_aspect_ratio(cls, value: Any) -> str:
        normalized = _non_empty_string(value)
        if not ASPECT_RATIO_PATTERN.match(normalized):
            raise ValueError("image_aspect_ratio must look like '4:3'.")
        return normalized

    @model_validator(mode="after")
    def _validate_host(self) -> BackendConfig:
        parsed = urlparse(self.host)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("backend.host must use http or https scheme.")
        if not (parsed.hostname or "").strip():
            raise ValueError("backend.host must include a hostname.")
        if not self.image_model:
            self.image_model = self.model
        return self


class SessionConfig(BaseModel):
    """Durable session storage and autosave timing."""

    enabled: bool = True
    directory: str = str(STATE_DIR / "sessions")
    storage_key: str = "acctsolver_chat_state"
    autosave_interval_seconds: float = Field(default=30.0, gt=0.0, le=3600.0)
    saving_indicator_seconds: float = Field(default=2.0, ge=0.0, le=60.0)

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, value: Any) -> str:
        return _non_empty_string(value)

    @field_validator("storage_key", mode="before")
    @classmethod
    def _validate_storage_key(cls, value: Any) -> str:
        normalized = _non_empty_string(value)
        if not STORAGE_KEY_PATTERN.match(normalized):
            raise ValueError("storage_key may only use letters, digits, '.', '_' and '-'.")
        return normalized


class AttachmentsConfig(BaseModel):
    """Limits for files ingested from disk."""

    max_file_bytes: int = Field(default=20 * 1024 * 1024, ge=1, le=512 * 1024 * 1024)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = str(STATE_DIR / "app.log")
    max_file_bytes: int = Field(default=1_000_000, ge=1024)
    backup_count: int = Field(default=3, ge=0, le=50)

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _non_empty_string(value)


SECTION_MODELS: dict[str, type[BaseModel]] = {
    "app": AppConfig,
    "backend": BackendConfig,
    "session": SessionConfig,
    "attachments": AttachmentsConfig,
    "logging": LoggingConfig,
}

# `image_model` stays blank here so that overriding `model` alone also
# retargets image generation.
DEFAULT_CONFIG: dict[str, dict[str, Any]] = {
    name: model().model_dump() for name, model in SECTION_MODELS.items()
}
DEFAULT_CONFIG["backend"]["image_model"] = ""


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create the config directory if needed and return it."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    if os.name == "posix":
        try:
            path.chmod(0o600)
        except OSError as exc:
            LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("Failed to parse config at %s: %s", path, exc)
        return {}


def _validate_section(name: str, overrides: Any) -> dict[str, Any]:
    """Validate one section over its defaults; a bad section reverts alone."""
    model = SECTION_MODELS[name]
    values = deepcopy(DEFAULT_CONFIG[name])
    if isinstance(overrides, dict):
        values.update(overrides)
    elif overrides is not None:
        LOGGER.warning("Config section [%s] must be a table; using defaults", name)
    try:
        return model.model_validate(values).model_dump()
    except ValidationError as exc:
        LOGGER.warning("Invalid [%s] config, using defaults: %s", name, exc)
        return model().model_dump()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate [{name}] config: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """Load ``config.toml`` and return one validated dict per section.

    Unknown sections are ignored. ``config_path`` overrides the platform
    location, mainly for tests and the ``--config`` flag.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)
    raw = _read_toml(target_path)
    return {name: _validate_section(name, raw.get(name)) for name in SECTION_MODELS}
