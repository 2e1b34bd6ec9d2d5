"""Configuration management for the chat client.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./singaseong_chat.yaml``
  3. ``~/.config/singaseong-chat/config.yaml``
  4. Built-in defaults

Cloudflare Access credentials missing from the file are taken from the
``CF_ACCESS_CLIENT_ID`` / ``CF_ACCESS_CLIENT_SECRET`` environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from singaseong_chat.errors import ConfigurationError

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.singaseong.uk"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer concisely and in the language "
    "the user writes in."
)

CLIENT_ID_ENV = "CF_ACCESS_CLIENT_ID"
CLIENT_SECRET_ENV = "CF_ACCESS_CLIENT_SECRET"


class ClientConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    client_id: str | None = None
    client_secret: str | None = None
    require_credentials: bool = True
    api_type: str = "ollama"  # "ollama" (options object) or "openai"

    default_model: str = "tinyllama"
    models: list[str] = Field(default_factory=lambda: ["tinyllama"])

    chat_path: str = "/api/chat"
    generate_path: str = "/api/generate"
    tags_path: str = "/api/tags"

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    history_window: int = Field(default=6, ge=0)
    temperature: float = 0.7
    max_tokens: int = 512
    max_duration: float = Field(default=120.0, ge=30.0, le=300.0)  # seconds

    keyword_limit: int = Field(default=6, ge=1)

    def with_env_credentials(self) -> ClientConfig:
        """Return a copy with credentials filled in from the environment."""
        return self.model_copy(update={
            "client_id": self.client_id or _env(CLIENT_ID_ENV),
            "client_secret": self.client_secret or _env(CLIENT_SECRET_ENV),
        })

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


def _env(key: str) -> str | None:
    value = os.environ.get(key, "").strip()
    return value or None


_SEARCH_PATHS = [
    Path("./singaseong_chat.yaml"),
    Path.home() / ".config" / "singaseong-chat" / "config.yaml",
]


def load_config(
    config_path: str | Path | None = None,
) -> tuple[ClientConfig, Path | None]:
    """Load configuration from a YAML file.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.
    """
    resolved: Path | None = None
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                resolved = candidate
                break

    if resolved is None:
        _logger.info("No config file found, using defaults")
        return ClientConfig(), None

    _logger.info("Loading config from %s", resolved)
    try:
        with open(resolved, encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {resolved}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config file {resolved} must contain a mapping, "
            f"got {type(raw).__name__}"
        )
    try:
        config = ClientConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid config in {resolved}: {e}") from e
    return config, resolved.resolve()
