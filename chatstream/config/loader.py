"""Load configuration from YAML and environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatstream.stream.reader import DEFAULT_EMPTY_MESSAGES_LIMIT

# Default config lives next to this module
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPENAI_", extra="ignore", populate_by_name=True)
    api_key: str = Field(default="", alias="OPENAI_API_KEY")
    base_url: str = Field(default=DEFAULT_BASE_URL, alias="OPENAI_BASE_URL")
    org_id: Optional[str] = Field(default=None, alias="OPENAI_ORG_ID")
    model: str = Field(default="gpt-3.5-turbo", alias="OPENAI_MODEL")
    timeout: float = 600.0


class StreamSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STREAM_", extra="ignore")
    empty_messages_limit: int = Field(default=DEFAULT_EMPTY_MESSAGES_LIMIT, ge=0)
    detect_inline_errors: bool = True


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")
    level: str = "INFO"
    json_format: bool = True


class Config(BaseSettings):
    """Client config: YAML + env. API key from env only in production."""

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")

    client: ClientSettings = Field(default_factory=ClientSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "Config":
        path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        yaml_data = _load_yaml(path)
        env_prefix = os.getenv("CHATSTREAM_ENV_PREFIX", "")
        if env_prefix:
            yaml_data = _deep_merge(yaml_data, _load_yaml(Path(f"config/{env_prefix}.yaml")))
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key:
            yaml_data.setdefault("client", {})["api_key"] = api_key
        base_url = os.getenv("OPENAI_BASE_URL")
        if base_url:
            yaml_data.setdefault("client", {})["base_url"] = base_url
        org_id = os.getenv("OPENAI_ORG_ID")
        if org_id:
            yaml_data.setdefault("client", {})["org_id"] = org_id
        model = os.getenv("OPENAI_MODEL")
        if model:
            yaml_data.setdefault("client", {})["model"] = model
        limit = os.getenv("STREAM_EMPTY_MESSAGES_LIMIT")
        if limit:
            yaml_data.setdefault("stream", {})["empty_messages_limit"] = int(limit)
        inline = os.getenv("STREAM_DETECT_INLINE_ERRORS")
        if inline:
            yaml_data.setdefault("stream", {})["detect_inline_errors"] = inline.lower() in (
                "1",
                "true",
                "yes",
            )
        level = os.getenv("LOG_LEVEL")
        if level:
            yaml_data.setdefault("logging", {})["level"] = level
        return cls(**yaml_data)


def get_config(config_path: str | Path | None = None) -> Config:
    return Config.load(config_path)
