"""YAML config loading: settings plus the connector rows to seed."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from gifview.settings import Settings


class ConnectorSeed(BaseModel):
    """One ``connectors`` row as written in config.yaml.

    ``type_config`` is either a bare type name or a mapping that is stored as JSON,
    e.g. ``{"RssJsonLd": {"url": "https://feeds.bbci.co.uk/news/rss.xml"}}``.
    """

    id: str
    type_config: str | dict[str, Any]
    fetch_period_minutes: int = 60
    active: bool = True

    @property
    def raw_type_config(self) -> str:
        if isinstance(self.type_config, str):
            return self.type_config
        return json.dumps(self.type_config)


class AppConfig(BaseModel):
    connectors: list[ConnectorSeed] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load config.yaml (optional). Environment variables and .env take precedence for settings."""
    load_dotenv()

    data: dict = {}
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}

    # YAML settings are defaults; GIFVIEW_* env vars win
    settings = Settings(**{k: v for k, v in (data.get("settings") or {}).items() if k not in _env_overrides()})
    return AppConfig(connectors=data.get("connectors") or [], settings=settings)


def _env_overrides() -> set[str]:
    prefix = Settings.model_config.get("env_prefix", "")
    return {name for name in Settings.model_fields if f"{prefix}{name}".upper() in os.environ}
