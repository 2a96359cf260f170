"""Configuration loading helpers for the user explorer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import ExplorerConfig

CONFIG_FILENAME = "explorer_config.yaml"
CACHE_DB_FILENAME = "cache.db"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    cache_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("USER_EXPLORER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.cache_dir = (self.data_dir / "cache").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.cache_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    def cache_db_path(self) -> Path:
        return self.cache_dir / CACHE_DB_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cached: ExplorerConfig | None = None

    def load(self) -> ExplorerConfig:
        if self._cached is not None:
            return self._cached
        path = self.locator.config_path()
        if path.exists():
            config = ExplorerConfig.model_validate(_read_file(path))
        else:
            config = ExplorerConfig()
            self.save(config)
        self._cached = config
        return config

    def save(self, config: ExplorerConfig) -> None:
        _write_file(self.locator.config_path(), config.model_dump(mode="json"))
        self._cached = config


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_FILENAME"]
