"""Configuration management for lixen."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from lixen.exceptions import ConfigError

LIXEN_DIR = ".lixen"
CONFIG_FILE = "config.json"
SELECTION_FILE = "selection.txt"

MIN_DEPTH = 1
MAX_DEPTH = 5


class IndexerConfig(BaseModel):
    """Indexer configuration."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "__pycache__",
            ".git",
            ".lixen",
            "dist",
            "build",
            ".venv",
            "venv",
            ".env",
            ".tox",
            "*.egg-info",
            "node_modules",
        ]
    )
    max_file_size_kb: int = 500
    marker: str = "lixen"
    module_root: str = ""  # dotted import prefix of the indexed tree, "" = flat layout
    skip_tests: bool = True


class SelectionConfig(BaseModel):
    """Selection and export behaviour."""

    expand_deps: bool = True
    depth_limit: int = Field(default=2, ge=MIN_DEPTH, le=MAX_DEPTH)
    output_file: str = "catalog.txt"


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .lixen directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / LIXEN_DIR).is_dir():
            return current
        current = current.parent
    if (current / LIXEN_DIR).is_dir():
        return current
    return None


def get_lixen_dir(root: Path) -> Path:
    """Get the .lixen directory for a project root."""
    return root / LIXEN_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .lixen/config.json."""
    config_path = get_lixen_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .lixen/config.json."""
    lixen_dir = get_lixen_dir(root)
    lixen_dir.mkdir(parents=True, exist_ok=True)
    config_path = lixen_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'selection.depth_limit')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
