from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from app.domain.models import RepositoryConfig


DATA_ROOT_ENV_VAR = "COMPOSER_REPO_DATA_DIR"
BASE_PATH_ENV_VAR = "COMPOSER_REPO_BASE_PATH"

# Resolve repository root (project root, not the Python package root)
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

logger = logging.getLogger(__name__)

_repository_config: Optional[RepositoryConfig] = None


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable COMPOSER_REPO_DATA_DIR
    2. '<project root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_base_path() -> str:
    """
    URL prefix the repository is served under, e.g. '/base'.

    Read from COMPOSER_REPO_BASE_PATH; empty means the server root.
    """
    base = os.environ.get(BASE_PATH_ENV_VAR, "").strip().rstrip("/")
    if base and not base.startswith("/"):
        base = "/" + base
    return base


def _config_path() -> Path:
    return get_data_dir() / "repository.json"


def load_repository_config() -> RepositoryConfig:
    """
    Load repository.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    global _repository_config

    path = _config_path()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            config = RepositoryConfig(**raw)
        except (ValueError, TypeError, ValidationError):
            logger.warning(f"Ignoring unreadable {path}, using defaults", exc_info=True)
            config = RepositoryConfig()
    else:
        config = RepositoryConfig()

    # Persist with all fields populated (including any new defaults).
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    _repository_config = config
    return config


def get_repository_config() -> RepositoryConfig:
    """
    Return the current repository configuration, loading it on first use.
    """
    if _repository_config is None:
        return load_repository_config()
    return _repository_config


def get_storage_dir(config: RepositoryConfig) -> Path:
    storage_dir = Path(config.storage_dir).expanduser()
    if not storage_dir.is_absolute():
        storage_dir = get_data_dir() / storage_dir
    return storage_dir
