"""Configuration: process settings from env/palace.toml, and per-repository limits."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

if TYPE_CHECKING:
    from palace.storage import StorageAdapter

logger = logging.getLogger(__name__)

_DEFAULT_DATA_DIR = ".palace"
_SETTINGS_FILENAME = "palace.toml"
REPOSITORY_CONFIG_FILENAME = "config.toml"
CONFIG_VERSION = 1


@dataclass
class PalaceSettings:
    """Process-wide settings."""

    data_dir: str = _DEFAULT_DATA_DIR
    log_level: str = "INFO"
    max_results: int = 50


def load_settings(config_path: Path | None = None) -> PalaceSettings:
    """Load settings from environment variables and optional palace.toml.

    Priority: environment variables > palace.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        for candidate in [
            Path.cwd() / _SETTINGS_FILENAME,
            Path.home() / ".palace" / _SETTINGS_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    return PalaceSettings(
        data_dir=os.getenv("PALACE_DATA_DIR", file_data.get("data_dir", _DEFAULT_DATA_DIR)),
        log_level=os.getenv("PALACE_LOG_LEVEL", file_data.get("log_level", "INFO")),
        max_results=int(os.getenv("PALACE_MAX_RESULTS", file_data.get("max_results", 50))),
    )


@dataclass
class Limits:
    note_max_length: int = 500
    max_tags_per_note: int = 3
    max_anchors_per_note: int = 5
    tag_description_max_length: int = 500


@dataclass
class TagPolicy:
    enforce_allowed_tags: bool = False


@dataclass
class RepositoryConfiguration:
    """Per-repository limits and tag policy, stored in <data_dir>/config.toml."""

    version: int = CONFIG_VERSION
    limits: Limits = field(default_factory=Limits)
    tags: TagPolicy = field(default_factory=TagPolicy)

    @classmethod
    def from_dict(cls, data: dict) -> RepositoryConfiguration:
        """Merge a (possibly partial) document over the defaults."""
        defaults = Limits()
        limits_data = data.get("limits", {})
        tags_data = data.get("tags", {})
        return cls(
            version=int(data.get("version", CONFIG_VERSION)),
            limits=Limits(
                **{
                    name: int(limits_data.get(name, getattr(defaults, name)))
                    for name in asdict(defaults)
                }
            ),
            tags=TagPolicy(
                enforce_allowed_tags=bool(tags_data.get("enforce_allowed_tags", False)),
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def repository_config_path(storage: StorageAdapter, repo_root: str, data_dir: str) -> str:
    return storage.join(repo_root, data_dir, REPOSITORY_CONFIG_FILENAME)


def read_repository_config(
    storage: StorageAdapter, repo_root: str, data_dir: str = _DEFAULT_DATA_DIR
) -> RepositoryConfiguration:
    """Read the configuration document, writing defaults if there is none yet.

    Always re-reads storage so that external edits are picked up.
    """
    path = repository_config_path(storage, repo_root, data_dir)
    if not storage.exists(path):
        config = RepositoryConfiguration()
        write_repository_config(storage, repo_root, config, data_dir)
        return config

    try:
        return RepositoryConfiguration.from_dict(tomllib.loads(storage.read_file(path)))
    except (tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        logger.warning("Unreadable repository config %s (%s); using defaults", path, e)
        return RepositoryConfiguration()


def write_repository_config(
    storage: StorageAdapter,
    repo_root: str,
    config: RepositoryConfiguration,
    data_dir: str = _DEFAULT_DATA_DIR,
) -> None:
    storage.create_dir(storage.join(repo_root, data_dir))
    path = repository_config_path(storage, repo_root, data_dir)
    storage.write_file(path, tomli_w.dumps(config.to_dict()))
    logger.debug("Wrote repository config %s", path)
