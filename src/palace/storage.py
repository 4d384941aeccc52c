"""Storage adapters.

The note and view stores never touch the storage medium directly. They go
through a ``StorageAdapter``: ``LocalStorage`` for a real checkout on disk,
``InMemoryStorage`` for tests and embedding.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import Protocol, runtime_checkable

from palace.errors import StorageFailure

logger = logging.getLogger(__name__)

REPOSITORY_MARKERS = (".git",)

PROJECT_MARKERS = (
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "package.json",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
    "composer.json",
    "Gemfile",
)


@runtime_checkable
class StorageAdapter(Protocol):
    """The file operations the stores need, nothing more."""

    def exists(self, path: str) -> bool: ...

    def read_file(self, path: str) -> str: ...

    def write_file(self, path: str, content: str) -> None: ...

    def delete_file(self, path: str) -> None: ...

    def create_dir(self, path: str) -> None: ...

    def read_dir(self, path: str) -> list[str]:
        """List files under ``path`` recursively, as names relative to it."""
        ...

    def delete_dir(self, path: str) -> None:
        """Remove ``path`` only if it is empty."""
        ...

    def join(self, *parts: str) -> str: ...

    def dirname(self, path: str) -> str: ...

    def is_absolute(self, path: str) -> bool: ...

    def normalize_repository_path(self, path: str) -> str:
        """Locate the repository root that contains ``path``."""
        ...


def _walk_up(storage: StorageAdapter, start: str, markers: tuple[str, ...]) -> str | None:
    current = start
    while True:
        for marker in markers:
            if storage.exists(storage.join(current, marker)):
                return current
        parent = storage.dirname(current)
        if parent == current:
            return None
        current = parent


def find_repository_root(storage: StorageAdapter, path: str) -> str:
    """Git root first, then the nearest project-like directory, then ``path`` itself."""
    return (
        _walk_up(storage, path, REPOSITORY_MARKERS)
        or _walk_up(storage, path, PROJECT_MARKERS)
        or path
    )


class LocalStorage:
    """Adapter over the local file system."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def read_file(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise StorageFailure(path, e.strerror or str(e)) from e

    def write_file(self, path: str, content: str) -> None:
        target = Path(path)
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(target)
        except OSError as e:
            raise StorageFailure(path, e.strerror or str(e)) from e

    def delete_file(self, path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            raise StorageFailure(path, e.strerror or str(e)) from e

    def create_dir(self, path: str) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(path, e.strerror or str(e)) from e

    def read_dir(self, path: str) -> list[str]:
        root = Path(path)
        if not root.is_dir():
            return []
        return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())

    def delete_dir(self, path: str) -> None:
        d = Path(path)
        if d.is_dir() and not any(d.iterdir()):
            d.rmdir()

    def join(self, *parts: str) -> str:
        return os.path.join(*parts)

    def dirname(self, path: str) -> str:
        return os.path.dirname(path)

    def is_absolute(self, path: str) -> bool:
        return os.path.isabs(path)

    def normalize_repository_path(self, path: str) -> str:
        start = Path(path).resolve()
        if start.is_file():
            start = start.parent
        return find_repository_root(self, str(start))


class InMemoryStorage:
    """Dict-backed adapter with POSIX paths. Directories are implicit."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self._files: dict[str, str] = dict(files or {})

    @property
    def files(self) -> dict[str, str]:
        return dict(self._files)

    def _is_dir(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return any(f.startswith(prefix) for f in self._files)

    def exists(self, path: str) -> bool:
        return path in self._files or self._is_dir(path)

    def read_file(self, path: str) -> str:
        if path not in self._files:
            raise StorageFailure(path, "file not found")
        return self._files[path]

    def write_file(self, path: str, content: str) -> None:
        self._files[path] = content

    def delete_file(self, path: str) -> None:
        self._files.pop(path, None)

    def create_dir(self, path: str) -> None:
        pass

    def read_dir(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(f[len(prefix):] for f in self._files if f.startswith(prefix))

    def delete_dir(self, path: str) -> None:
        pass

    def join(self, *parts: str) -> str:
        return posixpath.join(*parts)

    def dirname(self, path: str) -> str:
        return posixpath.dirname(path)

    def is_absolute(self, path: str) -> bool:
        return path.startswith("/")

    def normalize_repository_path(self, path: str) -> str:
        if path in self._files:
            path = posixpath.dirname(path)
        return find_repository_root(self, posixpath.normpath(path))
