"""View documents: named grids whose cells claim repository paths by glob pattern."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

DEFAULT_VIEW_VERSION = "1.0.0"
WILDCARD_CHARS = ("*", "?", "[")


@dataclass
class CellSpec:
    """One named region of a view.

    Values come straight from JSON and are only type-checked by the validator.
    """

    patterns: list[str]
    coordinates: list[int]
    priority: int = 0
    links: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None

    @property
    def row(self) -> int:
        return self.coordinates[0]

    @property
    def col(self) -> int:
        return self.coordinates[1]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "patterns": list(self.patterns),
            "coordinates": list(self.coordinates),
            "priority": self.priority,
        }
        if self.links is not None:
            data["links"] = dict(self.links)
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CellSpec:
        return cls(
            patterns=data.get("patterns"),
            coordinates=data.get("coordinates"),
            priority=data.get("priority", 0),
            links=data.get("links"),
            metadata=data.get("metadata"),
        )


@dataclass
class ViewScope:
    """Filter applied to repository paths before cell assignment."""

    base_path: str | None = None
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)

    def admits(self, path: str) -> bool:
        if self.base_path and not _under(path, self.base_path.strip("/")):
            return False
        if self.include_patterns and not any(pattern_matches(p, path) for p in self.include_patterns):
            return False
        return not any(pattern_matches(p, path) for p in self.exclude_patterns)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.base_path is not None:
            data["base_path"] = self.base_path
        if self.include_patterns:
            data["include_patterns"] = list(self.include_patterns)
        if self.exclude_patterns:
            data["exclude_patterns"] = list(self.exclude_patterns)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViewScope:
        return cls(
            base_path=data.get("base_path"),
            include_patterns=list(data.get("include_patterns") or []),
            exclude_patterns=list(data.get("exclude_patterns") or []),
        )


@dataclass
class GridDimensions:
    rows: int
    cols: int


@dataclass
class View:
    """A named spatial grid over the repository."""

    id: str
    name: str
    cells: dict[str, CellSpec]
    version: str = DEFAULT_VIEW_VERSION
    description: str = ""
    rows: int | None = None
    cols: int | None = None
    overview_path: str | None = None
    links: dict[str, str] | None = None
    scope: ViewScope | None = None
    timestamp: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def generation_type(self) -> str:
        return self.metadata.get("generation_type", "user")

    def dimensions(self) -> GridDimensions:
        """Declared size when both rows and cols are set, otherwise the implied one."""
        if self.rows is not None and self.cols is not None:
            return GridDimensions(self.rows, self.cols)
        return compute_grid_dimensions(self.cells)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "version": self.version,
            "name": self.name,
            "description": self.description,
            "cells": {name: cell.to_dict() for name, cell in self.cells.items()},
        }
        for key in ("rows", "cols", "overview_path", "links", "timestamp"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.scope is not None:
            data["scope"] = self.scope.to_dict()
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> View:
        cells = data.get("cells")
        scope = data.get("scope")
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            cells=(
                {name: CellSpec.from_dict(cell) for name, cell in cells.items()}
                if isinstance(cells, dict)
                else cells
            ),
            version=data.get("version", DEFAULT_VIEW_VERSION),
            description=data.get("description", ""),
            rows=data.get("rows"),
            cols=data.get("cols"),
            overview_path=data.get("overview_path"),
            links=data.get("links"),
            scope=ViewScope.from_dict(scope) if isinstance(scope, dict) else None,
            timestamp=data.get("timestamp"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ViewSummary:
    id: str
    name: str
    description: str
    rows: int
    cols: int
    cell_count: int
    timestamp: str | None = None

    @classmethod
    def of(cls, view: View) -> ViewSummary:
        dims = view.dimensions()
        return cls(
            id=view.id,
            name=view.name,
            description=view.description,
            rows=dims.rows,
            cols=dims.cols,
            cell_count=len(view.cells),
            timestamp=view.timestamp,
        )


def compute_grid_dimensions(cells: dict[str, CellSpec]) -> GridDimensions:
    """Smallest grid holding every cell; coordinates are 0-indexed."""
    if not cells:
        return GridDimensions(0, 0)
    return GridDimensions(
        rows=max(cell.row for cell in cells.values()) + 1,
        cols=max(cell.col for cell in cells.values()) + 1,
    )


def has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in WILDCARD_CHARS)


def _under(path: str, directory: str) -> bool:
    return not directory or path == directory or path.startswith(directory + "/")


@lru_cache(maxsize=512)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob: ``**`` spans directories, ``*`` and ``?`` stay within one."""
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == n:
            out.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif ch == "*":
            out.append("[^/]*")
            i += 1
        elif ch == "?":
            out.append("[^/]")
            i += 1
        elif ch == "[" and "]" in pattern[i + 2 :]:
            end = pattern.index("]", i + 2)
            body = pattern[i + 1 : end].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = end + 1
        else:
            out.append(re.escape(ch))
            i += 1
    return re.compile("".join(out) + r"\Z")


def pattern_matches(pattern: str, path: str) -> bool:
    """Glob match against a repository-relative path.

    Literal patterns also claim everything below them, so a catchall cell
    holding ``src/api`` covers ``src/api/routes.py``.
    """
    if not has_wildcard(pattern):
        return _under(path, pattern.rstrip("/"))
    return _glob_regex(pattern).match(path) is not None


def assign_cell(view: View, path: str) -> str | None:
    """Name of the cell that owns ``path``: highest priority wins, then declaration order."""
    if view.scope is not None and not view.scope.admits(path):
        return None
    best: tuple[str, int] | None = None
    for name, cell in view.cells.items():
        if any(pattern_matches(p, path) for p in cell.patterns):
            if best is None or cell.priority > best[1]:
                best = (name, cell.priority)
    return best[0] if best else None


def generate_view_id_from_name(name: str) -> str:
    """Filename-safe id: lowercase, runs of other characters collapsed to hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:50]
