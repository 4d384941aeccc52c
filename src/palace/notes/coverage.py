"""Note coverage: which repository files and directories have notes anchored to them.

Eligible files are everything the storage adapter lists under the repository
root, minus ``.git``, the palace data directory, and whatever ``.gitignore``
and ``.palaceignore`` at the root exclude (gitignore semantics).
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pathspec

from palace.notes.anchors import anchor_matches

if TYPE_CHECKING:
    from palace.notes.models import AnchoredNote
    from palace.storage import StorageAdapter

logger = logging.getLogger(__name__)

IGNORE_FILES = (".gitignore", ".palaceignore")
ALWAYS_EXCLUDED = (".git",)


@dataclass
class PathCoverage:
    path: str
    note_ids: list[str] = field(default_factory=list)

    @property
    def covered(self) -> bool:
        return bool(self.note_ids)

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.path)[1].lstrip(".") or "no-extension"


@dataclass
class TypeCoverage:
    total_files: int = 0
    files_with_notes: int = 0
    total_notes: int = 0

    @property
    def coverage_percentage(self) -> float:
        return _percent(self.files_with_notes, self.total_files)


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


@dataclass
class CoverageReport:
    files: list[PathCoverage]
    directories: list[PathCoverage]
    total_notes: int

    @property
    def covered_files(self) -> list[PathCoverage]:
        return [f for f in self.files if f.covered]

    @property
    def uncovered_files(self) -> list[PathCoverage]:
        return [f for f in self.files if not f.covered]

    @property
    def covered_directories(self) -> list[PathCoverage]:
        return [d for d in self.directories if d.covered]

    @property
    def file_coverage_percentage(self) -> float:
        return _percent(len(self.covered_files), len(self.files))

    @property
    def directory_coverage_percentage(self) -> float:
        return _percent(len(self.covered_directories), len(self.directories))

    def coverage_by_type(self) -> dict[str, TypeCoverage]:
        by_type: dict[str, TypeCoverage] = {}
        for f in self.files:
            entry = by_type.setdefault(f.extension, TypeCoverage())
            entry.total_files += 1
            if f.covered:
                entry.files_with_notes += 1
                entry.total_notes += len(f.note_ids)
        return by_type

    def files_with_most_notes(self, limit: int = 10) -> list[PathCoverage]:
        ranked = sorted(self.covered_files, key=lambda f: (-len(f.note_ids), f.path))
        return ranked[:limit]


def load_ignore_spec(storage: StorageAdapter, repo_root: str) -> pathspec.GitIgnoreSpec:
    lines: list[str] = []
    for name in IGNORE_FILES:
        path = storage.join(repo_root, name)
        if storage.exists(path):
            lines.extend(storage.read_file(path).splitlines())
    return pathspec.GitIgnoreSpec.from_lines(lines)


def eligible_files(storage: StorageAdapter, repo_root: str, data_dir: str = ".palace") -> list[str]:
    """Repository-relative paths of the files coverage is measured over."""
    spec = load_ignore_spec(storage, repo_root)
    excluded = {*ALWAYS_EXCLUDED, data_dir.strip("/")}
    files = []
    for rel in storage.read_dir(repo_root):
        if excluded.intersection(rel.split("/")):
            continue
        if spec.match_file(rel):
            continue
        files.append(rel)
    logger.debug("%d eligible files under %s", len(files), repo_root)
    return sorted(files)


def _parent_dirs(files: list[str]) -> list[str]:
    dirs: set[str] = set()
    for rel in files:
        parent = posixpath.dirname(rel)
        while parent:
            dirs.add(parent)
            parent = posixpath.dirname(parent)
    return sorted(dirs)


def compute_coverage(files: list[str], notes: list[AnchoredNote]) -> CoverageReport:
    """Match every note against every eligible file and directory.

    A path counts a note once, however many of the note's anchors reach it.
    """
    file_cov = [PathCoverage(path) for path in files]
    dir_cov = [PathCoverage(path) for path in _parent_dirs(files)]
    for note in notes:
        for entry in (*file_cov, *dir_cov):
            if any(anchor_matches(entry.path, anchor) for anchor in note.anchors):
                entry.note_ids.append(note.id)
    return CoverageReport(files=file_cov, directories=dir_cov, total_notes=len(notes))
