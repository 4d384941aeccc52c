"""Anchor normalization and path matching.

Anchors are stored relative to the repository root with ``/`` separators.
Everything here is pure string/path arithmetic; nothing touches storage.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from palace.notes.models import NoteMatch

SEP = "/"
_TRAVERSAL_PREFIXES = ("./", "../")


def _relative_to(path: str, repo_root: str) -> str:
    rel = posixpath.relpath(posixpath.normpath(path), posixpath.normpath(repo_root))
    return "" if rel == "." else rel


def normalize_anchor(anchor: str, repo_root: str, origin: str | None = None) -> str:
    """Express ``anchor`` relative to ``repo_root``.

    - absolute anchors are made relative to the root;
    - ``./`` and ``../`` anchors are resolved against ``origin`` (default: the
      root) and then made relative, leaving no traversal prefix behind;
    - anything else is taken as already repository-relative and returned as is.

    Results may point outside the repository (they then start with ``..``);
    use ``is_within_repository`` to check.
    """
    anchor = anchor.replace("\\", SEP)
    if posixpath.isabs(anchor):
        return _relative_to(anchor, repo_root)
    if anchor.startswith(_TRAVERSAL_PREFIXES) or anchor in (".", ".."):
        return _relative_to(posixpath.join(origin or repo_root, anchor), repo_root)
    return anchor


def is_within_repository(relative: str) -> bool:
    """True if a normalized anchor stays inside the repository root."""
    if posixpath.isabs(relative):
        return False
    resolved = posixpath.normpath(relative) if relative else "."
    return resolved != ".." and not resolved.startswith("../")


def path_depth(relative: str) -> int:
    return len([part for part in relative.split(SEP) if part and part != "."])


@dataclass(frozen=True)
class AnchorMatch:
    """How a query path relates to a note's anchors.

    ``distance`` is 0 for a direct match, the query's depth below the root
    for an ancestor (contextual) match, and ``None`` when the note is unrelated.
    """

    is_direct: bool
    is_ancestor: bool
    distance: int | None

    @property
    def matched(self) -> bool:
        return self.is_direct or self.is_ancestor


def anchor_matches(query: str, anchor: str) -> bool:
    """Exact, descendant-of-anchor, or anchor-nested-under-query."""
    if query == "":
        return True
    return (
        query == anchor
        or query.startswith(anchor + SEP)
        or anchor.startswith(query + SEP)
    )


def match_anchors(query: str, anchors: list[str]) -> AnchorMatch:
    """Match a repository-relative query path against a note's anchors."""
    query = query.rstrip(SEP)
    if any(anchor_matches(query, anchor.rstrip(SEP)) for anchor in anchors):
        return AnchorMatch(is_direct=True, is_ancestor=False, distance=0)
    if is_within_repository(query):
        return AnchorMatch(is_direct=False, is_ancestor=True, distance=path_depth(query))
    return AnchorMatch(is_direct=False, is_ancestor=False, distance=None)


def clamp_max_results(max_results: int | None) -> int | None:
    if max_results is None:
        return None
    return max(1, max_results)


def rank_matches(matches: list[NoteMatch], max_results: int | None = None) -> list[NoteMatch]:
    """Closest first, newest first within a distance, truncated to ``max_results``."""
    ranked = sorted(matches, key=lambda m: (m.distance, -m.note.timestamp))
    limit = clamp_max_results(max_results)
    return ranked if limit is None else ranked[:limit]
