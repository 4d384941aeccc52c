"""Note types shared by the note store and tag registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import frontmatter


@dataclass
class AnchoredNote:
    """A short note attached to one or more repository paths."""

    id: str
    content: str
    anchors: list[str]
    tags: list[str]
    view_id: str
    timestamp: int
    metadata: dict[str, Any] = field(default_factory=dict)
    reviewed: bool = False

    def to_markdown(self) -> str:
        """Render as a markdown document with YAML frontmatter."""
        post = frontmatter.Post(
            self.content,
            id=self.id,
            anchors=list(self.anchors),
            tags=list(self.tags),
            view_id=self.view_id,
            timestamp=self.timestamp,
            reviewed=self.reviewed,
            metadata=dict(self.metadata),
        )
        return frontmatter.dumps(post) + "\n"

    @classmethod
    def from_markdown(cls, text: str) -> AnchoredNote:
        post = frontmatter.loads(text)
        meta = post.metadata
        if not meta.get("id"):
            raise ValueError("note document has no id")
        return cls(
            id=str(meta["id"]),
            content=post.content,
            anchors=[str(a) for a in meta.get("anchors") or []],
            tags=[str(t) for t in meta.get("tags") or []],
            view_id=str(meta.get("view_id", "")),
            timestamp=int(meta.get("timestamp", 0)),
            metadata=dict(meta.get("metadata") or {}),
            reviewed=bool(meta.get("reviewed", False)),
        )


@dataclass
class NoteMatch:
    """A note returned by a path query, with how it matched."""

    note: AnchoredNote
    is_parent_directory: bool
    distance: int


@dataclass
class StaleNote:
    note: AnchoredNote
    stale_anchors: list[str]
    valid_anchors: list[str]

    @property
    def fully_stale(self) -> bool:
        return len(self.stale_anchors) == len(self.note.anchors)


@dataclass
class TagReplacement:
    notes_modified: int
    description_action: str  # transferred | kept_existing | deleted | none


@dataclass
class TagInfo:
    name: str
    description: str


@dataclass
class AllowedTags:
    enforced: bool
    tags: list[str]
