"""Tag registry: one markdown description per tag, plus the enforcement policy.

A tag is "allowed" when it has a description file. With enforcement on, the
note store rejects tags outside that set; with enforcement off, unknown tags
get an empty description on first use.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from palace.config import (
    RepositoryConfiguration,
    read_repository_config,
    write_repository_config,
)
from palace.errors import LimitExceeded, PolicyRejected, ValidationError
from palace.notes.models import AllowedTags, TagInfo

if TYPE_CHECKING:
    from palace.notes.store import NoteStore
    from palace.storage import StorageAdapter

logger = logging.getLogger(__name__)

_ILLEGAL_TAG_CHARS = re.compile(r'[<>:"/\\|?*\n\r\t]')


def validate_tag_name(tag: str) -> None:
    if not tag or not tag.strip():
        raise ValidationError("tag cannot be empty", field="tags")
    if _ILLEGAL_TAG_CHARS.search(tag):
        raise ValidationError(f"tag {tag!r} contains characters not allowed in a file name", field="tags")


class TagRegistry:
    """Per-repository tag descriptions stored under <data_dir>/tags/."""

    def __init__(
        self,
        repo_root: str,
        storage: StorageAdapter,
        data_dir: str = ".palace",
        notes: NoteStore | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.storage = storage
        self.data_dir = data_dir
        self._notes = notes

    @property
    def tags_dir(self) -> str:
        return self.storage.join(self.repo_root, self.data_dir, "tags")

    def _tag_path(self, tag: str) -> str:
        validate_tag_name(tag)
        return self.storage.join(self.tags_dir, f"{tag}.md")

    def _config(self, config: RepositoryConfiguration | None) -> RepositoryConfiguration:
        return config or read_repository_config(self.storage, self.repo_root, self.data_dir)

    # ── Descriptions ──────────────────────────────────────────

    def get_tag_descriptions(self) -> dict[str, str]:
        descriptions: dict[str, str] = {}
        for name in self.storage.read_dir(self.tags_dir):
            if "/" in name or not name.endswith(".md"):
                continue
            descriptions[name[: -len(".md")]] = self.storage.read_file(
                self.storage.join(self.tags_dir, name)
            ).strip()
        return descriptions

    def get_tag_description(self, tag: str) -> str | None:
        path = self._tag_path(tag)
        if not self.storage.exists(path):
            return None
        return self.storage.read_file(path).strip()

    def has_description(self, tag: str) -> bool:
        return self.storage.exists(self._tag_path(tag))

    def get_tags_with_descriptions(self) -> list[TagInfo]:
        return [
            TagInfo(name=name, description=body)
            for name, body in sorted(self.get_tag_descriptions().items())
        ]

    def save_tag_description(
        self, tag: str, body: str, config: RepositoryConfiguration | None = None
    ) -> None:
        validate_tag_name(tag)
        limit = self._config(config).limits.tag_description_max_length
        if len(body) > limit:
            raise LimitExceeded("Tag description", limit, len(body), field="description")
        self.storage.create_dir(self.tags_dir)
        self.storage.write_file(self._tag_path(tag), body)
        logger.info("Saved description for tag %s (%d chars)", tag, len(body))

    def delete_tag_description(self, tag: str, cascade_to_notes: bool = False) -> bool:
        """Delete a tag's description, optionally stripping the tag from all notes.

        Returns False when there was no description, even if notes were changed.
        """
        path = self._tag_path(tag)
        if cascade_to_notes and self._notes is not None:
            self._notes.remove_tag_from_notes(tag)

        if not self.storage.exists(path):
            return False
        self.storage.delete_file(path)
        if not self.storage.read_dir(self.tags_dir):
            self.storage.delete_dir(self.tags_dir)
        logger.info("Deleted description for tag %s", tag)
        return True

    # ── Policy ────────────────────────────────────────────────

    def get_allowed_tags(self, config: RepositoryConfiguration | None = None) -> AllowedTags:
        enforced = self._config(config).tags.enforce_allowed_tags
        if not enforced:
            return AllowedTags(enforced=False, tags=[])
        return AllowedTags(enforced=True, tags=sorted(self.get_tag_descriptions()))

    def set_enforce_allowed_tags(self, enforce: bool) -> None:
        """Takes effect for future writes only; existing notes are left alone."""
        config = read_repository_config(self.storage, self.repo_root, self.data_dir)
        config.tags.enforce_allowed_tags = enforce
        write_repository_config(self.storage, self.repo_root, config, self.data_dir)
        logger.info("Tag enforcement %s", "enabled" if enforce else "disabled")

    def new_tags(self, tags: list[str]) -> list[str]:
        known = self.get_tag_descriptions()
        return [tag for tag in dict.fromkeys(tags) if tag not in known]

    def check_policy(
        self, tags: list[str], config: RepositoryConfiguration | None = None
    ) -> list[str]:
        """Return the tags that have no description yet.

        Raises PolicyRejected if enforcement is on and any such tag exists.
        """
        config = self._config(config)
        unknown = self.new_tags(tags)
        if unknown and config.tags.enforce_allowed_tags:
            raise PolicyRejected(unknown, self.get_allowed_tags(config).tags)
        return unknown

    def ensure_tags(self, tags: list[str], config: RepositoryConfiguration | None = None) -> list[str]:
        """Create empty descriptions for unknown tags. Returns the created tags."""
        config = self._config(config)
        created = self.check_policy(tags, config)
        for tag in created:
            self.save_tag_description(tag, "", config)
        return created
