"""Note store: anchored notes persisted one markdown file per note.

Layout:
    <repo>/<data_dir>/notes/YYYY/MM/<note-id>.md

Every operation re-reads storage; there is no in-memory index, so edits made
by another process are visible on the next call. Writes are full rewrites of
one note file (single-writer assumption).
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable

from palace.config import RepositoryConfiguration, read_repository_config
from palace.errors import LimitExceeded, NotFound, PolicyRejected, ValidationError
from palace.notes.anchors import (
    is_within_repository,
    match_anchors,
    normalize_anchor,
    rank_matches,
)
from palace.notes.coverage import CoverageReport, compute_coverage, eligible_files
from palace.notes.models import AnchoredNote, NoteMatch, StaleNote, TagReplacement
from palace.notes.tags import TagRegistry, validate_tag_name
from palace.storage import StorageAdapter

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class NoteStore:
    """Read/write access to a repository's anchored notes."""

    def __init__(
        self,
        repo_root: str,
        storage: StorageAdapter,
        data_dir: str = ".palace",
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.repo_root = repo_root
        self.storage = storage
        self.data_dir = data_dir
        self._clock = clock
        self.tags = TagRegistry(repo_root, storage, data_dir, notes=self)

    # ── Paths & raw I/O ───────────────────────────────────────

    @property
    def notes_dir(self) -> str:
        return self.storage.join(self.repo_root, self.data_dir, "notes")

    def _note_path(self, note: AnchoredNote) -> str:
        created = datetime.fromtimestamp(note.timestamp / 1000)
        return self.storage.join(
            self.notes_dir, f"{created.year:04d}", f"{created.month:02d}", f"{note.id}.md"
        )

    def _read_all_with_paths(self) -> list[tuple[AnchoredNote, str]]:
        notes: list[tuple[AnchoredNote, str]] = []
        for name in self.storage.read_dir(self.notes_dir):
            if not name.endswith(".md"):
                continue
            path = self.storage.join(self.notes_dir, name)
            text = self.storage.read_file(path)
            try:
                notes.append((AnchoredNote.from_markdown(text), path))
            except (ValueError, TypeError) as e:
                logger.warning("Skipping unreadable note file %s: %s", path, e)
        logger.debug("Read %d notes from %s", len(notes), self.notes_dir)
        return notes

    def _write(self, note: AnchoredNote, path: str | None = None) -> None:
        path = path or self._note_path(note)
        self.storage.create_dir(self.storage.dirname(path))
        self.storage.write_file(path, note.to_markdown())

    def read_all_notes(self) -> list[AnchoredNote]:
        return [note for note, _ in self._read_all_with_paths()]

    def _config(self) -> RepositoryConfiguration:
        return read_repository_config(self.storage, self.repo_root, self.data_dir)

    # ── Validation ────────────────────────────────────────────

    def _normalize_anchors(self, anchors: list[str], origin: str | None) -> list[str]:
        normalized: list[str] = []
        for anchor in anchors:
            rel = normalize_anchor(anchor, self.repo_root, origin)
            if not rel or not is_within_repository(rel):
                logger.warning("Anchor %r resolves outside %s", anchor, self.repo_root)
                raise ValidationError(
                    f'Anchor "{anchor}" references a path outside the repository. '
                    "All anchors must be within the repository root.",
                    field="anchors",
                )
            normalized.append(rel)
        return normalized

    def _check(
        self,
        content: str,
        anchors: list[str],
        tags: list[str],
        metadata: dict[str, Any],
        config: RepositoryConfiguration,
    ) -> None:
        limits = config.limits
        if not anchors:
            raise ValidationError("At least one anchor path is required", field="anchors")
        if not tags:
            raise ValidationError("At least one tag is required", field="tags")
        if len(content) > limits.note_max_length:
            raise LimitExceeded("Note content", limits.note_max_length, len(content), field="content")
        if len(tags) > limits.max_tags_per_note:
            raise LimitExceeded("Tag count", limits.max_tags_per_note, len(tags), field="tags")
        if len(anchors) > limits.max_anchors_per_note:
            raise LimitExceeded(
                "Anchor count", limits.max_anchors_per_note, len(anchors), field="anchors"
            )
        for tag in tags:
            validate_tag_name(tag)
        try:
            json.dumps(metadata)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"metadata must be JSON-serializable: {e}", field="metadata") from e

    def validate_note(
        self,
        content: str,
        anchors: list[str],
        tags: list[str],
        metadata: dict[str, Any] | None = None,
        origin: str | None = None,
    ) -> list[str]:
        """Dry-run the checks ``save_note`` performs; return error messages."""
        config = self._config()
        try:
            self._check(content.strip(), anchors, tags, metadata or {}, config)
            self._normalize_anchors(anchors, origin)
            self.tags.check_policy(tags, config)
        except (ValidationError, PolicyRejected) as e:
            return [str(e)]
        return []

    # ── CRUD ──────────────────────────────────────────────────

    def save_note(
        self,
        content: str,
        anchors: list[str],
        tags: list[str],
        view_id: str,
        metadata: dict[str, Any] | None = None,
        *,
        origin: str | None = None,
        reviewed: bool = False,
    ) -> AnchoredNote:
        """Validate, normalize anchors, and persist a new note.

        Nothing is written unless every check passes. Tags without a
        description are rejected under enforcement, or get an empty
        description otherwise. Content is stored without surrounding
        whitespace, and the returned note carries it in that form.
        """
        content = content.strip()
        metadata = dict(metadata or {})
        config = self._config()
        self._check(content, anchors, tags, metadata, config)
        normalized = self._normalize_anchors(anchors, origin)
        tags = list(dict.fromkeys(tags))
        self.tags.check_policy(tags, config)

        existing = {n.timestamp for n in self.read_all_notes()}
        timestamp = self._clock()
        while timestamp in existing:
            timestamp += 1

        note = AnchoredNote(
            id=f"note-{timestamp}-{uuid.uuid4().hex[:9]}",
            content=content,
            anchors=normalized,
            tags=tags,
            view_id=view_id,
            timestamp=timestamp,
            metadata=metadata,
            reviewed=reviewed,
        )
        created = self.tags.ensure_tags(tags, config)
        if created:
            logger.info("Auto-created descriptions for new tags: %s", ", ".join(created))
        self._write(note)
        logger.info("Saved note %s (%d anchors, view %s)", note.id, len(normalized), view_id)
        return note

    def get_note_by_id(self, note_id: str) -> AnchoredNote | None:
        for note, _ in self._read_all_with_paths():
            if note.id == note_id:
                return note
        return None

    def require_note(self, note_id: str) -> AnchoredNote:
        note = self.get_note_by_id(note_id)
        if note is None:
            raise NotFound("note", note_id)
        return note

    def delete_note_by_id(self, note_id: str) -> bool:
        for note, path in self._read_all_with_paths():
            if note.id == note_id:
                self.storage.delete_file(path)
                logger.info("Deleted note %s", note_id)
                return True
        return False

    # ── Path queries ──────────────────────────────────────────

    def get_notes_for_path(
        self,
        query_path: str,
        include_parent_notes: bool = False,
        max_results: int | None = None,
    ) -> list[NoteMatch]:
        """Notes relevant to a file or directory, closest and newest first."""
        query = normalize_anchor(query_path, self.repo_root)
        results: list[NoteMatch] = []
        for note in self.read_all_notes():
            match = match_anchors(query, note.anchors)
            if match.is_direct or (match.is_ancestor and include_parent_notes):
                results.append(
                    NoteMatch(
                        note=note,
                        is_parent_directory=match.is_ancestor,
                        distance=match.distance,
                    )
                )
        return rank_matches(results, max_results)

    def get_notes_for_view(self, view_id: str) -> list[AnchoredNote]:
        notes = [n for n in self.read_all_notes() if n.view_id == view_id]
        return sorted(notes, key=lambda n: -n.timestamp)

    def get_used_tags_for_path(self, query_path: str = "") -> list[str]:
        """Tags used by notes visible from ``query_path``, most used first."""
        counts: Counter[str] = Counter()
        for match in self.get_notes_for_path(query_path, include_parent_notes=True):
            counts.update(match.note.tags)
        return [tag for tag, _ in counts.most_common()]

    def get_tag_usage(self) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for note in self.read_all_notes():
            counts.update(set(note.tags))
        return dict(counts)

    # ── Review flags ──────────────────────────────────────────

    def mark_note_reviewed(self, note_id: str) -> bool:
        for note, path in self._read_all_with_paths():
            if note.id == note_id:
                note.reviewed = True
                self._write(note, path)
                return True
        return False

    def get_unreviewed_notes(self, query_path: str = "") -> list[AnchoredNote]:
        return [
            m.note
            for m in self.get_notes_for_path(query_path, include_parent_notes=True)
            if not m.note.reviewed
        ]

    def mark_all_notes_reviewed(self, query_path: str = "") -> int:
        targets = {n.id for n in self.get_unreviewed_notes(query_path)}
        count = 0
        for note, path in self._read_all_with_paths():
            if note.id in targets:
                note.reviewed = True
                self._write(note, path)
                count += 1
        return count

    # ── Tag rewrites ──────────────────────────────────────────

    def remove_tag_from_notes(self, tag: str) -> int:
        """Strip ``tag`` from every note. Notes may be left with no tags."""
        modified = 0
        for note, path in self._read_all_with_paths():
            if tag in note.tags:
                note.tags = [t for t in note.tags if t != tag]
                self._write(note, path)
                modified += 1
        if modified:
            logger.info("Removed tag %s from %d notes", tag, modified)
        return modified

    def replace_tag(
        self, old_tag: str, new_tag: str, transfer_description: bool = True
    ) -> TagReplacement:
        """Rename a tag across all notes and migrate its description."""
        if old_tag == new_tag:
            raise ValidationError("The old tag and new tag must be different", field="tags")
        validate_tag_name(old_tag)
        validate_tag_name(new_tag)

        old_description = self.tags.get_tag_description(old_tag)
        new_has_description = self.tags.has_description(new_tag)

        # Description first: a limit failure must leave the notes untouched.
        action = "none"
        if old_description is not None:
            if transfer_description and not new_has_description:
                self.tags.save_tag_description(new_tag, old_description)
                action = "transferred"
            elif transfer_description:
                action = "kept_existing"
            else:
                action = "deleted"

        modified = 0
        for note, path in self._read_all_with_paths():
            if old_tag in note.tags:
                note.tags = list(dict.fromkeys(new_tag if t == old_tag else t for t in note.tags))
                self._write(note, path)
                modified += 1

        if old_description is not None:
            self.tags.delete_tag_description(old_tag, cascade_to_notes=False)

        logger.info(
            "Replaced tag %s with %s in %d notes (description: %s)",
            old_tag, new_tag, modified, action,
        )
        return TagReplacement(notes_modified=modified, description_action=action)

    # ── Staleness ─────────────────────────────────────────────

    def check_stale_anchors(self) -> list[StaleNote]:
        """Notes with at least one anchor whose target no longer exists."""
        stale: list[StaleNote] = []
        for note in self.read_all_notes():
            stale_anchors: list[str] = []
            valid_anchors: list[str] = []
            for anchor in note.anchors:
                if self.storage.exists(self.storage.join(self.repo_root, anchor)):
                    valid_anchors.append(anchor)
                else:
                    stale_anchors.append(anchor)
            if stale_anchors:
                stale.append(StaleNote(note, stale_anchors, valid_anchors))
        return stale

    def get_note_coverage(self) -> CoverageReport:
        """How much of the repository's (non-ignored) files and directories notes reach."""
        files = eligible_files(self.storage, self.repo_root, self.data_dir)
        report = compute_coverage(files, self.read_all_notes())
        logger.debug(
            "Coverage: %d/%d files, %d notes",
            len(report.covered_files), len(report.files), report.total_notes,
        )
        return report

    # ── Merge ─────────────────────────────────────────────────

    def merge_notes(
        self,
        content: str,
        anchors: list[str],
        tags: list[str],
        note_ids: list[str],
        view_id: str,
        metadata: dict[str, Any] | None = None,
        delete_originals: bool = True,
    ) -> tuple[AnchoredNote, int]:
        """Save a consolidated note, then delete the notes it replaces."""
        merged = self.save_note(
            content,
            list(dict.fromkeys(anchors)),
            list(dict.fromkeys(tags)),
            view_id,
            {
                **(metadata or {}),
                "merged_from": list(note_ids),
                "merged_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        deleted = 0
        if delete_originals:
            deleted = sum(1 for note_id in note_ids if self.delete_note_by_id(note_id))
        return merged, deleted
