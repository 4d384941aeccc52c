"""Palace: one repository's notes, tags and views behind a single handle.

Responsibilities:
1. Resolve the repository root once and share it with every store
2. Note creation flow: view lookup -> tag policy -> save -> view bookkeeping
3. Catchall growth for notes saved without a view, activity logs for session views
4. Repository-wide reports (stale anchors, note coverage, view validation)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from palace.config import PalaceSettings, load_settings
from palace.errors import NotFound
from palace.notes.anchors import normalize_anchor
from palace.notes.coverage import CoverageReport
from palace.notes.models import AnchoredNote, NoteMatch, StaleNote
from palace.notes.store import NoteStore
from palace.storage import LocalStorage, StorageAdapter
from palace.views.catchall import (
    CATCHALL_VIEW_ID,
    append_session_activity,
    create_session_view,
    record_catchall_activity,
)
from palace.views.models import View
from palace.views.store import ViewStore
from palace.views.validator import ValidationResult, validate_view

logger = logging.getLogger(__name__)


class Palace:
    """Entry point used by outer layers (tool servers, the CLI)."""

    def __init__(
        self,
        repo_root: str,
        storage: StorageAdapter | None = None,
        settings: PalaceSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repo_root = repo_root
        self.storage = storage or LocalStorage()
        self.settings = settings or load_settings()
        self._clock = clock
        data_dir = self.settings.data_dir
        self.notes = NoteStore(repo_root, self.storage, data_dir)
        self.tags = self.notes.tags
        self.views = ViewStore(repo_root, self.storage, data_dir)

    @classmethod
    def open(
        cls,
        path: str,
        storage: StorageAdapter | None = None,
        settings: PalaceSettings | None = None,
        **kwargs: Any,
    ) -> Palace:
        """Open the repository containing ``path``."""
        storage = storage or LocalStorage()
        root = storage.normalize_repository_path(path)
        logger.debug("Resolved repository root %s from %s", root, path)
        return cls(root, storage, settings, **kwargs)

    # ── Notes ─────────────────────────────────────────────────

    def create_note(
        self,
        content: str,
        anchors: list[str],
        tags: list[str],
        view_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        origin: str | None = None,
    ) -> AnchoredNote:
        """Save a note and keep the views it belongs to up to date.

        Without ``view_id`` the note goes to the catchall view, which gains
        the note's anchors in the current hour cell.
        """
        view: View | None = None
        if view_id is not None:
            view = self.views.get_view(view_id)
            if view is None:
                raise NotFound("view", view_id)

        note = self.notes.save_note(
            content,
            anchors,
            tags,
            view_id or CATCHALL_VIEW_ID,
            metadata,
            origin=origin,
        )

        if view is None or view.generation_type == "catchall":
            record_catchall_activity(self.views, note.anchors, self._clock())
        elif view.generation_type == "session":
            append_session_activity(self.views, view, note.content, note.anchors[0], self._clock())
        return note

    def get_notes(
        self,
        path: str,
        include_parent_notes: bool = True,
        max_results: int | None = None,
    ) -> list[NoteMatch]:
        return self.notes.get_notes_for_path(
            path,
            include_parent_notes,
            max_results if max_results is not None else self.settings.max_results,
        )

    def stale_notes(self) -> list[StaleNote]:
        return self.notes.check_stale_anchors()

    def note_coverage(self) -> CoverageReport:
        return self.notes.get_note_coverage()

    def delete_tag(self, tag: str, cascade_to_notes: bool = True) -> bool:
        return self.tags.delete_tag_description(tag, cascade_to_notes)

    # ── Views ─────────────────────────────────────────────────

    def start_session(self, anchors: list[str], session_id: str | None = None) -> View:
        """Create a session view from the first anchors of a working session."""
        normalized = [normalize_anchor(a, self.repo_root) for a in anchors]
        return create_session_view(self.views, normalized, session_id)

    def validate_views(self) -> dict[str, ValidationResult]:
        return {view.id: validate_view(view) for view in self.views.list_views()}
