"""View store: one JSON document per view under <data_dir>/views/."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from palace.errors import NotFound, ValidationError
from palace.storage import StorageAdapter
from palace.views.models import View, ViewSummary
from palace.views.validator import is_safe_view_id, validate_view

logger = logging.getLogger(__name__)

DEFAULT_VIEW_ID = "default"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ViewStore:
    """CRUD for a repository's views."""

    def __init__(self, repo_root: str, storage: StorageAdapter, data_dir: str = ".palace") -> None:
        self.repo_root = repo_root
        self.storage = storage
        self.data_dir = data_dir

    @property
    def views_dir(self) -> str:
        return self.storage.join(self.repo_root, self.data_dir, "views")

    def _view_path(self, view_id: str) -> str:
        if not is_safe_view_id(view_id):
            raise ValidationError(f"Invalid view id: {view_id!r}", field="id")
        return self.storage.join(self.views_dir, f"{view_id}.json")

    def save_view(self, view: View, validate: bool = True) -> View:
        """Persist ``view``. Structural errors are raised before anything is written."""
        if validate:
            result = validate_view(view)
            if not result.valid:
                raise ValidationError("; ".join(result.errors), field="view")
            for warning in result.warnings:
                logger.debug("View %s: %s", view.id, warning)
        stored = replace(view, version=view.version or "1.0.0", timestamp=view.timestamp or _now_iso())
        self.storage.create_dir(self.views_dir)
        self.storage.write_file(
            self._view_path(stored.id), json.dumps(stored.to_dict(), indent=2, ensure_ascii=False)
        )
        logger.info("Saved view %s (%d cells)", stored.id, len(stored.cells))
        return stored

    def get_view(self, view_id: str) -> View | None:
        path = self._view_path(view_id)
        if not self.storage.exists(path):
            return None
        try:
            return View.from_dict(json.loads(self.storage.read_file(path)))
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning("Unreadable view %s: %s", path, e)
            return None

    def require_view(self, view_id: str) -> View:
        view = self.get_view(view_id)
        if view is None:
            raise NotFound("view", view_id)
        return view

    def view_exists(self, view_id: str) -> bool:
        return self.storage.exists(self._view_path(view_id))

    def list_views(self) -> list[View]:
        views = []
        for name in self.storage.read_dir(self.views_dir):
            view_id = name[: -len(".json")]
            if not name.endswith(".json") or not is_safe_view_id(view_id):
                continue
            view = self.get_view(view_id)
            if view is not None:
                views.append(view)
        return sorted(views, key=lambda v: v.name)

    def list_view_summaries(self) -> list[ViewSummary]:
        return [ViewSummary.of(view) for view in self.list_views()]

    def delete_view(self, view_id: str) -> bool:
        path = self._view_path(view_id)
        if not self.storage.exists(path):
            return False
        self.storage.delete_file(path)
        logger.info("Deleted view %s", view_id)
        return True

    def update_view(self, view_id: str, **updates: Any) -> bool:
        """Apply field updates to an existing view; the id cannot change."""
        existing = self.get_view(view_id)
        if existing is None:
            return False
        updates.pop("id", None)
        updates.pop("timestamp", None)
        self.save_view(replace(existing, **updates, timestamp=_now_iso()))
        return True

    def get_default_view(self) -> View | None:
        return self.get_view(DEFAULT_VIEW_ID)

    def set_default_view(self, view_id: str) -> bool:
        """Copy ``view_id`` under the reserved ``default`` id."""
        view = self.get_view(view_id)
        if view is None:
            return False
        self.save_view(
            replace(
                view,
                id=DEFAULT_VIEW_ID,
                description=view.description or f"Default view based on {view_id}",
            )
        )
        return True
