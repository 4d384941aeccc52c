"""Tests for catchall and session views."""

from __future__ import annotations

from datetime import datetime

import pytest

from palace.storage import InMemoryStorage
from palace.views.catchall import (
    ACTIVITY_MARKER,
    CATCHALL_VIEW_ID,
    TIME_CELL_PRIORITY,
    add_anchors_to_time_cell,
    append_session_activity,
    common_prefix,
    create_catchall_view,
    create_session_view,
    current_time_bucket,
    infer_session_cells,
    next_cell_coordinates,
    record_catchall_activity,
)
from palace.views.models import CellSpec
from palace.views.store import ViewStore
from palace.views.validator import validate_view

NOW = datetime(2026, 10, 19, 14, 5, 30)
OVERVIEW = "/repo/.palace/overviews/default-explorer-log.md"


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage({"/repo/.git/HEAD": ""})


@pytest.fixture
def views(storage: InMemoryStorage) -> ViewStore:
    return ViewStore("/repo", storage)


class TestTimeBuckets:
    def test_bucket_name(self):
        assert current_time_bucket(NOW) == "2026-10-19-14"

    def test_midnight(self):
        assert current_time_bucket(datetime(2026, 1, 2, 0, 59)) == "2026-01-02-00"

    def test_first_cell_at_origin(self):
        assert next_cell_coordinates({}) == [0, 0]

    def test_wraps_after_24_columns(self):
        cells = {
            f"h{col}": CellSpec(patterns=["x"], coordinates=[0, col]) for col in range(24)
        }
        assert next_cell_coordinates(cells) == [1, 0]
        cells["next"] = CellSpec(patterns=["x"], coordinates=[1, 0])
        assert next_cell_coordinates(cells) == [1, 1]


class TestCatchallView:
    def test_create(self):
        view = create_catchall_view(["src/a.py", "src/a.py"], "2026-10-19-14")
        assert view.id == CATCHALL_VIEW_ID
        assert view.generation_type == "catchall"
        cell = view.cells["2026-10-19-14"]
        assert cell.patterns == ["src/a.py"]
        assert cell.coordinates == [0, 0]
        assert cell.priority == TIME_CELL_PRIORITY
        assert validate_view(view).valid

    def test_merge_into_existing_cell(self):
        view = create_catchall_view(["src/a.py"], "b1")
        grown = add_anchors_to_time_cell(view, ["src/a.py", "src/b.py"], "b1")
        assert grown.cells["b1"].patterns == ["src/a.py", "src/b.py"]
        assert view.cells["b1"].patterns == ["src/a.py"]

    def test_new_cell_for_new_bucket(self):
        view = create_catchall_view(["src/a.py"], "b1")
        grown = add_anchors_to_time_cell(view, ["src/b.py"], "b2")
        assert grown.cells["b2"].coordinates == [0, 1]

    def test_record_creates_view_and_overview(self, views: ViewStore, storage: InMemoryStorage):
        view = record_catchall_activity(views, ["src/a.py"], NOW)
        assert views.get_view(CATCHALL_VIEW_ID) == view
        assert list(view.cells) == ["2026-10-19-14"]
        overview = storage.files[OVERVIEW]
        assert "# Default Exploration Log" in overview
        assert "- `src/a.py`" in overview

    def test_record_grows_over_hours(self, views: ViewStore):
        record_catchall_activity(views, ["src/a.py"], NOW)
        record_catchall_activity(views, ["src/b.py"], NOW)
        view = record_catchall_activity(views, ["src/c.py"], datetime(2026, 10, 19, 15, 0))
        assert view.cells["2026-10-19-14"].patterns == ["src/a.py", "src/b.py"]
        assert view.cells["2026-10-19-15"].coordinates == [0, 1]
        assert view.dimensions().cols == 2

    def test_row_wraps_after_a_day(self, views: ViewStore):
        for hour in range(24):
            record_catchall_activity(views, ["src/a.py"], datetime(2026, 10, 19, hour))
        view = record_catchall_activity(views, ["src/a.py"], datetime(2026, 10, 20, 0))
        assert view.cells["2026-10-20-00"].coordinates == [1, 0]
        assert validate_view(view).valid


class TestSessionViews:
    def test_common_prefix(self):
        assert common_prefix([]) == ""
        assert common_prefix(["main.py"]) == ""
        assert common_prefix(["src/api/a.py"]) == "src/api"
        assert common_prefix(["src/api/a.py", "src/api/b.py"]) == "src/api"
        assert common_prefix(["src/a.py", "lib/b.py"]) == ""

    def test_inferred_cells(self):
        cells = infer_session_cells(["src/api/a.py", "src/api/b.py"])
        assert list(cells) == ["source", "tests", "config", "docs"]
        assert cells["source"].patterns[0] == "src/api/src/**/*"
        assert cells["docs"].coordinates == [1, 1]
        assert cells["source"].priority > cells["docs"].priority

    def test_create_session_view(self, views: ViewStore, storage: InMemoryStorage):
        view = create_session_view(views, ["src/api/routes.py"], session_id="abc")
        assert view.id == "session-abc"
        assert view.name == "Session View (routes.py)"
        assert view.generation_type == "session"
        assert views.view_exists("session-abc")
        log = storage.files["/repo/.palace/overviews/session-abc.md"]
        assert "# Session Log" in log
        assert ACTIVITY_MARKER in log

    def test_generated_session_id(self, views: ViewStore):
        view = create_session_view(views, ["src/a.py"])
        assert view.id.startswith("session-")

    def test_append_activity(self, views: ViewStore, storage: InMemoryStorage):
        view = create_session_view(views, ["src/api/routes.py"], session_id="abc")
        append_session_activity(views, view, "x" * 60, "src/api/routes.py", NOW)
        append_session_activity(views, view, "short", "src/api/auth.py", NOW)
        log = storage.files["/repo/.palace/overviews/session-abc.md"]
        assert f'- 2026-10-19 14:05:30 - Note created: "{"x" * 50}..." (routes.py)' in log
        assert '"short" (auth.py)' in log
        # newest entry directly below the marker
        assert log.index("short") < log.index("x" * 50)

    def test_append_ignores_other_views(self, views: ViewStore, storage: InMemoryStorage):
        view = record_catchall_activity(views, ["src/a.py"], NOW)
        before = storage.files[OVERVIEW]
        append_session_activity(views, view, "note", "src/a.py", NOW)
        assert storage.files[OVERVIEW] == before
