"""Auto-generated views.

Catchall view: notes created without an explicit view land in a view whose
cells are hour buckets (``YYYY-MM-DD-HH``), 24 to a row, accumulating the
anchors noted in that hour.

Session views: a four-cell layout inferred from the first anchors of a
working session, with a markdown activity log.

Clock dependence is confined to ``current_time_bucket``; the rest is pure
apart from the explicit store writes.
"""

from __future__ import annotations

import logging
import posixpath
import secrets
import time
from dataclasses import replace
from datetime import datetime

from palace.views.models import CellSpec, View
from palace.views.store import ViewStore

logger = logging.getLogger(__name__)

CATCHALL_VIEW_ID = "default-explorer-log"
HOURS_PER_ROW = 24
TIME_CELL_PRIORITY = 5
ACTIVITY_MARKER = "<!-- activity entries are appended below -->"


def current_time_bucket(now: datetime | None = None) -> str:
    """Hour bucket name for ``now`` (local time)."""
    return (now or datetime.now()).strftime("%Y-%m-%d-%H")


def overview_path_for(data_dir: str, view_id: str) -> str:
    return f"{data_dir}/overviews/{view_id}.md"


def next_cell_coordinates(cells: dict[str, CellSpec]) -> list[int]:
    """Next free slot after the last cell of the last row; wraps after 24 columns."""
    if not cells:
        return [0, 0]
    max_row = max(cell.row for cell in cells.values())
    max_col = max(cell.col for cell in cells.values() if cell.row == max_row)
    if max_col >= HOURS_PER_ROW - 1:
        return [max_row + 1, 0]
    return [max_row, max_col + 1]


def create_catchall_view(anchors: list[str], bucket: str, data_dir: str = ".palace") -> View:
    return View(
        id=CATCHALL_VIEW_ID,
        name="Default Exploration Log",
        description="Time-based catchall view that grows with each note creation",
        cells={
            bucket: CellSpec(
                patterns=list(dict.fromkeys(anchors)),
                coordinates=[0, 0],
                priority=TIME_CELL_PRIORITY,
            )
        },
        overview_path=overview_path_for(data_dir, CATCHALL_VIEW_ID),
        metadata={"generation_type": "catchall"},
    )


def add_anchors_to_time_cell(view: View, anchors: list[str], bucket: str) -> View:
    """Return ``view`` with ``anchors`` merged into the ``bucket`` cell."""
    cells = dict(view.cells)
    if bucket in cells:
        cell = cells[bucket]
        merged = list(dict.fromkeys([*cell.patterns, *anchors]))
        cells[bucket] = replace(cell, patterns=merged)
    else:
        cells[bucket] = CellSpec(
            patterns=list(dict.fromkeys(anchors)),
            coordinates=next_cell_coordinates(cells),
            priority=TIME_CELL_PRIORITY,
        )
    return replace(view, cells=cells)


def render_overview(view: View) -> str:
    lines = [
        f"# {view.name}",
        "",
        view.description,
        "",
        f"**View ID:** `{view.id}`",
        f"**Updated:** {view.timestamp or ''}",
        f"**Type:** {view.generation_type}",
        "",
    ]
    if view.cells:
        lines += ["## Cells", ""]
        for name in sorted(view.cells):
            cell = view.cells[name]
            lines += [f"### {name}", "", "**Patterns:**"]
            lines += [f"- `{pattern}`" for pattern in cell.patterns]
            lines += [
                "",
                f"**Coordinates:** [{cell.row}, {cell.col}]",
                f"**Priority:** {cell.priority}",
                "",
            ]
    else:
        lines += ["## Cells", "", "*No cells defined yet.*", ""]
    lines += ["---", "", "*Generated automatically when notes are added to this view.*", ""]
    return "\n".join(lines)


def write_overview(store: ViewStore, view: View) -> None:
    if not view.overview_path:
        return
    path = store.storage.join(store.repo_root, view.overview_path)
    store.storage.create_dir(store.storage.dirname(path))
    store.storage.write_file(path, render_overview(view))


def record_catchall_activity(
    store: ViewStore, anchors: list[str], now: datetime | None = None
) -> View:
    """Create or grow the catchall view with ``anchors`` in the current hour cell."""
    bucket = current_time_bucket(now)
    view = store.get_view(CATCHALL_VIEW_ID)
    if view is None:
        view = create_catchall_view(anchors, bucket, store.data_dir)
        logger.info("Created catchall view with cell %s", bucket)
    else:
        view = replace(add_anchors_to_time_cell(view, anchors, bucket), timestamp=None)
    saved = store.save_view(view)
    write_overview(store, saved)
    return saved


# ── Session views ─────────────────────────────────────────────


def common_prefix(anchors: list[str]) -> str:
    """Longest shared directory prefix; a lone anchor yields its directory."""
    if not anchors:
        return ""
    if len(anchors) == 1:
        return posixpath.dirname(anchors[0])
    split = [anchor.split("/") for anchor in anchors]
    shared: list[str] = []
    for parts in zip(*split):
        if len(set(parts)) != 1:
            break
        shared.append(parts[0])
    return "/".join(shared)


def infer_session_cells(anchors: list[str]) -> dict[str, CellSpec]:
    base = common_prefix(anchors)
    prefix = f"{base}/" if base else ""
    return {
        "source": CellSpec(
            patterns=[f"{prefix}src/**/*", f"{prefix}lib/**/*", f"{prefix}**/*.py"],
            coordinates=[0, 0],
            priority=8,
        ),
        "tests": CellSpec(
            patterns=[f"{prefix}test*/**/*", f"{prefix}**/test_*.py", f"{prefix}**/*.test.*"],
            coordinates=[0, 1],
            priority=7,
        ),
        "config": CellSpec(
            patterns=["*.toml", "*.cfg", "*.ini", "config/**/*", ".env*"],
            coordinates=[1, 0],
            priority=6,
        ),
        "docs": CellSpec(
            patterns=["*.md", "docs/**/*", "README*"],
            coordinates=[1, 1],
            priority=5,
        ),
    }


def generate_session_id() -> str:
    return f"{int(time.time() * 1000):x}-{secrets.token_hex(4)}"


def create_session_view(
    store: ViewStore, anchors: list[str], session_id: str | None = None
) -> View:
    """Save a session view inferred from ``anchors`` and start its activity log."""
    view_id = f"session-{session_id or generate_session_id()}"
    first = posixpath.basename(anchors[0]) if anchors else "unknown"
    view = store.save_view(
        View(
            id=view_id,
            name=f"Session View ({first})",
            description="Auto-generated view based on note creation patterns",
            cells=infer_session_cells(anchors),
            overview_path=overview_path_for(store.data_dir, view_id),
            metadata={"generation_type": "session"},
        )
    )
    path = store.storage.join(store.repo_root, view.overview_path)
    store.storage.create_dir(store.storage.dirname(path))
    store.storage.write_file(
        path,
        f"# Session Log\n\n**View:** {view.id} ({view.name})\n"
        f"**Created:** {view.timestamp}\n\n## Activity\n\n{ACTIVITY_MARKER}\n",
    )
    logger.info("Created session view %s", view_id)
    return view


def append_session_activity(
    store: ViewStore, view: View, note_content: str, main_anchor: str, now: datetime | None = None
) -> None:
    """Add a line to a session view's activity log, if it has one."""
    if view.generation_type != "session" or not view.overview_path:
        return
    path = store.storage.join(store.repo_root, view.overview_path)
    if not store.storage.exists(path):
        return
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    summary = note_content if len(note_content) <= 50 else note_content[:50] + "..."
    entry = f'- {stamp} - Note created: "{summary}" ({posixpath.basename(main_anchor)})'
    text = store.storage.read_file(path)
    store.storage.write_file(path, text.replace(ACTIVITY_MARKER, f"{ACTIVITY_MARKER}\n{entry}", 1))
