"""Entry point: python -m palace <command> [path]

- "stale":  list notes whose anchors no longer exist
- "views":  validate every view and print errors/warnings
- "tags":   list tags with usage counts and descriptions
- "coverage": share of files and directories that have notes
"""

from __future__ import annotations

import logging
import os
import sys

from palace.config import load_settings
from palace.core import Palace


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_stale(palace: Palace) -> int:
    stale = palace.stale_notes()
    if not stale:
        print("No stale notes.")
        return 0
    for entry in stale:
        kind = "fully stale" if entry.fully_stale else "partially stale"
        print(f"{entry.note.id} ({kind}): {', '.join(entry.stale_anchors)}")
    return 1


def _run_views(palace: Palace) -> int:
    results = palace.validate_views()
    if not results:
        print("No views.")
        return 0
    failed = 0
    for view_id, result in results.items():
        print(f"{view_id}: {'ok' if result.valid else 'INVALID'}")
        for error in result.errors:
            print(f"  error: {error}")
        for warning in result.warnings:
            print(f"  warning: {warning}")
        failed += not result.valid
    return 1 if failed else 0


def _run_tags(palace: Palace) -> int:
    usage = palace.notes.get_tag_usage()
    descriptions = palace.tags.get_tag_descriptions()
    for tag in sorted(set(usage) | set(descriptions)):
        summary = descriptions.get(tag, "").split("\n")[0][:60]
        print(f"{tag}\t{usage.get(tag, 0)}\t{summary}")
    return 0


def _run_coverage(palace: Palace) -> int:
    report = palace.note_coverage()
    print(
        f"Files: {len(report.covered_files)}/{len(report.files)} "
        f"({report.file_coverage_percentage:.1f}%)"
    )
    print(
        f"Directories: {len(report.covered_directories)}/{len(report.directories)} "
        f"({report.directory_coverage_percentage:.1f}%)"
    )
    for ext, entry in sorted(report.coverage_by_type().items()):
        print(f"  {ext}\t{entry.files_with_notes}/{entry.total_files}")
    for entry in report.files_with_most_notes(5):
        print(f"  {entry.path}\t{len(entry.note_ids)} notes")
    return 0


COMMANDS = {
    "stale": _run_stale,
    "views": _run_views,
    "tags": _run_tags,
    "coverage": _run_coverage,
}


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd not in COMMANDS:
        print("Usage: python -m palace [stale|views|tags|coverage] [path]")
        print("  stale  — Notes whose anchors no longer exist")
        print("  views  — Validate all views")
        print("  tags   — Tag usage and descriptions")
        print("  coverage — Files and directories reached by notes")
        sys.exit(2)

    settings = load_settings()
    _setup_logging(settings.log_level)
    path = sys.argv[2] if len(sys.argv) > 2 else os.getcwd()
    palace = Palace.open(path, settings=settings)
    sys.exit(COMMANDS[cmd](palace))


if __name__ == "__main__":
    main()
