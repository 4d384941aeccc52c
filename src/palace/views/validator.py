"""Structural validation of views, plus two advisory heuristics.

Errors make a view invalid. Pattern conflicts, shared grid positions and low
grid utilisation are only ever reported as warnings or suggestions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from palace.views.models import CellSpec, GridDimensions, View, compute_grid_dimensions

VIEW_ID_PATTERN = re.compile(r"^[a-zA-Z0-9\-_]+$")
LOW_UTILIZATION_PERCENT = 30
MAX_DISPLAY_SIZE = 6


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def extend(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.suggestions.extend(other.suggestions)


@dataclass
class GridValidationResult(ValidationResult):
    utilization: int = 0


class ConflictKind(Enum):
    EXACT = "exact"
    SUBSTRING = "substring"
    SHARED_WILDCARD_PREFIX = "shared_wildcard_prefix"


@dataclass
class PatternConflict:
    kind: ConflictKind
    patterns: tuple[str, str]
    cells: tuple[str, str]

    @property
    def path(self) -> str:
        return f"{self.patterns[0]} / {self.patterns[1]}"


def is_safe_view_id(view_id: object) -> bool:
    """True if ``view_id`` can be used as a file name under the views directory."""
    return (
        isinstance(view_id, str)
        and bool(view_id.strip())
        and "/" not in view_id
        and "\\" not in view_id
        and view_id not in (".", "..")
    )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _valid_coordinates(cell: CellSpec) -> bool:
    coords = cell.coordinates
    return (
        isinstance(coords, (list, tuple))
        and len(coords) == 2
        and all(_is_int(c) and c >= 0 for c in coords)
    )


def _check_links(links: object, owner: str, result: ValidationResult) -> None:
    if links is None:
        return
    if not isinstance(links, dict):
        result.errors.append(f"{owner}links must be an object")
        return
    for view_id, label in links.items():
        if not isinstance(label, str):
            result.errors.append(f'{owner}link label for view "{view_id}" must be a string')
        if not str(view_id).strip():
            result.errors.append(f"{owner}link view ID cannot be empty")


def validate_cell(cell: CellSpec, cell_name: str) -> ValidationResult:
    result = ValidationResult()
    prefix = f'Cell "{cell_name}": '

    if not isinstance(cell.patterns, list):
        result.errors.append(f"{prefix}patterns is required and must be an array")
    elif not cell.patterns:
        result.errors.append(f"{prefix}patterns array cannot be empty")
    else:
        for index, pattern in enumerate(cell.patterns):
            if not isinstance(pattern, str):
                result.errors.append(f"{prefix}pattern at index {index} must be a string")
            elif not pattern.strip():
                result.errors.append(f"{prefix}pattern at index {index} cannot be empty")

    coords = cell.coordinates
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        result.errors.append(f"{prefix}coordinates must be an array of two numbers [row, col]")
    elif not all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in coords):
        result.errors.append(f"{prefix}coordinates must contain numbers")
    elif any(c < 0 for c in coords):
        result.errors.append(f"{prefix}coordinates cannot be negative")
    elif not all(_is_int(c) for c in coords):
        result.errors.append(f"{prefix}coordinates must be integers")

    if isinstance(cell.priority, bool) or not isinstance(cell.priority, (int, float)):
        result.errors.append(f"{prefix}priority must be a number")
    elif not _is_int(cell.priority):
        result.warnings.append(f"{prefix}priority should typically be an integer")

    _check_links(cell.links, prefix, result)
    if cell.metadata is not None and not isinstance(cell.metadata, dict):
        result.errors.append(f"{prefix}metadata must be an object")
    return result


def validate_patterns(patterns: list[str]) -> ValidationResult:
    """Catch common authoring slips in glob patterns."""
    result = ValidationResult()
    for index, pattern in enumerate(patterns):
        if not isinstance(pattern, str):
            result.errors.append(f"Pattern at index {index}: must be a string")
            continue
        if not pattern.strip():
            result.errors.append(f"Pattern at index {index}: cannot be empty")
            continue
        if "//" in pattern:
            result.warnings.append(
                f'Pattern "{pattern}": contains double slashes which may not match as expected'
            )
        if pattern.startswith("/"):
            result.suggestions.append(
                f'Pattern "{pattern}": starts with slash - patterns are relative to the repository root'
            )
        if "\\" in pattern:
            result.warnings.append(
                f'Pattern "{pattern}": contains backslashes - use forward slashes'
            )
        if pattern == "**":
            result.warnings.append(f'Pattern "{pattern}": matches all files')
        if "**/**" in pattern:
            result.suggestions.append(
                f'Pattern "{pattern}": contains redundant globstar - consider simplifying'
            )
    return result


def validate_grid_dimensions(view: View) -> GridValidationResult:
    """Bounds-check cell coordinates and score how much of the grid is used."""
    result = GridValidationResult()
    cells = {name: cell for name, cell in view.cells.items() if _valid_coordinates(cell)}
    if view.rows is not None and view.cols is not None:
        dims = GridDimensions(view.rows, view.cols)
    else:
        dims = compute_grid_dimensions(cells)

    occupied: dict[tuple[int, int], str] = {}
    for name, cell in cells.items():
        if cell.row >= dims.rows:
            result.errors.append(f'Cell "{name}": row {cell.row} exceeds grid rows ({dims.rows})')
        if cell.col >= dims.cols:
            result.errors.append(
                f'Cell "{name}": column {cell.col} exceeds grid columns ({dims.cols})'
            )
        position = (cell.row, cell.col)
        if position in occupied:
            result.warnings.append(
                f"Position [{cell.row}, {cell.col}] occupied by multiple cells "
                f'("{occupied[position]}", "{name}")'
            )
        else:
            occupied[position] = name

    if len(occupied) < len(cells):
        result.suggestions.append("Consider using priority values to resolve position conflicts")

    total = dims.rows * dims.cols
    result.utilization = round(len(occupied) / total * 100) if total > 0 else 0
    if total > 0 and result.utilization < LOW_UTILIZATION_PERCENT:
        result.suggestions.append(
            f"Grid utilization is low ({result.utilization}%) - consider reducing grid size"
        )
    return result


def _conflict_kind(pattern1: str, pattern2: str) -> ConflictKind | None:
    if pattern1 == pattern2:
        return ConflictKind.EXACT
    if pattern1 in pattern2 or pattern2 in pattern1:
        return ConflictKind.SUBSTRING
    if "*" in pattern1 and "*" in pattern2:
        base1 = pattern1.split("*")[0]
        base2 = pattern2.split("*")[0]
        if base1 and base2 and (base1 in base2 or base2 in base1):
            return ConflictKind.SHARED_WILDCARD_PREFIX
    return None


def detect_pattern_conflicts(cells: dict[str, CellSpec]) -> list[PatternConflict]:
    """Flag pattern pairs across different cells that probably overlap.

    This compares pattern text only and does not evaluate globs, so it both
    over- and under-reports. Priority decides real overlaps at assignment time.
    """
    conflicts: list[PatternConflict] = []
    entries = [
        (name, [p for p in cell.patterns if isinstance(p, str)])
        for name, cell in cells.items()
        if isinstance(cell.patterns, list)
    ]
    for i, (name1, patterns1) in enumerate(entries):
        for name2, patterns2 in entries[i + 1 :]:
            for p1 in patterns1:
                for p2 in patterns2:
                    kind = _conflict_kind(p1, p2)
                    if kind is not None:
                        conflicts.append(PatternConflict(kind, (p1, p2), (name1, name2)))
    return conflicts


def validate_view(view: View) -> ValidationResult:
    result = ValidationResult()

    if not isinstance(view.id, str) or not view.id.strip():
        result.errors.append("id is required and must be a non-empty string")
    elif not is_safe_view_id(view.id):
        result.errors.append("id must be usable as a file name")
    elif not VIEW_ID_PATTERN.match(view.id):
        result.warnings.append("id should contain only letters, numbers, hyphens, and underscores")

    if not isinstance(view.version, str) or not view.version:
        result.errors.append("version is required and must be a string")

    for label, value in (("rows", view.rows), ("cols", view.cols)):
        if value is None:
            continue
        if not _is_int(value) or value < 1:
            result.errors.append(f"{label} must be a positive integer")
        elif value > MAX_DISPLAY_SIZE:
            result.warnings.append(f"{label} > {MAX_DISPLAY_SIZE} may not display well in visualizations")

    if not isinstance(view.overview_path, str):
        result.errors.append("overview_path is required and must be a string")
    if not isinstance(view.name, str):
        result.errors.append("name must be a string")
    if not isinstance(view.description, str):
        result.errors.append("description must be a string")
    _check_links(view.links, "", result)

    if not isinstance(view.cells, dict):
        result.errors.append("cells must be an object")
        return result
    if not view.cells:
        result.errors.append("view has no cells defined")
        return result

    for name, cell in view.cells.items():
        result.extend(validate_cell(cell, name))

    dims_declared_ok = all(
        v is None or (_is_int(v) and v >= 1) for v in (view.rows, view.cols)
    )
    if dims_declared_ok:
        result.extend(validate_grid_dimensions(view))

    conflicts = detect_pattern_conflicts(view.cells)
    if conflicts:
        result.warnings.append(f"Found {len(conflicts)} pattern conflicts between cells")
        result.suggestions.append("Consider using priority values to resolve pattern conflicts")

    if not view.name:
        result.suggestions.append("Consider adding a name for better identification")
    if not view.description:
        result.suggestions.append("Consider adding a description to explain the view's purpose")
    return result
