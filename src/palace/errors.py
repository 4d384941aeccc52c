"""Error taxonomy for note and view operations."""

from __future__ import annotations


class PalaceError(Exception):
    """Base class for all palace errors."""


class ValidationError(PalaceError):
    """Malformed input: empty anchors/tags, bad coordinates, identical tags."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class LimitExceeded(ValidationError):
    """A length or count is over the configured cap."""

    def __init__(self, what: str, limit: int, actual: int, field: str | None = None) -> None:
        self.limit = limit
        self.actual = actual
        super().__init__(
            f"{what} exceeds maximum of {limit} (actual: {actual})",
            field=field,
        )


class NotFound(PalaceError):
    """A note, view or tag id does not resolve."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class PolicyRejected(PalaceError):
    """New tags were used while tag enforcement is on."""

    def __init__(self, rejected: list[str], allowed: list[str]) -> None:
        self.rejected = rejected
        self.allowed = allowed
        allowed_text = ", ".join(allowed) if allowed else "no tags with descriptions exist yet"
        super().__init__(
            f"Tag enforcement is enabled; unknown tags: {', '.join(rejected)}. "
            f"Allowed tags: {allowed_text}"
        )


class StorageFailure(PalaceError):
    """The storage adapter could not complete an I/O operation."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"{path}: {reason}")
