"""Anchored notes: path normalization/matching, the note store, the tag registry and coverage."""
