"""Revision hashing and line-based document patching."""

from __future__ import annotations

import hashlib

from .artifact_types import (
    ConflictError,
    DocPatch,
    DomainError,
    InvalidRange,
    NotSorted,
    Overlap,
    PatchConflict,
    RevisionMismatch,
    ValidatedPatch,
    ValidationError,
)


def compute_revision(text: str) -> str:
    """Content revision of a text: ``sha256:<hex digest>``."""
    return "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()


def _split_lines(text: str) -> list:
    """Split on '\\n' only, keeping terminators."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def validate_doc_patch(text: str, patch: DocPatch) -> ValidatedPatch:
    """Check revision and edit ranges before any mutation; end_line is exclusive.

    Raises a PatchConflict subclass when the patch does not fit the text.
    """
    current_revision = compute_revision(text)
    if current_revision != patch.expected_revision:
        raise RevisionMismatch(expected=patch.expected_revision, actual=current_revision)

    line_count = len(_split_lines(text))
    prev_start = 0
    prev_end = 0
    for index, edit in enumerate(patch.edits):
        if (
            edit.start_line < 1
            or edit.start_line > edit.end_line
            or edit.end_line > line_count + 1
        ):
            raise InvalidRange(
                index=index,
                start_line=edit.start_line,
                end_line=edit.end_line,
                line_count=line_count,
            )
        if index > 0:
            if edit.start_line < prev_start:
                raise NotSorted(index=index, prev_start=prev_start, start=edit.start_line)
            if edit.start_line < prev_end:
                raise Overlap(index=index, prev_end=prev_end, start=edit.start_line)
        prev_start = edit.start_line
        prev_end = edit.end_line

    return ValidatedPatch(edits=tuple(patch.edits))


def apply_doc_patch(text: str, validated_patch: ValidatedPatch) -> str:
    """Apply validated edits, last first, so earlier line numbers stay valid."""
    lines = _split_lines(text)
    for edit in reversed(validated_patch.edits):
        lines[edit.start_line - 1 : edit.end_line - 1] = _split_lines(edit.replacement)
    return "".join(lines)


def map_patch_conflict(conflict: PatchConflict) -> DomainError:
    """Revision mismatches become conflicts; other problems are validation errors."""
    if isinstance(conflict, RevisionMismatch):
        return ConflictError(expected=conflict.expected, actual=conflict.actual)
    return ValidationError(str(conflict))