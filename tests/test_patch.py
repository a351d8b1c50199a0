import pytest

from coclai.artifact_types import (
    ConflictError,
    DocEdit,
    DocPatch,
    InvalidRange,
    NotSorted,
    Overlap,
    PatchConflict,
    RevisionMismatch,
    ValidationError,
)
from coclai.patch import (
    apply_doc_patch,
    compute_revision,
    map_patch_conflict,
    validate_doc_patch,
)


def _patch(text, edits):
    return DocPatch(format="markdown", expected_revision=compute_revision(text), edits=edits)


def test_compute_revision_of_empty_text():
    assert compute_revision("") == (
        "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_compute_revision_is_stable_and_content_sensitive():
    assert compute_revision("a\nb\n") == compute_revision("a\nb\n")
    assert compute_revision("a\nb\n") != compute_revision("a\nb")


def test_validate_and_apply_replace():
    before = "a\nb\nc\n"
    validated = validate_doc_patch(before, _patch(before, [DocEdit(2, 3, "B\n")]))
    assert apply_doc_patch(before, validated) == "a\nB\nc\n"


def test_validate_insert_head_and_append():
    before = "line1\nline2\n"
    patch = _patch(before, [DocEdit(1, 1, "head\n"), DocEdit(3, 3, "tail\n")])
    validated = validate_doc_patch(before, patch)
    assert apply_doc_patch(before, validated) == "head\nline1\nline2\ntail\n"


def test_edit_doc_mock_case():
    before = "a\nb\nc\n"
    validated = validate_doc_patch(before, _patch(before, [DocEdit(2, 3, "patched\n")]))
    assert apply_doc_patch(before, validated) == "a\npatched\nc\n"


def test_detect_revision_conflict():
    patch = DocPatch(format="markdown", expected_revision="sha256:deadbeef", edits=[])
    with pytest.raises(RevisionMismatch) as info:
        validate_doc_patch("a\n", patch)
    assert info.value.expected == "sha256:deadbeef"
    assert info.value.actual == compute_revision("a\n")


def test_detect_overlap():
    before = "a\nb\nc\n"
    with pytest.raises(Overlap):
        validate_doc_patch(before, _patch(before, [DocEdit(1, 3, "x\n"), DocEdit(2, 3, "y\n")]))


def test_detect_invalid_range():
    before = "a\n"
    with pytest.raises(InvalidRange) as info:
        validate_doc_patch(before, _patch(before, [DocEdit(2, 4, "x\n")]))
    assert info.value.line_count == 1


def test_zero_start_line_is_invalid():
    before = "a\n"
    with pytest.raises(InvalidRange):
        validate_doc_patch(before, _patch(before, [DocEdit(0, 1, "x\n")]))


def test_detect_not_sorted():
    before = "a\nb\nc\n"
    with pytest.raises(NotSorted):
        validate_doc_patch(before, _patch(before, [DocEdit(3, 3, "x\n"), DocEdit(1, 1, "y\n")]))


def test_delete_lines_and_text_without_trailing_newline():
    before = "a\nb\nc"
    validated = validate_doc_patch(before, _patch(before, [DocEdit(2, 3, "")]))
    assert apply_doc_patch(before, validated) == "a\nc"


def test_empty_text_accepts_insert_at_line_one():
    validated = validate_doc_patch("", _patch("", [DocEdit(1, 1, "new\n")]))
    assert apply_doc_patch("", validated) == "new\n"


def test_map_patch_conflict_revision_mismatch_becomes_conflict():
    mapped = map_patch_conflict(RevisionMismatch(expected="sha256:deadbeef", actual="sha256:x"))
    assert mapped == ConflictError(expected="sha256:deadbeef", actual="sha256:x")


def test_map_patch_conflict_other_becomes_validation():
    conflict = Overlap(index=1, prev_end=3, start=2)
    mapped = map_patch_conflict(conflict)
    assert mapped == ValidationError(str(conflict))
    assert isinstance(conflict, PatchConflict)