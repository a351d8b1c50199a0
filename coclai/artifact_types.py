"""Data types and errors for artifact documents, patches and stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string or null")
    return value


def _require_index(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field {key!r} must be a non-negative integer")
    return value


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError("expected a JSON object")
    return data


@dataclass
class ArtifactMeta:
    title: str
    format: str
    revision: str
    runtime_thread_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "format": self.format,
            "revision": self.revision,
            "runtimeThreadId": self.runtime_thread_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ArtifactMeta":
        data = _require_mapping(data)
        return cls(
            title=_require_str(data, "title"),
            format=_require_str(data, "format"),
            revision=_require_str(data, "revision"),
            runtime_thread_id=_optional_str(data, "runtimeThreadId"),
        )


class ArtifactTaskKind(Enum):
    DOC_GENERATE = "docGenerate"
    DOC_EDIT = "docEdit"
    PASSTHROUGH = "passthrough"


@dataclass
class ArtifactTaskSpec:
    artifact_id: str
    kind: ArtifactTaskKind
    user_goal: str
    current_text: Optional[str] = None
    constraints: list = field(default_factory=list)
    examples: list = field(default_factory=list)
    model: Optional[str] = None
    effort: Optional[str] = None
    summary: Optional[str] = None
    output_schema: Any = None


@dataclass(frozen=True)
class DocEdit:
    """Replace lines [start_line, end_line) (1-based, end exclusive)."""

    start_line: int
    end_line: int
    replacement: str

    def to_dict(self) -> dict:
        return {
            "startLine": self.start_line,
            "endLine": self.end_line,
            "replacement": self.replacement,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DocEdit":
        data = _require_mapping(data)
        return cls(
            start_line=_require_index(data, "startLine"),
            end_line=_require_index(data, "endLine"),
            replacement=_require_str(data, "replacement"),
        )


@dataclass
class DocPatch:
    format: str
    expected_revision: str
    edits: list = field(default_factory=list)
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "format": self.format,
            "expectedRevision": self.expected_revision,
            "edits": [edit.to_dict() for edit in self.edits],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DocPatch":
        data = _require_mapping(data)
        edits = data.get("edits")
        if not isinstance(edits, list):
            raise ValueError("field 'edits' must be a list")
        return cls(
            format=_require_str(data, "format"),
            expected_revision=_require_str(data, "expectedRevision"),
            edits=[DocEdit.from_dict(edit) for edit in edits],
            notes=_optional_str(data, "notes"),
        )


@dataclass(frozen=True)
class ValidatedPatch:
    edits: tuple


@dataclass
class SaveMeta:
    task_kind: ArtifactTaskKind
    thread_id: str
    turn_id: Optional[str]
    previous_revision: Optional[str]
    next_revision: str

    def to_dict(self) -> dict:
        return {
            "taskKind": self.task_kind.value,
            "threadId": self.thread_id,
            "turnId": self.turn_id,
            "previousRevision": self.previous_revision,
            "nextRevision": self.next_revision,
        }


class PatchConflict(Exception):
    """A patch cannot be applied to the current text."""


@dataclass
class RevisionMismatch(PatchConflict):
    expected: str
    actual: str

    def __str__(self) -> str:
        return f"expected revision mismatch: expected={self.expected} actual={self.actual}"


@dataclass
class InvalidRange(PatchConflict):
    index: int
    start_line: int
    end_line: int
    line_count: int

    def __str__(self) -> str:
        return (
            f"invalid range at edit#{self.index}: start={self.start_line} "
            f"end={self.end_line} line_count={self.line_count}"
        )


@dataclass
class NotSorted(PatchConflict):
    index: int
    prev_start: int
    start: int

    def __str__(self) -> str:
        return (
            f"edits are not sorted at edit#{self.index}: "
            f"prev_start={self.prev_start} start={self.start}"
        )


@dataclass
class Overlap(PatchConflict):
    index: int
    prev_end: int
    start: int

    def __str__(self) -> str:
        return (
            f"edits overlap at edit#{self.index}: "
            f"prev_end={self.prev_end} start={self.start}"
        )


class StoreError(Exception):
    """Failure reported by an artifact store."""


@dataclass
class StoreNotFound(StoreError):
    artifact_id: str

    def __str__(self) -> str:
        return f"artifact not found: {self.artifact_id}"


@dataclass
class StoreConflict(StoreError):
    expected: str
    actual: str

    def __str__(self) -> str:
        return f"store conflict: expected={self.expected} actual={self.actual}"


@dataclass
class StoreIoError(StoreError):
    message: str

    def __str__(self) -> str:
        return f"io error: {self.message}"


@dataclass
class StoreSerializeError(StoreError):
    message: str

    def __str__(self) -> str:
        return f"serialize error: {self.message}"


class DomainError(Exception):
    """Failure of an artifact task."""


@dataclass
class ConflictError(DomainError):
    expected: str
    actual: str

    def __str__(self) -> str:
        return f"conflict: expected={self.expected} actual={self.actual}"


@dataclass
class IncompatibleContractError(DomainError):
    expected_major: int
    expected_minor: int
    actual_major: int
    actual_minor: int

    def __str__(self) -> str:
        return (
            f"incompatible plugin contract: "
            f"expected=v{self.expected_major}.{self.expected_minor} "
            f"actual=v{self.actual_major}.{self.actual_minor}"
        )


@dataclass
class ValidationError(DomainError):
    message: str

    def __str__(self) -> str:
        return f"validation error: {self.message}"


@dataclass
class ParseError(DomainError):
    message: str

    def __str__(self) -> str:
        return f"parse error: {self.message}"


@dataclass
class StoreFailure(DomainError):
    error: StoreError

    def __str__(self) -> str:
        return f"store error: {self.error}"


def domain_error_from_store(err: StoreError) -> DomainError:
    """Store conflicts become domain conflicts; everything else is wrapped."""
    if isinstance(err, StoreConflict):
        return ConflictError(expected=err.expected, actual=err.actual)
    return StoreFailure(err)


@dataclass(frozen=True)
class ArtifactSession:
    artifact_id: str
    thread_id: str
    format: str
    revision: str


@dataclass(frozen=True)
class DocGenerateResult:
    artifact_id: str
    thread_id: str
    turn_id: Optional[str]
    title: str
    format: str
    revision: str
    text: str


@dataclass(frozen=True)
class DocEditResult:
    artifact_id: str
    thread_id: str
    turn_id: Optional[str]
    format: str
    revision: str
    text: str
    notes: Optional[str]


@dataclass
class PassthroughResult:
    artifact_id: str
    thread_id: str
    turn_id: Optional[str]
    output: Any


class ArtifactStore(ABC):
    """Persistence for artifact text and metadata; methods raise StoreError."""

    @abstractmethod
    def load_text(self, artifact_id: str) -> str:
        """Return the stored text."""

    @abstractmethod
    def save_text(self, artifact_id: str, new_text: str, meta: SaveMeta) -> None:
        """Store new text, checking the previous revision if given."""

    @abstractmethod
    def get_meta(self, artifact_id: str) -> ArtifactMeta:
        """Return the stored metadata."""

    @abstractmethod
    def set_meta(self, artifact_id: str, meta: ArtifactMeta) -> None:
        """Store metadata, which must match the current text revision."""