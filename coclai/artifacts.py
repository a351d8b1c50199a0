"""Artifact session manager: opens artifact threads and runs document tasks."""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

from .adapter import ArtifactPluginAdapter
from .artifact_types import (
    ArtifactMeta,
    ArtifactSession,
    ArtifactStore,
    ArtifactTaskKind,
    ArtifactTaskSpec,
    DocEditResult,
    DocGenerateResult,
    DocPatch,
    IncompatibleContractError,
    ParseError,
    PassthroughResult,
    PatchConflict,
    SaveMeta,
    StoreError,
    StoreNotFound,
    domain_error_from_store,
)
from .hooks import PluginContractVersion
from .patch import apply_doc_patch, compute_revision, map_patch_conflict, validate_doc_patch
from .task import build_turn_prompt, extract_output_json, load_or_default_meta

T = TypeVar("T")

ArtifactTaskResult = Union[DocGenerateResult, DocEditResult, PassthroughResult]


@dataclass(frozen=True)
class _ContractMismatch:
    expected: PluginContractVersion
    actual: PluginContractVersion


@dataclass(frozen=True)
class _DocGenerateOutput:
    format: str
    title: str
    text: str

    @classmethod
    def from_value(cls, value: Any) -> "_DocGenerateOutput":
        if not isinstance(value, Mapping):
            raise ValueError("expected a JSON object")
        fields = {}
        for key in ("format", "title", "text"):
            item = value.get(key)
            if not isinstance(item, str):
                raise ValueError(f"field {key!r} must be a string")
            fields[key] = item
        return cls(**fields)


def _detect_contract_mismatch(adapter: ArtifactPluginAdapter) -> Optional[_ContractMismatch]:
    expected = PluginContractVersion.CURRENT
    actual = adapter.plugin_contract_version()
    if expected.is_compatible_with(actual):
        return None
    return _ContractMismatch(expected=expected, actual=actual)


class ArtifactSessionManager:
    """Runs artifact tasks through an adapter, persisting results in a store.

    Store failures surface as DomainError subclasses; store conflicts become
    ConflictError.
    """

    def __init__(self, adapter: ArtifactPluginAdapter, store: ArtifactStore) -> None:
        self.adapter = adapter
        self.store = store
        self._contract_mismatch = _detect_contract_mismatch(adapter)

    async def _store_io(self, op: Callable[[ArtifactStore], T]) -> T:
        try:
            return await asyncio.to_thread(op, self.store)
        except StoreError as err:
            raise domain_error_from_store(err) from err

    def _ensure_contract_compatible(self) -> None:
        mismatch = self._contract_mismatch
        if mismatch is not None:
            raise IncompatibleContractError(
                expected_major=mismatch.expected.major,
                expected_minor=mismatch.expected.minor,
                actual_major=mismatch.actual.major,
                actual_minor=mismatch.actual.minor,
            )

    async def open(self, artifact_id: str) -> ArtifactSession:
        """Start or resume the artifact's thread and record it in the metadata."""
        self._ensure_contract_compatible()

        meta = await self._store_io(lambda store: load_or_default_meta(store, artifact_id))
        if meta.runtime_thread_id is not None:
            thread_id = await self.adapter.resume_thread(meta.runtime_thread_id)
        else:
            thread_id = await self.adapter.start_thread()

        meta = dataclasses.replace(meta, runtime_thread_id=thread_id)
        await self._store_io(lambda store: store.set_meta(artifact_id, meta))

        return ArtifactSession(
            artifact_id=artifact_id,
            thread_id=thread_id,
            format=meta.format,
            revision=meta.revision,
        )

    async def run_task(self, spec: ArtifactTaskSpec) -> ArtifactTaskResult:
        """Run one task: one turn through the adapter, then store reads and writes."""
        self._ensure_contract_compatible()
        session = await self.open(spec.artifact_id)

        def load_persisted(store: ArtifactStore) -> str:
            try:
                return store.load_text(spec.artifact_id)
            except StoreNotFound:
                return ""

        persisted_text = await self._store_io(load_persisted)
        persisted_revision = compute_revision(persisted_text)

        context_text = spec.current_text if spec.current_text is not None else persisted_text
        prompt = build_turn_prompt(spec, session.format, persisted_revision, context_text)
        turn = await self.adapter.run_turn(session.thread_id, prompt, spec)

        if spec.kind is ArtifactTaskKind.DOC_GENERATE:
            return await self._run_doc_generate(
                spec, session, persisted_revision, turn.turn_id, turn.output
            )
        if spec.kind is ArtifactTaskKind.DOC_EDIT:
            return await self._run_doc_edit(
                spec, session, persisted_text, persisted_revision, turn.turn_id, turn.output
            )
        return PassthroughResult(
            artifact_id=spec.artifact_id,
            thread_id=session.thread_id,
            turn_id=turn.turn_id,
            output=turn.output,
        )

    async def _commit(
        self,
        artifact_id: str,
        text: str,
        save_meta: SaveMeta,
        update_meta: Callable[[ArtifactMeta], ArtifactMeta],
    ) -> None:
        meta = await self._store_io(lambda store: store.get_meta(artifact_id))
        await self._store_io(lambda store: store.save_text(artifact_id, text, save_meta))
        new_meta = update_meta(meta)
        await self._store_io(lambda store: store.set_meta(artifact_id, new_meta))

    async def _run_doc_generate(
        self,
        spec: ArtifactTaskSpec,
        session: ArtifactSession,
        persisted_revision: str,
        turn_id: Optional[str],
        turn_output: Any,
    ) -> DocGenerateResult:
        output_json = extract_output_json(turn_output, ["format", "title", "text"])
        try:
            output = _DocGenerateOutput.from_value(output_json)
        except ValueError as err:
            raise ParseError(f"docGenerate payload parse failed: {err}") from err

        new_revision = compute_revision(output.text)
        save_meta = SaveMeta(
            task_kind=ArtifactTaskKind.DOC_GENERATE,
            thread_id=session.thread_id,
            turn_id=turn_id,
            previous_revision=persisted_revision,
            next_revision=new_revision,
        )
        await self._commit(
            spec.artifact_id,
            output.text,
            save_meta,
            lambda meta: dataclasses.replace(
                meta,
                title=output.title,
                format=output.format,
                revision=new_revision,
                runtime_thread_id=session.thread_id,
            ),
        )
        return DocGenerateResult(
            artifact_id=spec.artifact_id,
            thread_id=session.thread_id,
            turn_id=turn_id,
            title=output.title,
            format=output.format,
            revision=new_revision,
            text=output.text,
        )

    async def _run_doc_edit(
        self,
        spec: ArtifactTaskSpec,
        session: ArtifactSession,
        persisted_text: str,
        persisted_revision: str,
        turn_id: Optional[str],
        turn_output: Any,
    ) -> DocEditResult:
        output_json = extract_output_json(turn_output, ["format", "expectedRevision", "edits"])
        try:
            patch = DocPatch.from_dict(output_json)
        except ValueError as err:
            raise ParseError(f"docEdit patch parse failed: {err}") from err

        try:
            validated = validate_doc_patch(persisted_text, patch)
        except PatchConflict as conflict:
            raise map_patch_conflict(conflict) from conflict
        new_text = apply_doc_patch(persisted_text, validated)
        new_revision = compute_revision(new_text)

        save_meta = SaveMeta(
            task_kind=ArtifactTaskKind.DOC_EDIT,
            thread_id=session.thread_id,
            turn_id=turn_id,
            previous_revision=persisted_revision,
            next_revision=new_revision,
        )
        await self._commit(
            spec.artifact_id,
            new_text,
            save_meta,
            lambda meta: dataclasses.replace(
                meta,
                format=patch.format,
                revision=new_revision,
                runtime_thread_id=session.thread_id,
            ),
        )
        return DocEditResult(
            artifact_id=spec.artifact_id,
            thread_id=session.thread_id,
            turn_id=turn_id,
            format=patch.format,
            revision=new_revision,
            text=new_text,
            notes=patch.notes,
        )