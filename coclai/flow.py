"""State and patch application for pre and post hooks around prompt runs."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .hooks import (
    AtPathAttachment,
    HookAction,
    HookContext,
    HookIssue,
    HookIssueClass,
    HookPatch,
    HookPhase,
    HookReport,
    ImageUrlAttachment,
    LocalImageAttachment,
    SkillAttachment,
)


@dataclass
class HookExecutionState:
    """Per-run hook bookkeeping: correlation id, issues and shared metadata."""

    correlation_id: str
    report: HookReport = field(default_factory=HookReport)
    metadata: Any = field(default_factory=dict)


@dataclass
class PromptMutationState:
    """The parts of a prompt run that pre hooks may change."""

    prompt: str
    model: Optional[str] = None
    attachments: list = field(default_factory=list)
    metadata: Any = field(default_factory=dict)


@dataclass
class SessionMutationState:
    """The parts of a session start that pre hooks may change."""

    model: Optional[str] = None
    metadata: Any = field(default_factory=dict)


@dataclass(frozen=True)
class PreHookDecision:
    """Action returned by one named pre hook."""

    hook_name: str
    action: HookAction


def _now_millis() -> int:
    return max(0, int(time.time() * 1000))


def build_hook_context(
    correlation_id: str,
    metadata: Any,
    phase: HookPhase,
    cwd: Optional[str] = None,
    model: Optional[str] = None,
    thread_id: Optional[str] = None,
    turn_id: Optional[str] = None,
    main_status: Optional[str] = None,
) -> HookContext:
    """Build a hook context stamped with the current time; metadata is copied."""
    return HookContext(
        phase=phase,
        correlation_id=correlation_id,
        ts_ms=_now_millis(),
        thread_id=thread_id,
        turn_id=turn_id,
        cwd=cwd,
        model=model,
        main_status=main_status,
        metadata=copy.deepcopy(metadata),
    )


def _push_validation_issue(
    report: HookReport, hook_name: str, phase: HookPhase, message: str
) -> None:
    report.push(
        HookIssue(
            hook_name=hook_name,
            phase=phase,
            issue_class=HookIssueClass.VALIDATION,
            message=message,
        )
    )


def merge_metadata_delta(
    metadata: Any,
    hook_name: str,
    phase: HookPhase,
    delta: Any,
    report: HookReport,
) -> Any:
    """Merge a metadata delta into metadata and return the result.

    ``None`` leaves metadata as is, a dict is merged key by key (turning
    non-dict metadata into a dict first), anything else is reported.
    """
    if delta is None:
        return metadata
    if isinstance(delta, dict):
        if not isinstance(metadata, dict):
            metadata = {}
        metadata.update(delta)
        return metadata
    _push_validation_issue(report, hook_name, phase, "metadata_delta must be null or object")
    return metadata


def _attachment_is_valid(cwd: str, attachment: Any) -> bool:
    if isinstance(attachment, ImageUrlAttachment):
        return True
    if isinstance(attachment, (AtPathAttachment, LocalImageAttachment, SkillAttachment)):
        path = Path(attachment.path)
        if not path.is_absolute():
            path = Path(cwd) / path
        return path.exists()
    return False


def _apply_prompt_patch(
    state: PromptMutationState,
    cwd: str,
    hook_name: str,
    phase: HookPhase,
    patch: HookPatch,
    report: HookReport,
) -> None:
    if patch.prompt_override is not None:
        state.prompt = patch.prompt_override
    if patch.model_override is not None:
        state.model = patch.model_override
    for attachment in patch.add_attachments:
        if _attachment_is_valid(cwd, attachment):
            state.attachments.append(attachment)
        else:
            _push_validation_issue(
                report, hook_name, phase, "hook attachment path not found; mutation ignored"
            )
    state.metadata = merge_metadata_delta(
        state.metadata, hook_name, phase, patch.metadata_delta, report
    )


def _apply_session_patch(
    state: SessionMutationState,
    hook_name: str,
    phase: HookPhase,
    patch: HookPatch,
    report: HookReport,
) -> None:
    if patch.prompt_override is not None:
        _push_validation_issue(
            report, hook_name, phase, "prompt_override is not allowed in PreSessionStart"
        )
    if patch.add_attachments:
        _push_validation_issue(
            report, hook_name, phase, "add_attachments is not allowed in PreSessionStart"
        )
    if patch.model_override is not None:
        state.model = patch.model_override
    state.metadata = merge_metadata_delta(
        state.metadata, hook_name, phase, patch.metadata_delta, report
    )


def apply_pre_hook_actions_to_prompt(
    state: PromptMutationState,
    cwd: str,
    phase: HookPhase,
    decisions: Iterable[PreHookDecision],
    report: HookReport,
) -> None:
    """Apply pre hook patches to a prompt run in order, reporting rejected parts."""
    for decision in decisions:
        if decision.action.is_noop():
            continue
        _apply_prompt_patch(state, cwd, decision.hook_name, phase, decision.action.patch, report)


def apply_pre_hook_actions_to_session(
    state: SessionMutationState,
    phase: HookPhase,
    decisions: Iterable[PreHookDecision],
    report: HookReport,
) -> None:
    """Apply pre hook patches to a session start in order, reporting rejected parts."""
    for decision in decisions:
        if decision.action.is_noop():
            continue
        _apply_session_patch(state, decision.hook_name, phase, decision.action.patch, report)