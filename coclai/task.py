"""Prompt building, turn parameters and structured output extraction for artifact tasks."""

from __future__ import annotations

import copy
import json
from typing import Any, Iterable, Optional, Sequence

from .artifact_types import (
    ArtifactMeta,
    ArtifactStore,
    ArtifactTaskSpec,
    ParseError,
    StoreNotFound,
)
from .patch import compute_revision

DEFAULT_ARTIFACT_REASONING_EFFORT = "medium"
TURN_OUTPUT_FIELDS = ("output",)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant: {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _render(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _effort_wire(effort: Any) -> str:
    return getattr(effort, "value", effort)


def build_turn_prompt(
    spec: ArtifactTaskSpec, format: str, revision: str, current_text: str
) -> str:
    """Build the deterministic prompt text for one artifact turn."""
    parts = [
        "ROLE:\n",
        "You are a documentation/rules engine. Do NOT use tools. "
        "Output JSON matching the schema only.\n\n",
        "GOAL:\n",
        spec.user_goal.strip(),
        "\n\n",
        "CONSTRAINTS:\n",
    ]
    if spec.constraints:
        parts.extend(f"- {constraint}\n" for constraint in spec.constraints)
    else:
        parts.append("- none\n")
    parts.append("\n")

    parts.append("CONTEXT:\n")
    parts.append(f"FORMAT: {format}\n")
    parts.append(f"REVISION: {revision}\n")

    if spec.examples:
        parts.append("EXAMPLES:\n")
        parts.extend(f"- {example}\n" for example in spec.examples)

    parts.append("CURRENT_TEXT_BEGIN\n")
    parts.append(current_text)
    if not current_text.endswith("\n"):
        parts.append("\n")
    parts.append("CURRENT_TEXT_END\n")
    return "".join(parts)


def build_turn_start_params(thread_id: str, prompt: str, spec: ArtifactTaskSpec) -> dict:
    """Build turn/start params with the fixed safe policy (never + read only)."""
    params: dict = {
        "threadId": thread_id,
        "input": [{"type": "text", "text": prompt}],
        "approvalPolicy": "never",
        "sandboxPolicy": {"type": "readOnly"},
    }
    if spec.model is not None:
        params["model"] = spec.model
    effort = spec.effort if spec.effort is not None else DEFAULT_ARTIFACT_REASONING_EFFORT
    params["effort"] = _effort_wire(effort)
    if spec.summary is not None:
        params["summary"] = spec.summary
    params["outputSchema"] = copy.deepcopy(spec.output_schema)
    return params


def _has_required_keys(value: Any, required_keys: Iterable[str]) -> bool:
    return isinstance(value, dict) and all(key in value for key in required_keys)


def normalize_output_candidate(candidate: Any) -> Any:
    """Parse a string candidate as JSON; accept objects and arrays as they are."""
    if isinstance(candidate, str):
        try:
            return _loads(candidate)
        except ValueError as err:
            raise ParseError(f"output JSON parse failed: {err}") from err
    if isinstance(candidate, (dict, list)):
        return copy.deepcopy(candidate)
    raise ParseError(
        f"output candidate must be object/array/string JSON: {_render(candidate)}"
    )


def extract_output_json(turn_result: Any, required_keys: Sequence[str]) -> Any:
    """Find the object holding all required keys, at the top or under ``output``."""
    if _has_required_keys(turn_result, required_keys):
        return copy.deepcopy(turn_result)

    if isinstance(turn_result, dict):
        for key in TURN_OUTPUT_FIELDS:
            if key in turn_result:
                parsed = normalize_output_candidate(turn_result[key])
                if _has_required_keys(parsed, required_keys):
                    return parsed

    raise ParseError(
        f"turn output missing required keys {json.dumps(list(required_keys))}: "
        f"{_render(turn_result)}"
    )


def extract_direct_output_candidate(turn_start_result: Any) -> Optional[Any]:
    """Output carried directly by a turn/start result, if any."""
    if isinstance(turn_start_result, dict):
        for key in TURN_OUTPUT_FIELDS:
            if key in turn_start_result:
                return normalize_output_candidate(turn_start_result[key])

    if isinstance(turn_start_result, str):
        return normalize_output_candidate(turn_start_result)

    if not isinstance(turn_start_result, dict):
        return None
    if "turn" in turn_start_result or "thread" in turn_start_result:
        return None
    return copy.deepcopy(turn_start_result)


def extract_output_candidate_from_params(params: Any) -> Optional[Any]:
    """Output carried by notification params, directly or under ``item``."""
    if not isinstance(params, dict):
        return None
    for key in TURN_OUTPUT_FIELDS:
        if key in params:
            return normalize_output_candidate(params[key])
    item = params.get("item")
    if isinstance(item, dict):
        for key in TURN_OUTPUT_FIELDS:
            if key in item:
                return normalize_output_candidate(item[key])
    return None


def _lines(text: str) -> list:
    pieces = text.split("\n")
    if pieces and pieces[-1] == "":
        pieces.pop()
    return [piece[:-1] if piece.endswith("\r") else piece for piece in pieces]


def extract_fenced_json(text: str) -> Optional[str]:
    """Body of a leading ``` code fence, or None when there is none or it is empty."""
    if not text.startswith("```"):
        return None
    lines = _lines(text)
    if not lines or not lines[0].startswith("```"):
        return None

    out = ""
    for line in lines[1:]:
        if line.startswith("```"):
            break
        if out:
            out += "\n"
        out += line
    return out or None


def parse_json_output_text(text: str) -> Any:
    """Parse assistant text as JSON, plain or inside a code fence."""
    trimmed = text.strip()
    if not trimmed:
        raise ParseError("turn completed without structured output")
    try:
        return _loads(trimmed)
    except ValueError:
        pass
    fenced = extract_fenced_json(trimmed)
    if fenced is not None:
        try:
            return _loads(fenced)
        except ValueError:
            pass
    raise ParseError(f"turn output is not valid JSON: {trimmed}")


def load_or_default_meta(store: ArtifactStore, artifact_id: str) -> ArtifactMeta:
    """Stored metadata with its revision synced to the text, or defaults when missing."""
    try:
        text = store.load_text(artifact_id)
    except StoreNotFound:
        text = ""
    actual_revision = compute_revision(text)

    try:
        meta = store.get_meta(artifact_id)
    except StoreNotFound:
        return ArtifactMeta(
            title=artifact_id,
            format="markdown",
            revision=actual_revision,
            runtime_thread_id=None,
        )
    if meta.revision != actual_revision:
        meta.revision = actual_revision
    return meta