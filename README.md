# coclai

This package provides building blocks for agent workflows that keep versioned text artifacts.
The main pieces are:

- content revisions and line-range document patches
- a filesystem artifact store
- an artifact session manager that works through a pluggable adapter
- hook contract types
- prompt-run result and error models

It has no dependencies outside the standard library.

## Modules

- `coclai.hooks` defines the plugin and hook contract:
  - `PluginContractVersion` is compatible with another version when their major numbers are equal. `PluginContractVersion.CURRENT` is 1.0.
  - Phases and contexts: `HookPhase`, `HookContext`.
  - Attachments: `AtPathAttachment`, `ImageUrlAttachment`, `LocalImageAttachment`, `SkillAttachment`.
  - Hook results: `HookPatch` and `HookAction`, created with `HookAction.noop()` or `HookAction.mutate(patch)`.
  - Reporting: `HookIssue` (an exception), `HookIssueClass`, and `HookReport` with its `push` and `is_clean` methods.
  - Abstract base classes `PreHook` and `PostHook`. Each has a `name` property and an async `call(ctx)`.
- `coclai.artifact_types` holds the data types and errors:
  - Data types: `ArtifactMeta`, `ArtifactTaskKind`, `ArtifactTaskSpec`, `DocEdit`, `DocPatch`, `ValidatedPatch`, `SaveMeta`, `ArtifactSession`.
  - Task results: `DocGenerateResult`, `DocEditResult`, `PassthroughResult`.
  - `ArtifactStore`, the abstract store interface.
  - Errors: the `PatchConflict`, `StoreError` and `DomainError` families, and `domain_error_from_store`.
- `coclai.patch`:
  - `compute_revision(text)` returns `sha256:<hex>`.
  - `validate_doc_patch` checks a patch against a text.
  - `apply_doc_patch` applies a validated patch.
  - `map_patch_conflict` maps a patch conflict to a domain error.
- `coclai.store` provides:
  - `FsArtifactStore(root)`, which keeps each artifact in its own directory. Every artifact gets one directory, named by `artifact_key(artifact_id)`.
  - Writes go through a temporary file and a rename. A `.artifact.lock` file guards them; a lock older than 30 seconds counts as stale and is removed.
  - `save_text` raises `StoreConflict` when `meta.previous_revision` is set and differs from the revision of the stored text.
  - `set_meta` raises `StoreConflict` when `meta.revision` differs from the revision of the stored text.
- `coclai.task` does four jobs:
  - `build_turn_prompt` builds the prompt text.
  - `build_turn_start_params` builds the `turn/start` parameters. Approval is fixed to `never` and the sandbox to `readOnly`. The default effort is `medium`.
  - It extracts JSON output from turn results and from assistant text: `extract_output_json`, `extract_direct_output_candidate`, `extract_output_candidate_from_params`, `parse_json_output_text` and `extract_fenced_json`. Assistant text may be plain JSON or JSON inside a ```` ``` ```` fence.
  - `load_or_default_meta` reads an artifact's metadata, or gives defaults when there is none.
- `coclai.adapter` defines the runtime boundary:
  - `ArtifactPluginAdapter` has the async methods `start_thread`, `resume_thread` and `run_turn`, plus `plugin_contract_version`.
  - `ArtifactTurnOutput` is the result of `run_turn`.
- `coclai.artifacts` provides `ArtifactSessionManager(adapter, store)`:
  - `open(artifact_id)` starts a new thread or resumes the recorded one.
  - `run_task(spec)` runs an `ArtifactTaskKind.DOC_GENERATE`, `DOC_EDIT` or `PASSTHROUGH` task.
- `coclai.flow` applies pre-hook decisions to prompt and session state:
  - State types: `PromptMutationState`, `SessionMutationState`, `HookExecutionState`.
  - `PreHookDecision`.
  - Functions: `build_hook_context`, `merge_metadata_delta`, `apply_pre_hook_actions_to_prompt` and `apply_pre_hook_actions_to_session`.
- `coclai.prompt_models`:
  - `PromptRunResult`, `PromptTurnFailure` and `PromptTurnTerminalState`.
  - The `PromptRunError` family: `TurnFailed`, `TurnFailedWithContext`, `TurnInterrupted`, `PromptTimeout`, `TurnCompletedWithoutAssistantText`, `EmptyAssistantText` and `AttachmentNotFound`.
- `coclai.quick`:
  - `fold_quick_run(output, run_error, shutdown_error)` returns `output`. It raises `QuickRunFailed` when the run failed, with any shutdown error carried along. It raises `QuickRunShutdownError` when only the shutdown failed.
  - `absolutize_cwd(cwd)` makes a path absolute without touching the filesystem.

## Install

```
pip install .
pip install ".[test]"   # with test dependencies
```

## Patching a document

```python
from coclai.artifact_types import DocEdit, DocPatch
from coclai.patch import apply_doc_patch, compute_revision, validate_doc_patch

before = "a\nb\nc\n"
patch = DocPatch(
    format="markdown",
    expected_revision=compute_revision(before),
    edits=[DocEdit(start_line=2, end_line=3, replacement="B\n")],
)
validated = validate_doc_patch(before, patch)
assert apply_doc_patch(before, validated) == "a\nB\nc\n"
```

Rules for edits:

- Line numbers start at 1, and `end_line` is exclusive.
- When `start_line` equals `end_line`, the replacement is inserted before that line. Using `line_count + 1` appends.
- Edits must be sorted and must not overlap.

When validation fails it raises a `PatchConflict` subclass: `RevisionMismatch`, `InvalidRange`, `NotSorted` or `Overlap`.

## Running artifact tasks

```python
from coclai.artifacts import ArtifactSessionManager
from coclai.artifact_types import ArtifactTaskKind, ArtifactTaskSpec
from coclai.store import FsArtifactStore

async def main(adapter):
    manager = ArtifactSessionManager(adapter, FsArtifactStore("artifacts"))
    spec = ArtifactTaskSpec(
        artifact_id="doc:readme",
        kind=ArtifactTaskKind.DOC_GENERATE,
        user_goal="Write a short README",
        output_schema={"type": "object"},
    )
    result = await manager.run_task(spec)
    print(result.text)
```

`adapter` can be any implementation of `ArtifactPluginAdapter`. If the adapter's contract major version differs from the current one, the manager raises `IncompatibleContractError` before it calls the adapter. Failures are raised as `DomainError` subclasses:

- `ConflictError`
- `IncompatibleContractError`
- `ValidationError`
- `ParseError`
- `StoreFailure`

## What this package does not do

This package does not connect to an agent app-server, and it does not run prompts by itself:

- It has no client, no JSON-RPC transport and no command-line program.
- It has no adapter that talks to a live runtime.

To run tasks, supply your own `ArtifactPluginAdapter`. The prompt-run models and `fold_quick_run` describe outcomes; they do not produce them.

## Tests

```
pytest
```