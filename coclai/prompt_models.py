"""Results and errors of a single prompt run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class PromptRunResult:
    thread_id: str
    turn_id: str
    assistant_text: str


class PromptTurnTerminalState(Enum):
    FAILED = "failed"
    COMPLETED_WITHOUT_ASSISTANT_TEXT = "completed_without_assistant_text"


@dataclass(frozen=True)
class PromptTurnFailure:
    terminal_state: PromptTurnTerminalState
    source_method: str
    code: Optional[int]
    message: str

    def __str__(self) -> str:
        head = f"terminal={self.terminal_state.value} source_method={self.source_method}"
        if self.code is not None:
            return f"{head} code={self.code} message={self.message}"
        return f"{head} message={self.message}"


class PromptRunError(Exception):
    """A prompt run did not produce assistant text."""


@dataclass
class TurnFailedWithContext(PromptRunError):
    failure: PromptTurnFailure

    def __str__(self) -> str:
        return f"turn failed: {self.failure}"


@dataclass
class TurnFailed(PromptRunError):
    def __str__(self) -> str:
        return "turn failed"


@dataclass
class TurnInterrupted(PromptRunError):
    def __str__(self) -> str:
        return "turn interrupted"


@dataclass
class PromptTimeout(PromptRunError):
    """The turn did not finish within ``timeout`` seconds."""

    timeout: float

    def __str__(self) -> str:
        return f"turn timed out after {self.timeout:g}s"


@dataclass
class TurnCompletedWithoutAssistantText(PromptRunError):
    failure: PromptTurnFailure

    def __str__(self) -> str:
        return f"turn completed without assistant text: {self.failure}"


@dataclass
class EmptyAssistantText(PromptRunError):
    def __str__(self) -> str:
        return "assistant text is empty"


@dataclass
class AttachmentNotFound(PromptRunError):
    path: str

    def __str__(self) -> str:
        return f"attachment not found: {self.path}"