"""Plugin contract and hook types shared by runs, sessions and turns."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union


@dataclass(frozen=True)
class PluginContractVersion:
    """Version of the plugin contract; majors must match to be compatible."""

    major: int
    minor: int

    CURRENT: ClassVar["PluginContractVersion"]

    def is_compatible_with(self, other: "PluginContractVersion") -> bool:
        return self.major == other.major


PluginContractVersion.CURRENT = PluginContractVersion(1, 0)


class HookPhase(Enum):
    PRE_RUN = "PreRun"
    POST_RUN = "PostRun"
    PRE_SESSION_START = "PreSessionStart"
    POST_SESSION_START = "PostSessionStart"
    PRE_TURN = "PreTurn"
    POST_TURN = "PostTurn"


@dataclass
class HookContext:
    """What a hook sees about the run it is called for."""

    phase: HookPhase
    correlation_id: str
    ts_ms: int
    thread_id: Optional[str] = None
    turn_id: Optional[str] = None
    cwd: Optional[str] = None
    model: Optional[str] = None
    main_status: Optional[str] = None
    metadata: Any = None


@dataclass(frozen=True)
class AtPathAttachment:
    path: str
    placeholder: Optional[str] = None


@dataclass(frozen=True)
class ImageUrlAttachment:
    url: str


@dataclass(frozen=True)
class LocalImageAttachment:
    path: str


@dataclass(frozen=True)
class SkillAttachment:
    name: str
    path: str


HookAttachment = Union[
    AtPathAttachment, ImageUrlAttachment, LocalImageAttachment, SkillAttachment
]


@dataclass
class HookPatch:
    """Mutation a pre hook asks for."""

    prompt_override: Optional[str] = None
    model_override: Optional[str] = None
    add_attachments: list = field(default_factory=list)
    metadata_delta: Any = None


@dataclass(frozen=True)
class HookAction:
    """Result of a pre hook: either no-op or a patch to apply."""

    patch: Optional[HookPatch] = None

    @classmethod
    def noop(cls) -> "HookAction":
        return cls(None)

    @classmethod
    def mutate(cls, patch: HookPatch) -> "HookAction":
        return cls(patch)

    def is_noop(self) -> bool:
        return self.patch is None


class HookIssueClass(Enum):
    VALIDATION = "Validation"
    EXECUTION = "Execution"
    TIMEOUT = "Timeout"
    INTERNAL = "Internal"


@dataclass
class HookIssue(Exception):
    """A problem reported by or about a hook; hooks raise it to report failure."""

    hook_name: str
    phase: HookPhase
    issue_class: HookIssueClass
    message: str

    def __str__(self) -> str:
        return (
            f"{self.hook_name} ({self.phase.value}, {self.issue_class.value}): "
            f"{self.message}"
        )


@dataclass
class HookReport:
    """Collected hook issues for one run."""

    issues: list = field(default_factory=list)

    def push(self, issue: HookIssue) -> None:
        self.issues.append(issue)

    def is_clean(self) -> bool:
        return not self.issues


class PreHook(ABC):
    """Hook run before a phase; may return a mutation."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable hook name used in reports."""

    @abstractmethod
    async def call(self, ctx: HookContext) -> HookAction:
        """Inspect the context; raise HookIssue on failure."""


class PostHook(ABC):
    """Hook run after a phase."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable hook name used in reports."""

    @abstractmethod
    async def call(self, ctx: HookContext) -> None:
        """Observe the context; raise HookIssue on failure."""