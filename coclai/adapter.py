"""Adapter boundary between artifact orchestration and the agent runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from .artifact_types import ArtifactTaskSpec
from .hooks import PluginContractVersion


@dataclass
class ArtifactTurnOutput:
    """Turn id (if known) and the structured output of one turn."""

    turn_id: Optional[str]
    output: Any


class ArtifactPluginAdapter(ABC):
    """Starts or resumes threads and runs turns for the artifact manager.

    Implementations raise DomainError subclasses on failure.
    """

    def plugin_contract_version(self) -> PluginContractVersion:
        return PluginContractVersion.CURRENT

    @abstractmethod
    async def start_thread(self) -> str:
        """Start a new thread and return its id."""

    @abstractmethod
    async def resume_thread(self, thread_id: str) -> str:
        """Resume an existing thread and return its id."""

    @abstractmethod
    async def run_turn(
        self, thread_id: str, prompt: str, spec: ArtifactTaskSpec
    ) -> ArtifactTurnOutput:
        """Run one turn with the given prompt and return its output."""