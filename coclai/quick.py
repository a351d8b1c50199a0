"""Outcome folding and path helpers for one-shot prompt runs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, TypeVar, Union

from .prompt_models import PromptRunError

T = TypeVar("T")


class QuickRunError(Exception):
    """A one-shot run (connect, run, shutdown) did not finish cleanly."""


@dataclass(eq=False)
class QuickRunFailed(QuickRunError):
    """The prompt run failed; a shutdown error that followed is carried along."""

    run: PromptRunError
    shutdown: Optional[BaseException] = None

    def __str__(self) -> str:
        return f"prompt run failed: {self.run}; shutdown_error={self.shutdown!r}"


@dataclass(eq=False)
class QuickRunShutdownError(QuickRunError):
    """The prompt run succeeded but shutting the runtime down failed."""

    shutdown: BaseException

    def __str__(self) -> str:
        return f"runtime shutdown failed after successful run: {self.shutdown}"


def fold_quick_run(
    output: Optional[T],
    run_error: Optional[PromptRunError] = None,
    shutdown_error: Optional[BaseException] = None,
) -> T:
    """Combine a run outcome and a shutdown outcome into one result.

    Returns ``output`` when both steps succeeded. A run error wins over a
    shutdown error and is raised as QuickRunFailed carrying both; a lone
    shutdown error is raised as QuickRunShutdownError.
    """
    if run_error is not None:
        raise QuickRunFailed(run=run_error, shutdown=shutdown_error) from run_error
    if shutdown_error is not None:
        raise QuickRunShutdownError(shutdown=shutdown_error) from shutdown_error
    return output


def absolutize_cwd(cwd: Union[str, os.PathLike]) -> str:
    """Make a working directory absolute without touching the filesystem.

    Relative paths are joined onto the process's current directory; if that
    cannot be determined the path is returned unchanged.
    """
    path = os.fspath(cwd)
    if os.path.isabs(path):
        return path
    try:
        current = os.getcwd()
    except OSError:
        return path
    return os.path.join(current, path)