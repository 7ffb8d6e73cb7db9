# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from .config import RunnerConfig


@dataclass(frozen=True)
class JobInvocation:
    """One launch of an example job: job name + job-specific arguments."""
    job: str
    args: Tuple[str, ...] = ()
    stage: str | None = None   # short label for log lines (usually the --method value)

    @property
    def label(self) -> str:
        return f"{self.job}:{self.stage}" if self.stage else self.job


@dataclass(frozen=True)
class JobChain:
    """
    A named, ordered sequence of invocations.

    Invocation n+1 only starts after invocation n succeeded. Chains of the same
    group may share leading invocations; those are launched once per run.
    """
    name: str
    group: str
    invocations: Tuple[JobInvocation, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.invocations:
            raise ValueError(f"Chain '{self.name}' has no invocations")


@dataclass(frozen=True)
class RunContext:
    run_id: str
    config: RunnerConfig = field(default_factory=RunnerConfig)
