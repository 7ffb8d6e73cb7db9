"""
Shared fixtures: an in-process job registry standing in for the cloud runner.
"""

import threading
from typing import List, Optional, Tuple

import pytest

from prerelease_it.registry import EXAMPLE_JOBS, JobRegistry
from prerelease_it.ui.console import Console, set_console


def method_of(args: List[str]) -> Optional[str]:
    for arg in args:
        if arg.startswith("--method="):
            return arg.split("=", 1)[1]
    return None


class FakeJobs:
    """
    Records every launch as (job, method, args).

    `fail` holds (job, method) pairs that raise; `block` holds (job, method)
    pairs that wait on `release` before returning.
    """

    def __init__(self, fail=(), block=()):
        self.fail = set(fail)
        self.block = set(block)
        self.release = threading.Event()
        self.calls: List[Tuple[str, Optional[str], List[str]]] = []
        self._lock = threading.Lock()

    def _launcher(self, job: str):
        def launch(args: List[str]) -> None:
            key = (job, method_of(args))
            with self._lock:
                self.calls.append((job, key[1], list(args)))
            if key in self.block:
                self.release.wait(timeout=10)
            if key in self.fail:
                raise RuntimeError(f"{job} {key[1]} exploded")
        return launch

    def registry(self) -> JobRegistry:
        registry = JobRegistry()
        for name in EXAMPLE_JOBS:
            registry.register(name, self._launcher(name))
        return registry

    def launched(self, job: str, method: Optional[str] = None) -> int:
        return sum(1 for j, m, _ in self.calls if j == job and (method is None or m == method))

    def order(self) -> List[Tuple[str, Optional[str]]]:
        return [(j, m) for j, m, _ in self.calls]


@pytest.fixture(autouse=True)
def console():
    c = Console(debug=False)
    set_console(c)
    return c


@pytest.fixture
def fake_jobs():
    jobs = FakeJobs()
    yield jobs
    jobs.release.set()
