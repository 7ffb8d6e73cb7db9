# runner.py
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .chains import GROUP_TITLES
from .model import JobChain, JobInvocation
from .registry import JobRegistry, LauncherClosed
from .ui.console import get_console


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class JobInvocationFailure(Exception):
    """An external job raised or exited non-zero."""
    job: str
    chain: str
    cause: BaseException

    def __str__(self) -> str:
        return f"Dataflow job {self.job} failed with {type(self.cause).__name__}: {self.cause}"


@dataclass
class OrchestrationTimeout(Exception):
    timeout: float
    pending: List[str]

    def __str__(self) -> str:
        return (
            f"Dataflow jobs did not finish within {self.timeout:g}s; "
            f"still running: {', '.join(self.pending)}"
        )


@dataclass
class AggregateFailure(Exception):
    """
    Overall run outcome when at least one chain failed.

    `failures` are in the order the join observed them; the first one is
    also attached as `__cause__` by `run_all`.
    """
    failures: List[JobInvocationFailure]
    results: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = ["At least one Dataflow job failed"]
        for failure in self.failures:
            lines.append(f"  [{failure.chain}] {failure}".split("\n")[0])
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

class InvocationTable:
    """
    Launches each distinct invocation once per run.

    Chains sharing an upstream invocation (same job and arguments) wait on the
    first launch and see its outcome.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._futures: Dict[JobInvocation, Future] = {}

    def run_once(self, invocation: JobInvocation, chain: JobChain, registry: JobRegistry,
                 baseline_args: Sequence[str]) -> None:
        with self._lock:
            fut = self._futures.get(invocation)
            owner = fut is None
            if owner:
                fut = Future()
                fut.set_running_or_notify_cancel()
                self._futures[invocation] = fut

        if not owner:
            fut.result()
            return

        try:
            _invoke(invocation, chain, registry, baseline_args)
        except BaseException as e:
            fut.set_exception(e)
            raise
        fut.set_result(None)

    def launched(self) -> List[JobInvocation]:
        with self._lock:
            return list(self._futures)


def _invoke(invocation: JobInvocation, chain: JobChain, registry: JobRegistry,
            baseline_args: Sequence[str]) -> None:
    console = get_console()
    launch = registry.resolve(invocation.job)

    console.print_job_start(invocation.label, chain.name)
    try:
        launch([*baseline_args, *invocation.args])
    except Exception as e:
        # a terminated launcher means the run was abandoned; stay quiet
        if not isinstance(e, LauncherClosed):
            console.print_job_failure(invocation.label, chain.name, str(e))
        raise JobInvocationFailure(job=invocation.job, chain=chain.name, cause=e) from e
    console.print_job_success(invocation.label, chain.name)


def run_chain(
    chain: JobChain,
    registry: JobRegistry,
    baseline_args: Sequence[str] = (),
    table: InvocationTable | None = None,
) -> str:
    """
    Run the invocations of `chain` in order.

    Stops at the first failing invocation and raises its JobInvocationFailure;
    later invocations are never launched.
    """
    table = table or InvocationTable()

    for idx, invocation in enumerate(chain.invocations):
        try:
            table.run_once(invocation, chain, registry, baseline_args)
        except JobInvocationFailure as e:
            skipped = [i.label for i in chain.invocations[idx + 1:]]
            if skipped and not isinstance(e.cause, LauncherClosed):
                get_console().print_chain_aborted(chain.name, skipped)
            raise
    return "ok"


def validate_chains(chains: Iterable[JobChain], registry: JobRegistry) -> None:
    names = [c.name for c in chains]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate chain names found: {dupes}")

    for chain in chains:
        for invocation in chain.invocations:
            if invocation.job not in registry:
                raise ValueError(
                    f"Chain '{chain.name}' invokes unknown job '{invocation.job}'. "
                    f"Known jobs: {registry.names()}"
                )


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_all(
    chains: Sequence[JobChain],
    registry: JobRegistry,
    *,
    baseline_args: Sequence[str] = (),
    timeout: Optional[float] = None,
    max_workers: int | None = None,
) -> Dict[str, str]:
    """
    Run every chain concurrently and join them.

    - one worker per chain, chains never wait for each other except on
      shared invocations
    - a failing chain does not cancel its siblings
    - returns {chain: "ok"} when all chains succeeded
    - raises AggregateFailure when any chain failed, OrchestrationTimeout
      when the join did not finish within `timeout` seconds
    """
    chains = list(chains)
    validate_chains(chains, registry)
    if not chains:
        return {}

    console = get_console()
    table = InvocationTable()

    for group in dict.fromkeys(c.group for c in chains):
        console.print_group_started(GROUP_TITLES.get(group, group))

    pool = ThreadPoolExecutor(
        max_workers=max_workers or len(chains),
        thread_name_prefix="chain",
    )
    abandon = False
    try:
        futures: Dict[Future, JobChain] = {
            pool.submit(run_chain, chain, registry, baseline_args, table): chain
            for chain in chains
        }

        done, not_done = wait(futures, timeout=timeout)
        if not_done:
            pending = sorted(futures[f].name for f in not_done)
            raise OrchestrationTimeout(timeout=timeout, pending=pending)

        results: Dict[str, str] = {}
        failures: List[JobInvocationFailure] = []
        for fut, chain in futures.items():
            exc = fut.exception()
            if exc is None:
                results[chain.name] = fut.result()
            elif isinstance(exc, JobInvocationFailure):
                results[chain.name] = "failed"
                # chains sharing a failed invocation re-raise the same error
                if not any(exc is f for f in failures):
                    failures.append(exc)
            else:
                raise exc
    except BaseException:
        # Timeout or Ctrl-C: running workers are left to the caller
        # (see ShellLauncher.terminate).
        abandon = True
        raise
    finally:
        pool.shutdown(wait=not abandon, cancel_futures=True)

    console.print_info(f"Launched {len(table.launched())} jobs for {len(chains)} chains")

    if failures:
        raise AggregateFailure(failures=failures, results=results) from failures[0]
    return results
