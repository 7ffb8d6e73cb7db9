# registry.py
from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from .config import DEFAULT_LAUNCHER
from .ui.console import get_console

EXAMPLES_PACKAGE = "com.spotify.scio.examples.extra"

# Example jobs (simple names double as the storage component name)
AVRO = "AvroExample"
PARQUET = "ParquetExample"
SMB_WRITE = "SortMergeBucketWriteExample"
SMB_JOIN = "SortMergeBucketJoinExample"
SMB_TRANSFORM = "SortMergeBucketTransformExample"
TYPED_BIGQUERY = "TypedBigQueryTornadoes"
TYPED_STORAGE_BIGQUERY = "TypedStorageBigQueryTornadoes"

EXAMPLE_JOBS: Dict[str, str] = {
    name: f"{EXAMPLES_PACKAGE}.{name}"
    for name in (
        AVRO,
        PARQUET,
        SMB_WRITE,
        SMB_JOIN,
        SMB_TRANSFORM,
        TYPED_BIGQUERY,
        TYPED_STORAGE_BIGQUERY,
    )
}

LaunchFn = Callable[[List[str]], None]


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class LaunchFailure(Exception):
    main: str
    cmd: str
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        msg = f"{self.main} exited with {self.exit_code}: {self.cmd}"
        if self.output:
            msg += "\n" + self.output
        return msg


class LauncherClosed(RuntimeError):
    """Raised for jobs started after, or stopped by, ShellLauncher.terminate()."""


# ----------------------------------------------------------------------
# Shell launcher
# ----------------------------------------------------------------------

class ShellLauncher:
    """
    Starts an example's main class through a shell command template.

    The template receives, all shell-quoted:
      {main}  fully qualified main class
      {args}  job arguments, one quoted word each
      {line}  main class and arguments as a single word (for `sbt "runMain "{line}`)
    Placeholders must not be wrapped in quotes again. The call blocks until the
    command exits; the job itself runs on the cloud runner.
    """

    def __init__(
        self,
        template: str = DEFAULT_LAUNCHER,
        *,
        cwd: str | None = None,
        env: Optional[Dict[str, str]] = None,
        output_tail: int = 4000,
    ):
        self.template = template
        self.cwd = cwd
        self.env = env or {}
        self.output_tail = output_tail
        self._lock = threading.Lock()
        self._procs: Set[subprocess.Popen] = set()
        self._closed = False

    def command(self, main: str, args: Iterable[str]) -> str:
        args = list(args)
        return self.template.format(
            main=shlex.quote(main),
            args=" ".join(shlex.quote(a) for a in args),
            line=shlex.quote(" ".join([main, *args])),
        )

    def launch(self, main: str, args: List[str]) -> None:
        cmd = self.command(main, args)
        get_console().print_debug(f"$ {cmd}")

        env = os.environ.copy()
        env.update(self.env)

        with self._lock:
            if self._closed:
                raise LauncherClosed(f"Launcher terminated, not starting {main}")
            proc = subprocess.Popen(
                cmd,
                shell=True,
                cwd=self.cwd,
                env=env,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,  # own process group, see terminate()
            )
            self._procs.add(proc)

        try:
            output, _ = proc.communicate()
        finally:
            with self._lock:
                self._procs.discard(proc)

        if proc.returncode != 0:
            with self._lock:
                closed = self._closed
            if closed:
                raise LauncherClosed(f"Launcher terminated while running {main}")
            raise LaunchFailure(
                main=main,
                cmd=cmd,
                exit_code=proc.returncode,
                output=(output or "")[-self.output_tail:],
            )

    def terminate(self) -> int:
        """
        Stop local launcher processes and refuse new launches.

        Jobs already submitted to the cloud runner keep running there.
        Returns the number of processes signalled.
        """
        with self._lock:
            self._closed = True
            procs = list(self._procs)

        for proc in procs:
            try:
                os.killpg(proc.pid, signal.SIGTERM)
            except ProcessLookupError:
                pass
        return len(procs)

    def for_job(self, main: str) -> LaunchFn:
        def _launch(args: List[str]) -> None:
            self.launch(main, args)
        return _launch


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------

@dataclass
class JobRegistry:
    """Explicit job name -> launch function table."""
    jobs: Dict[str, LaunchFn] = field(default_factory=dict)

    def register(self, name: str, fn: LaunchFn) -> None:
        if name in self.jobs:
            raise ValueError(f"Job '{name}' is already registered")
        self.jobs[name] = fn

    def resolve(self, name: str) -> LaunchFn:
        try:
            return self.jobs[name]
        except KeyError:
            raise KeyError(
                f"Unknown job '{name}'. Known jobs: {sorted(self.jobs)}"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self.jobs

    def names(self) -> List[str]:
        return sorted(self.jobs)


def default_registry(launcher: ShellLauncher) -> JobRegistry:
    """Registry of every example job, all started through `launcher`."""
    registry = JobRegistry()
    for name, main in EXAMPLE_JOBS.items():
        registry.register(name, launcher.for_job(main))
    return registry
