# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

DEFAULT_LAUNCHER = 'sbt "scio-examples/runMain "{line}'
DEFAULT_TIMEOUT = 60 * 60  # seconds

ENV_PREFIX = "PRERELEASE_IT_"


@dataclass(frozen=True)
class RunnerConfig:
    """Runner settings shared by every job of a run."""
    runner: str = "DataflowRunner"
    project: str = "data-integration-test"
    region: str = "us-central1"
    temp_location: str = "gs://dataflow-tmp-us-central1/gha"
    bucket: str = "data-integration-test-us"
    timeout: float = DEFAULT_TIMEOUT
    launcher: str = DEFAULT_LAUNCHER

    @property
    def storage_prefix(self) -> str:
        return f"gs://{self.bucket}"

    def baseline_args(self) -> List[str]:
        """Arguments passed to every job before its own arguments."""
        return [
            f"--runner={self.runner}",
            f"--project={self.project}",
            f"--region={self.region}",
            f"--tempLocation={self.temp_location}",
        ]

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        """Defaults overridden by PRERELEASE_IT_* environment variables."""
        defaults = cls()
        raw_timeout = os.environ.get(ENV_PREFIX + "TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout is not None else defaults.timeout
        except ValueError:
            raise ValueError(
                f"{ENV_PREFIX}TIMEOUT must be a number of seconds, got {raw_timeout!r}"
            ) from None
        return cls(
            runner=os.environ.get(ENV_PREFIX + "RUNNER", defaults.runner),
            project=os.environ.get(ENV_PREFIX + "PROJECT", defaults.project),
            region=os.environ.get(ENV_PREFIX + "REGION", defaults.region),
            temp_location=os.environ.get(ENV_PREFIX + "TEMP_LOCATION", defaults.temp_location),
            bucket=os.environ.get(ENV_PREFIX + "BUCKET", defaults.bucket),
            timeout=timeout,
            launcher=os.environ.get(ENV_PREFIX + "LAUNCHER", defaults.launcher),
        )
