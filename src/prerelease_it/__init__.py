from .chains import build_chains, gcs_path
from .config import RunnerConfig
from .model import JobChain, JobInvocation, RunContext
from .registry import JobRegistry, ShellLauncher, default_registry
from .runner import AggregateFailure, JobInvocationFailure, OrchestrationTimeout, run_all, run_chain

__all__ = [
    "build_chains",
    "gcs_path",
    "RunnerConfig",
    "JobChain",
    "JobInvocation",
    "RunContext",
    "JobRegistry",
    "ShellLauncher",
    "default_registry",
    "AggregateFailure",
    "JobInvocationFailure",
    "OrchestrationTimeout",
    "run_all",
    "run_chain",
]
