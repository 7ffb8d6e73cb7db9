# chains.py
from __future__ import annotations

import re
from typing import List

from .config import RunnerConfig
from .model import JobChain, JobInvocation
from .registry import (
    AVRO,
    PARQUET,
    SMB_JOIN,
    SMB_TRANSFORM,
    SMB_WRITE,
    TYPED_BIGQUERY,
    TYPED_STORAGE_BIGQUERY,
)

GROUP_PARQUET = "parquet"
GROUP_AVRO = "avro"
GROUP_SMB = "smb"
GROUP_BIGQUERY = "bigquery"

GROUPS = [GROUP_PARQUET, GROUP_AVRO, GROUP_SMB, GROUP_BIGQUERY]

GROUP_TITLES = {
    GROUP_PARQUET: "Parquet IO",
    GROUP_AVRO: "Avro IO",
    GROUP_SMB: "SMB IO",
    GROUP_BIGQUERY: "BigQuery",
}

BIGQUERY_DATASET = "gha_it_us"

# run ids end up in storage paths and launcher command lines
RUN_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]+")


def gcs_path(component: str, stage: str, run_id: str, config: RunnerConfig | None = None) -> str:
    """<prefix>/<component>/<stage>/<run_id>"""
    config = config or RunnerConfig()
    return f"{config.storage_prefix}/{component}/{stage}/{run_id}"


def all_files(path: str) -> str:
    """Input pattern matching every object a job wrote under `path`."""
    return f"{path}/*"


def _method(job: str, method: str, *args: str) -> JobInvocation:
    return JobInvocation(job=job, args=(f"--method={method}", *args), stage=method)


# ----------------------------------------------------------------------
# Job groups
# ----------------------------------------------------------------------

def parquet_chains(run_id: str, config: RunnerConfig | None = None) -> List[JobChain]:
    def path(stage: str) -> str:
        return gcs_path(PARQUET, stage, run_id, config)

    avro_out = path("avroOut")
    example_out = path("exampleOut")

    avro_write = _method(PARQUET, "avroOut", f"--output={avro_out}")
    example_write = _method(PARQUET, "exampleOut", f"--output={example_out}")

    chains = [
        JobChain(
            name=f"parquet/{reader}",
            group=GROUP_PARQUET,
            invocations=(
                avro_write,
                _method(PARQUET, reader, f"--input={all_files(avro_out)}", f"--output={path(reader)}"),
            ),
        )
        for reader in ("typedIn", "avroSpecificIn", "avroGenericIn")
    ]
    chains.append(
        JobChain(
            name="parquet/exampleIn",
            group=GROUP_PARQUET,
            invocations=(
                example_write,
                _method(
                    PARQUET,
                    "exampleIn",
                    f"--input={all_files(example_out)}",
                    f"--output={path('exampleIn')}",
                ),
            ),
        )
    )
    return chains


def avro_chains(run_id: str, config: RunnerConfig | None = None) -> List[JobChain]:
    specific_out = gcs_path(AVRO, "specificOut", run_id, config)
    specific_in = gcs_path(AVRO, "specificIn", run_id, config)

    return [
        JobChain(
            name="avro/specificIn",
            group=GROUP_AVRO,
            invocations=(
                _method(AVRO, "specificOut", f"--output={specific_out}"),
                _method(
                    AVRO,
                    "specificIn",
                    f"--input={all_files(specific_out)}",
                    f"--output={specific_in}",
                ),
            ),
        )
    ]


def smb_chains(run_id: str, config: RunnerConfig | None = None) -> List[JobChain]:
    users = gcs_path(SMB_WRITE, "users", run_id, config)
    accounts = gcs_path(SMB_WRITE, "accounts", run_id, config)
    inputs = (f"--users={users}", f"--accounts={accounts}")

    write = JobInvocation(job=SMB_WRITE, args=inputs, stage="write")

    return [
        JobChain(
            name="smb/join",
            group=GROUP_SMB,
            invocations=(
                write,
                JobInvocation(
                    job=SMB_JOIN,
                    args=(*inputs, f"--output={gcs_path(SMB_JOIN, 'join', run_id, config)}"),
                    stage="join",
                ),
            ),
        ),
        JobChain(
            name="smb/transform",
            group=GROUP_SMB,
            invocations=(
                write,
                JobInvocation(
                    job=SMB_TRANSFORM,
                    args=(*inputs, f"--output={gcs_path(SMB_TRANSFORM, 'transform', run_id, config)}"),
                    stage="transform",
                ),
            ),
        ),
    ]


def bigquery_chains(run_id: str, config: RunnerConfig | None = None) -> List[JobChain]:
    # Tables are fixed; every run overwrites them.
    project = (config or RunnerConfig()).project

    def table(name: str) -> str:
        return f"{project}:{BIGQUERY_DATASET}.{name}"

    return [
        JobChain(
            name="bigquery/typed_storage",
            group=GROUP_BIGQUERY,
            invocations=(
                JobInvocation(
                    job=TYPED_STORAGE_BIGQUERY,
                    args=(f"--output={table('typed_storage')}",),
                    stage="typed_storage",
                ),
            ),
        ),
        JobChain(
            name="bigquery/typed_row",
            group=GROUP_BIGQUERY,
            invocations=(
                JobInvocation(
                    job=TYPED_BIGQUERY,
                    args=(f"--output={table('typed_row')}",),
                    stage="typed_row",
                ),
            ),
        ),
    ]


GROUP_BUILDERS = {
    GROUP_PARQUET: parquet_chains,
    GROUP_AVRO: avro_chains,
    GROUP_SMB: smb_chains,
    GROUP_BIGQUERY: bigquery_chains,
}


def build_chains(
    run_id: str,
    config: RunnerConfig | None = None,
    groups: List[str] | None = None,
) -> List[JobChain]:
    """
    Every leaf chain of the selected groups (all groups by default).

    Pure: the same run id and config always produce equal chains.
    """
    if not run_id or not RUN_ID_PATTERN.fullmatch(run_id):
        raise ValueError(
            f"Invalid run id {run_id!r}: use letters, digits, '.', '_' or '-'"
        )

    selected = list(groups) if groups else GROUPS
    unknown = [g for g in selected if g not in GROUP_BUILDERS]
    if unknown:
        raise ValueError(f"Unknown job groups: {unknown}. Known groups: {GROUPS}")

    chains: List[JobChain] = []
    for group in GROUPS:
        if group in selected:
            chains.extend(GROUP_BUILDERS[group](run_id, config))
    return chains
