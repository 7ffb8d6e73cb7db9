"""
Tests for path construction and the job chains of a run.
"""

import pytest

from prerelease_it.chains import (
    GROUP_AVRO,
    GROUP_BIGQUERY,
    GROUP_PARQUET,
    GROUP_SMB,
    all_files,
    build_chains,
    gcs_path,
)
from prerelease_it.config import RunnerConfig
from prerelease_it.registry import AVRO, PARQUET, SMB_JOIN, SMB_TRANSFORM, SMB_WRITE


def args_by_prefix(invocation, prefix):
    return [a[len(prefix):] for a in invocation.args if a.startswith(prefix)]


class TestGcsPath:

    def test_layout(self):
        assert (
            gcs_path("AvroExample", "specificOut", "abc123")
            == "gs://data-integration-test-us/AvroExample/specificOut/abc123"
        )

    def test_uses_configured_bucket(self):
        config = RunnerConfig(bucket="other-bucket")
        assert gcs_path("X", "y", "r1", config) == "gs://other-bucket/X/y/r1"

    def test_distinct_component_stage_pairs_differ(self):
        pairs = [("A", "out"), ("A", "in"), ("B", "out"), ("B", "in")]
        paths = {gcs_path(c, s, "abc123") for c, s in pairs}
        assert len(paths) == len(pairs)

    def test_all_files(self):
        assert all_files("gs://b/A/out/r") == "gs://b/A/out/r/*"


class TestBuildChains:

    def test_deterministic(self):
        assert build_chains("abc123") == build_chains("abc123")

    def test_run_id_changes_paths(self):
        first = build_chains("abc123")
        second = build_chains("def456")
        assert first != second
        for chain in second:
            for invocation in chain.invocations:
                assert not any("abc123" in a for a in invocation.args)

    def test_leaf_chain_counts(self):
        chains = build_chains("abc123")
        groups = [c.group for c in chains]
        assert groups.count(GROUP_PARQUET) == 4
        assert groups.count(GROUP_AVRO) == 1
        assert groups.count(GROUP_SMB) == 2
        assert groups.count(GROUP_BIGQUERY) == 2

    def test_chain_names_unique(self):
        names = [c.name for c in build_chains("abc123")]
        assert len(set(names)) == len(names)

    def test_output_paths_never_collide(self):
        outputs = {}
        for chain in build_chains("abc123"):
            for invocation in chain.invocations:
                for out in args_by_prefix(invocation, "--output="):
                    outputs.setdefault(out, set()).add(invocation)
        # shared upstream invocations are the same object in several chains
        assert all(len(invs) == 1 for invs in outputs.values())

    def test_downstream_reads_upstream_output(self):
        for chain in build_chains("abc123", groups=[GROUP_PARQUET, GROUP_AVRO]):
            upstream, downstream = chain.invocations
            (written,) = args_by_prefix(upstream, "--output=")
            (read,) = args_by_prefix(downstream, "--input=")
            assert read == written + "/*"

    def test_avro_chain(self):
        (chain,) = build_chains("abc123", groups=[GROUP_AVRO])
        out, read = chain.invocations
        assert out.job == read.job == AVRO
        assert out.args == (
            "--method=specificOut",
            "--output=gs://data-integration-test-us/AvroExample/specificOut/abc123",
        )
        assert read.args == (
            "--method=specificIn",
            "--input=gs://data-integration-test-us/AvroExample/specificOut/abc123/*",
            "--output=gs://data-integration-test-us/AvroExample/specificIn/abc123",
        )

    def test_parquet_readers_share_one_write(self):
        chains = build_chains("abc123", groups=[GROUP_PARQUET])
        avro_readers = [c for c in chains if c.invocations[0].stage == "avroOut"]
        assert {c.invocations[1].stage for c in avro_readers} == {
            "typedIn",
            "avroSpecificIn",
            "avroGenericIn",
        }
        assert len({c.invocations[0] for c in avro_readers}) == 1
        assert all(c.invocations[0].job == PARQUET for c in chains)

    def test_smb_chains(self):
        join, transform = build_chains("abc123", groups=[GROUP_SMB])
        assert join.invocations[0] == transform.invocations[0]
        write = join.invocations[0]
        assert write.job == SMB_WRITE
        assert write.args == (
            "--users=gs://data-integration-test-us/SortMergeBucketWriteExample/users/abc123",
            "--accounts=gs://data-integration-test-us/SortMergeBucketWriteExample/accounts/abc123",
        )
        assert join.invocations[1].job == SMB_JOIN
        assert join.invocations[1].args[-1] == (
            "--output=gs://data-integration-test-us/SortMergeBucketJoinExample/join/abc123"
        )
        assert transform.invocations[1].job == SMB_TRANSFORM
        assert transform.invocations[1].args[:2] == write.args

    def test_bigquery_tables_follow_project(self):
        chains = build_chains("abc123", RunnerConfig(project="p"), groups=[GROUP_BIGQUERY])
        outputs = [c.invocations[0].args for c in chains]
        assert outputs == [
            ("--output=p:gha_it_us.typed_storage",),
            ("--output=p:gha_it_us.typed_row",),
        ]

    def test_group_filter_keeps_group_order(self):
        chains = build_chains("abc123", groups=[GROUP_BIGQUERY, GROUP_AVRO])
        assert [c.group for c in chains] == [GROUP_AVRO, GROUP_BIGQUERY, GROUP_BIGQUERY]

    def test_unknown_group(self):
        with pytest.raises(ValueError, match="Unknown job groups"):
            build_chains("abc123", groups=["orc"])

    def test_empty_run_id(self):
        with pytest.raises(ValueError):
            build_chains("")

    @pytest.mark.parametrize(
        "run_id",
        ["x$(touch y)", "a`b`", 'a"b', "two words", "a/b", "a;b"],
    )
    def test_unsafe_run_id_rejected(self, run_id):
        with pytest.raises(ValueError, match="Invalid run id"):
            build_chains(run_id)

    def test_run_id_characters_allowed(self):
        (chain,) = build_chains("gha-1234_5.2", groups=[GROUP_AVRO])
        assert chain.invocations[0].args[-1].endswith("/specificOut/gha-1234_5.2")
