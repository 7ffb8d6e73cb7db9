# cli.py
from __future__ import annotations

import sys
from dataclasses import replace

import click

from prerelease_it.chains import GROUPS, build_chains
from prerelease_it.config import RunnerConfig
from prerelease_it.model import RunContext
from prerelease_it.registry import ShellLauncher, default_registry
from prerelease_it.runner import AggregateFailure, OrchestrationTimeout, run_all
from prerelease_it.ui.console import Console, set_console, get_console


def run_id_option(fn):
    return click.option(
        "--run-id",
        "--runId",
        "run_id",
        required=True,
        help="Identifier namespacing every output path of this run",
    )(fn)


def runner_options(fn):
    """Runner passthrough options; unset options fall back to PRERELEASE_IT_* / defaults."""
    options = [
        click.option("--runner", default=None, help="Pipeline runner [default: DataflowRunner]"),
        click.option("--project", default=None, help="Cloud project [default: data-integration-test]"),
        click.option("--region", default=None, help="Cloud region [default: us-central1]"),
        click.option("--temp-location", default=None, help="Staging/temp location for the runner"),
        click.option("--bucket", default=None, help="Bucket for job outputs [default: data-integration-test-us]"),
        click.option(
            "--group",
            "groups",
            multiple=True,
            type=click.Choice(GROUPS),
            help="Only run the given job group (repeatable)",
        ),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def resolve_config(**overrides) -> RunnerConfig:
    try:
        config = RunnerConfig.from_env()
    except ValueError as e:
        get_console().print_error("Invalid configuration", str(e))
        sys.exit(1)
    return replace(config, **{k: v for k, v in overrides.items() if v is not None})


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and launcher commands)",
)
@click.pass_context
def cli(ctx, debug):
    """Pre-release integration tests: launch the example jobs and wait for them."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@run_id_option
@runner_options
@click.option("--timeout", default=None, type=float, help="Global timeout in seconds [default: 3600]")
@click.option(
    "--launcher",
    default=None,
    help="Shell template starting a job; receives shell-quoted {main}, {args} and {line}",
)
@click.pass_context
def run(ctx, run_id, runner, project, region, temp_location, bucket, groups, timeout, launcher):
    """Launch every job chain and wait for all of them."""
    console = get_console()

    config = resolve_config(
        runner=runner,
        project=project,
        region=region,
        temp_location=temp_location,
        bucket=bucket,
        timeout=timeout,
        launcher=launcher,
    )

    context = RunContext(run_id=run_id, config=config)
    try:
        chains = build_chains(context.run_id, context.config, groups=list(groups) or None)
    except ValueError as e:
        console.print_error("Invalid run", str(e))
        sys.exit(1)

    shell = ShellLauncher(config.launcher)
    registry = default_registry(shell)

    console.print_run_started(
        run_id=context.run_id,
        runner=config.runner,
        project=config.project,
        chain_count=len(chains),
    )

    try:
        results = run_all(
            chains,
            registry,
            baseline_args=config.baseline_args(),
            timeout=config.timeout,
        )
    except AggregateFailure as e:
        console.print_results(e.results)
        console.print_error(
            "At least one Dataflow job failed",
            str(e.__cause__ or e),
            details=[str(f).split("\n")[0] for f in e.failures[1:]] or None,
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)
    except OrchestrationTimeout as e:
        stopped = shell.terminate()
        console.print_error(
            "Timed out",
            str(e),
            details=[f"Stopped {stopped} local launcher process(es); submitted cloud jobs may still be running."],
        )
        sys.exit(1)
    except KeyboardInterrupt:
        shell.terminate()
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_results(results)
    console.print_info("All Dataflow jobs ran successfully.")


@cli.command()
@run_id_option
@runner_options
def plan(run_id, runner, project, region, temp_location, bucket, groups):
    """Print the job chains of a run without launching anything."""
    console = get_console()

    config = resolve_config(
        runner=runner,
        project=project,
        region=region,
        temp_location=temp_location,
        bucket=bucket,
    )
    try:
        chains = build_chains(run_id, config, groups=list(groups) or None)
    except ValueError as e:
        console.print_error("Invalid run", str(e))
        sys.exit(1)

    console.print_header(f"Run {run_id}: {len(chains)} chains")
    console.print_info("Baseline: " + " ".join(config.baseline_args()))
    for chain in chains:
        console.print_plan_chain(
            chain.name,
            chain.group,
            [f"{i.label} {' '.join(i.args)}" for i in chain.invocations],
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
