# cli.py
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from yamlci.config import Settings, build_secret_store, parse_pairs
from yamlci.errors import ConfigurationError
from yamlci.executor import DryRunExecutor, InvocationResult, LocalExecutor, ScriptedExecutor
from yamlci.git_facts.git import event_defaults
from yamlci.lint import lint
from yamlci.loader import load_workflow
from yamlci.model import Event
from yamlci.runner import Interpreter, overall_ok
from yamlci.ui.console import Console, get_console, set_console

EXIT_FAILED = 1
EXIT_CONFIG = 2


def find_workflow_files(workflow_dir: Path) -> list[Path]:
    """All *.yml / *.yaml files in the workflow directory."""
    if not workflow_dir.is_dir():
        return []
    return sorted(p for p in workflow_dir.iterdir() if p.suffix in (".yml", ".yaml") and p.is_file())


def discover_workflow(workflow_arg: str | None, settings: Settings) -> Path:
    """
    Resolve the workflow file from the argument or the workflow directory.

    Raises:
        SystemExit: If no workflow, or more than one, can be found
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
            )
            sys.exit(EXIT_CONFIG)
        return workflow_path

    workflow_files = find_workflow_files(settings.workflow_dir)

    if not workflow_files:
        console.print_error(
            "No workflow file found",
            f"Could not find any *.yml or *.yaml files in {settings.workflow_dir}",
            suggestion="Pass a workflow explicitly:\n  yamlci run path/to/workflow.yml",
        )
        sys.exit(EXIT_CONFIG)

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
        )
        sys.exit(EXIT_CONFIG)

    return workflow_files[0]


def _load_or_exit(path: Path):
    try:
        return load_workflow(path)
    except ConfigurationError as e:
        get_console().print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """yamlci: run GitHub-Actions-style workflow files locally."""
    console = Console(debug=debug)
    set_console(console)
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        console.print_error("Invalid settings", str(e))
        sys.exit(EXIT_CONFIG)

    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, settings.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("workflow", required=False)
@click.option("--event", "event_type", default="push", show_default=True, help="Triggering event type")
@click.option("--branch", default=None, help="Branch of the event (defaults to the current git branch)")
@click.option("--secret", "secrets", multiple=True, metavar="NAME=VALUE", help="Secret value (repeatable)")
@click.option("--secrets-file", default=None, type=click.Path(dir_okay=False), help="YAML file of NAME: value secrets")
@click.option("--job", "jobs", multiple=True, help="Only run these jobs (repeatable)")
@click.option("--matrix-only", "matrix_only", multiple=True, metavar="AXIS=VALUE", help="Only run matching matrix cells")
@click.option("--dry-run", is_flag=True, default=False, help="Record steps without executing anything")
@click.option("--fail", "fail_targets", multiple=True, metavar="TARGET", help="Simulate failure of an action ref or command (implies --dry-run)")
@click.option("--workers", default=None, type=int, help="Number of parallel job instances")
@click.option("--workdir", default=".", type=click.Path(file_okay=False), help="Directory commands run in")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print results as JSON")
@click.pass_context
def run(ctx, workflow, event_type, branch, secrets, secrets_file, jobs, matrix_only, dry_run, fail_targets, workers, workdir, as_json):
    """Run a workflow file for one triggering event."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    workflow_path = discover_workflow(workflow, settings)
    document = _load_or_exit(workflow_path)

    try:
        store = build_secret_store(settings, secrets_file=secrets_file, cli_pairs=secrets)
        matrix_filter = parse_pairs(matrix_only, what="matrix filter")
    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(EXIT_CONFIG)

    git_branch, sha = event_defaults()
    event = Event(type=event_type, branch=branch or git_branch, sha=sha)

    if fail_targets:
        executor = ScriptedExecutor(script={t: InvocationResult(1, f"simulated failure: {t}") for t in fail_targets})
    elif dry_run:
        executor = DryRunExecutor()
    else:
        executor = LocalExecutor(workdir, timeout=settings.step_timeout)

    interpreter = Interpreter(executor, store, max_workers=workers or settings.workers)

    try:
        triggered = interpreter.should_trigger(document, event)
        if not as_json:
            if not triggered:
                console.print_not_triggered(document.name, event.type)
            else:
                planned = interpreter.plan(document, jobs=jobs, matrix_filter=matrix_filter)
                console.print_run_started(document.name, event.type, event.branch, len(planned))

        results = interpreter.run_workflow(document, event, jobs=jobs, matrix_filter=matrix_filter)
    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(EXIT_CONFIG)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)

    if as_json:
        click.echo(json.dumps({
            "workflow": document.name,
            "event": event.type,
            "branch": event.branch,
            "triggered": triggered,
            "results": [r.to_dict() for r in results],
        }, indent=2))
    elif results:
        for r in results:
            console.print_job_result(r)
        console.print_results(results)

    if not overall_ok(results):
        sys.exit(EXIT_FAILED)


@cli.command()
@click.argument("workflow", required=False)
@click.option("--job", "jobs", multiple=True, help="Only plan these jobs (repeatable)")
@click.pass_context
def plan(ctx, workflow, jobs):
    """Show the job instances a workflow expands into, without running them."""
    console = get_console()
    workflow_path = discover_workflow(workflow, ctx.obj["settings"])
    document = _load_or_exit(workflow_path)

    try:
        instances = Interpreter(DryRunExecutor()).plan(document, jobs=jobs)
    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(EXIT_CONFIG)

    console.print_header(f"{document.name} (on: {', '.join(document.events)})")
    for job, cell in instances:
        console.print_plan_instance(job.name, str(cell), job.runs_on, len(job.steps))


@cli.command(name="lint")
@click.argument("workflow", required=False)
@click.option("--strict", is_flag=True, default=False, help="Exit non-zero when there are warnings")
@click.pass_context
def lint_cmd(ctx, workflow, strict):
    """Report likely mistakes in a workflow file."""
    console = get_console()
    workflow_path = discover_workflow(workflow, ctx.obj["settings"])
    document = _load_or_exit(workflow_path)

    warnings = lint(document)
    console.print_header(f"Lint: {workflow_path}")
    console.print_lint(warnings)
    if strict and warnings:
        sys.exit(EXIT_FAILED)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
