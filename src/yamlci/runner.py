# runner.py
from __future__ import annotations

import itertools
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from fnmatch import fnmatch
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigurationError, GuardEvaluationFailure, StepInvocationFailure
from .executor import ACTION_HINTS, REQUIRED_INPUTS, ExternalExecutor, InvocationResult, SecretStore, missing_required_inputs
from .expressions import Scope, interpolate, references, render_value, repeated_values
from .model import (
    Event,
    ExecutionResult,
    GuardContext,
    GuardKind,
    JobSpec,
    MatrixCell,
    Status,
    StepResult,
    StepSpec,
    WorkflowDocument,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Triggers
# ----------------------------------------------------------------------

def _branch_matches(branch: str, patterns: Iterable[str]) -> bool:
    included = False
    for p in patterns:
        if p.startswith("!"):
            if fnmatch(branch, p[1:]):
                included = False
        elif fnmatch(branch, p):
            included = True
    return included


def should_trigger(document: WorkflowDocument, event: Event) -> bool:
    """
    True if the event type is one the document listens to.

    Branch filters only apply when the document declares `branches:` for the
    event and the event carries a branch.
    """
    trigger = document.trigger_for(event.type)
    if trigger is None:
        return False
    if trigger.branches is None or event.branch is None:
        return True
    return _branch_matches(event.branch, trigger.branches)


# ----------------------------------------------------------------------
# Matrix
# ----------------------------------------------------------------------

def expand_matrix(job: JobSpec) -> List[MatrixCell]:
    """
    Cross product of the job's matrix axes.

    Order: first axis varies slowest, values in declaration order. A job with
    no matrix yields exactly one empty cell. Values that render alike on one
    axis raise ConfigurationError.
    """
    if job.matrix is None:
        return [MatrixCell()]
    names = job.matrix.names
    for axis, vals in job.matrix.axes:
        dupes = repeated_values(vals)
        if dupes:
            raise ConfigurationError(f"job {job.name!r}: matrix axis {axis!r} repeats value(s) {dupes}")
    value_lists = [[render_value(v) for v in vals] for _, vals in job.matrix.axes]
    return [MatrixCell(tuple(zip(names, combo))) for combo in itertools.product(*value_lists)]


def _cell_matches(cell: MatrixCell, wanted: Mapping[str, str]) -> bool:
    bound = cell.as_dict()
    return all(bound.get(k) == v for k, v in wanted.items())


# ----------------------------------------------------------------------
# Interpreter
# ----------------------------------------------------------------------

class Interpreter:
    """
    Executes workflow documents against an injected executor.

    The interpreter holds no per-run state: every job instance builds its own
    scope, so instances can run on a thread pool side by side.
    """

    def __init__(
        self,
        executor: ExternalExecutor,
        secrets: Optional[Mapping[str, str]] = None,
        *,
        max_workers: int | None = None,
        required_inputs: Mapping[str, Tuple[str, ...]] = REQUIRED_INPUTS,
    ):
        self.executor = executor
        self.secrets = secrets if isinstance(secrets, SecretStore) else SecretStore(secrets)
        self.max_workers = max_workers
        self.required_inputs = required_inputs

    # ---- triggers / matrix ----

    def should_trigger(self, document: WorkflowDocument, event: Event) -> bool:
        return should_trigger(document, event)

    def expand_matrix(self, job: JobSpec) -> List[MatrixCell]:
        return expand_matrix(job)

    # ---- single job instance ----

    def run_job(
        self,
        job: JobSpec,
        cell: MatrixCell,
        *,
        event: Event | None = None,
        workflow_env: Mapping[str, str] | None = None,
    ) -> ExecutionResult:
        matrix = cell.as_dict()
        github = _github_context(job, event)
        job_env = self._job_env(job, workflow_env or {})
        guard_env = self._guard_env(job_env, matrix, github)

        failed = False
        results: List[StepResult] = []
        tag = f"{job.name} ({cell})" if cell.bindings else job.name

        for step in job.steps:
            label = step.label
            ctx = GuardContext(failed=failed, matrix=matrix, env=guard_env, github=github)

            try:
                should_run = step.guard.evaluate(ctx)
            except GuardEvaluationFailure as e:
                logger.warning("[%s] %s: %s", tag, label, e)
                results.append(StepResult(label, Status.SKIPPED, reason=str(e), error_kind="guard"))
                continue

            if not should_run:
                results.append(StepResult(label, Status.SKIPPED, reason=_skip_reason(step, failed)))
                logger.info("[%s] skip %s", tag, label)
                continue

            logger.info("[%s] > %s", tag, label)
            scope = Scope(
                contexts={"secrets": self.secrets, "matrix": matrix, "env": job_env, "github": github},
                failed=failed,
            )
            try:
                outcome = self._invoke(job, step, scope, matrix, job_env)
            except ConfigurationError as e:
                failed = True
                logger.error("[%s] %s: configuration error: %s", tag, label, e)
                results.append(StepResult(label, Status.FAILED, reason=str(e), error_kind="configuration"))
                continue
            except StepInvocationFailure as e:
                failed = True
                logger.error("%s", e)
                results.append(
                    StepResult(
                        label,
                        Status.FAILED,
                        reason=str(e),
                        error_kind="invocation",
                        exit_status=e.exit_status,
                        stdout=e.details.get("stdout", ""),
                    )
                )
                continue
            except (OSError, subprocess.SubprocessError) as e:
                failed = True
                logger.error("[%s] %s: %s", tag, label, e)
                results.append(StepResult(label, Status.FAILED, reason=str(e), error_kind="invocation"))
                continue

            results.append(StepResult(label, Status.SUCCESS, exit_status=outcome.exit_status, stdout=outcome.stdout))

        return ExecutionResult(job=job.name, cell=cell, status=_job_status(results), steps=tuple(results))

    def _job_env(self, job: JobSpec, workflow_env: Mapping[str, str]) -> Dict[str, str]:
        # env values may reference matrix/secrets; resolved lazily per step so a
        # missing secret fails the step that needs it, not the job.
        env = dict(workflow_env)
        env.update(job.env)
        return env

    def _guard_env(self, job_env: Dict[str, str], matrix: Dict[str, str], github: Dict[str, str]) -> Dict[str, str]:
        """Interpolated env for `if:` guards. Values that cannot be resolved are left out."""
        scope = Scope(contexts={"secrets": self.secrets, "matrix": matrix, "env": job_env, "github": github})
        resolved: Dict[str, str] = {}
        for key, value in job_env.items():
            try:
                resolved[key] = interpolate(value, scope)
            except ConfigurationError as e:
                logger.debug("env %s unavailable to guards: %s", key, e)
        return resolved

    def _invoke(
        self,
        job: JobSpec,
        step: StepSpec,
        scope: Scope,
        matrix: Dict[str, str],
        job_env: Dict[str, str],
    ) -> InvocationResult:
        if step.action is not None:
            action = step.action
            inputs: Dict[str, str] = {}
            for key, raw in action.inputs.items():
                if key in matrix and not references(raw):
                    # matrix binding wins over a literal of the same name
                    if raw != matrix[key]:
                        logger.warning(
                            "[%s] %s: input %r=%r overridden by matrix value %r",
                            job.name, step.label, key, raw, matrix[key],
                        )
                    inputs[key] = matrix[key]
                else:
                    inputs[key] = interpolate(raw, scope)

            missing = missing_required_inputs(action.ref, inputs, self.required_inputs)
            if missing:
                hint = ACTION_HINTS.get(action.ref)
                msg = f"{action.qualified} is missing required input(s): {', '.join(missing)}"
                raise ConfigurationError(f"{msg}. {hint}" if hint else msg)

            # action env is not handed to the executor, but unset secrets in it still fail the step
            for value in step.env.values():
                interpolate(value, scope)

            result = self.executor.invoke_action(action.ref, action.version, inputs)
            target = action.qualified
        else:
            command = interpolate(step.command.command, scope)
            env = {k: interpolate(v, scope) for k, v in {**job_env, **step.env}.items()}
            result = self.executor.invoke_command(command, env)
            target = command

        if not result.ok:
            raise StepInvocationFailure(
                job=job.name,
                step=step.label,
                target=target,
                exit_status=result.exit_status,
                details={"stdout": result.stdout, "stderr": result.stderr},
            )
        return result

    # ---- whole workflow ----

    def plan(
        self,
        document: WorkflowDocument,
        *,
        jobs: Optional[Iterable[str]] = None,
        matrix_filter: Optional[Mapping[str, str]] = None,
    ) -> List[Tuple[JobSpec, MatrixCell]]:
        """Job instances in deterministic enumeration order."""
        names = list(jobs) if jobs else list(document.jobs)
        unknown = [n for n in names if n not in document.jobs]
        if unknown:
            raise ConfigurationError(f"unknown job(s): {unknown}. Known jobs: {sorted(document.jobs)}")

        out: List[Tuple[JobSpec, MatrixCell]] = []
        for name in names:
            job = document.jobs[name]
            for cell in expand_matrix(job):
                if matrix_filter and not _cell_matches(cell, matrix_filter):
                    continue
                out.append((job, cell))
        return out

    def run_workflow(
        self,
        document: WorkflowDocument,
        event: Event,
        *,
        jobs: Optional[Iterable[str]] = None,
        matrix_filter: Optional[Mapping[str, str]] = None,
    ) -> List[ExecutionResult]:
        """
        Run every job instance the event triggers.

        Instances are independent: a failing instance never stops its
        siblings. Results come back in plan order regardless of completion
        order.
        """
        if not should_trigger(document, event):
            logger.info("workflow %r not triggered by %s", document.name, event.type)
            return []

        instances = self.plan(document, jobs=jobs, matrix_filter=matrix_filter)
        logger.info("workflow %r: %d job instance(s)", document.name, len(instances))

        if self.max_workers == 1 or len(instances) <= 1:
            return [self._run_instance(j, c, event, document.env) for j, c in instances]

        results: List[Optional[ExecutionResult]] = [None] * len(instances)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(self._run_instance, j, c, event, document.env): idx
                for idx, (j, c) in enumerate(instances)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return [r for r in results if r is not None]

    def _run_instance(
        self, job: JobSpec, cell: MatrixCell, event: Event, workflow_env: Mapping[str, str]
    ) -> ExecutionResult:
        # a crash inside one instance fails that instance only
        try:
            return self.run_job(job, cell, event=event, workflow_env=workflow_env)
        except Exception as e:
            logger.exception("job instance %s (%s) crashed", job.name, cell)
            return ExecutionResult(
                job=job.name,
                cell=cell,
                status=Status.FAILED,
                steps=(StepResult("<interpreter>", Status.FAILED, reason=str(e), error_kind="internal"),),
            )


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _github_context(job: JobSpec, event: Event | None) -> Dict[str, str]:
    if event is None:
        return {"job": job.name}
    return {
        "job": job.name,
        "event_name": event.type,
        "ref_name": event.branch or "",
        "ref": f"refs/heads/{event.branch}" if event.branch else "",
        "sha": event.sha or "",
    }


def _skip_reason(step: StepSpec, failed: bool) -> str:
    if step.guard.kind is GuardKind.ON_SUCCESS and failed:
        return "a previous step failed"
    if step.guard.kind is GuardKind.ON_FAILURE:
        return "no previous step failed"
    return f"if: {step.guard.source} evaluated to false"


def _job_status(steps: List[StepResult]) -> Status:
    if any(s.status is Status.FAILED for s in steps):
        return Status.FAILED
    if steps and all(s.status is Status.SKIPPED for s in steps):
        return Status.SKIPPED
    return Status.SUCCESS


def overall_ok(results: Iterable[ExecutionResult]) -> bool:
    return all(r.status is not Status.FAILED for r in results)
