# src/yamlci/dsl.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import ConfigurationError
from .expressions import compile_guard, render_value, repeated_values
from .loader import split_uses
from .model import (
    ActionInvocation,
    CommandInvocation,
    JobSpec,
    MatrixSpec,
    StepSpec,
    TriggerSpec,
    WorkflowDocument,
)


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str | None, cmd: str, *, if_: Any = None, env: Optional[Dict[str, str]] = None) -> StepSpec:
    """Create a `run:` step."""
    return StepSpec(command=CommandInvocation(cmd), name=name, guard=compile_guard(if_), env=dict(env or {}))


def uses(
    name: str | None,
    action: str,
    *,
    with_: Optional[Dict[str, Any]] = None,
    if_: Any = None,
    env: Optional[Dict[str, str]] = None,
) -> StepSpec:
    """Create a `uses:` step from 'owner/repo@pin'."""
    ref, pin = split_uses(action)
    inputs = {str(k): render_value(v) for k, v in (with_ or {}).items()}
    return StepSpec(
        action=ActionInvocation(ref=ref, version=pin, inputs=inputs),
        name=name,
        guard=compile_guard(if_),
        env=dict(env or {}),
    )


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def matrix(**axes: Iterable[Any]) -> MatrixSpec:
    """
    matrix(python_version=["3.8", "3.9"]) -> axis 'python-version'.

    Underscores become dashes so keyword arguments can name dashed axes.
    """
    return _checked_matrix({k.replace("_", "-"): list(v) for k, v in axes.items()})


def _checked_matrix(axes: Dict[str, List[Any]]) -> MatrixSpec:
    for k, v in axes.items():
        if not v:
            raise ConfigurationError(f"matrix axis {k!r} must have at least one value")
        dupes = repeated_values(v)
        if dupes:
            raise ConfigurationError(f"matrix axis {k!r} repeats value(s) {dupes}")
    return MatrixSpec.of(axes)


# ---------------------------------------------------------------------
# Functional job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: StepSpec,
    runs_on: str = "ubuntu-latest",
    matrix: Optional[MatrixSpec] = None,
    env: Optional[Dict[str, str]] = None,
    steps_list: Optional[List[StepSpec]] = None,
) -> JobSpec:
    steps_final: List[StepSpec] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ConfigurationError(f"job({name!r}) must have at least one step")

    return JobSpec(
        name=name,
        runs_on=runs_on,
        steps=tuple(steps_final),
        matrix=matrix,
        env=dict(env or {}),
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._runs_on = "ubuntu-latest"
        self._steps: list[StepSpec] = []
        self._axes: dict[str, list[Any]] = {}
        self._env: dict[str, str] = {}

    def runs_on(self, label: str):
        self._runs_on = label
        return self

    def with_matrix(self, axis: str, values: Sequence[Any]):
        self._axes[axis] = list(values)
        return self

    def with_env(self, **env):
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def define_step(self, name: str, run: str, if_: Any = None):
        self._steps.append(sh(name, run, if_=if_))
        return self

    def use_action(self, name: str, action: str, if_: Any = None, **inputs):
        self._steps.append(uses(name, action, with_={k.replace("_", "-"): v for k, v in inputs.items()}, if_=if_))
        return self

    def add_step(self, step: StepSpec):
        self._steps.append(step)
        return self

    def build(self) -> JobSpec:
        if not self._steps:
            raise ConfigurationError(f"Job '{self.name}' has no steps")
        return JobSpec(
            name=self.name,
            runs_on=self._runs_on,
            steps=tuple(self._steps),
            matrix=_checked_matrix(self._axes) if self._axes else None,
            env=dict(self._env),
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper
# ---------------------------------------------------------------------

def wf(
    *jobs: JobSpec,
    name: str = "workflow",
    on: Sequence[str] = ("push", "pull_request"),
    env: Optional[Dict[str, str]] = None,
) -> WorkflowDocument:
    """
    Workflow definition helper:

        wf(
            job("test", uses("Checkout", "actions/checkout@v4"), sh("Test", "pytest")),
            name="Python Application Test",
        )
    """
    if not jobs:
        raise ConfigurationError(f"workflow {name!r} must define at least one job")
    names = [j.name for j in jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigurationError(f"Duplicate job names found: {dupes}")

    return WorkflowDocument(
        name=name,
        triggers=tuple(TriggerSpec(e) for e in on),
        jobs={j.name: j for j in jobs},
        env=dict(env or {}),
    )


workflow = wf
