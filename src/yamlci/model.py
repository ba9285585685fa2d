# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import GuardEvaluationFailure


# ---------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------

class GuardKind(str, Enum):
    ALWAYS = "always"
    ON_SUCCESS = "on_success"
    ON_FAILURE = "on_failure"
    CUSTOM = "custom"


@dataclass(frozen=True)
class GuardContext:
    """State a guard can look at when deciding whether a step runs."""
    failed: bool
    matrix: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    github: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Guard:
    """
    Condition gating a step.

    ON_SUCCESS is the default: run only while nothing in the job instance
    has failed. ON_FAILURE inverts it. CUSTOM carries a predicate compiled
    from an `if:` expression.
    """
    kind: GuardKind = GuardKind.ON_SUCCESS
    predicate: Optional[Callable[[GuardContext], bool]] = field(default=None, compare=False)
    source: str | None = None

    def evaluate(self, ctx: GuardContext) -> bool:
        if self.kind is GuardKind.ALWAYS:
            return True
        if self.kind is GuardKind.ON_SUCCESS:
            return not ctx.failed
        if self.kind is GuardKind.ON_FAILURE:
            return ctx.failed
        if self.predicate is None:
            raise GuardEvaluationFailure(f"custom guard {self.source!r} has no predicate")
        return bool(self.predicate(ctx))


ALWAYS = Guard(GuardKind.ALWAYS, source="always()")
ON_SUCCESS = Guard(GuardKind.ON_SUCCESS)
ON_FAILURE = Guard(GuardKind.ON_FAILURE, source="failure()")


# ---------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ActionInvocation:
    """`uses: owner/repo@pin` plus its `with:` inputs."""
    ref: str
    version: str | None = None
    inputs: Dict[str, str] = field(default_factory=dict)

    @property
    def qualified(self) -> str:
        return f"{self.ref}@{self.version}" if self.version else self.ref


@dataclass(frozen=True)
class CommandInvocation:
    """`run:` shell command."""
    command: str


@dataclass(frozen=True)
class StepSpec:
    """A single invocation inside a job: exactly one of `action` or `command`."""
    action: ActionInvocation | None = None
    command: CommandInvocation | None = None
    name: str | None = None
    guard: Guard = ON_SUCCESS
    env: Dict[str, str] = field(default_factory=dict)
    id: str | None = None

    def __post_init__(self) -> None:
        if (self.action is None) == (self.command is None):
            raise ValueError("step must set exactly one of action or command")

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.action is not None:
            return f"Run {self.action.qualified}"
        first = self.command.command.strip().splitlines()
        return f"Run {first[0] if first else ''}".strip()


# ---------------------------------------------------------------------
# Jobs / matrix / workflow
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class MatrixSpec:
    """Ordered axes; the cross product of all axes defines the job instances."""
    axes: Tuple[Tuple[str, Tuple[Any, ...]], ...]

    @classmethod
    def of(cls, axes: Dict[str, List[Any]]) -> MatrixSpec:
        return cls(tuple((k, tuple(v)) for k, v in axes.items()))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.axes]

    def values(self, axis: str) -> Tuple[Any, ...]:
        for name, vals in self.axes:
            if name == axis:
                return vals
        raise KeyError(axis)


@dataclass(frozen=True)
class MatrixCell:
    bindings: Tuple[Tuple[str, str], ...] = ()

    def as_dict(self) -> Dict[str, str]:
        return dict(self.bindings)

    def __str__(self) -> str:
        if not self.bindings:
            return ""
        return ", ".join(f"{k}={v}" for k, v in self.bindings)


@dataclass(frozen=True)
class JobSpec:
    name: str
    runs_on: str
    steps: Tuple[StepSpec, ...]
    matrix: MatrixSpec | None = None
    env: Dict[str, str] = field(default_factory=dict)
    display_name: str | None = None

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"job {self.name!r} must have at least one step")


@dataclass(frozen=True)
class TriggerSpec:
    """An event the workflow listens to. `branches=None` means any branch."""
    event: str
    branches: Tuple[str, ...] | None = None


@dataclass(frozen=True)
class WorkflowDocument:
    name: str
    triggers: Tuple[TriggerSpec, ...]
    jobs: Dict[str, JobSpec]
    env: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.jobs:
            raise ValueError(f"workflow {self.name!r} must define at least one job")

    @property
    def events(self) -> List[str]:
        return [t.event for t in self.triggers]

    def trigger_for(self, event: str) -> TriggerSpec | None:
        for t in self.triggers:
            if t.event == event:
                return t
        return None


@dataclass(frozen=True)
class Event:
    """The triggering event: type plus optional branch."""
    type: str
    branch: str | None = None
    sha: str | None = None


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

class Status(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    name: str
    status: Status
    reason: str | None = None
    error_kind: str | None = None    # "configuration" | "invocation" | "guard"
    exit_status: int | None = None
    stdout: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.reason is not None:
            out["reason"] = self.reason
        if self.error_kind is not None:
            out["error_kind"] = self.error_kind
        if self.exit_status is not None:
            out["exit_status"] = self.exit_status
        return out


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one job instance (job × matrix cell)."""
    job: str
    cell: MatrixCell
    status: Status
    steps: Tuple[StepResult, ...]

    @property
    def failed_step(self) -> StepResult | None:
        for s in self.steps:
            if s.status is Status.FAILED:
                return s
        return None

    @property
    def instance_name(self) -> str:
        return f"{self.job} ({self.cell})" if self.cell.bindings else self.job

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "matrix": self.cell.as_dict(),
            "status": self.status.value,
            "steps": [s.to_dict() for s in self.steps],
        }
