# lint.py
"""Configuration lint: findings that don't stop a run but are probably mistakes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .expressions import references
from .model import WorkflowDocument


@dataclass(frozen=True)
class LintWarning:
    code: str
    job: str
    step: str | None
    message: str

    def __str__(self) -> str:
        where = f"{self.job}/{self.step}" if self.step else self.job
        return f"{self.code} [{where}] {self.message}"


def lint(document: WorkflowDocument) -> List[LintWarning]:
    warnings: List[LintWarning] = []

    for job in document.jobs.values():
        axes = job.matrix.names if job.matrix else []

        if job.matrix is not None:
            for axis, values in job.matrix.axes:
                for v in values:
                    if isinstance(v, float):
                        warnings.append(LintWarning(
                            "YCI002", job.name, None,
                            f"matrix value {v!r} on axis {axis!r} was read as a number; "
                            f"quote it (e.g. '{v}') to keep trailing zeros such as '3.10'",
                        ))

        for idx, step in enumerate(job.steps, start=1):
            label = step.name or f"#{idx}"

            if not step.name:
                warnings.append(LintWarning("YCI004", job.name, label, "step has no name"))

            if step.action is None:
                continue

            if not step.action.version:
                warnings.append(LintWarning(
                    "YCI003", job.name, label,
                    f"action {step.action.ref!r} is not pinned to a version",
                ))

            for key, raw in step.action.inputs.items():
                if key in axes and not references(raw):
                    warnings.append(LintWarning(
                        "YCI001", job.name, label,
                        f"input {key}={raw!r} is a literal but the job has a {key!r} matrix axis; "
                        f"the matrix value is used. Write '${{{{ matrix.{key} }}}}' instead",
                    ))

    return warnings
