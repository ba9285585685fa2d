# loader.py
"""
Workflow loading.

Reads a GitHub-Actions-style YAML file into a model.WorkflowDocument.
All structural problems surface as ConfigurationError before any job runs.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .expressions import compile_guard, render_value
from .model import (
    ActionInvocation,
    CommandInvocation,
    JobSpec,
    MatrixSpec,
    StepSpec,
    TriggerSpec,
    WorkflowDocument,
)
from .schema import RawJob, RawStep, RawWorkflow

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# YAML
# ----------------------------------------------------------------------

class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys (e.g. two jobs with one name)."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                raise ConfigurationError(
                    f"unhashable key at line {key_node.start_mark.line + 1}"
                )
            if duplicate:
                raise ConfigurationError(
                    f"duplicate key {key!r} at line {key_node.start_mark.line + 1}"
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _parse_yaml(text: str, source: str) -> Dict[str, Any]:
    try:
        data = yaml.load(text, Loader=_UniqueKeyLoader)
    except ConfigurationError as e:
        raise ConfigurationError(f"{source}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{source}: invalid YAML syntax: {e}")
    if not data:
        raise ConfigurationError(f"{source}: workflow file is empty")
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: workflow must be a mapping, got {type(data).__name__}")

    # YAML 1.1 reads a bare `on:` key as boolean True
    if True in data and "on" not in data:
        data["on"] = data.pop(True)
    return data


# ----------------------------------------------------------------------
# Raw -> model
# ----------------------------------------------------------------------

def _stringify(mapping: Dict[str, Any]) -> Dict[str, str]:
    return {str(k): render_value(v) for k, v in mapping.items()}


def split_uses(uses: str) -> Tuple[str, str | None]:
    """'actions/checkout@v4' -> ('actions/checkout', 'v4')."""
    ref, sep, pin = uses.rpartition("@")
    if not sep or not ref:
        return uses, None
    return ref, pin or None


def _triggers(on: Any) -> Tuple[TriggerSpec, ...]:
    if isinstance(on, str):
        return (TriggerSpec(on),)
    if isinstance(on, list):
        return tuple(TriggerSpec(str(e)) for e in on)
    out: List[TriggerSpec] = []
    for event, flt in on.items():
        branches = flt.get("branches") if isinstance(flt, dict) else None
        if branches is not None:
            if isinstance(branches, str):
                branches = [branches]
            if not isinstance(branches, list):
                raise ConfigurationError(f"on.{event}.branches must be a list of patterns")
            branches = tuple(str(b) for b in branches)
        out.append(TriggerSpec(str(event), branches))
    return tuple(out)


def _step(raw: RawStep) -> StepSpec:
    action = None
    command = None
    if raw.uses:
        ref, pin = split_uses(raw.uses)
        action = ActionInvocation(ref=ref, version=pin, inputs=_stringify(raw.with_))
    else:
        command = CommandInvocation(raw.run)
    return StepSpec(
        action=action,
        command=command,
        name=raw.name,
        guard=compile_guard(raw.if_),
        env=_stringify(raw.env),
        id=raw.id,
    )


def _job(name: str, raw: RawJob) -> JobSpec:
    matrix = None
    if raw.strategy is not None and raw.strategy.matrix is not None:
        matrix = MatrixSpec.of(raw.strategy.matrix)
    runs_on = raw.runs_on if isinstance(raw.runs_on, str) else ",".join(raw.runs_on)
    return JobSpec(
        name=name,
        runs_on=runs_on,
        steps=tuple(_step(s) for s in raw.steps),
        matrix=matrix,
        env=_stringify(raw.env),
        display_name=raw.name,
    )


def _format_validation_error(e: ValidationError) -> str:
    lines = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        lines.append(f"  {loc or '<root>'}: {err['msg']}")
    return "\n".join(lines)


def build_document(data: Dict[str, Any], *, source: str = "<workflow>") -> WorkflowDocument:
    """Validate an already-parsed mapping and build the document."""
    try:
        raw = RawWorkflow.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: invalid workflow\n{_format_validation_error(e)}")

    try:
        jobs = {name: _job(name, rj) for name, rj in raw.jobs.items()}
        doc = WorkflowDocument(
            name=raw.name or Path(source).stem,
            triggers=_triggers(raw.on),
            jobs=jobs,
            env=_stringify(raw.env),
        )
    except ValueError as e:
        raise ConfigurationError(f"{source}: {e}")

    logger.debug(
        "loaded workflow %r: events=%s jobs=%s", doc.name, doc.events, list(doc.jobs)
    )
    return doc


def loads(text: str, *, source: str = "<string>") -> WorkflowDocument:
    return build_document(_parse_yaml(text, source), source=source)


def load_workflow(path: str | Path) -> WorkflowDocument:
    """
    Load a workflow from a YAML file path.

    Raises:
      ConfigurationError for a missing file, bad YAML or an invalid document.
    """
    wf_path = Path(path).expanduser()
    if not wf_path.exists():
        raise ConfigurationError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix not in (".yml", ".yaml"):
        raise ConfigurationError(f"Workflow must be a .yml/.yaml file, got: {wf_path.name}")
    return loads(wf_path.read_text(encoding="utf-8"), source=str(wf_path))
