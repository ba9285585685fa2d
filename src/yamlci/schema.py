# schema.py
"""Pydantic models for the raw shape of a workflow YAML file."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .expressions import repeated_values


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawStep(_Raw):
    name: Optional[str] = None
    id: Optional[str] = None
    uses: Optional[str] = None
    run: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    if_: Optional[Union[bool, str]] = Field(default=None, alias="if")
    env: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _uses_xor_run(self) -> RawStep:
        if bool(self.uses) == bool(self.run):
            label = self.name or self.id or "<unnamed>"
            raise ValueError(f"step {label!r} must set exactly one of 'uses' or 'run'")
        if self.with_ and not self.uses:
            raise ValueError(f"step {self.name or '<unnamed>'!r} has 'with' but no 'uses'")
        return self


class RawStrategy(_Raw):
    matrix: Optional[Dict[str, Any]] = None

    @field_validator("matrix")
    @classmethod
    def _axes(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is None:
            return v
        for key in ("include", "exclude"):
            if key in v:
                raise ValueError(f"matrix '{key}' is not supported")
        if not v:
            raise ValueError("matrix must declare at least one axis")
        for axis, values in v.items():
            if not isinstance(values, list) or not values:
                raise ValueError(f"matrix axis {axis!r} must be a non-empty list")
            dupes = repeated_values(values)
            if dupes:
                raise ValueError(f"matrix axis {axis!r} repeats value(s) {dupes}")
        return v


class RawJob(_Raw):
    name: Optional[str] = None
    runs_on: Union[str, List[str]] = Field(alias="runs-on")
    strategy: Optional[RawStrategy] = None
    env: Dict[str, Any] = Field(default_factory=dict)
    steps: List[RawStep] = Field(min_length=1)


class RawWorkflow(_Raw):
    name: Optional[str] = None
    on: Union[str, List[str], Dict[str, Any]]
    env: Dict[str, Any] = Field(default_factory=dict)
    jobs: Dict[str, RawJob] = Field(min_length=1)
