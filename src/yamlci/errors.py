# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class ConfigurationError(Exception):
    """Malformed workflow document or missing configuration."""


class MissingSecretError(ConfigurationError):
    """A `${{ secrets.NAME }}` reference has no value in the secret store."""

    def __init__(self, name: str):
        super().__init__(f"secret {name!r} is not set")
        self.name = name


class GuardEvaluationFailure(Exception):
    """An `if:` expression references state that does not exist."""


@dataclass
class StepInvocationFailure(Exception):
    job: str
    step: str
    target: str
    exit_status: int
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_status}): {self.target}"
