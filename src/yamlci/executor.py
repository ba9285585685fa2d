# executor.py
from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class InvocationResult:
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class ExternalExecutor(Protocol):
    """Capability the interpreter delegates every step invocation to."""

    def invoke_action(self, action_ref: str, version_pin: str | None, inputs: Dict[str, str]) -> InvocationResult:
        ...

    def invoke_command(self, command: str, env: Dict[str, str] | None = None) -> InvocationResult:
        ...


# ---------------------------------------------------------------------
# Action knowledge
# ---------------------------------------------------------------------

# Inputs an action cannot work without. A step that leaves one of these
# unset fails with a configuration error before the executor is called.
REQUIRED_INPUTS: Dict[str, Tuple[str, ...]] = {
    "codecov/codecov-action": ("token",),
    "slackapi/slack-github-action": ("channel-id",),
}

ACTION_HINTS = {
    "codecov/codecov-action": "Add CODECOV_TOKEN as a repository secret.",
    "slackapi/slack-github-action": "Add SLACK_BOT_TOKEN as a secret and set channel-id.",
    "actions/setup-python": "Quote python versions ('3.10') so YAML keeps the trailing zero.",
}


def missing_required_inputs(
    action_ref: str,
    inputs: Mapping[str, str],
    required: Mapping[str, Tuple[str, ...]] = REQUIRED_INPUTS,
) -> List[str]:
    return [k for k in required.get(action_ref, ()) if not inputs.get(k)]


# ---------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------

class SecretStore(Mapping):
    """Read-only name -> value lookup injected into expression scopes."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = {str(k): str(v) for k, v in (values or {}).items()}

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        # never print values
        return f"SecretStore({sorted(self._values)})"

    def merged(self, other: Mapping[str, str]) -> SecretStore:
        combined = dict(self._values)
        combined.update(other)
        return SecretStore(combined)

    @classmethod
    def from_env(cls, prefix: str = "YAMLCI_SECRET_", environ: Optional[Mapping[str, str]] = None) -> SecretStore:
        environ = os.environ if environ is None else environ
        return cls({k[len(prefix):]: v for k, v in environ.items() if k.startswith(prefix) and len(k) > len(prefix)})


# ---------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------

ActionHandler = Callable[[str | None, Dict[str, str]], InvocationResult]


class LocalExecutor:
    """
    Runs `run:` commands in a local shell.

    Actions are external; without a registered handler they are logged and
    treated as successful no-ops.
    """

    def __init__(
        self,
        workdir: str | Path = ".",
        *,
        handlers: Optional[Dict[str, ActionHandler]] = None,
        timeout: float | None = None,
    ):
        self.workdir = Path(workdir).resolve()
        self.handlers = dict(handlers or {})
        self.timeout = timeout

    def invoke_command(self, command: str, env: Dict[str, str] | None = None) -> InvocationResult:
        if not self.workdir.exists():
            raise FileNotFoundError(f"working directory not found: {self.workdir}")
        full_env = os.environ.copy()
        full_env.update(env or {})
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=str(self.workdir),
                env=full_env,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("command timed out after %ss: %s", self.timeout, command)
            out = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            return InvocationResult(124, out[-OUTPUT_TAIL:], f"timed out after {self.timeout}s")
        return InvocationResult(proc.returncode, proc.stdout[-OUTPUT_TAIL:], proc.stderr[-OUTPUT_TAIL:])

    def invoke_action(self, action_ref: str, version_pin: str | None, inputs: Dict[str, str]) -> InvocationResult:
        handler = self.handlers.get(action_ref)
        if handler is None:
            logger.info("no local handler for %s@%s; treating as no-op", action_ref, version_pin)
            return InvocationResult(0, "")
        return handler(version_pin, dict(inputs))


@dataclass
class DryRunExecutor:
    """Records what would run and reports success for everything."""
    calls: List[Tuple[str, ...]] = field(default_factory=list)

    def invoke_command(self, command: str, env: Dict[str, str] | None = None) -> InvocationResult:
        self.calls.append(("run", command))
        return InvocationResult(0, "")

    def invoke_action(self, action_ref: str, version_pin: str | None, inputs: Dict[str, str]) -> InvocationResult:
        self.calls.append(("uses", f"{action_ref}@{version_pin}" if version_pin else action_ref))
        return InvocationResult(0, "")


Scripted = Union[int, InvocationResult]


@dataclass
class ScriptedExecutor:
    """
    Deterministic executor keyed by step target.

    Keys are an action ref (`actions/checkout`), a pinned ref
    (`actions/checkout@v4`) or the exact command string. Unknown targets
    return `default`.
    """
    script: Dict[str, Scripted] = field(default_factory=dict)
    default: Scripted = 0
    calls: List[Tuple[str, str, Dict[str, str]]] = field(default_factory=list)

    @staticmethod
    def _as_result(value: Scripted) -> InvocationResult:
        return value if isinstance(value, InvocationResult) else InvocationResult(int(value))

    def invoke_command(self, command: str, env: Dict[str, str] | None = None) -> InvocationResult:
        self.calls.append(("run", command, dict(env or {})))
        return self._as_result(self.script.get(command, self.script.get(command.strip(), self.default)))

    def invoke_action(self, action_ref: str, version_pin: str | None, inputs: Dict[str, str]) -> InvocationResult:
        self.calls.append(("uses", action_ref, dict(inputs)))
        value = self.script.get(action_ref, self.default)
        if version_pin:
            value = self.script.get(f"{action_ref}@{version_pin}", value)
        return self._as_result(value)
