# config.py
"""
Runtime settings for yamlci.

Settings come from YAMLCI_* environment variables; CLI options override them.
Secrets come from (lowest to highest precedence) YAMLCI_SECRET_* variables,
a YAML secrets file, and --secret NAME=VALUE options.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import yaml

from .errors import ConfigurationError
from .executor import SecretStore

DEFAULT_WORKFLOW_DIR = ".github/workflows"


@dataclass(frozen=True)
class Settings:
    workflow_dir: Path = Path(DEFAULT_WORKFLOW_DIR)
    workers: int | None = None
    secrets_file: Path | None = None
    log_level: str = "WARNING"
    step_timeout: float | None = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ
        try:
            workers = int(env["YAMLCI_WORKERS"]) if env.get("YAMLCI_WORKERS") else None
            timeout = float(env["YAMLCI_STEP_TIMEOUT"]) if env.get("YAMLCI_STEP_TIMEOUT") else None
        except ValueError as e:
            raise ConfigurationError(f"invalid numeric setting: {e}")
        if workers is not None and workers < 1:
            raise ConfigurationError("YAMLCI_WORKERS must be >= 1")
        secrets_file = env.get("YAMLCI_SECRETS_FILE")
        return cls(
            workflow_dir=Path(env.get("YAMLCI_WORKFLOW_DIR", DEFAULT_WORKFLOW_DIR)),
            workers=workers,
            secrets_file=Path(secrets_file) if secrets_file else None,
            log_level=env.get("YAMLCI_LOG_LEVEL", "WARNING").upper(),
            step_timeout=timeout,
        )


def load_secrets_file(path: str | Path) -> Dict[str, str]:
    """Load a flat NAME: value YAML mapping."""
    p = Path(path).expanduser()
    if not p.exists():
        raise ConfigurationError(f"Secrets file not found: {p}")
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in secrets file {p}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Secrets file {p} must be a mapping of NAME: value")
    for k, v in data.items():
        if isinstance(v, (dict, list)):
            raise ConfigurationError(f"Secret {k!r} in {p} must be a scalar")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def parse_pairs(pairs: Iterable[str], what: str = "secret") -> Dict[str, str]:
    """['A=1', 'B=x=y'] -> {'A': '1', 'B': 'x=y'}"""
    out: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ConfigurationError(f"invalid {what} {pair!r}; expected NAME=VALUE")
        out[name] = value
    return out


def build_secret_store(
    settings: Settings,
    *,
    secrets_file: str | Path | None = None,
    cli_pairs: Iterable[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> SecretStore:
    store = SecretStore.from_env(environ=environ)
    path = secrets_file or settings.secrets_file
    if path:
        store = store.merged(load_secrets_file(path))
    return store.merged(parse_pairs(cli_pairs))
