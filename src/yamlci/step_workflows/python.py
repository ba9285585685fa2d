# step_workflows/python.py
from __future__ import annotations

from typing import List

from ..dsl import sh, uses
from ..model import StepSpec


def checkout(version: str = "v4") -> StepSpec:
    return uses("Checkout code", f"actions/checkout@{version}")


def setup_python(python_version: str = "${{ matrix.python-version }}", version: str = "v5") -> StepSpec:
    """Set up Python; defaults to the job's `python-version` matrix axis."""
    return uses("Set up Python", f"actions/setup-python@{version}", with_={"python-version": python_version})


def install_requirements(requirements: str = "requirements.txt") -> StepSpec:
    return sh(
        "Install dependencies",
        f"python -m pip install --upgrade pip\npip install -r {requirements}",
    )


def pytest_step(args: str = "", cov: str | None = None) -> StepSpec:
    cmd = "pytest"
    if cov:
        cmd += f" --cov={cov}"
    if args:
        cmd += f" {args}"
    return sh("Run tests", cmd)


def flake8_step(args: str = ". --count --select=E9,F63,F7,F82 --show-source --statistics") -> StepSpec:
    return sh("Lint with flake8", f"flake8 {args}")


def codecov(token_secret: str = "CODECOV_TOKEN", version: str = "v2") -> StepSpec:
    return uses(
        "Upload coverage to Codecov",
        f"codecov/codecov-action@{version}",
        with_={"token": f"${{{{ secrets.{token_secret} }}}}"},
    )


def python_test_steps(requirements: str = "requirements.txt", test_args: str = "", cov: str | None = None) -> List[StepSpec]:
    """checkout -> setup-python (matrix-bound) -> install -> pytest"""
    return [
        checkout(),
        setup_python(),
        install_requirements(requirements),
        pytest_step(test_args, cov=cov),
    ]
