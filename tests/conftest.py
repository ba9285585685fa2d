from __future__ import annotations

from pathlib import Path

import pytest

from yamlci.dsl import job, matrix, sh, uses, wf
from yamlci.executor import ScriptedExecutor

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def app_test_yml() -> Path:
    return FIXTURES / "python-app-test.yml"


@pytest.fixture
def notify_yml() -> Path:
    return FIXTURES / "ci-with-notify.yml"


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def four_step_doc():
    """Single job, python-version matrix, four steps."""
    return wf(
        job(
            "test",
            uses("Checkout code", "actions/checkout@v4"),
            uses("Set up Python", "actions/setup-python@v5", with_={"python-version": "${{ matrix.python-version }}"}),
            sh("Install dependencies", "pip install -r requirements.txt"),
            sh("Run tests", "pytest --cov=app"),
            matrix=matrix(python_version=["3.8", "3.9", "3.10"]),
        ),
        name="Python Application Test",
    )
