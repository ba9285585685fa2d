from __future__ import annotations

import pytest

from yamlci.dsl import build, job, matrix, sh, uses, wf
from yamlci.errors import ConfigurationError
from yamlci.executor import ScriptedExecutor
from yamlci.model import Event, GuardKind, Status
from yamlci.runner import Interpreter
from yamlci.step_workflows import codecov, python_test_steps, slack_on_failure


def test_sh_and_uses_build_steps():
    s = sh("Test", "pytest", if_="failure()")
    assert s.command.command == "pytest"
    assert s.action is None
    assert s.guard.kind is GuardKind.ON_FAILURE

    u = uses("Checkout", "actions/checkout@v4", with_={"fetch-depth": 0})
    assert (u.action.ref, u.action.version, u.action.inputs) == ("actions/checkout", "v4", {"fetch-depth": "0"})
    assert u.guard.kind is GuardKind.ON_SUCCESS


def test_job_requires_steps():
    with pytest.raises(ConfigurationError, match="at least one step"):
        job("empty")


def test_job_steps_list_then_positional():
    j = job("j", sh("b", "b"), steps_list=[sh("a", "a")])
    assert [s.name for s in j.steps] == ["a", "b"]


def test_builder():
    j = (
        build("test")
        .runs_on("ubuntu-22.04")
        .with_matrix("python-version", ["3.9", "3.10"])
        .with_env(CI=1)
        .use_action("Set up Python", "actions/setup-python@v5", python_version="${{ matrix.python-version }}")
        .define_step("Run tests", "pytest")
        .build()
    )
    assert j.runs_on == "ubuntu-22.04"
    assert j.matrix.names == ["python-version"]
    assert j.env == {"CI": "1"}
    assert j.steps[0].action.inputs == {"python-version": "${{ matrix.python-version }}"}

    with pytest.raises(ConfigurationError, match="no steps"):
        build("x").build()


def test_wf_rejects_duplicate_jobs():
    with pytest.raises(ConfigurationError, match="Duplicate job names"):
        wf(job("a", sh("x", "x")), job("a", sh("y", "y")))
    with pytest.raises(ConfigurationError, match="at least one job"):
        wf(name="empty")
    with pytest.raises(ConfigurationError, match="repeats"):
        build("t").define_step("Run", "make").with_matrix("py", ["3.9", "3.9"]).build()


def test_step_library_pipeline():
    doc = wf(
        job(
            "test",
            *python_test_steps(cov="app"),
            codecov(),
            slack_on_failure("ci-alerts"),
            matrix=matrix(python_version=["3.9", "3.10"]),
        ),
    )
    executor = ScriptedExecutor(script={"pytest --cov=app": 1})
    secrets = {"CODECOV_TOKEN": "c", "SLACK_BOT_TOKEN": "s"}
    results = Interpreter(executor, secrets=secrets, max_workers=1).run_workflow(doc, Event("push", branch="dev"))

    for r in results:
        assert [s.status for s in r.steps] == [
            Status.SUCCESS, Status.SUCCESS, Status.SUCCESS, Status.FAILED, Status.SKIPPED, Status.SUCCESS,
        ]

    setup_versions = [c[2]["python-version"] for c in executor.calls if c[:2] == ("uses", "actions/setup-python")]
    assert setup_versions == ["3.9", "3.10"]
    slack = [c[2] for c in executor.calls if c[:2] == ("uses", "slackapi/slack-github-action")]
    assert slack[0]["slack-message"] == "Workflow test failed on dev"
