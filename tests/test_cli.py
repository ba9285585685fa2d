from __future__ import annotations

import json
import os
import shutil

import pytest
from click.testing import CliRunner

from yamlci.cli import cli


@pytest.fixture
def runner(monkeypatch):
    for var in ("YAMLCI_WORKERS", "YAMLCI_SECRETS_FILE", "YAMLCI_WORKFLOW_DIR", "YAMLCI_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, list(args), obj={})


def test_dry_run_with_secret_succeeds(runner, app_test_yml):
    result = invoke(runner, "run", str(app_test_yml), "--dry-run", "--branch", "main", "--secret", "CODECOV_TOKEN=x")
    assert result.exit_code == 0, result.output
    assert "RUN STARTED" in result.output
    assert "Job instances: 3" in result.output
    assert "test (python-version=3.9): SUCCESS" in result.output


def test_missing_secret_exits_one(runner, app_test_yml):
    result = invoke(runner, "run", str(app_test_yml), "--dry-run", "--branch", "main")
    assert result.exit_code == 1
    assert "[FAIL] Upload coverage to Codecov" in result.output
    assert "CODECOV_TOKEN" in result.output


def test_json_output_with_simulated_failure(runner, notify_yml):
    result = invoke(
        runner, "run", str(notify_yml), "--json", "--branch", "main",
        "--fail", "pytest --cov=app",
        "--secret", "CODECOV_TOKEN=c", "--secret", "SLACK_BOT_TOKEN=s",
        "--matrix-only", "python-version=3.10",
    )
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["triggered"] is True
    [instance] = payload["results"]
    assert instance["matrix"] == {"python-version": "3.10"}
    assert instance["status"] == "failed"
    statuses = {s["name"]: s["status"] for s in instance["steps"]}
    assert statuses["Run tests"] == "failed"
    assert statuses["Notify Slack on failure"] == "success"


def test_untriggered_event(runner, notify_yml):
    result = invoke(runner, "run", str(notify_yml), "--dry-run", "--event", "push", "--branch", "feature/x")
    assert result.exit_code == 0
    assert "not triggered" in result.output


def test_invalid_workflow_exits_two(runner, tmp_path):
    bad = tmp_path / "bad.yml"
    bad.write_text("on: [push]\njobs: {}\n")
    result = invoke(runner, "run", str(bad), "--dry-run")
    assert result.exit_code == 2


def test_bad_secret_pair_exits_two(runner, app_test_yml):
    result = invoke(runner, "run", str(app_test_yml), "--dry-run", "--secret", "oops")
    assert result.exit_code == 2


def test_plan(runner, app_test_yml):
    result = invoke(runner, "plan", str(app_test_yml))
    assert result.exit_code == 0, result.output
    assert "test (python-version=3.8) on ubuntu-latest: 5 step(s)" in result.output
    assert "test (python-version=3.1) on ubuntu-latest: 5 step(s)" in result.output


def test_lint(runner, app_test_yml, notify_yml):
    result = invoke(runner, "lint", str(app_test_yml), "--strict")
    assert result.exit_code == 1
    assert "YCI001" in result.output

    result = invoke(runner, "lint", str(notify_yml), "--strict")
    assert result.exit_code == 0
    assert "No lint warnings." in result.output


def test_workflow_discovery(runner, app_test_yml, notify_yml):
    with runner.isolated_filesystem():
        result = invoke(runner, "plan")
        assert result.exit_code == 2

        os.makedirs(".github/workflows")
        shutil.copy(app_test_yml, ".github/workflows/test.yml")
        result = invoke(runner, "plan")
        assert result.exit_code == 0
        assert "Python Application Test" in result.output

        shutil.copy(notify_yml, ".github/workflows/notify.yaml")
        result = invoke(runner, "plan")
        assert result.exit_code == 2
