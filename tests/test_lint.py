from __future__ import annotations

from yamlci.dsl import job, matrix, sh, uses, wf
from yamlci.lint import lint
from yamlci.loader import load_workflow


def codes(warnings):
    return sorted(w.code for w in warnings)


def test_tutorial_workflow_warnings(app_test_yml):
    warnings = lint(load_workflow(app_test_yml))

    override = [w for w in warnings if w.code == "YCI001"]
    assert len(override) == 1
    assert override[0].step == "Set up Python"
    assert "matrix.python-version" in override[0].message

    floats = [w for w in warnings if w.code == "YCI002"]
    assert len(floats) == 3
    assert any("3.1" in w.message for w in floats)


def test_clean_workflow_has_no_warnings(notify_yml):
    assert lint(load_workflow(notify_yml)) == []


def test_unpinned_action_and_unnamed_step():
    doc = wf(job("j", uses(None, "actions/checkout"), sh("ok", "true")))
    warnings = lint(doc)
    assert codes(warnings) == ["YCI003", "YCI004"]
    assert str(warnings[0]).startswith("YCI004 [j/#1]")


def test_expression_input_matching_axis_is_fine():
    doc = wf(job(
        "j",
        uses("Set up Python", "actions/setup-python@v5", with_={"python-version": "${{ matrix.python-version }}"}),
        matrix=matrix(python_version=["3.9"]),
    ))
    assert lint(doc) == []
