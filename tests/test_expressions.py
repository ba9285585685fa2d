from __future__ import annotations

import pytest

from yamlci.errors import ConfigurationError, GuardEvaluationFailure, MissingSecretError
from yamlci.expressions import Scope, compile_guard, interpolate, references
from yamlci.model import GuardContext, GuardKind


@pytest.fixture
def scope():
    return Scope(contexts={
        "secrets": {"CODECOV_TOKEN": "abc"},
        "matrix": {"python-version": "3.10"},
        "env": {"APP": "app"},
        "github": {"event_name": "push", "ref_name": "main"},
    })


def test_interpolates_known_references(scope):
    text = "pytest --cov=${{ env.APP }} # py${{matrix.python-version}} on ${{ github.ref_name }}"
    assert interpolate(text, scope) == "pytest --cov=app # py3.10 on main"


def test_text_without_expressions_is_unchanged(scope):
    assert interpolate("echo ${HOME} {{ x }}", scope) == "echo ${HOME} {{ x }}"


def test_secret_lookup_and_missing_secret(scope):
    assert interpolate("${{ secrets.CODECOV_TOKEN }}", scope) == "abc"
    with pytest.raises(MissingSecretError) as exc:
        interpolate("${{ secrets.SLACK_BOT_TOKEN }}", scope)
    assert exc.value.name == "SLACK_BOT_TOKEN"
    assert isinstance(exc.value, ConfigurationError)


@pytest.mark.parametrize("expr", ["${{ vars.X }}", "${{ matrix.os }}", "${{ matrix }}"])
def test_unknown_references_are_configuration_errors(scope, expr):
    with pytest.raises(ConfigurationError, match="unknown reference"):
        interpolate(expr, scope)


def test_literal_expressions(scope):
    assert interpolate("${{ 'it''s' }}-${{ 3 }}-${{ true }}", scope) == "it's-3-true"


def test_references_lists_bodies():
    assert references("a ${{ matrix.x }} b ${{secrets.Y}}") == ["matrix.x", "secrets.Y"]
    assert references("plain") == []


# ----------------------------------------------------------------------
# Guards
# ----------------------------------------------------------------------

def ctx(failed=False, **matrix):
    return GuardContext(failed=failed, matrix=matrix, env={}, github={"event_name": "push"})


@pytest.mark.parametrize(
    "source, kind",
    [
        (None, GuardKind.ON_SUCCESS),
        ("success()", GuardKind.ON_SUCCESS),
        ("failure()", GuardKind.ON_FAILURE),
        ("${{ failure() }}", GuardKind.ON_FAILURE),
        ("always()", GuardKind.ALWAYS),
        ("failure() && matrix.py == '3.9'", GuardKind.CUSTOM),
        (True, GuardKind.CUSTOM),
    ],
)
def test_guard_kinds(source, kind):
    assert compile_guard(source).kind is kind


def test_guard_semantics():
    assert compile_guard(None).evaluate(ctx()) is True
    assert compile_guard(None).evaluate(ctx(failed=True)) is False
    assert compile_guard("failure()").evaluate(ctx(failed=True)) is True
    assert compile_guard("failure()").evaluate(ctx()) is False
    assert compile_guard("always()").evaluate(ctx(failed=True)) is True


def test_custom_guard_operators():
    g = compile_guard("failure() && (matrix.py == '3.9' || matrix.py == '3.10')")
    assert g.evaluate(ctx(failed=True, py="3.10")) is True
    assert g.evaluate(ctx(failed=True, py="3.11")) is False
    assert g.evaluate(ctx(failed=False, py="3.10")) is False

    g = compile_guard("!cancelled() && github.event_name != 'pull_request'")
    assert g.evaluate(ctx()) is True


def test_string_comparison_keeps_trailing_zero():
    g = compile_guard("matrix.py == '3.1'")
    assert g.evaluate(ctx(py="3.10")) is False
    assert g.evaluate(ctx(py="3.1")) is True


def test_number_comparison_coerces():
    assert compile_guard("matrix.n == 2").evaluate(ctx(n="2")) is True


def test_implicit_success_for_plain_expressions():
    g = compile_guard("matrix.py == '3.9'")
    assert g.evaluate(ctx(py="3.9")) is True
    assert g.evaluate(ctx(failed=True, py="3.9")) is False


def test_constant_guards():
    assert compile_guard(False).evaluate(ctx()) is False
    assert compile_guard(True).evaluate(ctx()) is True


def test_unknown_reference_in_guard_raises_evaluation_failure():
    g = compile_guard("steps.build.outcome == 'success'")
    with pytest.raises(GuardEvaluationFailure):
        g.evaluate(ctx())


@pytest.mark.parametrize("bad", ["matrix.py ==", "(failure()", "contains(a, b)", "foo() ", "a === b", "'unterminated"])
def test_malformed_guards_rejected(bad):
    with pytest.raises(ConfigurationError):
        compile_guard(bad)
