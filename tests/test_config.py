from __future__ import annotations

from pathlib import Path

import pytest

from yamlci.config import Settings, build_secret_store, load_secrets_file, parse_pairs
from yamlci.errors import ConfigurationError
from yamlci.executor import SecretStore


def test_settings_defaults():
    s = Settings.from_env({})
    assert s.workflow_dir == Path(".github/workflows")
    assert s.workers is None
    assert s.secrets_file is None
    assert s.log_level == "WARNING"


def test_settings_from_env():
    s = Settings.from_env({
        "YAMLCI_WORKFLOW_DIR": "ci",
        "YAMLCI_WORKERS": "4",
        "YAMLCI_SECRETS_FILE": "s.yml",
        "YAMLCI_LOG_LEVEL": "info",
        "YAMLCI_STEP_TIMEOUT": "30",
    })
    assert s == Settings(Path("ci"), 4, Path("s.yml"), "INFO", 30.0)


@pytest.mark.parametrize("env", [{"YAMLCI_WORKERS": "many"}, {"YAMLCI_WORKERS": "0"}])
def test_settings_reject_bad_workers(env):
    with pytest.raises(ConfigurationError):
        Settings.from_env(env)


def test_load_secrets_file(tmp_path):
    f = tmp_path / "secrets.yml"
    f.write_text("CODECOV_TOKEN: abc\nNUMERIC: 12\nEMPTY:\n")
    assert load_secrets_file(f) == {"CODECOV_TOKEN": "abc", "NUMERIC": "12", "EMPTY": ""}

    f.write_text("- a\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_secrets_file(f)

    with pytest.raises(ConfigurationError, match="not found"):
        load_secrets_file(tmp_path / "nope.yml")


def test_parse_pairs():
    assert parse_pairs(["A=1", "B=x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}
    with pytest.raises(ConfigurationError):
        parse_pairs(["novalue"])


def test_secret_precedence(tmp_path):
    f = tmp_path / "secrets.yml"
    f.write_text("A: file\nB: file\n")
    environ = {"YAMLCI_SECRET_A": "env", "YAMLCI_SECRET_C": "env", "OTHER": "x"}

    store = build_secret_store(Settings(), secrets_file=f, cli_pairs=["B=cli"], environ=environ)
    assert dict(store) == {"A": "file", "B": "cli", "C": "env"}


def test_secret_store_repr_hides_values():
    store = SecretStore({"TOKEN": "hunter2"})
    assert "hunter2" not in repr(store)
    assert store["TOKEN"] == "hunter2"
    assert len(store) == 1
