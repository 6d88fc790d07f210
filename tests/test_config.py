"""
Tests for MotoConfig defaults, validation and environment loading.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from motolang.config import DEFAULT_SHELLS, MotoConfig

ENV_VARS = [
    "MOTO_SCRIPT_DIR",
    "MOTO_EXTENSION",
    "MOTO_WORKSPACE",
    "MOTO_MAX_ITERATIONS",
    "MOTO_RUNTIME_TASK",
    "MOTO_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    config = MotoConfig()
    assert config.script_dir == Path(".")
    assert config.extension == ".moto"
    assert config.max_iterations == 64
    assert config.runtime_task == "run"
    assert config.shells == DEFAULT_SHELLS
    assert config.is_shell("shell")
    assert config.is_shell("powershell")
    assert not config.is_shell("dart")


def test_extension_gets_a_dot():
    assert MotoConfig(extension="mt").extension == ".mt"
    assert MotoConfig(extension=" .mt ").extension == ".mt"


def test_log_level_is_upper_cased():
    assert MotoConfig(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize("field, value", [
    ("max_iterations", 0),
    ("extension", ""),
    ("shells", {"shell": []}),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        MotoConfig(**{field: value})


def test_config_is_frozen():
    config = MotoConfig()
    with pytest.raises(ValidationError):
        config.max_iterations = 3


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("MOTO_SCRIPT_DIR", str(tmp_path))
    monkeypatch.setenv("MOTO_EXTENSION", "mt")
    monkeypatch.setenv("MOTO_MAX_ITERATIONS", "10")
    monkeypatch.setenv("MOTO_LOG_LEVEL", "warning")

    config = MotoConfig.from_env()
    assert config.script_dir == tmp_path
    assert config.extension == ".mt"
    assert config.max_iterations == 10
    assert config.log_level == "WARNING"


def test_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("MOTO_RUNTIME_TASK", "main")
    monkeypatch.setenv("MOTO_MAX_ITERATIONS", "10")

    config = MotoConfig.from_env(max_iterations=5, runtime_task=None)
    assert config.max_iterations == 5
    assert config.runtime_task == "main"


def test_empty_env_values_are_ignored(monkeypatch):
    monkeypatch.setenv("MOTO_EXTENSION", "")
    assert MotoConfig.from_env().extension == ".moto"


def test_bad_env_value(monkeypatch):
    monkeypatch.setenv("MOTO_MAX_ITERATIONS", "lots")
    with pytest.raises(ValidationError):
        MotoConfig.from_env()
