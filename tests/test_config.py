import importlib
import logging

import pytest

import config


@pytest.fixture
def reload_config(monkeypatch):
    """Reload ``config`` with a clean environment and restore it afterwards."""

    for name in (
        "WIZARD_PERSIST_STATE",
        "WIZARD_STORAGE_KEY",
        "WIZARD_STORAGE_DIR",
        "WIZARD_AUTOSAVE_DEBOUNCE",
        "WIZARD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)
    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)


def test_defaults_without_environment(reload_config):
    module = reload_config()

    assert module.PERSIST_STATE_DEFAULT is False
    assert module.DEFAULT_STORAGE_KEY == "multistep-form"
    assert module.AUTOSAVE_DEBOUNCE_SECONDS == 0.5
    assert module.LOG_LEVEL == logging.INFO


def test_environment_overrides(reload_config, monkeypatch, tmp_path):
    monkeypatch.setenv("WIZARD_PERSIST_STATE", "Yes")
    monkeypatch.setenv("WIZARD_STORAGE_KEY", "  partner-onboarding ")
    monkeypatch.setenv("WIZARD_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("WIZARD_AUTOSAVE_DEBOUNCE", "1.25")
    monkeypatch.setenv("WIZARD_LOG_LEVEL", "debug")

    module = reload_config()

    assert module.PERSIST_STATE_DEFAULT is True
    assert module.DEFAULT_STORAGE_KEY == "partner-onboarding"
    assert module.STORAGE_DIR == tmp_path
    assert module.AUTOSAVE_DEBOUNCE_SECONDS == 1.25
    assert module.LOG_LEVEL == logging.DEBUG


def test_invalid_values_fall_back(caplog):
    with caplog.at_level("WARNING", logger="config"):
        assert config._parse_non_negative_float_env("-3", env_var="X", default=0.5) == 0.5
        assert config._parse_non_negative_float_env("soon", env_var="X", default=0.5) == 0.5
        assert config._parse_log_level("chatty") == logging.INFO

    assert "falling back" in caplog.text
    assert config._is_truthy_flag(None) is False
    assert config._is_truthy_flag(" on ") is True
