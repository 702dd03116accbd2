"""Tests for environment configuration."""

from pathlib import Path

import pytest

from helmplan.config import Config
from helmplan.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HELMPLAN_CONFIG", "HELMPLAN_TARGET", "HELM_EXECUTABLE", "HELMPLAN_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = Config.from_env()

    assert config.declaration_path == Path("helm.yaml")
    assert config.helm_executable is None
    assert config.release_target is None
    assert config.log_level == "INFO"


def test_from_env(monkeypatch):
    monkeypatch.setenv("HELMPLAN_CONFIG", "deploy/helm.yaml")
    monkeypatch.setenv("HELMPLAN_TARGET", "prod")
    monkeypatch.setenv("HELM_EXECUTABLE", "helm3")
    monkeypatch.setenv("HELMPLAN_LOG_LEVEL", "debug")

    config = Config.from_env()

    assert config.declaration_path == Path("deploy/helm.yaml")
    assert config.release_target == "prod"
    assert config.helm_executable == "helm3"
    assert config.log_level == "DEBUG"


def test_invalid_log_level(monkeypatch):
    monkeypatch.setenv("HELMPLAN_LOG_LEVEL", "verbose")

    with pytest.raises(ConfigurationError):
        Config.from_env()
