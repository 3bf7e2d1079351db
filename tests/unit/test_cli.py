"""Tests for the switchboard CLI commands."""

from __future__ import annotations

import logging

import pytest
from typer.testing import CliRunner

from switchboard.cli.main import app

runner = CliRunner()

CONFIG = """
[[backends]]
id = "fake-a"
name = "Fake A"
provider = "openai"
priority = 5
capabilities = ["classification", "text_generation"]

[[backends.models]]
name = "fake-model"
capabilities = ["classification", "text_generation"]
cost_per_1k_input = 0.001
cost_per_1k_output = 0.002
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    return path


@pytest.fixture
def fake_adapters(monkeypatch, fake_factory):
    monkeypatch.setattr(
        "switchboard.runtime.router.ADAPTER_FACTORIES", fake_factory.as_factories()
    )
    return fake_factory


def test_backends_lists_configured(config_file):
    result = runner.invoke(app, ["backends", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "fake-a" in result.stdout
    assert "fake-model" in result.stdout


def test_backends_empty(tmp_path):
    result = runner.invoke(app, ["backends", "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 0
    assert "No backends configured" in result.stdout


def test_process_without_backends_fails(tmp_path):
    result = runner.invoke(
        app, ["process", "classify_message", "hello", "--config", str(tmp_path / "none.toml")]
    )
    assert result.exit_code == 1
    assert "SB_CONFIG_INVALID" in result.stdout


def test_process_routes_request(config_file, fake_adapters):
    result = runner.invoke(
        app, ["process", "classify_message", "I need a refund", "--config", str(config_file)]
    )
    assert result.exit_code == 0, result.stdout
    assert "fake-a" in result.stdout
    assert "refund_request" in result.stdout
    assert fake_adapters.adapters["fake-a"].closed


def test_process_no_provider(config_file, fake_adapters):
    result = runner.invoke(
        app, ["process", "moderate_content", "some text", "--config", str(config_file)]
    )
    assert result.exit_code == 1
    assert "SB_ROUTING_NO_PROVIDER" in result.stdout


def test_status_shows_health(config_file, fake_adapters):
    fake_adapters.behaviors["fake-a"] = {"healthy": False}
    result = runner.invoke(app, ["status", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "fake-a" in result.stdout
    assert "no" in result.stdout


def test_verbose_sets_debug_level(config_file):
    result = runner.invoke(app, ["backends", "--config", str(config_file), "--verbose"])
    assert result.exit_code == 0
    assert logging.getLogger().level == logging.DEBUG


def test_config_log_level_applies_without_verbose(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[runtime]\nlog_level = "ERROR"\n' + CONFIG)
    result = runner.invoke(app, ["backends", "--config", str(path)])
    assert result.exit_code == 0
    assert logging.getLogger().level == logging.ERROR
