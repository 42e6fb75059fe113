# backend/tests/test_cli.py
from types import SimpleNamespace

import pytest
from conftest import FakeCredentials
from typer.testing import CliRunner

from omnipedia.cli import commands
from omnipedia.config import settings

runner = CliRunner()


@pytest.fixture
def key_file(tmp_path, monkeypatch):
    path = tmp_path / "api_key"
    monkeypatch.setattr(settings.gemini, "credential_file", path)
    monkeypatch.setattr(settings.gemini, "api_key", None)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return path


@pytest.fixture
def fake_environment(monkeypatch, tmp_path, fake_genai):
    credentials = FakeCredentials(fake_genai)
    monkeypatch.setattr(commands, "ApiCredentials", SimpleNamespace(from_environment=lambda: credentials))
    monkeypatch.setattr(settings.storage, "tmp_dir", tmp_path / "media")
    return credentials


def test_set_key_and_clear_key(key_file):
    result = runner.invoke(commands.app, ["set-key", "abc123"])
    assert result.exit_code == 0
    assert key_file.read_text() == "abc123"

    result = runner.invoke(commands.app, ["clear-key"])
    assert result.exit_code == 0
    assert not key_file.exists()


def test_generate_without_key_exits_with_hint(key_file):
    result = runner.invoke(commands.app, ["generate", "Typewriter"])
    assert result.exit_code == 1
    assert "set-key" in result.output


def test_generate_prints_usage_ledger(fake_environment):
    result = runner.invoke(commands.app, ["generate", "Typewriter", "--no-animate"])
    assert result.exit_code == 0, result.output
    assert "The Typewriter" in result.output
    assert "Usage" in result.output
    assert "Entry complete" in result.output


def test_generate_failure_exits_nonzero(fake_environment, fake_genai):
    def respond(model, contents, config):
        raise RuntimeError("500 INTERNAL")

    fake_genai.respond = respond
    result = runner.invoke(commands.app, ["generate", "Typewriter", "--no-animate"])
    assert result.exit_code == 1
    assert "Pipeline failed" in result.output
    assert "500 INTERNAL" in result.output


def test_auth_failure_suggests_new_key(fake_environment, fake_genai):
    def respond(model, contents, config):
        raise RuntimeError("403 PERMISSION_DENIED")

    fake_genai.respond = respond
    result = runner.invoke(commands.app, ["surprise", "--no-animate"])
    assert result.exit_code == 1
    assert "set-key" in result.output
