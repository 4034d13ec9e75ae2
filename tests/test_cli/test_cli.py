"""Tests for the alertrelay CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from alertrelay.cli import main

CONFIG_TOML = """
[app]
address = "127.0.0.1:7000"

[providers.ops]
endpoint = "https://chat.example.com/v1/spaces/AAA/messages"
threaded_replies = true

[providers.dev]
endpoint = "https://chat.example.com/v1/spaces/BBB/messages"
dry_run = true
"""


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv("ALERTRELAY_CONFIG", raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)
    return str(path)


@pytest.fixture
def payload_file(tmp_path, sample_payload):
    path = tmp_path / "payload.json"
    path.write_text(json.dumps(sample_payload))
    return str(path)


# ── check-config ──────────────────────────────────────────


class TestCheckConfig:
    def test_lists_rooms(self, runner, config_file):
        result = runner.invoke(main, ["--config", config_file, "check-config"])

        assert result.exit_code == 0, result.output
        assert "ops (google_chat) [threaded]" in result.output
        assert "dev (google_chat) [dry-run]" in result.output
        assert "OK: 2 room(s) configured" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(
            main, ["--config", str(tmp_path / "missing.toml"), "check-config"],
        )

        assert result.exit_code == 1
        assert "config file not found" in result.output

    def test_bad_template(self, runner, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[providers.ops]\nendpoint = "https://x"\n'
            f'template = "{tmp_path / "missing.j2"}"\n'
        )

        result = runner.invoke(main, ["--config", str(path), "check-config"])

        assert result.exit_code == 1
        assert "error:" in result.output

    def test_bad_proxy_url(self, runner, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[providers.ops]\nendpoint = "https://x"\nproxy_url = "ftp://proxy:21"\n'
        )

        result = runner.invoke(main, ["--config", str(path), "check-config"])

        assert result.exit_code == 1
        assert "error: invalid configuration" in result.output


# ── render ────────────────────────────────────────────────


class TestRender:
    def test_prints_chunks(self, runner, config_file, payload_file):
        result = runner.invoke(
            main, ["--config", config_file, "render", "ops", payload_file],
        )

        assert result.exit_code == 0, result.output
        assert "--- chunk 1/1" in result.output
        assert "(FIRING)" in result.output
        assert "Summary: CPU above 90%" in result.output

    def test_unknown_room(self, runner, config_file, payload_file):
        result = runner.invoke(
            main, ["--config", config_file, "render", "nowhere", payload_file],
        )

        assert result.exit_code == 1
        assert "unknown room" in result.output

    def test_render_error(self, runner, tmp_path, payload_file):
        template = tmp_path / "bad.j2"
        template.write_text("{{ labels.alertname | re_replace_all('(', '') }}")
        path = tmp_path / "config.toml"
        path.write_text(
            f'[providers.ops]\nendpoint = "https://x"\ntemplate = "{template}"\n'
        )

        result = runner.invoke(main, ["--config", str(path), "render", "ops", payload_file])

        assert result.exit_code == 1
        assert "error:" in result.output


# ── serve ─────────────────────────────────────────────────


class TestServe:
    def test_runs_uvicorn_factory(self, runner, config_file, monkeypatch):
        # serve exports the config path for the server process.
        monkeypatch.setenv("ALERTRELAY_CONFIG", config_file)

        with patch("uvicorn.run") as mock_run, patch("alertrelay.cli.setup_logging"):
            result = runner.invoke(main, ["--config", config_file, "serve", "--port", "7100"])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_run.call_args
        assert args == ("alertrelay.api.app:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 7100
