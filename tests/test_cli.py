"""Tests for CLI commands"""

import json
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from cli.client.base import StudioJobsError
from cli.commands.render import load_storyboard
from cli.main import app
from cli.utils.config_manager import ConfigManager


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def mock_client():
    """Mock API client usable as a context manager"""
    client = MagicMock()
    client.__enter__.return_value = client
    client.__exit__.return_value = None
    client.cron_secret = "secret"
    return client


@pytest.fixture
def tmp_config(tmp_path):
    """Config manager rooted in a temporary directory"""
    manager = ConfigManager(config_dir=tmp_path / "cfg")
    with patch("cli.commands.config.config", manager), patch(
        "cli.commands.render.config", manager
    ):
        yield manager


@pytest.fixture
def storyboard_file(tmp_path):
    path = tmp_path / "board.json"
    path.write_text(json.dumps({"title": "Lisbon", "scenes": []}))
    return path


class TestMainCommands:
    def test_version_flag(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Studio Jobs CLI v1.0.0" in result.stdout

    def test_version_command(self, runner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Studio Jobs CLI" in result.stdout

    def test_status_success(self, runner, mock_client):
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "queues": {"render_active": 2, "publish_due": 5},
        }
        with patch("cli.main.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Connected Successfully" in result.stdout
        assert "development" in result.stdout

    def test_status_connection_failure(self, runner, mock_client):
        mock_client.health_check.side_effect = StudioJobsError("Connection failed")
        with patch("cli.main.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout


class TestPublishCommands:
    def test_publish_run(self, runner, mock_client):
        mock_client.run_publish.return_value = {"processed": 3, "failed": 0}
        with patch("cli.commands.publish.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["publish", "run"])

        assert result.exit_code == 0
        assert "Processed" in result.stdout
        mock_client.run_publish.assert_called_once_with(dry=False)

    def test_publish_run_dry(self, runner, mock_client):
        mock_client.run_publish.return_value = {"mode": "dry", "due": 4}
        with patch("cli.commands.publish.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["publish", "run", "--dry"])

        assert result.exit_code == 0
        assert "Dry run" in result.stdout
        mock_client.run_publish.assert_called_once_with(dry=True)

    def test_publish_run_with_failures_exits_2(self, runner, mock_client):
        mock_client.run_publish.return_value = {"processed": 1, "failed": 2}
        with patch("cli.commands.publish.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["publish", "run"])

        assert result.exit_code == 2

    def test_publish_run_forbidden(self, runner, mock_client):
        mock_client.run_publish.side_effect = StudioJobsError("Forbidden", 403)
        with patch("cli.commands.publish.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["publish", "run"])

        assert result.exit_code == 1
        assert "Publish run failed" in result.stdout

    def test_publish_run_one(self, runner, mock_client):
        mock_client.run_publish_one.return_value = {"processed": 1, "failed": 0}
        with patch("cli.commands.publish.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["publish", "run-one", "abc"])

        assert result.exit_code == 0
        mock_client.run_publish_one.assert_called_once_with("abc")


class TestRenderCommands:
    def test_render_get(self, runner, mock_client):
        mock_client.get_render_job.return_value = {
            "id": "job-1",
            "status": "processing",
            "progress": 40,
        }
        with patch("cli.commands.render.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["render", "get", "job-1"])

        assert result.exit_code == 0
        assert "job-1" in result.stdout
        assert "40%" in result.stdout

    def test_render_get_not_found(self, runner, mock_client):
        mock_client.get_render_job.side_effect = StudioJobsError("Render job not found", 404)
        with patch("cli.commands.render.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(app, ["render", "get", "missing"])

        assert result.exit_code == 1

    def test_render_start(self, runner, mock_client, tmp_config, storyboard_file):
        mock_client.create_render_job.return_value = {
            "job_id": "job-9",
            "status": "processing",
            "provider_job_id": "mock_1",
        }
        with patch("cli.commands.render.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(
                app, ["render", "start", "session-1", "--storyboard", str(storyboard_file)]
            )

        assert result.exit_code == 0
        assert "job-9" in result.stdout
        mock_client.create_render_job.assert_called_once_with(
            "session-1", {"title": "Lisbon", "scenes": []}
        )
        mock_client.simulate_render_job.assert_not_called()

    def test_render_start_with_simulation(
        self, runner, mock_client, tmp_config, storyboard_file
    ):
        mock_client.create_render_job.return_value = {"job_id": "job-9"}
        mock_client.simulate_render_job.return_value = {
            "id": "job-9",
            "status": "succeeded",
            "progress": 100,
        }
        with patch("cli.commands.render.StudioJobsClient", return_value=mock_client):
            result = runner.invoke(
                app,
                [
                    "render",
                    "start",
                    "session-1",
                    "-s",
                    str(storyboard_file),
                    "--simulate",
                ],
            )

        assert result.exit_code == 0
        mock_client.simulate_render_job.assert_called_once_with("job-9")

    def test_load_storyboard_yaml(self, tmp_path):
        path = tmp_path / "board.yaml"
        path.write_text(yaml.safe_dump({"title": "Kyoto", "fps": 24}))

        assert load_storyboard(path) == {"title": "Kyoto", "fps": 24}

    def test_load_storyboard_rejects_non_mapping(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError):
            load_storyboard(path)


class TestConfigCommands:
    def test_config_set_and_get(self, runner, tmp_config):
        result = runner.invoke(app, ["config", "set", "api.base_url", "http://studio:9000"])

        assert result.exit_code == 0
        assert tmp_config.get("api.base_url") == "http://studio:9000"

    def test_config_set_rejects_bad_url(self, runner, tmp_config):
        result = runner.invoke(app, ["config", "set", "api.base_url", "studio:9000"])

        assert result.exit_code == 1
        assert not tmp_config.config_file.exists()

    def test_config_set_numeric(self, runner, tmp_config):
        result = runner.invoke(app, ["config", "set", "render.poll_interval", "0.5"])

        assert result.exit_code == 0
        assert tmp_config.get("render.poll_interval") == 0.5

    def test_config_show_masks_secret(self, runner, tmp_config):
        tmp_config.set("cron.secret", "super-secret-value")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "super-secret-value" not in result.stdout
        assert "****" in result.stdout

    def test_config_reset(self, runner, tmp_config):
        tmp_config.set("render.simulate", True)

        result = runner.invoke(app, ["config", "reset", "--yes"])

        assert result.exit_code == 0
        assert tmp_config.get("render.simulate") is False


class TestConfigManager:
    def test_defaults_when_missing(self, tmp_path):
        manager = ConfigManager(config_dir=tmp_path / "none")

        assert manager.get("api.timeout") == 30
        assert manager.get("missing.key", "fallback") == "fallback"
        assert not manager.config_dir.exists()

    def test_partial_file_merges_over_defaults(self, tmp_path):
        manager = ConfigManager(config_dir=tmp_path)
        manager.config_file.write_text(yaml.safe_dump({"api": {"timeout": 5}}))

        assert manager.get("api.timeout") == 5
        assert manager.get("render.poll_interval") == 2.0
