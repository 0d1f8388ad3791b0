"""Tests for oeinstall.cli: command smoke tests via CliRunner.

The install runner and compose client are mocked so no Docker is needed.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from oeinstall.cli.app import app
from oeinstall.core.errors import ComposeCommandError, DockerNotFoundError, ErrorCategory
from oeinstall.deploy.results import InstallResult, ServiceStatus, StepResult

runner = CliRunner()


def _result(*steps: StepResult, services=None) -> InstallResult:
    result = InstallResult(
        run_id="abc123",
        app_url="http://localhost:8080/",
        compose_file="docker-compose-oe-image.yml",
        steps=list(steps),
        services=services or [],
    )
    result.mark_complete()
    return result


@pytest.fixture
def install_runner():
    with patch("oeinstall.cli.install.InstallRunner") as cls:
        yield cls


@pytest.fixture
def compose_client():
    with patch("oeinstall.cli.install.ComposeClient") as cls:
        yield cls.return_value


# ─── Version ─────────────────────────────────────────────────────────────


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("oe-install ")


# ─── Install ─────────────────────────────────────────────────────────────


class TestInstall:
    def test_success_prints_completion_banner(self, install_runner, tmp_path):
        install_runner.return_value.run.return_value = _result(
            StepResult.ok("preflight", "Docker and Docker Compose are available"),
            StepResult.ok("final_check", "OpenEyes is accessible at http://localhost:8080/"),
            services=[ServiceStatus(name="db", status="healthy")],
        )
        result = runner.invoke(app, ["install", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "OpenEyes Installation Complete!" in result.output
        assert "Username: admin" in result.output
        assert "docker compose -f docker-compose-oe-image.yml down" in result.output

    def test_options_flow_into_config(self, install_runner, tmp_path):
        install_runner.return_value.run.return_value = _result(StepResult.ok("preflight"))
        runner.invoke(
            app,
            ["install", "-d", str(tmp_path), "-f", "custom.yml", "--no-pull", "--app-url", "http://oe:9000/"],
        )
        config = install_runner.call_args.args[0]
        assert config.project_dir == tmp_path
        assert config.compose_file == "custom.yml"
        assert config.pull_images is False
        assert config.app_url == "http://oe:9000/"

    def test_env_used_when_options_absent(self, install_runner, monkeypatch):
        monkeypatch.setenv("OE_INSTALL_PULL_IMAGES", "false")
        install_runner.return_value.run.return_value = _result(StepResult.ok("preflight"))
        runner.invoke(app, ["install"])
        assert install_runner.call_args.args[0].pull_images is False

    def test_fatal_step_exits_one(self, install_runner, tmp_path):
        install_runner.return_value.run.return_value = _result(
            StepResult.ok("preflight"),
            StepResult.fatal("start_database", "container is unhealthy", ErrorCategory.ORCHESTRATION),
        )
        result = runner.invoke(app, ["install", "--dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "Installation Complete" not in result.output

    def test_warnings_exit_zero(self, install_runner, tmp_path):
        install_runner.return_value.run.return_value = _result(
            StepResult.ok("preflight"),
            StepResult.warn("verify", "Database verification failed - Found 120 tables in the database"),
        )
        result = runner.invoke(app, ["install", "--dir", str(tmp_path)])
        assert result.exit_code == 0

    def test_json_output(self, install_runner, tmp_path):
        install_runner.return_value.run.return_value = _result(StepResult.ok("preflight"))
        result = runner.invoke(app, ["install", "--dir", str(tmp_path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["run_id"] == "abc123"
        assert data["overall_status"] == "PASSED"
        assert install_runner.call_args.kwargs["on_step"] is None

    def test_json_output_not_mixed_with_logs(self, install_runner, tmp_path):
        from oeinstall.deploy import workflow

        def run():
            workflow.logger.info("step.started")
            workflow.logger.debug("compose.exec", cmd="docker compose ps")
            return _result(StepResult.ok("preflight"))

        install_runner.return_value.run.side_effect = run
        result = runner.invoke(app, ["install", "--dir", str(tmp_path), "--json"])
        assert result.exit_code == 0
        assert "step.started" not in result.stdout
        assert json.loads(result.stdout)["run_id"] == "abc123"

    def test_no_subcommand_runs_install(self, install_runner, monkeypatch, tmp_path):
        monkeypatch.setenv("OE_INSTALL_PROJECT_DIR", str(tmp_path))
        install_runner.return_value.run.return_value = _result(
            StepResult.fatal("preflight", "Docker is not installed or not in PATH", ErrorCategory.CONFIG)
        )
        result = runner.invoke(app, [])
        assert result.exit_code == 1
        assert install_runner.call_args.args[0].project_dir == tmp_path

    def test_invalid_config_exits_one(self, install_runner, monkeypatch):
        monkeypatch.setenv("OE_INSTALL_DB_NAME", "bad name")
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 1
        install_runner.assert_not_called()


class TestStepPrinter:
    def test_step_lines(self):
        from oeinstall.cli import install as install_cmds

        with patch.object(install_cmds, "console") as console:
            install_cmds._print_step(
                StepResult.warn("final_check", "OpenEyes may still be starting up", hint="docker compose logs -f")
            )
        printed = " ".join(str(c.args[0]) for c in console.print.call_args_list)
        assert "Step 10:" in printed
        assert "Final status check" in printed
        assert "You can check the status with: docker compose logs -f" in printed


# ─── Stack management ────────────────────────────────────────────────────


class TestStackCommands:
    def test_status_table(self, compose_client):
        compose_client.ps.return_value = [
            ServiceStatus(name="db", container_name="oe-db-1", status="healthy"),
            ServiceStatus(name="app", status="running", ports="8080->80"),
        ]
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Service Status" in result.output

    def test_status_json(self, compose_client):
        compose_client.ps.return_value = [ServiceStatus(name="db", status="healthy")]
        result = runner.invoke(app, ["status", "--json"])
        assert json.loads(result.stdout) == [
            {"name": "db", "container_name": None, "image": None, "status": "healthy", "ports": None}
        ]

    def test_status_json_not_mixed_with_logs(self, compose_client):
        from oeinstall.deploy import compose

        def ps():
            compose.logger.debug("compose.exec", cmd="docker compose ps")
            return [ServiceStatus(name="app", status="running")]

        compose_client.ps.side_effect = ps
        result = runner.invoke(app, ["status", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["name"] == "app"

    def test_down(self, compose_client):
        result = runner.invoke(app, ["down"])
        assert result.exit_code == 0
        compose_client.down.assert_called_once()

    def test_down_failure(self, compose_client):
        compose_client.down.side_effect = ComposeCommandError("failed", returncode=1)
        result = runner.invoke(app, ["down"])
        assert result.exit_code == 1

    def test_restart(self, compose_client):
        result = runner.invoke(app, ["restart"])
        assert result.exit_code == 0
        compose_client.up.assert_called_once_with()

    def test_logs(self, compose_client):
        compose_client.logs.return_value = 0
        result = runner.invoke(app, ["logs", "-s", "app", "--tail", "20", "--follow"])
        assert result.exit_code == 0
        compose_client.logs.assert_called_once_with(service="app", tail=20, follow=True)

    def test_logs_nonzero_exit(self, compose_client):
        compose_client.logs.return_value = 3
        assert runner.invoke(app, ["logs"]).exit_code == 3

    def test_docker_missing(self):
        with patch("oeinstall.cli.install.ComposeClient", side_effect=DockerNotFoundError()):
            result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
