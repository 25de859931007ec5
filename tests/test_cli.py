"""Tests for the job-runner command and the kjob command group."""
import json
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from kjob import __version__
from kjob.cli import job_runner, main
from kjob.errors import AlreadyActiveError, ValidationError
from kjob.supervisor import SupervisorResult, SupervisorState


@pytest.fixture(autouse=True)
def kjob_home(monkeypatch, tmp_path):
    """Point config lookup at an empty directory."""
    home = tmp_path / "kjob-home"
    home.mkdir()
    monkeypatch.setenv("KJOB_HOME", str(home))
    return home


@pytest.fixture
def mock_runner():
    with patch("kjob.cli._install_signal_handlers"):
        with patch("kjob.cli.JobRunner") as runner_cls:
            yield runner_cls.return_value


def result_for(state=SupervisorState.COMPLETE, **kwargs):
    moment = datetime(2026, 10, 18, 12, 0, 0)
    return SupervisorResult(state=state, handle=None, started_at=moment, ended_at=moment, **kwargs)


def test_job_runner_completes(mock_runner, job_file):
    """job-runner JOBFILE exits 0 once the Job completes."""
    mock_runner.run.return_value = result_for()

    result = CliRunner().invoke(job_runner, [str(job_file)])

    assert result.exit_code == 0, result.output
    mock_runner.run.assert_called_once_with(Path(str(job_file)), verbose=False)


def test_job_runner_lost_exits_zero(mock_runner, job_file):
    mock_runner.run.return_value = result_for(SupervisorState.LOST, error_message="Lost track")

    result = CliRunner().invoke(job_runner, [str(job_file)])

    assert result.exit_code == 0


def test_job_runner_already_active(mock_runner, job_file):
    """A duplicate Job is fatal."""
    mock_runner.run.side_effect = AlreadyActiveError("demo", "ns1")

    result = CliRunner().invoke(job_runner, [str(job_file)])

    assert result.exit_code == 1
    assert "already" in result.output


def test_job_runner_invalid_descriptor(mock_runner, tmp_path):
    mock_runner.run.side_effect = ValidationError("No job file found at missing.yaml")

    result = CliRunner().invoke(job_runner, ["missing.yaml"])

    assert result.exit_code == 1
    assert "No job file found" in result.output


def test_job_runner_cancelled(mock_runner, job_file):
    """A stop signal before a terminal state exits 130."""
    mock_runner.run.return_value = result_for(SupervisorState.RUNNING_CAPTURED, cancelled=True)

    result = CliRunner().invoke(job_runner, [str(job_file)])

    assert result.exit_code == 130


def test_job_runner_requires_jobfile():
    result = CliRunner().invoke(job_runner, [])
    assert result.exit_code == 2
    assert "JOBFILE" in result.output


def test_job_runner_help_lists_log_files():
    result = CliRunner().invoke(job_runner, ["--help"])
    assert result.exit_code == 0
    assert "completion-describe" in result.output
    assert "done" in result.output


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_verbose(mock_runner, job_file):
    """kjob run --verbose passes the flag through."""
    mock_runner.run.return_value = result_for()

    result = CliRunner().invoke(main, ["run", str(job_file), "--verbose"])

    assert result.exit_code == 0, result.output
    assert mock_runner.run.call_args.kwargs["verbose"] is True


def test_run_invalid_config(mock_runner, job_file, tmp_path):
    config = tmp_path / "bad.yaml"
    config.write_text("soft_failure_budget: 0\n")

    result = CliRunner().invoke(main, ["run", str(job_file), "--config", str(config)])

    assert result.exit_code == 1
    assert "Configuration invalid" in result.output
    mock_runner.run.assert_not_called()


def test_run_config_with_wrong_type(mock_runner, job_file, tmp_path):
    """A mistyped config value is reported, not a traceback."""
    config = tmp_path / "typo.yaml"
    config.write_text("poll_interval_seconds: thirty\n")

    result = CliRunner().invoke(main, ["run", str(job_file), "--config", str(config)])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Configuration invalid" in result.output
    mock_runner.run.assert_not_called()


def test_validate_command(job_file, tmp_path):
    """kjob validate checks the descriptor and kubeconfig without deploying."""
    kubeconfig = tmp_path / "kubeconfig"
    kubeconfig.write_text("apiVersion: v1\n")
    config = tmp_path / "config.yaml"
    config.write_text(f"kubeconfig: {kubeconfig}\n")

    with patch("kjob.tools.base.shutil.which", return_value="/usr/bin/kubectl"):
        with patch("kjob.tools.kubectl.subprocess.run") as mock_run:
            result = CliRunner().invoke(main, ["validate", str(job_file), "--config", str(config)])

    assert result.exit_code == 0, result.output
    assert "Job: demo" in result.output
    assert "Namespace: ns1" in result.output
    assert "Primary container: main" in result.output
    mock_run.assert_not_called()


def test_validate_command_rejects_bad_descriptor(tmp_path):
    bad = tmp_path / "job.bad.yaml"
    bad.write_text("kind: Job\nmetadata:\n  name: demo\n")

    result = CliRunner().invoke(main, ["validate", str(bad)])

    assert result.exit_code == 1
    assert "Validation failed" in result.output


def test_status_without_runs(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["status", "demo"])

    assert result.exit_code == 0
    assert "No previous runs found for job demo" in result.output


def test_status_after_run(tmp_path, monkeypatch):
    """kjob status reads the state file the last run saved."""
    monkeypatch.chdir(tmp_path)
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "demo-runner-2026-10-18_120000.log").write_text("")
    saved = result_for(SupervisorState.LOST, ticks=7, restarts=2, error_message="Lost track of job/demo")
    (logs / "demo-state.json").write_text(json.dumps(saved.to_dict()))

    result = CliRunner().invoke(main, ["status", "demo"])

    assert result.exit_code == 0, result.output
    assert "State: ❌ LOST" in result.output
    assert "Polls: 7  Capture restarts: 2" in result.output
    assert "Error: Lost track of job/demo" in result.output
    assert "demo-runner-2026-10-18_120000.log" in result.output


def test_status_corrupt_state_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "demo-state.json").write_text("{not json")

    result = CliRunner().invoke(main, ["status", "demo"])

    assert result.exit_code == 1
    assert "Could not retrieve status" in result.output
