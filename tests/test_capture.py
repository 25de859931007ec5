"""Tests for the log capture process.

These launch real child processes (the running interpreter) in place of
`kubectl logs -f`.
"""

import sys
import time
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from kjob.capture import CaptureProcess, LogCapture
from kjob.errors import CaptureRestartError
from kjob.models import WorkloadHandle


HANDLE = WorkloadHandle("demo", "ns1", datetime(2026, 10, 18, 12, 0, 0))


class ScriptCapture(LogCapture):
    """LogCapture that runs a Python snippet instead of kubectl."""

    def __init__(self, log_path, script):
        super().__init__(kubectl=MagicMock(), log_path=log_path)
        self.script = script

    def command(self, handle):
        return [sys.executable, "-c", self.script]


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "logs" / "demo-main-2026-10-18_120000.log"


class TestLogCapture:
    """LogCapture.start()."""

    def test_output_appended_to_log(self, log_path):
        log_path.parent.mkdir(parents=True)
        log_path.write_bytes(b"earlier run\n")
        capture = ScriptCapture(log_path, "print('hello from main')")

        process = capture.start(HANDLE)
        process.process.wait(timeout=30)
        process.stop()

        assert log_path.read_text() == "earlier run\nhello from main\n"

    def test_stderr_goes_to_same_log(self, log_path):
        capture = ScriptCapture(log_path, "import sys; sys.stderr.write('oops\\n')")

        process = capture.start(HANDLE)
        process.process.wait(timeout=30)
        process.stop()

        assert "oops" in log_path.read_text()

    def test_creates_logs_dir(self, log_path):
        process = ScriptCapture(log_path, "pass").start(HANDLE)
        process.stop()
        assert log_path.parent.is_dir()

    def test_launch_failure_raises(self, log_path):
        capture = ScriptCapture(log_path, "pass")
        capture.command = lambda handle: [str(log_path.parent / "no-such-kubectl")]

        with pytest.raises(CaptureRestartError, match="job/demo"):
            capture.start(HANDLE)

    def test_unwritable_log_raises(self, tmp_path):
        blocker = tmp_path / "logs"
        blocker.write_text("not a directory")
        capture = ScriptCapture(blocker / "demo-main.log", "pass")

        with pytest.raises(CaptureRestartError, match="Could not open container log"):
            capture.start(HANDLE)

    def test_default_command_from_kubectl(self, log_path):
        kubectl = MagicMock()
        kubectl.logs_command.return_value = ["kubectl", "logs"]
        capture = LogCapture(kubectl, log_path, container="main", pod_running_timeout="1m")

        assert capture.command(HANDLE) == ["kubectl", "logs"]
        kubectl.logs_command.assert_called_once_with(
            "demo", "ns1", container="main", pod_running_timeout="1m"
        )


class TestCaptureProcess:
    """Liveness and shutdown of a running capture."""

    def test_alive_until_exit(self, log_path):
        process = ScriptCapture(log_path, "import time; time.sleep(60)").start(HANDLE)
        try:
            assert process.is_alive()
            assert process.returncode is None
        finally:
            process.stop(timeout=5)

        assert not process.is_alive()
        assert process.log_file.closed

    def test_exited_process_not_alive(self, log_path):
        process = ScriptCapture(log_path, "raise SystemExit(3)").start(HANDLE)
        process.process.wait(timeout=30)

        assert not process.is_alive()
        assert process.returncode == 3
        process.stop()

    def test_stop_is_idempotent(self, log_path):
        process = ScriptCapture(log_path, "import time; time.sleep(60)").start(HANDLE)
        process.stop(timeout=5)
        process.stop(timeout=5)
        assert process.log_file.closed

    def test_kill_after_ignored_sigterm(self, log_path):
        script = (
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(60)\n"
        )
        process = ScriptCapture(log_path, script).start(HANDLE)
        # Wait until the handler is installed before sending SIGTERM
        for _ in range(300):
            if "ready" in log_path.read_text():
                break
            time.sleep(0.1)

        process.stop(timeout=0.5)

        assert not process.is_alive()

    def test_stop_closes_file_even_if_wait_fails(self):
        popen = MagicMock()
        popen.poll.return_value = None
        popen.wait.side_effect = OSError("wait failed")
        log_file = MagicMock()
        process = CaptureProcess(popen, log_file, ["kubectl"], datetime.now())

        with pytest.raises(OSError):
            process.stop()

        log_file.close.assert_called_once()
