"""
Log capture: the background `kubectl logs -f` process that tails a Job.

The supervisor owns at most one CaptureProcess at a time and checks its
liveness directly on the Popen object it created.
"""

import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import IO, List, Optional

from kjob.errors import CaptureRestartError
from kjob.models import WorkloadHandle
from kjob.tools.kubectl import KubectlAdapter


logger = logging.getLogger(__name__)


class CaptureProcess:
    """
    Handle to one running capture process.

    Attributes:
        process: The owned subprocess
        log_file: Open append handle the process writes to
        command: Command line the process was started with
        started_at: Launch time
    """

    def __init__(
        self,
        process: subprocess.Popen,
        log_file: IO[bytes],
        command: List[str],
        started_at: datetime,
    ):
        self.process = process
        self.log_file = log_file
        self.command = command
        self.started_at = started_at
        self._stopped = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    def is_alive(self) -> bool:
        """True while the process has not exited."""
        return self.process.poll() is None

    def stop(self, timeout: float = 10.0) -> None:
        """
        Stop the process and close its log file.

        Sends SIGTERM, then SIGKILL if it has not exited within `timeout`.
        Safe to call on a process that already exited, and more than once.
        """
        if self._stopped:
            return
        try:
            if self.is_alive():
                self.process.terminate()
                try:
                    self.process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    logger.warning(
                        f"Capture process pid={self.pid} ignored SIGTERM; killing it",
                        extra={"event": "capture_kill", "metadata": {"pid": self.pid}},
                    )
                    self.process.kill()
                    self.process.wait(timeout=timeout)
        finally:
            self.log_file.close()
            self._stopped = True

    def __repr__(self) -> str:
        return f"CaptureProcess(pid={self.pid}, alive={self.is_alive()})"


class LogCapture:
    """
    Starts capture processes for a Job.

    Output from every matching container (or only `container`, when given)
    is appended, timestamped and prefixed, to `log_path`.
    """

    def __init__(
        self,
        kubectl: KubectlAdapter,
        log_path: Path,
        container: Optional[str] = None,
        pod_running_timeout: str = "30s",
    ):
        self.kubectl = kubectl
        self.log_path = Path(log_path)
        self.container = container
        self.pod_running_timeout = pod_running_timeout

    def command(self, handle: WorkloadHandle) -> List[str]:
        """Command line of the capture process for a Job."""
        return self.kubectl.logs_command(
            handle.name,
            handle.namespace,
            container=self.container,
            pod_running_timeout=self.pod_running_timeout,
        )

    def start(self, handle: WorkloadHandle) -> CaptureProcess:
        """
        Launch a capture process in the background.

        Args:
            handle: The Job to tail

        Returns:
            CaptureProcess for the new process

        Raises:
            CaptureRestartError: If the log file cannot be opened or the
                process cannot be launched
        """
        command = self.command(handle)
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(self.log_path, "ab")
        except OSError as e:
            raise CaptureRestartError(f"Could not open container log {self.log_path}: {e}")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            log_file.close()
            raise CaptureRestartError(f"Could not start log capture for job/{handle.name}: {e}")

        logger.debug(
            f"Started capture process pid={process.pid}: {' '.join(command)}",
            extra={"event": "capture_started", "metadata": {"pid": process.pid}},
        )
        return CaptureProcess(process, log_file, command, datetime.now())
