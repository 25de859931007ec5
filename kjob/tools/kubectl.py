"""kubectl tool adapter for kjob."""

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from kjob.errors import SoftPollError, SubmissionError
from kjob.tools.base import ToolAdapter


logger = logging.getLogger(__name__)


class KubectlAdapter(ToolAdapter):
    """
    Adapter for the kubectl CLI.

    Every call is bounded by a timeout and pinned to one kubeconfig. Query
    failures surface as SoftPollError so the supervisor can count them;
    describe output is returned as text and never raises.
    """

    def __init__(
        self,
        kubeconfig: Path,
        executable: str = "kubectl",
        timeout: float = 20.0,
    ):
        """
        Initialize KubectlAdapter.

        Args:
            kubeconfig: Path to the kubeconfig file every command uses
            executable: kubectl binary name or path
            timeout: Default per-command timeout in seconds
        """
        super().__init__(executable, timeout)
        self.kubeconfig = Path(kubeconfig)

    def base_command(self) -> List[str]:
        """kubectl invocation prefix shared by every command."""
        return [self.executable, f"--kubeconfig={self.kubeconfig}"]

    def validate(self) -> Dict[str, Any]:
        """
        Validate kubeconfig and kubectl binary.

        Returns:
            Dictionary with 'valid', 'errors' and 'warnings' keys
        """
        errors = []
        warnings = []

        if not self.kubeconfig.is_file():
            errors.append(f"No kubectl config file found at {self.kubeconfig}")
        elif not os.access(self.kubeconfig, os.R_OK):
            errors.append(f"kubectl config file {self.kubeconfig} is not readable")
        elif self.kubeconfig.stat().st_size == 0:
            errors.append(f"kubectl config file {self.kubeconfig} is empty")

        if self.find_executable() is None:
            errors.append(f"kubectl executable not found: {self.executable}")

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }

    def execute(
        self,
        *args: str,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run one kubectl command and capture its output.

        Args:
            *args: kubectl arguments (e.g. 'get', 'job', 'demo')
            timeout: Override for the default timeout

        Returns:
            subprocess.CompletedProcess with text stdout/stderr

        Raises:
            SoftPollError: If kubectl cannot be launched or times out
        """
        command = self.base_command() + list(args)
        logger.debug(f"Executing: {' '.join(command)}")

        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SoftPollError(f"kubectl {' '.join(args)} timed out after {e.timeout}s")
        except OSError as e:
            raise SoftPollError(f"Could not run {self.executable}: {e}")

    def get_job(self, name: str, namespace: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a Job object.

        Returns:
            The Job as a dict, or None when the scheduler reports NotFound

        Raises:
            SoftPollError: On any other failure
        """
        result = self.execute("-n", namespace, "get", "job", name, "-o", "json")

        if result.returncode != 0:
            if _is_not_found(result.stderr):
                return None
            raise SoftPollError(
                f"kubectl get job {name} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()[:500]}"
            )

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise SoftPollError(f"kubectl get job {name} returned invalid JSON: {e}")

    def create(self, descriptor_path: Path) -> str:
        """
        Submit a descriptor with `kubectl create -f`.

        Returns:
            kubectl's output (e.g. 'job.batch/demo created')

        Raises:
            SubmissionError: If kubectl fails or times out
        """
        try:
            result = self.execute("create", "-f", str(descriptor_path))
        except SoftPollError as e:
            raise SubmissionError(f"Could not submit {descriptor_path}: {e}")

        if result.returncode != 0:
            raise SubmissionError(
                f"kubectl create failed with exit code {result.returncode}: "
                f"{result.stderr.strip()[:500]}"
            )
        return result.stdout.strip()

    def wait_ready(self, name: str, namespace: str, timeout: float) -> Tuple[bool, str]:
        """
        Wait for a pod of the Job to report the Ready condition.

        Args:
            name: Job name (pods are selected by job-name=<name>)
            namespace: Job namespace
            timeout: Caller's wait budget in seconds

        Returns:
            (ready, output) - never raises
        """
        args = (
            "wait", "-n", namespace,
            "--for=condition=Ready", "pod",
            "-l", f"job-name={name}",
            f"--timeout={int(timeout)}s",
        )
        try:
            # Leave kubectl room to report its own timeout first
            result = self.execute(*args, timeout=timeout + self.timeout)
        except SoftPollError as e:
            return False, str(e)

        output = (result.stdout + result.stderr).strip()
        return result.returncode == 0, output

    def describe_job(self, name: str, namespace: str) -> str:
        """`kubectl describe job <name>` output, or the error text."""
        return self._describe("-n", namespace, "describe", "job", name)

    def describe_jobs_and_pods(self, name: str, namespace: str) -> str:
        """Describe the Job and every pod it owns (starting, running, failed)."""
        return self._describe(
            "-n", namespace, "describe", "jobs,pods", "-l", f"job-name={name}"
        )

    def _describe(self, *args: str) -> str:
        try:
            result = self.execute(*args)
        except SoftPollError as e:
            return f"{e}\n"
        return result.stdout + result.stderr

    def logs_command(
        self,
        name: str,
        namespace: str,
        container: Optional[str] = None,
        pod_running_timeout: str = "30s",
    ) -> List[str]:
        """
        Build the `kubectl logs -f` command that tails the Job.

        Args:
            name: Job name
            namespace: Job namespace
            container: Single container to follow; all containers when None
            pod_running_timeout: How long kubectl waits for a running pod
        """
        command = self.base_command() + [
            "logs", "-n", namespace, f"job/{name}", "-f",
        ]
        if container:
            command += ["-c", container]
        else:
            command.append("--all-containers")
        command += [
            f"--pod-running-timeout={pod_running_timeout}",
            "--prefix",
            "--timestamps",
            "--ignore-errors=true",
        ]
        return command


def _is_not_found(stderr: str) -> bool:
    # Server-side NotFound only; kubeconfig errors also say "not found"
    return "(NotFound)" in stderr
