"""
Job runner for kjob.

Coordinates validate → submit → supervise for one descriptor file, and
persists the outcome next to the run's logs.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from kjob.artifacts import latest_runner_log, state_file_for
from kjob.config import RunnerConfig, load_config
from kjob.context import RunContext, build_context
from kjob.descriptor import WorkloadDescriptor, load_descriptor
from kjob.errors import PreconditionError
from kjob.supervisor import SupervisorResult, SupervisorState, TailingSupervisor
from kjob.utils import format_duration, print_info, print_success, print_warning, setup_logging


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


class JobRunner:
    """
    Runs one Job descriptor end to end.

    Validation and precondition failures raise before anything is written
    or submitted.
    """

    def __init__(self, config: Optional[RunnerConfig] = None, base_dir: Optional[Path] = None):
        """
        Initialize the runner.

        Args:
            config: Runner configuration (defaults to $KJOB_HOME/config.yaml)
            base_dir: Invocation directory holding logs/ and the done marker
        """
        self.config = config or load_config()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.supervisor: Optional[TailingSupervisor] = None
        self.logger: Optional[logging.Logger] = None

    def validate(self, jobfile: Path) -> RunContext:
        """
        Validate the descriptor and the environment.

        Args:
            jobfile: Path to the Job descriptor

        Returns:
            RunContext ready for supervision

        Raises:
            ValidationError: The descriptor is malformed or ambiguous
            PreconditionError: kubeconfig or kubectl is unusable
        """
        descriptor = load_descriptor(jobfile)
        context = build_context(descriptor, self.config, self.base_dir)
        self.check_preconditions(context)
        return context

    def check_preconditions(self, context: RunContext) -> None:
        """
        Raises:
            PreconditionError: With every problem found, joined
        """
        validation = context.kubectl.validate()
        if not validation["valid"]:
            raise PreconditionError("; ".join(validation["errors"]))

    def run(self, jobfile: Path, verbose: bool = False) -> SupervisorResult:
        """
        Validate, submit and supervise a Job.

        Args:
            jobfile: Path to the Job descriptor
            verbose: Enable debug logging

        Returns:
            SupervisorResult of the supervision cycle

        Raises:
            PermanentError: Validation, precondition, duplicate Job or
                rejected submission
        """
        context = self.validate(jobfile)
        descriptor = context.descriptor
        artifacts = context.artifacts

        artifacts.prepare()
        log_config = self.config.logging
        self.logger = setup_logging(
            artifacts.runner_log,
            "DEBUG" if verbose else log_config.level,
            log_config.format,
            log_config.console,
        )
        self.logger.info(
            f"Starting job runner for job/{descriptor.name} in namespace {descriptor.namespace}",
            extra={
                "event": "runner_started",
                "metadata": {
                    "jobfile": str(jobfile),
                    "container": descriptor.primary_container,
                    "runner_log": str(artifacts.runner_log),
                },
            },
        )

        self.supervisor = TailingSupervisor(context)
        try:
            result = self.supervisor.run()
        except Exception as e:
            self.logger.error(
                f"Job runner failed: {e}",
                extra={"event": "runner_failed", "metadata": {"exception": str(e)}},
            )
            raise

        self._save_state(artifacts.state_file, result)
        self._report(descriptor, result)
        return result

    def request_stop(self) -> None:
        """Forward a stop request to the running supervisor, if any."""
        if self.supervisor is not None:
            self.supervisor.request_stop()

    def status(self, job_name: str) -> Optional[Dict[str, Any]]:
        """
        Last persisted result for a job.

        Returns:
            The saved result dictionary, or None if no run was recorded
        """
        state_file = state_file_for(self.base_dir, job_name, self.config.logs_dir)
        if not state_file.exists():
            return None
        with open(state_file, "r") as f:
            return json.load(f)

    def latest_runner_log(self, job_name: str) -> Optional[Path]:
        """Most recent runner log for a job in this directory."""
        return latest_runner_log(self.base_dir, job_name, self.config.logs_dir)

    def _save_state(self, state_file: Path, result: SupervisorResult) -> None:
        try:
            state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(state_file, "w") as f:
                json.dump(result.to_dict(), f, indent=2)
        except OSError as e:
            self.logger.warning(
                f"Could not save run state: {e}",
                extra={"event": "state_save_failed", "metadata": {"error": str(e)}},
            )

    def _report(self, descriptor: WorkloadDescriptor, result: SupervisorResult) -> None:
        duration = format_duration(result.duration_seconds)
        summary = f"{result.ticks} polls, {result.restarts} capture restarts, {duration}"
        if result.cancelled:
            print_warning(f"job/{descriptor.name}: supervision stopped by signal ({summary})")
        elif result.state == SupervisorState.LOST:
            print_warning(f"job/{descriptor.name}: LOST - {result.error_message} ({summary})")
        elif result.job_failed:
            print_warning(f"job/{descriptor.name}: finished with the Failed condition ({summary})")
        else:
            print_success(f"job/{descriptor.name} completed ({summary})")
        print_info(f"Logs: {self.base_dir / self.config.logs_dir}")


def exit_code_for(result: SupervisorResult) -> int:
    """COMPLETE and LOST exit 0; an interrupted run exits 130."""
    if result.cancelled:
        return EXIT_CANCELLED
    return EXIT_OK
