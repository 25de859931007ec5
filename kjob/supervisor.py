"""
Tailing supervisor: the control loop that keeps a Job's log stream alive.

States:

    STARTING            submit the Job, start the first capture
    RUNNING_CAPTURED    Job running, capture process alive
    RUNNING_UNCAPTURED  Job running, no live capture process
    RESTARTING_CAPTURE  snapshot the Job and pods, start a fresh capture
    COMPLETE            terminal - the Job finished
    LOST                terminal - soft-failure budget exhausted

Each tick polls the Job and the capture process, runs one transition to
completion, then sleeps for the poll interval. Only this loop touches the
capture handle, and it never starts a capture while another is alive or
after the Job was seen complete.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from kjob.artifacts import SnapshotRole
from kjob.capture import CaptureProcess, LogCapture
from kjob.context import RunContext
from kjob.errors import CaptureRestartError, KjobError, LostWorkloadError
from kjob.models import Observation, WorkloadHandle, WorkloadPhase
from kjob.poller import StatusPoller
from kjob.submission import SubmissionController


logger = logging.getLogger(__name__)


class SupervisorState(str, Enum):
    """States of the tailing supervisor."""
    STARTING = "starting"
    RUNNING_CAPTURED = "running_captured"
    RUNNING_UNCAPTURED = "running_uncaptured"
    RESTARTING_CAPTURE = "restarting_capture"
    COMPLETE = "complete"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self in (SupervisorState.COMPLETE, SupervisorState.LOST)


@dataclass
class SupervisorResult:
    """Outcome of one supervision cycle."""

    state: SupervisorState
    handle: Optional[WorkloadHandle]
    started_at: datetime
    ended_at: datetime
    ticks: int = 0
    restarts: int = 0
    soft_failures: int = 0
    capture_failures: int = 0
    cancelled: bool = False
    job_failed: bool = False
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "handle": self.handle.to_dict() if self.handle else None,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "ticks": self.ticks,
            "restarts": self.restarts,
            "soft_failures": self.soft_failures,
            "capture_failures": self.capture_failures,
            "cancelled": self.cancelled,
            "job_failed": self.job_failed,
            "error_message": self.error_message,
        }


class TailingSupervisor:
    """
    Drives one Job from submission to a terminal state.

    Collaborators default to the real implementations built from the run
    context; tests pass fakes.
    """

    def __init__(
        self,
        context: RunContext,
        submitter: Optional[SubmissionController] = None,
        poller: Optional[StatusPoller] = None,
        capture: Optional[LogCapture] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.context = context
        self.config = context.config
        self.artifacts = context.artifacts
        self.descriptor = context.descriptor
        self.kubectl = context.kubectl
        self.clock = clock

        self.submitter = submitter or SubmissionController(self.kubectl, clock=clock)
        self.poller = poller or StatusPoller(self.kubectl, clock=clock)
        self.log_capture = capture or LogCapture(
            self.kubectl,
            self.artifacts.container_log,
            container=None if self.config.all_containers else self.descriptor.primary_container,
            pod_running_timeout=self.config.pod_running_timeout,
        )

        self.state = SupervisorState.STARTING
        self.handle: Optional[WorkloadHandle] = None
        self.capture_process: Optional[CaptureProcess] = None
        self.ticks = 0
        self.restarts = 0
        self.soft_failures = 0
        self.total_soft_failures = 0
        self.capture_failures = 0
        self.total_capture_failures = 0
        self.job_failed = False
        self.lost_error: Optional[LostWorkloadError] = None
        self.cancelled = False
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Ask the loop to stop at the next suspension point. Signal-safe."""
        self._stop_event.set()

    def start(self) -> WorkloadHandle:
        """
        STARTING: submit the Job and launch the first capture.

        Raises:
            AlreadyActiveError, PreconditionError, SubmissionError: fatal,
                raised before any capture process exists
        """
        self._set_state(SupervisorState.STARTING)
        self.submitter.ensure_not_present(self.descriptor)
        # Cleared only after the duplicate-name check passes
        self.artifacts.clear_done_marker()
        self.handle = self.submitter.create(self.descriptor)
        self.submitter.wait_ready(self.handle, self.config.ready_timeout_seconds)

        logger.info(
            f"Starting to tail the container log to {self.artifacts.container_log}",
            extra={"event": "capture_starting"},
        )
        if self._start_capture():
            self._set_state(SupervisorState.RUNNING_CAPTURED)
        else:
            self._set_state(SupervisorState.RUNNING_UNCAPTURED)
        return self.handle

    def run(self) -> SupervisorResult:
        """
        Run the full supervision cycle.

        Returns:
            SupervisorResult once a terminal state is reached or a stop was
            requested

        Raises:
            PermanentError: From start(), before any loop runs
        """
        started_at = self.clock()
        self.start()

        try:
            while not self.state.is_terminal:
                if self._stop_event.wait(self.config.poll_interval_seconds):
                    self._cancel()
                    break
                self.tick()
        finally:
            # Never leave a tail running behind an aborted loop
            if not self.state.is_terminal:
                self._stop_capture()

        return self._result(started_at)

    def tick(self) -> SupervisorState:
        """
        Poll once and run one state transition.

        Returns:
            The state after the transition
        """
        if self.state.is_terminal:
            return self.state
        if self.handle is None:
            raise RuntimeError("tick() called before start()")

        self.ticks += 1
        observation = self.poller.observe(self.handle, self.capture_process)
        status = observation.status

        logger.debug(
            f"Tick {self.ticks}: job/{self.handle.name} {status.describe()}, "
            f"capture {'alive' if observation.capture_alive else 'not running'}",
            extra={
                "event": "tick",
                "state": self.state.value,
                "metadata": {
                    "active": status.active,
                    "complete": status.complete,
                    "found": status.found,
                    "capture_alive": observation.capture_alive,
                },
            },
        )

        if status.phase == WorkloadPhase.COMPLETE:
            self._on_complete(observation)
        elif status.phase == WorkloadPhase.UNKNOWN:
            self._on_soft_failure(observation)
        elif status.phase == WorkloadPhase.WAITING:
            self.soft_failures = 0
            self._on_waiting(observation)
        else:
            self.soft_failures = 0
            self._on_running(observation)

        return self.state

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _on_complete(self, observation: Observation) -> None:
        self.soft_failures = 0
        self.job_failed = observation.status.failed
        outcome = "failed" if self.job_failed else "completed"
        log = logger.warning if self.job_failed else logger.info
        log(
            f"Job/{self.handle.name} appears to have {outcome}. Supervisor is stopping.",
            extra={"event": "job_complete", "metadata": {"failed": self.job_failed}},
        )
        self._finish(SupervisorState.COMPLETE)

    def _on_soft_failure(self, observation: Observation) -> None:
        status = observation.status
        self.soft_failures += 1
        self.total_soft_failures += 1
        budget = self.config.soft_failure_budget

        logger.warning(
            f"Job/{self.handle.name} is {status.describe()} "
            f"(soft failure {self.soft_failures}/{budget})",
            extra={
                "event": "soft_failure",
                "metadata": {"count": self.soft_failures, "budget": budget, "error": status.error},
            },
        )

        if self.soft_failures >= budget:
            self.lost_error = LostWorkloadError(
                self.handle.name, self.handle.namespace, self.soft_failures
            )
            logger.error(
                f"{self.lost_error}. The job/{self.handle.name} is no longer running.",
                extra={"event": "workload_lost", "metadata": {"failures": self.soft_failures}},
            )
            self._finish(SupervisorState.LOST)

    def _on_waiting(self, observation: Observation) -> None:
        """The Job exists with no active pod. Keep polling; start nothing."""
        logger.info(
            f"Job/{self.handle.name} has no active pod; waiting for it to be scheduled again.",
            extra={"event": "job_waiting"},
        )
        if observation.capture_alive:
            self._set_state(SupervisorState.RUNNING_CAPTURED)
        else:
            self._set_state(SupervisorState.RUNNING_UNCAPTURED)

    def _on_running(self, observation: Observation) -> None:
        if observation.capture_alive:
            self.capture_failures = 0
            self._snapshot(SnapshotRole.DESCRIBE)
            self._set_state(SupervisorState.RUNNING_CAPTURED)
            return

        self._set_state(SupervisorState.RUNNING_UNCAPTURED)
        logger.warning(
            f"Kubectl Log tailer for job/{self.handle.name} appears to no longer be running.",
            extra={"event": "capture_lost"},
        )
        self._restart_capture()

    def _restart_capture(self) -> None:
        self._set_state(SupervisorState.RESTARTING_CAPTURE)
        logger.info(
            f"Job/{self.handle.name} appears to still be active. Starting the logger again.",
            extra={"event": "capture_restarting"},
        )
        self._snapshot(SnapshotRole.RESTARTED)

        if self._start_capture():
            self.restarts += 1
            self._set_state(SupervisorState.RUNNING_CAPTURED)
        else:
            self._set_state(SupervisorState.RUNNING_UNCAPTURED)

    def _finish(self, state: SupervisorState) -> None:
        self._snapshot(SnapshotRole.COMPLETION)
        self._stop_capture()
        self.artifacts.create_done_marker()
        self._set_state(state)
        logger.info(
            f"Supervision of job/{self.handle.name} finished in state {state.value}; "
            f"created {self.artifacts.done_marker}",
            extra={"event": "supervisor_finished", "state": state.value},
        )

    def _cancel(self) -> None:
        self.cancelled = True
        logger.warning(
            f"Stop requested; stopping the log tailer for job/{self.handle.name}. "
            "The done marker is not written.",
            extra={"event": "supervisor_cancelled", "state": self.state.value},
        )
        self._stop_capture()
        self._snapshot(SnapshotRole.DESCRIBE)

    # ------------------------------------------------------------------
    # Capture handle
    # ------------------------------------------------------------------

    def _start_capture(self) -> bool:
        """
        Start a capture process unless one is already alive.

        Returns:
            True if a live capture process exists afterwards
        """
        if self.capture_process is not None:
            if self.capture_process.is_alive():
                logger.debug("Capture process still alive; not starting another")
                return True
            # Reap the dead process and close its log file
            self.capture_process.stop(self.config.capture_stop_timeout_seconds)
            self.capture_process = None

        try:
            self.capture_process = self.log_capture.start(self.handle)
        except CaptureRestartError as e:
            self.capture_failures += 1
            self.total_capture_failures += 1
            logger.error(
                f"{e} (attempt failed {self.capture_failures} time(s) in a row; retrying next tick)",
                extra={"event": "capture_restart_error", "metadata": {"count": self.capture_failures}},
            )
            if self.capture_failures >= self.config.capture_failure_warn_after:
                logger.warning(
                    f"Log capture for job/{self.handle.name} has failed to start on "
                    f"{self.capture_failures} consecutive attempts; container output is not being recorded.",
                    extra={"event": "capture_persistent_failure"},
                )
            return False

        self.capture_failures = 0
        return True

    def _stop_capture(self) -> None:
        if self.capture_process is None:
            return
        try:
            self.capture_process.stop(self.config.capture_stop_timeout_seconds)
        except OSError as e:
            logger.warning(f"Could not stop capture process: {e}", extra={"event": "capture_stop_failed"})
        finally:
            self.capture_process = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _snapshot(self, role: SnapshotRole) -> None:
        """Write a diagnostic snapshot. Best effort: failures are logged only."""
        name, namespace = self.handle.name, self.handle.namespace
        try:
            if role == SnapshotRole.DESCRIBE:
                text = self.kubectl.describe_job(name, namespace)
            else:
                text = self.kubectl.describe_jobs_and_pods(name, namespace)
            path = self.artifacts.write_snapshot(role, text)
        except (OSError, KjobError) as e:
            logger.warning(
                f"Could not write {role.value} snapshot for job/{name}: {e}",
                extra={"event": "snapshot_failed", "metadata": {"role": role.value}},
            )
            return
        logger.debug(f"Wrote {role.value} snapshot to {path}", extra={"event": "snapshot_written"})

    def _set_state(self, state: SupervisorState) -> None:
        if state != self.state:
            logger.debug(
                f"State {self.state.value} -> {state.value}",
                extra={"event": "state_changed", "state": state.value},
            )
        self.state = state

    def _result(self, started_at: datetime) -> SupervisorResult:
        error_message = None
        if self.lost_error is not None:
            error_message = str(self.lost_error)
        elif self.job_failed:
            error_message = f"Job/{self.handle.name} reported the Failed condition"

        return SupervisorResult(
            state=self.state,
            handle=self.handle,
            started_at=started_at,
            ended_at=self.clock(),
            ticks=self.ticks,
            restarts=self.restarts,
            soft_failures=self.total_soft_failures,
            capture_failures=self.total_capture_failures,
            cancelled=self.cancelled,
            job_failed=self.job_failed,
            error_message=error_message,
        )
