"""
Runtime value types shared by the submission, polling and supervision code.

WorkloadHandle -> WorkloadStatus -> Observation

1. WorkloadHandle: identifies the submitted Job; created once at submission
2. WorkloadStatus: one poll of the scheduler; re-created every tick
3. Observation: a status plus the capture-process liveness seen on the same tick
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class WorkloadHandle:
    """
    A submitted Job.

    Attributes:
        name: Job name
        namespace: Job namespace
        submitted_at: When kjob submitted the Job
    """
    name: str
    namespace: str
    submitted_at: datetime

    @property
    def selector(self) -> str:
        """Label selector matching the Job's pods."""
        return f"job-name={self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "submitted_at": self.submitted_at.isoformat(),
        }


class WorkloadPhase(str, Enum):
    """What a poll means for the supervisor."""
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETE = "complete"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class WorkloadStatus:
    """
    One polled snapshot of a Job.

    Attributes:
        active: The scheduler reports at least one active pod
        complete: The Job reached the Complete or Failed condition
        observed_at: When the poll was taken
        found: False when the scheduler reports the Job does not exist
        failed: The terminal condition was Failed (retries exhausted)
        error: Set when the poll itself failed; the status is then unknown
    """
    active: bool
    complete: bool
    observed_at: datetime = field(default_factory=datetime.now)
    found: bool = True
    failed: bool = False
    error: Optional[str] = None

    @property
    def phase(self) -> WorkloadPhase:
        # Completion wins a tie with active: the Job finished between the
        # scheduler's sub-queries.
        if self.complete:
            return WorkloadPhase.COMPLETE
        if self.active:
            return WorkloadPhase.RUNNING
        if self.error is not None or not self.found:
            return WorkloadPhase.UNKNOWN
        # The Job exists but has no active pod right now
        return WorkloadPhase.WAITING

    @property
    def is_soft_failure(self) -> bool:
        """The Job vanished or the scheduler could not be asked."""
        return self.phase == WorkloadPhase.UNKNOWN

    @classmethod
    def unknown(cls, error: str, observed_at: Optional[datetime] = None) -> "WorkloadStatus":
        return cls(
            active=False,
            complete=False,
            observed_at=observed_at or datetime.now(),
            error=error,
        )

    @classmethod
    def absent(cls, observed_at: Optional[datetime] = None) -> "WorkloadStatus":
        return cls(
            active=False,
            complete=False,
            observed_at=observed_at or datetime.now(),
            found=False,
        )

    @classmethod
    def from_job(cls, job: Dict[str, Any], observed_at: Optional[datetime] = None) -> "WorkloadStatus":
        """
        Build a status from a `kubectl get job -o json` object.

        A condition counts only when its status is "True".
        """
        status = job.get("status") or {}
        conditions = {
            c.get("type"): c.get("status")
            for c in status.get("conditions") or []
            if isinstance(c, dict)
        }
        succeeded = conditions.get("Complete") == "True"
        failed = conditions.get("Failed") == "True"

        try:
            active = int(status.get("active") or 0) > 0
        except (TypeError, ValueError):
            active = False

        return cls(
            active=active,
            complete=succeeded or failed,
            observed_at=observed_at or datetime.now(),
            failed=failed and not succeeded,
        )

    def describe(self) -> str:
        """Short human-readable form for log lines."""
        if self.error is not None:
            return f"unknown ({self.error})"
        if not self.found:
            return "not found"
        if self.phase == WorkloadPhase.COMPLETE:
            return "failed" if self.failed else "complete"
        if self.phase == WorkloadPhase.WAITING:
            return "waiting (no active pod)"
        return self.phase.value


@dataclass(frozen=True)
class Observation:
    """Status and capture liveness taken on the same tick."""
    status: WorkloadStatus
    capture_alive: bool
