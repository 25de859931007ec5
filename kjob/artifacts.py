"""
Run artifacts: log file layout, diagnostic snapshots, and the done marker.

Layout, relative to the invocation directory:

    logs/{job}-runner-{ts}.log               control-loop narrative
    logs/{job}-{container}-{ts}.log          kubectl logs output
    logs/{job}-describe-{ts}.log             routine snapshot, rewritten each tick
    logs/{job}-restarted-describe-{ts}.log   one per capture restart
    logs/{job}-completion-describe-{ts}.log  terminal snapshot
    logs/{job}-state.json                    last supervision result
    done                                     terminal marker
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from kjob.utils import timestamp


DONE_MARKER = "done"


class SnapshotRole(str, Enum):
    """Kinds of diagnostic snapshot."""
    DESCRIBE = "describe"
    RESTARTED = "restarted-describe"
    COMPLETION = "completion-describe"


class RunArtifacts:
    """
    File paths and writers for one run.

    The run timestamp is fixed at construction; restart and completion
    snapshots are stamped with the time they are taken.
    """

    def __init__(
        self,
        base_dir: Path,
        job_name: str,
        container_name: str,
        logs_dir: str = "logs",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.base_dir = Path(base_dir)
        self.logs_dir = self.base_dir / logs_dir
        self.job_name = job_name
        self.container_name = container_name
        self.clock = clock
        self.run_timestamp = timestamp(clock())
        self.done_created = False

    @property
    def runner_log(self) -> Path:
        return self._log_path("runner", self.run_timestamp)

    @property
    def container_log(self) -> Path:
        return self._log_path(self.container_name, self.run_timestamp)

    @property
    def describe_log(self) -> Path:
        return self._log_path(SnapshotRole.DESCRIBE.value, self.run_timestamp)

    @property
    def state_file(self) -> Path:
        return self.logs_dir / f"{self.job_name}-state.json"

    @property
    def done_marker(self) -> Path:
        return self.base_dir / DONE_MARKER

    def _log_path(self, role: str, stamp: str) -> Path:
        return self.logs_dir / f"{self.job_name}-{role}-{stamp}.log"

    def prepare(self) -> None:
        """Create the logs directory."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def clear_done_marker(self) -> None:
        """Remove a done marker left by a previous run."""
        self.done_marker.unlink(missing_ok=True)

    def write_snapshot(self, role: SnapshotRole, text: str) -> Path:
        """
        Write a diagnostic snapshot.

        The routine describe snapshot is overwritten in place; restart and
        completion snapshots go to a new timestamped file, appended if two
        land in the same second.

        Returns:
            Path of the file written
        """
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        if role == SnapshotRole.DESCRIBE:
            path = self.describe_log
            path.write_text(text)
            return path

        path = self._log_path(role.value, timestamp(self.clock()))
        with open(path, "a") as f:
            f.write(text)
        return path

    def create_done_marker(self) -> bool:
        """
        Create the zero-byte done marker.

        Returns:
            False if this run already created it (the marker is written once)
        """
        if self.done_created:
            return False
        self.done_marker.touch()
        self.done_created = True
        return True

    def snapshots(self, role: SnapshotRole) -> list:
        """Snapshot files of one role for this job, oldest first."""
        if not self.logs_dir.exists():
            return []
        return sorted(self.logs_dir.glob(f"{self.job_name}-{role.value}-*.log"))

    def __repr__(self) -> str:
        return f"RunArtifacts(job={self.job_name}, logs_dir={self.logs_dir})"


def state_file_for(base_dir: Path, job_name: str, logs_dir: str = "logs") -> Path:
    """Location of the persisted state for a job, without building a run."""
    return Path(base_dir) / logs_dir / f"{job_name}-state.json"


def latest_runner_log(base_dir: Path, job_name: str, logs_dir: str = "logs") -> Optional[Path]:
    """Most recent runner log for a job, if any."""
    directory = Path(base_dir) / logs_dir
    if not directory.exists():
        return None
    logs = sorted(directory.glob(f"{job_name}-runner-*.log"))
    return logs[-1] if logs else None
