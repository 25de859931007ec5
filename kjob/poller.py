"""
Status poller: one bounded scheduler query per supervisor tick.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from kjob.capture import CaptureProcess
from kjob.errors import SoftPollError
from kjob.models import Observation, WorkloadHandle, WorkloadStatus
from kjob.tools.kubectl import KubectlAdapter


logger = logging.getLogger(__name__)


class StatusPoller:
    """
    Queries the scheduler for a Job's status.

    poll() never raises: a failed query comes back as an unknown status
    (inactive, not complete, error set) and the supervisor counts it.
    """

    def __init__(
        self,
        kubectl: KubectlAdapter,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.kubectl = kubectl
        self.clock = clock

    def poll(self, handle: WorkloadHandle) -> WorkloadStatus:
        """
        Query the Job once.

        Args:
            handle: The submitted Job

        Returns:
            WorkloadStatus for this moment
        """
        observed_at = self.clock()
        try:
            job = self.kubectl.get_job(handle.name, handle.namespace)
        except SoftPollError as e:
            logger.warning(
                f"Status query for job/{handle.name} failed: {e}",
                extra={"event": "soft_poll_error", "metadata": {"error": str(e)}},
            )
            return WorkloadStatus.unknown(str(e), observed_at=observed_at)

        if job is None:
            return WorkloadStatus.absent(observed_at=observed_at)

        return WorkloadStatus.from_job(job, observed_at=observed_at)

    def observe(self, handle: WorkloadHandle, capture: Optional[CaptureProcess]) -> Observation:
        """Poll the Job and check the capture process on the same tick."""
        status = self.poll(handle)
        alive = capture is not None and capture.is_alive()
        return Observation(status=status, capture_alive=alive)
