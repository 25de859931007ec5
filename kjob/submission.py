"""
Submission controller: create the Job once, then wait for a Ready pod.
"""

import logging
from datetime import datetime
from typing import Callable

from kjob.descriptor import WorkloadDescriptor
from kjob.errors import AlreadyActiveError, PreconditionError, SoftPollError, SubmissionError
from kjob.models import WorkloadHandle
from kjob.tools.kubectl import KubectlAdapter


logger = logging.getLogger(__name__)


class SubmissionController:
    """
    Submits a validated descriptor to the scheduler.

    Submission is not idempotent: a Job that already exists under the same
    name and namespace is rejected instead of resubmitted.
    """

    def __init__(
        self,
        kubectl: KubectlAdapter,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.kubectl = kubectl
        self.clock = clock

    def ensure_not_present(self, descriptor: WorkloadDescriptor) -> None:
        """
        Fail if a Job of the same name already exists.

        Raises:
            AlreadyActiveError: The Job exists
            PreconditionError: The scheduler could not be queried
        """
        try:
            existing = self.kubectl.get_job(descriptor.name, descriptor.namespace)
        except SoftPollError as e:
            raise PreconditionError(
                f"Could not check for an existing job/{descriptor.name}: {e}"
            )
        if existing is not None:
            raise AlreadyActiveError(descriptor.name, descriptor.namespace)

    def submit(self, descriptor: WorkloadDescriptor) -> WorkloadHandle:
        """
        Create the Job.

        Args:
            descriptor: Validated descriptor with a source_path

        Returns:
            WorkloadHandle for the new Job

        Raises:
            AlreadyActiveError: A Job with this name already exists
            PreconditionError: The scheduler could not be queried
            SubmissionError: The scheduler rejected the descriptor
        """
        self.ensure_not_present(descriptor)
        return self.create(descriptor)

    def create(self, descriptor: WorkloadDescriptor) -> WorkloadHandle:
        """
        Create the Job without checking for an existing one.

        Callers run ensure_not_present() first; submit() does both.

        Raises:
            SubmissionError: The scheduler rejected the descriptor
        """
        if descriptor.source_path is None:
            raise SubmissionError(f"Descriptor for job/{descriptor.name} has no source file")

        logger.info(
            f"Deploying the {descriptor.source_path} job file.",
            extra={"event": "job_submitting", "metadata": {"job": descriptor.name}},
        )
        output = self.kubectl.create(descriptor.source_path)
        if output:
            logger.info(output, extra={"event": "job_submitted"})

        return WorkloadHandle(
            name=descriptor.name,
            namespace=descriptor.namespace,
            submitted_at=self.clock(),
        )

    def wait_ready(self, handle: WorkloadHandle, timeout: float) -> bool:
        """
        Block until a pod of the Job is Ready, or `timeout` seconds pass.

        A pod that never becomes Ready is reported, not raised: the
        supervisor's own polling decides what happens next.
        """
        logger.info(
            f"Waiting for the pod of job/{handle.name} to be ready before starting the log tailing process.",
            extra={"event": "wait_ready", "metadata": {"timeout_seconds": timeout}},
        )
        ready, output = self.kubectl.wait_ready(handle.name, handle.namespace, timeout)
        if ready:
            if output:
                logger.info(output, extra={"event": "pod_ready"})
        else:
            logger.warning(
                f"No pod of job/{handle.name} reported Ready within {int(timeout)}s: {output}",
                extra={"event": "pod_not_ready", "metadata": {"output": output}},
            )
        return ready
