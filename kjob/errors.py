"""
Error classes for kjob.

Errors are split by what the caller should do with them:
- PermanentError: Abort the run (bad descriptor, missing kubeconfig,
  duplicate Job, rejected submission). Raised before the supervision loop.
- TransientError: Absorbed by the supervisor loop (failed status query,
  capture process that would not start). Counted and retried on the next tick.

LostWorkloadError is neither: it annotates the LOST terminal state and is
only ever logged, never raised past the supervisor.
"""


class KjobError(Exception):
    """Base exception for kjob."""
    pass


class PermanentError(KjobError):
    """Fatal error - the run stops and the CLI exits non-zero."""
    pass


class ValidationError(PermanentError):
    """
    The Job descriptor is malformed or ambiguous.

    Examples:
    - No `kind: Job` document, or more than one
    - Missing or empty metadata.namespace
    - Missing Job name or container name
    """
    pass


class PreconditionError(PermanentError):
    """
    The environment cannot support a run.

    Examples:
    - kubeconfig missing or unreadable
    - kubectl binary not on PATH
    - Scheduler unreachable while checking for an existing Job
    """
    pass


class AlreadyActiveError(PermanentError):
    """A Job with the same name already exists in the namespace."""

    def __init__(self, name: str, namespace: str):
        self.name = name
        self.namespace = namespace
        super().__init__(
            f"A Job with the name {name} is already deployed in namespace {namespace}"
        )


class SubmissionError(PermanentError):
    """The scheduler rejected the descriptor."""
    pass


class TransientError(KjobError):
    """Recoverable error - absorbed and counted by the supervisor loop."""
    pass


class SoftPollError(TransientError):
    """A status query failed (timeout, connection refused, bad output)."""
    pass


class CaptureRestartError(TransientError):
    """The log capture process could not be (re)started."""
    pass


class LostWorkloadError(KjobError):
    """
    The soft-failure budget was exhausted.

    The Job vanished or the scheduler stopped answering for too many
    consecutive polls. Terminal, but the process still exits zero.
    """

    def __init__(self, name: str, namespace: str, failures: int):
        self.name = name
        self.namespace = namespace
        self.failures = failures
        super().__init__(
            f"Lost track of job/{name} in namespace {namespace} "
            f"after {failures} consecutive failed polls"
        )
