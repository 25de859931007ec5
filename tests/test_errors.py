"""Tests for kjob error classes.

Tests cover:
- PermanentError / TransientError hierarchy
- Messages carried by AlreadyActiveError and LostWorkloadError
"""

import pytest

from kjob.errors import (
    AlreadyActiveError,
    CaptureRestartError,
    KjobError,
    LostWorkloadError,
    PermanentError,
    PreconditionError,
    SoftPollError,
    SubmissionError,
    TransientError,
    ValidationError,
)


class TestHierarchy:
    """Which errors abort a run and which are absorbed."""

    @pytest.mark.parametrize(
        "error_cls",
        [ValidationError, PreconditionError, AlreadyActiveError, SubmissionError],
    )
    def test_fatal_errors_are_permanent(self, error_cls):
        assert issubclass(error_cls, PermanentError)
        assert not issubclass(error_cls, TransientError)

    @pytest.mark.parametrize("error_cls", [SoftPollError, CaptureRestartError])
    def test_loop_errors_are_transient(self, error_cls):
        assert issubclass(error_cls, TransientError)
        assert not issubclass(error_cls, PermanentError)

    def test_lost_is_neither(self):
        """LostWorkloadError annotates a terminal state; it is not fatal."""
        assert issubclass(LostWorkloadError, KjobError)
        assert not issubclass(LostWorkloadError, PermanentError)
        assert not issubclass(LostWorkloadError, TransientError)

    def test_caught_as_kjob_error(self):
        with pytest.raises(KjobError):
            raise SoftPollError("connection refused")


class TestMessages:
    """Errors name the Job they are about."""

    def test_already_active(self):
        error = AlreadyActiveError("demo", "ns1")
        assert error.name == "demo"
        assert error.namespace == "ns1"
        assert str(error) == "A Job with the name demo is already deployed in namespace ns1"

    def test_lost_workload(self):
        error = LostWorkloadError("demo", "ns1", 3)
        assert error.failures == 3
        assert "job/demo" in str(error)
        assert "3 consecutive failed polls" in str(error)

    def test_plain_message(self):
        assert str(ValidationError("bad descriptor")) == "bad descriptor"
