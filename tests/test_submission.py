"""Tests for SubmissionController."""

import logging
import subprocess
from dataclasses import replace
from unittest.mock import patch

import pytest

from fakes import RUNNING, UNREACHABLE, FakeClock, FakeKubectl
from kjob.errors import AlreadyActiveError, PreconditionError, SubmissionError
from kjob.submission import SubmissionController
from kjob.tools.kubectl import KubectlAdapter


class TestEnsureNotPresent:
    """Duplicate Job detection."""

    def test_absent_job_passes(self, descriptor):
        SubmissionController(FakeKubectl()).ensure_not_present(descriptor)

    def test_existing_job_rejected(self, descriptor):
        controller = SubmissionController(FakeKubectl(existing=RUNNING))

        with pytest.raises(AlreadyActiveError) as exc_info:
            controller.ensure_not_present(descriptor)

        assert exc_info.value.name == "demo"
        assert exc_info.value.namespace == "ns1"

    def test_query_failure_is_precondition_error(self, descriptor):
        controller = SubmissionController(FakeKubectl(existing=UNREACHABLE))
        with pytest.raises(PreconditionError, match="Unable to connect"):
            controller.ensure_not_present(descriptor)


    def test_kubeconfig_context_error_blocks_submission(self, descriptor, tmp_path):
        kubeconfig = tmp_path / "kubeconfig"
        kubeconfig.write_text("apiVersion: v1\n")
        adapter = KubectlAdapter(kubeconfig)
        failed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr='error: context "staging" not found'
        )

        with patch("kjob.tools.kubectl.subprocess.run", return_value=failed) as mock_run:
            with pytest.raises(PreconditionError):
                SubmissionController(adapter).submit(descriptor)

        assert mock_run.call_count == 1


class TestSubmit:
    """submit() checks and creates."""

    def test_returns_handle(self, descriptor, job_file):
        clock = FakeClock()
        kubectl = FakeKubectl()

        handle = SubmissionController(kubectl, clock=clock).submit(descriptor)

        assert handle.name == "demo"
        assert handle.namespace == "ns1"
        assert handle.submitted_at == clock.now
        assert kubectl.create_calls == [job_file]

    def test_existing_job_not_resubmitted(self, descriptor):
        kubectl = FakeKubectl(existing=RUNNING)

        with pytest.raises(AlreadyActiveError):
            SubmissionController(kubectl).submit(descriptor)

        assert kubectl.create_calls == []

    def test_rejection_propagates(self, descriptor):
        kubectl = FakeKubectl(create_error=SubmissionError("forbidden: exceeded quota"))
        with pytest.raises(SubmissionError, match="exceeded quota"):
            SubmissionController(kubectl).submit(descriptor)

    def test_descriptor_without_file(self, descriptor):
        kubectl = FakeKubectl()
        with pytest.raises(SubmissionError, match="no source file"):
            SubmissionController(kubectl).create(replace(descriptor, source_path=None))
        assert kubectl.create_calls == []


class TestWaitReady:
    """A pod that never becomes Ready is reported, not raised."""

    def test_ready(self, descriptor):
        controller = SubmissionController(FakeKubectl())
        handle = controller.submit(descriptor)
        assert controller.wait_ready(handle, 5) is True

    def test_not_ready_logs_warning(self, descriptor, caplog):
        controller = SubmissionController(FakeKubectl(ready=False))
        handle = controller.submit(descriptor)

        with caplog.at_level(logging.WARNING, logger="kjob"):
            assert controller.wait_ready(handle, 5) is False

        assert any("reported Ready within 5s" in r.getMessage() for r in caplog.records)
