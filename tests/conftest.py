"""Shared fixtures for kjob tests."""

import pytest

from fakes import JOB_YAML, FakeClock
from kjob.artifacts import RunArtifacts
from kjob.config import RunnerConfig
from kjob.context import RunContext
from kjob.descriptor import parse_descriptor


@pytest.fixture
def job_file(tmp_path):
    path = tmp_path / "job.demo.yaml"
    path.write_text(JOB_YAML)
    return path


@pytest.fixture
def descriptor(job_file):
    return parse_descriptor(JOB_YAML, source_path=job_file)


@pytest.fixture
def runner_config():
    return RunnerConfig(
        poll_interval_seconds=0,
        ready_timeout_seconds=1,
        soft_failure_budget=3,
        capture_failure_warn_after=3,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_context(tmp_path, descriptor, runner_config, clock):
    """Build a RunContext around a FakeKubectl."""

    def _make(kubectl):
        artifacts = RunArtifacts(
            base_dir=tmp_path,
            job_name=descriptor.name,
            container_name=descriptor.primary_container,
            logs_dir=runner_config.logs_dir,
            clock=clock,
        )
        artifacts.prepare()
        return RunContext(
            descriptor=descriptor,
            config=runner_config,
            artifacts=artifacts,
            kubectl=kubectl,
        )

    return _make
