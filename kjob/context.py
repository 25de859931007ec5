"""
RunContext - everything one run needs, passed explicitly.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from kjob.artifacts import RunArtifacts
from kjob.config import RunnerConfig
from kjob.descriptor import WorkloadDescriptor
from kjob.tools.kubectl import KubectlAdapter


@dataclass(frozen=True)
class RunContext:
    """
    Attributes:
        descriptor: The validated Job descriptor
        config: Runner configuration
        artifacts: Log and marker paths for this run
        kubectl: Scheduler adapter bound to the run's kubeconfig
    """
    descriptor: WorkloadDescriptor
    config: RunnerConfig
    artifacts: RunArtifacts
    kubectl: KubectlAdapter


def build_context(
    descriptor: WorkloadDescriptor,
    config: RunnerConfig,
    base_dir: Path,
    clock: Callable[[], datetime] = datetime.now,
) -> RunContext:
    """Wire a RunContext rooted at `base_dir` (the invocation directory)."""
    artifacts = RunArtifacts(
        base_dir=base_dir,
        job_name=descriptor.name,
        container_name=descriptor.primary_container,
        logs_dir=config.logs_dir,
        clock=clock,
    )
    kubectl = KubectlAdapter(
        kubeconfig=config.resolve_kubeconfig(),
        executable=config.kubectl,
        timeout=config.query_timeout_seconds,
    )
    return RunContext(
        descriptor=descriptor,
        config=config,
        artifacts=artifacts,
        kubectl=kubectl,
    )
