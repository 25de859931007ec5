"""
WorkloadDescriptor - the validated view of a Job descriptor file.

The descriptor is parsed as YAML and validated field by field. Parsing is
pure: nothing here touches the scheduler or writes to disk, so a rejected
descriptor never leaves a side effect behind.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from kjob.errors import ValidationError


JOB_KIND = "Job"


@dataclass(frozen=True)
class WorkloadDescriptor:
    """
    The fields kjob needs from a Job descriptor.

    Attributes:
        kind: Always "Job"
        name: metadata.name of the Job
        namespace: metadata.namespace of the Job
        primary_container: First container under spec.template.spec.containers
        containers: All declared container names, in order
        source_path: File the descriptor was loaded from, if any
    """
    kind: str
    name: str
    namespace: str
    primary_container: str
    containers: Tuple[str, ...] = ()
    source_path: Optional[Path] = None

    def __post_init__(self):
        if self.kind != JOB_KIND:
            raise ValidationError(f"Descriptor kind must be {JOB_KIND}, got '{self.kind}'")
        if not self.namespace:
            raise ValidationError(f"Job {self.name} does not declare a namespace")
        if not self.name:
            raise ValidationError("Job does not declare metadata.name")
        if not self.primary_container:
            raise ValidationError(f"Job {self.name} does not declare a container name")


def _documents(text: str) -> List[Dict[str, Any]]:
    """Parse every YAML document, expanding `kind: List` wrappers."""
    try:
        raw_docs = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in job descriptor: {e}")

    documents = []
    for doc in raw_docs:
        if not isinstance(doc, dict):
            raise ValidationError(
                f"Expected a mapping per YAML document, got {type(doc).__name__}"
            )
        if doc.get("kind") == "List":
            items = doc.get("items") or []
            documents.extend(item for item in items if isinstance(item, dict))
        else:
            documents.append(doc)
    return documents


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _container_names(job: Dict[str, Any]) -> List[str]:
    pod_spec = (
        ((job.get("spec") or {}).get("template") or {}).get("spec") or {}
    )
    containers = pod_spec.get("containers") or []
    if not isinstance(containers, list):
        return []
    names = []
    for container in containers:
        if isinstance(container, dict):
            name = _non_empty_string(container.get("name"))
            if name:
                names.append(name)
    return names


def parse_descriptor(text: str, source_path: Optional[Path] = None) -> WorkloadDescriptor:
    """
    Parse and validate Job descriptor text.

    Checks, in order:
    1. Exactly one document of kind Job
    2. A non-empty metadata.namespace on that Job
    3. A non-empty metadata.name and at least one named container

    Args:
        text: Raw descriptor YAML (may hold several documents)
        source_path: Where the text came from, kept for submission

    Returns:
        WorkloadDescriptor

    Raises:
        ValidationError: If any check fails
    """
    origin = str(source_path) if source_path else "job descriptor"

    jobs = [doc for doc in _documents(text) if doc.get("kind") == JOB_KIND]
    if not jobs:
        raise ValidationError(f"The job file {origin} is not a valid Kubernetes Job Type")
    if len(jobs) > 1:
        raise ValidationError(
            f"The job file {origin} defines {len(jobs)} Jobs; exactly one is supported"
        )

    job = jobs[0]
    metadata = job.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValidationError(f"The job file {origin} has malformed metadata")

    namespace = _non_empty_string(metadata.get("namespace"))
    if not namespace:
        raise ValidationError(f"The job file {origin} does not contain a Kubernetes namespace")

    name = _non_empty_string(metadata.get("name"))
    if not name:
        raise ValidationError(f"The job file {origin} does not declare metadata.name")

    containers = _container_names(job)
    if not containers:
        raise ValidationError(f"The job file {origin} does not declare a container name")

    return WorkloadDescriptor(
        kind=JOB_KIND,
        name=name,
        namespace=namespace,
        primary_container=containers[0],
        containers=tuple(containers),
        source_path=source_path,
    )


def load_descriptor(path: Path) -> WorkloadDescriptor:
    """
    Read and validate a descriptor file.

    Raises:
        ValidationError: If the file is missing, empty, or invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"No job file found at {path}")

    try:
        text = path.read_text()
    except OSError as e:
        raise ValidationError(f"Could not read job file {path}: {e}")

    if not text.strip():
        raise ValidationError(f"The provided job file {path} is empty")

    return parse_descriptor(text, source_path=path)
