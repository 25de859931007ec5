"""
kjob - Kubernetes Job runner with self-healing log capture.

Submits a Job descriptor, tails the Job's container output for as long as
the Job is active, restarts the tail when the stream drops, and writes a
`done` marker once supervision reaches a terminal state.
"""

__version__ = "1.3.0"
__author__ = "Local Pipeline Team"


__all__ = ["RunnerConfig", "load_config", "get_kjob_home"]

from .config import RunnerConfig, load_config, get_kjob_home
