"""Base class for tool adapters."""

import shutil
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class ToolAdapter(ABC):
    """
    Base class for tool adapters.

    Tool adapters give kjob a single, testable seam for each external
    command-line tool. Each adapter validates its own prerequisites and
    builds and runs the tool's commands.
    """

    def __init__(self, executable: str, timeout: Optional[float] = None):
        """
        Initialize the tool adapter.

        Args:
            executable: Name or path of the tool binary
            timeout: Default per-command timeout in seconds
        """
        self.executable = executable
        self.timeout = timeout

    def find_executable(self) -> Optional[str]:
        """Return the resolved path of the tool binary, or None."""
        return shutil.which(self.executable)

    @abstractmethod
    def validate(self) -> Dict[str, Any]:
        """
        Validate the tool's prerequisites.

        Returns:
            Dictionary with keys:
                - 'valid': bool indicating if validation passed
                - 'errors': list of error messages (empty if valid)
                - 'warnings': list of warning messages (optional)
        """
        pass

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Execute a tool command.

        Args:
            *args: Positional arguments for the tool command
            **kwargs: Keyword arguments for the tool command

        Returns:
            Tool-specific return value (typically subprocess.CompletedProcess)
        """
        pass
