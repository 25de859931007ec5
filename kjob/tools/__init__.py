"""Tool adapters for the external commands kjob drives."""

from kjob.tools.base import ToolAdapter
from kjob.tools.kubectl import KubectlAdapter

__all__ = ["ToolAdapter", "KubectlAdapter"]
