"""Domain repository interfaces.

Import from this package rather than individual modules to avoid coupling
callers to specific repository module paths.
"""

from .base import Filter, Repository, Target, Update

__all__ = [
    "Repository",
    "Filter",
    "Target",
    "Update",
]
