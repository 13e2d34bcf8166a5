"""Tool Adapters - Executors for catalog tools.

This package contains adapters that carry out a prepared invocation,
either against the billing API over HTTP or locally.
"""

from .base import BaseToolAdapter
from .http import HttpToolAdapter
from .system import SystemToolAdapter

__all__ = [
    "BaseToolAdapter",
    "HttpToolAdapter",
    "SystemToolAdapter",
]
