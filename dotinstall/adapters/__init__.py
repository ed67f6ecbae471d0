"""Adapters — side-effecting bindings for package managers, commands and files.

Public re-exports for convenient access.
"""

from dotinstall.adapters.base import Adapter, ExecutionContext
from dotinstall.adapters.mock import MockAdapter
from dotinstall.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
