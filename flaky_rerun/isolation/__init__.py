"""Isolation boundary between the host process and the test run."""

from flaky_rerun.isolation.boundary import IsolationBoundary
from flaky_rerun.isolation.context import (
    ExecutionContext,
    build_context,
    plugin_runtime_locations,
)

__all__ = [
    "ExecutionContext",
    "IsolationBoundary",
    "build_context",
    "plugin_runtime_locations",
]
