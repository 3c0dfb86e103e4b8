"""Fixtures for integration tests."""

from pathlib import Path
from typing import Protocol

import pytest

from flaky_rerun.isolation import (
    ExecutionContext,
    build_context,
    plugin_runtime_locations,
)


class WriteModuleFn(Protocol):
    """Protocol for module creation function."""

    def __call__(self, relative: str, source: str) -> Path:
        """Write a module below the project root and return its path."""


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Root directory of a generated test project."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_module(project_root: Path) -> WriteModuleFn:
    """Return a function writing modules into the test project."""

    def _write(relative: str, source: str) -> Path:
        path = project_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)
        return path

    return _write


@pytest.fixture
def project_context(project_root: Path) -> ExecutionContext:
    """Context with this installation's runtime followed by the project."""
    return build_context([*plugin_runtime_locations(), project_root])
