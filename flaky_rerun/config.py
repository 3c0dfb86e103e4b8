"""Configuration for a rerun invocation."""

import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

from flaky_rerun.discovery import DEFAULT_TEST_PATTERNS
from flaky_rerun.isolation.context import plugin_runtime_locations
from flaky_rerun.models.result import TestIdentifier


class RerunConfig(BaseModel):
    """Configuration for a rerun invocation."""

    test: str = Field(
        default="",
        description="Comma-separated test identifiers (empty means discover all)",
    )
    test_output_directory: Path = Field(
        ..., description="Directory holding the test modules to discover and run"
    )
    plugin_locations: Sequence[Path] = Field(
        default_factory=plugin_runtime_locations,
        description="Locations of the orchestrator's own runtime dependencies",
    )
    test_locations: Sequence[Path] = Field(
        default_factory=list, description="Project test dependency locations"
    )
    system_locations: Sequence[Path] = Field(
        default_factory=list, description="Project system dependency locations"
    )
    num_reruns: int = Field(
        default=3, description="Reruns for failing tests (negative means none)"
    )
    test_patterns: Sequence[str] = Field(
        default=DEFAULT_TEST_PATTERNS,
        description="File name patterns of discoverable test modules",
    )
    python_executable: str = Field(
        default_factory=lambda: sys.executable,
        description="Interpreter used for the isolated run",
    )
    pytest_args: Sequence[str] = Field(
        default_factory=list, description="Extra arguments for every pytest run"
    )

    def test_identifiers(self) -> Sequence[TestIdentifier]:
        """Parse the explicit identifier list."""
        return [TestIdentifier(t.strip()) for t in self.test.split(",") if t.strip()]
