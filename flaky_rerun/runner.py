"""Test runners: the capability that turns identifiers into a run report."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import ValidationError

from flaky_rerun.config import RerunConfig
from flaky_rerun.errors import IsolationInvocationError
from flaky_rerun.isolation import ExecutionContext, IsolationBoundary
from flaky_rerun.models.result import RunReport

log = logging.getLogger(__name__)

ENGINE_ENTRY_POINT = "flaky_rerun.worker:PytestRerunEntryPoint"


class TestRunner(ABC):
    """Runs test identifiers with reruns and reports their verdicts."""

    __test__ = False

    @abstractmethod
    def run_all(
        self,
        identifiers: Sequence[str],
        context: ExecutionContext,
        num_reruns: int,
    ) -> RunReport:
        """Run every identifier, rerunning failures up to ``num_reruns`` times.

        Args:
            identifiers: Test identifiers in execution order
            context: Locations the tests and their dependencies resolve from
            num_reruns: Extra attempts for a failing test; negative means none

        Returns:
            Report holding one verdict per distinct identifier

        """


@dataclass(frozen=True, kw_only=True)
class IsolatedTestRunner(TestRunner):
    """Runs the rerun engine inside an isolated interpreter."""

    boundary: IsolationBoundary = field(default_factory=IsolationBoundary)
    pytest_args: Sequence[str] = ()

    @classmethod
    def from_config(cls, config: RerunConfig) -> "IsolatedTestRunner":
        """Create a runner bound to the configured interpreter."""
        return cls(
            boundary=IsolationBoundary(python_executable=config.python_executable),
            pytest_args=tuple(config.pytest_args),
        )

    def run_all(
        self,
        identifiers: Sequence[str],
        context: ExecutionContext,
        num_reruns: int,
    ) -> RunReport:
        """Load the engine through the boundary and run it there."""
        if not identifiers:
            log.info("No tests to run")
            return RunReport()

        result = self.boundary.load_and_invoke(
            context,
            ENGINE_ENTRY_POINT,
            "run_all",
            list(identifiers),
            num_reruns,
            list(self.pytest_args),
        )

        try:
            return RunReport.model_validate(result)
        except ValidationError as exc:
            raise IsolationInvocationError(
                f"{ENGINE_ENTRY_POINT} returned an invalid report", details=str(exc)
            ) from exc
