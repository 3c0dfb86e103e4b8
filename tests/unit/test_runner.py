"""Tests for test runners."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from flaky_rerun.config import RerunConfig
from flaky_rerun.errors import IsolationInvocationError
from flaky_rerun.isolation import ExecutionContext, IsolationBoundary
from flaky_rerun.runner import ENGINE_ENTRY_POINT, IsolatedTestRunner


@pytest.fixture
def boundary_mock() -> Mock:
    """Create mock isolation boundary."""
    return Mock(spec=IsolationBoundary)


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    """Context over a temporary directory."""
    return ExecutionContext(locations=(tmp_path,))


def test_empty_identifiers_skip_isolated_run(
    boundary_mock: Mock, context: ExecutionContext
) -> None:
    """No identifiers give an empty report without starting an interpreter."""
    runner = IsolatedTestRunner(boundary=boundary_mock)

    report = runner.run_all([], context, 3)

    assert report.total == 0
    boundary_mock.load_and_invoke.assert_not_called()


def test_invokes_engine_through_boundary(
    boundary_mock: Mock, context: ExecutionContext
) -> None:
    """The engine entry point is loaded in the context and its report parsed."""
    boundary_mock.load_and_invoke.return_value = {
        "verdicts": [
            {
                "identifier": "a.B",
                "attempts": [
                    {
                        "identifier": "a.B",
                        "attempt": 1,
                        "passed": False,
                        "failure_kind": "failure",
                        "failure_detail": "boom",
                    },
                    {"identifier": "a.B", "attempt": 2, "passed": True},
                ],
            }
        ]
    }
    runner = IsolatedTestRunner(boundary=boundary_mock, pytest_args=("-x",))

    report = runner.run_all(["a.B"], context, 2)

    boundary_mock.load_and_invoke.assert_called_once_with(
        context, ENGINE_ENTRY_POINT, "run_all", ["a.B"], 2, ["-x"]
    )
    assert report.total == 1
    assert report.rerun_recovered == 1


def test_invalid_report_raises(
    boundary_mock: Mock, context: ExecutionContext
) -> None:
    """A malformed payload from the isolated run is an invocation error."""
    boundary_mock.load_and_invoke.return_value = {"verdicts": [{"identifier": 1}]}
    runner = IsolatedTestRunner(boundary=boundary_mock)

    with pytest.raises(IsolationInvocationError, match="invalid report"):
        runner.run_all(["a.B"], context, 0)


def test_boundary_errors_propagate(
    boundary_mock: Mock, context: ExecutionContext
) -> None:
    """Invocation failures abort the run."""
    boundary_mock.load_and_invoke.side_effect = IsolationInvocationError("gone")
    runner = IsolatedTestRunner(boundary=boundary_mock)

    with pytest.raises(IsolationInvocationError, match="gone"):
        runner.run_all(["a.B"], context, 0)


def test_from_config(tmp_path: Path) -> None:
    """Interpreter and pytest arguments come from the configuration."""
    config = RerunConfig(
        test_output_directory=tmp_path,
        python_executable="/opt/python/bin/python3",
        pytest_args=["-q"],
    )

    runner = IsolatedTestRunner.from_config(config)

    assert runner.boundary.python_executable == "/opt/python/bin/python3"
    assert runner.pytest_args == ("-q",)
