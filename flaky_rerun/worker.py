"""Pytest execution inside the isolated interpreter.

This module is loaded through the isolation boundary, so ``pytest`` and every
other import here resolves from the execution context rather than from the
host process.
"""

import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from flaky_rerun.engine import AttemptResult, RerunEngine
from flaky_rerun.errors import TestNotFoundError

log = logging.getLogger(__name__)

DEFAULT_PYTEST_ARGS: Sequence[str] = ("-p", "no:cacheprovider")


def resolve_node_id(identifier: str) -> str | None:
    """Translate a test identifier into a pytest node id.

    ``pkg.test_mod`` maps to the module file, ``pkg.test_mod.TestCase`` to a
    class inside it, and a ``#selector`` suffix (``test_x`` or
    ``TestCase::test_x``) narrows the node further.

    Returns:
        The node id, or None when no module can be found for the identifier

    """
    target, _, selector = identifier.partition("#")
    selectors: list[str] = []

    path = _module_file(target)
    if path is None and "." in target:
        target, class_name = target.rsplit(".", 1)
        path = _module_file(target)
        selectors.append(class_name)
    if path is None:
        return None

    if selector:
        selectors.append(selector)
    return "::".join([path, *selectors])


def _module_file(name: str) -> str | None:
    """Locate a module's source file on ``sys.path`` without importing anything.

    pytest has to be the first to import a test module for its assertions to
    be rewritten. A regular package shadows namespace portions of its name.
    """
    *packages, module = name.split(".")
    if not all(segment.isidentifier() for segment in (*packages, module)):
        return None

    search = [Path(entry) for entry in sys.path if entry and Path(entry).is_dir()]
    for package in packages:
        portions = [d / package for d in search if (d / package).is_dir()]
        regular = [p for p in portions if (p / "__init__.py").is_file()]
        search = regular[:1] or portions
        if not search:
            return None

    for directory in search:
        candidate = directory / f"{module}.py"
        if candidate.is_file():
            return str(candidate)
    return None


class OutcomeCollector:
    """Pytest plugin that records a one-line summary of every failure."""

    def __init__(self) -> None:
        self.failures: list[str] = []

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.failed:
            self._record(report)

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        if report.failed:
            self._record(report)

    def _record(self, report: pytest.TestReport | pytest.CollectReport) -> None:
        lines = report.longreprtext.strip().splitlines()
        errors = [line[1:].strip() for line in lines if line.startswith("E ")]
        if errors:
            reason = errors[0]
        else:
            reason = lines[-1] if lines else report.outcome
        self.failures.append(f"{report.nodeid}: {reason}")

    def summary(self) -> str | None:
        return "\n".join(self.failures) or None


@dataclass(frozen=True, kw_only=True)
class PytestExecutor:
    """Runs one identifier per call with ``pytest.main``."""

    pytest_args: Sequence[str] = ()

    def __call__(self, identifier: str) -> AttemptResult:
        node_id = resolve_node_id(identifier)
        if node_id is None:
            raise TestNotFoundError(identifier, "no importable module")

        collector = OutcomeCollector()
        exit_code = pytest.ExitCode(
            pytest.main(
                [node_id, *DEFAULT_PYTEST_ARGS, *self.pytest_args],
                plugins=[collector],
            )
        )
        log.debug("pytest exited with %s for %s", exit_code.name, node_id)

        if exit_code == pytest.ExitCode.OK:
            return AttemptResult(passed=True)
        if exit_code == pytest.ExitCode.USAGE_ERROR:
            raise TestNotFoundError(identifier, f"pytest could not collect {node_id}")
        if exit_code == pytest.ExitCode.NO_TESTS_COLLECTED:
            return AttemptResult(passed=False, detail="no tests collected")
        return AttemptResult(
            passed=False,
            detail=collector.summary() or f"pytest exited with {exit_code.name}",
        )


class PytestRerunEntryPoint:
    """Entry point invoked through the isolation boundary."""

    def run_all(
        self,
        identifiers: list[str],
        num_reruns: int,
        pytest_args: list[str] | None = None,
    ) -> dict[str, Any]:
        engine = RerunEngine(executor=PytestExecutor(pytest_args=tuple(pytest_args or ())))
        return engine.run(identifiers, num_reruns).model_dump(mode="json")
