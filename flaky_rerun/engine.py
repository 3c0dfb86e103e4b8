"""Rerun engine: run each test, rerun failures, aggregate verdicts."""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from flaky_rerun.errors import TestNotFoundError
from flaky_rerun.models.result import RunOutcome, RunReport, TestVerdict

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AttemptResult:
    """Pass/fail signal of a single execution, as reported by an executor."""

    passed: bool
    detail: str | None = None


class AttemptExecutor(Protocol):
    """Executes one test identifier once."""

    def __call__(self, identifier: str) -> AttemptResult:
        """Run the identified test.

        Raises:
            TestNotFoundError: If the identifier cannot be located

        """


@dataclass(frozen=True, kw_only=True)
class RerunEngine:
    """Runs tests sequentially and reruns failures up to a bounded count."""

    executor: AttemptExecutor

    def run(self, identifiers: Iterable[str], num_reruns: int) -> RunReport:
        """Run every identifier in order and return the aggregated report.

        Each failing identifier is executed again up to ``num_reruns`` more
        times, stopping at the first pass. Negative counts mean no reruns.
        Repeated identifiers are run once.
        """
        max_attempts = 1 + max(num_reruns, 0)
        unique = list(dict.fromkeys(identifiers))
        log.info(
            "Running %d test(s) with up to %d rerun(s) each",
            len(unique),
            max_attempts - 1,
        )

        report = RunReport(
            verdicts=[self._run_test(identifier, max_attempts) for identifier in unique]
        )
        log.info(
            "Run finished: total=%d passed=%d failed=%d rerun_recovered=%d",
            report.total,
            report.passed,
            report.failed,
            report.rerun_recovered,
        )
        return report

    def _run_test(self, identifier: str, max_attempts: int) -> TestVerdict:
        attempts: list[RunOutcome] = []
        for number in range(1, max_attempts + 1):
            outcome = self._attempt(identifier, number)
            attempts.append(outcome)
            if outcome.passed or outcome.failure_kind == "not_found":
                break
            if number < max_attempts:
                log.info(
                    "Rerunning %s (rerun %d of %d)", identifier, number, max_attempts - 1
                )
        return TestVerdict(identifier=identifier, attempts=attempts)

    def _attempt(self, identifier: str, number: int) -> RunOutcome:
        start = time.monotonic()
        try:
            result = self.executor(identifier)
        except TestNotFoundError as exc:
            log.warning("%s", exc)
            return RunOutcome(
                identifier=identifier,
                attempt=number,
                passed=False,
                failure_kind="not_found",
                failure_detail=str(exc),
                duration=time.monotonic() - start,
            )
        except Exception as exc:
            log.exception("Attempt %d of %s could not be executed", number, identifier)
            return RunOutcome(
                identifier=identifier,
                attempt=number,
                passed=False,
                failure_kind="error",
                failure_detail=f"{type(exc).__name__}: {exc}",
                duration=time.monotonic() - start,
            )

        duration = time.monotonic() - start
        log.info(
            "Attempt %d of %s %s in %.2fs",
            number,
            identifier,
            "passed" if result.passed else "failed",
            duration,
        )
        if result.passed:
            return RunOutcome(
                identifier=identifier, attempt=number, passed=True, duration=duration
            )
        return RunOutcome(
            identifier=identifier,
            attempt=number,
            passed=False,
            failure_kind="failure",
            failure_detail=result.detail,
            duration=duration,
        )
