"""CLI entry point for isolated test runs with reruns."""

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from flaky_rerun.config import RerunConfig
from flaky_rerun.discovery import DEFAULT_TEST_PATTERNS, discover
from flaky_rerun.errors import IsolationInvocationError, RerunError
from flaky_rerun.isolation import ExecutionContext
from flaky_rerun.models.result import RunReport, TestVerdict
from flaky_rerun.runner import IsolatedTestRunner

STATUS_SYMBOLS = {
    "passed": "✓",
    "recovered": "~",
    "failed": "✗",
}


def _symbol(verdict: TestVerdict) -> str:
    if verdict.rerun_recovered:
        return STATUS_SYMBOLS["recovered"]
    return STATUS_SYMBOLS[verdict.status]


def log_results_summary(log: logging.Logger, report: RunReport) -> None:
    """Log a formatted summary of every verdict."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for verdict in report.verdicts:
        log.info(
            "%s %s: %s (%d attempt(s))",
            _symbol(verdict),
            verdict.identifier,
            verdict.status,
            len(verdict.attempts),
        )
        for outcome in verdict.attempts:
            if outcome.failure_detail:
                log.info("  Attempt %d: %s", outcome.attempt, outcome.failure_detail)

    log.info(
        "Total: %d, passed: %d, failed: %d, recovered by rerun: %d",
        report.total,
        report.passed,
        report.failed,
        report.rerun_recovered,
    )


def split_paths(values: Sequence[str] | None) -> Sequence[Path]:
    """Flatten repeated, ``os.pathsep`` separated path options."""
    return [
        Path(part)
        for value in values or ()
        for part in value.split(os.pathsep)
        if part.strip()
    ]


def format_output(report: RunReport) -> dict[str, Any]:
    """Format a run report for JSON output."""
    return {
        "total": report.total,
        "passed": report.passed,
        "failed": report.failed,
        "rerun_recovered": report.rerun_recovered,
        "results": [
            {
                "identifier": verdict.identifier,
                "status": verdict.status,
                "attempts": len(verdict.attempts),
                "failures": [
                    outcome.failure_detail
                    for outcome in verdict.attempts
                    if not outcome.passed
                ],
            }
            for verdict in report.verdicts
        ],
    }


def run(config: RerunConfig) -> int:
    """Run the configured tests and return the exit code."""
    log = logging.getLogger("flaky_rerun")

    context = ExecutionContext.from_sources(
        plugin_locations=config.plugin_locations,
        test_locations=config.test_locations,
        system_locations=config.system_locations,
        test_output_directory=config.test_output_directory,
    )

    identifiers = config.test_identifiers()
    if identifiers:
        log.info("Running %d requested test(s)", len(identifiers))
    else:
        log.info("Discovering tests in %s", config.test_output_directory)
        identifiers = sorted(
            discover(config.test_output_directory, config.test_patterns)
        )
        log.info("Discovered %d test(s)", len(identifiers))

    runner = IsolatedTestRunner.from_config(config)
    report = runner.run_all(identifiers, context, config.num_reruns)

    log_results_summary(log, report)
    print(json.dumps(format_output(report), indent=2))

    return 0 if report.successful else 1


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run tests in an isolated interpreter and rerun failures"
    )
    parser.add_argument(
        "--test",
        default="",
        help="Comma-separated test identifiers (module, module.Class, ...#test)",
    )
    parser.add_argument(
        "--test-output-dir",
        type=Path,
        required=True,
        help="Directory holding the test modules",
    )
    parser.add_argument(
        "--plugin-path",
        action="append",
        help=(
            "Runtime location for the rerun engine "
            "(default: staged from this installation)"
        ),
    )
    parser.add_argument(
        "--test-path",
        action="append",
        help="Project test dependency location",
    )
    parser.add_argument(
        "--system-path",
        action="append",
        help="Project system dependency location",
    )
    parser.add_argument(
        "--num-reruns",
        type=int,
        default=3,
        help="Number of reruns for failing tests",
    )
    parser.add_argument(
        "--pattern",
        action="append",
        help=f"Test file name pattern (default: {', '.join(DEFAULT_TEST_PATTERNS)})",
    )
    parser.add_argument(
        "--python",
        default=sys.executable,
        help="Interpreter used for the isolated run",
    )
    parser.add_argument(
        "--pytest-arg",
        action="append",
        default=[],
        help="Extra argument passed to every pytest run",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    overrides: dict[str, Any] = {}
    if args.plugin_path:
        overrides["plugin_locations"] = split_paths(args.plugin_path)
    if args.pattern:
        overrides["test_patterns"] = args.pattern

    config = RerunConfig(
        test=args.test,
        test_output_directory=args.test_output_dir,
        test_locations=split_paths(args.test_path),
        system_locations=split_paths(args.system_path),
        num_reruns=args.num_reruns,
        python_executable=args.python,
        pytest_args=args.pytest_arg,
        **overrides,
    )

    try:
        exit_code = run(config)
    except RerunError as exc:
        log = logging.getLogger("flaky_rerun")
        log.error("%s", exc)
        if isinstance(exc, IsolationInvocationError) and exc.details:
            log.error("%s", exc.details)
        exit_code = 2
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
