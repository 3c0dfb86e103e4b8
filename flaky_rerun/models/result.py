"""Models for test attempts, per-test verdicts and run reports."""

from collections.abc import Sequence
from typing import Literal, NewType, Self

from pydantic import Field, computed_field, model_validator

from flaky_rerun.models.base import Model

TestIdentifier = NewType("TestIdentifier", str)

FailureKind = Literal["failure", "not_found", "error"]


class RunOutcome(Model):
    """Result of one execution attempt of one test identifier."""

    identifier: str = Field(..., description="Identifier of the executed test")
    attempt: int = Field(..., ge=1, description="Attempt number, starting at 1")
    passed: bool = Field(..., description="Whether the attempt passed")
    failure_kind: FailureKind | None = Field(
        default=None, description="Category of the failure, only when not passed"
    )
    failure_detail: str | None = Field(
        default=None, description="Failure description, only when not passed"
    )
    duration: float = Field(default=0.0, ge=0, description="Duration in seconds")

    @model_validator(mode="after")
    def _check_failure_fields(self) -> Self:
        if self.passed and (
            self.failure_kind is not None or self.failure_detail is not None
        ):
            raise ValueError("a passing outcome cannot carry failure information")
        return self


class TestVerdict(Model):
    """Aggregated result of every attempt made for one test identifier."""

    __test__ = False

    identifier: str
    attempts: Sequence[RunOutcome] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_attempts(self) -> Self:
        for number, outcome in enumerate(self.attempts, start=1):
            if outcome.identifier != self.identifier:
                raise ValueError(
                    f"attempt {number} belongs to {outcome.identifier!r}, "
                    f"not {self.identifier!r}"
                )
            if outcome.attempt != number:
                raise ValueError(
                    f"attempts must be numbered consecutively from 1, "
                    f"got {outcome.attempt} at position {number}"
                )
            if outcome.passed and number != len(self.attempts):
                raise ValueError("no attempt may follow a passing attempt")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> Literal["passed", "failed"]:
        """PASSED if any attempt passed, FAILED when every attempt failed."""
        return "passed" if any(o.passed for o in self.attempts) else "failed"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def rerun_recovered(self) -> bool:
        """Whether the test only passed after at least one rerun."""
        return self.status == "passed" and len(self.attempts) > 1


class RunReport(Model):
    """All verdicts of one invocation with summary counts."""

    verdicts: Sequence[TestVerdict] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.verdicts)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return sum(1 for v in self.verdicts if v.status == "passed")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(1 for v in self.verdicts if v.status == "failed")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def rerun_recovered(self) -> int:
        return sum(1 for v in self.verdicts if v.rerun_recovered)

    @property
    def successful(self) -> bool:
        """Whether every verdict passed."""
        return self.failed == 0
