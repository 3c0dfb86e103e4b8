"""Errors raised while building or driving an isolated test run."""


class RerunError(Exception):
    """Base class for errors that abort a rerun invocation."""


class BoundaryConstructionError(RerunError):
    """Raised when a location cannot become part of an execution context."""

    def __init__(self, location: object, reason: str) -> None:
        super().__init__(f"Cannot use '{location}' as an isolated location: {reason}")
        self.location = location
        self.reason = reason


class IsolationInvocationError(RerunError):
    """Raised when an entry point cannot be resolved or invoked in isolation.

    ``details`` carries the traceback captured inside the isolated
    interpreter when one is available.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details


class TestNotFoundError(Exception):
    """Raised by executors when a test identifier cannot be located."""

    __test__ = False

    def __init__(self, identifier: str, reason: str | None = None) -> None:
        message = f"Test not found: {identifier}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.identifier = identifier
