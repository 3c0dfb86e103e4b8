"""Invoke entry points inside an interpreter confined to an execution context."""

import json
import logging
import subprocess
import sys
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flaky_rerun.errors import IsolationInvocationError
from flaky_rerun.isolation.context import ExecutionContext

log = logging.getLogger(__name__)

BOOTSTRAP_SCRIPT = Path(__file__).with_name("_bootstrap.py")

# Child stdout goes to the host's stderr so stdout stays free for the report.
STDERR_FILENO = 2


@dataclass(frozen=True, kw_only=True)
class IsolationBoundary:
    """Runs code in a child interpreter whose imports come only from a context.

    The child starts with ``-I -S``: no environment variables, no user site
    and no site-packages. Its ``sys.path`` is the context locations followed
    by the standard library, so nothing loaded by the host process leaks in.
    """

    python_executable: str = field(default_factory=lambda: sys.executable)
    forward_output: bool = True

    def load_and_invoke(
        self,
        context: ExecutionContext,
        entry_point: str,
        method: str,
        *args: Any,
    ) -> Any:
        """Instantiate ``entry_point`` in isolation and call ``method`` on it.

        Args:
            context: Locations the isolated interpreter may import from
            entry_point: ``module:Qualname`` of a class with a no-argument
                constructor, private names included
            method: Name of the method to call on the new instance
            *args: JSON-serialisable positional arguments

        Returns:
            The JSON-decoded return value of the method

        Raises:
            IsolationInvocationError: If the type, constructor or method cannot
                be resolved, the method raises, or the interpreter dies

        """
        with tempfile.TemporaryDirectory(prefix="flaky-rerun-") as workdir:
            request_path = Path(workdir) / "request.json"
            response_path = Path(workdir) / "response.json"
            request_path.write_text(
                json.dumps(
                    {
                        "locations": [str(p) for p in context.locations],
                        "entry_point": entry_point,
                        "method": method,
                        "args": list(args),
                        "response_path": str(response_path),
                        "log_level": logging.getLogger().getEffectiveLevel(),
                    }
                ),
                encoding="utf-8",
            )

            command = [
                self.python_executable,
                "-I",
                "-S",
                str(BOOTSTRAP_SCRIPT),
                str(request_path),
            ]
            log.info("Invoking %s.%s in isolated interpreter", entry_point, method)
            log.debug("Isolated command: %s", command)
            completed = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                stdout=STDERR_FILENO if self.forward_output else None,
                check=False,
            )

            if not response_path.exists():
                raise IsolationInvocationError(
                    f"Isolated interpreter exited with code {completed.returncode} "
                    f"before {entry_point}.{method} returned"
                )
            response = json.loads(response_path.read_text(encoding="utf-8"))

        return _unwrap(entry_point, method, response)


def _unwrap(entry_point: str, method: str, response: Mapping[str, Any]) -> Any:
    """Return the result of a response or raise the failure it describes."""
    status = response.get("status")
    if status == "ok":
        return response.get("result")

    if status == "unresolved":
        message = f"Cannot resolve {entry_point}.{method} in isolated context"
    elif status == "raised":
        message = f"{entry_point}.{method} raised in isolated context"
    else:
        message = f"Unexpected response status {status!r} from {entry_point}"

    error = response.get("error")
    if error:
        message = f"{message}: {error}"
    raise IsolationInvocationError(message, details=response.get("traceback"))
