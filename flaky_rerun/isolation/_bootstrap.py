"""Entry script of the isolated interpreter.

Runs under ``python -I -S`` so only the standard library is importable until
the request's locations are added as site directories, in priority order and
with their ``.pth`` files processed. Must not import anything outside the
standard library before that point.
"""

import importlib
import json
import logging
import site
import sys
import traceback
from typing import Any


def _resolve(entry_point: str) -> Any:
    module_name, _, qualname = entry_point.partition(":")
    target: Any = importlib.import_module(module_name)
    for attribute in qualname.split("."):
        target = getattr(target, attribute)
    return target


def _failure(status: str, exc: BaseException) -> str:
    return json.dumps(
        {
            "status": status,
            "error": f"{type(exc).__name__}: {exc}",
            "traceback": traceback.format_exc(),
        }
    )


def main(request_path: str) -> int:
    """Invoke the requested entry point and write the response file."""
    with open(request_path, encoding="utf-8") as fh:
        request = json.load(fh)

    known_paths: set[str] = set()
    for location in request["locations"]:
        site.addsitedir(location, known_paths)
    logging.basicConfig(
        level=request.get("log_level", logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        entry_type = _resolve(request["entry_point"])
        method = getattr(entry_type(), request["method"])
    except Exception as exc:
        payload = _failure("unresolved", exc)
    else:
        try:
            payload = json.dumps(
                {"status": "ok", "result": method(*request["args"])}
            )
        except Exception as exc:
            payload = _failure("raised", exc)

    with open(request["response_path"], "w", encoding="utf-8") as fh:
        fh.write(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1]))
