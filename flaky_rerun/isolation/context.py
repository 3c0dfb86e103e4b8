"""Execution contexts: the ordered locations visible to an isolated run."""

import hashlib
import importlib.util
import logging
import os
import tempfile
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from flaky_rerun.errors import BoundaryConstructionError

log = logging.getLogger(__name__)

# Top-level modules the rerun engine needs inside the isolated interpreter.
PLUGIN_RUNTIME_MODULES: Sequence[str] = (
    "flaky_rerun",
    "pytest",
    "_pytest",
    "pluggy",
    "iniconfig",
    "packaging",
    "pygments",
    "pydantic",
    "pydantic_core",
    "annotated_types",
    "typing_extensions",
    "typing_inspection",
    "colorama",
)

RUNTIME_DIRECTORY_PREFIX = "flaky-rerun-runtime-"


@dataclass(frozen=True, kw_only=True)
class ExecutionContext:
    """Ordered, resolved locations that define what an isolated run can import.

    Earlier locations take priority over later ones.
    """

    locations: tuple[Path, ...]

    @classmethod
    def from_sources(
        cls,
        *,
        plugin_locations: Iterable[Path | str],
        test_locations: Iterable[Path | str],
        system_locations: Iterable[Path | str],
        test_output_directory: Path | str,
    ) -> "ExecutionContext":
        """Build a context with the standard priority order.

        Plugin runtime locations come first, then the project's test
        locations, its system locations and finally the test output directory.
        """
        return build_context(
            [
                *plugin_locations,
                *test_locations,
                *system_locations,
                test_output_directory,
            ]
        )


def build_context(locations: Iterable[Path | str]) -> ExecutionContext:
    """Resolve locations into an execution context.

    Repeated locations keep their first position.

    Raises:
        BoundaryConstructionError: If a location does not exist or is a file
            that is not an importable archive

    """
    resolved: dict[Path, None] = {}
    for location in locations:
        try:
            path = Path(location).resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise BoundaryConstructionError(location, str(exc)) from exc

        if path.is_file() and not zipfile.is_zipfile(path):
            raise BoundaryConstructionError(
                location, "not a directory or zip archive"
            )
        resolved.setdefault(path, None)

    log.debug("Built execution context with %d location(s)", len(resolved))
    return ExecutionContext(locations=tuple(resolved))


def plugin_runtime_locations(
    modules: Sequence[str] = PLUGIN_RUNTIME_MODULES,
    cache_root: Path | None = None,
) -> Sequence[Path]:
    """Return a location exposing only the orchestrator's own runtime modules.

    Each installed module is linked into a directory of its own, so the
    isolated interpreter never sees the rest of the host's ``site-packages``.
    The directory name is derived from the linked sources, which lets later
    runs reuse it. Modules that are not installed are skipped.
    """
    sources = runtime_module_sources(modules)
    if not sources:
        return []

    digest = hashlib.sha256(
        "\n".join(str(source) for source in sources).encode()
    ).hexdigest()[:16]
    root = Path(tempfile.gettempdir()) if cache_root is None else cache_root
    return [stage_runtime(root / f"{RUNTIME_DIRECTORY_PREFIX}{digest}", sources)]


def runtime_module_sources(modules: Sequence[str]) -> Sequence[Path]:
    """Return the package directory or module file of each installed module."""
    sources: dict[Path, None] = {}
    for name in modules:
        spec = importlib.util.find_spec(name)
        if spec is None or spec.origin is None:
            log.debug("Runtime module %s is not installed, skipping", name)
            continue

        origin = Path(os.path.realpath(spec.origin))
        if spec.submodule_search_locations is not None:
            sources.setdefault(origin.parent, None)
        else:
            sources.setdefault(origin, None)
    return list(sources)


def stage_runtime(directory: Path, sources: Iterable[Path]) -> Path:
    """Link every source into ``directory`` under its own name.

    Links left by an earlier run are reused when they still point at the same
    source and replaced otherwise.

    Raises:
        BoundaryConstructionError: If the directory cannot be populated

    """
    try:
        directory.mkdir(parents=True, exist_ok=True)
        for source in sources:
            _link(directory / source.name, source)
    except OSError as exc:
        raise BoundaryConstructionError(directory, str(exc)) from exc

    log.debug("Staged plugin runtime in %s", directory)
    return directory


def _link(link: Path, source: Path) -> None:
    try:
        link.symlink_to(source, target_is_directory=source.is_dir())
    except FileExistsError:
        if link.resolve() == source:
            return
        link.unlink()
        link.symlink_to(source, target_is_directory=source.is_dir())
