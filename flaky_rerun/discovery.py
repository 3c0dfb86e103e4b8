"""Discover test identifiers in a directory of test artifacts."""

import logging
import os
from collections.abc import Iterator, Sequence
from fnmatch import fnmatch
from pathlib import Path

from flaky_rerun.models.result import TestIdentifier

log = logging.getLogger(__name__)

DEFAULT_TEST_PATTERNS: Sequence[str] = ("test_*.py", "*_test.py")

SKIPPED_DIRECTORIES = frozenset({"__pycache__"})


def discover(
    root: Path | str,
    patterns: Sequence[str] = DEFAULT_TEST_PATTERNS,
) -> Iterator[TestIdentifier]:
    """Yield the identifier of every test artifact below ``root``.

    Directory segments become namespace segments and the file extension is
    stripped, so ``pkg/sub/FooTest.class`` yields ``pkg.sub.FooTest`` for the
    pattern ``*.class``. The walk is depth-first in filesystem order; sort the
    result when a reproducible order is needed. Symlinked directories are
    walked under their link name, except links back to an enclosing directory.

    Args:
        root: Directory containing the test artifacts
        patterns: Glob patterns a file name must match to be a test unit

    Returns:
        Lazy iterator of identifiers. A missing root yields nothing.

    """
    root = Path(root)
    if not root.is_dir():
        log.debug("Test directory %s does not exist, nothing to discover", root)
        return iter(())
    return _walk(root, (), tuple(patterns), frozenset({_identity(root)}))


def _identity(path: Path | str) -> tuple[int, int]:
    stat = os.stat(path)
    return stat.st_dev, stat.st_ino


def _walk(
    directory: Path,
    namespace: tuple[str, ...],
    patterns: tuple[str, ...],
    ancestors: frozenset[tuple[int, int]],
) -> Iterator[TestIdentifier]:
    try:
        with os.scandir(directory) as entries:
            children = list(entries)
    except OSError as exc:
        log.warning("Discovery incomplete, skipping %s: %s", directory, exc)
        return

    for entry in children:
        if entry.is_dir():
            if entry.name in SKIPPED_DIRECTORIES:
                continue
            try:
                identity = _identity(entry.path)
            except OSError as exc:
                log.warning("Discovery incomplete, skipping %s: %s", entry.path, exc)
                continue
            if identity in ancestors:
                log.debug("Skipping %s, it links to an enclosing directory", entry.path)
                continue
            yield from _walk(
                Path(entry.path),
                (*namespace, entry.name),
                patterns,
                ancestors | {identity},
            )
        elif entry.is_file() and any(fnmatch(entry.name, p) for p in patterns):
            stem = entry.name.rsplit(".", 1)[0]
            yield TestIdentifier(".".join((*namespace, stem)))
