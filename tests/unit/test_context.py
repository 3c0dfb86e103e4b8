"""Tests for execution context construction."""

import sysconfig
import zipfile
from pathlib import Path

import pytest

import flaky_rerun
from flaky_rerun.errors import BoundaryConstructionError
from flaky_rerun.isolation import (
    ExecutionContext,
    build_context,
    plugin_runtime_locations,
)
from flaky_rerun.isolation.context import (
    PLUGIN_RUNTIME_MODULES,
    runtime_module_sources,
    stage_runtime,
)


def test_keeps_order_and_resolves_paths(tmp_path: Path) -> None:
    """Locations are resolved and kept in the given order."""
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()

    context = build_context([second, str(first)])

    assert context.locations == (second.resolve(), first.resolve())


def test_collapses_duplicates_to_first_position(tmp_path: Path) -> None:
    """A repeated location keeps its highest priority."""
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()

    context = build_context([a, b, tmp_path / "b" / ".." / "a"])

    assert context.locations == (a.resolve(), b.resolve())


def test_missing_location_raises(tmp_path: Path) -> None:
    """A location that does not exist names itself in the error."""
    missing = tmp_path / "missing.whl"

    with pytest.raises(BoundaryConstructionError) as exc_info:
        build_context([tmp_path, missing])

    assert exc_info.value.location == missing
    assert "missing.whl" in str(exc_info.value)


def test_plain_file_raises(tmp_path: Path) -> None:
    """A regular file is only accepted when it is an archive."""
    plain = tmp_path / "notes.txt"
    plain.write_text("not importable")

    with pytest.raises(BoundaryConstructionError, match="not a directory or zip"):
        build_context([plain])


def test_zip_archive_is_accepted(tmp_path: Path) -> None:
    """Zip archives are valid import locations."""
    archive = tmp_path / "lib.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("lib_module.py", "VALUE = 1\n")

    assert build_context([archive]).locations == (archive.resolve(),)


def test_from_sources_uses_priority_order(tmp_path: Path) -> None:
    """Plugin, test, system, then test output."""
    names = ["plugin", "test", "system", "output"]
    for name in names:
        (tmp_path / name).mkdir()

    context = ExecutionContext.from_sources(
        plugin_locations=[tmp_path / "plugin"],
        test_locations=[tmp_path / "test"],
        system_locations=[tmp_path / "system"],
        test_output_directory=tmp_path / "output",
    )

    assert [p.name for p in context.locations] == names


def test_context_is_immutable(tmp_path: Path) -> None:
    """Contexts cannot be changed after construction."""
    context = build_context([tmp_path])

    with pytest.raises(AttributeError):
        context.locations = ()  # type: ignore[misc]


def test_plugin_runtime_links_engine_and_pytest(tmp_path: Path) -> None:
    """The staged runtime links the engine package and pytest."""
    (location,) = plugin_runtime_locations(cache_root=tmp_path)

    assert location.parent == tmp_path
    assert (location / "flaky_rerun").resolve() == (
        Path(flaky_rerun.__file__).resolve().parent
    )
    assert (location / "pytest").resolve() == Path(pytest.__file__).resolve().parent
    assert (location / "_pytest").is_dir()


def test_plugin_runtime_exposes_only_runtime_modules(tmp_path: Path) -> None:
    """Other packages of the host installation are not staged."""
    (location,) = plugin_runtime_locations(cache_root=tmp_path)
    host_site_packages = Path(sysconfig.get_paths()["purelib"]).resolve()

    staged = {entry.name.removesuffix(".py") for entry in location.iterdir()}

    assert staged <= set(PLUGIN_RUNTIME_MODULES)
    assert "polyfactory" not in staged
    assert location.resolve() != host_site_packages


def test_plugin_runtime_is_reused(tmp_path: Path) -> None:
    """Staging the same sources twice yields the same directory."""
    first = plugin_runtime_locations(["flaky_rerun"], cache_root=tmp_path)
    second = plugin_runtime_locations(["flaky_rerun"], cache_root=tmp_path)

    assert first == second
    assert [p.name for p in first[0].iterdir()] == ["flaky_rerun"]


def test_stage_runtime_replaces_stale_links(tmp_path: Path) -> None:
    """A link pointing elsewhere is redirected to the current source."""
    old = tmp_path / "old" / "pkg"
    new = tmp_path / "new" / "pkg"
    old.mkdir(parents=True)
    new.mkdir(parents=True)
    staged = tmp_path / "staged"
    staged.mkdir()
    (staged / "pkg").symlink_to(old, target_is_directory=True)

    stage_runtime(staged, [new])

    assert (staged / "pkg").resolve() == new.resolve()


def test_stage_runtime_failure_names_directory(tmp_path: Path) -> None:
    """A directory that cannot be created is a construction error."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    with pytest.raises(BoundaryConstructionError) as exc_info:
        stage_runtime(blocker / "runtime", [tmp_path])

    assert exc_info.value.location == blocker / "runtime"


def test_runtime_module_sources_use_package_directories() -> None:
    """Packages contribute their directory, plain modules their file."""
    sources = runtime_module_sources(["flaky_rerun", "typing_extensions"])

    assert sources[0] == Path(flaky_rerun.__file__).resolve().parent
    assert sources[1].name == "typing_extensions.py"


def test_plugin_runtime_locations_skip_missing_modules(tmp_path: Path) -> None:
    """Uninstalled modules are ignored."""
    assert (
        plugin_runtime_locations(
            ["definitely_not_installed_module"], cache_root=tmp_path
        )
        == []
    )
