# src/cratestitch/project.py
"""Discover a crate's targets from its `Cargo.toml` and directory layout."""

from pathlib import Path
from typing import Any

from apathetic_utils import load_toml

from .config_types import ProjectDescriptor
from .constants import (
    DEFAULT_BIN_DIR,
    DEFAULT_LIB_PATH,
    DEFAULT_MAIN_PATH,
    MANIFEST_NAME,
    SOURCE_SUFFIX,
)
from .errors import ConfigurationError
from .logs import getAppLogger


def crate_identifier(name: str) -> str:
    """Cargo package names may contain `-`; crate paths never do."""
    return name.replace("-", "_")


def load_manifest(project_root: Path) -> dict[str, Any]:
    """Parse `<project_root>/Cargo.toml`.

    Raises:
        ConfigurationError: the manifest is missing or is not valid TOML.
    """
    manifest = project_root / MANIFEST_NAME
    try:
        data = load_toml(manifest, required=True)
    except FileNotFoundError as e:
        xmsg = f"No {MANIFEST_NAME} found in {project_root}"
        raise ConfigurationError(xmsg) from e
    except ValueError as e:
        xmsg = f"Could not parse {manifest}: {e}"
        raise ConfigurationError(xmsg) from e
    return data or {}


def _library_entry(
    root: Path, data: dict[str, Any], package_name: str
) -> tuple[str | None, Path | None]:
    lib = data.get("lib")
    if isinstance(lib, dict):
        path = root / lib.get("path", DEFAULT_LIB_PATH)
        name = crate_identifier(lib.get("name", package_name))
        if not path.is_file():
            xmsg = f"Library target {name} points at missing file {path}"
            raise ConfigurationError(xmsg)
        return name, path
    default = root / DEFAULT_LIB_PATH
    if default.is_file():
        return crate_identifier(package_name), default
    return None, None


def _discover_binaries(root: Path, package_name: str) -> dict[str, Path]:
    found: dict[str, Path] = {}
    main = root / DEFAULT_MAIN_PATH
    if main.is_file():
        found[package_name] = main
    bin_dir = root / DEFAULT_BIN_DIR
    if bin_dir.is_dir():
        for entry in sorted(bin_dir.iterdir()):
            if entry.is_file() and entry.suffix == SOURCE_SUFFIX:
                found[entry.stem] = entry
            elif entry.is_dir() and (entry / "main.rs").is_file():
                found[entry.name] = entry / "main.rs"
    return found


def _declared_binary_path(root: Path, name: str, package_name: str) -> Path | None:
    candidates = [
        root / DEFAULT_BIN_DIR / f"{name}{SOURCE_SUFFIX}",
        root / DEFAULT_BIN_DIR / name / "main.rs",
    ]
    if name == package_name:
        candidates.insert(0, root / DEFAULT_MAIN_PATH)
    return next((c for c in candidates if c.is_file()), None)


def _binary_entries(
    root: Path, data: dict[str, Any], package_name: str
) -> dict[str, Path]:
    package = data.get("package", {})
    binaries: dict[str, Path] = {}
    if package.get("autobins", True):
        binaries.update(_discover_binaries(root, package_name))

    for entry in data.get("bin", []) or []:
        if not isinstance(entry, dict) or "name" not in entry:
            xmsg = f"Every [[bin]] entry in {MANIFEST_NAME} needs a name"
            raise ConfigurationError(xmsg)
        name = entry["name"]
        if "path" in entry:
            path: Path | None = root / entry["path"]
        else:
            path = _declared_binary_path(root, name, package_name)
        if path is None or not path.is_file():
            xmsg = f"Binary target {name} has no source file"
            raise ConfigurationError(xmsg)
        binaries[name] = path
    return binaries


def load_project_descriptor(
    project_root: Path | str,
    binary: str | None = None,
) -> ProjectDescriptor:
    """Describe the crate at `project_root` and pick the entry file.

    The entry is the requested `binary`, else the only binary (or
    `package.default-run`), else the library.

    Raises:
        ConfigurationError: no target exists, `binary` is unknown, or several
            binaries exist and none was chosen.
    """
    logger = getAppLogger()
    root = Path(project_root).resolve()
    data = load_manifest(root)

    package = data.get("package")
    if not isinstance(package, dict) or "name" not in package:
        manifest = root / MANIFEST_NAME
        xmsg = f"{manifest} has no [package] name (workspaces are not supported)"
        raise ConfigurationError(xmsg)
    package_name = str(package["name"])

    crate_name, lib_path = _library_entry(root, data, package_name)
    binaries = _binary_entries(root, data, package_name)

    if binary is not None:
        if binary not in binaries:
            known = ", ".join(sorted(binaries)) or "none"
            xmsg = f"Unknown binary target {binary!r} (available: {known})"
            raise ConfigurationError(xmsg)
        entry = binaries[binary]
    elif len(binaries) == 1:
        entry = next(iter(binaries.values()))
    elif binaries:
        default_run = package.get("default-run")
        if default_run not in binaries:
            known = ", ".join(sorted(binaries))
            xmsg = f"Several binary targets ({known}); choose one with --bin"
            raise ConfigurationError(xmsg)
        entry = binaries[default_run]
    elif lib_path is not None:
        entry = lib_path
    else:
        xmsg = f"{package_name} has neither a library nor a binary target"
        raise ConfigurationError(xmsg)

    descriptor = ProjectDescriptor(
        project_root=root,
        crate_display_name=package_name,
        entry_file_path=entry,
        crate_name=crate_name,
        library_entry_path=lib_path,
        binary_entry_paths=binaries,
    )
    logger.debug(
        "Project %s: entry=%s library=%s binaries=%s",
        package_name,
        entry,
        lib_path,
        sorted(binaries),
    )
    return descriptor
