# tests/50_core/test_load_project_descriptor.py
"""Tests for crate target discovery from Cargo.toml and the src/ layout."""

from pathlib import Path

import pytest

import cratestitch.errors as mod_errors
import cratestitch.project as mod_project
from tests.utils import make_crate, make_manifest


def test_binary_only_crate(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {"src/main.rs": "fn main() {}\n"}, name="my-tool")

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert descriptor.crate_display_name == "my-tool"
    assert descriptor.entry_file_path == root.resolve() / "src" / "main.rs"
    assert descriptor.has_binary_target
    assert not descriptor.has_library_target
    assert descriptor.entry_is_binary
    assert descriptor.crate_name is None


def test_library_only_crate_uses_library_as_entry(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {"src/lib.rs": "pub fn f() {}\n"}, name="my-lib")

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert descriptor.crate_name == "my_lib"
    assert descriptor.entry_file_path == descriptor.library_entry_path
    assert not descriptor.entry_is_binary


def test_binary_and_library_crate(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(
        tmp_path,
        {"src/main.rs": "fn main() {}\n", "src/lib.rs": "pub fn f() {}\n"},
    )

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert descriptor.has_library_target
    assert descriptor.has_binary_target
    assert descriptor.entry_file_path.name == "main.rs"


def test_custom_lib_section(tmp_path: Path) -> None:
    # --- setup ---
    manifest = make_manifest(extra='[lib]\nname = "core_impl"\npath = "src/core.rs"')
    root = make_crate(tmp_path, {"src/core.rs": ""}, manifest=manifest)

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert descriptor.crate_name == "core_impl"
    assert descriptor.library_entry_path == root.resolve() / "src" / "core.rs"


def test_several_binaries_need_a_choice(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(
        tmp_path,
        {
            "src/main.rs": "fn main() {}\n",
            "src/bin/extra.rs": "fn main() {}\n",
            "src/bin/tool/main.rs": "fn main() {}\n",
        },
    )

    # --- execute ---
    with pytest.raises(mod_errors.ConfigurationError, match="--bin"):
        mod_project.load_project_descriptor(root)
    chosen = mod_project.load_project_descriptor(root, "tool")

    # --- verify ---
    assert sorted(chosen.binary_entry_paths) == ["demo", "extra", "tool"]
    assert chosen.entry_file_path == root.resolve() / "src" / "bin" / "tool" / "main.rs"


def test_default_run_picks_binary(tmp_path: Path) -> None:
    # --- setup ---
    manifest = make_manifest().replace(
        'edition = "2021"\n', 'edition = "2021"\ndefault-run = "extra"\n'
    )
    root = make_crate(
        tmp_path,
        {"src/main.rs": "fn main() {}\n", "src/bin/extra.rs": "fn main() {}\n"},
        manifest=manifest,
    )

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert descriptor.entry_file_path.name == "extra.rs"


def test_declared_bin_entries_and_autobins(tmp_path: Path) -> None:
    # --- setup ---
    manifest = make_manifest(extra='[[bin]]\nname = "cli"\npath = "tools/cli.rs"')
    manifest = manifest.replace(
        'edition = "2021"\n', 'edition = "2021"\nautobins = false\n'
    )
    root = make_crate(
        tmp_path,
        {"src/main.rs": "fn main() {}\n", "tools/cli.rs": "fn main() {}\n"},
        manifest=manifest,
    )

    # --- execute ---
    descriptor = mod_project.load_project_descriptor(root)

    # --- verify ---
    assert list(descriptor.binary_entry_paths) == ["cli"]
    assert descriptor.entry_file_path == root.resolve() / "tools" / "cli.rs"


def test_unknown_binary_is_rejected(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {"src/main.rs": "fn main() {}\n"})

    # --- execute / verify ---
    with pytest.raises(mod_errors.ConfigurationError, match="available: demo"):
        mod_project.load_project_descriptor(root, "nope")


def test_crate_without_targets_is_rejected(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {"README.md": "hi\n"})

    # --- execute / verify ---
    with pytest.raises(mod_errors.ConfigurationError, match="neither"):
        mod_project.load_project_descriptor(root)


def test_missing_manifest_is_a_configuration_error(tmp_path: Path) -> None:
    # --- execute / verify ---
    with pytest.raises(mod_errors.ConfigurationError, match="No Cargo.toml"):
        mod_project.load_project_descriptor(tmp_path)


def test_workspace_manifest_is_rejected(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {}, manifest='[workspace]\nmembers = ["a"]\n')

    # --- execute / verify ---
    with pytest.raises(mod_errors.ConfigurationError, match="no \\[package\\] name"):
        mod_project.load_project_descriptor(root)


def test_invalid_toml_is_a_configuration_error(tmp_path: Path) -> None:
    # --- setup ---
    root = make_crate(tmp_path, {}, manifest="[package\nname = \n")

    # --- execute / verify ---
    with pytest.raises(mod_errors.ConfigurationError, match="Could not parse"):
        mod_project.load_project_descriptor(root)
