# src/cratestitch/config_types.py


from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypedDict

from typing_extensions import NotRequired

from .constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_EXPAND_MODULES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STRIP_DOCS,
    DEFAULT_STRIP_TESTS,
)


class MinifyLevel(Enum):
    NONE = "none"
    SINGLE_LINE = "single-line"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class CompressionConfig:
    """Options for one bundle run; built once and never mutated."""

    strip_tests: bool = DEFAULT_STRIP_TESTS
    strip_docs: bool = DEFAULT_STRIP_DOCS
    expand_modules: bool = DEFAULT_EXPAND_MODULES
    minify_level: MinifyLevel = MinifyLevel.NONE


@dataclass(frozen=True)
class WatchConfig:
    watch_dir: Path
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds between scans

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@dataclass(frozen=True)
class ProjectDescriptor:
    project_root: Path
    crate_display_name: str  # package name as written in Cargo.toml
    entry_file_path: Path
    crate_name: str | None = None  # library crate identifier, if any
    library_entry_path: Path | None = None
    binary_entry_paths: dict[str, Path] = field(default_factory=dict)

    @property
    def has_library_target(self) -> bool:
        return self.library_entry_path is not None

    @property
    def has_binary_target(self) -> bool:
        return bool(self.binary_entry_paths)

    @property
    def entry_is_binary(self) -> bool:
        return self.entry_file_path != self.library_entry_path


class StitchConfig(TypedDict):
    """Raw `[package.metadata.cratestitch]` table."""

    strip_tests: NotRequired[bool]
    strip_docs: NotRequired[bool]
    expand_modules: NotRequired[bool]
    minify: NotRequired[str]  # "none" | "single-line" | "aggressive"
    bin: NotRequired[str]  # binary target to bundle when the crate has several
    debounce_ms: NotRequired[int]
    src_dir: NotRequired[str]  # watch directory, relative to the project root
    out: NotRequired[str]  # default output file, relative to the project root
