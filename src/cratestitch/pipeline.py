# src/cratestitch/pipeline.py
"""The bundling pipeline: parse → resolve → inline library → transform →
render → compress."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config_types import CompressionConfig, ProjectDescriptor
from .errors import TransformationWarning
from .logs import getAppLogger
from .minify import compress
from .parser import parse
from .project import load_project_descriptor
from .renderer import render
from .resolver import (
    FilesystemSource,
    SourceReader,
    inline_library,
    references_library,
    resolve,
)
from .syntax import SyntaxTree
from .transformer import transform


@dataclass
class BundleResult:
    text: str
    warnings: list[TransformationWarning]
    descriptor: ProjectDescriptor
    # every file read while building `text`, entry first
    source_files: list[Path] = field(default_factory=list)


def _load_tree(
    path: Path,
    config: CompressionConfig,
    source: SourceReader,
    crate_name: str | None,
    files: list[Path],
) -> SyntaxTree:
    tree = parse(source.read(path), path)
    files.append(path)
    if config.expand_modules:
        result = resolve(
            tree, path.parent, crate_name=crate_name, source=source, root_path=path
        )
        files.extend(result.arena.source_files[1:])
        tree = result.tree
    return tree


def bundle(
    project_root: Path | str,
    config: CompressionConfig | None = None,
    *,
    binary: str | None = None,
    source: SourceReader | None = None,
    descriptor: ProjectDescriptor | None = None,
) -> BundleResult:
    """Bundle the crate at `project_root` into a single source text.

    `descriptor` skips reading `Cargo.toml`; `source` replaces the filesystem
    (both mostly for tests). Warnings are returned, never raised.

    Raises:
        BundleError: any fatal configuration, parse, resolution or
            minification problem.
    """
    logger = getAppLogger()
    config = config or CompressionConfig()
    source = source or FilesystemSource()
    if descriptor is None:
        descriptor = load_project_descriptor(project_root, binary)

    files: list[Path] = []
    warnings: list[TransformationWarning] = []
    entry = descriptor.entry_file_path
    logger.debug("Bundling %s from %s", descriptor.crate_display_name, entry)
    tree = _load_tree(entry, config, source, descriptor.crate_name, files)

    crate_name = descriptor.crate_name
    library_path = descriptor.library_entry_path
    if (
        config.expand_modules
        and descriptor.entry_is_binary
        and crate_name is not None
        and library_path is not None
        and references_library(tree, crate_name)
    ):
        library = _load_tree(library_path, config, source, crate_name, files)
        tree, library_warnings = inline_library(tree, library, crate_name)
        warnings.extend(library_warnings)

    tree = transform(tree, config)
    text = compress(render(tree), config.minify_level)

    logger.debug(
        "Bundled %d file(s) into %d characters with %d warning(s)",
        len(files),
        len(text),
        len(warnings),
    )
    return BundleResult(
        text=text, warnings=warnings, descriptor=descriptor, source_files=files
    )
