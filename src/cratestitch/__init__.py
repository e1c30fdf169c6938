# src/cratestitch/__init__.py

"""CrateStitch: bundle a multi-file Rust crate into a single source file.

Full developer API
==================
This package re-exports the public symbols of its submodules, making it
suitable for programmatic use, custom integrations, or editor plugins.
Anything prefixed with "_" is considered internal and may change.

Highlights:
    - main()              → CLI entrypoint
    - bundle()            → Run the whole pipeline for one crate
    - parse() / render()  → Source text ↔ item tree
    - compress()          → Whitespace compression with an integrity check
    - watch_for_changes() → Debounced re-bundling
"""

from .actions import get_metadata, watch_for_changes, write_output
from .cli import main
from .config import (
    load_stitch_config,
    parse_minify_level,
    resolve_compression_config,
    resolve_watch_config,
)
from .config_types import (
    CompressionConfig,
    MinifyLevel,
    ProjectDescriptor,
    StitchConfig,
    WatchConfig,
)
from .constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_ENV_DEBOUNCE_MS,
    DEFAULT_ENV_LOG_LEVEL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SRC_DIR,
)
from .errors import (
    AmbiguousCandidates,
    BundleError,
    ConfigurationError,
    CyclicDeclaration,
    DuplicateModule,
    FileNotFound,
    MinificationIntegrityError,
    ParseError,
    ResolutionError,
    TransformationWarning,
    UnresolvedReferenceWarning,
)
from .lexer import Token, TokenKind, tokenize
from .logs import getAppLogger
from .meta import (
    PROGRAM_DISPLAY,
    PROGRAM_ENV,
    PROGRAM_PACKAGE,
    PROGRAM_SCRIPT,
    Metadata,
)
from .minify import compress
from .parser import parse
from .pipeline import BundleResult, bundle
from .project import load_project_descriptor
from .renderer import render
from .resolver import (
    FilesystemSource,
    MemorySource,
    ModuleArena,
    ResolveResult,
    SourceReader,
    inline_library,
    resolve,
)
from .syntax import Attribute, Item, ItemKind, ModulePath, SyntaxTree
from .transformer import strip_docs, strip_test_cfg, strip_tests, transform
from .watch import (
    CancellationToken,
    InlineRunner,
    ThreadRunner,
    VirtualClock,
    WatchSession,
    WatchState,
)


__all__ = [  # noqa: RUF022
    # actions
    "get_metadata",
    "watch_for_changes",
    "write_output",
    # cli
    "main",
    # config
    "load_stitch_config",
    "parse_minify_level",
    "resolve_compression_config",
    "resolve_watch_config",
    # config_types
    "CompressionConfig",
    "MinifyLevel",
    "ProjectDescriptor",
    "StitchConfig",
    "WatchConfig",
    # constants
    "DEFAULT_DEBOUNCE_MS",
    "DEFAULT_ENV_DEBOUNCE_MS",
    "DEFAULT_ENV_LOG_LEVEL",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_SRC_DIR",
    # errors
    "AmbiguousCandidates",
    "BundleError",
    "ConfigurationError",
    "CyclicDeclaration",
    "DuplicateModule",
    "FileNotFound",
    "MinificationIntegrityError",
    "ParseError",
    "ResolutionError",
    "TransformationWarning",
    "UnresolvedReferenceWarning",
    # lexer
    "Token",
    "TokenKind",
    "tokenize",
    # logs
    "getAppLogger",
    # meta
    "Metadata",
    "PROGRAM_DISPLAY",
    "PROGRAM_ENV",
    "PROGRAM_PACKAGE",
    "PROGRAM_SCRIPT",
    # minify
    "compress",
    # parser
    "parse",
    # pipeline
    "BundleResult",
    "bundle",
    # project
    "load_project_descriptor",
    # renderer
    "render",
    # resolver
    "FilesystemSource",
    "MemorySource",
    "ModuleArena",
    "ResolveResult",
    "SourceReader",
    "inline_library",
    "resolve",
    # syntax
    "Attribute",
    "Item",
    "ItemKind",
    "ModulePath",
    "SyntaxTree",
    # transformer
    "strip_docs",
    "strip_test_cfg",
    "strip_tests",
    "transform",
    # watch
    "CancellationToken",
    "InlineRunner",
    "ThreadRunner",
    "VirtualClock",
    "WatchSession",
    "WatchState",
]
