# src/cratestitch/resolver.py
"""Module resolution: turn `mod foo;` declarations into inline module bodies.

Also home of `inline_library`, which splices a crate's library target into its
binary target and rewrites `<lib>::` paths so the result is self-contained.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Protocol

from .constants import MODULE_INDEX_FILE, SOURCE_SUFFIX
from .errors import (
    AmbiguousCandidates,
    CyclicDeclaration,
    DuplicateModule,
    FileNotFound,
    TransformationWarning,
    UnresolvedReferenceWarning,
)
from .lexer import KEYWORDS, Token, TokenKind
from .logs import getAppLogger
from .parser import parse
from .syntax import ROOT_MODULE, Attribute, Item, ItemKind, ModulePath, SyntaxTree


def normalize_path(path: Path) -> Path:
    """Collapse `.` and `..` segments without touching the filesystem."""
    return Path(os.path.normpath(path))


# --------------------------------------------------------------------------- #
# source readers
# --------------------------------------------------------------------------- #


class SourceReader(Protocol):
    """Where module files come from."""

    def exists(self, path: Path) -> bool: ...

    def read(self, path: Path) -> str: ...


class FilesystemSource:
    """Read module files from disk as UTF-8."""

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")


class MemorySource:
    """In-memory file map, mainly for tests and editor integrations."""

    def __init__(self, files: Mapping[str | Path, str]) -> None:
        self.files = {normalize_path(Path(k)): v for k, v in files.items()}

    def exists(self, path: Path) -> bool:
        return normalize_path(path) in self.files

    def read(self, path: Path) -> str:
        try:
            return self.files[normalize_path(path)]
        except KeyError:
            xmsg = f"No such file: {path}"
            raise FileNotFoundError(xmsg) from None


# --------------------------------------------------------------------------- #
# module arena
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class ModuleRecord:
    path: ModulePath
    source_path: Path | None  # None for inline `mod foo { }` bodies
    base_dir: Path


class ModuleArena:
    """Every module of a resolved crate, keyed by its `ModulePath`."""

    def __init__(self) -> None:
        self._records: dict[ModulePath, ModuleRecord] = {}

    def add(self, record: ModuleRecord) -> None:
        if record.path in self._records:
            raise DuplicateModule(str(record.path))
        self._records[record.path] = record

    def get(self, path: ModulePath) -> ModuleRecord | None:
        return self._records.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    @property
    def source_files(self) -> list[Path]:
        return [r.source_path for r in self if r.source_path is not None]


@dataclass
class ResolveResult:
    tree: SyntaxTree
    warnings: list[TransformationWarning] = field(default_factory=list)
    arena: ModuleArena = field(default_factory=ModuleArena)


# --------------------------------------------------------------------------- #
# resolution
# --------------------------------------------------------------------------- #


def _path_attribute(item: Item) -> tuple[Attribute, str] | None:
    """Return the `#[path = "..."]` attribute of a module, if any."""
    for attr in item.attrs:
        args = attr.args
        if (
            attr.name == "path"
            and len(args) == 2  # noqa: PLR2004
            and args[0].is_("=")
            and args[1].kind is TokenKind.LITERAL
            and args[1].text.startswith('"')
        ):
            return attr, args[1].text[1:-1]
    return None


def module_candidates(base_dir: Path, name: str) -> list[Path]:
    """Files that may hold module `name` declared under `base_dir`, in order."""
    stem = name.removeprefix("r#")  # `mod r#type;` lives in `type.rs`
    return [
        base_dir / f"{stem}{SOURCE_SUFFIX}",
        base_dir / stem / MODULE_INDEX_FILE,
    ]


def _locate(
    item: Item,
    base_dir: Path,
    path_dir: Path,
    module_path: ModulePath,
    source: SourceReader,
) -> tuple[Path, Path]:
    """Return `(file, base directory for its submodules)`.

    `#[path]` values are relative to `path_dir`: the directory of the declaring
    file, or the module directory when declared inside an inline module.
    """
    name = item.name or ""
    explicit = _path_attribute(item)
    if explicit is not None:
        attr, value = explicit
        target = normalize_path(path_dir / value)
        if not source.exists(target):
            raise FileNotFound(str(module_path), [target])
        item.attrs.remove(attr)
        return target, target.parent

    candidates = [normalize_path(c) for c in module_candidates(base_dir, name)]
    found = [c for c in candidates if source.exists(c)]
    if not found:
        raise FileNotFound(str(module_path), candidates)
    if len(found) > 1:
        raise AmbiguousCandidates(str(module_path), found)
    return found[0], normalize_path(base_dir / name.removeprefix("r#"))


def _resolve_body(  # noqa: PLR0913
    tree: SyntaxTree,
    base_dir: Path,
    path_dir: Path,
    module_path: ModulePath,
    stack: tuple[Path, ...],
    source: SourceReader,
    arena: ModuleArena,
) -> None:
    logger = getAppLogger()
    for item in tree.items:
        if item.kind is not ItemKind.MODULE or item.name is None:
            continue
        child_path = module_path.child(item.name)

        if item.body is not None:
            # inline `mod foo { ... }`: nested declarations live under B/foo/
            child_base = normalize_path(base_dir / item.name.removeprefix("r#"))
            arena.add(ModuleRecord(child_path, None, child_base))
            _resolve_body(
                item.body, child_base, child_base, child_path, stack, source, arena
            )
            continue

        file_path, child_base = _locate(item, base_dir, path_dir, child_path, source)
        if file_path in stack:
            raise CyclicDeclaration(str(child_path), [*stack, file_path])

        logger.trace("[RESOLVE] %s -> %s", child_path, file_path)
        body = parse(source.read(file_path), file_path)
        item.body = body
        item.source_path = file_path
        arena.add(ModuleRecord(child_path, file_path, child_base))
        _resolve_body(
            body,
            child_base,
            file_path.parent,
            child_path,
            (*stack, file_path),
            source,
            arena,
        )


def resolve(
    tree: SyntaxTree,
    base_dir: Path | str,
    *,
    crate_name: str | None = None,
    source: SourceReader | None = None,
    root_path: Path | str | None = None,
) -> ResolveResult:
    """Inline every `mod foo;` declaration reachable from `tree`.

    Modules are visited depth-first in declaration order, so the same input
    always yields the same tree. `root_path` is the file `tree` was parsed
    from; it seeds the cycle-detection stack.

    Raises:
        FileNotFound: no candidate file exists for a declaration.
        AmbiguousCandidates: both `foo.rs` and `foo/mod.rs` exist.
        CyclicDeclaration: a file declares (transitively) a file already open.
        DuplicateModule: the same module path is reached twice.
        ParseError: a module file does not parse.
    """
    logger = getAppLogger()
    source = source or FilesystemSource()
    base = normalize_path(Path(base_dir))
    root = root_path if root_path is not None else tree.path
    stack = (normalize_path(Path(root)),) if root is not None else ()

    arena = ModuleArena()
    arena.add(ModuleRecord(ROOT_MODULE, stack[0] if stack else None, base))
    path_dir = stack[0].parent if stack else base
    _resolve_body(tree, base, path_dir, ROOT_MODULE, stack, source, arena)

    logger.debug(
        "Resolved %d module(s) for crate %s",
        len(arena) - 1,
        crate_name or "<anonymous>",
    )
    return ResolveResult(tree=tree, arena=arena)


# --------------------------------------------------------------------------- #
# library inlining
# --------------------------------------------------------------------------- #


# `::` after one of these continues a path (`crate::x`, `Vec::<T>::new`)
_PATH_KEYWORDS = frozenset({"crate", "self", "super", "Self"})


def _continues_path(prev: Token) -> bool:
    if prev.kind is TokenKind.IDENT:
        return prev.text not in KEYWORDS or prev.text in _PATH_KEYWORDS
    return prev.is_(">")


def _library_path_at(tokens: list[Token], index: int, crate_name: str) -> int | None:
    """Start index of a `<crate_name>::...` path whose crate segment is at `index`.

    A leading `::` (`::lib::x`) belongs to the path, so the start may be
    `index - 1`. Returns None when `tokens[index]` is not such a segment.
    """
    if not (
        tokens[index].is_(crate_name)
        and index + 1 < len(tokens)
        and tokens[index + 1].is_("::")
    ):
        return None
    if index == 0:
        return index
    prev = tokens[index - 1]
    if prev.is_("."):
        return None
    if not prev.is_("::"):
        return index
    if index >= 2 and _continues_path(tokens[index - 2]):  # noqa: PLR2004
        return None
    return index - 1


def _first_use_segment(item: Item) -> str | None:
    """First path segment of a `use` item (`use ::a::b` gives `a`)."""
    tokens = item.tokens[1:]
    if tokens and tokens[0].is_("::"):
        tokens = tokens[1:]
    if tokens and tokens[0].kind is TokenKind.IDENT:
        return tokens[0].text
    return None


def _use_leaf_names(tokens: list[Token]) -> tuple[list[str], bool]:
    """Names a `use` item binds, and whether it is a glob import."""
    names: list[str] = []
    glob = False
    terminators = (",", "}", ";")
    for i, tok in enumerate(tokens):
        if tok.is_("*"):
            glob = True
        elif tok.kind is TokenKind.IDENT and tok.text not in ("use", "as", "self"):
            nxt = tokens[i + 1] if i + 1 < len(tokens) else None
            if nxt is None or nxt.text in terminators:
                names.append(tok.text)
    return names, glob


def library_root_names(library: SyntaxTree) -> tuple[set[str], bool]:
    """Names visible at the root of `library`, and whether a glob hides some."""
    names: set[str] = set()
    glob = False
    for item in library.items:
        if item.kind is ItemKind.IMPORT:
            leaves, is_glob = _use_leaf_names(item.tokens)
            names.update(leaves)
            glob = glob or is_glob
        elif item.kind is ItemKind.MACRO:
            if item.tokens and item.tokens[0].is_("macro_rules") and item.name:
                names.add(item.name)
        elif item.name is not None and item.kind is not ItemKind.IMPL:
            names.add(item.name)
    return names, glob


def references_library(tree: SyntaxTree, crate_name: str) -> bool:
    """True when any item of `tree` refers to the crate `crate_name`."""
    for _, item in tree.walk():
        if item.kind is ItemKind.EXTERN_CRATE and item.name == crate_name:
            return True
        if item.kind is ItemKind.MODULE:
            continue
        tokens = item.tokens
        if any(
            _library_path_at(tokens, i, crate_name) is not None
            for i in range(len(tokens))
        ):
            return True
    return False


def _is_root_name_import(item: Item, crate_name: str) -> bool:
    """`use lib::Name;`, `use lib::{...};` or `use lib::*;` at the crate root."""
    tokens = item.tokens[1:]
    if tokens and tokens[0].is_("::"):
        tokens = tokens[1:]
    if len(tokens) < 3:  # noqa: PLR2004
        return False
    if not (tokens[0].is_(crate_name) and tokens[1].is_("::")):
        return False
    rest = tokens[2:]
    if rest[0].is_("*") or rest[0].is_("{"):
        return True
    return rest[0].kind is TokenKind.IDENT and len(rest) > 1 and rest[1].is_(";")


class _PathRewriter:
    def __init__(self, crate_name: str, root_names: set[str], glob: bool) -> None:
        self.crate_name = crate_name
        self.root_names = root_names
        self.glob = glob
        self.warnings: list[TransformationWarning] = []

    def rewrite(self, item: Item) -> None:
        tokens = item.tokens
        out: list[Token] = []
        for i, tok in enumerate(tokens):
            start = _library_path_at(tokens, i, self.crate_name)
            if start is None:
                out.append(tok)
                continue
            if start < i:
                out.pop()  # leading `::`
            lead = tokens[start]
            out.append(replace(tok, text="crate", space_before=lead.space_before))
            segment = tokens[i + 2] if i + 2 < len(tokens) else None
            self.check(item, tok, segment)
        item.tokens = out
        if item.kind is ItemKind.IMPORT:
            # same form the parser gives: the path between `use` and `;`
            item.name = "".join(t.text for t in out[1:-1])

    def check(self, item: Item, tok: Token, segment: Token | None) -> None:
        if self.glob or segment is None or segment.kind is not TokenKind.IDENT:
            return
        if segment.text in self.root_names:
            return
        reference = f"{self.crate_name}::{segment.text}"
        self.warnings.append(
            UnresolvedReferenceWarning(
                f"`{reference}` does not name a root item of the inlined library",
                item.location.path,
                tok.line,
                reference=reference,
            )
        )


def _rewrite_tree(
    tree: SyntaxTree,
    rewriter: _PathRewriter,
    *,
    at_root: bool,
) -> None:
    crate_name = rewriter.crate_name
    kept: list[Item] = []
    for item in tree.items:
        if item.kind is ItemKind.EXTERN_CRATE and item.name == crate_name:
            continue
        if (
            at_root
            and item.kind is ItemKind.IMPORT
            and _is_root_name_import(item, crate_name)
        ):
            # the imported names already live at the bundle root
            continue
        if item.kind is ItemKind.MODULE:
            if item.body is not None:
                _rewrite_tree(item.body, rewriter, at_root=False)
        else:
            rewriter.rewrite(item)
        kept.append(item)
    tree.items = kept


def _splice_index(tree: SyntaxTree, crate_name: str) -> int:
    for index, item in enumerate(tree.items):
        if item.kind is ItemKind.EXTERN_CRATE and item.name == crate_name:
            return index
        if item.kind is ItemKind.IMPORT and _first_use_segment(item) == crate_name:
            return index
    return 0


def _attr_key(attr: Attribute) -> tuple[str, ...]:
    return tuple(t.text for t in attr.tokens)


def inline_library(
    tree: SyntaxTree,
    library: SyntaxTree,
    crate_name: str,
) -> tuple[SyntaxTree, list[TransformationWarning]]:
    """Splice the resolved `library` tree into the binary `tree`.

    Items of the library land at the position of the first root-level
    `extern crate <lib>;` or `use <lib>...;` (or at the top). References to
    `<lib>::` are rewritten to `crate::`; references to names the library root
    does not define produce `UnresolvedReferenceWarning`s.

    Raises:
        DuplicateModule: binary and library both define the same root module.
    """
    logger = getAppLogger()
    bin_modules = {i.name for i in tree.items if i.kind is ItemKind.MODULE}
    for item in library.items:
        if item.kind is ItemKind.MODULE and item.name in bin_modules:
            raise DuplicateModule(str(ROOT_MODULE.child(item.name or "")))

    root_names, glob = library_root_names(library)
    rewriter = _PathRewriter(crate_name, root_names, glob)

    index = _splice_index(tree, crate_name)
    _rewrite_tree(tree, rewriter, at_root=True)
    # deletions above may only shift items that came after the splice point
    index = min(index, len(tree.items))
    tree.items[index:index] = library.items

    seen = {_attr_key(a) for a in tree.inner_attrs}
    for attr in library.inner_attrs:
        key = _attr_key(attr)
        if key not in seen:
            seen.add(key)
            tree.inner_attrs.append(attr)

    count = logger.bundleWarnings(rewriter.warnings)
    logger.debug(
        "Inlined library %s: %d root item(s), %d warning(s)",
        crate_name,
        len(library.items),
        count,
    )
    return tree, rewriter.warnings
