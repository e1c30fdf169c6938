# src/cratestitch/syntax.py
"""Syntax tree data model shared by every pipeline stage."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .lexer import Token, TokenKind


class ItemKind(Enum):
    FUNCTION = "fn"
    TYPE = "type"  # struct / enum / union / type alias
    TRAIT = "trait"
    IMPL = "impl"
    MODULE = "mod"
    IMPORT = "use"
    EXTERN_CRATE = "extern crate"
    CONST = "const"  # const / static
    MACRO = "macro"  # invocation or macro_rules! definition
    OTHER = "other"


@dataclass(frozen=True)
class Location:
    path: Path | None
    line: int
    column: int

    def __str__(self) -> str:
        where = str(self.path) if self.path else "<input>"
        return f"{where}:{self.line}:{self.column}"


@dataclass(frozen=True)
class ModulePath:
    """`crate::a::b` style path from the crate root to a module."""

    segments: tuple[str, ...] = ("crate",)

    def child(self, name: str) -> ModulePath:
        return ModulePath((*self.segments, name))

    @property
    def name(self) -> str:
        return self.segments[-1]

    def __str__(self) -> str:
        return "::".join(self.segments)


ROOT_MODULE = ModulePath()


@dataclass
class Attribute:
    """One attribute or doc comment, kept as its raw tokens."""

    tokens: list[Token]
    inner: bool = False

    @property
    def is_doc_comment(self) -> bool:
        return len(self.tokens) == 1 and self.tokens[0].kind is TokenKind.DOC

    @property
    def _content(self) -> list[Token]:
        # drop `#`, optional `!`, `[` ... `]`
        start = 3 if self.inner else 2
        return self.tokens[start:-1]

    @property
    def name(self) -> str:
        """Attribute path such as `derive`, `cfg` or `tokio::test`."""
        if self.is_doc_comment:
            return "doc"
        parts: list[str] = []
        for tok in self._content:
            if tok.kind is TokenKind.IDENT or tok.is_("::"):
                parts.append(tok.text)
            else:
                break
        return "".join(parts)

    @property
    def args(self) -> list[Token]:
        """Tokens following the attribute path (`(test)`, `= "..."`, ...)."""
        if self.is_doc_comment:
            return []
        content = self._content
        index = 0
        while index < len(content) and (
            content[index].kind is TokenKind.IDENT or content[index].is_("::")
        ):
            index += 1
        return content[index:]

    @property
    def is_doc(self) -> bool:
        """Documentation comment or `#[doc = ...]`; `#[doc(hidden)]` is not."""
        if self.is_doc_comment:
            return True
        args = self.args
        return self.name == "doc" and bool(args) and args[0].is_("=")

    @property
    def location(self) -> tuple[int, int]:
        first = self.tokens[0]
        return first.line, first.column


@dataclass
class Item:
    kind: ItemKind
    tokens: list[Token]
    location: Location
    name: str | None = None
    attrs: list[Attribute] = field(default_factory=list)
    visibility: list[Token] = field(default_factory=list)
    # modules only: inline body (None while the body lives in another file)
    body: SyntaxTree | None = None
    # modules only: file the body was read from after resolution
    source_path: Path | None = None

    @property
    def is_module_declaration(self) -> bool:
        return self.kind is ItemKind.MODULE and self.body is None

    def describe(self) -> str:
        return f"{self.kind.value}:{self.name}" if self.name else self.kind.value


@dataclass
class SyntaxTree:
    """Ordered items of a file or module body, plus its inner attributes."""

    items: list[Item] = field(default_factory=list)
    inner_attrs: list[Attribute] = field(default_factory=list)
    path: Path | None = None

    def walk(
        self,
        module_path: ModulePath = ROOT_MODULE,
    ) -> Iterator[tuple[ModulePath, Item]]:
        """Yield `(enclosing module path, item)` pairs in pre-order."""
        for item in self.items:
            yield module_path, item
            if item.kind is ItemKind.MODULE and item.body is not None:
                yield from item.body.walk(module_path.child(item.name or "_"))

    def copy(self) -> SyntaxTree:
        return copy.deepcopy(self)


def item_kinds(tree: SyntaxTree) -> list[str]:
    """Pre-order `kind:name` sequence; the structural fingerprint of a tree."""
    return [item.describe() for _, item in tree.walk()]
