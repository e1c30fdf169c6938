# src/cratestitch/transformer.py
"""Tree passes that prune tests, test-only configuration and documentation.

Passes run in a fixed order:

1. `strip_tests` (optional): items marked `#[test]`, `#[bench]` or any
   `#[path::test]` style harness attribute.
2. `strip_test_cfg` (always): items whose `#[cfg(...)]` is definitely false
   in a non-test build.
3. `strip_docs` (optional): documentation attributes and doc comments,
   including those inside item bodies.
"""

from __future__ import annotations

from collections.abc import Callable

from .config_types import CompressionConfig
from .lexer import Token, TokenKind
from .logs import getAppLogger
from .syntax import Attribute, Item, ItemKind, SyntaxTree


TEST_MARKERS = frozenset({"test", "bench"})


# --------------------------------------------------------------------------- #
# cfg predicates
# --------------------------------------------------------------------------- #


def _split_args(tokens: list[Token]) -> list[list[Token]]:
    """Split the inside of a `(...)` group on top-level commas."""
    parts: list[list[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.kind is TokenKind.OPEN:
            depth += 1
        elif tok.kind is TokenKind.CLOSE:
            depth -= 1
        elif depth == 0 and tok.is_(","):
            parts.append([])
            continue
        parts[-1].append(tok)
    return [p for p in parts if p]


def evaluate_cfg(tokens: list[Token]) -> bool | None:
    """Three-valued evaluation of a cfg predicate in a non-test build.

    `test` is false; every other option is unknown (None). `all`, `any` and
    `not` combine the values the usual Kleene way.
    """
    if not tokens:
        return None
    head = tokens[0]
    if head.kind is not TokenKind.IDENT:
        return None
    if len(tokens) == 1:
        return False if head.text == "test" else None
    if not (tokens[1].is_("(") and tokens[-1].is_(")")):
        # `feature = "x"`, `target_os = "linux"`, ...
        return None

    values = [evaluate_cfg(part) for part in _split_args(tokens[2:-1])]
    if head.text == "all":
        if any(v is False for v in values):
            return False
        return True if all(v is True for v in values) else None
    if head.text == "any":
        if any(v is True for v in values):
            return True
        return False if all(v is False for v in values) else None
    if head.text == "not" and len(values) == 1:
        value = values[0]
        return None if value is None else not value
    return None


def _cfg_value(attrs: list[Attribute]) -> bool | None:
    """Combined value of every `cfg` attribute in `attrs` (they all must hold)."""
    result: bool | None = True
    seen = False
    for attr in attrs:
        if attr.name != "cfg":
            continue
        seen = True
        args = attr.args
        if len(args) < 2 or not args[0].is_("("):  # noqa: PLR2004
            result = None
            continue
        value = evaluate_cfg(args[1:-1])
        if value is False:
            return False
        if value is None:
            result = None
    return result if seen else None


def _has_cfg(attrs: list[Attribute]) -> bool:
    return any(attr.name == "cfg" for attr in attrs)


# --------------------------------------------------------------------------- #
# predicates
# --------------------------------------------------------------------------- #


def is_test_marker(attr: Attribute) -> bool:
    """`#[test]`, `#[bench]`, `#[tokio::test]`, ..."""
    if attr.is_doc_comment or attr.inner:
        return False
    return attr.name.rsplit("::", 1)[-1] in TEST_MARKERS


def _is_test_item(item: Item) -> bool:
    return any(is_test_marker(attr) for attr in item.attrs)


def _is_cfg_disabled(item: Item) -> bool:
    if _cfg_value(item.attrs) is False:
        return True
    # a module file may gate itself with `#![cfg(test)]`
    return (
        item.kind is ItemKind.MODULE
        and item.body is not None
        and not _has_cfg(item.attrs)
        and _cfg_value(item.body.inner_attrs) is False
    )


def _prune(tree: SyntaxTree, should_remove: Callable[[Item], bool]) -> int:
    """Remove matching items recursively; return how many were dropped."""
    removed = 0
    kept: list[Item] = []
    for item in tree.items:
        if should_remove(item):
            removed += 1
            continue
        if item.kind is ItemKind.MODULE and item.body is not None:
            before = len(item.body.items)
            removed += _prune(item.body, should_remove)
            if before and not item.body.items:
                # everything inside was test-only
                removed += 1
                continue
        kept.append(item)
    tree.items = kept
    return removed


# --------------------------------------------------------------------------- #
# passes
# --------------------------------------------------------------------------- #


def strip_tests(tree: SyntaxTree) -> SyntaxTree:
    """Drop test and benchmark functions (and anything else carrying the marker)."""
    removed = _prune(tree, _is_test_item)
    getAppLogger().debug("strip_tests: removed %d item(s)", removed)
    return tree


def strip_test_cfg(tree: SyntaxTree) -> SyntaxTree:
    """Drop items that only exist when compiling tests."""
    removed = _prune(tree, _is_cfg_disabled)
    getAppLogger().debug("strip_test_cfg: removed %d item(s)", removed)
    return tree


def _closing_index(tokens: list[Token], start: int) -> int:
    """Index of the delimiter closing the group opened at `start`."""
    depth = 0
    for cursor in range(start, len(tokens)):
        if tokens[cursor].kind is TokenKind.OPEN:
            depth += 1
        elif tokens[cursor].kind is TokenKind.CLOSE:
            depth -= 1
            if depth == 0:
                return cursor
    return len(tokens) - 1


def _macro_matchers(tokens: list[Token]) -> dict[int, int]:
    """Map each `macro_rules!` matcher group's start index to its end index.

    A matcher describes what the macro accepts, so `#[doc = $d:expr]` inside
    one is syntax rather than documentation.
    """
    if not (len(tokens) > 3 and tokens[0].is_("macro_rules") and tokens[1].is_("!")):
        return {}
    body = next(
        (i for i in range(3, len(tokens)) if tokens[i].kind is TokenKind.OPEN), None
    )
    if body is None:
        return {}
    matchers: dict[int, int] = {}
    end = _closing_index(tokens, body)
    cursor = body + 1
    expect_matcher = True
    while cursor < end:
        tok = tokens[cursor]
        if tok.kind is TokenKind.OPEN:
            close = _closing_index(tokens, cursor)
            if expect_matcher:
                matchers[cursor] = close
            expect_matcher = False
            cursor = close + 1
            continue
        if tok.is_(";"):
            expect_matcher = True
        cursor += 1
    return matchers


def _strip_doc_tokens(tokens: list[Token]) -> list[Token]:
    """Remove doc comments and `#[doc = ...]` attributes from a token run."""
    matchers = _macro_matchers(tokens)
    out: list[Token] = []
    index = 0
    while index < len(tokens):
        tok = tokens[index]
        if index in matchers:
            out.extend(tokens[index : matchers[index] + 1])
            index = matchers[index] + 1
            continue
        if tok.kind is TokenKind.DOC:
            index += 1
            continue
        if tok.is_("#"):
            inner = index + 1 < len(tokens) and tokens[index + 1].is_("!")
            bracket = index + 2 if inner else index + 1
            if (
                bracket + 2 < len(tokens)
                and tokens[bracket].is_("[")
                and tokens[bracket + 1].is_("doc")
                and tokens[bracket + 2].is_("=")
            ):
                index = _closing_index(tokens, bracket) + 1
                continue
        out.append(tok)
        index += 1
    return out


def _strip_docs_in(tree: SyntaxTree) -> int:
    removed = 0
    before = len(tree.inner_attrs)
    tree.inner_attrs = [a for a in tree.inner_attrs if not a.is_doc]
    removed += before - len(tree.inner_attrs)
    for item in tree.items:
        before = len(item.attrs)
        item.attrs = [a for a in item.attrs if not a.is_doc]
        removed += before - len(item.attrs)
        if item.kind is ItemKind.MODULE:
            if item.body is not None:
                removed += _strip_docs_in(item.body)
            continue
        before = len(item.tokens)
        item.tokens = _strip_doc_tokens(item.tokens)
        if len(item.tokens) != before:
            removed += 1
    return removed


def strip_docs(tree: SyntaxTree) -> SyntaxTree:
    """Drop documentation; `#[doc(hidden)]` and other attributes stay."""
    removed = _strip_docs_in(tree)
    getAppLogger().debug("strip_docs: removed %d doc attribute(s)", removed)
    return tree


def transform(tree: SyntaxTree, config: CompressionConfig) -> SyntaxTree:
    """Run the enabled passes over `tree` (mutated in place and returned)."""
    if config.strip_tests:
        tree = strip_tests(tree)
    tree = strip_test_cfg(tree)
    if config.strip_docs:
        tree = strip_docs(tree)
    return tree
