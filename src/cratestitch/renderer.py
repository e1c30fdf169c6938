# src/cratestitch/renderer.py
"""Canonical text for a `SyntaxTree`.

Layout rules are derived from tokens alone, so parsing the output and
rendering it again yields the same text:

- attributes and doc comments each get their own line;
- brace groups that hold statements, nested braces or doc comments are broken
  over lines with four-space indentation, small flat ones stay inline;
- intra-line spaces follow the source, except where the rules below force
  or forbid one, and two tokens are never written so that they would re-lex
  as something else.
"""

from __future__ import annotations

from .lexer import Token, TokenKind, fuses
from .logs import getAppLogger
from .syntax import Attribute, Item, ItemKind, SyntaxTree


INDENT = "    "
# flat brace groups up to this many tokens stay on one line
INLINE_BRACE_LIMIT = 16

_NO_SPACE_AFTER = frozenset({"(", "[", ".", "::", "#"})
_NO_SPACE_BEFORE = frozenset({")", "]", ",", ";", ".", "?"})
# `}` followed by one of these stays on the same line
_JOIN_AFTER_BRACE = frozenset({";", ",", ")", ".", "?", "else"})
_IMPORT_KINDS = frozenset({ItemKind.IMPORT, ItemKind.EXTERN_CRATE})


def _brace_layout(tokens: list[Token]) -> dict[int, bool]:
    """Map each `{` index to True when its group is rendered inline."""
    inline: dict[int, bool] = {}
    stack: list[tuple[int, bool]] = []  # (index, still flat)
    for i, tok in enumerate(tokens):
        if tok.kind is TokenKind.OPEN:
            if stack and tok.text == "{":
                # a nested brace makes every enclosing brace group multi-line
                stack = [(idx, False) for idx, _ in stack]
            stack.append((i, True))
        elif tok.kind is TokenKind.CLOSE:
            start, flat = stack.pop()
            if tokens[start].text == "{":
                inline[start] = flat and (i - start - 1) <= INLINE_BRACE_LIMIT
        elif tok.kind is TokenKind.DOC or tok.is_(";"):
            stack = [(idx, False) for idx, _ in stack]
    return inline


def _needs_space(prev: Token, tok: Token, *, prev_inline_open: bool) -> bool:
    if prev.kind is TokenKind.DOC or tok.kind is TokenKind.DOC:
        return False
    if fuses(prev.text, tok.text):
        return True
    if prev.kind is not TokenKind.LITERAL and prev.text in _NO_SPACE_AFTER:
        return False
    if tok.kind is not TokenKind.LITERAL and tok.text in _NO_SPACE_BEFORE:
        return False
    if prev.is_("{") and prev_inline_open:
        return not tok.is_("}")
    if tok.is_("{") or tok.is_("}"):
        return True
    return tok.space_before


class _Writer:
    def __init__(self, depth: int) -> None:
        self.depth = depth
        self.lines: list[str] = []
        self.current: list[str] = []

    def newline(self) -> None:
        if self.current:
            self.lines.append(INDENT * self.depth + "".join(self.current))
            self.current = []

    def write(self, text: str, *, space: bool) -> None:
        if self.current and space:
            self.current.append(" ")
        self.current.append(text)

    def finish(self) -> list[str]:
        self.newline()
        return self.lines


def format_tokens(tokens: list[Token], depth: int = 0) -> list[str]:
    """Lay out a token run as indented lines."""
    inline = _brace_layout(tokens)
    writer = _Writer(depth)
    # one entry per enclosing delimiter: True for a multi-line brace group
    open_stack: list[bool] = []
    prev: Token | None = None
    prev_inline_open = False

    def breaks_here() -> bool:
        return not open_stack or open_stack[-1]

    for i, tok in enumerate(tokens):
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None

        if tok.kind is TokenKind.CLOSE and open_stack.pop() and tok.is_("}"):
            writer.newline()
            writer.depth -= 1
        if tok.kind is TokenKind.DOC:
            writer.newline()

        space = prev is not None and _needs_space(
            prev, tok, prev_inline_open=prev_inline_open
        )
        writer.write(tok.text, space=space)
        prev_inline_open = False

        if tok.kind is TokenKind.OPEN:
            multi = tok.is_("{") and not inline.get(i, True)
            open_stack.append(multi)
            if multi:
                writer.newline()
                writer.depth += 1
            else:
                prev_inline_open = tok.is_("{")
        elif tok.kind is TokenKind.DOC:
            writer.newline()
        elif nxt is None:
            pass
        elif tok.is_(";") or tok.is_(","):
            if breaks_here() and not (tok.is_(",") and not open_stack):
                writer.newline()
        elif tok.is_("}") and not (
            nxt.text in _JOIN_AFTER_BRACE and nxt.kind is not TokenKind.LITERAL
        ):
            if breaks_here():
                writer.newline()
        prev = tok

    return writer.finish()


def _attribute_lines(attrs: list[Attribute], depth: int) -> list[str]:
    lines: list[str] = []
    for attr in attrs:
        lines.extend(format_tokens(attr.tokens, depth))
    return lines


def _item_lines(item: Item, depth: int) -> list[str]:
    lines = _attribute_lines(item.attrs, depth)
    head = [*item.visibility, *item.tokens]
    if item.kind is not ItemKind.MODULE:
        lines.extend(format_tokens(head, depth))
        return lines

    header = format_tokens(head, depth)
    if item.body is None:
        header[-1] += ";"
        lines.extend(header)
        return lines
    body = _tree_lines(item.body, depth + 1)
    if not body:
        header[-1] += " {}"
        lines.extend(header)
        return lines
    header[-1] += " {"
    lines.extend(header)
    lines.extend(body)
    lines.append(INDENT * depth + "}")
    return lines


def _tree_lines(tree: SyntaxTree, depth: int) -> list[str]:
    lines = _attribute_lines(tree.inner_attrs, depth)
    previous: Item | None = None
    for item in tree.items:
        separate = previous is not None and not (
            previous.kind in _IMPORT_KINDS and item.kind in _IMPORT_KINDS
        )
        if lines and (separate or (previous is None and tree.inner_attrs)):
            lines.append("")
        lines.extend(_item_lines(item, depth))
        previous = item
    return lines


def render(tree: SyntaxTree) -> str:
    """Render `tree` as formatted Rust source ending in a newline."""
    lines = _tree_lines(tree, 0)
    text = "\n".join(lines) + "\n" if lines else ""
    getAppLogger().debug("Rendered %d line(s)", len(lines))
    return text
