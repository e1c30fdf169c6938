# src/cratestitch/lexer.py
"""Tokenizer for Rust source text.

Produces a flat token list in which every literal keeps its exact source text
(delimiters, escapes and suffix included), regular comments disappear and doc
comments survive as `DOC` tokens. Delimiters are checked for balance so a
malformed file fails here with a precise location.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path

from .errors import ParseError
from .logs import getAppLogger


class TokenKind(Enum):
    IDENT = "ident"
    LIFETIME = "lifetime"
    LITERAL = "literal"
    PUNCT = "punct"
    OPEN = "open"
    CLOSE = "close"
    DOC = "doc"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int = 0
    column: int = 0
    # whitespace or a comment separated this token from the previous one
    space_before: bool = False

    def is_(self, text: str) -> bool:
        return self.text == text and self.kind is not TokenKind.LITERAL

    @property
    def is_word(self) -> bool:
        return self.kind in _WORD_KINDS

    @property
    def is_inner_doc(self) -> bool:
        return self.kind is TokenKind.DOC and self.text[2] == "!"

    @property
    def is_line_doc(self) -> bool:
        return self.kind is TokenKind.DOC and self.text.startswith("//")


_WORD_KINDS = frozenset({TokenKind.IDENT, TokenKind.LIFETIME, TokenKind.LITERAL})

KEYWORDS = frozenset(
    {
        "as", "async", "await", "break", "const", "continue", "crate", "dyn",
        "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
        "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
        "self", "Self", "static", "struct", "super", "trait", "true", "type",
        "unsafe", "use", "where", "while",
    }
)  # fmt: skip

# longest first so that a greedy scan picks the widest operator
PUNCTUATION = (
    "<<=", ">>=", "...", "..=",
    "::", "->", "=>", "==", "!=", "<=", ">=", "&&", "||", "+=", "-=", "*=",
    "/=", "%=", "^=", "&=", "|=", "<<", ">>", "..", "<-",
    "=", "<", ">", "!", "~", "+", "-", "*", "/", "%", "^", "&", "|", "@",
    ".", ",", ";", ":", "#", "$", "?",
)  # fmt: skip

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in OPENERS.items()}


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_continue(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


class _Scanner:
    """Single-use cursor over one source text."""

    def __init__(self, text: str, path: Path | None) -> None:
        self.text = text
        self.path = path
        self.pos = 0
        self.line_starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self.line_starts.append(i + 1)

    # --- positions ---------------------------------------------------------

    def location(self, offset: int) -> tuple[int, int]:
        line = bisect.bisect_right(self.line_starts, offset)
        return line, offset - self.line_starts[line - 1] + 1

    def fail(self, message: str, offset: int) -> ParseError:
        line, column = self.location(offset)
        return ParseError(message, self.path, line, column)

    def peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < len(self.text) else ""

    # --- trivia ------------------------------------------------------------

    def skip_line(self) -> None:
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end < 0 else end

    def skip_block_comment(self) -> None:
        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            if self.text.startswith("/*", self.pos):
                depth += 1
                self.pos += 2
            elif self.text.startswith("*/", self.pos):
                depth -= 1
                self.pos += 2
                if depth == 0:
                    return
            else:
                self.pos += 1
        raise self.fail("unterminated block comment", start)

    # --- literals ----------------------------------------------------------

    def scan_suffix(self) -> None:
        if _is_ident_start(self.peek()):
            while _is_ident_continue(self.peek()):
                self.pos += 1

    def scan_quoted(self, quote: str) -> None:
        """Scan from an opening quote to its closing quote, honoring escapes."""
        start = self.pos
        self.pos += 1
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            self.pos += 1
            if ch == quote:
                self.scan_suffix()
                return
        raise self.fail("unterminated literal", start)

    def scan_raw_string(self) -> None:
        """Scan `r#"..."#` starting at the first `#` or quote."""
        start = self.pos
        hashes = 0
        while self.peek() == "#":
            hashes += 1
            self.pos += 1
        if self.peek() != '"':
            raise self.fail("malformed raw string", start)
        terminator = '"' + "#" * hashes
        end = self.text.find(terminator, self.pos + 1)
        if end < 0:
            raise self.fail("unterminated raw string", start)
        self.pos = end + len(terminator)
        self.scan_suffix()

    def scan_number(self) -> None:
        text = self.text
        if self.peek() == "0" and self.peek(1) in ("x", "o", "b"):
            self.pos += 2
            while _is_ident_continue(self.peek()):
                self.pos += 1
            return
        while self.peek().isdigit() or self.peek() == "_":
            self.pos += 1
        after = self.peek(1)
        if self.peek() == "." and after != "." and not _is_ident_start(after):
            self.pos += 1
            while self.peek().isdigit() or self.peek() == "_":
                self.pos += 1
        if self.peek() in ("e", "E"):
            nxt = self.peek(1)
            if nxt.isdigit() or (nxt in ("+", "-") and self.peek(2).isdigit()):
                self.pos += 2
                while self.pos < len(text) and (
                    text[self.pos].isdigit() or text[self.pos] == "_"
                ):
                    self.pos += 1
        self.scan_suffix()

    def scan_quote(self) -> TokenKind:
        """Disambiguate `'a'` (char) from `'a` (lifetime or label)."""
        start = self.pos
        nxt = self.peek(1)
        if nxt == "\\" or (nxt and self.peek(2) == "'"):
            self.scan_quoted("'")
            return TokenKind.LITERAL
        if _is_ident_start(nxt):
            self.pos += 1
            while _is_ident_continue(self.peek()):
                self.pos += 1
            if self.peek() == "'":
                # multi-char quoted run such as 'ab' is not valid Rust
                xmsg = "character literal may only contain one codepoint"
                raise self.fail(xmsg, start)
            return TokenKind.LIFETIME
        raise self.fail("unexpected quote", start)


def _prefixed_literal(scanner: _Scanner) -> bool:
    """Handle `b"..."`, `b'x'`, `c"..."`, `r"..."`, `br#"..."#` and friends."""
    text, pos = scanner.text, scanner.pos
    ch = text[pos]
    nxt = scanner.peek(1)
    if ch in ("b", "c") and nxt == '"':
        scanner.pos += 1
        scanner.scan_quoted('"')
        return True
    if ch == "b" and nxt == "'":
        scanner.pos += 1
        scanner.scan_quoted("'")
        return True
    if ch in ("b", "c") and nxt == "r" and scanner.peek(2) in ('"', "#"):
        scanner.pos += 2
        scanner.scan_raw_string()
        return True
    if ch == "r" and (nxt == '"' or (nxt == "#" and scanner.peek(2) in ('"', "#"))):
        scanner.pos += 1
        scanner.scan_raw_string()
        return True
    return False


def tokenize(  # noqa: C901, PLR0912, PLR0915
    text: str,
    path: Path | str | None = None,
    *,
    check_balance: bool = True,
) -> list[Token]:
    """Split Rust source into tokens.

    Raises:
        ParseError: on unterminated literals/comments, stray characters or
            unbalanced delimiters.
    """
    logger = getAppLogger()
    src_path = Path(path) if path is not None else None
    text = text.removeprefix("\ufeff")
    scanner = _Scanner(text, src_path)

    # shebang line (but not an inner attribute `#![...]`)
    if text.startswith("#!") and not text[2:].lstrip().startswith("["):
        scanner.skip_line()

    tokens: list[Token] = []
    stack: list[tuple[str, int]] = []
    spaced = False
    length = len(text)

    def push(kind: TokenKind, start: int) -> None:
        nonlocal spaced
        line, column = scanner.location(start)
        tokens.append(Token(kind, text[start : scanner.pos], line, column, spaced))
        spaced = False

    while scanner.pos < length:
        start = scanner.pos
        ch = text[start]

        if ch.isspace():
            scanner.pos += 1
            spaced = True
            continue

        if text.startswith("//", start):
            is_doc = text.startswith("//!", start) or (
                text.startswith("///", start) and not text.startswith("////", start)
            )
            scanner.skip_line()
            if is_doc:
                end = scanner.pos
                while end > start and text[end - 1] == "\r":
                    end -= 1
                line, column = scanner.location(start)
                doc = text[start:end]
                tokens.append(Token(TokenKind.DOC, doc, line, column, spaced))
                spaced = False
            else:
                spaced = True
            continue

        if text.startswith("/*", start):
            third = text[start + 2 : start + 3]
            fourth = text[start + 3 : start + 4]
            is_doc = third == "!" or (third == "*" and fourth not in ("*", "/"))
            scanner.skip_block_comment()
            if is_doc:
                push(TokenKind.DOC, start)
            else:
                spaced = True
            continue

        if ch == '"':
            scanner.scan_quoted('"')
            push(TokenKind.LITERAL, start)
            continue

        if ch == "'":
            kind = scanner.scan_quote()
            push(kind, start)
            continue

        if ch.isdigit():
            scanner.scan_number()
            push(TokenKind.LITERAL, start)
            continue

        if ch in ("b", "c", "r") and _prefixed_literal(scanner):
            push(TokenKind.LITERAL, start)
            continue

        if ch == "r" and scanner.peek(1) == "#" and _is_ident_start(scanner.peek(2)):
            scanner.pos += 2
            while _is_ident_continue(scanner.peek()):
                scanner.pos += 1
            push(TokenKind.IDENT, start)
            continue

        if _is_ident_start(ch):
            while scanner.pos < length and _is_ident_continue(text[scanner.pos]):
                scanner.pos += 1
            push(TokenKind.IDENT, start)
            continue

        if ch in OPENERS:
            stack.append((ch, start))
            scanner.pos += 1
            push(TokenKind.OPEN, start)
            continue

        if ch in CLOSERS and not check_balance:
            scanner.pos += 1
            push(TokenKind.CLOSE, start)
            continue

        if ch in CLOSERS:
            if not stack:
                raise scanner.fail(f"unexpected closing delimiter {ch!r}", start)
            opener, open_at = stack.pop()
            if OPENERS[opener] != ch:
                line, column = scanner.location(open_at)
                xmsg = (
                    f"mismatched closing delimiter {ch!r}"
                    f" (opened with {opener!r} at {line}:{column})"
                )
                raise scanner.fail(xmsg, start)
            scanner.pos += 1
            push(TokenKind.CLOSE, start)
            continue

        for punct in PUNCTUATION:
            if text.startswith(punct, start):
                scanner.pos += len(punct)
                push(TokenKind.PUNCT, start)
                break
        else:
            raise scanner.fail(f"unexpected character {ch!r}", start)

    if stack and check_balance:
        opener, open_at = stack[-1]
        raise scanner.fail(f"unclosed delimiter {opener!r}", open_at)

    if src_path is not None:
        logger.trace("[LEX] %s: %d token(s)", src_path, len(tokens))
    return tokens


# --------------------------------------------------------------------------- #
# helpers shared by the renderer and the minifier
# --------------------------------------------------------------------------- #


def doc_content(token: Token) -> str:
    """Return the documentation text carried by a DOC token."""
    text = token.text
    if text.startswith("//"):
        return text[3:]
    return text[3:-2]


def quote_string(value: str) -> str:
    """Render `value` as a Rust string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


def doc_as_attribute(token: Token) -> str:
    """Express a doc comment as the equivalent `#[doc = ...]` attribute."""
    bang = "!" if token.is_inner_doc else ""
    return f"#{bang}[doc={quote_string(doc_content(token))}]"


@lru_cache(maxsize=8192)
def fuses(left: str, right: str) -> bool:
    """True when `left` directly followed by `right` would not re-lex as the pair."""
    try:
        # the leading space keeps `#!` from being taken for a shebang
        tokens = tokenize(" " + left + right, check_balance=False)
    except ParseError:
        return True
    texts = [t.text for t in tokens if t.kind is not TokenKind.DOC]
    return texts != [left, right]
