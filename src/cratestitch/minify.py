# src/cratestitch/minify.py
"""Whitespace compression with a structural safety check.

The text is re-lexed and written back token by token. A separator is only
ever emitted where the source had whitespace or a comment, and is dropped
when the level's adjacency table allows it and the two neighbours would not
fuse into different tokens. Literals are copied verbatim.
"""

from __future__ import annotations

from .config_types import MinifyLevel
from .errors import MinificationIntegrityError, ParseError
from .lexer import Token, TokenKind, doc_as_attribute, fuses, tokenize
from .logs import getAppLogger
from .parser import parse
from .syntax import item_kinds


# single-line keeps a space after these ...
_KEEP_AFTER = frozenset({",", ";", ":"})
# ... and on either side of these
_KEEP_AROUND = frozenset({"{", "}", "->", "=>"})


def _edge_texts(tok: Token) -> tuple[str, str]:
    """Text used for fusion checks on the left and right edge of `tok`."""
    if tok.kind is TokenKind.DOC:
        # rewritten as `#[doc="..."]`
        return "#", "]"
    return tok.text, tok.text


def _keep_single_line(prev: Token, tok: Token) -> bool:
    if prev.is_word and tok.is_word:
        return True
    if prev.kind is not TokenKind.LITERAL and prev.text in _KEEP_AFTER:
        return True
    return any(
        t.kind is not TokenKind.LITERAL and t.text in _KEEP_AROUND for t in (prev, tok)
    )


def _separator(prev: Token, tok: Token, level: MinifyLevel) -> bool:
    if not tok.space_before:
        return False
    _, left = _edge_texts(prev)
    right, _ = _edge_texts(tok)
    if fuses(left, right):
        return True
    if level is MinifyLevel.SINGLE_LINE:
        return _keep_single_line(prev, tok)
    return False


def _squeeze(text: str, level: MinifyLevel) -> str:
    tokens = tokenize(text)
    parts: list[str] = []
    prev: Token | None = None
    for tok in tokens:
        if prev is not None and _separator(prev, tok, level):
            parts.append(" ")
        parts.append(doc_as_attribute(tok) if tok.kind is TokenKind.DOC else tok.text)
        prev = tok
    return "".join(parts)


def compress(text: str, level: MinifyLevel) -> str:
    """Compress `text` to a single line at the given level.

    `MinifyLevel.NONE` returns the text unchanged.

    Raises:
        ParseError: the input itself does not parse.
        MinificationIntegrityError: the compressed text no longer parses to
            the same sequence of items.
    """
    if level is MinifyLevel.NONE:
        return text
    logger = getAppLogger()

    expected = item_kinds(parse(text))
    result = _squeeze(text, level)
    try:
        actual = item_kinds(parse(result))
    except ParseError as e:
        raise MinificationIntegrityError(expected, []) from e
    if actual != expected:
        raise MinificationIntegrityError(expected, actual)

    logger.debug(
        "Compressed %d → %d characters (%s)", len(text), len(result), level.value
    )
    return result
