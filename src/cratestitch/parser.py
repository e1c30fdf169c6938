# src/cratestitch/parser.py
"""Item-level parser for Rust source files.

Only the item structure is recovered: attributes, visibility, the item kind
and name, module bodies (recursively) and the raw tokens of everything else.
Function bodies, impl members and expressions stay as token trees, which is
all the bundler needs to inline modules and prune items.

The grammar runs on lark's LALR parser. Tokens come from `lexer.tokenize`
(raw strings and nested comments need a hand-written scanner), so a small
adapter feeds them to lark instead of a lark-generated lexer.
"""

from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple

from lark import Lark, Transformer, Tree, v_args
from lark import Token as LarkToken
from lark.exceptions import UnexpectedToken
from lark.lexer import Lexer
from lark.tree import Meta

from .errors import ParseError
from .lexer import Token, TokenKind, tokenize
from .logs import getAppLogger
from .syntax import Attribute, Item, ItemKind, Location, SyntaxTree


_GRAMMAR = r"""
start: module_body

module_body: inner_attr* (item | SEMI)*

inner_attr: POUND BANG bracket_tree
          | INNER_DOC
outer_attr: POUND bracket_tree
          | OUTER_DOC

item: outer_attr* visibility? _kind
visibility: PUB paren_tree?

_kind: use_item
     | extern_crate
     | module_decl
     | module_inline
     | const_item
     | static_item
     | type_alias
     | adt_item
     | trait_item
     | impl_item
     | fn_item
     | extern_block
     | macro_rules
     | macro_call

use_item: USE _semi_tok* SEMI
extern_crate: EXTERN CRATE IDENT _semi_tok* SEMI
module_decl: MOD IDENT SEMI
module_inline: MOD IDENT LBRACE module_body RBRACE
const_item: CONST IDENT _semi_tok* SEMI
static_item: STATIC MUT? IDENT _semi_tok* SEMI
type_alias: TYPE IDENT _semi_tok* SEMI
adt_item: (STRUCT | ENUM | UNION) IDENT _head_tok* (brace_tree | SEMI)
trait_item: qualifiers? TRAIT IDENT _head_tok* (brace_tree | SEMI)
impl_item: qualifiers? IMPL _head_tok* brace_tree
fn_item: qualifiers? FN IDENT _head_tok* (brace_tree | SEMI)
extern_block: qualifiers brace_tree

qualifiers: _qualifier+
_qualifier: CONST | ASYNC | UNSAFE | AUTO | DEFAULT | EXTERN | EXTERN LITERAL

macro_rules: MACRO_RULES BANG IDENT brace_tree SEMI?
           | MACRO_RULES BANG IDENT (paren_tree | bracket_tree) SEMI
macro_call: macro_path BANG IDENT? brace_tree SEMI?
          | macro_path BANG IDENT? (paren_tree | bracket_tree) SEMI
macro_path: PATHSEP? _segment (PATHSEP _segment)*
_segment: IDENT | CRATE

// token trees: opaque runs balanced by the lexer
paren_tree: LPAR _tt* RPAR
bracket_tree: LSQB _tt* RSQB
brace_tree: LBRACE _tt* RBRACE

_tt: _atom | _tree | SEMI
_semi_tok: _atom | _tree
_head_tok: _atom | paren_tree | bracket_tree
_tree: paren_tree | bracket_tree | brace_tree
_atom: IDENT | LITERAL | LIFETIME | PUNCT | POUND | BANG | PATHSEP
     | INNER_DOC | OUTER_DOC | _keyword
_keyword: MOD | USE | PUB | FN | IMPL | TRAIT | STRUCT | ENUM | UNION | TYPE
        | CONST | STATIC | MUT | EXTERN | CRATE | ASYNC | UNSAFE | AUTO
        | DEFAULT | MACRO_RULES

%declare IDENT LITERAL LIFETIME PUNCT INNER_DOC OUTER_DOC
%declare POUND BANG SEMI PATHSEP LPAR RPAR LSQB RSQB LBRACE RBRACE
%declare MOD USE PUB FN IMPL TRAIT STRUCT ENUM UNION TYPE CONST STATIC MUT
%declare EXTERN CRATE ASYNC UNSAFE AUTO DEFAULT MACRO_RULES
"""

_KEYWORDS = {
    word: word.upper()
    for word in (
        "mod", "use", "pub", "fn", "impl", "trait", "struct", "enum", "type",
        "const", "static", "mut", "extern", "crate", "async", "unsafe",
    )
}  # fmt: skip
# words that are keywords only in front of certain tokens
_CONTEXTUAL = {
    "macro_rules": frozenset({"!"}),
    "auto": frozenset({"trait"}),
    "default": frozenset({"fn", "impl", "unsafe", "async"}),
}
_SYMBOLS = {
    "#": "POUND",
    "!": "BANG",
    ";": "SEMI",
    "::": "PATHSEP",
    "(": "LPAR",
    ")": "RPAR",
    "[": "LSQB",
    "]": "RSQB",
    "{": "LBRACE",
    "}": "RBRACE",
}


def _terminal(tok: Token, following: Token | None) -> str:
    """Name the grammar terminal for `tok`."""
    if tok.kind is TokenKind.LITERAL:
        return "LITERAL"
    if tok.kind is TokenKind.LIFETIME:
        return "LIFETIME"
    if tok.kind is TokenKind.DOC:
        return "INNER_DOC" if tok.is_inner_doc else "OUTER_DOC"
    if tok.kind is not TokenKind.IDENT:
        return _SYMBOLS.get(tok.text, "PUNCT")
    if tok.text in _KEYWORDS:
        return _KEYWORDS[tok.text]
    if following is None:
        return "IDENT"
    if tok.text == "union":
        # `union` only opens an item when a name follows
        named = following.kind is TokenKind.IDENT
        return "UNION" if named and following.text not in _KEYWORDS else "IDENT"
    if following.text in _CONTEXTUAL.get(tok.text, ()):
        return tok.text.upper()
    return "IDENT"


class _TokenStream(Lexer):
    """Hands already-lexed tokens to lark; positions are token indexes."""

    def __init__(self, lexer_conf: Any) -> None:
        self.lexer_conf = lexer_conf

    def lex(self, data: list[Token]) -> Iterator[LarkToken]:  # type: ignore[override]
        for index, tok in enumerate(data):
            following = data[index + 1] if index + 1 < len(data) else None
            yield LarkToken(
                _terminal(tok, following),
                tok.text,
                start_pos=index,
                line=tok.line,
                column=tok.column,
                end_line=tok.line,
                end_column=tok.column + len(tok.text),
                end_pos=index + 1,
            )


class _Head(NamedTuple):
    """What an item rule contributes: its kind, name and token span."""

    kind: ItemKind
    name: str | None
    start: int
    stop: int
    body: SyntaxTree | None = None


def _first_ident(children: list[Any]) -> str | None:
    for child in children:
        if isinstance(child, LarkToken) and child.type == "IDENT":
            return child.value
    return None


class _ItemBuilder(Transformer):
    """Turn lark's parse tree into `Item`s that share the lexer's tokens."""

    def __init__(self, tokens: list[Token], path: Path | None) -> None:
        super().__init__(visit_tokens=False)
        self.tokens = tokens
        self.path = path

    def _span(self, meta: Meta) -> list[Token]:
        return self.tokens[meta.start_pos : meta.end_pos]

    def _named(self, kind: ItemKind, meta: Meta, children: list[Any]) -> _Head:
        return _Head(kind, _first_ident(children), meta.start_pos, meta.end_pos)

    # --- bodies and attributes ---------------------------------------------

    def start(self, children: list[Any]) -> SyntaxTree:
        return children[0]

    def module_body(self, children: list[Any]) -> SyntaxTree:
        # stray `;` tokens between items are dropped here
        return SyntaxTree(
            items=[c for c in children if isinstance(c, Item)],
            inner_attrs=[c for c in children if isinstance(c, Attribute)],
            path=self.path,
        )

    @v_args(meta=True)
    def inner_attr(self, meta: Meta, _children: list[Any]) -> Attribute:
        return Attribute(self._span(meta), inner=True)

    @v_args(meta=True)
    def outer_attr(self, meta: Meta, _children: list[Any]) -> Attribute:
        return Attribute(self._span(meta))

    @v_args(meta=True)
    def visibility(self, meta: Meta, _children: list[Any]) -> list[Token]:
        return self._span(meta)

    def item(self, children: list[Any]) -> Item:
        head: _Head = children[-1]
        first = self.tokens[head.start]
        return Item(
            head.kind,
            self.tokens[head.start : head.stop],
            Location(self.path, first.line, first.column),
            head.name,
            attrs=[c for c in children if isinstance(c, Attribute)],
            visibility=next((c for c in children if isinstance(c, list)), []),
            body=head.body,
        )

    # --- item kinds --------------------------------------------------------

    @v_args(meta=True)
    def use_item(self, meta: Meta, _children: list[Any]) -> _Head:
        tree = self.tokens[meta.start_pos + 1 : meta.end_pos - 1]
        name = "".join(t.text for t in tree)
        return _Head(ItemKind.IMPORT, name, meta.start_pos, meta.end_pos)

    @v_args(meta=True)
    def extern_crate(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.EXTERN_CRATE, meta, children)

    @v_args(meta=True)
    def module_decl(self, meta: Meta, children: list[Any]) -> _Head:
        # only `mod name` is kept; the resolver replaces the `;` with a body
        name = _first_ident(children)
        return _Head(ItemKind.MODULE, name, meta.start_pos, meta.start_pos + 2)

    @v_args(meta=True)
    def module_inline(self, meta: Meta, children: list[Any]) -> _Head:
        name = _first_ident(children)
        body = next(c for c in children if isinstance(c, SyntaxTree))
        return _Head(ItemKind.MODULE, name, meta.start_pos, meta.start_pos + 2, body)

    @v_args(meta=True)
    def const_item(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.CONST, meta, children)

    @v_args(meta=True)
    def static_item(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.CONST, meta, children)

    @v_args(meta=True)
    def type_alias(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.TYPE, meta, children)

    @v_args(meta=True)
    def adt_item(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.TYPE, meta, children)

    @v_args(meta=True)
    def trait_item(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.TRAIT, meta, children)

    @v_args(meta=True)
    def impl_item(self, meta: Meta, children: list[Any]) -> _Head:
        keyword = next(
            c for c in children if isinstance(c, LarkToken) and c.type == "IMPL"
        )
        block: Tree = children[-1]
        header = self.tokens[keyword.end_pos : block.meta.start_pos]
        name = " ".join(t.text for t in header)
        return _Head(ItemKind.IMPL, name, meta.start_pos, meta.end_pos)

    @v_args(meta=True)
    def fn_item(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.FUNCTION, meta, children)

    @v_args(meta=True)
    def extern_block(self, meta: Meta, _children: list[Any]) -> _Head:
        return _Head(ItemKind.OTHER, None, meta.start_pos, meta.end_pos)

    @v_args(meta=True)
    def macro_rules(self, meta: Meta, children: list[Any]) -> _Head:
        return self._named(ItemKind.MACRO, meta, children)

    @v_args(meta=True)
    def macro_call(self, meta: Meta, children: list[Any]) -> _Head:
        return _Head(ItemKind.MACRO, children[0], meta.start_pos, meta.end_pos)

    def macro_path(self, children: list[Any]) -> str:
        return "".join(children)


@lru_cache(maxsize=1)
def _item_parser() -> Lark:
    return Lark(
        _GRAMMAR,
        parser="lalr",
        lexer=_TokenStream,
        propagate_positions=True,
    )


def _syntax_error(
    err: UnexpectedToken, tokens: list[Token], path: Path | None
) -> ParseError:
    """Describe where and why lark rejected the token stream."""
    at_end = err.token.type == "$END"
    # `$END` borrows the position of the last token
    index = len(tokens) - 1 if at_end else err.token.start_pos
    expected = set(err.expected)
    found = "end of input" if at_end else repr(tokens[index].text)

    if err.token.type == "BANG" and index > 0 and tokens[index - 1].is_("#"):
        index -= 1
        message = "inner attribute is not permitted here"
    elif expected <= {"PATHSEP", "BANG"}:
        # a bare path that never reached the `!` of a macro invocation
        if not at_end:
            index -= 1
        while index > 0 and (
            tokens[index - 1].kind is TokenKind.IDENT or tokens[index - 1].is_("::")
        ):
            index -= 1
        message = f"expected an item, found {tokens[index].text!r}"
    elif "MOD" in expected and "LBRACE" not in expected:
        message = f"expected an item, found {found}"
    elif "SEMI" in expected:
        either = " or `{`" if "LBRACE" in expected else ""
        message = f"expected `;`{either}, found {found}"
    else:
        message = f"unexpected {found}"

    tok = tokens[index]
    return ParseError(message, path, tok.line, tok.column)


def parse(text: str, path: Path | str | None = None) -> SyntaxTree:
    """Parse Rust source text into a `SyntaxTree`.

    Raises:
        ParseError: when the text is not a sequence of well-formed items.
    """
    logger = getAppLogger()
    src_path = Path(path) if path is not None else None
    tokens = tokenize(text, src_path)
    try:
        parse_tree = _item_parser().parse(tokens)
    except UnexpectedToken as e:
        raise _syntax_error(e, tokens, src_path) from e
    tree: SyntaxTree = _ItemBuilder(tokens, src_path).transform(parse_tree)
    logger.trace(
        "[PARSE] %s: %d item(s), %d inner attribute(s)",
        src_path or "<input>",
        len(tree.items),
        len(tree.inner_attrs),
    )
    return tree


__all__ = ["parse"]
