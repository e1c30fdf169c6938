# tests/50_core/test_compress.py
"""Tests for whitespace compression and its integrity check."""

import pytest

import cratestitch.config_types as mod_config_types
import cratestitch.errors as mod_errors
import cratestitch.minify as mod_minify
import cratestitch.parser as mod_parser
import cratestitch.renderer as mod_renderer
import cratestitch.syntax as mod_syntax


Level = mod_config_types.MinifyLevel

RENDERED = "mod a {\n    pub fn hi() {}\n}\n\nfn main() {\n    a::hi();\n}\n"


def test_compress_none_returns_text_unchanged() -> None:
    # --- execute / verify ---
    assert mod_minify.compress(RENDERED, Level.NONE) is RENDERED


def test_compress_single_line_keeps_readable_spaces() -> None:
    # --- execute ---
    result = mod_minify.compress(RENDERED, Level.SINGLE_LINE)

    # --- verify ---
    assert result == "mod a { pub fn hi() {} } fn main() { a::hi(); }"


def test_compress_aggressive_keeps_only_required_spaces() -> None:
    # --- execute ---
    result = mod_minify.compress(RENDERED, Level.AGGRESSIVE)

    # --- verify ---
    assert result == "mod a{pub fn hi(){}}fn main(){a::hi();}"


@pytest.mark.parametrize("level", [Level.SINGLE_LINE, Level.AGGRESSIVE])
def test_compress_never_touches_literals(level: mod_config_types.MinifyLevel) -> None:
    # --- setup ---
    text = 'fn main() {\n    let s = "a   b\\n";\n}\n'

    # --- execute ---
    result = mod_minify.compress(text, level)

    # --- verify ---
    assert 'let s="a   b\\n";' in result


def test_compress_keeps_tokens_apart_that_would_fuse() -> None:
    # --- setup ---
    text = "fn f(x: u8, y: &u8, b: &u8) -> bool {\n    x & &y == 0 && 8 / *b > 0\n}\n"

    # --- execute ---
    result = mod_minify.compress(text, Level.AGGRESSIVE)

    # --- verify ---
    assert "x& &y==0&&8/ *b>0" in result  # `& &` and `/ *` keep their space


def test_compress_keeps_less_than_apart_from_negation() -> None:
    # --- setup ---
    text = "fn f(x: i32) -> bool {\n    x < -1\n}\n"

    # --- execute ---
    result = mod_minify.compress(text, Level.AGGRESSIVE)

    # --- verify ---
    assert "x< -1" in result  # `<-` is a reserved token
    assert "<-" not in result
    assert mod_syntax.item_kinds(mod_parser.parse(result)) == ["fn:f"]


def test_compress_rewrites_doc_comments_as_attributes() -> None:
    # --- setup ---
    text = "/// Says hi.\npub fn hi() {}\n"

    # --- execute ---
    result = mod_minify.compress(text, Level.AGGRESSIVE)

    # --- verify ---
    assert result == '#[doc=" Says hi."]pub fn hi(){}'
    item = mod_parser.parse(result).items[0]
    assert item.attrs[0].is_doc


def test_compress_preserves_item_structure_of_real_bundle() -> None:
    # --- setup ---
    src = (
        "use std::io::{self, Read};\n"
        "macro_rules! sq { ($x:expr) => { $x * $x }; }\n"
        "struct P<'a> { name: &'a str }\n"
        "impl<'a> P<'a> { fn n(&self) -> usize { self.name.len() } }\n"
        "fn main() {\n"
        "    let mut s = String::new();\n"
        "    io::stdin().read_to_string(&mut s).unwrap();\n"
        "    let p = P { name: &s };\n"
        "    println!(\"{}\", sq!(p.n()));\n"
        "}\n"
    )
    rendered = mod_renderer.render(mod_parser.parse(src))
    expected = mod_syntax.item_kinds(mod_parser.parse(rendered))

    for level in (Level.SINGLE_LINE, Level.AGGRESSIVE):
        # --- execute ---
        result = mod_minify.compress(rendered, level)

        # --- verify ---
        assert "\n" not in result
        assert mod_syntax.item_kinds(mod_parser.parse(result)) == expected


def test_compress_integrity_failure_is_reported(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # --- setup ---
    def broken_squeeze(_text: str, _level: mod_config_types.MinifyLevel) -> str:
        return "fn main() {}"

    monkeypatch.setattr(mod_minify, "_squeeze", broken_squeeze)

    # --- execute ---
    with pytest.raises(mod_errors.MinificationIntegrityError) as exc_info:
        mod_minify.compress("fn a() {}\n\nfn b() {}\n", Level.AGGRESSIVE)

    # --- verify ---
    err = exc_info.value
    assert err.expected == ["fn:a", "fn:b"]
    assert err.actual == ["fn:main"]
    assert "first difference at item #1" in str(err)


def test_compress_unparseable_result_is_an_integrity_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # --- setup ---
    monkeypatch.setattr(mod_minify, "_squeeze", lambda _t, _l: "fn a() {")

    # --- execute / verify ---
    with pytest.raises(mod_errors.MinificationIntegrityError) as exc_info:
        mod_minify.compress("fn a() {}\n", Level.SINGLE_LINE)
    assert isinstance(exc_info.value.__cause__, mod_errors.ParseError)
