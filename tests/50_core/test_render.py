# tests/50_core/test_render.py
"""Tests for the canonical renderer."""

import cratestitch.parser as mod_parser
import cratestitch.renderer as mod_renderer


CANONICAL = """\
//! Crate docs.
#![allow(dead_code)]

use std::collections::HashMap;
use std::fmt;

/// A point.
#[derive(Debug, Clone)]
pub struct Point { pub x: i32, pub y: i32 }

impl Point {
    pub fn new(x: i32, y: i32) -> Self {
        Self { x, y }
    }
    pub fn norm(&self) -> i32 {
        let sq = [self.x * self.x, self.y * self.y];
        if sq[0] > sq[1] { sq[0] } else { sq[1] }
    }
}

#[cfg(test)]
mod tests {
    use super::*;

    #[test]
    fn works() {
        assert_eq!(Point::new(1, 2).norm(), 4);
    }
}
"""

MESSY = """\
use std::io;   use std::fmt;
// a comment that disappears
fn main(){let v=vec![1,2,3];   for x in v.iter(){println!("{}",x);}
    match v.len() { 0 => {}, n => { let _ = n; } }
}
mod inner { pub fn f<'a>(s: &'a str) -> &'a str { s } /// docs
pub const N: usize = 2; }
"""


def _render_source(text: str) -> str:
    return mod_renderer.render(mod_parser.parse(text))


def test_render_canonical_text_is_a_fixed_point() -> None:
    # --- execute / verify ---
    assert _render_source(CANONICAL) == CANONICAL


def test_render_is_idempotent() -> None:
    # --- execute ---
    once = _render_source(MESSY)
    twice = _render_source(once)

    # --- verify ---
    assert twice == once


def test_render_breaks_statement_blocks_and_indents() -> None:
    # --- execute ---
    result = _render_source("fn main() { a::hi(); b(); }")

    # --- verify ---
    assert result == "fn main() {\n    a::hi();\n    b();\n}\n"


def test_render_indents_block_header_at_its_own_depth() -> None:
    # --- execute ---
    nested = _render_source("mod a { fn f() { x(); y(); } }")
    tail = _render_source("fn f() -> i32 { let x = 1; x }")

    # --- verify ---
    assert nested == "mod a {\n    fn f() {\n        x();\n        y();\n    }\n}\n"
    assert tail == "fn f() -> i32 {\n    let x = 1;\n    x\n}\n"


def test_render_keeps_small_flat_blocks_inline() -> None:
    # --- execute ---
    result = _render_source("fn add(a: i32, b: i32) -> i32 { a + b }")

    # --- verify ---
    assert result == "fn add(a: i32, b: i32) -> i32 { a + b }\n"


def test_render_array_length_semicolon_does_not_break_line() -> None:
    # --- execute ---
    result = _render_source("fn z() { let a = [0; 4]; }")

    # --- verify ---
    assert "    let a = [0; 4];\n" in result


def test_render_groups_imports_and_separates_items() -> None:
    # --- execute ---
    result = _render_source("use a::b;\nuse c::d;\nfn f() {}\nfn g() {}\n")

    # --- verify ---
    assert result == "use a::b;\nuse c::d;\n\nfn f() {}\n\nfn g() {}\n"


def test_render_module_forms() -> None:
    # --- execute ---
    declared = _render_source("mod a;")
    empty = _render_source("pub mod a {}")
    nested = _render_source("mod a { fn f() {} }")

    # --- verify ---
    assert declared == "mod a;\n"
    assert empty == "pub mod a {}\n"
    assert nested == "mod a {\n    fn f() {}\n}\n"


def test_render_drops_plain_comments_and_keeps_literals() -> None:
    # --- setup ---
    src = '// gone\nconst S: &str = "a   // kept";  /* gone too */\n'

    # --- execute ---
    result = _render_source(src)

    # --- verify ---
    assert result == 'const S: &str = "a   // kept";\n'


def test_render_empty_tree_is_empty_text() -> None:
    # --- execute / verify ---
    assert _render_source("// nothing here\n") == ""
