# tests/50_core/test_resolve_modules.py
"""Tests for module resolution (`mod foo;` → inline body)."""

from pathlib import Path

import pytest

import cratestitch.errors as mod_errors
import cratestitch.parser as mod_parser
import cratestitch.renderer as mod_renderer
import cratestitch.resolver as mod_resolver
import cratestitch.syntax as mod_syntax


SRC = Path("/crate/src")
MAIN = SRC / "main.rs"


def _resolve(files: dict[str, str]) -> mod_resolver.ResolveResult:
    source = mod_resolver.MemorySource({SRC / k: v for k, v in files.items()})
    tree = mod_parser.parse(files["main.rs"], MAIN)
    return mod_resolver.resolve(tree, SRC, source=source, root_path=MAIN)


def test_resolve_inlines_sibling_file() -> None:
    # --- execute ---
    result = _resolve(
        {
            "main.rs": "mod a;\nfn main() { a::hi(); }\n",
            "a.rs": "pub fn hi() {}\n",
        }
    )

    # --- verify ---
    module = result.tree.items[0]
    assert module.body is not None
    assert [i.name for i in module.body.items] == ["hi"]
    assert module.source_path == SRC / "a.rs"
    assert mod_syntax.ModulePath(("crate", "a")) in result.arena
    assert mod_renderer.render(result.tree) == (
        "mod a {\n    pub fn hi() {}\n}\n\nfn main() {\n    a::hi();\n}\n"
    )


def test_resolve_nested_modules_use_module_directory() -> None:
    # --- execute ---
    result = _resolve(
        {
            "main.rs": "mod a;\nmod c;\n",
            "a.rs": "mod b;\n",
            "a/b.rs": "fn in_b() {}\n",
            "c/mod.rs": "mod d;\n",
            "c/d.rs": "fn in_d() {}\n",
        }
    )

    # --- verify ---
    assert mod_syntax.item_kinds(result.tree) == [
        "mod:a",
        "mod:b",
        "fn:in_b",
        "mod:c",
        "mod:d",
        "fn:in_d",
    ]
    assert result.arena.source_files == [
        MAIN,
        SRC / "a.rs",
        SRC / "a" / "b.rs",
        SRC / "c" / "mod.rs",
        SRC / "c" / "d.rs",
    ]


def test_resolve_declaration_inside_inline_module() -> None:
    # --- execute ---
    result = _resolve(
        {
            "main.rs": "mod outer { pub mod leaf; }\n",
            "outer/leaf.rs": "pub fn f() {}\n",
        }
    )

    # --- verify ---
    assert mod_syntax.item_kinds(result.tree) == ["mod:outer", "mod:leaf", "fn:f"]
    record = result.arena.get(mod_syntax.ModulePath(("crate", "outer")))
    assert record is not None
    assert record.source_path is None


def test_resolve_ambiguous_candidates() -> None:
    # --- execute ---
    with pytest.raises(mod_errors.AmbiguousCandidates) as exc_info:
        _resolve({"main.rs": "mod a;\n", "a.rs": "", "a/mod.rs": ""})

    # --- verify ---
    err = exc_info.value
    assert err.module_path == "crate::a"
    assert err.candidates == [SRC / "a.rs", SRC / "a" / "mod.rs"]


def test_resolve_missing_file_lists_candidates() -> None:
    # --- execute ---
    with pytest.raises(mod_errors.FileNotFound) as exc_info:
        _resolve({"main.rs": "mod missing;\n"})

    # --- verify ---
    err = exc_info.value
    assert err.candidates == [SRC / "missing.rs", SRC / "missing" / "mod.rs"]
    assert "crate::missing" in str(err)


def test_resolve_detects_cycles_through_path_attribute() -> None:
    # --- execute ---
    with pytest.raises(mod_errors.CyclicDeclaration) as exc_info:
        _resolve(
            {
                "main.rs": "mod a;\n",
                "a.rs": '#[path = "a.rs"]\nmod again;\n',
            }
        )

    # --- verify ---
    err = exc_info.value
    assert err.chain == [MAIN, SRC / "a.rs", SRC / "a.rs"]
    assert err.module_path == "crate::a::again"


def test_resolve_detects_two_hop_cycle_back_to_parent_file() -> None:
    # --- execute ---
    with pytest.raises(mod_errors.CyclicDeclaration) as exc_info:
        _resolve(
            {
                "main.rs": "mod a;\n",
                "a.rs": "mod b;\n",
                "a/b.rs": '#[path = "../a.rs"]\nmod back;\n',
            }
        )

    # --- verify ---
    err = exc_info.value
    assert err.chain == [MAIN, SRC / "a.rs", SRC / "a" / "b.rs", SRC / "a.rs"]
    assert err.module_path == "crate::a::b::back"


def test_resolve_raw_identifier_module_uses_bare_file_name() -> None:
    # --- execute ---
    result = _resolve(
        {
            "main.rs": "mod r#type;\n",
            "type.rs": "mod inner;\n",
            "type/inner.rs": "fn f() {}\n",
        }
    )

    # --- verify ---
    module = result.tree.items[0]
    assert module.name == "r#type"
    assert module.source_path == SRC / "type.rs"
    assert mod_syntax.item_kinds(result.tree) == ["mod:r#type", "mod:inner", "fn:f"]
    assert mod_resolver.module_candidates(SRC, "r#match") == [
        SRC / "match.rs",
        SRC / "match" / "mod.rs",
    ]


def test_resolve_path_attribute_is_relative_to_declaring_file() -> None:
    # --- execute ---
    result = _resolve(
        {
            "main.rs": '#[path = "platform/linux.rs"]\nmod sys;\n',
            "platform/linux.rs": "mod helpers;\n",
            "platform/helpers.rs": "fn h() {}\n",
        }
    )

    # --- verify ---
    module = result.tree.items[0]
    assert module.source_path == SRC / "platform" / "linux.rs"
    # the attribute is consumed once the file is inlined
    assert module.attrs == []
    assert mod_syntax.item_kinds(result.tree) == ["mod:sys", "mod:helpers", "fn:h"]


def test_resolve_duplicate_module_path() -> None:
    # --- execute / verify ---
    with pytest.raises(mod_errors.DuplicateModule, match="crate::a"):
        _resolve({"main.rs": "mod a {}\nmod a;\n", "a.rs": ""})


def test_resolve_propagates_parse_errors_with_file() -> None:
    # --- execute ---
    with pytest.raises(mod_errors.ParseError) as exc_info:
        _resolve({"main.rs": "mod a;\n", "a.rs": "fn broken( {}\n"})

    # --- verify ---
    assert exc_info.value.path == SRC / "a.rs"


def test_resolve_is_deterministic() -> None:
    # --- setup ---
    files = {
        "main.rs": "mod z;\nmod a;\nfn main() {}\n",
        "z.rs": "pub fn last() {}\n",
        "a.rs": "pub fn first() {}\n",
    }

    # --- execute ---
    first = mod_renderer.render(_resolve(files).tree)
    second = mod_renderer.render(_resolve(files).tree)

    # --- verify ---
    assert first == second
    assert first.index("last") < first.index("first")  # declaration order


def test_resolve_reads_from_filesystem(tmp_path: Path) -> None:
    # --- setup ---
    src = tmp_path / "src"
    (src / "net").mkdir(parents=True)
    (src / "main.rs").write_text("mod net;\nfn main() {}\n", encoding="utf-8")
    (src / "net" / "mod.rs").write_text("pub fn up() {}\n", encoding="utf-8")
    tree = mod_parser.parse((src / "main.rs").read_text(), src / "main.rs")

    # --- execute ---
    result = mod_resolver.resolve(tree, src, root_path=src / "main.rs")

    # --- verify ---
    assert mod_syntax.item_kinds(result.tree) == ["mod:net", "fn:up", "fn:main"]
    assert len(result.arena) == 2  # root + net


def test_memory_source_read_missing_raises() -> None:
    # --- setup ---
    source = mod_resolver.MemorySource({"/x/a.rs": ""})

    # --- execute / verify ---
    assert source.exists(Path("/x/./a.rs"))
    with pytest.raises(FileNotFoundError):
        source.read(Path("/x/b.rs"))
