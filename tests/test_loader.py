# tests/test_loader.py
"""
Tests for loading JSON and S-expression tree dumps.
"""

import copy
import json

import pytest

from unsafe_ast import hir
from unsafe_ast.codemap import CodeMap
from unsafe_ast.driver import build_unsafe_ast
from unsafe_ast.errors import TreeLoadError, UastErrorCodes
from unsafe_ast.loader import crate_from_dict, load_json, load_path, load_sexp
from unsafe_ast.serializer import encode
from tests.conftest import demo_crate, demo_dump_dict, write_dump

DEMO_SEXP = r'''
; fn demo(p: *const u8) { let x = 1; *p; puts(p); }
(crate :name "demo" :crate_type "Executable"
  :files ((file :path "src/lib.rs"
                :text "fn demo(p: *const u8) {
    let x = 1;
    *p;
    puts(p);
}
"))
  :items
  ((fn :name "demo" :path "demo" :span "src/lib.rs:1:1: 5:2"
       :sig (sig :unsafety normal :abi "Rust")
       :body
       (block :rules default :span "src/lib.rs:1:23: 5:2" :expr nil
              :stmts
              ((local :span "src/lib.rs:2:5: 2:15"
                      :expr (lit :span "src/lib.rs:2:13: 2:14"))
               (semi :span "src/lib.rs:3:5: 3:8"
                     :expr (unary :op deref :operand_ty raw_ptr
                                  :span "src/lib.rs:3:5: 3:7"
                                  :operands ((path :span "src/lib.rs:3:6: 3:7"
                                                   :res (res :kind local)))))
               (semi :span "src/lib.rs:4:5: 4:13"
                     :expr (call :span "src/lib.rs:4:5: 4:12"
                                 :sig (sig :unsafety unsafe :abi "C")
                                 :operands ((path :span "src/lib.rs:4:5: 4:9"
                                                  :res (res :kind fn))
                                            (path :span "src/lib.rs:4:10: 4:11"
                                                  :res (res :kind local))))))))))
'''


class TestLoadJson:

    def test_demo_matches_built_tree(self):
        krate = load_json(json.dumps(demo_dump_dict()))
        assert krate.name == "demo"
        assert krate.crate_type == "Executable"
        assert encode(build_unsafe_ast(krate)) == encode(build_unsafe_ast(demo_crate()))

    def test_expression_facts(self):
        krate = load_json(json.dumps(demo_dump_dict()))
        (fn,) = krate.items
        deref = fn.body.stmts[1].expr
        assert deref.is_raw_deref
        call = fn.body.stmts[2].expr
        assert call.sig == hir.FnSig(hir.Unsafety.UNSAFE, "C")
        assert call.operands[0].res == hir.Res("fn")

    def test_span_object_form(self):
        data = demo_dump_dict()
        data["items"][0]["span"] = {"file": "src/lib.rs", "lo_line": 1, "lo_col": 1,
                                    "hi_line": 5, "hi_col": 2, "expn_id": 3}
        (fn,) = load_json(json.dumps(data)).items
        assert fn.span == hir.Span("src/lib.rs", 1, 1, 5, 2, 3)

    def test_span_object_form_expn_id_as_string(self):
        data = demo_dump_dict()
        data["expansions"] = [{"id": 7, "format": "bang",
                               "def_site": "src/lib.rs:1:1: 1:10"}]
        data["items"][0]["span"] = {"file": "src/lib.rs", "lo_line": 1, "lo_col": 1,
                                    "hi_line": 5, "hi_col": 2, "expn_id": "7"}
        krate = load_json(json.dumps(data))
        (fn,) = krate.items
        assert fn.span.expn_id == 7
        assert CodeMap.for_crate(krate).expn_info(fn.span) == krate.expansions[7]

    def test_span_object_form_bad_expn_id(self):
        data = demo_dump_dict()
        data["items"][0]["span"] = {"file": "src/lib.rs", "lo_line": 1, "lo_col": 1,
                                    "hi_line": 5, "hi_col": 2, "expn_id": "seven"}
        with pytest.raises(TreeLoadError) as exc_info:
            load_json(json.dumps(data))
        assert exc_info.value.code == UastErrorCodes.BAD_SPAN

    def test_expansions(self):
        data = demo_dump_dict()
        data["expansions"] = [
            {"id": 1, "format": "bang", "call_site": "src/lib.rs:4:5: 4:12",
             "def_site": "src/lib.rs:1:1: 1:10", "name": "deref"},
            {"id": 2, "format": "attribute"},
        ]
        krate = load_json(json.dumps(data))
        assert krate.expansions[1].def_site == hir.Span("src/lib.rs", 1, 1, 1, 10)
        assert krate.expansions[1].name == "deref"
        assert krate.expansions[2].format is hir.ExpnFormat.ATTRIBUTE
        assert krate.expansions[2].call_site is None

    def test_files_as_list(self):
        data = demo_dump_dict()
        data["files"] = [{"path": "src/lib.rs", "text": "fn f() {}\n"}]
        assert load_json(json.dumps(data)).files == {"src/lib.rs": "fn f() {}\n"}

    def test_unknown_expression_kind_kept_as_tag(self):
        (fn,) = load_json(json.dumps(demo_dump_dict())).items
        lit = fn.body.stmts[0].expr
        assert lit.kind is hir.ExprKind.OTHER
        assert lit.tag == "lit"

    def test_closure_body(self):
        data = demo_dump_dict()
        data["items"][0]["body"]["expr"] = {
            "kind": "closure", "span": "src/lib.rs:2:13: 2:20",
            "body": {"stmts": [], "expr": None, "rules": "unsafe"},
        }
        (fn,) = load_json(json.dumps(data)).items
        closure = fn.body.expr
        assert closure.kind is hir.ExprKind.CLOSURE
        assert closure.body.rules is hir.BlockRules.UNSAFE

    def test_containers(self):
        data = demo_dump_dict()
        method = copy.deepcopy(data["items"][0])
        method.update(kind="method", name="get", path="Foo::get")
        data["items"].append({"kind": "impl", "name": "Foo", "items": [method]})
        krate = load_json(json.dumps(data))
        impl = krate.items[1]
        assert isinstance(impl, hir.ContainerItem)
        assert [f.display_name for f in hir.iter_fn_items(krate.items)] == ["demo", "Foo::get"]
        assert impl.items[0].kind is hir.FnKind.METHOD


class TestLoadErrors:

    def test_invalid_json(self):
        with pytest.raises(TreeLoadError) as exc:
            load_json("{not json")
        assert exc.value.code == UastErrorCodes.MALFORMED_DUMP

    def test_root_not_a_record(self):
        with pytest.raises(TreeLoadError):
            crate_from_dict([1, 2])

    def test_missing_name(self):
        data = demo_dump_dict()
        del data["name"]
        with pytest.raises(TreeLoadError, match="'name'"):
            crate_from_dict(data)

    def test_bad_span(self):
        data = demo_dump_dict()
        data["items"][0]["span"] = "src/lib.rs line one"
        with pytest.raises(TreeLoadError) as exc:
            crate_from_dict(data)
        assert exc.value.code == UastErrorCodes.BAD_SPAN

    def test_unknown_statement_kind(self):
        data = demo_dump_dict()
        data["items"][0]["body"]["stmts"][0]["kind"] = "macro"
        with pytest.raises(TreeLoadError) as exc:
            crate_from_dict(data)
        assert exc.value.code == UastErrorCodes.UNKNOWN_NODE_KIND

    def test_unknown_block_rules(self):
        data = demo_dump_dict()
        data["items"][0]["body"]["rules"] = "maybe"
        with pytest.raises(TreeLoadError):
            crate_from_dict(data)

    def test_closure_without_body(self):
        data = demo_dump_dict()
        data["items"][0]["body"]["expr"] = {"kind": "closure"}
        with pytest.raises(TreeLoadError, match="no body"):
            crate_from_dict(data)

    def test_fn_without_body(self):
        data = demo_dump_dict()
        del data["items"][0]["body"]
        with pytest.raises(TreeLoadError):
            crate_from_dict(data)


class TestLoadSexp:

    def test_demo_matches_json(self):
        from_sexp = load_sexp(DEMO_SEXP)
        from_json = load_json(json.dumps(demo_dump_dict()))
        assert from_sexp == from_json

    def test_multiline_text_kept(self):
        krate = load_sexp(DEMO_SEXP)
        assert krate.files["src/lib.rs"].splitlines()[2] == "    *p;"

    def test_booleans_and_numbers(self):
        text = '''
        (crate :name "k"
          :expansions ((expansion :id 7 :format attribute))
          :items ((fn :name "f" :body (block :stmts ((semi :expr (path :res (res :kind static :mutable true)))) :expr nil))))
        '''
        krate = load_sexp(text)
        assert krate.expansions[7].format is hir.ExpnFormat.ATTRIBUTE
        path = krate.items[0].body.stmts[0].expr
        assert path.res.is_mut_static

    def test_unbalanced(self):
        with pytest.raises(TreeLoadError):
            load_sexp('(crate :name "demo"')

    def test_trailing_garbage(self):
        with pytest.raises(TreeLoadError):
            load_sexp('(crate :name "demo") )')


class TestLoadPath:

    def test_json_by_suffix(self, tmp_path):
        p = write_dump(tmp_path, demo_dump_dict())
        assert load_path(p).name == "demo"

    def test_sexp_by_suffix(self, tmp_path):
        p = tmp_path / "demo.tree.sexp"
        p.write_text(DEMO_SEXP, encoding="utf-8")
        assert load_path(p).name == "demo"

    def test_explicit_format(self, tmp_path):
        p = tmp_path / "demo.dump"
        p.write_text(DEMO_SEXP, encoding="utf-8")
        assert load_path(p, "sexp").name == "demo"

    def test_missing_file(self, tmp_path):
        with pytest.raises(TreeLoadError, match="Cannot read"):
            load_path(tmp_path / "absent.json")

    def test_not_utf8(self, tmp_path):
        p = tmp_path / "binary.tree.json"
        p.write_bytes(b'{"name": "\xff\xfe"}')
        with pytest.raises(TreeLoadError, match="Cannot read"):
            load_path(p)
