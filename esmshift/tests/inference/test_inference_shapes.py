# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from esmshift.errors import AnalysisError
from esmshift.graph import ModuleKind
from esmshift.inference import effective_kind, infer, pattern_names, top_level_bindings
from esmshift.parser import parse_module
from esmshift.shapes import DefaultKind, ProvenanceKind, ShapeTag


def _codes(descriptor) -> list:
	return [d.code for d in descriptor.diagnostics]


def test_named_only() -> None:
	d = infer(
		"""
exports.Foo = class {};
exports.bar = 'bar';
"""
	)
	assert d.tag is ShapeTag.NAMED_ONLY
	assert d.named_names() == ["Foo", "bar"]
	assert d.default.kind is DefaultKind.SYNTHESIZED
	assert d.default.keys == ("Foo", "bar")


def test_module_exports_member_writes_count_as_named() -> None:
	d = infer(
		"""
function helper() {}
module.exports.helper = helper;
exports.version = 2;
"""
	)
	assert d.tag is ShapeTag.NAMED_ONLY
	helper = d.binding("helper")
	assert helper is not None
	assert helper.provenance.kind is ProvenanceKind.LOCAL
	assert helper.provenance.local == "helper"


def test_alias_provenance() -> None:
	d = infer(
		"""
const impl = () => 1;
exports.run = impl;
"""
	)
	run = d.binding("run")
	assert run is not None
	assert run.provenance.kind is ProvenanceKind.ALIAS
	assert run.provenance.local == "impl"


def test_object_literal_named() -> None:
	d = infer(
		"""
function a() {}
const b = 2;
module.exports = { a, b, c: 3, d() {} };
"""
	)
	assert d.tag is ShapeTag.OBJECT_LITERAL_NAMED
	assert d.named_names() == ["a", "b", "c", "d"]
	assert d.default.kind is DefaultKind.SYNTHESIZED
	assert set(d.default.keys) == {"a", "b", "c", "d"}


def test_non_object_default() -> None:
	d = infer("module.exports = function qux() {};")
	assert d.tag is ShapeTag.NON_OBJECT_DEFAULT
	assert d.named == []
	assert d.default.kind is DefaultKind.EXPLICIT
	assert d.default.binding == "qux"


def test_last_whole_assignment_wins() -> None:
	d = infer(
		"""
exports.early = 1;
module.exports = { late: 2 };
"""
	)
	assert d.tag is ShapeTag.OBJECT_LITERAL_NAMED
	assert d.named_names() == ["late"]
	assert d.dead_writes


def test_named_write_after_whole_object_extends_it() -> None:
	d = infer(
		"""
module.exports = { a: 1 };
module.exports.b = 2;
"""
	)
	assert d.tag is ShapeTag.OBJECT_LITERAL_NAMED
	assert d.named_names() == ["a", "b"]


def test_attached_property_on_function_default() -> None:
	d = infer(
		"""
function main() {}
module.exports = main;
module.exports.helper = 1;
"""
	)
	assert d.tag is ShapeTag.NON_OBJECT_DEFAULT
	assert [b.name for b in d.attached] == ["helper"]
	assert "attached-property" in _codes(d)


def test_stale_exports_write_after_reassignment() -> None:
	d = infer(
		"""
module.exports = function f() {};
exports.lost = 1;
"""
	)
	assert d.tag is ShapeTag.NON_OBJECT_DEFAULT
	assert d.lookup("lost") is None
	assert "stale-exports" in _codes(d)


def test_exports_rebind_warns() -> None:
	d = infer(
		"""
exports = { a: 1 };
"""
	)
	assert "exports-rebind" in _codes(d)
	assert d.named == []


def test_linked_rebind_keeps_exports_live() -> None:
	d = infer(
		"""
module.exports = exports = function f() {};
exports.extra = 1;
"""
	)
	assert "stale-exports" not in _codes(d)
	assert [b.name for b in d.attached] == ["extra"]


def test_reexport_all() -> None:
	d = infer("module.exports = require('./a');")
	assert d.tag is ShapeTag.REEXPORT_ALL
	assert d.reexport_sources == ["./a"]
	assert d.default.kind is DefaultKind.EXPLICIT
	assert d.default.provenance is not None
	assert d.default.provenance.source == "./a"


def test_reexport_named_from_spread() -> None:
	d = infer("module.exports = { ...require('./a'), extra: 1 };")
	assert d.tag is ShapeTag.REEXPORT_NAMED
	assert d.reexport_sources == ["./a"]
	assert d.named_names() == ["extra"]
	assert d.default.sources == ("./a",)


def test_reexport_default_aggregate() -> None:
	d = infer(
		"""
module.exports = require('./a');
module.exports.b = require('./b');
"""
	)
	assert d.tag is ShapeTag.REEXPORT_DEFAULT_AGGREGATE
	assert d.reexport_sources == ["./a", "./b"]
	b = d.binding("b")
	assert b is not None
	assert b.provenance.kind is ProvenanceKind.REEXPORT
	assert b.provenance.source == "./b"
	assert b.provenance.member is None


def test_require_member_provenance() -> None:
	d = infer("exports.x = require('./lib').x;")
	x = d.binding("x")
	assert x is not None
	assert (x.provenance.kind, x.provenance.source, x.provenance.member) == (ProvenanceKind.REEXPORT, "./lib", "x")


def test_dynamic_conditional_in_initializer() -> None:
	d = infer(
		"""
function initialize(name) {
	if (name === 'foo') {
		exports.foo = true;
	}
}
exports.initialize = initialize;
"""
	)
	assert d.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert d.named_names() == ["initialize"]
	assert [b.name for b in d.conditional] == ["foo"]
	assert d.initializer == "initialize"
	assert d.default.kind is DefaultKind.SYNTHESIZED
	assert set(d.default.keys) == {"initialize", "foo"}


def test_branch_at_top_level_is_conditional() -> None:
	d = infer(
		"""
if (process.env.DEBUG) {
	exports.debug = true;
}
exports.always = 1;
"""
	)
	assert d.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert d.initializer is None
	assert d.all_names() == ["always", "debug"]


def test_conditional_object_reassignment_contributes_keys() -> None:
	d = infer(
		"""
if (legacy) {
	module.exports = { a: 1, b: 2 };
}
"""
	)
	assert d.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert [b.name for b in d.conditional] == ["a", "b"]


def test_conditional_non_object_reassignment_is_dynamic() -> None:
	d = infer(
		"""
exports.a = 1;
if (legacy) {
	module.exports = makeThing();
}
"""
	)
	assert d.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert d.named_names() == ["a"]
	assert d.conditional_default is not None
	assert d.conditional_default.expr == "makeThing()"
	assert "conditional-default" in _codes(d)


def test_conditional_replacement_of_value_default() -> None:
	d = infer(
		"""
module.exports = function main() {};
if (legacy) module.exports = other;
"""
	)
	assert d.tag is ShapeTag.NON_OBJECT_DEFAULT
	assert d.conditional_default is not None and d.conditional_default.local == "other"


def test_top_level_replacement_overrides_branch_write() -> None:
	source = "if (legacy) module.exports = a;\nmodule.exports = b;\n"
	d = infer(source)
	assert d.tag is ShapeTag.NON_OBJECT_DEFAULT
	assert d.conditional_default is None
	assert source.index("module.exports") in d.dead_writes


def test_conditional_replacement_over_reexport_fails() -> None:
	with pytest.raises(AnalysisError) as info:
		infer(
			"""
module.exports = require('./a');
if (legacy) {
	module.exports = makeThing();
}
"""
		)
	assert info.value.code == "analysis-error"
	assert info.value.span.line == 4


def test_computed_export_name_fails() -> None:
	with pytest.raises(AnalysisError):
		infer("exports[name] = 1;")


def test_static_computed_name_is_named() -> None:
	d = infer("exports['kebab-name'] = 1;")
	assert d.named_names() == ["kebab-name"]


def test_export_object_escaping_fails() -> None:
	with pytest.raises(AnalysisError):
		infer("register(module.exports);")


def test_object_assign_and_define_property() -> None:
	d = infer(
		"""
Object.defineProperty(exports, '__esModule', { value: true });
Object.defineProperty(exports, 'a', { enumerable: true, value: 1 });
Object.assign(module.exports, { b: 2, c });
"""
	)
	assert d.tag is ShapeTag.NAMED_ONLY
	assert d.es_module_marker
	assert d.named_names() == ["a", "b", "c"]
	assert "es-module-marker" in _codes(d)


def test_object_assign_with_spread_fails() -> None:
	with pytest.raises(AnalysisError):
		infer("Object.assign(exports, { ...other });")


def test_compound_writes_mark_reassigned() -> None:
	d = infer(
		"""
exports.count = 0;
exports.count += 1;
"""
	)
	assert "count" in d.reassigned


def test_function_writes_to_exported_name_mark_reassigned() -> None:
	d = infer(
		"""
exports.count = 0;
exports.inc = function () { exports.count++; };
"""
	)
	assert d.tag is ShapeTag.NAMED_ONLY
	assert d.conditional == []
	assert d.reassigned == frozenset({"count"})

	hoisted = infer(
		"""
function bump() { exports.count += 1; }
exports.count = 0;
exports.bump = bump;
"""
	)
	assert hoisted.tag is ShapeTag.NAMED_ONLY
	assert hoisted.named_names() == ["count", "bump"]
	assert "count" in hoisted.reassigned


def test_delete_makes_membership_conditional() -> None:
	d = infer(
		"""
exports.tmp = 1;
delete exports.tmp;
"""
	)
	assert d.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert d.lookup("tmp") is not None


def test_alias_write_cannot_be_traced() -> None:
	with pytest.raises(AnalysisError):
		infer(
			"""
const e = module.exports;
e.a = 1;
"""
		)


def test_default_key_warning() -> None:
	d = infer("exports.default = 1;")
	assert "default-key" in _codes(d)


def test_esm_static_exports() -> None:
	d = infer(
		"""
import x from './x.js';
export const a = 1, { b } = obj;
export function f() {}
export { x as y };
export { z } from './z.js';
export * from './all.js';
export default f;
""",
		ModuleKind.ESM,
	)
	assert d.tag is ShapeTag.ESM_STATIC
	assert d.named_names() == ["a", "b", "f", "y", "z"]
	assert d.reexport_sources == ["./all.js"]
	assert d.default.kind is DefaultKind.EXPLICIT
	assert d.default.binding == "f"
	y = d.binding("y")
	assert y is not None and y.provenance.kind is ProvenanceKind.ALIAS


def test_esm_module_exports_override() -> None:
	d = infer(
		"""
function qux() {}
export default qux;
export { qux as 'module.exports' };
""",
		ModuleKind.ESM,
	)
	assert d.override is not None
	assert d.override.local == "qux"
	assert d.named == []


def test_unknown_kind_is_inferred_from_syntax() -> None:
	esm = parse_module("export const a = 1;")
	cjs = parse_module("exports.a = 1;")
	assert effective_kind(esm, ModuleKind.UNKNOWN) is ModuleKind.ESM
	assert effective_kind(cjs, ModuleKind.UNKNOWN) is ModuleKind.COMMONJS
	assert effective_kind(esm, ModuleKind.COMMONJS) is ModuleKind.COMMONJS
	d = infer("exports.a = 1;", ModuleKind.UNKNOWN)
	assert d.tag is ShapeTag.NAMED_ONLY
	assert _codes(d)[0] == "kind-inferred"


def test_pattern_and_top_level_names() -> None:
	program = parse_module(
		"""
const { a, b: c, ...rest } = obj;
let [d, , e = 1] = arr;
function f() { var inner = 1; }
{ var hoisted = 1; let scoped = 2; }
"""
	)
	decl = program.body[0]
	assert pattern_names(decl.declarations[0].target) == ["a", "c", "rest"]  # type: ignore[attr-defined]
	names = top_level_bindings(program)
	assert {"a", "c", "rest", "d", "e", "f", "hoisted"} <= names
	assert "inner" not in names
	assert "scoped" not in names


def test_to_dict_is_json_ready() -> None:
	d = infer("module.exports = require('./a');", module="index.js")
	out = d.to_dict()
	assert out["tag"] == "ReExportAll"
	assert out["module"] == "index.js"
	assert out["reexport_sources"] == ["./a"]
	assert out["default"]["kind"] == "explicit"
