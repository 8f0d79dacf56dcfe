# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from esmshift.config import AnalyzerConfig
from esmshift.graph import ModuleKind
from esmshift.inference import infer
from esmshift.resolver import BindingKind, ConsumerBindingRecord
from esmshift.shapes import DefaultKind, ShapeTag
from esmshift.synthesizer import MEMBERSHIP_WARNING, MODULE_EXPORTS, ShimKind, synthesize


def _require_whole(target: str) -> ConsumerBindingRecord:
	return ConsumerBindingRecord("main.js", "./" + target, target, BindingKind.DYNAMIC_REQUIRE_WHOLE, local="x", via="require")


def test_named_only_plan() -> None:
	d = infer(
		"""
exports.Foo = class {};
exports.bar = 'bar';
""",
		module="foo.js",
	)
	plan = synthesize(d)
	assert plan.named_names() == ["Foo", "bar"]
	assert plan.locals == {"Foo": "Foo", "bar": "bar"}
	assert plan.default is not None
	assert plan.exposed_default().kind is DefaultKind.SYNTHESIZED
	assert [s.kind for s in plan.shims] == [ShimKind.SYNTHESIZED_DEFAULT]
	assert plan.render_exports() == "export { Foo, bar };\nexport default { Foo, bar };"


def test_export_names_that_are_not_identifiers() -> None:
	d = infer("exports['kebab-name'] = 1;\nexports['class'] = 2;\n", module="odd.js")
	plan = synthesize(d)
	ident = plan.locals["kebab-name"]
	assert ident.isidentifier()
	assert plan.locals["class"] != "class"
	rendered = plan.render_exports()
	assert f"{ident} as 'kebab-name'" in rendered
	assert f"'kebab-name': {ident}" in rendered


def test_local_provenance_reuses_declaration() -> None:
	d = infer(
		"""
function helper() {}
exports.helper = helper;
exports.alias = helper;
""",
		module="h.js",
	)
	plan = synthesize(d)
	assert plan.locals == {"helper": "helper", "alias": "helper"}
	assert "export { helper, helper as alias };" in plan.render_exports()


def test_fresh_locals_avoid_existing_identifiers() -> None:
	d = infer(
		"""
const value = 1;
exports.value = value + 1;
""",
		module="v.js",
	)
	plan = synthesize(d)
	assert plan.locals["value"] != "value"
	assert plan.locals["value"] not in d.declared


def test_non_object_default_without_require_consumers() -> None:
	d = infer("module.exports = function qux() {};", module="qux.js")
	plan = synthesize(d)
	assert plan.default_local == "qux"
	assert plan.override is None
	assert plan.render_exports() == "export default qux;"


def test_non_object_default_override_for_require_consumers() -> None:
	d = infer("module.exports = function qux() {};", module="qux.js")
	plan = synthesize(d, [_require_whole("qux.js")])
	assert plan.override is not None
	assert plan.override.name == MODULE_EXPORTS
	assert ShimKind.MODULE_EXPORTS_OVERRIDE in [s.kind for s in plan.shims]
	assert plan.render_exports() == "export default qux;\nexport { qux as 'module.exports' };"


def test_non_object_default_anonymous_value_gets_module_local() -> None:
	d = infer("module.exports = () => 42;", module="lib/answer-value.js")
	plan = synthesize(d)
	assert plan.default_local is not None
	assert plan.default_local.isidentifier()
	assert plan.render_exports() == f"export default {plan.default_local};"


def test_attached_properties_write_through_default_local() -> None:
	d = infer(
		"""
function main() {}
module.exports = main;
module.exports.helper = 1;
""",
		module="m.js",
	)
	plan = synthesize(d)
	assert plan.locals["helper"] == "main.helper"
	assert plan.named == []


def test_dynamic_conditional_live_default() -> None:
	d = infer(
		"""
function initialize(name) {
	if (name === 'foo') {
		exports.foo = true;
	}
}
exports.initialize = initialize;
""",
		module="flags.js",
	)
	plan = synthesize(d)
	assert plan.tag is ShapeTag.DYNAMIC_CONDITIONAL
	assert plan.predeclared == ["foo"]
	assert plan.named_names() == ["initialize", "foo"]
	assert plan.default is not None and plan.default.live
	kinds = [s.kind for s in plan.shims]
	assert ShimKind.PREDECLARED in kinds and ShimKind.LIVE_DEFAULT in kinds
	codes = [d.code for d in plan.diagnostics]
	assert codes == ["dynamic-default", "membership-semantics"]
	assert plan.diagnostics[1].message == MEMBERSHIP_WARNING
	rendered = plan.render_exports()
	assert "export { initialize, foo };" in rendered
	assert "get foo() { return foo; }" in rendered


def test_dynamic_conditional_snapshot_default() -> None:
	d = infer("if (debug) { exports.trace = true; }\n", module="dbg.js")
	plan = synthesize(d, config=AnalyzerConfig(dynamic_default="snapshot"))
	assert plan.default is not None and plan.default.frozen and not plan.default.live
	assert plan.render_exports().endswith("export default Object.freeze({ trace });")
	assert ShimKind.SNAPSHOT_DEFAULT in [s.kind for s in plan.shims]


def test_initializer_not_exported_gets_export() -> None:
	d = infer(
		"""
function setup() {
	if (enabled) exports.feature = 1;
}
setup();
""",
		module="s.js",
	)
	plan = synthesize(d)
	assert plan.initializer == "setup"
	assert "setup" in plan.named_names()
	assert ShimKind.INITIALIZER_EXPORT in [s.kind for s in plan.shims]


def test_reexport_all_forwards_default() -> None:
	d = infer("module.exports = require('./a');", module="index.js")
	plan = synthesize(d)
	assert plan.star_sources == ["./a"]
	assert plan.default is not None and plan.default.source == "./a"
	assert not plan.manual_default
	assert plan.render_exports(lambda raw: raw + ".js") == "export * from './a.js';\nexport { default } from './a.js';"


def test_reexport_aggregate_needs_manual_default() -> None:
	d = infer(
		"""
module.exports = require('./a');
module.exports.b = require('./b');
""",
		module="index.js",
	)
	plan = synthesize(d)
	assert plan.manual_default
	assert plan.default is None
	assert [d.code for d in plan.diagnostics] == ["ambiguous-default"]
	assert plan.diagnostics[0].severity == "warning"
	assert plan.diagnostics[0].message == "default export requires manual migration: the whole value combines './a', './b'"
	assert plan.render_exports() == "export { default as b } from './b';\nexport * from './a';\nexport * from './b';"


def test_reexport_named_keeps_local_keys() -> None:
	d = infer("const extra = 1;\nmodule.exports = { ...require('./a'), extra };\n", module="r.js")
	plan = synthesize(d)
	assert plan.named_names() == ["extra"]
	assert plan.manual_default
	assert plan.diagnostics[0].message.endswith("with local keys extra")


def test_esm_static_plan_has_no_shims() -> None:
	d = infer(
		"""
export const a = 1;
export { b } from './b.js';
export default a;
""",
		ModuleKind.ESM,
		module="e.mjs",
	)
	plan = synthesize(d)
	assert plan.shims == []
	assert plan.diagnostics == []
	assert plan.render_exports() == "export { a };\nexport { b } from './b.js';\nexport default a;"


def test_plan_to_dict() -> None:
	d = infer("module.exports = function qux() {};", module="qux.js")
	out = synthesize(d, [_require_whole("qux.js")]).to_dict()
	assert out["tag"] == "NonObjectDefault"
	assert out["override"]["name"] == MODULE_EXPORTS
	assert out["default"]["local"] == "qux"
	assert [s["kind"] for s in out["shims"]] == ["module-exports-override"]
