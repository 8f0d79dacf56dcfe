# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from esmshift.graph import ModuleKind
from esmshift.resolver import BindingKind, exported_names, find_cycles, membership_test, records_by_kind, resolve
from esmshift.parser import parse_module


def test_import_forms(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\nexports.b = 2;\n",
			"main.mjs": """
import lib, { a, b as bee } from './lib.js';
import * as ns from './lib.js';
""",
		}
	)
	result = resolve(graph)
	records = result.for_target("lib.js")
	kinds = [(r.kind, r.name, r.local) for r in records]
	assert (BindingKind.DEFAULT, None, "lib") in kinds
	assert (BindingKind.NAMED, "a", "a") in kinds
	assert (BindingKind.NAMED, "b", "bee") in kinds
	assert (BindingKind.NAMESPACE, None, "ns") in kinds
	assert all(r.consumer == "main.mjs" and r.via == "import" for r in records)
	assert result.targets["main.mjs"] == {"./lib.js": "lib.js"}
	assert result.all_diagnostics() == []


def test_require_forms(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\nexports.b = 2;\n",
			"main.js": """
require('./lib');
const whole = require('./lib');
const { a, b: renamed } = require('./lib.js');
const direct = require('./lib').a;
""",
		}
	)
	records = resolve(graph).for_target("lib.js")
	assert all(r.via == "require" for r in records)
	whole = records_by_kind(records, BindingKind.DYNAMIC_REQUIRE_WHOLE)
	assert [r.local for r in whole] == ["whole"]
	named = records_by_kind(records, BindingKind.NAMED)
	assert [(r.name, r.local) for r in named] == [("a", "a"), ("b", "renamed"), ("a", None)]


def test_require_probes_extensions_and_index(make_graph) -> None:
	graph = make_graph(
		{
			"pkg/index.js": "exports.x = 1;\n",
			"data.json": '{"k": 1}',
			"main.js": "const p = require('./pkg');\nconst d = require('./data');\n",
		}
	)
	result = resolve(graph)
	assert result.targets["main.js"] == {"./pkg": "pkg/index.js", "./data": "data.json"}


def test_import_does_not_probe(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\n",
			"main.mjs": "import { a } from './lib';\n",
		}
	)
	result = resolve(graph)
	assert result.for_target("lib.js") == []
	assert [d.code for d in result.diagnostics["main.mjs"]] == ["unresolved-specifier"]


def test_bare_specifiers_are_ignored(make_graph) -> None:
	graph = make_graph({"main.js": "const fs = require('fs');\nconst x = require('left-pad');\n"})
	result = resolve(graph)
	assert result.targets["main.js"] == {}
	assert result.all_diagnostics() == []


def test_export_from_and_dynamic_import(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\n",
			"index.mjs": """
export { a, default as lib } from './lib.js';
export * from './lib.js';
const later = import('./lib.js');
""",
		}
	)
	records = resolve(graph).for_target("lib.js")
	forms = [(r.kind, r.via, r.name, r.local) for r in records]
	assert (BindingKind.NAMED, "export-from", "a", None) in forms
	assert (BindingKind.DEFAULT, "export-from", None, None) in forms
	assert (BindingKind.NAMESPACE, "export-from", None, None) in forms
	assert (BindingKind.NAMESPACE, "dynamic-import", None, "later") in forms


def test_missing_named_import_is_link_error(make_graph) -> None:
	graph = make_graph(
		{
			"qux.js": "module.exports = function qux() {};\n",
			"main.mjs": "import { helper } from './qux.js';\n",
		}
	)
	result = resolve(graph)
	diagnostics = result.diagnostics["main.mjs"]
	assert [d.code for d in diagnostics] == ["link-error"]
	assert "helper" in diagnostics[0].message
	assert any("NonObjectDefault" in note for note in diagnostics[0].notes)
	assert diagnostics[0].span.line == 1


def test_named_require_of_missing_name_is_not_link_error(make_graph) -> None:
	graph = make_graph(
		{
			"qux.js": "module.exports = function qux() {};\n",
			"main.js": "const { helper } = require('./qux');\n",
		}
	)
	assert resolve(graph).all_diagnostics() == []


def test_exported_names_follow_reexports(make_graph) -> None:
	graph = make_graph(
		{
			"a.js": "exports.x = 1;\nexports.y = 2;\n",
			"b.js": "exports.z = 3;\n",
			"index.js": "module.exports = require('./a');\nmodule.exports.b = require('./b');\n",
			"outside.js": "module.exports = require('some-package');\n",
		}
	)
	assert exported_names(graph, "index.js") == {"x", "y", "z", "b"}
	assert exported_names(graph, "outside.js") is None
	assert exported_names(graph, "missing.js") is None


def test_cycles_are_reported_as_info(make_graph) -> None:
	graph = make_graph(
		{
			"a.js": "const b = require('./b');\nexports.a = 1;\n",
			"b.js": "const a = require('./a');\nexports.b = 1;\n",
			"c.js": "exports.c = 1;\n",
		}
	)
	result = resolve(graph)
	assert result.cycles == [["a.js", "b.js"]]
	diagnostics = result.diagnostics["a.js"]
	assert diagnostics[0].code == "cycle-error"
	assert diagnostics[0].severity == "info"
	assert "a.js -> b.js -> a.js" in diagnostics[0].message


def test_find_cycles_self_loop() -> None:
	assert find_cycles({"a": {"./a": "a"}, "b": {}}) == [["a"]]
	assert find_cycles({"a": {"./b": "b"}, "b": {}}) == []


def test_membership_tests_before_initializer(make_graph) -> None:
	graph = make_graph(
		{
			"flags.js": """
function initialize(name) {
	if (name === 'foo') {
		exports.foo = true;
	}
}
exports.initialize = initialize;
""",
			"main.mjs": """
import * as ns from './flags.js';
if ('foo' in ns) {}
ns.initialize('foo');
if (Object.hasOwn(ns, 'foo')) {}
""",
		}
	)
	records = resolve(graph).for_target("flags.js")
	assert len(records) == 1
	tests = records[0].membership_tests
	assert [(t.name, t.before_initializer) for t in tests] == [("foo", True), ("foo", False)]


def test_membership_test_forms() -> None:
	def first(source: str):
		program = parse_module(source)
		return membership_test(program.body[0].value)  # type: ignore[attr-defined]

	assert first("'a' in ns;") == ("ns", "a")
	assert first("Object.hasOwn(ns, 'b');") == ("ns", "b")
	assert first("ns.hasOwnProperty('c');") == ("ns", "c")
	assert first("Object.prototype.hasOwnProperty.call(ns, 'd');") == ("ns", "d")
	assert first("key in ns;") is None


def test_unanalyzed_consumer_is_skipped(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\n",
			"broken.js": "const x = require('./lib'\n",
		}
	)
	result = resolve(graph)
	assert result.for_target("lib.js") == []
	assert "broken.js" not in result.targets


def test_record_to_dict(make_graph) -> None:
	graph = make_graph(
		{
			"lib.js": "exports.a = 1;\n",
			"main.js": "const { a } = require('./lib');\n",
		},
		{"main.js": ModuleKind.COMMONJS},
	)
	record = resolve(graph).for_target("lib.js")[0]
	out = record.to_dict()
	assert out["consumer"] == "main.js"
	assert out["kind"] == "named"
	assert out["name"] == "a"
	assert out["via"] == "require"
	assert out["line"] == 1
