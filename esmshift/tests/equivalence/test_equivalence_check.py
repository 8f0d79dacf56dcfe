# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from esmshift.config import AnalyzerConfig
from esmshift.core.diagnostics import ERROR, INFO, WARNING
from esmshift.equivalence import check, is_safe
from esmshift.graph import ModuleKind
from esmshift.inference import infer
from esmshift.pipeline import analyze_sources
from esmshift.resolver import BindingKind, ConsumerBindingRecord
from esmshift.synthesizer import synthesize

FLAGS = """
function initialize(name) {
	if (name === 'foo') {
		exports.foo = true;
	}
}
exports.initialize = initialize;
"""


def _record(kind: BindingKind, name=None, via="import") -> ConsumerBindingRecord:
	return ConsumerBindingRecord("main.mjs", "./lib.js", "lib.js", kind, name=name, via=via)


def _by_code(report, spec: str) -> dict:
	module = report.module(spec)
	assert module is not None
	out: dict = {}
	for d in module.diagnostics:
		out.setdefault(d.code, []).append(d)
	return out


def test_require_whole_of_function_default_is_preserved() -> None:
	report = analyze_sources(
		{
			"qux.js": "module.exports = function qux(){}\n",
			"main.js": "const q = require('./qux');\n",
		}
	)
	found = _by_code(report, "qux.js")
	assert [d.severity for d in found["binding-preserved"]] == [INFO]
	assert report.safe


def test_esm_default_and_namespace_imports_are_preserved() -> None:
	report = analyze_sources(
		{
			"foo.js": "exports.Foo = class {};\nexports.bar = 'bar';\n",
			"main.mjs": "import foo, { bar } from './foo.js';\nimport * as ns from './foo.js';\n",
		},
		kinds={"main.mjs": ModuleKind.ESM},
	)
	found = _by_code(report, "foo.js")
	assert len(found["binding-preserved"]) == 3
	assert "binding-mismatch" not in found
	assert report.safe


def test_manual_default_is_reported_for_default_consumers() -> None:
	report = analyze_sources(
		{
			"a.js": "exports.x = 1;\n",
			"b.js": "exports.y = 2;\n",
			"index.js": "module.exports = require('./a');\nmodule.exports.b = require('./b');\n",
			"main.mjs": "import idx, { x } from './index.js';\n",
		},
		kinds={"main.mjs": ModuleKind.ESM},
	)
	found = _by_code(report, "index.js")
	assert found["default-omitted"][0].severity == ERROR
	assert "forwarded by `export *`" in found["binding-preserved"][0].message
	assert not report.safe
	assert [d.code for d in report.blocking] == ["default-omitted"]


def test_membership_test_before_initializer_is_an_error() -> None:
	report = analyze_sources(
		{
			"flags.js": FLAGS,
			"main.mjs": "import * as ns from './flags.js';\nif ('foo' in ns) {}\nns.initialize('foo');\n",
		},
		kinds={"main.mjs": ModuleKind.ESM},
	)
	found = _by_code(report, "flags.js")
	errors = found["membership-before-init"]
	assert errors[0].severity == ERROR
	assert errors[0].span.line == 2
	assert not report.safe


def test_membership_test_after_initializer_is_a_warning() -> None:
	report = analyze_sources(
		{
			"flags.js": FLAGS,
			"main.mjs": "import * as ns from './flags.js';\nns.initialize('foo');\nif ('foo' in ns) {}\n",
		},
		kinds={"main.mjs": ModuleKind.ESM},
	)
	found = _by_code(report, "flags.js")
	assert "membership-before-init" not in found
	assert found["membership-semantics"][-1].severity == WARNING
	assert report.safe
	assert not analyze_sources(
		{
			"flags.js": FLAGS,
			"main.mjs": "import * as ns from './flags.js';\nns.initialize('foo');\nif ('foo' in ns) {}\n",
		},
		kinds={"main.mjs": ModuleKind.ESM},
		config=AnalyzerConfig(fail_on="warning"),
	).safe


def test_different_default_is_a_mismatch() -> None:
	before = infer("module.exports = function a() {};", module="lib.js")
	plan = synthesize(infer("module.exports = function b() {};", module="lib.js"))
	out = check(before, plan, [_record(BindingKind.DEFAULT)])
	assert [d.code for d in out] == ["binding-mismatch"]
	assert any(note.startswith("before:") for note in out[0].notes)
	assert not is_safe(out)


def test_missing_named_export_is_a_mismatch() -> None:
	before = infer("exports.x = 1;\nexports.y = 2;\n", module="lib.js")
	plan = synthesize(before)
	plan.named = [e for e in plan.named if e.name != "y"]
	out = check(before, plan, [_record(BindingKind.NAMED, "x"), _record(BindingKind.NAMED, "y")])
	assert [(d.code, d.severity) for d in out] == [("binding-preserved", INFO), ("binding-mismatch", ERROR)]


def test_namespace_coverage_reports_lost_keys() -> None:
	before = infer("exports.x = 1;\nexports.y = 2;\n", module="lib.js")
	plan = synthesize(before)
	plan.named = [e for e in plan.named if e.name != "y"]
	out = check(before, plan, [_record(BindingKind.NAMESPACE)])
	assert [d.code for d in out] == ["namespace-coverage"]
	assert out[0].message.endswith("y")


def test_property_read_through_require_uses_override() -> None:
	before = infer("module.exports = function qux() {};", module="lib.js")
	whole = ConsumerBindingRecord("main.js", "./lib", "lib.js", BindingKind.DYNAMIC_REQUIRE_WHOLE, local="q", via="require")
	plan = synthesize(before, [whole])
	out = check(before, plan, [whole, _record(BindingKind.NAMED, "name", via="require")])
	assert [d.code for d in out] == ["binding-preserved", "binding-preserved"]


def test_absent_property_read_through_require_is_preserved() -> None:
	report = analyze_sources(
		{
			"x.js": "exports.a = 1;\n",
			"main.js": "const { a, b } = require('./x');\n",
		}
	)
	found = _by_code(report, "x.js")
	assert "binding-mismatch" not in found
	assert any("stays `undefined`" in d.message for d in found["binding-preserved"])
	assert report.safe

	before = infer("exports.a = 1;\n", module="lib.js")
	out = check(before, synthesize(before), [_record(BindingKind.NAMED, "b")])
	assert [d.code for d in out] == ["binding-mismatch"]


def test_info_can_be_suppressed() -> None:
	before = infer("exports.x = 1;\n", module="lib.js")
	plan = synthesize(before)
	assert check(before, plan, [_record(BindingKind.NAMED, "x")], emit_info=False) == []
	report = analyze_sources(
		{
			"qux.js": "module.exports = function qux(){}\n",
			"main.js": "const q = require('./qux');\n",
		},
		config=AnalyzerConfig(emit_info=False),
	)
	assert all(d.severity != INFO for d in report.diagnostics)


def test_unknown_star_names_are_assumed_present() -> None:
	before = infer("module.exports = require('some-package');\n", module="lib.js")
	plan = synthesize(before)
	out = check(before, plan, [_record(BindingKind.NAMED, "anything")], star_names=None)
	assert [d.code for d in out] == ["binding-preserved"]
	out = check(before, plan, [_record(BindingKind.NAMED, "anything")], star_names={"other"})
	assert [d.code for d in out] == ["binding-mismatch"]
