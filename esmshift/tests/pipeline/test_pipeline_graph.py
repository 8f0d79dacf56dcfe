# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from esmshift.config import AnalyzerConfig
from esmshift.graph import Module, ModuleGraph, ModuleKind
from esmshift.pipeline import analyze_graph, analyze_module, analyze_sources, iter_outputs
from esmshift.shapes import DefaultKind, ShapeTag


def test_parse_failure_does_not_stop_the_graph() -> None:
	report = analyze_sources({"bad.js": "exports.a = ;\n", "good.js": "exports.b = 1;\n"})
	bad = report.module("bad.js")
	good = report.module("good.js")
	assert bad is not None and good is not None
	assert bad.descriptor is None and bad.output is None
	assert [(d.code, d.phase) for d in bad.diagnostics] == [("parse-error", "parse")]
	assert good.output is not None
	assert not report.safe


def test_inference_failure_is_reported_in_infer_phase() -> None:
	report = analyze_sources({"dyn.js": "exports[key] = 1;\n"})
	module = report.module("dyn.js")
	assert module is not None
	assert [(d.code, d.phase) for d in module.diagnostics] == [("analysis-error", "infer")]


def test_json_modules() -> None:
	graph = ModuleGraph([Module("data.json", '{"a": 1}'), Module("bad.json", "{")])
	ok = analyze_module(graph.get("data.json"))  # type: ignore[arg-type]
	assert ok.descriptor is not None
	assert ok.descriptor.tag is ShapeTag.ESM_STATIC
	assert ok.descriptor.default.kind is DefaultKind.EXPLICIT
	assert ok.descriptor.named == []
	bad = analyze_module(graph.get("bad.json"))  # type: ignore[arg-type]
	assert bad.descriptor is None
	assert bad.diagnostics[0].code == "parse-error"


def test_analyze_module_is_idempotent() -> None:
	module = Module("a.js", "exports.a = 1;\n", ModuleKind.COMMONJS)
	first = analyze_module(module)
	descriptor = first.descriptor
	assert analyze_module(module).descriptor is descriptor


def test_workers_keep_deterministic_order() -> None:
	sources = {f"m{i}.js": f"exports.v{i} = {i};\n" for i in range(8)}
	sources["main.js"] = "\n".join(f"const {{ v{i} }} = require('./m{i}');" for i in range(8)) + "\n"
	serial = analyze_sources(sources)
	parallel = analyze_sources(sources, config=AnalyzerConfig(workers=4))
	assert [m.specifier for m in parallel.modules] == [m.specifier for m in serial.modules]
	assert [m.output for m in parallel.modules] == [m.output for m in serial.modules]
	assert parallel.to_dict() == serial.to_dict()


def test_render_output_off_skips_rewrite(make_graph) -> None:
	graph = make_graph({"a.js": "exports.a = 1;\n"}, analyzed=False)
	report = analyze_graph(graph, render_output=False)
	module = report.module("a.js")
	assert module is not None
	assert module.plan is not None and module.plan.source_text is None
	assert module.output is None
	assert list(iter_outputs(report)) == []


def test_unknown_kind_is_resolved_per_module() -> None:
	report = analyze_sources(
		{"a.js": "export const a = 1;\n", "b.js": "exports.b = 1;\n"},
		kinds={"a.js": ModuleKind.UNKNOWN, "b.js": ModuleKind.UNKNOWN},
	)
	a = report.module("a.js")
	b = report.module("b.js")
	assert a is not None and b is not None
	assert a.kind is ModuleKind.ESM
	assert b.kind is ModuleKind.COMMONJS
	assert [d.code for d in b.diagnostics][0] == "kind-inferred"
	assert [m.specifier for m in iter_outputs(report)] == ["b.js"]


def test_report_json_round_trip() -> None:
	report = analyze_sources({"qux.js": "module.exports = function qux(){}\n", "main.js": "const q = require('./qux');\n"})
	text = report.to_json()
	assert '"verdict": "safe"' in text
	data = report.to_dict()
	assert data["cycles"] == []
	assert data["fail_on"] == "error"
	assert {m["specifier"] for m in data["modules"]} == {"main.js", "qux.js"}
