# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from esmshift.graph import Module, ModuleGraph, ModuleKind, normalize_specifier, relative_specifier


def test_module_kind_parse() -> None:
	assert ModuleKind.parse("cjs") is ModuleKind.COMMONJS
	assert ModuleKind.parse(" Module ") is ModuleKind.ESM
	assert ModuleKind.parse("unknown") is ModuleKind.UNKNOWN
	with pytest.raises(ValueError):
		ModuleKind.parse("amd")


def test_specifier_helpers() -> None:
	assert normalize_specifier("./lib/../a.js") == "a.js"
	assert normalize_specifier("src\\b.js") == "src/b.js"
	assert relative_specifier("src/main.js", "src/lib/a.js") == "./lib/a.js"
	assert relative_specifier("src/main.js", "b.js") == "../b.js"


def test_graph_order_and_duplicates() -> None:
	graph = ModuleGraph([Module("./b.js", ""), Module("a.js", "")])
	assert graph.specifiers() == ["a.js", "b.js"]
	assert [m.specifier for m in graph] == ["a.js", "b.js"]
	assert "b.js" in graph
	with pytest.raises(ValueError):
		graph.add_module(Module("b.js", ""))


def test_explicit_edges_and_resolver() -> None:
	graph = ModuleGraph([Module("a.js", ""), Module("b.js", "")])
	graph.add_edge("a.js", "lib", "b.js")
	graph.add_edge("a.js", "gone", None)
	assert graph.resolve("a.js", "lib") == "b.js"
	assert graph.resolve("a.js", "gone") is None
	assert [e.raw for e in graph.edges] == ["gone", "lib"]

	custom = ModuleGraph([Module("x/y.js", "")], resolver=lambda importer, raw: "x/y.js" if raw == "@app/y" else None)
	assert custom.resolve("main.js", "@app/y") == "x/y.js"
	assert custom.resolve("main.js", "./y.js") is None


def test_analysis_is_frozen_once() -> None:
	module = Module("a.js", "exports.a = 1;", ModuleKind.COMMONJS)
	module.attach_analysis(None, None, ModuleKind.COMMONJS, [])
	assert module.frozen
	with pytest.raises(RuntimeError):
		module.attach_analysis(None, None, ModuleKind.COMMONJS, [])
