# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json

import pytest

from esmshift.config import AnalyzerConfig, load_config
from esmshift.errors import ConfigError
from esmshift.graph import ModuleKind
from esmshift.loader import graph_from_files, graph_from_manifest, kind_for_file


def test_defaults_without_config_file(tmp_path) -> None:
	config = load_config(cwd=tmp_path)
	assert config == AnalyzerConfig()
	assert config.workers == 1
	assert config.dynamic_default == "live"
	assert config.fail_on == "error"


def test_config_file_in_cwd(tmp_path) -> None:
	(tmp_path / "esmshift.json").write_text('{"workers": 4, "fail_on": "warning"}')
	config = load_config(cwd=tmp_path)
	assert config.workers == 4
	assert config.fail_on == "warning"


def test_merged_ignores_none() -> None:
	config = AnalyzerConfig().merged(workers=None, fail_on="warning")
	assert config.workers == 1
	assert config.fail_on == "warning"


@pytest.mark.parametrize(
	"data",
	[
		{"workers": 0},
		{"workers": True},
		{"dynamic_default": "eager"},
		{"fail_on": "info"},
		{"emit_info": "yes"},
		{"no_such_key": 1},
	],
)
def test_invalid_values(tmp_path, data) -> None:
	path = tmp_path / "cfg.json"
	path.write_text(json.dumps(data))
	with pytest.raises(ConfigError) as info:
		load_config(path)
	assert info.value.code == "config-error"
	assert info.value.span.file == str(path)


def test_malformed_config_file(tmp_path) -> None:
	path = tmp_path / "cfg.json"
	path.write_text("{not json")
	with pytest.raises(ConfigError) as info:
		load_config(path)
	assert info.value.span.line == 1
	path.write_text("[1, 2]")
	with pytest.raises(ConfigError):
		load_config(path)
	with pytest.raises(ConfigError):
		load_config(tmp_path / "missing.json")


def test_kind_from_extension_and_package(tmp_path) -> None:
	(tmp_path / "esm").mkdir()
	(tmp_path / "esm" / "package.json").write_text('{"type": "module"}')
	(tmp_path / "package.json").write_text('{"name": "app"}')
	assert kind_for_file(tmp_path / "a.mjs", tmp_path) is ModuleKind.ESM
	assert kind_for_file(tmp_path / "a.cjs", tmp_path) is ModuleKind.COMMONJS
	assert kind_for_file(tmp_path / "esm" / "b.js", tmp_path) is ModuleKind.ESM
	assert kind_for_file(tmp_path / "c.js", tmp_path) is ModuleKind.COMMONJS


def test_graph_from_files_specifiers(tmp_path) -> None:
	(tmp_path / "lib").mkdir()
	a = tmp_path / "lib" / "a.js"
	b = tmp_path / "main.js"
	a.write_text("exports.a = 1;\n")
	b.write_text("const { a } = require('./lib/a');\n")
	graph = graph_from_files([a, b])
	assert graph.specifiers() == ["lib/a.js", "main.js"]
	assert graph.get("main.js").path == b  # type: ignore[union-attr]
	with pytest.raises(ConfigError):
		graph_from_files([a], root=tmp_path / "lib" / "nested")


def test_manifest_errors(tmp_path) -> None:
	path = tmp_path / "m.json"
	for text in (
		"{",
		'{"modules": []}',
		'{"modules": {"a.js": 3}}',
		'{"modules": {"a.js": {}}}',
		'{"modules": {"a.js": {"source": "", "kind": "amd"}}}',
		'{"modules": {"a.js": ""}, "edges": [{"raw": "x"}]}',
		'{"modules": {"a.js": ""}, "edges": ["bad"]}',
	):
		path.write_text(text)
		with pytest.raises(ConfigError):
			graph_from_manifest(path)


def test_manifest_shorthand_and_triples(tmp_path) -> None:
	path = tmp_path / "m.json"
	path.write_text(json.dumps({"modules": {"a.js": "exports.a = 1;", "b.js": "require('x');"}, "edges": [["b.js", "x", "a.js"]]}))
	graph = graph_from_manifest(path)
	assert graph.get("a.js").kind is ModuleKind.UNKNOWN  # type: ignore[union-attr]
	assert graph.resolve("b.js", "x") == "a.js"
