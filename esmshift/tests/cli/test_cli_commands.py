# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json

import pytest

from esmshift.cli import EXIT_SAFE, EXIT_UNSAFE, EXIT_USAGE, main

FLAGS = """
function initialize(name) {
	if (name === 'foo') {
		exports.foo = true;
	}
}
exports.initialize = initialize;
"""


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch) -> None:
	# keep a stray esmshift.json in the working directory out of the run
	monkeypatch.chdir(tmp_path)


def _write(root, files: dict) -> list:
	paths = []
	for name, text in files.items():
		path = root / name
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(text)
		paths.append(path)
	return paths


def _safe_project(tmp_path) -> list:
	return _write(
		tmp_path / "src",
		{
			"qux.js": "module.exports = function qux(){}\n",
			"main.js": "const q = require('./qux');\nexports.q = q;\n",
		},
	)


def _unsafe_project(tmp_path) -> list:
	return _write(
		tmp_path / "src",
		{
			"flags.js": FLAGS,
			"main.mjs": "import * as ns from './flags.js';\nif ('foo' in ns) {}\nns.initialize('foo');\n",
		},
	)


def test_analyze_human_output(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	assert main(["analyze", *map(str, paths)]) == EXIT_SAFE
	out = capsys.readouterr().out
	assert "qux.js: NonObjectDefault" in out
	assert "main.js: NamedOnly" in out
	assert "verdict: safe (2 module(s)" in out


def test_analyze_json_output(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	assert main(["analyze", "--json", *map(str, paths)]) == EXIT_SAFE
	payload = json.loads(capsys.readouterr().out)
	assert payload["verdict"] == "safe"
	assert [m["specifier"] for m in payload["modules"]] == ["main.js", "qux.js"]
	assert payload["bindings"][0]["kind"] == "dynamic-require-whole"
	qux = payload["modules"][1]
	assert qux["shape"]["tag"] == "NonObjectDefault"
	assert qux["plan"]["override"]["name"] == "module.exports"
	assert "source" not in qux["plan"]


def test_analyze_unsafe_exit_code(tmp_path, capsys) -> None:
	paths = _unsafe_project(tmp_path)
	assert main(["analyze", *map(str, paths)]) == EXIT_UNSAFE
	captured = capsys.readouterr()
	assert "verdict: unsafe" in captured.out
	assert "membership-before-init" in captured.err


def test_fail_on_warning(tmp_path) -> None:
	paths = _write(tmp_path, {"dbg.js": "if (debug) { exports.trace = true; }\n"})
	assert main(["analyze", *map(str, paths)]) == EXIT_SAFE
	assert main(["analyze", "--fail-on", "warning", *map(str, paths)]) == EXIT_UNSAFE


def test_migrate_prints_to_stdout(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	assert main(["migrate", *map(str, paths)]) == EXIT_SAFE
	out = capsys.readouterr().out
	assert "// ---- qux.js ----\nfunction qux(){}\n" in out
	assert "import q from './qux.js';" in out
	assert paths[0].read_text() == "module.exports = function qux(){}\n"


def test_migrate_out_dir(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	out_dir = tmp_path / "out"
	assert main(["migrate", "--out-dir", str(out_dir), *map(str, paths)]) == EXIT_SAFE
	assert (out_dir / "qux.js").read_text() == "function qux(){}\n\nexport default qux;\nexport { qux as 'module.exports' };\n"
	assert (out_dir / "main.js").read_text().startswith("import q from './qux.js';\n")


def test_migrate_in_place(tmp_path) -> None:
	paths = _safe_project(tmp_path)
	assert main(["migrate", "--write", *map(str, paths)]) == EXIT_SAFE
	assert paths[0].read_text().startswith("function qux(){}")


def test_unsafe_migration_is_not_written_without_force(tmp_path, capsys) -> None:
	paths = _unsafe_project(tmp_path)
	out_dir = tmp_path / "out"
	assert main(["migrate", "--out-dir", str(out_dir), *map(str, paths)]) == EXIT_UNSAFE
	assert not (out_dir / "flags.js").exists()
	assert "use --force" in capsys.readouterr().err
	assert main(["migrate", "--force", "--out-dir", str(out_dir), *map(str, paths)]) == EXIT_UNSAFE
	assert (out_dir / "flags.js").read_text().startswith("let foo;")
	assert not (out_dir / "main.mjs").exists()


def test_migrate_json_lists_written_files(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	out_dir = tmp_path / "out"
	assert main(["migrate", "--json", "--out-dir", str(out_dir), *map(str, paths)]) == EXIT_SAFE
	payload = json.loads(capsys.readouterr().out)
	assert sorted(payload["written"]) == sorted([str(out_dir / "main.js"), str(out_dir / "qux.js")])
	assert payload["modules"][1]["plan"]["source"].startswith("function qux(){}")


def test_dynamic_default_flag(tmp_path, capsys) -> None:
	paths = _write(tmp_path, {"dbg.js": "if (debug) { exports.trace = true; }\n"})
	assert main(["migrate", "--dynamic-default", "snapshot", *map(str, paths)]) == EXIT_SAFE
	assert "export default Object.freeze({ trace });" in capsys.readouterr().out


def test_no_create_require_flag(tmp_path, capsys) -> None:
	paths = _write(tmp_path, {"lazy.js": "exports.load = () => require('./other');\n"})
	assert main(["migrate", "--no-create-require", *map(str, paths)]) == EXIT_SAFE
	captured = capsys.readouterr()
	assert "createRequire" not in captured.out
	assert "require-left" in captured.err


def test_shape_command(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	assert main(["shape", "--json", *map(str, paths)]) == EXIT_SAFE
	shapes = json.loads(capsys.readouterr().out)
	assert shapes["qux.js"]["shape"]["tag"] == "NonObjectDefault"
	assert shapes["main.js"]["kind"] == "commonjs"


def test_shape_reports_analysis_failure(tmp_path, capsys) -> None:
	paths = _write(tmp_path, {"bad.js": "exports[name] = 1;\n"})
	assert main(["shape", *map(str, paths)]) == EXIT_UNSAFE
	captured = capsys.readouterr()
	assert "bad.js: unanalyzed" in captured.out
	assert "analysis-error" in captured.err


def test_package_type_module(tmp_path, capsys) -> None:
	paths = _write(tmp_path, {"package.json": '{"type": "module"}', "a.js": "export const a = 1;\n", "b.cjs": "exports.b = 1;\n"})
	assert main(["shape", "--json", str(paths[1]), str(paths[2])]) == EXIT_SAFE
	shapes = json.loads(capsys.readouterr().out)
	assert shapes["a.js"]["kind"] == "esm"
	assert shapes["b.cjs"]["kind"] == "commonjs"


def test_manifest_input(tmp_path, capsys) -> None:
	_write(tmp_path, {"lib/a.js": "exports.a = 1;\n"})
	manifest = tmp_path / "graph.json"
	manifest.write_text(
		json.dumps(
			{
				"modules": {
					"lib/a.js": {"path": "lib/a.js", "kind": "commonjs"},
					"main.mjs": {"source": "import { a } from 'lib-a';\n", "kind": "esm"},
				},
				"edges": [{"importer": "main.mjs", "raw": "lib-a", "target": "lib/a.js"}],
			}
		)
	)
	assert main(["analyze", "--json", "--manifest", str(manifest)]) == EXIT_SAFE
	payload = json.loads(capsys.readouterr().out)
	assert payload["bindings"] == [
		{
			"consumer": "main.mjs",
			"specifier": "lib-a",
			"target": "lib/a.js",
			"kind": "named",
			"via": "import",
			"line": 1,
			"column": payload["bindings"][0]["column"],
			"name": "a",
			"local": "a",
		}
	]


def test_config_file_is_applied(tmp_path, capsys) -> None:
	paths = _write(tmp_path, {"dbg.js": "if (debug) { exports.trace = true; }\n"})
	(tmp_path / "esmshift.json").write_text('{"dynamic_default": "snapshot", "emit_info": false}')
	assert main(["migrate", *map(str, paths)]) == EXIT_SAFE
	assert "Object.freeze" in capsys.readouterr().out


def test_invalid_config_is_usage_error(tmp_path, capsys) -> None:
	paths = _safe_project(tmp_path)
	config = tmp_path / "bad.json"
	config.write_text('{"workers": 0}')
	assert main(["analyze", "--config", str(config), *map(str, paths)]) == EXIT_USAGE
	assert "esmshift: error: [config-error] workers must be a positive integer" in capsys.readouterr().err

	config.write_text('{"colour": true}')
	assert main(["analyze", "--json", "--config", str(config), *map(str, paths)]) == EXIT_USAGE
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == EXIT_USAGE
	assert payload["diagnostics"][0]["code"] == "config-error"
	assert "colour" in payload["diagnostics"][0]["message"]


def test_missing_input_is_usage_error(tmp_path, capsys) -> None:
	assert main(["analyze", str(tmp_path / "nope.js")]) == EXIT_USAGE
	assert "no such file" in capsys.readouterr().err
	assert main(["analyze"]) == EXIT_USAGE


def test_files_and_manifest_are_exclusive(tmp_path) -> None:
	paths = _safe_project(tmp_path)
	assert main(["analyze", "--manifest", str(tmp_path / "m.json"), str(paths[0])]) == EXIT_USAGE


def test_unknown_command_exits_with_usage(capsys) -> None:
	with pytest.raises(SystemExit) as info:
		main(["frobnicate"])
	assert info.value.code == 2
