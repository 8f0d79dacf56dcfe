# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Build a ModuleGraph from files on disk or from a JSON manifest.

File inputs get their kind from the extension (`.mjs` ESM, `.cjs` CommonJS,
`.json` data); `.js` follows the `"type"` field of the nearest `package.json`
between the file and the common root of the inputs, and defaults to
CommonJS. A manifest has the form

	{
		"modules": {"lib/a.js": {"path": "src/a.js", "kind": "commonjs"},
		            "b.js": {"source": "exports.b = 1;"}},
		"edges": [{"importer": "b.js", "raw": "./a", "target": "lib/a.js"}]
	}

where `path` is relative to the manifest and `kind` defaults to UNKNOWN.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from esmshift.core.span import Span
from esmshift.errors import ConfigError
from esmshift.graph import ImportEdge, Module, ModuleGraph, ModuleKind

logger = logging.getLogger(__name__)

EXTENSION_KINDS = {".mjs": ModuleKind.ESM, ".cjs": ModuleKind.COMMONJS, ".json": ModuleKind.ESM}


def _read(path: Path) -> str:
	try:
		return path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as exc:
		raise ConfigError(f"cannot read {path}: {exc}", span=Span(file=str(path))) from None


def common_root(paths: Sequence[Path]) -> Path:
	parents = [str(p.resolve().parent) for p in paths]
	return Path(os.path.commonpath(parents)) if parents else Path.cwd()


def package_type(directory: Path, root: Path, cache: Optional[Dict[Path, Optional[str]]] = None) -> Optional[str]:
	"""`type` of the nearest package.json at or above `directory`, not above `root`."""
	cache = {} if cache is None else cache
	current = directory
	while True:
		if current not in cache:
			manifest = current / "package.json"
			value: Optional[str] = None
			if manifest.is_file():
				try:
					data = json.loads(_read(manifest))
				except json.JSONDecodeError as exc:
					raise ConfigError(f"invalid package.json: {exc.msg}", span=Span(file=str(manifest), line=exc.lineno)) from None
				# a package.json without "type" is CommonJS
				value = (data.get("type") if isinstance(data, dict) else None) or "commonjs"
			cache[current] = value
		if cache[current] is not None:
			return cache[current]
		if current == root or current.parent == current:
			return None
		current = current.parent


def kind_for_file(path: Path, root: Path, cache: Optional[Dict[Path, Optional[str]]] = None) -> ModuleKind:
	suffix = path.suffix.lower()
	if suffix in EXTENSION_KINDS:
		return EXTENSION_KINDS[suffix]
	declared = package_type(path.resolve().parent, root, cache)
	if declared == "module":
		return ModuleKind.ESM
	return ModuleKind.COMMONJS


def graph_from_files(paths: Sequence[Path], root: Optional[Path] = None) -> ModuleGraph:
	"""Modules keyed by their path relative to `root` (default: the inputs' common directory)."""
	if not paths:
		raise ConfigError("no input files")
	missing = [p for p in paths if not p.is_file()]
	if missing:
		raise ConfigError(f"no such file: {missing[0]}", span=Span(file=str(missing[0])))
	root = (root or common_root(paths)).resolve()
	cache: Dict[Path, Optional[str]] = {}
	graph = ModuleGraph()
	for path in paths:
		resolved = path.resolve()
		try:
			specifier = resolved.relative_to(root).as_posix()
		except ValueError:
			raise ConfigError(f"{path} is outside the root {root}", span=Span(file=str(path))) from None
		kind = kind_for_file(path, root, cache)
		logger.debug("input %s as %s (%s)", path, specifier, kind.value)
		try:
			graph.add_module(Module(specifier, _read(path), kind, path=path))
		except ValueError as exc:
			raise ConfigError(str(exc), span=Span(file=str(path))) from None
	return graph


def _edges(data: Any, origin: str) -> List[ImportEdge]:
	edges: List[ImportEdge] = []
	for item in data or []:
		if isinstance(item, dict):
			try:
				edges.append(ImportEdge(item["importer"], item["raw"], item.get("target")))
			except KeyError as exc:
				raise ConfigError(f"edge is missing {exc.args[0]!r}", span=Span(file=origin)) from None
		elif isinstance(item, (list, tuple)) and len(item) == 3:
			edges.append(ImportEdge(item[0], item[1], item[2]))
		else:
			raise ConfigError(f"malformed edge {item!r}", span=Span(file=origin))
	return edges


def graph_from_manifest(path: Path) -> ModuleGraph:
	origin = str(path)
	try:
		data = json.loads(_read(path))
	except json.JSONDecodeError as exc:
		raise ConfigError(f"invalid manifest JSON: {exc.msg}", span=Span(file=origin, line=exc.lineno, column=exc.colno)) from None
	if not isinstance(data, dict) or not isinstance(data.get("modules"), dict):
		raise ConfigError("manifest needs a \"modules\" object", span=Span(file=origin))
	graph = ModuleGraph()
	for specifier, entry in data["modules"].items():
		if isinstance(entry, str):
			entry = {"source": entry}
		if not isinstance(entry, dict):
			raise ConfigError(f"module {specifier!r} must be an object", span=Span(file=origin))
		module_path: Optional[Path] = None
		if "source" in entry:
			source = entry["source"]
		elif "path" in entry:
			module_path = path.parent / entry["path"]
			source = _read(module_path)
		else:
			raise ConfigError(f"module {specifier!r} needs \"source\" or \"path\"", span=Span(file=origin))
		try:
			kind = ModuleKind.parse(entry.get("kind", "unknown"))
		except ValueError as exc:
			raise ConfigError(f"module {specifier!r}: {exc}", span=Span(file=origin)) from None
		try:
			graph.add_module(Module(specifier, source, kind, path=module_path))
		except ValueError as exc:
			raise ConfigError(str(exc), span=Span(file=origin)) from None
	for edge in _edges(data.get("edges"), origin):
		graph.add_edge(edge.importer, edge.raw, edge.target)
	return graph


__all__ = ["EXTENSION_KINDS", "common_root", "graph_from_files", "graph_from_manifest", "kind_for_file", "package_type"]
