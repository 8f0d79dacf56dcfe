# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module graph: modules keyed by specifier plus resolved import edges.

Specifier resolution belongs to the caller; the graph accepts explicit edges,
a `resolve(importer, raw)` callable, or falls back to `default_resolve`, which
mirrors Node's rules closely enough for relative specifiers: extension and
directory-index probing for `require()`, exact match for `import`.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from esmshift.core.diagnostics import Diagnostic
from esmshift.parser.ast import Program
from esmshift.shapes import ExportShapeDescriptor

ResolveFn = Callable[[str, str], Optional[str]]

REQUIRE_PROBE_SUFFIXES = (".js", ".cjs", ".mjs", ".json", "/index.js")


class ModuleKind(Enum):
	COMMONJS = "commonjs"
	ESM = "esm"
	UNKNOWN = "unknown"

	@classmethod
	def parse(cls, text: str) -> "ModuleKind":
		normalized = text.strip().lower()
		aliases = {"cjs": "commonjs", "module": "esm", "mjs": "esm", "es": "esm"}
		normalized = aliases.get(normalized, normalized)
		for kind in cls:
			if kind.value == normalized:
				return kind
		raise ValueError(f"unknown module kind {text!r}")


@dataclass
class Module:
	"""
	One module in the graph.

	`source` never changes. `program`, `descriptor` and `effective_kind` are
	filled once by phase 1 and then frozen.
	"""

	specifier: str
	source: str
	kind: ModuleKind = ModuleKind.UNKNOWN
	path: Optional[Path] = None
	program: Optional[Program] = field(default=None, repr=False)
	descriptor: Optional[ExportShapeDescriptor] = field(default=None, repr=False)
	effective_kind: Optional[ModuleKind] = None
	diagnostics: List[Diagnostic] = field(default_factory=list, repr=False)
	_frozen: bool = field(default=False, repr=False)

	@property
	def is_json(self) -> bool:
		return self.specifier.endswith(".json")

	@property
	def frozen(self) -> bool:
		return self._frozen

	def attach_analysis(
		self,
		program: Optional[Program],
		descriptor: Optional[ExportShapeDescriptor],
		effective_kind: ModuleKind,
		diagnostics: List[Diagnostic],
	) -> None:
		if self._frozen:
			raise RuntimeError(f"module {self.specifier!r} was already analyzed")
		self.program = program
		self.descriptor = descriptor
		self.effective_kind = effective_kind
		self.diagnostics = list(diagnostics)
		self._frozen = True


@dataclass(frozen=True)
class ImportEdge:
	importer: str
	raw: str
	target: Optional[str]


def normalize_specifier(specifier: str) -> str:
	spec = specifier.replace("\\", "/")
	if spec.startswith("./"):
		spec = spec[2:]
	return posixpath.normpath(spec) if spec else spec


def is_relative(raw: str) -> bool:
	return raw.startswith("./") or raw.startswith("../") or raw.startswith("/") or raw in (".", "..")


def relative_specifier(importer: str, target: str) -> str:
	"""Spelling of `target` as an ESM specifier from inside `importer`."""
	rel = posixpath.relpath(target, posixpath.dirname(importer) or ".")
	if not rel.startswith("."):
		rel = "./" + rel
	return rel


class ModuleGraph:
	def __init__(
		self,
		modules: Optional[List[Module]] = None,
		edges: Optional[List[ImportEdge]] = None,
		resolver: Optional[ResolveFn] = None,
	) -> None:
		self.modules: Dict[str, Module] = {}
		self._edges: Dict[tuple[str, str], Optional[str]] = {}
		self._resolver = resolver
		for module in modules or []:
			self.add_module(module)
		for edge in edges or []:
			self.add_edge(edge.importer, edge.raw, edge.target)

	def __contains__(self, specifier: str) -> bool:
		return specifier in self.modules

	def __iter__(self) -> Iterator[Module]:
		for spec in self.specifiers():
			yield self.modules[spec]

	def __len__(self) -> int:
		return len(self.modules)

	def specifiers(self) -> List[str]:
		"""Deterministic processing order."""
		return sorted(self.modules)

	def get(self, specifier: str) -> Optional[Module]:
		return self.modules.get(specifier)

	def add_module(self, module: Module) -> Module:
		module.specifier = normalize_specifier(module.specifier)
		if module.specifier in self.modules:
			raise ValueError(f"duplicate module {module.specifier!r}")
		self.modules[module.specifier] = module
		return module

	def add_edge(self, importer: str, raw: str, target: Optional[str]) -> None:
		self._edges[(normalize_specifier(importer), raw)] = normalize_specifier(target) if target else None

	@property
	def edges(self) -> List[ImportEdge]:
		return [ImportEdge(imp, raw, tgt) for (imp, raw), tgt in sorted(self._edges.items())]

	def resolve(self, importer: str, raw: str, *, is_require: bool = False) -> Optional[str]:
		"""Target specifier of `raw` imported from `importer`, or None when outside the graph."""
		key = (importer, raw)
		if key in self._edges:
			target = self._edges[key]
			return target if target in self.modules else None
		if self._resolver is not None:
			target = self._resolver(importer, raw)
			if target is None:
				return None
			target = normalize_specifier(target)
			return target if target in self.modules else None
		return default_resolve(self, importer, raw, is_require=is_require)


def default_resolve(graph: ModuleGraph, importer: str, raw: str, *, is_require: bool) -> Optional[str]:
	if not is_relative(raw):
		return None
	if raw.startswith("/"):
		base = posixpath.normpath(raw.lstrip("/"))
	else:
		base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), raw))
	if base in graph.modules:
		return base
	if not is_require:
		return None
	for suffix in REQUIRE_PROBE_SUFFIXES:
		candidate = posixpath.normpath(base + suffix)
		if candidate in graph.modules:
			return candidate
	return None


__all__ = [
	"ImportEdge",
	"Module",
	"ModuleGraph",
	"ModuleKind",
	"REQUIRE_PROBE_SUFFIXES",
	"default_resolve",
	"is_relative",
	"normalize_specifier",
	"relative_specifier",
]
