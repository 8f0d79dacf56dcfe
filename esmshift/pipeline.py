# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Graph-wide orchestration.

Phase 1 parses and infers every module; phase 2 (resolve, synthesize, render,
check) starts only after phase 1 finished for the whole graph, because the
resolver and the rewriter read other modules' descriptors. A module that
fails analysis contributes diagnostics and no plan; the rest of the graph is
still processed.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from esmshift.config import AnalyzerConfig
from esmshift.core.diagnostics import INFO, Diagnostic, at_or_above
from esmshift.core.span import Span
from esmshift.equivalence import check
from esmshift.errors import AnalysisError
from esmshift.graph import Module, ModuleGraph, ModuleKind
from esmshift.inference import effective_kind, infer
from esmshift.parser import parse_module
from esmshift.resolver import ConsumerBindingRecord, ResolutionResult, exported_names, resolve
from esmshift.rewrite import rewrite
from esmshift.shapes import DefaultKind, DefaultValue, ExportShapeDescriptor, Provenance, ProvenanceKind, ShapeTag
from esmshift.synthesizer import CompatibilityPlan, synthesize

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ModuleReport:
	specifier: str
	kind: Optional[ModuleKind] = None
	descriptor: Optional[ExportShapeDescriptor] = None
	plan: Optional[CompatibilityPlan] = None
	output: Optional[str] = None
	diagnostics: List[Diagnostic] = field(default_factory=list)

	@property
	def migrated(self) -> bool:
		"""A rewritten source was produced (CommonJS input that analyzed cleanly)."""
		return self.output is not None and self.descriptor is not None and self.descriptor.tag is not ShapeTag.ESM_STATIC

	def to_dict(self) -> Dict[str, Any]:
		return {
			"specifier": self.specifier,
			"kind": self.kind.value if self.kind is not None else None,
			"shape": self.descriptor.to_dict() if self.descriptor is not None else None,
			"plan": self.plan.to_dict() if self.plan is not None else None,
			"diagnostics": [d.to_dict() for d in self.diagnostics],
		}


@dataclass
class GraphReport:
	modules: List[ModuleReport]
	bindings: List[ConsumerBindingRecord] = field(default_factory=list)
	cycles: List[List[str]] = field(default_factory=list)
	fail_on: str = "error"

	def module(self, specifier: str) -> Optional[ModuleReport]:
		for report in self.modules:
			if report.specifier == specifier:
				return report
		return None

	@property
	def diagnostics(self) -> List[Diagnostic]:
		return [d for report in self.modules for d in report.diagnostics]

	@property
	def blocking(self) -> List[Diagnostic]:
		"""Diagnostics at or above the configured `fail_on` severity."""
		return at_or_above(self.diagnostics, self.fail_on)

	@property
	def safe(self) -> bool:
		return not self.blocking

	def to_dict(self) -> Dict[str, Any]:
		return {
			"verdict": "safe" if self.safe else "unsafe",
			"fail_on": self.fail_on,
			"modules": [m.to_dict() for m in self.modules],
			"bindings": [b.to_dict() for b in self.bindings],
			"cycles": [list(c) for c in self.cycles],
			"diagnostics": [d.to_dict() for d in self.diagnostics],
		}

	def to_json(self) -> str:
		return json.dumps(self.to_dict(), indent=2)


def _map(fn: Callable[[T], R], items: Sequence[T], workers: int) -> List[R]:
	"""Apply `fn` to every item; results keep the input order."""
	if workers <= 1 or len(items) <= 1:
		return [fn(item) for item in items]
	with ThreadPoolExecutor(max_workers=workers) as pool:
		return list(pool.map(fn, items))


def _file_of(module: Module) -> str:
	return str(module.path) if module.path is not None else module.specifier


# -- phase 1 -------------------------------------------------------------------


def analyze_module(module: Module) -> Module:
	"""Parse and infer one module, freezing the results onto it."""
	if module.frozen:
		return module
	if module.is_json:
		_analyze_json(module)
		return module
	file = _file_of(module)
	try:
		program = parse_module(module.source, file)
	except AnalysisError as exc:
		module.attach_analysis(None, None, module.kind, [exc.to_diagnostic("parse")])
		return module
	kind = effective_kind(program, module.kind)
	try:
		descriptor = infer(program, module.kind, module=module.specifier, file=file)
	except AnalysisError as exc:
		module.attach_analysis(program, None, kind, [exc.to_diagnostic("infer")])
		return module
	for diagnostic in descriptor.diagnostics:
		if diagnostic.phase is None:
			diagnostic.phase = "infer"
	module.attach_analysis(program, descriptor, kind, descriptor.diagnostics)
	logger.debug("phase 1: %s is %s (%s)", module.specifier, descriptor.tag.value, kind.value)
	return module


def _analyze_json(module: Module) -> None:
	"""JSON modules expose exactly one default export holding the parsed value."""
	try:
		json.loads(module.source)
	except json.JSONDecodeError as exc:
		error = AnalysisError(
			f"invalid JSON module: {exc.msg}",
			code="parse-error",
			span=Span(file=_file_of(module), line=exc.lineno, column=exc.colno),
		)
		module.attach_analysis(None, None, ModuleKind.ESM, [error.to_diagnostic("parse")])
		return
	value = DefaultValue(DefaultKind.EXPLICIT, Provenance(ProvenanceKind.INLINE, expr=f"<json {module.specifier}>"))
	descriptor = ExportShapeDescriptor(ShapeTag.ESM_STATIC, module=module.specifier, default=value)
	module.attach_analysis(None, descriptor, ModuleKind.ESM, [])


# -- phase 2 -------------------------------------------------------------------


def _migrate_module(
	module: Module,
	graph: ModuleGraph,
	resolution: ResolutionResult,
	config: AnalyzerConfig,
	render_output: bool,
) -> ModuleReport:
	report = ModuleReport(module.specifier, module.effective_kind, module.descriptor)
	report.diagnostics.extend(module.diagnostics)
	report.diagnostics.extend(resolution.diagnostics.get(module.specifier, []))
	descriptor = module.descriptor
	if descriptor is None:
		return report
	consumers = resolution.for_target(module.specifier)
	plan = synthesize(descriptor, consumers, config)
	report.plan = plan
	report.diagnostics.extend(plan.diagnostics)
	if render_output and module.program is not None:
		result = rewrite(
			module,
			module.program,
			descriptor,
			plan,
			resolution.targets.get(module.specifier, {}),
			graph=graph,
			config=config,
		)
		report.output = result.text
		plan.source_text = result.text
		report.diagnostics.extend(result.diagnostics)
	star_names = _star_names(graph, module, plan)
	report.diagnostics.extend(check(descriptor, plan, consumers, emit_info=config.emit_info, star_names=star_names))
	if not config.emit_info:
		report.diagnostics = [d for d in report.diagnostics if d.severity != INFO]
	return report


def _star_names(graph: ModuleGraph, module: Module, plan: CompatibilityPlan) -> Optional[set]:
	"""Names forwarded by the plan's `export *` sources; None when unknown."""
	if not plan.star_sources:
		return set()
	is_require = plan.tag is not ShapeTag.ESM_STATIC
	names: set = set()
	for source in plan.star_sources:
		target = graph.resolve(module.specifier, source, is_require=is_require)
		inner = exported_names(graph, target) if target is not None else None
		if inner is None:
			return None
		names.update(n for n in inner if n != "default")
	return names


def analyze_graph(graph: ModuleGraph, config: Optional[AnalyzerConfig] = None, *, render_output: bool = True) -> GraphReport:
	"""
	Run both phases over `graph`.

	With `render_output` off the rewriter is skipped and the plans carry no
	source text (the `analyze` command's mode).
	"""
	config = config or AnalyzerConfig()
	modules = list(graph)
	logger.debug("phase 1: analyzing %d modules with %d worker(s)", len(modules), config.workers)
	_map(analyze_module, modules, config.workers)
	resolution = resolve(graph)
	logger.debug("phase 2: migrating %d modules", len(modules))
	reports = _map(lambda m: _migrate_module(m, graph, resolution, config, render_output), modules, config.workers)
	bindings = [r for spec in graph.specifiers() for r in resolution.for_target(spec)]
	report = GraphReport(reports, bindings=bindings, cycles=resolution.cycles, fail_on=config.fail_on)
	logger.info(
		"%d module(s), %d binding(s), %d blocking diagnostic(s)",
		len(reports),
		len(bindings),
		len(report.blocking),
	)
	return report


def analyze_sources(
	sources: Dict[str, str],
	kinds: Optional[Dict[str, ModuleKind]] = None,
	config: Optional[AnalyzerConfig] = None,
	*,
	render_output: bool = True,
) -> GraphReport:
	"""Convenience entry: build a graph from `specifier -> source` and analyze it."""
	kinds = kinds or {}
	graph = ModuleGraph([Module(spec, text, kinds.get(spec, ModuleKind.COMMONJS)) for spec, text in sources.items()])
	return analyze_graph(graph, config, render_output=render_output)


def iter_outputs(report: GraphReport) -> Iterable[ModuleReport]:
	"""Modules that received rewritten source."""
	return (m for m in report.modules if m.migrated)


__all__ = [
	"GraphReport",
	"ModuleReport",
	"analyze_graph",
	"analyze_module",
	"analyze_sources",
	"iter_outputs",
]
