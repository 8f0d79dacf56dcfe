# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Binding resolver.

Scans the read side of every module (`import`, `export ... from`, `import()`
and `require()`), resolves each specifier to a module in the graph and
records how the consumer binds to it. Specifiers that leave the graph
(builtins, packages) are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from esmshift.core.diagnostics import INFO, WARNING, Diagnostic
from esmshift.core.span import Span
from esmshift.errors import CycleError, LinkError
from esmshift.graph import Module, ModuleGraph, is_relative
from esmshift.parser.ast import (
	ArrayLiteral,
	Binary,
	Call,
	Declarator,
	DynamicImport,
	ExportAll,
	ExportNamed,
	ExprStmt,
	ImportDecl,
	Member,
	Name,
	Node,
	ObjectLiteral,
	Program,
	Unary,
)
from esmshift.parser.walk import walk_scoped
from esmshift.patterns import is_name, is_object_method, require_source, static_string
from esmshift.shapes import ExportShapeDescriptor, ShapeTag

logger = logging.getLogger(__name__)

UNRESOLVABLE_NAMED_IMPORT = "statically unresolvable named import"


class BindingKind(Enum):
	DEFAULT = "default"
	NAMED = "named"
	NAMESPACE = "namespace"
	DYNAMIC_REQUIRE_WHOLE = "dynamic-require-whole"


@dataclass(frozen=True)
class MembershipTest:
	"""`'x' in ns`, `Object.hasOwn(ns, 'x')` or `ns.hasOwnProperty('x')`."""

	name: str
	span: Span = field(default_factory=Span, compare=False)
	# Runs in top-level code ahead of the consumer's first call to the
	# producer's initializer.
	before_initializer: bool = False


@dataclass(frozen=True)
class ConsumerBindingRecord:
	consumer: str
	specifier: str
	target: str
	kind: BindingKind
	name: Optional[str] = None
	local: Optional[str] = None
	via: str = "import"  # import | require | export-from | dynamic-import
	span: Span = field(default_factory=Span, compare=False)
	membership_tests: Tuple[MembershipTest, ...] = ()

	def describe(self) -> str:
		if self.kind is BindingKind.NAMED:
			form = f"named `{self.name}`"
		else:
			form = self.kind.value
		return f"{form} binding of '{self.specifier}' in {self.consumer}"

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {
			"consumer": self.consumer,
			"specifier": self.specifier,
			"target": self.target,
			"kind": self.kind.value,
			"via": self.via,
			"line": self.span.line,
			"column": self.span.column,
		}
		if self.name is not None:
			out["name"] = self.name
		if self.local is not None:
			out["local"] = self.local
		if self.membership_tests:
			out["membership_tests"] = [t.name for t in self.membership_tests]
		return out


@dataclass
class ResolutionResult:
	# target specifier -> records of every consumer binding to it
	bindings: Dict[str, List[ConsumerBindingRecord]] = field(default_factory=dict)
	# importer -> raw specifier -> target specifier (in-graph targets only)
	targets: Dict[str, Dict[str, str]] = field(default_factory=dict)
	# module specifier -> diagnostics raised while scanning it
	diagnostics: Dict[str, List[Diagnostic]] = field(default_factory=dict)
	cycles: List[List[str]] = field(default_factory=list)

	def for_target(self, specifier: str) -> List[ConsumerBindingRecord]:
		return list(self.bindings.get(specifier, []))

	def consumed_by(self, consumer: str) -> List[ConsumerBindingRecord]:
		return [r for records in self.bindings.values() for r in records if r.consumer == consumer]

	def all_diagnostics(self) -> List[Diagnostic]:
		return [d for spec in sorted(self.diagnostics) for d in self.diagnostics[spec]]


def resolve(graph: ModuleGraph) -> ResolutionResult:
	"""Record every consumer binding in the graph, keyed by target module."""
	result = ResolutionResult()
	for module in graph:
		result.bindings.setdefault(module.specifier, [])
	for module in graph:
		if module.program is None:
			continue
		scan = _ModuleScan(graph, module)
		records = scan.run()
		result.targets[module.specifier] = scan.targets
		diagnostics = scan.diagnostics
		for record in records:
			result.bindings.setdefault(record.target, []).append(record)
			if _needs_link_check(record):
				link = check_named_link(graph, record)
				if link is not None:
					diagnostics.append(link.to_diagnostic("resolve"))
		if diagnostics:
			result.diagnostics[module.specifier] = diagnostics
	for cycle in find_cycles(result.targets):
		result.cycles.append(cycle)
		head = cycle[0]
		message = "import cycle: " + " -> ".join(cycle + [head])
		diagnostic = CycleError(message, span=Span(file=_file_of(graph.get(head))), severity=INFO).to_diagnostic("resolve")
		result.diagnostics.setdefault(head, []).append(diagnostic)
	logger.debug("resolved %d bindings across %d modules", sum(len(v) for v in result.bindings.values()), len(graph))
	return result


def _file_of(module: Optional[Module]) -> Optional[str]:
	if module is None:
		return None
	if module.program is not None and module.program.file:
		return module.program.file
	return str(module.path) if module.path is not None else module.specifier


def _needs_link_check(record: ConsumerBindingRecord) -> bool:
	return record.kind is BindingKind.NAMED and record.via in ("import", "export-from")


def exported_names(graph: ModuleGraph, specifier: str, seen: Optional[Set[str]] = None) -> Optional[Set[str]]:
	"""
	Names a module statically exports, following `export *` and re-export
	sources through the graph. None when the set cannot be known (unanalyzed
	module or a re-export of something outside the graph).
	"""
	seen = set() if seen is None else seen
	if specifier in seen:
		return set()
	seen.add(specifier)
	module = graph.get(specifier)
	if module is None or module.descriptor is None:
		return None
	descriptor = module.descriptor
	names = set(descriptor.named_names())
	is_require = descriptor.tag is not ShapeTag.ESM_STATIC
	for source in descriptor.reexport_sources:
		target = graph.resolve(specifier, source, is_require=is_require)
		if target is None:
			return None
		inner = exported_names(graph, target, seen)
		if inner is None:
			return None
		names.update(n for n in inner if n != "default")
	return names


def check_named_link(graph: ModuleGraph, record: ConsumerBindingRecord) -> Optional[LinkError]:
	if record.name == "default" or record.name is None:
		return None
	names = exported_names(graph, record.target)
	if names is None or record.name in names:
		return None
	target = graph.get(record.target)
	descriptor: Optional[ExportShapeDescriptor] = target.descriptor if target is not None else None
	notes: List[str] = []
	if descriptor is not None:
		notes.append(f"'{record.target}' has shape {descriptor.tag.value}")
		if descriptor.tag is ShapeTag.NON_OBJECT_DEFAULT:
			notes.append("import the default export and read the property from it")
		elif descriptor.tag is ShapeTag.DYNAMIC_CONDITIONAL and any(b.name == record.name for b in descriptor.conditional):
			notes.append(f"`{record.name}` is only assigned conditionally")
	return LinkError(
		f"{UNRESOLVABLE_NAMED_IMPORT} `{record.name}` from '{record.specifier}'",
		span=record.span,
		notes=tuple(notes),
	)


def find_cycles(targets: Dict[str, Dict[str, str]]) -> List[List[str]]:
	"""Strongly connected components with more than one module (or a self import), iteratively."""
	adjacency: Dict[str, List[str]] = {
		importer: sorted(set(edges.values())) for importer, edges in targets.items()
	}
	index: Dict[str, int] = {}
	low: Dict[str, int] = {}
	on_stack: Set[str] = set()
	stack: List[str] = []
	cycles: List[List[str]] = []
	counter = 0
	for root in sorted(adjacency):
		if root in index:
			continue
		work: List[Tuple[str, int]] = [(root, 0)]
		while work:
			node, child_index = work.pop()
			if child_index == 0:
				index[node] = low[node] = counter
				counter += 1
				stack.append(node)
				on_stack.add(node)
			children = adjacency.get(node, [])
			if child_index < len(children):
				work.append((node, child_index + 1))
				child = children[child_index]
				if child not in index:
					work.append((child, 0))
				elif child in on_stack:
					low[node] = min(low[node], index[child])
				continue
			if work:
				parent = work[-1][0]
				low[parent] = min(low[parent], low[node])
			if low[node] == index[node]:
				component: List[str] = []
				while True:
					member = stack.pop()
					on_stack.discard(member)
					component.append(member)
					if member == node:
						break
				if len(component) > 1 or node in adjacency.get(node, []):
					cycles.append(sorted(component))
	return sorted(cycles)


class _ModuleScan:
	"""Read-side scan of one consumer module."""

	def __init__(self, graph: ModuleGraph, module: Module) -> None:
		self.graph = graph
		self.module = module
		self.program: Program = module.program  # type: ignore[assignment]
		self.file = _file_of(module)
		self.targets: Dict[str, str] = {}
		self.diagnostics: List[Diagnostic] = []
		self.parents: Dict[int, Node] = {}

	def span(self, node: Node) -> Span:
		return Span.from_loc(node.loc, self.file)

	def target(self, raw: str, node: Node, *, is_require: bool) -> Optional[str]:
		target = self.graph.resolve(self.module.specifier, raw, is_require=is_require)
		if target is None:
			if is_relative(raw):
				self.diagnostics.append(
					Diagnostic(
						message=f"relative specifier '{raw}' does not resolve to a module in the graph",
						code="unresolved-specifier",
						phase="resolve",
						severity=WARNING,
						span=self.span(node),
					)
				)
			return None
		self.targets[raw] = target
		return target

	def record(self, raw: str, target: str, kind: BindingKind, node: Node, **kw: Any) -> ConsumerBindingRecord:
		return ConsumerBindingRecord(self.module.specifier, raw, target, kind, span=self.span(node), **kw)

	def run(self) -> List[ConsumerBindingRecord]:
		records: List[ConsumerBindingRecord] = []
		nodes: List[Tuple[Node, Any]] = []
		for node, scope, parent in walk_scoped(self.program):
			if parent is not None:
				self.parents[id(node)] = parent
			nodes.append((node, scope))
			if isinstance(node, ImportDecl):
				records.extend(self.scan_import(node))
			elif isinstance(node, ExportNamed) and node.source is not None:
				target = self.target(node.source, node, is_require=False)
				if target is None:
					continue
				for spec in node.specifiers:
					kind = BindingKind.DEFAULT if spec.local == "default" else BindingKind.NAMED
					name = None if kind is BindingKind.DEFAULT else spec.local
					records.append(self.record(node.source, target, kind, spec, name=name, via="export-from"))
			elif isinstance(node, ExportAll):
				target = self.target(node.source, node, is_require=False)
				if target is not None:
					records.append(self.record(node.source, target, BindingKind.NAMESPACE, node, local=node.alias, via="export-from"))
			elif isinstance(node, DynamicImport):
				raw = static_string(node.source)
				if raw is None:
					continue
				target = self.target(raw, node, is_require=False)
				if target is not None:
					records.append(self.record(raw, target, BindingKind.NAMESPACE, node, local=self.bound_local(node), via="dynamic-import"))
			elif isinstance(node, Call):
				raw = require_source(node)
				if raw is None:
					continue
				target = self.target(raw, node, is_require=True)
				if target is not None:
					records.extend(self.scan_require(node, raw, target))
		return self.attach_membership_tests(records, nodes)

	def scan_import(self, node: ImportDecl) -> List[ConsumerBindingRecord]:
		target = self.target(node.source, node, is_require=False)
		if target is None:
			return []
		out: List[ConsumerBindingRecord] = []
		if node.default:
			out.append(self.record(node.source, target, BindingKind.DEFAULT, node, local=node.default))
		if node.namespace:
			out.append(self.record(node.source, target, BindingKind.NAMESPACE, node, local=node.namespace))
		for spec in node.specifiers:
			if spec.imported == "default":
				out.append(self.record(node.source, target, BindingKind.DEFAULT, spec, local=spec.local))
			else:
				out.append(self.record(node.source, target, BindingKind.NAMED, spec, name=spec.imported, local=spec.local))
		return out

	def bound_local(self, node: Node) -> Optional[str]:
		"""Local a value is stored in: `const x = <node>` / `const x = await <node>`."""
		parent = self.parents.get(id(node))
		if isinstance(parent, Unary) and parent.op == "await":
			node, parent = parent, self.parents.get(id(parent))
		if isinstance(parent, Declarator) and parent.init is node and isinstance(parent.target, Name):
			return parent.target.ident
		return None

	def scan_require(self, node: Call, raw: str, target: str) -> List[ConsumerBindingRecord]:
		parent = self.parents.get(id(node))
		whole = BindingKind.DYNAMIC_REQUIRE_WHOLE
		if isinstance(parent, ExprStmt):
			# side-effect only: the value is never bound
			return []
		if isinstance(parent, Member) and parent.object is node:
			if parent.prop is not None and not parent.private:
				return [self.record(raw, target, BindingKind.NAMED, parent, name=parent.prop, via="require")]
			key = static_string(parent.computed)
			if key is not None:
				return [self.record(raw, target, BindingKind.NAMED, parent, name=key, via="require")]
			return [self.record(raw, target, whole, node, via="require")]
		if isinstance(parent, Declarator) and parent.init is node:
			pattern = parent.target
			if isinstance(pattern, Name):
				return [self.record(raw, target, whole, node, local=pattern.ident, via="require")]
			if isinstance(pattern, ObjectLiteral) and pattern.static_keys() is not None:
				out = []
				for prop in pattern.properties:
					local_name = prop.value.ident if isinstance(prop.value, Name) else None
					if prop.kind == "shorthand":
						local_name = prop.key
					out.append(self.record(raw, target, BindingKind.NAMED, prop, name=prop.key, local=local_name, via="require"))
				return out
			if isinstance(pattern, (ObjectLiteral, ArrayLiteral)):
				return [self.record(raw, target, whole, node, via="require")]
		return [self.record(raw, target, whole, node, via="require")]

	# -- membership tests ------------------------------------------------------

	def attach_membership_tests(self, records: List[ConsumerBindingRecord], nodes: List[Tuple[Node, Any]]) -> List[ConsumerBindingRecord]:
		observed = {
			r.local: r
			for r in records
			if r.local and r.kind in (BindingKind.NAMESPACE, BindingKind.DEFAULT, BindingKind.DYNAMIC_REQUIRE_WHOLE)
		}
		if not observed:
			return records
		tests: Dict[str, List[Tuple[str, Node, bool]]] = {}
		init_calls: Dict[str, List[int]] = {}
		for node, scope in nodes:
			found = membership_test(node)
			if found is not None and found[0] in observed:
				local_name, key = found
				tests.setdefault(local_name, []).append((key, node, scope.in_function))
			if isinstance(node, Call) and not scope.in_function:
				for local_name, record in observed.items():
					initializer = self.initializer_of(record.target)
					if initializer and _calls(node, local_name, initializer):
						init_calls.setdefault(local_name, []).append(node.loc.start)
				for record in records:
					initializer = self.initializer_of(record.target)
					if initializer and record.kind is BindingKind.NAMED and record.name == initializer and record.local and is_name(node.callee, record.local):
						for local_name, other in observed.items():
							if other.target == record.target:
								init_calls.setdefault(local_name, []).append(node.loc.start)
		out = []
		for record in records:
			if record.local not in tests or observed.get(record.local) is not record:
				out.append(record)
				continue
			calls = init_calls.get(record.local, [])
			found_tests = tuple(
				MembershipTest(
					key,
					self.span(node),
					before_initializer=not in_function and any(node.loc.start < start for start in calls),
				)
				for key, node, in_function in tests[record.local]
			)
			out.append(replace(record, membership_tests=found_tests))
		return out

	def initializer_of(self, target: str) -> Optional[str]:
		module = self.graph.get(target)
		if module is None or module.descriptor is None:
			return None
		return module.descriptor.initializer


def _calls(node: Call, local_name: str, method: str) -> bool:
	"""`local.method(...)`."""
	callee = node.callee
	return isinstance(callee, Member) and callee.prop == method and is_name(callee.object, local_name)


def membership_test(node: Node) -> Optional[Tuple[str, str]]:
	"""(local, key) when `node` tests whether a local object has a static key."""
	if isinstance(node, Binary) and node.op == "in" and isinstance(node.right, Name):
		key = static_string(node.left)
		if key is not None:
			return node.right.ident, key
		return None
	if not isinstance(node, Call):
		return None
	callee = node.callee
	args = node.args
	if is_object_method(callee, "Object", "hasOwn") and len(args) == 2 and isinstance(args[0], Name):
		key = static_string(args[1])
		return (args[0].ident, key) if key is not None else None
	if isinstance(callee, Member) and callee.prop == "hasOwnProperty" and isinstance(callee.object, Name) and len(args) == 1:
		key = static_string(args[0])
		return (callee.object.ident, key) if key is not None else None
	if (
		isinstance(callee, Member)
		and callee.prop == "call"
		and isinstance(callee.object, Member)
		and callee.object.prop == "hasOwnProperty"
		and len(args) == 2
		and isinstance(args[0], Name)
	):
		key = static_string(args[1])
		return (args[0].ident, key) if key is not None else None
	return None


def records_by_kind(records: Iterable[ConsumerBindingRecord], kind: BindingKind) -> List[ConsumerBindingRecord]:
	return [r for r in records if r.kind is kind]


__all__ = [
	"BindingKind",
	"ConsumerBindingRecord",
	"MembershipTest",
	"ResolutionResult",
	"UNRESOLVABLE_NAMED_IMPORT",
	"check_named_link",
	"exported_names",
	"find_cycles",
	"membership_test",
	"records_by_kind",
	"resolve",
]
