# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Export shape inference.

Walks a module once, without executing it, and tracks every symbolic write
to the export target (`exports`, `module.exports` and local aliases of
them). Writes that run unconditionally while the module body evaluates define
the static shape; writes under a branch, loop or function body make the shape
DynamicConditional. Anything the walk cannot follow raises AnalysisError
rather than being approximated.

CommonJS whole-value assignment tie-break: the last unconditional top-level
`module.exports = ...` decides the base tag and resets earlier named writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from esmshift.core.diagnostics import INFO, WARNING, Diagnostic
from esmshift.core.span import Span
from esmshift.errors import AnalysisError
from esmshift.graph import ModuleKind
from esmshift.parser import parse_module
from esmshift.parser.ast import (
	ArrayLiteral,
	Assign,
	Call,
	ClassDecl,
	ClassExpr,
	Declarator,
	ExportAll,
	ExportDeclaration,
	ExportDefault,
	ExportNamed,
	Expr,
	FunctionDecl,
	FunctionExpr,
	ImportDecl,
	Member,
	Name,
	Node,
	ObjectLiteral,
	Program,
	Property,
	Spread,
	Unary,
	Update,
	VarDecl,
)
from esmshift.parser.walk import Scope, top_level_statements, walk, walk_scoped
from esmshift.patterns import (
	ExportTarget,
	assignment_chain,
	export_target,
	is_exports_object,
	is_module_exports,
	is_name,
	is_object_method,
	normalize_text,
	require_member,
	require_source,
	source_text,
	static_string,
)
from esmshift.shapes import (
	DefaultKind,
	DefaultValue,
	ExportShapeDescriptor,
	NamedBinding,
	Provenance,
	ProvenanceKind,
	ShapeTag,
	local,
	reexport,
)

logger = logging.getLogger(__name__)

ATTACHED_PROPERTY_MESSAGE = "property added to a non-plain default export; unreachable via static export binding after rewrite"

# Object.* helpers that mutate their first argument.
_MUTATING_OBJECT_METHODS = ("defineProperties", "setPrototypeOf")


def effective_kind(program: Program, kind: ModuleKind) -> ModuleKind:
	"""Declared kind, or for UNKNOWN: ESM iff the source has import/export declarations."""
	if kind is not ModuleKind.UNKNOWN:
		return kind
	return ModuleKind.ESM if program.has_module_syntax() else ModuleKind.COMMONJS


def infer(
	source: Union[str, Program],
	kind: ModuleKind = ModuleKind.COMMONJS,
	*,
	module: Optional[str] = None,
	file: Optional[str] = None,
) -> ExportShapeDescriptor:
	"""
	Classify a module's export surface.

	`source` is either module text or an already parsed Program. Raises
	AnalysisError when the shape cannot be determined statically (including
	parse errors, with code "parse-error").
	"""
	program = source if isinstance(source, Program) else parse_module(source, file)
	resolved = effective_kind(program, kind)
	notes: List[Diagnostic] = []
	if kind is ModuleKind.UNKNOWN:
		notes.append(
			Diagnostic(
				message=f"module kind not declared; analyzed as {resolved.value} "
				+ ("(has import/export declarations)" if resolved is ModuleKind.ESM else "(no import/export declarations)"),
				code="kind-inferred",
				phase="infer",
				severity=INFO,
				span=Span(file=program.file),
			)
		)
	if resolved is ModuleKind.ESM:
		descriptor = _EsmInference(program, module).run()
	else:
		descriptor = _CommonJsInference(program, module).run()
	descriptor.diagnostics[:0] = notes
	logger.debug("inferred %s for %s", descriptor.tag.value, module or program.file or "<input>")
	return descriptor


def pattern_names(target: Optional[Node]) -> List[str]:
	"""Identifiers bound by a declaration target (`a`, `{ a, b: c }`, `[d, ...e]`)."""
	out: List[str] = []
	stack: List[Optional[Node]] = [target]
	while stack:
		node = stack.pop()
		if node is None:
			continue
		if isinstance(node, Name):
			out.append(node.ident)
		elif isinstance(node, ObjectLiteral):
			for prop in reversed(node.properties):
				stack.append(prop.value)
		elif isinstance(node, ArrayLiteral):
			stack.extend(reversed(node.elements))
		elif isinstance(node, Spread):
			stack.append(node.value)
		elif isinstance(node, Assign):
			stack.append(node.target)
	return out


def collect_identifiers(program: Program) -> frozenset:
	"""Every identifier the module declares or references (fresh locals must avoid all of them)."""
	names = set()
	for stmt in program.body:
		for node in walk(stmt):
			if isinstance(node, Name):
				names.add(node.ident)
			elif isinstance(node, (FunctionExpr, ClassExpr)) and node.name:
				names.add(node.name)
			elif isinstance(node, ImportDecl):
				names.update(n for n in (node.default, node.namespace) if n)
				names.update(spec.local for spec in node.specifiers)
	names.update(("module", "exports", "require"))
	return frozenset(names)


def top_level_bindings(program: Program) -> frozenset:
	"""Names declared by top-level statements, bare blocks included for `var` and functions."""
	names = set()
	for index, stmt in top_level_statements(program):
		nested = program.body[index] is not stmt
		if isinstance(stmt, ExportDeclaration):
			stmt = stmt.declaration
		if isinstance(stmt, VarDecl):
			if nested and stmt.kind != "var":
				continue
			for d in stmt.declarations:
				names.update(pattern_names(d.target))
		elif isinstance(stmt, (FunctionDecl, ClassDecl)) and stmt.name:
			if nested and isinstance(stmt, ClassDecl):
				continue
			names.add(stmt.name)
		elif isinstance(stmt, ImportDecl):
			names.update(n for n in (stmt.default, stmt.namespace) if n)
			names.update(spec.local for spec in stmt.specifiers)
	return frozenset(names)


def value_binding(value: Expr) -> Optional[str]:
	"""Local binding that names a value, when it has one."""
	if isinstance(value, Name):
		return value.ident
	if isinstance(value, (FunctionExpr, ClassExpr)) and value.name and not getattr(value, "is_arrow", False):
		return value.name
	return None


def value_provenance(program: Program, value: Expr, name: Optional[str] = None) -> Provenance:
	if isinstance(value, Name):
		kind = ProvenanceKind.LOCAL if value.ident == name or name is None else ProvenanceKind.ALIAS
		return Provenance(kind, local=value.ident)
	src = require_source(value)
	if src is not None:
		return reexport(src)
	member = require_member(value)
	if member is not None:
		return reexport(member[0], member[1])
	text = normalize_text(source_text(program.source, value))
	return Provenance(ProvenanceKind.INLINE, local=value_binding(value), expr=text)


@dataclass
class _Whole:
	"""The last unconditional `module.exports = ...` assignment."""

	kind: str  # object | value | reexport-all | reexport-named | reexport-aggregate
	default: Optional[DefaultValue] = None
	sources: List[str] = field(default_factory=list)
	# Base came from `module.exports = require(...)`; amendments become re-exports.
	sources_from_require_all: bool = False


class _CommonJsInference:
	def __init__(self, program: Program, module: Optional[str]) -> None:
		self.program = program
		self.module = module
		self.file = program.file
		self.named: Dict[str, NamedBinding] = {}
		self.conditional: Dict[str, NamedBinding] = {}
		self.attached: Dict[str, NamedBinding] = {}
		self.whole: Optional[_Whole] = None
		self.aliases: set = set()
		self.exports_detached = False
		self.initializers: List[str] = []
		self.marker = False
		self.diagnostics: List[Diagnostic] = []
		self._chained: set = set()
		self.reassigned: set = set()
		self.dead: set = set()
		self.live_sites: List[int] = []
		self.whole_site: Optional[int] = None
		# conditional `module.exports = <value>`: (provenance, target, inside a function)
		self.conditional_wholes: List[Tuple[Provenance, Node, bool]] = []

	# -- reporting -------------------------------------------------------------

	def span(self, node: Node) -> Span:
		return Span.from_loc(node.loc, self.file)

	def report(self, severity: str, code: str, message: str, node: Node) -> None:
		self.diagnostics.append(Diagnostic(message=message, code=code, phase="infer", severity=severity, span=self.span(node)))

	def fail(self, message: str, node: Node) -> AnalysisError:
		return AnalysisError(message, span=self.span(node))

	# -- walk ------------------------------------------------------------------

	def run(self) -> ExportShapeDescriptor:
		for node, scope, _parent in walk_scoped(self.program):
			if isinstance(node, Assign):
				self.visit_assign(node, scope)
			elif isinstance(node, Update):
				self.visit_update(node, node.operand, scope)
			elif isinstance(node, Unary) and node.op == "delete" and node.operand is not None:
				self.visit_update(node, node.operand, scope)
			elif isinstance(node, Call):
				self.visit_call(node, scope)
			elif isinstance(node, Declarator):
				self.visit_declarator(node)
		return self.finish()

	def visit_declarator(self, node: Declarator) -> None:
		if isinstance(node.target, Name) and node.init is not None and is_exports_object(node.init):
			self.aliases.add(node.target.ident)

	def visit_assign(self, node: Assign, scope: Scope) -> None:
		if id(node) in self._chained:
			return
		if node.op == "=":
			targets, value = assignment_chain(node)
			inner = node.value
			while isinstance(inner, Assign) and inner.op == "=":
				self._chained.add(id(inner))
				inner = inner.value
		else:
			targets, value = [node.target], node.value
		classified = [(t, export_target(t)) for t in targets]
		has_whole = any(et is not None and et.kind == "whole" for _t, et in classified)
		has_rebind = any(et is not None and et.kind == "rebind" for _t, et in classified)
		for target, et in classified:
			if et is None:
				self.check_alias_target(target, value)
				continue
			if et.kind == "computed":
				raise self.fail("export name is computed at runtime and cannot be determined statically", target)
			if et.kind == "rebind":
				if has_whole:
					continue
				if is_module_exports(value):
					self.exports_detached = False
					continue
				self.report(
					WARNING,
					"exports-rebind",
					"assignment to `exports` rebinds the local variable only; the module's exports are unchanged",
					target,
				)
				self.exports_detached = True
				continue
			if et.kind == "whole":
				if node.op != "=":
					raise self.fail(f"compound assignment `{node.op}` to module.exports cannot be analyzed", target)
				self.write_whole(value, scope, target, linked=has_rebind)
			else:
				compound = node.op != "="
				prov = value_provenance(self.program, value, et.name)
				if compound:
					prov = Provenance(ProvenanceKind.INLINE, expr=normalize_text(source_text(self.program.source, node)))
				self.write_named(et, prov, value, scope, target, compound=compound)

	def check_alias_target(self, target: Expr, value: Expr) -> None:
		if isinstance(target, Member) and isinstance(target.object, Name) and target.object.ident in self.aliases:
			raise self.fail(
				f"export object is written through the alias `{target.object.ident}`; the export shape cannot be traced",
				target,
			)
		if isinstance(target, Name) and is_exports_object(value):
			self.aliases.add(target.ident)

	def visit_update(self, node: Node, operand: Expr, scope: Scope) -> None:
		et = export_target(operand)
		if et is None:
			self.check_alias_target(operand, operand)
			return
		if et.kind == "whole" or et.kind == "rebind":
			raise self.fail("module.exports is modified in place and cannot be analyzed", node)
		if et.kind == "computed":
			raise self.fail("export name is computed at runtime and cannot be determined statically", operand)
		if isinstance(node, Unary):
			# `delete exports.x` makes membership depend on evaluation order
			existing = self.named.pop(et.name or "", None)
			binding = existing or NamedBinding(et.name or "", Provenance(ProvenanceKind.INLINE, expr="undefined"), self.span(node))
			self.record_conditional(binding, scope)
			return
		prov = Provenance(ProvenanceKind.INLINE, expr=normalize_text(source_text(self.program.source, node)))
		self.write_named(et, prov, operand, scope, operand, compound=True)

	def visit_call(self, node: Call, scope: Scope) -> None:
		callee = node.callee
		args = node.args
		if is_object_method(callee, "Object", "defineProperty") and len(args) >= 2 and is_exports_object(args[0]):
			key = static_string(args[1])
			if key is None:
				raise self.fail("Object.defineProperty on the export object uses a computed name", args[1])
			if key == "__esModule":
				self.marker = True
				self.report(
					INFO,
					"es-module-marker",
					"module carries the transpiler `__esModule` marker; it is dropped by the rewrite",
					node,
				)
				return
			desc = args[2] if len(args) > 2 else None
			prov = Provenance(ProvenanceKind.INLINE, expr=normalize_text(source_text(self.program.source, desc))) if desc is not None else Provenance(ProvenanceKind.INLINE, expr="undefined")
			if isinstance(desc, ObjectLiteral):
				for prop in desc.properties:
					if prop.key == "value" and prop.kind == "init" and prop.value is not None:
						prov = value_provenance(self.program, prop.value, key)
			self.write_named(ExportTarget("named", key, is_module_exports(args[0])), prov, desc, scope, node, compound=False)
			return
		if is_object_method(callee, "Object", "assign") and args and is_exports_object(args[0]):
			for source_arg in args[1:]:
				if not isinstance(source_arg, ObjectLiteral) or any(p.kind in ("spread", "get", "set") or p.key is None for p in source_arg.properties):
					raise self.fail("Object.assign onto the export object with keys that cannot be determined statically", source_arg)
				for prop in source_arg.properties:
					assert prop.key is not None
					prov = self.property_provenance(prop)
					self.write_named(ExportTarget("named", prop.key, is_module_exports(args[0])), prov, prop.value, scope, prop, compound=False)
			return
		for index, arg in enumerate(args):
			escapes = is_exports_object(arg) or (isinstance(arg, Name) and arg.ident in self.aliases)
			if not escapes:
				continue
			if _is_object_helper(callee) and (index > 0 or not _mutates_first_argument(callee)):
				continue
			raise self.fail("the export object is passed to a function; its final shape cannot be determined statically", arg)

	def property_provenance(self, prop: Property) -> Provenance:
		if prop.kind == "shorthand":
			return local(prop.key or "")
		if prop.kind == "init" and prop.value is not None:
			return value_provenance(self.program, prop.value, prop.key)
		return Provenance(ProvenanceKind.INLINE, local=prop.key, expr=normalize_text(source_text(self.program.source, prop)))

	# -- writes ----------------------------------------------------------------

	def record_conditional(self, binding: NamedBinding, scope: Scope) -> None:
		if binding.name in self.named:
			# membership is already guaranteed; only the value changes later
			self.reassigned.add(binding.name)
			return
		if binding.name not in self.conditional:
			self.conditional[binding.name] = binding
		if scope.in_function and scope.function and scope.function not in self.initializers:
			self.initializers.append(scope.function)

	def write_named(
		self,
		et: ExportTarget,
		prov: Provenance,
		value: Optional[Node],
		scope: Scope,
		site: Node,
		*,
		compound: bool,
	) -> None:
		name = et.name or ""
		if not et.via_module and self.exports_detached:
			self.report(
				WARNING,
				"stale-exports",
				f"`exports.{name}` is written after module.exports was reassigned; the write has no effect",
				site,
			)
			self.dead.add(site.loc.start)
			return
		binding = NamedBinding(name, prov, self.span(site))
		if not scope.unconditional:
			self.record_conditional(binding, scope)
			return
		self.live_sites.append(site.loc.start)
		whole = self.whole
		if whole is None or (whole.kind in ("object", "reexport-named", "reexport-aggregate") and not whole.sources_from_require_all):
			if name in self.named or compound:
				self.reassigned.add(name)
			if compound and name in self.named:
				return
			self.named[name] = binding
			return
		src = require_source(value) if isinstance(value, Call) else None
		if whole.kind in ("reexport-all", "reexport-aggregate") and src is not None:
			whole.kind = "reexport-aggregate"
			if src not in whole.sources:
				whole.sources.append(src)
			self.named[name] = NamedBinding(name, reexport(src), self.span(site))
			return
		if compound and name in self.attached:
			return
		self.attached[name] = binding
		self.report(WARNING, "attached-property", ATTACHED_PROPERTY_MESSAGE, site)

	def write_whole(self, value: Expr, scope: Scope, site: Node, *, linked: bool) -> None:
		if not scope.unconditional:
			if isinstance(value, ObjectLiteral) and all(p.kind in ("init", "shorthand", "method") and p.key is not None for p in value.properties):
				for prop in value.properties:
					self.record_conditional(NamedBinding(prop.key or "", self.property_provenance(prop), self.span(prop)), scope)
				return
			self.conditional_wholes.append((value_provenance(self.program, value), site, scope.in_function))
			self.report(
				WARNING,
				"conditional-default",
				"module.exports is replaced conditionally; the default export is chosen when the module evaluates",
				site,
			)
			if scope.in_function and scope.function and scope.function not in self.initializers:
				self.initializers.append(scope.function)
			return
		# a later top-level replacement always overrides earlier branch writes
		for _prov, target, in_function in self.conditional_wholes:
			if not in_function:
				self.dead.add(target.loc.start)
		self.conditional_wholes = [c for c in self.conditional_wholes if c[2]]
		self.dead.update(self.live_sites)
		self.live_sites.clear()
		if self.whole_site is not None:
			self.dead.add(self.whole_site)
		self.whole_site = site.loc.start
		self.exports_detached = not linked
		self.named.clear()
		self.attached.clear()
		self.reassigned.clear()
		self.whole = self.classify_whole(value)

	def classify_whole(self, value: Expr) -> _Whole:
		src = require_source(value)
		if src is not None:
			return _Whole("reexport-all", DefaultValue(DefaultKind.EXPLICIT, reexport(src)), [src], True)
		if isinstance(value, ObjectLiteral):
			spreads = [p for p in value.properties if p.kind == "spread"]
			plain = [p for p in value.properties if p.kind != "spread"]
			spread_sources = [require_source(p.value) for p in spreads]
			qualifies = all(p.kind in ("init", "shorthand", "method") and p.key is not None for p in plain) and all(s is not None for s in spread_sources)
			if qualifies:
				for prop in plain:
					self.named[prop.key or ""] = NamedBinding(prop.key or "", self.property_provenance(prop), self.span(prop))
				sources: List[str] = []
				for s in spread_sources:
					if s is not None and s not in sources:
						sources.append(s)
				if not sources:
					return _Whole("object")
				if plain:
					return _Whole("reexport-named", sources=sources)
				if len(sources) == 1:
					return _Whole("reexport-all", DefaultValue(DefaultKind.EXPLICIT, reexport(sources[0])), sources, True)
				return _Whole("reexport-aggregate", sources=sources)
		prov = value_provenance(self.program, value)
		return _Whole("value", DefaultValue(DefaultKind.EXPLICIT, prov, binding=value_binding(value)))

	# -- result ----------------------------------------------------------------

	def finish(self) -> ExportShapeDescriptor:
		whole = self.whole
		plain_base = whole is None or whole.kind == "object"
		for name in [n for n in self.conditional if n in self.named]:
			del self.conditional[name]
			self.reassigned.add(name)
		if self.conditional_wholes and not (plain_base or whole.kind == "value"):
			raise self.fail(
				"module.exports is replaced conditionally over a re-export; the default export cannot be determined statically",
				self.conditional_wholes[0][1],
			)
		if self.conditional and not plain_base:
			for name, binding in self.conditional.items():
				if name not in self.attached:
					self.attached[name] = binding
					self.diagnostics.append(
						Diagnostic(
							message=ATTACHED_PROPERTY_MESSAGE,
							code="attached-property",
							phase="infer",
							severity=WARNING,
							span=binding.span,
						)
					)
			self.conditional.clear()
			self.initializers.clear()

		named = list(self.named.values())
		keys = tuple(b.name for b in named)
		descriptor = ExportShapeDescriptor(tag=ShapeTag.NAMED_ONLY, module=self.module)
		if self.conditional_wholes:
			descriptor.conditional_default = self.conditional_wholes[0][0]
		if self.conditional or (self.conditional_wholes and plain_base):
			descriptor.tag = ShapeTag.DYNAMIC_CONDITIONAL
			descriptor.conditional = list(self.conditional.values())
			descriptor.initializer = self.initializers[0] if self.initializers else None
			all_keys = keys + tuple(n for n in self.conditional if n not in keys)
			descriptor.default = DefaultValue(DefaultKind.SYNTHESIZED, keys=all_keys)
		elif whole is None:
			descriptor.default = DefaultValue(DefaultKind.SYNTHESIZED, keys=keys)
		elif whole.kind == "object":
			descriptor.tag = ShapeTag.OBJECT_LITERAL_NAMED
			descriptor.default = DefaultValue(DefaultKind.SYNTHESIZED, keys=keys)
		elif whole.kind == "value":
			descriptor.tag = ShapeTag.NON_OBJECT_DEFAULT
			descriptor.default = whole.default or DefaultValue(DefaultKind.ABSENT)
		elif whole.kind == "reexport-all":
			descriptor.tag = ShapeTag.REEXPORT_ALL
			descriptor.default = whole.default or DefaultValue(DefaultKind.ABSENT)
		else:
			descriptor.tag = ShapeTag.REEXPORT_DEFAULT_AGGREGATE if whole.kind == "reexport-aggregate" else ShapeTag.REEXPORT_NAMED
			descriptor.default = DefaultValue(DefaultKind.SYNTHESIZED, keys=keys, sources=tuple(whole.sources))
		if whole is not None:
			descriptor.reexport_sources = list(whole.sources)
		descriptor.named = named
		descriptor.attached = list(self.attached.values())
		descriptor.es_module_marker = self.marker
		descriptor.reassigned = frozenset(n for n in self.reassigned if n in self.named)
		descriptor.dead_writes = frozenset(self.dead)
		descriptor.declared = collect_identifiers(self.program)
		descriptor.top_level = top_level_bindings(self.program)
		if "default" in self.named:
			self.diagnostics.append(
				Diagnostic(
					message="`exports.default` stays a key of the default export; it is not emitted as a separate named export",
					code="default-key",
					phase="infer",
					severity=WARNING,
					span=self.named["default"].span,
				)
			)
		descriptor.diagnostics = list(self.diagnostics)
		return descriptor


def _is_object_helper(callee: Expr) -> bool:
	return isinstance(callee, Member) and is_name(callee.object, "Object")


def _mutates_first_argument(callee: Expr) -> bool:
	return isinstance(callee, Member) and callee.prop in _MUTATING_OBJECT_METHODS


class _EsmInference:
	"""Collects the static export list of a module that is already ESM."""

	def __init__(self, program: Program, module: Optional[str]) -> None:
		self.program = program
		self.module = module

	def run(self) -> ExportShapeDescriptor:
		descriptor = ExportShapeDescriptor(tag=ShapeTag.ESM_STATIC, module=self.module)
		named: Dict[str, NamedBinding] = {}
		file = self.program.file
		for stmt in self.program.body:
			span = Span.from_loc(stmt.loc, file)
			if isinstance(stmt, ExportDeclaration):
				decl = stmt.declaration
				if isinstance(decl, VarDecl):
					for d in decl.declarations:
						for ident in pattern_names(d.target):
							named[ident] = NamedBinding(ident, local(ident), span)
				elif isinstance(decl, (FunctionDecl, ClassDecl)):
					named[decl.name] = NamedBinding(decl.name, local(decl.name), span)
			elif isinstance(stmt, ExportNamed):
				for spec in stmt.specifiers:
					if stmt.source is not None:
						member = None if spec.local == "default" else spec.local
						prov = reexport(stmt.source, member)
					elif spec.local == spec.exported:
						prov = local(spec.local)
					else:
						prov = Provenance(ProvenanceKind.ALIAS, local=spec.local)
					if spec.exported == "default":
						binding = spec.local if stmt.source is None else None
						descriptor.default = DefaultValue(DefaultKind.EXPLICIT, prov if stmt.source is not None else local(spec.local), binding=binding)
					elif spec.exported == "module.exports":
						descriptor.override = prov if stmt.source is not None else local(spec.local)
					else:
						named[spec.exported] = NamedBinding(spec.exported, prov, span)
			elif isinstance(stmt, ExportDefault):
				value = stmt.value
				if isinstance(value, Name):
					descriptor.default = DefaultValue(DefaultKind.EXPLICIT, local(value.ident), binding=value.ident)
				else:
					descriptor.default = DefaultValue(DefaultKind.EXPLICIT, value_provenance(self.program, value), binding=value_binding(value))
			elif isinstance(stmt, ExportAll):
				if stmt.alias is None:
					if stmt.source not in descriptor.reexport_sources:
						descriptor.reexport_sources.append(stmt.source)
				else:
					named[stmt.alias] = NamedBinding(stmt.alias, reexport(stmt.source), span)
		descriptor.named = list(named.values())
		descriptor.declared = collect_identifiers(self.program)
		descriptor.top_level = top_level_bindings(self.program)
		return descriptor


__all__ = [
	"ATTACHED_PROPERTY_MESSAGE",
	"collect_identifiers",
	"effective_kind",
	"infer",
	"pattern_names",
	"top_level_bindings",
	"value_binding",
	"value_provenance",
]
