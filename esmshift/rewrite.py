# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source rewriter: renders a CompatibilityPlan into ESM source text.

The original text is spliced, never pretty-printed: every edit replaces a
node's source range with literal text and/or slices of the original, and
slices are rendered recursively so edits nested inside a rewritten statement
still apply. The output is

	[hashbang]
	[createRequire prologue] [let predeclarations]
	<rewritten body>
	<export block from the plan>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from esmshift.config import AnalyzerConfig
from esmshift.core.diagnostics import INFO, WARNING, Diagnostic
from esmshift.core.span import Span
from esmshift.graph import Module, ModuleGraph, is_relative, relative_specifier
from esmshift.parser.ast import (
	Assign,
	Binary,
	Call,
	ClassExpr,
	ExprStmt,
	Expr,
	FunctionExpr,
	Literal,
	Member,
	Name,
	Node,
	ObjectLiteral,
	Program,
	Property,
	Unary,
	Update,
	VarDecl,
)
from esmshift.parser.walk import Scope, walk, walk_scoped
from esmshift.patterns import (
	camel_stem,
	export_target,
	is_exports_object,
	is_identifier,
	is_module_exports,
	is_name,
	is_object_method,
	property_key,
	require_member,
	require_source,
	safe_local,
	static_string,
	unique_local,
)
from esmshift.resolver import exported_names
from esmshift.shapes import ExportShapeDescriptor, ProvenanceKind, ShapeTag
from esmshift.synthesizer import CompatibilityPlan

logger = logging.getLogger(__name__)

CREATE_REQUIRE_PROLOGUE = (
	"import { createRequire } from 'node:module';\n"
	"const require = createRequire(import.meta.url);"
)

_CONTEXT_LOCALS = {"__dirname": "import.meta.dirname", "__filename": "import.meta.filename"}

Part = Union[str, Tuple[int, int]]


@dataclass
class _Edit:
	start: int
	end: int
	parts: Tuple[Part, ...]


class _Splicer:
	"""Range replacements over immutable source text."""

	def __init__(self, source: str) -> None:
		self.source = source
		self.edits: List[_Edit] = []

	def replace(self, start: int, end: int, *parts: Part) -> bool:
		for edit in self.edits:
			if edit.start == start and edit.end == end:
				logger.debug("ignoring second edit of range %d-%d", start, end)
				return False
		self.edits.append(_Edit(start, end, parts))
		return True

	def render(self, start: int = 0, end: Optional[int] = None, skip: Optional[_Edit] = None) -> str:
		end = len(self.source) if end is None else end
		inside = [e for e in self.edits if e is not skip and start <= e.start and e.end <= end]
		inside.sort(key=lambda e: (e.start, -e.end))
		out: List[str] = []
		cursor = start
		for edit in inside:
			if edit.start < cursor:
				continue
			out.append(self.source[cursor:edit.start])
			for part in edit.parts:
				out.append(part if isinstance(part, str) else self.render(part[0], part[1], skip=edit))
			cursor = max(cursor, edit.end)
		out.append(self.source[cursor:end])
		return "".join(out)


@dataclass
class RewriteResult:
	text: str
	diagnostics: List[Diagnostic] = field(default_factory=list)
	needs_create_require: bool = False


def render(
	module: Module,
	program: Program,
	descriptor: ExportShapeDescriptor,
	plan: CompatibilityPlan,
	resolved: Optional[Dict[str, str]] = None,
	*,
	graph: Optional[ModuleGraph] = None,
	config: Optional[AnalyzerConfig] = None,
) -> str:
	"""Rewritten ESM source for `module`."""
	return rewrite(module, program, descriptor, plan, resolved, graph=graph, config=config).text


def rewrite(
	module: Module,
	program: Program,
	descriptor: ExportShapeDescriptor,
	plan: CompatibilityPlan,
	resolved: Optional[Dict[str, str]] = None,
	*,
	graph: Optional[ModuleGraph] = None,
	config: Optional[AnalyzerConfig] = None,
) -> RewriteResult:
	if plan.tag is ShapeTag.ESM_STATIC:
		return RewriteResult(program.source)
	rewriter = _Rewriter(module, program, descriptor, plan, resolved or {}, graph, config or AnalyzerConfig())
	return rewriter.run()


def _slice(node: Node) -> Tuple[int, int]:
	return (node.loc.start, node.loc.end)


def _is_pure(node: Optional[Node]) -> bool:
	return isinstance(node, (Name, Literal, FunctionExpr, ClassExpr))


def _access(obj: str, key: str) -> str:
	spelled = property_key(key)
	return f"{obj}.{key}" if spelled == key else f"{obj}[{spelled}]"


class _Rewriter:
	def __init__(
		self,
		module: Module,
		program: Program,
		descriptor: ExportShapeDescriptor,
		plan: CompatibilityPlan,
		resolved: Dict[str, str],
		graph: Optional[ModuleGraph],
		config: AnalyzerConfig,
	) -> None:
		self.module = module
		self.program = program
		self.source = program.source
		self.descriptor = descriptor
		self.plan = plan
		self.resolved = resolved
		self.graph = graph
		self.config = config
		self.splice = _Splicer(program.source)
		self.diagnostics: List[Diagnostic] = []
		self.body_ids = {id(stmt) for stmt in program.body}
		self.claimed: Set[int] = set()
		self.consumed: Set[int] = set()  # ids of `require` Name nodes no longer needed
		self.declared: Set[str] = set(plan.predeclared)
		self.prologue_lets: List[str] = list(plan.predeclared)
		self.attached = {b.name for b in descriptor.attached}
		self.taken: Set[str] = set(descriptor.declared) | set(plan.locals.values()) | set(plan.predeclared)
		if plan.default_local:
			self.taken.add(plan.default_local)

	# -- helpers ---------------------------------------------------------------

	def span(self, node: Node) -> Span:
		return Span.from_loc(node.loc, self.program.file)

	def report(self, severity: str, code: str, message: str, node: Node) -> None:
		self.diagnostics.append(Diagnostic(message=message, code=code, phase="rewrite", severity=severity, span=self.span(node)))

	def claim(self, *nodes: Optional[Node]) -> None:
		for node in nodes:
			if node is not None:
				self.claimed.update(id(n) for n in walk(node))

	def fresh(self, base: str) -> str:
		return unique_local(safe_local(base), self.taken)

	def statement_of(self, node: Node, parent: Optional[Node]) -> Optional[ExprStmt]:
		"""The top-level expression statement whose whole value is `node`."""
		if isinstance(parent, ExprStmt) and parent.value is node and id(parent) in self.body_ids:
			return parent
		return None

	def remove_statement(self, stmt: Node) -> None:
		start, end = stmt.loc.start, stmt.loc.end
		line_start = self.source.rfind("\n", 0, start) + 1
		line_end = self.source.find("\n", end)
		if line_end == -1:
			line_end = len(self.source)
		if not self.source[line_start:start].strip():
			if not self.source[end:line_end].strip():
				start, end = line_start, min(line_end + 1, len(self.source))
			else:
				# the statement opens the line; the next one takes its place
				while end < line_end and self.source[end] in " \t":
					end += 1
		self.splice.replace(start, end)

	def replace(self, node: Node, *parts: Part) -> None:
		self.splice.replace(node.loc.start, node.loc.end, *parts)

	def ensure_declared(self, ident: str) -> None:
		if ident in self.declared or ident in self.descriptor.top_level or not is_identifier(ident):
			return
		self.declared.add(ident)
		self.prologue_lets.append(ident)

	def is_reused(self, name: str, ident: str) -> bool:
		"""The export reuses an existing top-level binding."""
		binding = self.descriptor.lookup(name)
		return (
			binding is not None
			and binding.provenance.kind in (ProvenanceKind.LOCAL, ProvenanceKind.ALIAS)
			and binding.provenance.local == ident
			and ident in self.descriptor.top_level
		)

	# -- specifiers ------------------------------------------------------------

	def spell(self, raw: str) -> str:
		target = self.resolved.get(raw)
		if target is not None and is_relative(raw):
			return relative_specifier(self.module.specifier, target)
		return raw

	def is_json(self, raw: str) -> bool:
		target = self.resolved.get(raw)
		if target is not None and self.graph is not None:
			module = self.graph.get(target)
			if module is not None:
				return module.is_json
		return raw.endswith(".json")

	def from_clause(self, raw: str) -> str:
		attrs = " with { type: 'json' }" if self.is_json(raw) and self.config.json_import_attributes else ""
		return f"from '{self.spell(raw)}'{attrs}"

	def statically_exports(self, raw: str, names: Iterable[str]) -> bool:
		target = self.resolved.get(raw)
		if target is None or self.graph is None or self.is_json(raw):
			return False
		available = exported_names(self.graph, target)
		return available is not None and all(n in available for n in names)

	def is_esm(self, raw: str) -> bool:
		"""`require()` of an ES module yields its namespace object."""
		target = self.resolved.get(raw)
		module = self.graph.get(target) if target is not None and self.graph is not None else None
		return module is not None and not module.is_json and module.descriptor is not None and module.descriptor.tag is ShapeTag.ESM_STATIC

	def import_clause(self, ident: str, raw: str) -> str:
		return f"* as {ident}" if self.is_esm(raw) else ident

	def consume(self, call: Optional[Node]) -> None:
		if isinstance(call, Call):
			self.consumed.add(id(call.callee))

	def import_declaration(self, keyword: str, ident: str, value: Expr) -> Optional[str]:
		"""`import` form of `<keyword> ident = require(...)[.member]`, when it has one."""
		raw = require_source(value)
		if raw is not None:
			self.consume(value)
			if keyword == "const":
				return f"import {self.import_clause(ident, raw)} {self.from_clause(raw)};"
			temp = self.fresh(ident + "Module")
			return f"import {self.import_clause(temp, raw)} {self.from_clause(raw)};\n{keyword} {ident} = {temp};"
		member = require_member(value)
		if member is not None:
			raw, prop = member
			assert isinstance(value, Member)
			self.consume(value.object)
			if keyword == "const" and is_identifier(prop) and self.statically_exports(raw, [prop]):
				spec = prop if prop == ident else f"{prop} as {ident}"
				return f"import {{ {spec} }} {self.from_clause(raw)};"
			temp = self.fresh(camel_stem(raw))
			access = _access(temp, prop)
			return f"import {self.import_clause(temp, raw)} {self.from_clause(raw)};\n{keyword} {ident} = {access};"
		return None

	def declaration(self, keyword: str, ident: str, value: Expr) -> Tuple[Part, ...]:
		text = self.import_declaration(keyword, ident, value)
		if text is not None:
			return (text,)
		return (f"{keyword} {ident} = ", _slice(value), ";")

	def keyword_for(self, name: str) -> str:
		return "let" if name in self.descriptor.reassigned else "const"

	def property_value(self, prop: Property) -> Tuple[Part, ...]:
		"""Expression text for one object-literal member's value."""
		if prop.kind == "shorthand":
			return (prop.key or "",)
		if prop.kind == "method" and isinstance(prop.value, FunctionExpr) and prop.key_loc is not None:
			func = prop.value
			head = ("async " if func.is_async else "") + "function" + ("*" if func.is_generator else "") + " "
			return (head, (prop.key_loc.end, prop.loc.end))
		if prop.kind == "get":
			# accessor members are read once
			return ("({ ", _slice(prop), " })" + _access("", prop.key or ""))
		if prop.kind == "set" or prop.value is None:
			return ("undefined",)
		return (_slice(prop.value),)

	def property_declaration(self, prop: Property) -> Tuple[Part, ...]:
		"""Declaration (or assignment) of the local holding one object member; () when nothing is needed."""
		name = prop.key or ""
		ident = self.plan.locals.get(name)
		if ident is None:
			return ()
		if self.is_reused(name, ident):
			return ()
		if ident in self.declared:
			return (f"{ident} = ",) + self.property_value(prop) + (";",)
		self.declared.add(ident)
		keyword = self.keyword_for(name)
		if prop.kind == "method" and isinstance(prop.value, FunctionExpr) and prop.key_loc is not None and keyword == "const":
			head = self.property_value(prop)
			return (head[0].rstrip(" ") + " " + ident, head[1])  # type: ignore[operator]
		if prop.kind == "init" and prop.value is not None:
			return self.declaration(keyword, ident, prop.value)
		return (f"{keyword} {ident} = ",) + self.property_value(prop) + (";",)

	# -- driver ----------------------------------------------------------------

	def run(self) -> RewriteResult:
		self.strip_directives()
		self.rewrite_exports()
		self.rewrite_requires()
		if self.config.rewrite_context_locals:
			self.rewrite_context_locals()
		self.rewrite_reads()
		return self.assemble()

	def strip_directives(self) -> None:
		for stmt in self.program.body:
			if isinstance(stmt, ExprStmt) and isinstance(stmt.value, Literal) and stmt.value.kind == "string":
				if stmt.value.value == "use strict":
					self.remove_statement(stmt)
				continue
			break

	# -- exports ---------------------------------------------------------------

	def rewrite_exports(self) -> None:
		chained: Set[int] = set()
		for node, scope, parent in walk_scoped(self.program):
			if id(node) in self.claimed or id(node) in chained:
				continue
			if isinstance(node, Assign):
				targets = [node.target]
				value = node.value
				if node.op == "=":
					while isinstance(value, Assign) and value.op == "=":
						chained.add(id(value))
						targets.append(value.target)
						value = value.value
				kinds = [export_target(t) for t in targets]
				if not any(kinds):
					chained.difference_update(self._chain_ids(node))
					continue
				stmt = self.statement_of(node, parent)
				if any(k is not None and k.kind == "whole" for k in kinds):
					self.rewrite_whole(node, targets, value, stmt, scope)
				elif all(k is not None and k.kind == "rebind" for k in kinds):
					self.rewrite_rebind(node, value, stmt)
				else:
					self.rewrite_named(node, targets, value, stmt, scope)
			elif isinstance(node, (Update, Unary)) and node.operand is not None:
				if isinstance(node, Unary) and node.op != "delete":
					continue
				et = export_target(node.operand)
				if et is not None and et.kind == "named":
					self.rewrite_update(node, et.name or "")
			elif isinstance(node, Call) and node.args and is_exports_object(node.args[0]):
				if is_object_method(node.callee, "Object", "defineProperty"):
					self.rewrite_define_property(node, self.statement_of(node, parent))
				elif is_object_method(node.callee, "Object", "assign"):
					self.rewrite_object_assign(node, self.statement_of(node, parent))

	@staticmethod
	def _chain_ids(node: Assign) -> List[int]:
		out = []
		value = node.value
		while isinstance(value, Assign) and value.op == "=":
			out.append(id(value))
			value = value.value
		return out

	def rewrite_rebind(self, node: Assign, value: Expr, stmt: Optional[ExprStmt]) -> None:
		self.claim(node.target)
		if is_module_exports(value) or _is_pure(value):
			if stmt is not None:
				self.remove_statement(stmt)
			else:
				self.replace(node, "void 0")
			self.claim(value)
			return
		self.replace(node, "void (", _slice(value), ")")

	def rewrite_dead(self, node: Node, value: Optional[Expr], stmt: Optional[ExprStmt]) -> None:
		if value is None or _is_pure(value):
			if stmt is not None:
				self.remove_statement(stmt)
			else:
				self.replace(node, "void 0")
			return
		self.replace(node, "void (", _slice(value), ")")

	def rewrite_named(self, node: Assign, targets: List[Expr], value: Expr, stmt: Optional[ExprStmt], scope: Scope) -> None:
		named: List[Tuple[Expr, str]] = []
		for target in targets:
			et = export_target(target)
			if et is not None and et.kind == "named":
				self.claim(target)
				named.append((target, et.name or ""))
		if len(named) == 1 and len(targets) == 1:
			self.rewrite_single_write(node, named[0][0], named[0][1], value, stmt, scope)
			return
		if len(named) < len(targets):
			# other assignment targets in the chain keep the statement form
			stmt = None
		self.rewrite_chain(node, named, value, stmt, scope)

	def rewrite_single_write(self, node: Assign, target: Expr, name: str, value: Expr, stmt: Optional[ExprStmt], scope: Scope) -> None:
		if target.loc.start in self.descriptor.dead_writes:
			self.rewrite_dead(node, value, stmt)
			return
		entry = self.plan.export(name)
		if entry is not None and entry.source is not None:
			# re-exported through the export block
			if stmt is not None:
				self.remove_statement(stmt)
				self.consume(value if isinstance(value, Call) else getattr(value, "object", None))
			else:
				self.replace(node, _slice(value))
			return
		ident = self.plan.locals.get(name)
		if ident is None:
			self.report(WARNING, "rewrite-unsupported", f"no local binding for export `{name}`; write left unchanged", node)
			return
		if name in self.attached:
			self.replace(target, ident)
			return
		if node.op == "=" and self.is_reused(name, ident):
			if stmt is not None:
				self.remove_statement(stmt)
			else:
				self.replace(node, _slice(value))
			return
		declarable = node.op == "=" and stmt is not None and scope.unconditional and ident not in self.declared
		if declarable:
			self.declared.add(ident)
			assert stmt is not None
			self.splice.replace(stmt.loc.start, stmt.loc.end, *self.declaration(self.keyword_for(name), ident, value))
			return
		self.ensure_declared(ident)
		self.replace(target, ident)

	def rewrite_chain(self, node: Assign, named: List[Tuple[Expr, str]], value: Expr, stmt: Optional[ExprStmt], scope: Scope) -> None:
		idents = []
		for target, name in named:
			ident = self.plan.locals.get(name)
			if ident is None or name in self.attached or target.loc.start in self.descriptor.dead_writes:
				ident = None
			idents.append(ident)
		fresh = [i for i in idents if i is not None and i not in self.declared and i not in self.descriptor.top_level]
		if stmt is not None and scope.unconditional and len(fresh) == len(named) == len(idents):
			*outer, inner = [(name, ident) for (_t, name), ident in zip(named, idents)]
			parts: List[Part] = list(self.declaration(self.keyword_for(inner[0]), inner[1], value))
			self.declared.add(inner[1])
			for name, ident in reversed(outer):
				parts.append(f"\n{self.keyword_for(name)} {ident} = {inner[1]};")
				self.declared.add(ident)
			self.splice.replace(stmt.loc.start, stmt.loc.end, *parts)
			return
		for (target, name), ident in zip(named, idents):
			if ident is None:
				ident = self.plan.locals.get(name)
			if ident is None:
				self.report(WARNING, "rewrite-unsupported", f"no local binding for export `{name}`; write left unchanged", target)
				continue
			self.ensure_declared(ident)
			self.replace(target, ident)

	def rewrite_update(self, node: Union[Update, Unary], name: str) -> None:
		operand = node.operand
		assert operand is not None
		self.claim(operand)
		ident = self.plan.locals.get(name)
		if ident is None:
			self.report(WARNING, "rewrite-unsupported", f"no local binding for export `{name}`; update left unchanged", node)
			return
		self.ensure_declared(ident)
		if isinstance(node, Unary):
			self.replace(node, f"({ident} = undefined, true)")
		else:
			self.replace(operand, ident)

	def rewrite_whole(self, node: Assign, targets: List[Expr], value: Expr, stmt: Optional[ExprStmt], scope: Scope) -> None:
		whole = next(t for t in targets if is_module_exports(t))
		for target in targets:
			self.claim(target)
		if whole.loc.start in self.descriptor.dead_writes:
			self.rewrite_dead(node, value, stmt)
			return
		if not scope.unconditional:
			self.rewrite_conditional_whole(node, whole, value)
			return
		tag = self.plan.tag
		if isinstance(value, ObjectLiteral) and tag is not ShapeTag.NON_OBJECT_DEFAULT:
			self.rewrite_object_whole(node, value, stmt)
		elif require_source(value) is not None and tag in (ShapeTag.REEXPORT_ALL, ShapeTag.REEXPORT_DEFAULT_AGGREGATE):
			if stmt is not None:
				self.remove_statement(stmt)
				self.consume(value)
			else:
				self.replace(node, _slice(value))
		elif tag is ShapeTag.NON_OBJECT_DEFAULT and self.plan.default_local:
			self.rewrite_default_value(node, value, stmt)
		else:
			self.report(WARNING, "rewrite-unsupported", "module.exports assignment left unchanged", node)

	def rewrite_object_whole(self, node: Assign, value: ObjectLiteral, stmt: Optional[ExprStmt]) -> None:
		for prop in value.properties:
			if prop.kind == "spread":
				self.consume(prop.value)
		if stmt is None:
			self.replace_with_assignments(node, self.assignments(value.properties))
			return
		decls: List[Part] = []
		for prop in value.properties:
			if prop.kind == "spread":
				continue
			if prop.kind == "init" and prop.value is not None and self.plan.export(prop.key or "") is not None:
				entry = self.plan.export(prop.key or "")
				if entry is not None and entry.source is not None:
					self.consume(prop.value)
					continue
			decl = self.property_declaration(prop)
			if decl:
				if decls:
					decls.append("\n")
				decls.extend(decl)
		if decls:
			self.splice.replace(stmt.loc.start, stmt.loc.end, *decls)
		else:
			self.remove_statement(stmt)

	def assignments(self, properties: List[Property]) -> List[Part]:
		"""`a = 1, b = b` over predeclared locals (expression position)."""
		parts: List[Part] = []
		for prop in properties:
			if prop.kind == "spread":
				continue
			name = prop.key or ""
			ident = self.plan.locals.get(name)
			if ident is None or self.is_reused(name, ident):
				continue
			self.ensure_declared(ident)
			if parts:
				parts.append(", ")
			parts.append(f"{ident} = ")
			parts.extend(self.property_value(prop))
		return parts

	def replace_with_assignments(self, node: Node, parts: List[Part]) -> None:
		if parts:
			self.replace(node, "(", *parts, ")")
		else:
			self.replace(node, "void 0")

	def rewrite_conditional_whole(self, node: Assign, whole: Expr, value: Expr) -> None:
		if isinstance(value, ObjectLiteral) and all(p.kind in ("init", "shorthand", "method") and p.key is not None for p in value.properties):
			self.replace_with_assignments(node, self.assignments(value.properties))
			return
		ident = self.plan.default_local
		if ident is None:
			self.report(WARNING, "rewrite-unsupported", "conditional module.exports assignment left unchanged", node)
			return
		self.ensure_declared(ident)
		self.replace(whole, ident)

	def rewrite_default_value(self, node: Assign, value: Expr, stmt: Optional[ExprStmt]) -> None:
		ident = self.plan.default_local or ""
		if isinstance(value, Name) and value.ident == ident:
			if stmt is not None:
				self.remove_statement(stmt)
			else:
				self.replace(node, ident)
			return
		named_expression = isinstance(value, (FunctionExpr, ClassExpr)) and value.name == ident and not getattr(value, "is_arrow", False)
		if stmt is not None and named_expression:
			self.declared.add(ident)
			self.splice.replace(stmt.loc.start, stmt.loc.end, _slice(value))
			return
		if stmt is not None and ident not in self.declared:
			self.declared.add(ident)
			keyword = "const" if self.descriptor.conditional_default is None else "let"
			self.splice.replace(stmt.loc.start, stmt.loc.end, *self.declaration(keyword, ident, value))
			return
		self.ensure_declared(ident)
		self.replace(node.target, ident)

	def rewrite_define_property(self, node: Call, stmt: Optional[ExprStmt]) -> None:
		key = static_string(node.args[1]) if len(node.args) > 1 else None
		self.claim(node.callee, node.args[0], node.args[1] if len(node.args) > 1 else None)
		if key is None:
			return
		if key == "__esModule":
			self.claim(node)
			if stmt is not None:
				self.remove_statement(stmt)
			else:
				self.replace(node, "void 0")
			return
		if node.loc.start in self.descriptor.dead_writes:
			self.rewrite_dead(node, None, stmt)
			return
		ident = self.plan.locals.get(key)
		if ident is None:
			self.report(WARNING, "rewrite-unsupported", f"no local binding for export `{key}`; defineProperty left unchanged", node)
			return
		desc = node.args[2] if len(node.args) > 2 else None
		value: Tuple[Part, ...] = ("undefined",)
		if isinstance(desc, ObjectLiteral):
			for prop in desc.properties:
				if prop.key == "value" and prop.kind in ("init", "shorthand"):
					value = self.property_value(prop)
				elif prop.key == "get" and prop.kind in ("init", "method"):
					# accessor exports are snapshotted once at evaluation
					value = ("(", _slice(desc), ").get()")
		if stmt is not None and ident not in self.declared and ident not in self.descriptor.top_level:
			self.declared.add(ident)
			self.splice.replace(stmt.loc.start, stmt.loc.end, f"{self.keyword_for(key)} {ident} = ", *value, ";")
			return
		self.ensure_declared(ident)
		self.replace(node, f"({ident} = ", *value, ")")

	def rewrite_object_assign(self, node: Call, stmt: Optional[ExprStmt]) -> None:
		self.claim(node.callee, node.args[0])
		props: List[Property] = []
		for arg in node.args[1:]:
			if isinstance(arg, ObjectLiteral):
				props.extend(p for p in arg.properties if p.loc.start not in self.descriptor.dead_writes)
			else:
				self.consume(arg)
		if stmt is not None:
			decls: List[Part] = []
			for prop in props:
				decl = self.property_declaration(prop)
				if decl:
					if decls:
						decls.append("\n")
					decls.extend(decl)
			if decls:
				self.splice.replace(stmt.loc.start, stmt.loc.end, *decls)
			else:
				self.remove_statement(stmt)
			return
		parts = self.assignments(props)
		self.replace_with_assignments(node, parts)

	# -- requires --------------------------------------------------------------

	def rewrite_requires(self) -> None:
		for stmt in self.program.body:
			if id(stmt) in self.claimed:
				continue
			if isinstance(stmt, ExprStmt):
				raw = require_source(stmt.value)
				if raw is not None and id(stmt.value) not in self.claimed:
					self.consume(stmt.value)
					self.splice.replace(stmt.loc.start, stmt.loc.end, f"import '{self.spell(raw)}'" + self.attributes(raw) + ";")
			elif isinstance(stmt, VarDecl):
				self.rewrite_require_declaration(stmt)

	def attributes(self, raw: str) -> str:
		return " with { type: 'json' }" if self.is_json(raw) and self.config.json_import_attributes else ""

	def rewrite_require_declaration(self, stmt: VarDecl) -> None:
		lines: List[str] = []
		pending: List[Node] = []
		for decl in stmt.declarations:
			init = decl.init
			if init is None or (require_source(init) is None and require_member(init) is None):
				return
			text = self.require_import(stmt.kind, decl.target, init)
			if text is None:
				return
			lines.append(text)
			pending.append(init)
		for init in pending:
			self.consume(init if isinstance(init, Call) else getattr(init, "object", None))
		self.splice.replace(stmt.loc.start, stmt.loc.end, "\n".join(lines))

	def require_import(self, keyword: str, target: Expr, init: Expr) -> Optional[str]:
		if isinstance(target, Name):
			return self.import_declaration(keyword, target.ident, init)
		raw = require_source(init)
		pattern = self.source[target.loc.start:target.loc.end]
		if raw is not None and isinstance(target, ObjectLiteral) and keyword == "const":
			simple = all(
				p.kind == "shorthand" and p.default is None or (p.kind == "init" and isinstance(p.value, Name))
				for p in target.properties
			)
			keys = [p.key or "" for p in target.properties]
			if simple and target.properties and all(is_identifier(k) for k in keys) and self.statically_exports(raw, keys):
				specs = []
				for prop in target.properties:
					local_name = prop.key if prop.kind == "shorthand" else prop.value.ident  # type: ignore[union-attr]
					specs.append(prop.key if local_name == prop.key else f"{prop.key} as {local_name}")
				return "import { " + ", ".join(specs) + " } " + self.from_clause(raw) + ";"
		member = require_member(init)
		source = raw if raw is not None else (member[0] if member else None)
		if source is None:
			return None
		temp = self.fresh(camel_stem(source))
		access = temp if member is None else _access(temp, member[1])
		return f"import {self.import_clause(temp, source)} {self.from_clause(source)};\n{keyword} {pattern} = {access};"

	# -- context locals --------------------------------------------------------

	def rewrite_context_locals(self) -> None:
		for node in self._unclaimed():
			if isinstance(node, Binary) and node.op in ("===", "==", "!==", "!="):
				if _is_require_main(node.left, node.right) or _is_require_main(node.right, node.left):
					negate = "!" if node.op.startswith("!") else ""
					self.replace(node, f"{negate}import.meta.main")
					for side in (node.left, node.right):
						if isinstance(side, Member):
							self.consumed.add(id(side.object))
					self.claim(node)
					self.report(
						WARNING,
						"import-meta-main",
						"`require.main === module` became `import.meta.main`, which needs a Node.js release that provides it",
						node,
					)
			elif isinstance(node, Name) and node.ident in _CONTEXT_LOCALS and node.ident not in self.descriptor.top_level:
				self.replace(node, _CONTEXT_LOCALS[node.ident])
				self.claim(node)

	def _unclaimed(self) -> Iterable[Node]:
		for stmt in self.program.body:
			for node in walk(stmt):
				if id(node) not in self.claimed:
					yield node

	# -- reads -----------------------------------------------------------------

	def rewrite_reads(self) -> None:
		default_local = self.plan.default_local
		parents: Dict[int, Node] = {}
		for node, _scope, parent in walk_scoped(self.program):
			if parent is not None:
				parents[id(node)] = parent
			if id(node) in self.claimed:
				continue
			if isinstance(node, Member) and is_exports_object(node.object):
				name = node.prop if node.prop is not None else static_string(node.computed)
				ident = self.plan.locals.get(name or "")
				if ident is not None and name is not None:
					self.replace(node, ident)
					self.claim(node)
				elif default_local:
					self.replace(node.object, default_local)
					self.claim(node.object)
				else:
					self.report(WARNING, "export-object-read", "read of the CommonJS export object left unchanged", node)
					self.claim(node)
			elif is_exports_object(node):
				outer = parents.get(id(node))
				if isinstance(outer, Unary) and outer.op == "typeof":
					self.claim(node)
					continue
				if default_local:
					self.replace(node, default_local)
				else:
					self.report(WARNING, "export-object-read", "read of the CommonJS export object left unchanged", node)
				self.claim(node)

	# -- output ----------------------------------------------------------------

	def needs_require(self) -> bool:
		for stmt in self.program.body:
			for node in walk(stmt):
				if is_name(node, "require") and id(node) not in self.consumed:
					return True
		return False

	def remaining_require_sites(self) -> List[Node]:
		return [
			node
			for stmt in self.program.body
			for node in walk(stmt)
			if isinstance(node, Call) and is_name(node.callee, "require") and id(node.callee) not in self.consumed
		]

	def assemble(self) -> RewriteResult:
		source = self.source
		body_start = 0
		hashbang = ""
		if source.startswith("#!"):
			newline = source.find("\n")
			body_start = len(source) if newline == -1 else newline + 1
			hashbang = source[:body_start]
			if not hashbang.endswith("\n"):
				hashbang += "\n"
		body = self.splice.render(body_start).strip("\n")
		prologue: List[str] = []
		needs_require = "require" not in self.descriptor.top_level and self.needs_require()
		if needs_require:
			if self.config.create_require_fallback:
				prologue.append(CREATE_REQUIRE_PROLOGUE)
				self.diagnostics.append(
					Diagnostic(
						message="require() calls that cannot become imports keep working through createRequire",
						code="create-require",
						phase="rewrite",
						severity=INFO,
						span=Span(file=self.program.file),
					)
				)
			else:
				for site in self.remaining_require_sites():
					self.report(WARNING, "require-left", "require() left in ESM output without a createRequire fallback", site)
		if self.prologue_lets:
			prologue.append("let " + ", ".join(self.prologue_lets) + ";")
		exports = self.plan.render_exports(self.spell)
		chunks = [c for c in ("\n".join(prologue), body, exports) if c]
		text = hashbang + "\n\n".join(chunks) + "\n"
		return RewriteResult(text, self.diagnostics, needs_require)


def _is_require_main(left: Expr, right: Expr) -> bool:
	return isinstance(left, Member) and left.prop == "main" and is_name(left.object, "require") and is_name(right, "module")


__all__ = ["CREATE_REQUIRE_PROLOGUE", "RewriteResult", "render", "rewrite"]
