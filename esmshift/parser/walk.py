# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
AST traversal helpers.

`walk_scoped` yields every node together with a `Scope` describing whether
the node runs unconditionally while the module body is evaluated. Traversal
is iterative so long operator chains do not hit the recursion limit.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Iterator, List, Optional, Tuple

from .ast import (
	Assign,
	Binary,
	Block,
	Call,
	ClassExpr,
	Conditional,
	Declarator,
	DoWhileStmt,
	ForStmt,
	FunctionDecl,
	FunctionExpr,
	IfStmt,
	Member,
	Name,
	Node,
	Program,
	SwitchStmt,
	TryStmt,
	WhileStmt,
)


@dataclass(frozen=True)
class Scope:
	conditional: bool = False
	in_function: bool = False
	# Name of the enclosing top-level function ("" when anonymous).
	function: Optional[str] = None
	# Index of the enclosing top-level statement in Program.body.
	statement_index: Optional[int] = None
	name_hint: Optional[str] = None

	@property
	def unconditional(self) -> bool:
		return not self.conditional and not self.in_function


def iter_children(node: Node) -> Iterator[Node]:
	"""Direct child nodes in source order."""
	for f in fields(node):  # type: ignore[arg-type]
		value = getattr(node, f.name)
		if isinstance(value, Node):
			yield value
		elif isinstance(value, list):
			for item in value:
				if isinstance(item, Node):
					yield item


def walk(node: Node) -> Iterator[Node]:
	"""Pre-order traversal of `node` and all its descendants."""
	stack: List[Node] = [node]
	while stack:
		current = stack.pop()
		yield current
		stack.extend(reversed(list(iter_children(current))))


def walk_scoped(program: Program) -> Iterator[Tuple[Node, Scope, Optional[Node]]]:
	"""Pre-order traversal of a program yielding (node, scope, parent)."""
	stack: List[Tuple[Node, Scope, Optional[Node]]] = [
		(stmt, Scope(statement_index=index), None) for index, stmt in reversed(list(enumerate(program.body)))
	]
	while stack:
		node, scope, parent = stack.pop()
		yield node, scope, parent
		children = list(iter_children(node))
		for child in reversed(children):
			stack.append((child, child_scope(node, child, scope), node))


def _conditional(scope: Scope) -> Scope:
	return Scope(True, scope.in_function, scope.function, scope.statement_index)


def child_scope(parent: Node, child: Node, scope: Scope) -> Scope:
	"""Scope of `child` when entered from `parent`."""
	base = scope if scope.name_hint is None else replace(scope, name_hint=None)
	if isinstance(parent, FunctionExpr):
		if scope.in_function:
			name = scope.function
		else:
			name = parent.name or scope.name_hint or ""
		return Scope(True, True, name, scope.statement_index)
	if isinstance(parent, ClassExpr):
		if child is parent.superclass:
			return base
		name = scope.function if scope.in_function else (parent.name or scope.name_hint or "")
		return Scope(True, True, name, scope.statement_index)
	if isinstance(parent, FunctionDecl):
		return replace(base, name_hint=parent.name)
	if isinstance(parent, Declarator):
		if child is parent.init and isinstance(parent.target, Name):
			return replace(base, name_hint=parent.target.ident)
		return base
	if isinstance(parent, Assign):
		if child is parent.value:
			if parent.op in ("&&=", "||=", "??="):
				return _conditional(base)
			if isinstance(parent.target, Name):
				return replace(base, name_hint=parent.target.ident)
			if isinstance(parent.target, Member) and parent.target.prop is not None:
				return replace(base, name_hint=parent.target.prop)
		return base
	if isinstance(parent, IfStmt):
		return base if child is parent.test else _conditional(base)
	if isinstance(parent, WhileStmt):
		return base if child is parent.test else _conditional(base)
	if isinstance(parent, ForStmt):
		if parent.parts and child is parent.parts[0]:
			return base
		if parent.kind != "for" and parent.parts and child is parent.parts[-1]:
			return base
		return _conditional(base)
	if isinstance(parent, (DoWhileStmt, TryStmt)):
		return _conditional(base)
	if isinstance(parent, SwitchStmt):
		return base if child is parent.discriminant else _conditional(base)
	if isinstance(parent, Conditional):
		return base if child is parent.test else _conditional(base)
	if isinstance(parent, Binary):
		if parent.op in ("&&", "||", "??") and child is parent.right:
			return _conditional(base)
		return base
	if isinstance(parent, Call) and parent.optional and child is not parent.callee:
		return _conditional(base)
	return base


def top_level_statements(program: Program) -> Iterator[Tuple[int, Node]]:
	"""Top-level statements, descending into bare blocks (which run unconditionally)."""
	for index, stmt in enumerate(program.body):
		if isinstance(stmt, Block):
			stack = list(reversed(stmt.body))
			while stack:
				inner = stack.pop()
				if isinstance(inner, Block):
					stack.extend(reversed(inner.body))
				else:
					yield index, inner
		else:
			yield index, stmt


__all__ = ["Scope", "iter_children", "walk", "walk_scoped", "child_scope", "top_level_statements"]
