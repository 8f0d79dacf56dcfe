# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
JavaScript AST produced by the esmshift front-end.

Only the structure the analyses need is modelled, but every node keeps exact
source offsets (`loc.start`/`loc.end`) so the rewriter can splice the original
text instead of pretty-printing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Located:
	line: int
	column: int
	start: int
	end: int
	end_line: Optional[int] = None
	end_column: Optional[int] = None


class Node:
	loc: Located


class Stmt(Node):
	loc: Located


class Expr(Node):
	loc: Located


# -- expressions ---------------------------------------------------------------


@dataclass
class Name(Expr):
	loc: Located
	ident: str


@dataclass
class Literal(Expr):
	loc: Located
	kind: str  # string | number | bigint | boolean | null | regex
	value: object
	raw: str


@dataclass
class Keyword(Expr):
	"""`this` / `super`."""

	loc: Located
	word: str


@dataclass
class MetaProperty(Expr):
	"""`import.meta` / `new.target`."""

	loc: Located
	meta: str
	prop: str


@dataclass
class TemplateLiteral(Expr):
	loc: Located
	quasis: List[str]
	expressions: List[Expr]


@dataclass
class TaggedTemplate(Expr):
	loc: Located
	tag: Expr
	quasi: TemplateLiteral


@dataclass
class Spread(Expr):
	loc: Located
	value: Expr


@dataclass
class ArrayLiteral(Expr):
	loc: Located
	elements: List[Optional[Expr]]  # None marks a hole


@dataclass
class Property(Node):
	loc: Located
	kind: str  # init | shorthand | method | get | set | spread
	key: Optional[str]
	value: Optional[Expr]
	computed_key: Optional[Expr] = None
	default: Optional[Expr] = None  # `{ a = 1 }` pattern cover
	key_loc: Optional[Located] = None


@dataclass
class ObjectLiteral(Expr):
	loc: Located
	properties: List[Property]

	def static_keys(self) -> Optional[List[str]]:
		"""Keys in order when every member has a static key; None otherwise."""
		keys: List[str] = []
		for prop in self.properties:
			if prop.kind == "spread" or prop.key is None:
				return None
			keys.append(prop.key)
		return keys


@dataclass
class Param(Node):
	loc: Located
	target: Expr
	default: Optional[Expr] = None
	rest: bool = False


@dataclass
class Block(Stmt):
	loc: Located
	body: List[Stmt]


@dataclass
class FunctionExpr(Expr):
	loc: Located
	name: Optional[str]
	params: List[Param]
	body: Union[Block, Expr]
	is_async: bool = False
	is_generator: bool = False
	is_arrow: bool = False


@dataclass
class ClassMember(Node):
	loc: Located
	kind: str  # method | get | set | field
	key: Optional[str]
	value: Optional[Expr]
	computed_key: Optional[Expr] = None
	is_static: bool = False


@dataclass
class ClassExpr(Expr):
	loc: Located
	name: Optional[str]
	superclass: Optional[Expr]
	members: List[ClassMember]


@dataclass
class Member(Expr):
	loc: Located
	object: Expr
	prop: Optional[str]
	computed: Optional[Expr] = None
	optional: bool = False
	private: bool = False


@dataclass
class Call(Expr):
	loc: Located
	callee: Expr
	args: List[Expr]
	optional: bool = False


@dataclass
class New(Expr):
	loc: Located
	callee: Expr
	args: List[Expr]


@dataclass
class DynamicImport(Expr):
	loc: Located
	source: Expr
	options: Optional[Expr] = None


@dataclass
class Unary(Expr):
	loc: Located
	op: str
	operand: Optional[Expr]


@dataclass
class Update(Expr):
	loc: Located
	op: str
	operand: Expr
	prefix: bool


@dataclass
class Binary(Expr):
	loc: Located
	op: str
	left: Expr
	right: Expr


@dataclass
class Conditional(Expr):
	loc: Located
	test: Expr
	consequent: Expr
	alternate: Expr


@dataclass
class Assign(Expr):
	loc: Located
	op: str
	target: Expr
	value: Expr


@dataclass
class Sequence(Expr):
	loc: Located
	expressions: List[Expr]


# -- statements ----------------------------------------------------------------


@dataclass
class Declarator(Node):
	loc: Located
	target: Expr
	init: Optional[Expr]


@dataclass
class VarDecl(Stmt):
	loc: Located
	kind: str
	declarations: List[Declarator]


@dataclass
class ExprStmt(Stmt):
	loc: Located
	value: Expr


@dataclass
class FunctionDecl(Stmt):
	loc: Located
	func: FunctionExpr

	@property
	def name(self) -> str:
		return self.func.name or ""


@dataclass
class ClassDecl(Stmt):
	loc: Located
	cls: ClassExpr

	@property
	def name(self) -> str:
		return self.cls.name or ""


@dataclass
class IfStmt(Stmt):
	loc: Located
	test: Expr
	consequent: Stmt
	alternate: Optional[Stmt] = None


@dataclass
class ForStmt(Stmt):
	"""`for (…;…;…)`, `for (… in …)` and `for (… of …)` share one node."""

	loc: Located
	kind: str  # for | for-in | for-of
	parts: List[Node]
	body: Stmt
	is_await: bool = False


@dataclass
class WhileStmt(Stmt):
	loc: Located
	test: Expr
	body: Stmt


@dataclass
class DoWhileStmt(Stmt):
	loc: Located
	body: Stmt
	test: Expr


@dataclass
class ReturnStmt(Stmt):
	loc: Located
	value: Optional[Expr]


@dataclass
class ThrowStmt(Stmt):
	loc: Located
	value: Expr


@dataclass
class JumpStmt(Stmt):
	loc: Located
	keyword: str  # break | continue
	label: Optional[str] = None


@dataclass
class TryStmt(Stmt):
	loc: Located
	block: Block
	param: Optional[Expr] = None
	handler: Optional[Block] = None
	finalizer: Optional[Block] = None


@dataclass
class SwitchCase(Node):
	loc: Located
	test: Optional[Expr]
	body: List[Stmt]


@dataclass
class SwitchStmt(Stmt):
	loc: Located
	discriminant: Expr
	cases: List[SwitchCase]


@dataclass
class EmptyStmt(Stmt):
	loc: Located


# -- module declarations -------------------------------------------------------


@dataclass
class ImportSpec(Node):
	loc: Located
	imported: str
	local: str


@dataclass
class ImportDecl(Stmt):
	loc: Located
	source: str
	default: Optional[str] = None
	namespace: Optional[str] = None
	specifiers: List[ImportSpec] = field(default_factory=list)
	attributes: Optional[ObjectLiteral] = None


@dataclass
class ExportSpec(Node):
	loc: Located
	local: str
	exported: str


@dataclass
class ExportNamed(Stmt):
	"""`export { a, b as c }` optionally `from 'src'`."""

	loc: Located
	specifiers: List[ExportSpec]
	source: Optional[str] = None


@dataclass
class ExportDeclaration(Stmt):
	"""`export const …`, `export function …`, `export class …`."""

	loc: Located
	declaration: Stmt


@dataclass
class ExportDefault(Stmt):
	loc: Located
	value: Expr


@dataclass
class ExportAll(Stmt):
	loc: Located
	source: str
	alias: Optional[str] = None


@dataclass
class Program:
	body: List[Stmt]
	source: str
	file: Optional[str] = None

	def has_module_syntax(self) -> bool:
		return any(isinstance(s, (ImportDecl, ExportNamed, ExportDeclaration, ExportDefault, ExportAll)) for s in self.body)
