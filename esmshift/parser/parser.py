# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
lark front-end: parse JavaScript source into the esmshift AST.

The grammar keeps binary expressions flat and leaves contextual keywords
(`from`, `as`, `of`) as NAME tokens; this builder applies operator precedence
and validates those words, raising AnalysisError("parse-error") with a pinned
span on malformed input.
"""

from __future__ import annotations

import dataclasses
import re
from pathlib import Path
from typing import List, Optional, Union

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput, UnexpectedToken

from esmshift.core.span import Span
from esmshift.errors import AnalysisError

from .ast import (
	ArrayLiteral,
	Assign,
	Binary,
	Block,
	Call,
	ClassDecl,
	ClassExpr,
	ClassMember,
	Conditional,
	Declarator,
	DoWhileStmt,
	DynamicImport,
	EmptyStmt,
	ExportAll,
	ExportDeclaration,
	ExportDefault,
	ExportNamed,
	ExportSpec,
	Expr,
	ExprStmt,
	ForStmt,
	FunctionDecl,
	FunctionExpr,
	IfStmt,
	ImportDecl,
	ImportSpec,
	JumpStmt,
	Keyword,
	Literal,
	Located,
	Member,
	MetaProperty,
	Name,
	New,
	Node,
	ObjectLiteral,
	Param,
	Program,
	Property,
	ReturnStmt,
	Sequence,
	Spread,
	Stmt,
	SwitchCase,
	SwitchStmt,
	TaggedTemplate,
	TemplateLiteral,
	ThrowStmt,
	TryStmt,
	Unary,
	Update,
	VarDecl,
	WhileStmt,
)
from .lexer import JsLexer

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer=JsLexer,
	start="program",
	propagate_positions=True,
	maybe_placeholders=False,
)

# Binding power of binary operators (higher binds tighter).
_PRECEDENCE = {
	"??": 1,
	"||": 2,
	"&&": 3,
	"|": 4,
	"^": 5,
	"&": 6,
	"==": 7,
	"!=": 7,
	"===": 7,
	"!==": 7,
	"<": 8,
	">": 8,
	"<=": 8,
	">=": 8,
	"instanceof": 8,
	"in": 8,
	"<<": 9,
	">>": 9,
	">>>": 9,
	"+": 10,
	"-": 10,
	"*": 11,
	"/": 11,
	"%": 11,
	"**": 12,
}

_SIMPLE_ESCAPES = {
	"n": "\n",
	"t": "\t",
	"r": "\r",
	"b": "\b",
	"f": "\f",
	"v": "\v",
	"0": "\0",
}
_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])")


def decode_string(raw: str) -> str:
	"""Decode the body of a JavaScript string literal (quotes already stripped)."""

	def repl(m: re.Match) -> str:
		esc = m.group(1)
		if esc.startswith("u{"):
			return chr(int(esc[2:-1], 16))
		if esc.startswith("u") and len(esc) == 5:
			return chr(int(esc[1:], 16))
		if esc.startswith("x") and len(esc) == 3:
			return chr(int(esc[1:], 16))
		if esc in ("\n", "\r", "\r\n", " ", " "):
			return ""  # line continuation
		return _SIMPLE_ESCAPES.get(esc, esc)

	return _ESCAPE_RE.sub(repl, raw)


def parse_program(source: str, file: Optional[str] = None) -> Program:
	"""Parse a whole module. Raises AnalysisError(code="parse-error") on bad input."""
	try:
		tree = _PARSER.parse(source)
	except AnalysisError as exc:
		if exc.span.file is None:
			raise dataclasses.replace(exc, span=Span.from_loc(exc.span, file)) from None
		raise
	except UnexpectedInput as exc:
		raise _syntax_error(exc, file) from None
	return _Builder(source, file).program(tree)


def _syntax_error(exc: UnexpectedInput, file: Optional[str]) -> AnalysisError:
	line = getattr(exc, "line", None)
	column = getattr(exc, "column", None)
	if line is not None and line < 0:
		line, column = None, None
	if isinstance(exc, UnexpectedToken):
		tok = exc.token
		if tok.type == "$END":
			message = "unexpected end of input"
		elif tok.type == "_TERM":
			message = "unexpected end of statement"
		else:
			message = f"unexpected token {tok.value!r}"
	else:
		message = "invalid syntax"
	return AnalysisError(f"syntax error: {message}", code="parse-error", span=Span(file, line, column))


def _name(node: object) -> str:
	return node.data if isinstance(node, Tree) else ""


def _is_tree(node: object, *names: str) -> bool:
	return isinstance(node, Tree) and node.data in names


def _join(first: Located, last: Located) -> Located:
	return Located(first.line, first.column, first.start, last.end, last.end_line, last.end_column)


class _Builder:
	"""Lowers lark parse trees to the esmshift AST."""

	def __init__(self, source: str, file: Optional[str]) -> None:
		self.source = source
		self.file = file

	# -- helpers ---------------------------------------------------------------

	def loc(self, node: Union[Tree, Token]) -> Located:
		if isinstance(node, Token):
			return Located(node.line, node.column, node.start_pos, node.end_pos, node.end_line, node.end_column)
		meta = node.meta
		if getattr(meta, "empty", True):
			return Located(0, 0, 0, 0)
		return Located(meta.line, meta.column, meta.start_pos, meta.end_pos, meta.end_line, meta.end_column)

	def error(self, message: str, node: Union[Tree, Token, Located]) -> AnalysisError:
		loc = node if isinstance(node, Located) else self.loc(node)
		return AnalysisError(message, code="parse-error", span=Span(self.file, loc.line, loc.column))

	def expect_word(self, tok: object, word: str) -> None:
		if not isinstance(tok, Token) or tok.value != word:
			raise self.error(f"syntax error: expected '{word}'", tok)  # type: ignore[arg-type]

	# -- program / statements ----------------------------------------------------

	def program(self, tree: Tree) -> Program:
		body = [self.stmt(child) for child in tree.children]
		return Program(body=body, source=self.source, file=self.file)

	def stmts(self, children: list) -> List[Stmt]:
		return [self.stmt(c) for c in children]

	def stmt(self, tree: Tree) -> Stmt:
		kind = _name(tree)
		method = getattr(self, f"_stmt_{kind}", None)
		if method is None:
			raise self.error(f"unsupported statement {kind!r}", tree)
		return method(tree)

	def _stmt_block(self, tree: Tree) -> Block:
		return Block(self.loc(tree), self.stmts(tree.children))

	def _stmt_empty_stmt(self, tree: Tree) -> EmptyStmt:
		return EmptyStmt(self.loc(tree))

	def _stmt_expr_stmt(self, tree: Tree) -> ExprStmt:
		return ExprStmt(self.loc(tree), self.expr(tree.children[0]))

	def _stmt_var_stmt(self, tree: Tree) -> VarDecl:
		decl = self.var_decl(tree.children[0])
		return VarDecl(self.loc(tree), decl.kind, decl.declarations)

	def var_decl(self, tree: Tree) -> VarDecl:
		kind_tok, *declarators = tree.children
		decls: List[Declarator] = []
		for d in declarators:
			target = self.binding(d.children[0])
			init = self.expr(d.children[2]) if len(d.children) > 2 else None
			decls.append(Declarator(self.loc(d), target, init))
		return VarDecl(self.loc(tree), str(kind_tok), decls)

	def binding(self, node: Union[Tree, Token]) -> Expr:
		if isinstance(node, Token):
			return Name(self.loc(node), str(node))
		return self.expr(node)

	def _stmt_function_decl(self, tree: Tree) -> FunctionDecl:
		return FunctionDecl(self.loc(tree), self.function(tree, require_name=True))

	def function(self, tree: Tree, require_name: bool = False) -> FunctionExpr:
		is_async = False
		is_generator = False
		name: Optional[str] = None
		params: List[Param] = []
		body: Optional[Block] = None
		for child in tree.children:
			if isinstance(child, Token):
				if child.type == "ASYNC":
					is_async = True
				elif child.type == "STAR":
					is_generator = True
				elif child.type == "NAME":
					name = str(child)
			elif _name(child) == "params":
				params = self.params(child)
			elif _name(child) == "body":
				body = Block(self.loc(child), self.stmts(child.children))
		if require_name and name is None:
			raise self.error("function declaration requires a name", tree)
		assert body is not None
		return FunctionExpr(self.loc(tree), name, params, body, is_async=is_async, is_generator=is_generator)

	def params(self, tree: Tree) -> List[Param]:
		out: List[Param] = []
		for p in tree.children:
			first = p.children[0]
			if isinstance(first, Token) and first.type == "SPREAD":
				out.append(Param(self.loc(p), self.binding(p.children[1]), rest=True))
			else:
				default = self.expr(p.children[2]) if len(p.children) > 2 else None
				out.append(Param(self.loc(p), self.binding(first), default))
		return out

	def _stmt_class_decl(self, tree: Tree) -> ClassDecl:
		name_tok, tail = tree.children
		return ClassDecl(self.loc(tree), self.class_tail(self.loc(tree), str(name_tok), tail))

	def class_tail(self, loc: Located, name: Optional[str], tail: Tree) -> ClassExpr:
		superclass: Optional[Expr] = None
		members: List[ClassMember] = []
		for child in tail.children:
			if _is_tree(child, "class_method"):
				head, params, body = child.children
				mods, is_generator, key, computed, key_loc = self.member_head(head)
				func = FunctionExpr(
					_join(key_loc, self.loc(body)),
					key,
					self.params(params),
					Block(self.loc(body), self.stmts(body.children)),
					is_async="async" in mods,
					is_generator=is_generator,
				)
				kind = "get" if "get" in mods else "set" if "set" in mods else "method"
				members.append(ClassMember(self.loc(child), kind, key, func, computed, is_static="static" in mods))
			elif _is_tree(child, "class_field"):
				head = child.children[0]
				mods, _gen, key, computed, _key_loc = self.member_head(head)
				value = self.expr(child.children[2]) if len(child.children) > 2 else None
				members.append(ClassMember(self.loc(child), "field", key, value, computed, is_static="static" in mods))
			else:
				superclass = self.expr(child)
		return ClassExpr(loc, name, superclass, members)

	def member_head(self, head: Tree) -> tuple[set, bool, Optional[str], Optional[Expr], Located]:
		mods = set()
		is_generator = False
		key: Optional[str] = None
		computed: Optional[Expr] = None
		key_loc = self.loc(head)
		for child in head.children:
			if isinstance(child, Token) and child.type == "MODIFIER":
				mods.add(str(child))
			elif isinstance(child, Token) and child.type == "STAR":
				is_generator = True
			elif _is_tree(child, "prop_key"):
				key, computed = self.prop_key(child)
				key_loc = self.loc(child)
		return mods, is_generator, key, computed, key_loc

	def prop_key(self, tree: Tree) -> tuple[Optional[str], Optional[Expr]]:
		child = tree.children[0]
		if isinstance(child, Token):
			if child.type == "STRING":
				return decode_string(child.value[1:-1]), None
			return str(child), None
		computed = self.expr(child)
		if isinstance(computed, Literal) and computed.kind == "string":
			return str(computed.value), None
		return None, computed

	def _stmt_if_stmt(self, tree: Tree) -> IfStmt:
		test, cons, *rest = tree.children
		alt = self.stmt(rest[0]) if rest else None
		return IfStmt(self.loc(tree), self.expr(test), self.stmt(cons), alt)

	def _stmt_for_stmt(self, tree: Tree) -> ForStmt:
		children = list(tree.children)
		is_await = False
		if isinstance(children[0], Token) and children[0].type == "AWAIT":
			is_await = True
			children = children[1:]
		header, body = children
		kind = "for"
		parts: List[Node] = []
		part_trees = [p for p in header.children if _is_tree(p, "for_part")]
		for part in part_trees:
			head = part.children[0]
			parts.append(self.var_decl(head) if _is_tree(head, "var_decl") else self.expr(head))
			if len(part.children) == 3:
				word = part.children[1]
				if str(word) == "in":
					kind = "for-in"
				else:
					self.expect_word(word, "of")
					kind = "for-of"
				parts.append(self.expr(part.children[2]))
		if len(part_trees) == 1 and kind == "for" and isinstance(parts[0], Binary) and parts[0].op == "in":
			# `for (x in obj)` parses as a relational expression
			kind = "for-in"
			binary = parts[0]
			parts = [binary.left, binary.right]
		return ForStmt(self.loc(tree), kind, parts, self.stmt(body), is_await)

	def _stmt_while_stmt(self, tree: Tree) -> WhileStmt:
		test, body = tree.children
		return WhileStmt(self.loc(tree), self.expr(test), self.stmt(body))

	def _stmt_do_stmt(self, tree: Tree) -> DoWhileStmt:
		body, test = tree.children
		return DoWhileStmt(self.loc(tree), self.stmt(body), self.expr(test))

	def _stmt_return_stmt(self, tree: Tree) -> ReturnStmt:
		value = self.expr(tree.children[0]) if tree.children else None
		return ReturnStmt(self.loc(tree), value)

	def _stmt_throw_stmt(self, tree: Tree) -> ThrowStmt:
		return ThrowStmt(self.loc(tree), self.expr(tree.children[0]))

	def _stmt_jump_stmt(self, tree: Tree) -> JumpStmt:
		word = tree.children[0]
		label = str(tree.children[1]) if len(tree.children) > 1 else None
		return JumpStmt(self.loc(tree), str(word), label)

	def _stmt_try_stmt(self, tree: Tree) -> TryStmt:
		block_tree = tree.children[0]
		block = Block(self.loc(block_tree), self.stmts(block_tree.children))
		param: Optional[Expr] = None
		handler: Optional[Block] = None
		finalizer: Optional[Block] = None
		for clause in tree.children[1:]:
			inner = clause.children[-1]
			inner_block = Block(self.loc(inner), self.stmts(inner.children))
			if _name(clause) == "catch_clause":
				if len(clause.children) == 2:
					param = self.binding(clause.children[0])
				handler = inner_block
			else:
				finalizer = inner_block
		return TryStmt(self.loc(tree), block, param, handler, finalizer)

	def _stmt_switch_stmt(self, tree: Tree) -> SwitchStmt:
		disc, *cases = tree.children
		out: List[SwitchCase] = []
		for case in cases:
			if _name(case) == "switch_case":
				test, *body = case.children
				out.append(SwitchCase(self.loc(case), self.expr(test), self.stmts(body)))
			else:
				out.append(SwitchCase(self.loc(case), None, self.stmts(case.children)))
		return SwitchStmt(self.loc(tree), self.expr(disc), out)

	# -- module declarations -------------------------------------------------------

	def spec_name(self, node: Union[Tree, Token]) -> str:
		if _is_tree(node, "default_name"):
			return "default"
		if isinstance(node, Token) and node.type == "STRING":
			return decode_string(node.value[1:-1])
		return str(node)

	def _stmt_import_decl(self, tree: Tree) -> ImportDecl:
		children = list(tree.children)
		attributes: Optional[ObjectLiteral] = None
		if children and _is_tree(children[-1], "import_attrs"):
			attrs = self.expr(children.pop().children[0])
			assert isinstance(attrs, ObjectLiteral)
			attributes = attrs
		if len(children) == 1:
			return ImportDecl(self.loc(tree), decode_string(children[0].value[1:-1]), attributes=attributes)
		clause, from_word, source = children
		self.expect_word(from_word, "from")
		decl = ImportDecl(self.loc(tree), decode_string(source.value[1:-1]), attributes=attributes)
		for part in clause.children:
			if isinstance(part, Token):
				decl.default = str(part)
			elif _name(part) == "namespace_spec":
				_star, as_word, local = part.children
				self.expect_word(as_word, "as")
				decl.namespace = str(local)
			else:
				for spec in part.children:
					imported = self.spec_name(spec.children[0])
					local = imported
					if len(spec.children) == 3:
						self.expect_word(spec.children[1], "as")
						local = self.spec_name(spec.children[2])
					elif isinstance(spec.children[0], Token) and spec.children[0].type == "STRING" or imported == "default":
						raise self.error(f"syntax error: import of {imported!r} requires 'as'", spec)
					decl.specifiers.append(ImportSpec(self.loc(spec), imported, local))
		return decl

	def _stmt_export_default(self, tree: Tree) -> ExportDefault:
		return ExportDefault(self.loc(tree), self.expr(tree.children[0]))

	def _stmt_export_declaration(self, tree: Tree) -> ExportDeclaration:
		return ExportDeclaration(self.loc(tree), self.stmt(tree.children[0]))

	def _stmt_export_named(self, tree: Tree) -> ExportNamed:
		specs_tree, *rest = tree.children
		specs: List[ExportSpec] = []
		for spec in specs_tree.children:
			local = self.spec_name(spec.children[0])
			exported = local
			if len(spec.children) == 3:
				self.expect_word(spec.children[1], "as")
				exported = self.spec_name(spec.children[2])
			specs.append(ExportSpec(self.loc(spec), local, exported))
		source: Optional[str] = None
		if rest:
			self.expect_word(rest[0], "from")
			source = decode_string(rest[1].value[1:-1])
		return ExportNamed(self.loc(tree), specs, source)

	def _stmt_export_all(self, tree: Tree) -> ExportAll:
		children = [c for c in tree.children if not _is_tree(c, "import_attrs")]
		children = children[1:]  # STAR
		alias: Optional[str] = None
		if len(children) == 4:
			self.expect_word(children[0], "as")
			alias = self.spec_name(children[1])
			children = children[2:]
		from_word, source = children
		self.expect_word(from_word, "from")
		return ExportAll(self.loc(tree), decode_string(source.value[1:-1]), alias)

	# -- expressions ---------------------------------------------------------------

	def expr(self, node: Union[Tree, Token]) -> Expr:
		if isinstance(node, Token):
			return self.token_expr(node)
		method = getattr(self, f"_expr_{node.data}", None)
		if method is None:
			raise self.error(f"unsupported expression {node.data!r}", node)
		return method(node)

	def token_expr(self, tok: Token) -> Expr:
		loc = self.loc(tok)
		t = tok.type
		if t == "NAME":
			return Name(loc, str(tok))
		if t == "NUMBER":
			raw = str(tok)
			if raw.endswith("n"):
				return Literal(loc, "bigint", int(raw[:-1].replace("_", ""), 0), raw)
			return Literal(loc, "number", _number_value(raw), raw)
		if t == "STRING":
			return Literal(loc, "string", decode_string(tok.value[1:-1]), str(tok))
		if t == "REGEX":
			return Literal(loc, "regex", str(tok), str(tok))
		if t in ("TRUE", "FALSE"):
			return Literal(loc, "boolean", t == "TRUE", str(tok))
		if t == "NULL":
			return Literal(loc, "null", None, str(tok))
		if t in ("THIS", "SUPER"):
			return Keyword(loc, str(tok))
		if t == "META_PROPERTY":
			meta, prop = str(tok).split(".", 1)
			return MetaProperty(loc, meta, prop)
		raise self.error(f"syntax error: unexpected {tok.value!r}", tok)

	def _expr_sequence(self, tree: Tree) -> Sequence:
		return Sequence(self.loc(tree), [self.expr(c) for c in tree.children])

	def _expr_assignment(self, tree: Tree) -> Assign:
		target, op, value = tree.children
		return Assign(self.loc(tree), str(op), self.expr(target), self.expr(value))

	def _expr_arrow(self, tree: Tree) -> FunctionExpr:
		children = list(tree.children)
		is_async = isinstance(children[0], Token) and children[0].type == "ASYNC"
		if is_async:
			children = children[1:]
		params_tree, body_node = children
		params = self.arrow_params(params_tree)
		body: Union[Block, Expr]
		if _is_tree(body_node, "body"):
			body = Block(self.loc(body_node), self.stmts(body_node.children))
		else:
			body = self.expr(body_node)
		return FunctionExpr(self.loc(tree), None, params, body, is_async=is_async, is_arrow=True)

	def arrow_params(self, tree: Tree) -> List[Param]:
		inner = tree.children[0]
		if isinstance(inner, Token):
			return [Param(self.loc(inner), Name(self.loc(inner), str(inner)))]
		out: List[Param] = []
		for item in inner.children:
			value = self.expr(item)
			if isinstance(value, Spread):
				out.append(Param(value.loc, value.value, rest=True))
			elif isinstance(value, Assign) and value.op == "=":
				out.append(Param(value.loc, value.target, value.value))
			elif isinstance(value, (Name, ObjectLiteral, ArrayLiteral)):
				out.append(Param(value.loc, value))
			else:
				raise self.error("syntax error: invalid arrow function parameter", value.loc)
		return out

	def _expr_yield_expr(self, tree: Tree) -> Unary:
		op = "yield"
		operand: Optional[Expr] = None
		for child in tree.children[1:]:
			if isinstance(child, Token) and child.type == "STAR":
				op = "yield*"
			else:
				operand = self.expr(child)
		return Unary(self.loc(tree), op, operand)

	def _expr_conditional(self, tree: Tree) -> Conditional:
		test, cons, alt = tree.children
		return Conditional(self.loc(tree), self.expr(test), self.expr(cons), self.expr(alt))

	def _expr_binary(self, tree: Tree) -> Expr:
		operands = [self.expr(c) for c in tree.children[0::2]]
		ops = [str(c) for c in tree.children[1::2]]
		output: List[Expr] = [operands[0]]
		pending: List[str] = []

		def reduce_top() -> None:
			op = pending.pop()
			right = output.pop()
			left = output.pop()
			output.append(Binary(_join(left.loc, right.loc), op, left, right))

		for op, operand in zip(ops, operands[1:]):
			prec = _PRECEDENCE[op]
			# `**` is right-associative
			while pending and (_PRECEDENCE[pending[-1]] > prec or (_PRECEDENCE[pending[-1]] == prec and op != "**")):
				reduce_top()
			pending.append(op)
			output.append(operand)
		while pending:
			reduce_top()
		return output[0]

	def _expr_prefix(self, tree: Tree) -> Expr:
		op, operand = tree.children
		if op.type == "INCDEC":
			return Update(self.loc(tree), str(op), self.expr(operand), prefix=True)
		return Unary(self.loc(tree), str(op), self.expr(operand))

	def _expr_postfix_update(self, tree: Tree) -> Update:
		operand, op = tree.children
		return Update(self.loc(tree), str(op), self.expr(operand), prefix=False)

	def _expr_new_bare(self, tree: Tree) -> New:
		return New(self.loc(tree), self.expr(tree.children[0]), [])

	def _expr_new_call(self, tree: Tree) -> New:
		callee, args = tree.children
		return New(self.loc(tree), self.expr(callee), self.arguments(args))

	def _expr_dot(self, tree: Tree) -> Member:
		obj, prop = tree.children
		return Member(self.loc(tree), self.expr(obj), str(prop), private=prop.type == "PRIVATE_NAME")

	def _expr_index(self, tree: Tree) -> Member:
		obj, index = tree.children
		computed = self.expr(index)
		prop = str(computed.value) if isinstance(computed, Literal) and computed.kind == "string" else None
		return Member(self.loc(tree), self.expr(obj), prop, computed=computed)

	def _expr_tagged(self, tree: Tree) -> TaggedTemplate:
		tag, quasi = tree.children
		return TaggedTemplate(self.loc(tree), self.expr(tag), self._expr_template(quasi))

	def _expr_call(self, tree: Tree) -> Call:
		callee, args = tree.children
		return Call(self.loc(tree), self.expr(callee), self.arguments(args))

	def _expr_optional(self, tree: Tree) -> Expr:
		obj, tail = tree.children
		target = self.expr(obj)
		if isinstance(tail, Token):
			return Member(self.loc(tree), target, str(tail), optional=True, private=tail.type == "PRIVATE_NAME")
		if _name(tail) == "arguments":
			return Call(self.loc(tree), target, self.arguments(tail), optional=True)
		computed = self.expr(tail.children[0])
		prop = str(computed.value) if isinstance(computed, Literal) and computed.kind == "string" else None
		return Member(self.loc(tree), target, prop, computed=computed, optional=True)

	def arguments(self, tree: Tree) -> List[Expr]:
		return [self.expr(c) for c in tree.children]

	def _expr_spread(self, tree: Tree) -> Spread:
		return Spread(self.loc(tree), self.expr(tree.children[1]))

	def _expr_dynamic_import(self, tree: Tree) -> DynamicImport:
		source = self.expr(tree.children[0])
		options = self.expr(tree.children[1]) if len(tree.children) > 1 else None
		return DynamicImport(self.loc(tree), source, options)

	def _expr_template(self, tree: Tree) -> TemplateLiteral:
		quasis: List[str] = []
		exprs: List[Expr] = []
		for child in tree.children:
			if isinstance(child, Token) and child.type.startswith("TEMPLATE"):
				text = child.value[1:-2] if child.type in ("TEMPLATE_HEAD", "TEMPLATE_MIDDLE") else child.value[1:-1]
				quasis.append(decode_string(text))
			else:
				exprs.append(self.expr(child))
		return TemplateLiteral(self.loc(tree), quasis, exprs)

	def _expr_paren(self, tree: Tree) -> Expr:
		items = [self.expr(c) for c in tree.children]
		if not items:
			raise self.error("syntax error: empty parentheses", tree)
		if len(items) == 1:
			return items[0]
		return Sequence(self.loc(tree), items)

	def _expr_array_lit(self, tree: Tree) -> ArrayLiteral:
		elements: List[Optional[Expr]] = []
		for child in tree.children:
			elements.append(None if _is_tree(child, "hole") else self.expr(child))
		return ArrayLiteral(self.loc(tree), elements)

	def _expr_object_lit(self, tree: Tree) -> ObjectLiteral:
		props: List[Property] = []
		for child in tree.children:
			kind = _name(child)
			loc = self.loc(child)
			if kind == "prop":
				key_tree, value = child.children
				key, computed = self.prop_key(key_tree)
				props.append(Property(loc, "init", key, self.expr(value), computed, key_loc=self.loc(key_tree)))
			elif kind == "shorthand":
				name_tok = child.children[0]
				default = self.expr(child.children[2]) if len(child.children) > 2 else None
				props.append(Property(loc, "shorthand", str(name_tok), Name(self.loc(name_tok), str(name_tok)), default=default, key_loc=self.loc(name_tok)))
			elif kind == "method":
				head, params, body = child.children
				mods, is_generator, key, computed, key_loc = self.member_head(head)
				func = FunctionExpr(
					loc,
					key,
					self.params(params),
					Block(self.loc(body), self.stmts(body.children)),
					is_async="async" in mods,
					is_generator=is_generator,
				)
				pkind = "get" if "get" in mods else "set" if "set" in mods else "method"
				props.append(Property(loc, pkind, key, func, computed, key_loc=key_loc))
			else:
				props.append(Property(loc, "spread", None, self.expr(child.children[1])))
		return ObjectLiteral(self.loc(tree), props)

	def _expr_function_expr(self, tree: Tree) -> FunctionExpr:
		return self.function(tree)

	def _expr_class_expr(self, tree: Tree) -> ClassExpr:
		name: Optional[str] = None
		tail = tree.children[-1]
		if len(tree.children) == 2:
			name = str(tree.children[0])
		return self.class_tail(self.loc(tree), name, tail)


def _number_value(raw: str) -> float:
	text = raw.replace("_", "")
	if text[:2].lower() in ("0x", "0o", "0b"):
		return float(int(text, 0))
	return float(text)


__all__ = ["parse_program", "decode_string"]
