# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Context-sensitive JavaScript tokenizer feeding the lark LALR parser.

JavaScript cannot be tokenized without syntactic context: `/` may start a
regular expression or divide, `{` may open a block or an object literal,
`function` may start a declaration or an expression, and statements end where
automatic semicolon insertion says they do. The grammar stays LALR(1) because
this module resolves those questions up front and hands the parser distinct
terminal types:

  - `_BLOCK` vs `_LBRACE` for block/body braces vs object/pattern braces,
  - `_FUNCTION`/`_CLASS` (declarations) vs `_FUNCTION_EXPR`/`_CLASS_EXPR`,
  - `_IMPORT` vs `_DYNAMIC_IMPORT` vs `META_PROPERTY` (`import.meta`),
  - `_TERM` for both real `;` and inserted terminators,
  - `MODIFIER` / `ASYNC` for contextual words in member and arrow positions.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from lark import Token
from lark.lexer import Lexer

from esmshift.core.span import Span
from esmshift.errors import AnalysisError

_IDENT_RE = re.compile(r"[A-Za-z_$\u0080-￿][\w$\u0080-￿‌‍]*")
_NUMBER_RE = re.compile(
	r"0[xX][0-9a-fA-F_]+n?"
	r"|0[oO][0-7_]+n?"
	r"|0[bB][01_]+n?"
	r"|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d[\d_]*)?n?"
)

_PUNCTUATORS = sorted(
	[
		">>>=", "===", "!==", "**=", "<<=", ">>=", ">>>", "...", "&&=", "||=", "??=",
		"=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
		"*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
		"{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "/", "%",
		"&", "|", "^", "!", "~", "?", ":", "=", ".",
	],
	key=len,
	reverse=True,
)

_PUNCT_TYPES = {
	"(": "_LPAR",
	")": "_RPAR",
	"[": "_LSQB",
	"]": "_RSQB",
	"}": "_RBRACE",
	";": "_TERM",
	",": "_COMMA",
	":": "_COLON",
	".": "_DOT",
	"?.": "_OPTCHAIN",
	"=>": "_ARROW",
	"?": "_QMARK",
	"=": "EQUAL",
	"...": "SPREAD",
	"+": "PLUS",
	"-": "MINUS",
	"*": "STAR",
	"!": "PREFIX_OP",
	"~": "PREFIX_OP",
	"++": "INCDEC",
	"--": "INCDEC",
}

_ASSIGN_OPS = {"+=", "-=", "*=", "/=", "%=", "**=", "<<=", ">>=", ">>>=", "&=", "|=", "^=", "&&=", "||=", "??="}

KEYWORDS = {
	"var": "VAR",
	"let": "LET",
	"const": "CONST",
	"function": "_FUNCTION",
	"class": "_CLASS",
	"extends": "_EXTENDS",
	"return": "_RETURN",
	"if": "_IF",
	"else": "_ELSE",
	"for": "_FOR",
	"while": "_WHILE",
	"do": "_DO",
	"switch": "_SWITCH",
	"case": "_CASE",
	"default": "_DEFAULT",
	"break": "BREAK",
	"continue": "CONTINUE",
	"throw": "_THROW",
	"try": "_TRY",
	"catch": "_CATCH",
	"finally": "_FINALLY",
	"new": "_NEW",
	"delete": "DELETE",
	"typeof": "TYPEOF",
	"void": "VOID",
	"await": "AWAIT",
	"yield": "YIELD",
	"in": "IN",
	"instanceof": "INSTANCEOF",
	"this": "THIS",
	"super": "SUPER",
	"null": "NULL",
	"true": "TRUE",
	"false": "FALSE",
	"import": "_IMPORT",
	"export": "_EXPORT",
	"with": "_WITH",
}

# Tokens after which an expression is complete (so `/` divides).
_OPERAND_END = {
	"NAME",
	"PRIVATE_NAME",
	"NUMBER",
	"STRING",
	"REGEX",
	"TEMPLATE",
	"TEMPLATE_TAIL",
	"THIS",
	"SUPER",
	"NULL",
	"TRUE",
	"FALSE",
	"META_PROPERTY",
	"_RSQB",
	"INCDEC",
}

# `return`/`break`/`continue`/`yield` end their statement at a line break.
_RESTRICTED = {"_RETURN", "BREAK", "CONTINUE", "YIELD"}

# A line break before one of these never ends the statement.
_CONTINUATION = {
	"_DOT",
	"_OPTCHAIN",
	"_COMMA",
	"_COLON",
	"_QMARK",
	"_ARROW",
	"_RPAR",
	"_RSQB",
	"_LPAR",
	"_LSQB",
	"{",
	"_TERM",
	"EQUAL",
	"ASSIGN_OP",
	"BINOP",
	"PLUS",
	"MINUS",
	"STAR",
	"IN",
	"INSTANCEOF",
	"TEMPLATE",
	"TEMPLATE_HEAD",
}

_HEADER_KEYWORDS = {"_IF", "_WHILE", "_FOR", "_SWITCH", "_CATCH", "_WITH"}
_BLOCK_AFTER = {"_ELSE", "_TRY", "_FINALLY", "_DO", "_CATCH"}
_OBJECT_AFTER = {"_EXPORT", "_IMPORT", "_WITH", "_DEFAULT"}
_ASI_FRAMES = {None, "block", "expr_body", "class"}
_MEMBER_MODIFIERS = {"get", "set", "static", "async"}
_KEY_START = {"NAME", "STRING", "NUMBER", "_LSQB", "STAR", "PRIVATE_NAME"}
_LINE_TERMINATORS = "\n\r  "


@dataclass
class _Frame:
	kind: str  # paren | header | decl_params | expr_params | bracket | object | block | expr_body | class | template
	terminable: bool = False  # class bodies: does closing `}` end an expression?
	at_key: bool = False  # object/class bodies: next token is in member-key position


@dataclass
class RawToken:
	type: str
	value: str
	start: int
	end: int
	newline_before: bool = False
	stmt_start: bool = False
	closed: Optional[str] = None  # frame kind closed by `)`/`}`
	closed_terminable: bool = False
	case_colon: bool = False
	frame: Optional[str] = None  # innermost frame kind when emitted
	at_key: bool = False


class Tokenizer:
	"""
	Single-pass scanner producing RawTokens with ASI terminators already inserted.

	The scanner keeps a stack of open brackets tagged with what they opened
	(header parens, parameter lists, object literals, blocks, class bodies,
	template substitutions); every context decision reads that stack and the
	previously emitted token.
	"""

	def __init__(self, source: str, file: Optional[str] = None) -> None:
		self.src = source
		self.file = file
		self.pos = 0
		self.stack: List[_Frame] = []
		self.out: List[RawToken] = []
		self.newline_before = False
		self.pending_function: Optional[tuple[str, int]] = None
		self.pending_class: Optional[tuple[bool, int]] = None
		self.case_depth: Optional[int] = None
		self._line_starts = [0] + [m.end() for m in re.finditer(r"\r\n|[\n\r  ]", source)]

	# -- positions -----------------------------------------------------------

	def position(self, offset: int) -> tuple[int, int]:
		"""1-based (line, column) for a source offset."""
		idx = bisect.bisect_right(self._line_starts, offset) - 1
		return idx + 1, offset - self._line_starts[idx] + 1

	def _error(self, message: str, offset: int) -> AnalysisError:
		line, column = self.position(offset)
		return AnalysisError(message, code="parse-error", span=Span(self.file, line, column))

	# -- driver ----------------------------------------------------------------

	def tokenize(self) -> List[RawToken]:
		if self.src.startswith("#!"):
			end = self._find_line_end(0)
			self.pos = end
		while True:
			self._skip_trivia()
			if self.pos >= len(self.src):
				break
			self._scan_token()
		if self.stack:
			raise self._error(f"unexpected end of input: unclosed {self.stack[-1].kind}", len(self.src))
		prev = self._prev()
		if prev is not None and self._terminable(prev):
			self._insert_terminator()
		_retag_contextual(self.out)
		return self.out

	def _find_line_end(self, start: int) -> int:
		i = start
		while i < len(self.src) and self.src[i] not in _LINE_TERMINATORS:
			i += 1
		return i

	def _skip_trivia(self) -> None:
		src = self.src
		n = len(src)
		while self.pos < n:
			ch = src[self.pos]
			if ch in _LINE_TERMINATORS:
				self.newline_before = True
				self.pos += 1
			elif ch in " \t\f\v﻿ " or (ch.isspace() and ch not in _LINE_TERMINATORS):
				self.pos += 1
			elif src.startswith("//", self.pos):
				self.pos = self._find_line_end(self.pos)
			elif src.startswith("/*", self.pos):
				end = src.find("*/", self.pos + 2)
				if end < 0:
					raise self._error("unterminated comment", self.pos)
				if any(c in _LINE_TERMINATORS for c in src[self.pos:end]):
					self.newline_before = True
				self.pos = end + 2
			else:
				break

	def _peek_char(self) -> str:
		"""Next significant character after the current position (comments skipped)."""
		saved_pos, saved_nl = self.pos, self.newline_before
		self._skip_trivia()
		ch = self.src[self.pos] if self.pos < len(self.src) else ""
		self.pos, self.newline_before = saved_pos, saved_nl
		return ch

	def _scan_token(self) -> None:
		src = self.src
		start = self.pos
		ch = src[start]
		if ch == "}" and self.stack and self.stack[-1].kind == "template":
			self._scan_template(start, resuming=True)
			return
		if ch == "`":
			self._scan_template(start, resuming=False)
			return
		if ch in "'\"":
			self._scan_string(start)
			return
		if ch.isdigit() or (ch == "." and start + 1 < len(src) and src[start + 1].isdigit()):
			m = _NUMBER_RE.match(src, start)
			assert m is not None
			self._emit("NUMBER", m.group(0), start, m.end())
			return
		if ch == "#":
			m = _IDENT_RE.match(src, start + 1)
			if m is None:
				raise self._error("invalid private name", start)
			self._emit("PRIVATE_NAME", src[start:m.end()], start, m.end())
			return
		m = _IDENT_RE.match(src, start)
		if m is not None:
			self._scan_word(m.group(0), start, m.end())
			return
		if ch == "/" and self._regex_allowed():
			self._scan_regex(start)
			return
		for punct in _PUNCTUATORS:
			if src.startswith(punct, start):
				if punct == "?." and start + 2 < len(src) and src[start + 2].isdigit():
					continue
				self.pos = start + len(punct)
				self._emit_punct(punct, start)
				return
		raise self._error(f"unexpected character {ch!r}", start)

	# -- literal scanners ----------------------------------------------------

	def _scan_string(self, start: int) -> None:
		src = self.src
		quote = src[start]
		i = start + 1
		while i < len(src):
			c = src[i]
			if c == "\\":
				i += 2
				continue
			if c == quote:
				self._emit("STRING", src[start:i + 1], start, i + 1)
				return
			if c in "\n\r":
				break
			i += 1
		raise self._error("unterminated string literal", start)

	def _scan_template(self, start: int, resuming: bool) -> None:
		src = self.src
		i = start + 1
		while i < len(src):
			c = src[i]
			if c == "\\":
				i += 2
				continue
			if c == "`":
				if resuming:
					self.stack.pop()
					self._emit("TEMPLATE_TAIL", src[start:i + 1], start, i + 1)
				else:
					self._emit("TEMPLATE", src[start:i + 1], start, i + 1)
				return
			if c == "$" and src.startswith("${", i):
				if resuming:
					self._emit("TEMPLATE_MIDDLE", src[start:i + 2], start, i + 2)
				else:
					self._emit("TEMPLATE_HEAD", src[start:i + 2], start, i + 2)
					self.stack.append(_Frame("template"))
				return
			i += 1
		raise self._error("unterminated template literal", start)

	def _scan_regex(self, start: int) -> None:
		src = self.src
		i = start + 1
		in_class = False
		while i < len(src):
			c = src[i]
			if c == "\\":
				i += 2
				continue
			if c in _LINE_TERMINATORS:
				break
			if in_class:
				if c == "]":
					in_class = False
			elif c == "[":
				in_class = True
			elif c == "/":
				i += 1
				while i < len(src) and (src[i].isalnum() or src[i] in "_$"):
					i += 1
				self._emit("REGEX", src[start:i], start, i)
				return
			i += 1
		raise self._error("unterminated regular expression", start)

	def _regex_allowed(self) -> bool:
		prev = self._prev()
		return prev is None or not self._ends_operand(prev)

	# -- words -----------------------------------------------------------------

	def _scan_word(self, word: str, start: int, end: int) -> None:
		self.pos = end
		prev = self._prev()
		if prev is not None and prev.type in ("_DOT", "_OPTCHAIN"):
			self._emit("NAME", word, start, end)
			return
		ttype = KEYWORDS.get(word)
		if ttype is None:
			self._emit("NAME", word, start, end)
			return
		frame = self.stack[-1] if self.stack else None
		if frame is not None and frame.at_key and frame.kind in ("object", "class") and (prev is None or prev.type != "SPREAD"):
			follow = self._peek_char()
			if follow in (":", "(") or (frame.kind == "class" and follow in ("=", ";")):
				self._emit("NAME", word, start, end)
				return
		if ttype == "_IMPORT":
			follow = self._peek_char()
			if follow == "(":
				ttype = "_DYNAMIC_IMPORT"
			elif follow == ".":
				self._scan_meta_property(word, start)
				return
		elif ttype == "_NEW" and self._peek_char() == ".":
			self._scan_meta_property(word, start)
			return
		self._emit(ttype, word, start, end)

	def _scan_meta_property(self, word: str, start: int) -> None:
		self._skip_trivia()
		if not self.src.startswith(".", self.pos):
			raise self._error(f"expected '.' after {word}", self.pos)
		self.pos += 1
		self._skip_trivia()
		m = _IDENT_RE.match(self.src, self.pos)
		if m is None:
			raise self._error(f"expected property name after {word}.", self.pos)
		self.pos = m.end()
		self._emit("META_PROPERTY", f"{word}.{m.group(0)}", start, m.end())

	# -- punctuation -----------------------------------------------------------

	def _emit_punct(self, punct: str, start: int) -> None:
		end = start + len(punct)
		if punct == "{":
			self._emit("{", punct, start, end)
			return
		ttype = _PUNCT_TYPES.get(punct)
		if ttype is None:
			ttype = "ASSIGN_OP" if punct in _ASSIGN_OPS else "BINOP"
		self._emit(ttype, punct, start, end)

	# -- emission + context tracking -------------------------------------------

	def _prev(self) -> Optional[RawToken]:
		return self.out[-1] if self.out else None

	def _ends_operand(self, tok: RawToken) -> bool:
		if tok.type in _OPERAND_END:
			return True
		if tok.type == "_RPAR":
			return tok.closed != "header"
		if tok.type == "_RBRACE":
			return tok.closed in ("object", "expr_body") or (tok.closed == "class" and tok.closed_terminable)
		return False

	def _terminable(self, tok: RawToken) -> bool:
		return tok.type in _RESTRICTED or self._ends_operand(tok)

	def _frame_kind(self) -> Optional[str]:
		return self.stack[-1].kind if self.stack else None

	def _at_statement_start(self) -> bool:
		prev = self._prev()
		if prev is None:
			return True
		pt = prev.type
		if pt == "_TERM":
			return self._frame_kind() != "header"
		if pt == "_BLOCK":
			return True
		if pt == "_RBRACE":
			return prev.closed == "block" or (prev.closed == "class" and not prev.closed_terminable)
		if pt in ("_ELSE", "_DO"):
			return True
		if pt == "_RPAR":
			return prev.closed == "header"
		if pt == "_COLON":
			return prev.case_colon
		return False

	def _insert_terminator(self) -> None:
		prev = self._prev()
		offset = prev.end if prev is not None else 0
		self._append(RawToken("_TERM", "", offset, offset, frame=self._frame_kind()))

	def _maybe_insert_terminator(self, ttype: str) -> None:
		prev = self._prev()
		if prev is None or self._frame_kind() not in _ASI_FRAMES:
			return
		if prev.type in _RESTRICTED and self.newline_before:
			self._insert_terminator()
		elif ttype == "_RBRACE" and self._terminable(prev):
			self._insert_terminator()
		elif self.newline_before and self._terminable(prev) and ttype not in _CONTINUATION:
			self._insert_terminator()

	def _emit(self, ttype: str, value: str, start: int, end: int) -> None:
		self.pos = end
		closing_block = ttype == "_RBRACE" and self._frame_kind() in ("block", "expr_body", "class")
		if ttype not in ("TEMPLATE_MIDDLE", "TEMPLATE_TAIL"):
			self._maybe_insert_terminator("_RBRACE" if closing_block else ttype)
		stmt_start = self._at_statement_start()
		prev = self._prev()
		tok = RawToken(ttype, value, start, end, newline_before=self.newline_before, stmt_start=stmt_start)
		tok.frame = self._frame_kind()
		tok.at_key = bool(self.stack) and self.stack[-1].at_key
		depth = len(self.stack)

		if ttype == "{":
			self._open_brace(tok, prev, stmt_start)
		elif ttype in ("_FUNCTION", "_CLASS"):
			decl = stmt_start or (prev is not None and prev.type == "_EXPORT")
			if prev is not None and prev.type == "NAME" and prev.value == "async" and not tok.newline_before:
				decl = prev.stmt_start or (len(self.out) > 1 and self.out[-2].type == "_EXPORT")
			if ttype == "_FUNCTION":
				tok.type = "_FUNCTION" if decl else "_FUNCTION_EXPR"
				self.pending_function = ("decl_params" if decl else "expr_params", depth)
			else:
				tok.type = "_CLASS" if decl else "_CLASS_EXPR"
				self.pending_class = (not decl, depth)
		elif ttype == "_LPAR":
			self.stack.append(_Frame(self._paren_kind(prev, depth)))
		elif ttype == "_LSQB":
			self.stack.append(_Frame("bracket"))
		elif ttype in ("_RPAR", "_RSQB", "_RBRACE"):
			self._close(tok)
		elif ttype in ("_CASE", "_DEFAULT"):
			if (ttype == "_CASE" or prev is None or prev.type != "_EXPORT") and self._frame_kind() in ("block", "expr_body"):
				self.case_depth = depth
		elif ttype == "_COLON" and self.case_depth == depth:
			tok.case_colon = True
			self.case_depth = None

		self._append(tok)
		self.newline_before = False

	def _append(self, tok: RawToken) -> None:
		self.out.append(tok)
		if not self.stack:
			return
		frame = self.stack[-1]
		if frame.kind == "object":
			if tok.type == "_COMMA":
				frame.at_key = True
			elif tok.type == "_COLON":
				frame.at_key = False
		elif frame.kind == "class":
			if tok.type in ("_TERM", "_RBRACE"):
				frame.at_key = True
			elif tok.type == "EQUAL":
				frame.at_key = False

	def _open_brace(self, tok: RawToken, prev: Optional[RawToken], stmt_start: bool) -> None:
		depth = len(self.stack)
		if self.pending_class is not None and self.pending_class[1] == depth:
			terminable = self.pending_class[0]
			self.pending_class = None
			tok.type = "_BLOCK"
			self.stack.append(_Frame("class", terminable=terminable, at_key=True))
			return
		kind = "object"
		if prev is None or stmt_start:
			kind = "block"
		elif prev.type in _OBJECT_AFTER:
			kind = "object"
		elif prev.type == "_ARROW":
			kind = "expr_body"
		elif prev.type == "_RPAR":
			kind = "expr_body" if prev.closed == "expr_params" else "block"
		elif prev.type in _BLOCK_AFTER:
			kind = "block"
		if kind == "object":
			tok.type = "_LBRACE"
			self.stack.append(_Frame("object", at_key=True))
		else:
			tok.type = "_BLOCK"
			self.stack.append(_Frame(kind))

	def _paren_kind(self, prev: Optional[RawToken], depth: int) -> str:
		if prev is not None:
			if prev.type in _HEADER_KEYWORDS:
				return "header"
			if prev.type == "AWAIT" and len(self.out) > 1 and self.out[-2].type == "_FOR":
				return "header"
		if self.pending_function is not None and self.pending_function[1] == depth:
			kind = self.pending_function[0]
			self.pending_function = None
			return kind
		if self.stack and self.stack[-1].kind in ("object", "class") and self.stack[-1].at_key:
			return "expr_params"
		return "paren"

	def _close(self, tok: RawToken) -> None:
		expected = {"_RPAR": ("paren", "header", "decl_params", "expr_params"), "_RSQB": ("bracket",), "_RBRACE": ("object", "block", "expr_body", "class")}[tok.type]
		if not self.stack or self.stack[-1].kind not in expected:
			raise self._error(f"unbalanced {tok.value!r}", tok.start)
		frame = self.stack.pop()
		tok.closed = frame.kind
		tok.closed_terminable = frame.terminable


def _matching_paren(tokens: List[RawToken], idx: int) -> int:
	depth = 0
	for j in range(idx, len(tokens)):
		if tokens[j].type == "_LPAR":
			depth += 1
		elif tokens[j].type == "_RPAR":
			depth -= 1
			if depth == 0:
				return j
	return -1


def _retag_contextual(tokens: List[RawToken]) -> None:
	"""Second pass: `get`/`set`/`static`/`async` member modifiers and `async` arrows/functions."""
	for i, tok in enumerate(tokens):
		if tok.type != "NAME" or tok.value not in _MEMBER_MODIFIERS:
			continue
		nxt = tokens[i + 1] if i + 1 < len(tokens) else None
		if nxt is None or nxt.newline_before:
			continue
		if tok.frame in ("object", "class") and tok.at_key and (nxt.type in _KEY_START or nxt.type in KEYWORDS.values()):
			tok.type = "MODIFIER"
		elif tok.value == "async":
			if nxt.type in ("_FUNCTION", "_FUNCTION_EXPR"):
				tok.type = "ASYNC"
			elif nxt.type == "NAME" and i + 2 < len(tokens) and tokens[i + 2].type == "_ARROW":
				tok.type = "ASYNC"
			elif nxt.type == "_LPAR":
				close = _matching_paren(tokens, i + 1)
				if 0 <= close < len(tokens) - 1 and tokens[close + 1].type == "_ARROW":
					tok.type = "ASYNC"


def tokenize(source: str, file: Optional[str] = None) -> List[RawToken]:
	return Tokenizer(source, file).tokenize()


class JsLexer(Lexer):
	"""lark custom-lexer adapter: turns RawTokens into positioned lark Tokens."""

	def __init__(self, lexer_conf) -> None:
		pass

	def lex(self, data) -> Iterator[Token]:
		source = data if isinstance(data, str) else getattr(data, "text", data)
		tokenizer = Tokenizer(source)
		for raw in tokenizer.tokenize():
			line, column = tokenizer.position(raw.start)
			end_line, end_column = tokenizer.position(raw.end)
			yield Token(raw.type, raw.value, raw.start, line, column, end_line, end_column, raw.end)


__all__ = ["Tokenizer", "RawToken", "JsLexer", "KEYWORDS", "tokenize"]
