# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Recognizers for the CommonJS idioms the analyses look for.

These are pure predicates over AST nodes; inference, resolution and rewriting
all share them so the three agree on what counts as an export write or a
`require()` call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from esmshift.parser.ast import (
	Assign,
	Call,
	Expr,
	Literal,
	Member,
	Name,
	Node,
	TemplateLiteral,
)

_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

JS_RESERVED = frozenset(
	"break case catch class const continue debugger default delete do else enum export extends false finally for "
	"function if import in instanceof new null return super switch this throw true try typeof var void while with "
	"yield let static implements interface package private protected public await arguments eval".split()
)


def is_identifier(text: str) -> bool:
	return bool(_IDENT_RE.match(text)) and text not in JS_RESERVED


def is_name(node: Optional[Node], ident: str) -> bool:
	return isinstance(node, Name) and node.ident == ident


def is_module_exports(node: Optional[Node]) -> bool:
	"""`module.exports` (or `module['exports']`)."""
	return isinstance(node, Member) and not node.optional and node.prop == "exports" and is_name(node.object, "module")


def is_exports_object(node: Optional[Node]) -> bool:
	"""Either spelling of the export target object."""
	return is_name(node, "exports") or is_module_exports(node)


@dataclass(frozen=True)
class ExportTarget:
	"""Classification of an assignment target that writes to the export object."""

	kind: str  # whole | named | rebind | computed
	name: Optional[str] = None
	via_module: bool = False  # written through `module.exports` rather than `exports`


def export_target(node: Expr) -> Optional[ExportTarget]:
	if is_module_exports(node):
		return ExportTarget("whole", via_module=True)
	if is_name(node, "exports"):
		return ExportTarget("rebind")
	if isinstance(node, Member) and is_exports_object(node.object):
		via_module = is_module_exports(node.object)
		if node.prop is not None:
			return ExportTarget("named", node.prop, via_module)
		key = static_string(node.computed)
		if key is not None:
			return ExportTarget("named", key, via_module)
		return ExportTarget("computed", via_module=via_module)
	return None


def static_string(node: Optional[Node]) -> Optional[str]:
	"""Value of a string literal or a template literal without substitutions."""
	if isinstance(node, Literal) and node.kind == "string":
		return str(node.value)
	if isinstance(node, TemplateLiteral) and not node.expressions:
		return "".join(node.quasis)
	return None


def require_source(node: Optional[Node]) -> Optional[str]:
	"""`require('s')` → 's'."""
	if isinstance(node, Call) and is_name(node.callee, "require") and len(node.args) == 1:
		return static_string(node.args[0])
	return None


def require_member(node: Optional[Node]) -> Optional[tuple[str, str]]:
	"""`require('s').m` → ('s', 'm')."""
	if isinstance(node, Member) and node.prop is not None and not node.optional:
		source = require_source(node.object)
		if source is not None:
			return source, node.prop
	return None


def assignment_chain(node: Assign) -> tuple[List[Expr], Expr]:
	"""`a = b = v` → ([a, b], v)."""
	targets: List[Expr] = [node.target]
	value = node.value
	while isinstance(value, Assign) and value.op == "=":
		targets.append(value.target)
		value = value.value
	return targets, value


def is_object_method(node: Optional[Node], obj: str, method: str) -> bool:
	"""`Object.defineProperty(...)`-style callee check."""
	return isinstance(node, Member) and node.prop == method and is_name(node.object, obj)


def source_text(source: str, node: Node) -> str:
	return source[node.loc.start:node.loc.end]


def normalize_text(text: str) -> str:
	"""Whitespace-insensitive rendering used to compare inline expressions."""
	return " ".join(text.split())


def safe_local(name: str) -> str:
	"""Best identifier spelling for an export name."""
	if is_identifier(name):
		return name
	ident = re.sub(r"[^\w$]", "_", name)
	if not ident or ident[0].isdigit():
		ident = "_" + ident
	if ident in JS_RESERVED:
		ident = "_" + ident
	return ident


def unique_local(base: str, taken: set) -> str:
	candidate = base
	counter = 2
	while candidate in taken:
		candidate = f"{base}{counter}"
		counter += 1
	taken.add(candidate)
	return candidate


def camel_stem(specifier: str) -> str:
	"""`lib/my-util.cjs` → `myUtil`; used to name anonymous defaults."""
	stem = specifier.rstrip("/").rsplit("/", 1)[-1]
	stem = stem.split(".", 1)[0] or "module"
	if stem == "index" and "/" in specifier.rstrip("/"):
		stem = specifier.rstrip("/").rsplit("/", 2)[-2]
	words = [w for w in re.split(r"[^A-Za-z0-9$]+", stem) if w]
	if not words:
		return "_default"
	ident = words[0] + "".join(w[:1].upper() + w[1:] for w in words[1:])
	return safe_local(ident)


def quote_export_name(name: str) -> str:
	"""Export-list spelling: bare identifier or string literal (`'module.exports'`)."""
	if _IDENT_RE.match(name):
		return name
	return "'" + name.replace("\\", "\\\\").replace("'", "\\'") + "'"


def property_key(name: str) -> str:
	return name if _IDENT_RE.match(name) else quote_export_name(name)


__all__ = [
	"ExportTarget",
	"JS_RESERVED",
	"assignment_chain",
	"camel_stem",
	"export_target",
	"is_exports_object",
	"is_identifier",
	"is_module_exports",
	"is_name",
	"is_object_method",
	"normalize_text",
	"property_key",
	"quote_export_name",
	"require_member",
	"require_source",
	"safe_local",
	"source_text",
	"static_string",
	"unique_local",
]
