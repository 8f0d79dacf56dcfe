# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Export shape descriptors.

A descriptor is the static summary of how one module exposes values: a tag,
the ordered named bindings with their provenance, and the provenance of the
module's whole value (the implicit CommonJS default). Provenance, not runtime
value, is the equality notion every later stage uses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from esmshift.core.diagnostics import Diagnostic
from esmshift.core.span import Span


class ShapeTag(Enum):
	NAMED_ONLY = "NamedOnly"
	OBJECT_LITERAL_NAMED = "ObjectLiteralNamed"
	NON_OBJECT_DEFAULT = "NonObjectDefault"
	DYNAMIC_CONDITIONAL = "DynamicConditional"
	REEXPORT_ALL = "ReExportAll"
	REEXPORT_NAMED = "ReExportNamed"
	REEXPORT_DEFAULT_AGGREGATE = "ReExportDefaultAggregate"
	ESM_STATIC = "EsmStatic"

	@property
	def is_reexport(self) -> bool:
		return self in (ShapeTag.REEXPORT_ALL, ShapeTag.REEXPORT_NAMED, ShapeTag.REEXPORT_DEFAULT_AGGREGATE)

	@property
	def has_plain_object(self) -> bool:
		"""The whole value is an object whose keys are the named bindings."""
		return self in (ShapeTag.NAMED_ONLY, ShapeTag.OBJECT_LITERAL_NAMED, ShapeTag.DYNAMIC_CONDITIONAL)


class ProvenanceKind(Enum):
	LOCAL = "local"  # a local declaration exported under its own name
	ALIAS = "alias"  # a local exported under a different name
	REEXPORT = "reexport"  # another module's whole value, or one of its members
	INLINE = "inline"  # an expression written at the export site


@dataclass(frozen=True)
class Provenance:
	kind: ProvenanceKind
	local: Optional[str] = None
	source: Optional[str] = None
	member: Optional[str] = None
	expr: str = ""

	def describe(self) -> str:
		if self.kind in (ProvenanceKind.LOCAL, ProvenanceKind.ALIAS):
			return f"{self.kind.value} {self.local}"
		if self.kind is ProvenanceKind.REEXPORT:
			target = f"'{self.source}'"
			return f"re-export of {target}.{self.member}" if self.member else f"re-export of {target}"
		text = self.expr if len(self.expr) <= 40 else self.expr[:37] + "..."
		return f"inline `{text}`"

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"kind": self.kind.value}
		for key in ("local", "source", "member"):
			value = getattr(self, key)
			if value is not None:
				out[key] = value
		if self.expr:
			out["expr"] = self.expr
		return out


def local(name: str) -> Provenance:
	return Provenance(ProvenanceKind.LOCAL, local=name)


def reexport(source: str, member: Optional[str] = None) -> Provenance:
	return Provenance(ProvenanceKind.REEXPORT, source=source, member=member)


class DefaultKind(Enum):
	ABSENT = "absent"
	SYNTHESIZED = "synthesized"  # aggregate of the named bindings (and re-export sources)
	EXPLICIT = "explicit"


@dataclass(frozen=True)
class DefaultValue:
	"""Provenance of a module's whole value / default export."""

	kind: DefaultKind
	provenance: Optional[Provenance] = None
	# Local binding that holds the value, when it has one (`function qux(){}` → qux).
	binding: Optional[str] = None
	keys: Tuple[str, ...] = ()
	sources: Tuple[str, ...] = ()

	def origin(self) -> Tuple[Any, ...]:
		"""Comparable identity: same source expression or same aggregation rule."""
		if self.kind is DefaultKind.EXPLICIT:
			return ("explicit", self.provenance)
		if self.kind is DefaultKind.SYNTHESIZED:
			return ("aggregate", frozenset(self.keys), tuple(self.sources))
		return ("absent",)

	def describe(self) -> str:
		if self.kind is DefaultKind.EXPLICIT and self.provenance is not None:
			return self.provenance.describe()
		if self.kind is DefaultKind.SYNTHESIZED:
			parts = list(self.keys) + [f"...'{s}'" for s in self.sources]
			return "{ " + ", ".join(parts) + " }" if parts else "{}"
		return "absent"

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"kind": self.kind.value}
		if self.provenance is not None:
			out["provenance"] = self.provenance.to_dict()
		if self.binding is not None:
			out["binding"] = self.binding
		if self.keys:
			out["keys"] = list(self.keys)
		if self.sources:
			out["sources"] = list(self.sources)
		return out


ABSENT_DEFAULT = DefaultValue(DefaultKind.ABSENT)


@dataclass(frozen=True)
class NamedBinding:
	name: str
	provenance: Provenance
	span: Span = field(default_factory=Span, compare=False)

	def to_dict(self) -> Dict[str, Any]:
		return {"name": self.name, "provenance": self.provenance.to_dict()}


@dataclass
class ExportShapeDescriptor:
	tag: ShapeTag
	module: Optional[str] = None
	named: List[NamedBinding] = field(default_factory=list)
	default: DefaultValue = ABSENT_DEFAULT
	reexport_sources: List[str] = field(default_factory=list)
	# DynamicConditional: every name assigned in any branch, in first-seen order.
	conditional: List[NamedBinding] = field(default_factory=list)
	initializer: Optional[str] = None
	# Properties written onto a non-plain default after it was assigned.
	attached: List[NamedBinding] = field(default_factory=list)
	es_module_marker: bool = False
	# ESM only: the `'module.exports'` string export.
	override: Optional[Provenance] = None
	# Value assigned by a conditional `module.exports = ...`; the default is
	# chosen when the module evaluates.
	conditional_default: Optional[Provenance] = None
	# Named bindings written more than once, or again from inside a function.
	reassigned: frozenset = frozenset()
	# Names bound by top-level declarations (exportable as `export { x }`).
	top_level: frozenset = frozenset()
	# Source offsets of export writes with no effect on the final exports
	# (stale `exports.x` writes and writes discarded by a later whole assignment).
	dead_writes: frozenset = frozenset()
	# Top-level identifiers declared by the module (for choosing fresh locals).
	declared: frozenset = frozenset()
	diagnostics: List[Diagnostic] = field(default_factory=list)

	def binding(self, name: str) -> Optional[NamedBinding]:
		for b in self.named:
			if b.name == name:
				return b
		return None

	def lookup(self, name: str) -> Optional[NamedBinding]:
		"""Any binding a CommonJS property read could observe."""
		for group in (self.named, self.conditional, self.attached):
			for b in group:
				if b.name == name:
					return b
		return None

	def named_names(self) -> List[str]:
		return [b.name for b in self.named]

	def all_names(self) -> List[str]:
		"""Named bindings followed by conditionally assigned names (deduplicated)."""
		seen: List[str] = []
		for b in list(self.named) + list(self.conditional):
			if b.name not in seen:
				seen.append(b.name)
		return seen

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {
			"tag": self.tag.value,
			"module": self.module,
			"named": [b.to_dict() for b in self.named],
			"default": self.default.to_dict(),
		}
		if self.reexport_sources:
			out["reexport_sources"] = list(self.reexport_sources)
		if self.conditional:
			out["conditional"] = [b.name for b in self.conditional]
		if self.initializer is not None:
			out["initializer"] = self.initializer
		if self.conditional_default is not None:
			out["conditional_default"] = self.conditional_default.to_dict()
		if self.attached:
			out["attached"] = [b.name for b in self.attached]
		if self.es_module_marker:
			out["es_module_marker"] = True
		if self.override is not None:
			out["override"] = self.override.to_dict()
		return out


__all__ = [
	"ABSENT_DEFAULT",
	"DefaultKind",
	"DefaultValue",
	"ExportShapeDescriptor",
	"NamedBinding",
	"Provenance",
	"ProvenanceKind",
	"ShapeTag",
	"local",
	"reexport",
]
