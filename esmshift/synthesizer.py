# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Compatibility synthesizer.

Turns an inferred export shape plus the consumer bindings recorded against
the module into a CompatibilityPlan: the ESM export list, the default export
and the shims that keep existing consumers working. The rules are tried in
priority order, first match wins:

1. NamedOnly / ObjectLiteralNamed: one named export per binding plus a
   default object aggregating them.
2. NonObjectDefault: `export default <binding>`, plus the `'module.exports'`
   override when some consumer requires the whole value.
3. DynamicConditional: pre-declared `let` bindings, the initializer as a
   named export and a live (or frozen) default object.
4. Re-export shapes: `export *` per source; a default re-export only when a
   single source makes it unambiguous.
5. EsmStatic: the module's own exports, no shims.

Pure transform: nothing here touches files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from esmshift.config import AnalyzerConfig
from esmshift.core.diagnostics import WARNING, Diagnostic
from esmshift.core.span import Span
from esmshift.errors import AmbiguityError
from esmshift.patterns import camel_stem, is_identifier, property_key, quote_export_name, safe_local, unique_local
from esmshift.resolver import BindingKind, ConsumerBindingRecord
from esmshift.shapes import (
	DefaultKind,
	DefaultValue,
	ExportShapeDescriptor,
	NamedBinding,
	Provenance,
	ProvenanceKind,
	ShapeTag,
	local,
)

logger = logging.getLogger(__name__)

MODULE_EXPORTS = "module.exports"

MEMBERSHIP_WARNING = (
	"presence/absence membership checks on this module's properties are not preserved; "
	"all declared names are now always present."
)


class ShimKind(Enum):
	SYNTHESIZED_DEFAULT = "synthesized-default"
	MODULE_EXPORTS_OVERRIDE = "module-exports-override"
	LIVE_DEFAULT = "live-default"
	SNAPSHOT_DEFAULT = "snapshot-default"
	PREDECLARED = "predeclared"
	INITIALIZER_EXPORT = "initializer-export"
	DEFAULT_REEXPORT = "default-reexport"


@dataclass(frozen=True)
class Shim:
	kind: ShimKind
	text: str
	reason: str

	def to_dict(self) -> Dict[str, Any]:
		return {"kind": self.kind.value, "text": self.text, "reason": self.reason}


@dataclass(frozen=True)
class ExportEntry:
	"""One ESM export: `export { local as name }` or `export { member as name } from source`."""

	name: str
	provenance: Provenance
	local: Optional[str] = None
	source: Optional[str] = None
	member: Optional[str] = None

	def specifier_text(self) -> str:
		inner = self.member if self.source is not None else self.local
		inner = inner or "default"
		if inner == self.name:
			return quote_export_name(self.name)
		return f"{quote_export_name(inner)} as {quote_export_name(self.name)}"

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"name": self.name, "provenance": self.provenance.to_dict()}
		if self.local is not None:
			out["local"] = self.local
		if self.source is not None:
			out["source"] = self.source
			out["member"] = self.member or "default"
		return out


@dataclass(frozen=True)
class DefaultExport:
	value: DefaultValue
	local: Optional[str] = None  # export default <local>
	source: Optional[str] = None  # export { default } from <source>
	# key -> local for a synthesized aggregate object
	keys: tuple = ()
	live: bool = False
	frozen: bool = False
	# keys read through a getter because their local is reassigned later
	live_keys: frozenset = frozenset()
	# `let` local a conditional `module.exports = ...` writes; the aggregate
	# object only fills it when no branch did
	holder: Optional[str] = None

	def render(self) -> Optional[str]:
		if self.source is not None:
			return None
		if self.local is not None:
			if self.live:
				return f"export {{ {self.local} as default }};"
			return f"export default {self.local};"
		if self.live:
			getters = ", ".join(_getter(key, ident) for key, ident in self.keys)
			body = "{ " + getters + " }" if getters else "{}"
		else:
			members = ", ".join(_getter(key, ident) if key in self.live_keys else _member(key, ident) for key, ident in self.keys)
			body = "{ " + members + " }" if members else "{}"
			if self.frozen:
				body = f"Object.freeze({body})"
		if self.holder is not None:
			return f"if ({self.holder} === undefined) {self.holder} = {body};\nexport {{ {self.holder} as default }};"
		return f"export default {body};"

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"value": self.value.to_dict()}
		if self.local is not None:
			out["local"] = self.local
		if self.source is not None:
			out["source"] = self.source
		if self.keys:
			out["keys"] = [key for key, _ident in self.keys]
		if self.live:
			out["live"] = True
		if self.frozen:
			out["frozen"] = True
		if self.live_keys:
			out["live_keys"] = sorted(self.live_keys)
		if self.holder is not None:
			out["holder"] = self.holder
		return out


def _member(key: str, ident: str) -> str:
	if key == ident:
		return ident
	return f"{property_key(key)}: {ident}"


def _getter(key: str, ident: str) -> str:
	return f"get {property_key(key)}() {{ return {ident}; }}"


@dataclass
class CompatibilityPlan:
	module: Optional[str]
	tag: ShapeTag
	named: List[ExportEntry] = field(default_factory=list)
	default: Optional[DefaultExport] = None
	override: Optional[ExportEntry] = None
	star_sources: List[str] = field(default_factory=list)
	# export name -> local binding the rewriter must write to
	locals: Dict[str, str] = field(default_factory=dict)
	# locals declared `let` up front (DynamicConditional)
	predeclared: List[str] = field(default_factory=list)
	# local that holds a non-plain whole value
	default_local: Optional[str] = None
	initializer: Optional[str] = None
	shims: List[Shim] = field(default_factory=list)
	diagnostics: List[Diagnostic] = field(default_factory=list)
	manual_default: bool = False
	source_text: Optional[str] = None

	def export(self, name: str) -> Optional[ExportEntry]:
		for entry in self.named:
			if entry.name == name:
				return entry
		return None

	def named_names(self) -> List[str]:
		return [e.name for e in self.named]

	def exposed_default(self) -> DefaultValue:
		return self.default.value if self.default is not None else DefaultValue(DefaultKind.ABSENT)

	def render_exports(self, specifier: Optional[Callable[[str], str]] = None) -> str:
		"""The export block appended to the rewritten module."""
		spell = specifier or (lambda raw: raw)
		lines: List[str] = []
		local_entries = [e for e in self.named if e.source is None]
		if local_entries:
			lines.append("export { " + ", ".join(e.specifier_text() for e in local_entries) + " };")
		by_source: Dict[str, List[ExportEntry]] = {}
		for entry in self.named:
			if entry.source is not None:
				by_source.setdefault(entry.source, []).append(entry)
		for source, entries in by_source.items():
			lines.append("export { " + ", ".join(e.specifier_text() for e in entries) + f" }} from '{spell(source)}';")
		for source in self.star_sources:
			lines.append(f"export * from '{spell(source)}';")
		if self.default is not None:
			if self.default.source is not None:
				lines.append(f"export {{ default }} from '{spell(self.default.source)}';")
			else:
				rendered = self.default.render()
				if rendered:
					lines.append(rendered)
		if self.override is not None:
			if self.override.source is not None:
				lines.append(f"export {{ {self.override.specifier_text()} }} from '{spell(self.override.source)}';")
			else:
				lines.append(f"export {{ {self.override.specifier_text()} }};")
		return "\n".join(lines)

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {
			"module": self.module,
			"tag": self.tag.value,
			"named": [e.to_dict() for e in self.named],
			"default": self.default.to_dict() if self.default is not None else None,
			"manual_default": self.manual_default,
			"shims": [s.to_dict() for s in self.shims],
		}
		if self.override is not None:
			out["override"] = self.override.to_dict()
		if self.star_sources:
			out["reexports"] = list(self.star_sources)
		if self.predeclared:
			out["predeclared"] = list(self.predeclared)
		if self.initializer is not None:
			out["initializer"] = self.initializer
		if self.source_text is not None:
			out["source"] = self.source_text
		return out


def synthesize(
	descriptor: ExportShapeDescriptor,
	consumer_bindings: Iterable[ConsumerBindingRecord] = (),
	config: Optional[AnalyzerConfig] = None,
) -> CompatibilityPlan:
	"""Build the CompatibilityPlan for one module."""
	builder = _PlanBuilder(descriptor, list(consumer_bindings), config or AnalyzerConfig())
	plan = builder.build()
	logger.debug("synthesized %s plan for %s: %d exports, %d shims", plan.tag.value, plan.module, len(plan.named), len(plan.shims))
	return plan


class _PlanBuilder:
	def __init__(self, descriptor: ExportShapeDescriptor, bindings: List[ConsumerBindingRecord], config: AnalyzerConfig) -> None:
		self.descriptor = descriptor
		self.bindings = bindings
		self.config = config
		self.taken = set(descriptor.declared)
		self.plan = CompatibilityPlan(module=descriptor.module, tag=descriptor.tag)

	def warn(self, code: str, message: str, span: Optional[Span] = None) -> None:
		self.plan.diagnostics.append(
			Diagnostic(message=message, code=code, phase="synthesize", severity=WARNING, span=span or Span(file=self.descriptor.module))
		)

	def build(self) -> CompatibilityPlan:
		tag = self.descriptor.tag
		if tag in (ShapeTag.NAMED_ONLY, ShapeTag.OBJECT_LITERAL_NAMED):
			self.rule_named_object()
		elif tag is ShapeTag.NON_OBJECT_DEFAULT:
			self.rule_non_object_default()
		elif tag is ShapeTag.DYNAMIC_CONDITIONAL:
			self.rule_dynamic()
		elif tag.is_reexport:
			self.rule_reexport()
		else:
			self.rule_esm_static()
		return self.plan

	# -- locals ----------------------------------------------------------------

	def local_for(self, binding: NamedBinding) -> str:
		"""Local that will hold an export; reuses the written local when that is safe."""
		name = binding.name
		prov = binding.provenance
		reassigned = name in self.descriptor.reassigned
		if not reassigned and prov.kind in (ProvenanceKind.LOCAL, ProvenanceKind.ALIAS) and prov.local in self.descriptor.top_level:
			ident = prov.local
		elif not reassigned and prov.kind is ProvenanceKind.INLINE and prov.local == name and is_identifier(name):
			# `exports.foo = function foo() {}` keeps its own name
			ident = name
			self.taken.add(ident)
		else:
			ident = unique_local(safe_local(name), self.taken)
		self.plan.locals[name] = ident
		return ident

	def named_entries(self, bindings: Iterable[NamedBinding]) -> None:
		for binding in bindings:
			ident = self.local_for(binding)
			if binding.name == "default":
				continue
			self.plan.named.append(ExportEntry(binding.name, binding.provenance, local=ident))

	def aggregate_keys(self, names: Iterable[str]) -> tuple:
		return tuple((name, self.plan.locals[name]) for name in names)

	# -- rules -----------------------------------------------------------------

	def rule_named_object(self) -> None:
		self.named_entries(self.descriptor.named)
		keys = self.aggregate_keys(self.descriptor.named_names())
		value = DefaultValue(DefaultKind.SYNTHESIZED, keys=tuple(self.descriptor.named_names()))
		live_keys = frozenset(n for n in self.descriptor.named_names() if n in self.descriptor.reassigned)
		self.plan.default = DefaultExport(value, keys=keys, live_keys=live_keys)
		self.plan.shims.append(
			Shim(
				ShimKind.SYNTHESIZED_DEFAULT,
				self.plan.default.render() or "",
				"CommonJS consumers read the whole exports object as the default",
			)
		)

	def rule_non_object_default(self) -> None:
		value = self.descriptor.default
		ident = value.binding
		prov = value.provenance
		named_expression = prov is not None and prov.kind is ProvenanceKind.INLINE and prov.local == ident
		replaced = self.descriptor.conditional_default is not None
		if replaced or ident is None or not is_identifier(ident) or not (ident in self.descriptor.top_level or named_expression):
			ident = unique_local(camel_stem(self.descriptor.module or "module"), self.taken)
		self.plan.default_local = ident
		# a conditionally replaced default stays a live binding
		self.plan.default = DefaultExport(value, local=ident, live=replaced)
		for binding in self.descriptor.attached:
			self.plan.locals[binding.name] = f"{ident}.{binding.name}" if is_identifier(binding.name) else f"{ident}[{quote_export_name(binding.name)}]"
		if any(b.kind is BindingKind.DYNAMIC_REQUIRE_WHOLE for b in self.bindings):
			prov = value.provenance or local(ident)
			self.plan.override = ExportEntry(MODULE_EXPORTS, prov, local=ident)
			self.plan.shims.append(
				Shim(
					ShimKind.MODULE_EXPORTS_OVERRIDE,
					f"export {{ {ident} as '{MODULE_EXPORTS}' }};",
					"a consumer loads this module with require(); the override keeps the whole value",
				)
			)

	def rule_dynamic(self) -> None:
		descriptor = self.descriptor
		conditional = {b.name for b in descriptor.conditional}
		bindings: Dict[str, NamedBinding] = {}
		for b in list(descriptor.named) + list(descriptor.conditional):
			bindings.setdefault(b.name, b)
		for name, binding in bindings.items():
			if name in conditional:
				ident = unique_local(safe_local(name), self.taken)
				self.plan.locals[name] = ident
				self.plan.predeclared.append(ident)
				if name != "default":
					self.plan.named.append(ExportEntry(name, binding.provenance, local=ident))
			else:
				self.named_entries([binding])
		holder = None
		if descriptor.conditional_default is not None:
			holder = unique_local(camel_stem(descriptor.module or "module") + "Exports", self.taken)
			self.plan.default_local = holder
			self.plan.predeclared.append(holder)
		if self.plan.predeclared:
			self.plan.shims.append(
				Shim(
					ShimKind.PREDECLARED,
					"let " + ", ".join(self.plan.predeclared) + ";",
					"conditionally assigned names become always-declared bindings",
				)
			)
		init = descriptor.initializer
		if init and init not in bindings:
			self.plan.initializer = init
			self.plan.named.append(ExportEntry(init, local(init), local=init))
			self.plan.shims.append(Shim(ShimKind.INITIALIZER_EXPORT, f"export {{ {init} }};", "the initializer assigns the conditional exports"))
		names = list(bindings)
		value = DefaultValue(DefaultKind.SYNTHESIZED, keys=tuple(names))
		live = self.config.dynamic_default == "live"
		self.plan.default = DefaultExport(value, keys=self.aggregate_keys(names), live=live, frozen=not live, holder=holder)
		if live:
			self.plan.shims.append(Shim(ShimKind.LIVE_DEFAULT, self.plan.default.render() or "", "default reads the bindings by reference"))
			self.warn(
				"dynamic-default",
				"default export is a live object of getters; its keys are fixed but values follow later assignments",
			)
		else:
			self.plan.shims.append(Shim(ShimKind.SNAPSHOT_DEFAULT, self.plan.default.render() or "", "default is a frozen snapshot"))
			self.warn(
				"dynamic-default",
				"default export is a frozen snapshot taken at module evaluation; later assignments are not visible through it",
			)
		self.warn("membership-semantics", MEMBERSHIP_WARNING)

	def rule_reexport(self) -> None:
		descriptor = self.descriptor
		self.plan.star_sources = list(descriptor.reexport_sources)
		for binding in descriptor.named:
			prov = binding.provenance
			if prov.kind is ProvenanceKind.REEXPORT and prov.source is not None:
				if binding.name == "default":
					continue
				self.plan.named.append(ExportEntry(binding.name, prov, source=prov.source, member=prov.member or "default"))
			else:
				self.named_entries([binding])
		sources = descriptor.reexport_sources
		if descriptor.tag is ShapeTag.REEXPORT_ALL and len(sources) == 1:
			self.plan.default = DefaultExport(descriptor.default, source=sources[0])
			self.plan.shims.append(
				Shim(ShimKind.DEFAULT_REEXPORT, f"export {{ default }} from '{sources[0]}';", "the whole value is another module's")
			)
			return
		self.plan.manual_default = True
		local_keys = [b.name for b in descriptor.named if b.provenance.kind is not ProvenanceKind.REEXPORT]
		error = AmbiguityError(
			"default export requires manual migration: the whole value combines "
			+ ", ".join(f"'{s}'" for s in sources)
			+ (" with local keys " + ", ".join(local_keys) if local_keys else ""),
			span=Span(file=self.descriptor.module),
			notes=("`export *` does not forward default exports",),
		)
		self.plan.diagnostics.append(error.to_diagnostic("synthesize"))

	def rule_esm_static(self) -> None:
		descriptor = self.descriptor
		for binding in descriptor.named:
			prov = binding.provenance
			if prov.kind is ProvenanceKind.REEXPORT and prov.source is not None:
				self.plan.named.append(ExportEntry(binding.name, prov, source=prov.source, member=prov.member or "default"))
			else:
				self.plan.named.append(ExportEntry(binding.name, prov, local=prov.local or binding.name))
				self.plan.locals[binding.name] = prov.local or binding.name
		self.plan.star_sources = list(descriptor.reexport_sources)
		if descriptor.default.kind is not DefaultKind.ABSENT:
			self.plan.default = DefaultExport(descriptor.default, local=descriptor.default.binding)
		if descriptor.override is not None:
			prov = descriptor.override
			if prov.kind is ProvenanceKind.REEXPORT:
				self.plan.override = ExportEntry(MODULE_EXPORTS, prov, source=prov.source, member=prov.member or "default")
			else:
				self.plan.override = ExportEntry(MODULE_EXPORTS, prov, local=prov.local)


__all__ = [
	"CompatibilityPlan",
	"DefaultExport",
	"ExportEntry",
	"MEMBERSHIP_WARNING",
	"MODULE_EXPORTS",
	"Shim",
	"ShimKind",
	"synthesize",
]
