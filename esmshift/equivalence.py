# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Equivalence checker.

Every recorded consumer binding is resolved twice: against the original
descriptor (what CommonJS evaluation exposes) and against the plan (what the
rewritten ESM module exposes). Values are compared by provenance, not by
running anything. A migration is safe iff no Error is reported.

`require()` of a rewritten module yields the `'module.exports'` override when
the plan has one and the default export otherwise; property reads through
`require()` see the override's properties or, without one, the named exports.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from esmshift.core.diagnostics import ERROR, INFO, WARNING, Diagnostic
from esmshift.resolver import BindingKind, ConsumerBindingRecord
from esmshift.shapes import DefaultKind, DefaultValue, ExportShapeDescriptor, ShapeTag
from esmshift.synthesizer import MEMBERSHIP_WARNING, CompatibilityPlan

logger = logging.getLogger(__name__)


def check(
	before: ExportShapeDescriptor,
	plan: CompatibilityPlan,
	consumers: Iterable[ConsumerBindingRecord],
	*,
	emit_info: bool = True,
	star_names: Optional[Set[str]] = None,
) -> List[Diagnostic]:
	"""
	Compare each consumer binding before and after the rewrite.

	`star_names` are the names reachable through the plan's `export *`
	sources; None means they could not be determined and are assumed present.
	"""
	checker = _Checker(before, plan, emit_info, star_names)
	for record in consumers:
		checker.check_record(record)
	logger.debug("checked %s: %d diagnostics", plan.module, len(checker.out))
	return checker.out


def is_safe(diagnostics: Iterable[Diagnostic]) -> bool:
	return not any(d.severity == ERROR for d in diagnostics)


class _Checker:
	def __init__(self, before: ExportShapeDescriptor, plan: CompatibilityPlan, emit_info: bool, star_names: Optional[Set[str]]) -> None:
		self.before = before
		self.plan = plan
		self.emit_info = emit_info
		self.star_names = star_names
		self.out: List[Diagnostic] = []

	def report(self, record: ConsumerBindingRecord, severity: str, code: str, message: str, notes: Optional[List[str]] = None) -> None:
		if severity == INFO and not self.emit_info:
			return
		self.out.append(
			Diagnostic(message=message, code=code, phase="check", severity=severity, span=record.span, notes=list(notes or []))
		)

	def preserved(self, record: ConsumerBindingRecord, detail: str) -> None:
		self.report(record, INFO, "binding-preserved", f"{record.describe()} is preserved ({detail})")

	def check_record(self, record: ConsumerBindingRecord) -> None:
		if record.kind is BindingKind.DEFAULT:
			self.check_default(record, self.plan.exposed_default(), "default export")
		elif record.kind is BindingKind.DYNAMIC_REQUIRE_WHOLE:
			self.check_whole_require(record)
		elif record.kind is BindingKind.NAMED:
			if record.via == "require":
				self.check_property_read(record)
			else:
				self.check_named(record)
		else:
			self.check_namespace(record)
		self.check_membership(record)

	# -- value bindings --------------------------------------------------------

	def check_default(self, record: ConsumerBindingRecord, after: DefaultValue, what: str) -> None:
		expected = self.before.default
		if self.plan.manual_default and self.plan.override is None and after.kind is DefaultKind.ABSENT:
			self.report(
				record,
				ERROR,
				"default-omitted",
				f"{record.describe()} needs the default export, which requires manual migration",
				[f"original value: {expected.describe()}"],
			)
			return
		if after.origin() == expected.origin():
			self.preserved(record, f"{what} is {after.describe()}")
			return
		self.report(
			record,
			ERROR,
			"binding-mismatch",
			f"{record.describe()} changes value after the rewrite",
			[f"before: {expected.describe()}", f"after: {after.describe()}"],
		)

	def check_whole_require(self, record: ConsumerBindingRecord) -> None:
		override = self.plan.override
		if override is not None:
			after = DefaultValue(DefaultKind.EXPLICIT, override.provenance)
			expected = self.before.default
			if expected.kind is DefaultKind.EXPLICIT and expected.provenance == override.provenance:
				self.preserved(record, "resolves to the 'module.exports' export")
				return
			self.report(
				record,
				ERROR,
				"binding-mismatch",
				f"{record.describe()} resolves to a 'module.exports' export that differs from the original value",
				[f"before: {expected.describe()}", f"after: {after.describe()}"],
			)
			return
		self.check_default(record, self.plan.exposed_default(), "resolves to the default export")

	def check_named(self, record: ConsumerBindingRecord) -> None:
		name = record.name or ""
		original = self.before.lookup(name)
		entry = self.plan.export(name)
		if entry is None:
			if self.through_star(name):
				self.preserved(record, "forwarded by `export *`")
				return
			self.report(
				record,
				ERROR,
				"binding-mismatch",
				f"{record.describe()} has no matching export after the rewrite",
				[f"before: {original.provenance.describe()}" if original is not None else "before: not exported"],
			)
			return
		if original is not None and original.provenance == entry.provenance:
			self.preserved(record, entry.provenance.describe())
			return
		self.report(
			record,
			ERROR,
			"binding-mismatch",
			f"{record.describe()} changes value after the rewrite",
			[
				f"before: {original.provenance.describe()}" if original is not None else "before: not exported",
				f"after: {entry.provenance.describe()}",
			],
		)

	def check_property_read(self, record: ConsumerBindingRecord) -> None:
		override = self.plan.override
		if override is not None and self.before.default.kind is DefaultKind.EXPLICIT and self.before.default.provenance == override.provenance:
			self.preserved(record, "read from the 'module.exports' export")
			return
		name = record.name or ""
		if self.before.lookup(name) is None and self.plan.export(name) is None and not self.through_star(name):
			self.preserved(record, "not exported before or after; the read stays `undefined`")
			return
		self.check_named(record)

	def through_star(self, name: str) -> bool:
		if not self.plan.star_sources or name == "default":
			return False
		return self.star_names is None or name in self.star_names

	# -- namespace -------------------------------------------------------------

	def observable_keys(self) -> Set[str]:
		before = self.before
		keys = {b.name for group in (before.named, before.conditional, before.attached) for b in group}
		if before.reexport_sources and self.star_names is not None:
			keys.update(self.star_names)
		keys.discard("default")
		if before.default.kind is not DefaultKind.ABSENT:
			keys.add("default")
		return keys

	def check_namespace(self, record: ConsumerBindingRecord) -> None:
		after = set(self.plan.named_names())
		if self.plan.default is not None:
			after.add("default")
		missing = sorted(k for k in self.observable_keys() - after if not self.through_star(k))
		if missing:
			self.report(
				record,
				ERROR,
				"namespace-coverage",
				f"{record.describe()} loses key(s) after the rewrite: " + ", ".join(missing),
			)
			return
		self.preserved(record, "namespace covers every original key")

	# -- membership ------------------------------------------------------------

	def check_membership(self, record: ConsumerBindingRecord) -> None:
		if self.before.tag is not ShapeTag.DYNAMIC_CONDITIONAL:
			return
		for test in record.membership_tests:
			if test.before_initializer:
				self.out.append(
					Diagnostic(
						message=f"membership test for `{test.name}` runs before the initializer is called; "
						"after the rewrite the name is always present",
						code="membership-before-init",
						phase="check",
						severity=ERROR,
						span=test.span,
					)
				)
			else:
				self.out.append(
					Diagnostic(
						message=f"membership test for `{test.name}`: {MEMBERSHIP_WARNING}",
						code="membership-semantics",
						phase="check",
						severity=WARNING,
						span=test.span,
					)
				)


__all__ = ["check", "is_safe"]
