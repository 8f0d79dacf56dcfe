# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Common diagnostic structure for every analysis phase.

Diagnostics are the user-facing channel: inference, resolution, synthesis and
the equivalence check all report through them instead of raising, so one bad
module never hides the results for the rest of the graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from .span import Span

INFO = "info"
WARNING = "warning"
ERROR = "error"

_SEVERITY_RANK = {INFO: 0, WARNING: 1, ERROR: 2}


def severity_rank(severity: str) -> int:
	"""Order severities so thresholds can be compared (info < warning < error)."""
	try:
		return _SEVERITY_RANK[severity]
	except KeyError:
		raise ValueError(f"unknown severity {severity!r}") from None


@dataclass
class Diagnostic:
	"""Represents an analyzer diagnostic (error/warning/info)."""

	message: str
	code: str | None = None
	# Phase label: parse, infer, resolve, synthesize, rewrite, check.
	phase: str | None = None
	severity: str = ERROR
	span: Span = field(default_factory=Span)  # Source location (Span() denotes unknown).
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()
		severity_rank(self.severity)

	@property
	def is_error(self) -> bool:
		return self.severity == ERROR

	def format_human(self) -> str:
		code = f"[{self.code}] " if self.code else ""
		text = f"{self.span.describe()}: {self.severity}: {code}{self.message}"
		for note in self.notes:
			text += f"\n  note: {note}"
		return text

	def to_dict(self) -> dict[str, Any]:
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
	return any(d.severity == ERROR for d in diagnostics)


def at_or_above(diagnostics: Iterable[Diagnostic], threshold: str) -> list[Diagnostic]:
	"""Diagnostics whose severity is at least `threshold`."""
	floor = severity_rank(threshold)
	return [d for d in diagnostics if severity_rank(d.severity) >= floor]


__all__ = ["Diagnostic", "INFO", "WARNING", "ERROR", "severity_rank", "has_errors", "at_or_above"]
