# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from esmshift.core.diagnostics import ERROR, WARNING, Diagnostic
from esmshift.core.span import Span


@dataclass(frozen=True)
class EsmShiftError(Exception):
	"""
	A structured, serializable error for esmshift analyses.

	Every subclass carries a stable `code` so JSON consumers and tests can match
	on it, and converts to a Diagnostic for partial-failure reporting.
	"""

	message: str
	code: str = "error"
	span: Span = field(default_factory=Span)
	notes: tuple[str, ...] = ()
	severity: str = ERROR

	def __str__(self) -> str:
		return self.format_human()

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.code}] {self.message}"]
		if self.span.line is not None:
			parts.append(f"at={self.span.describe()}")
		return " ".join(parts)

	def to_diagnostic(self, phase: str | None = None) -> Diagnostic:
		return Diagnostic(
			message=self.message,
			code=self.code,
			phase=phase,
			severity=self.severity,
			span=self.span,
			notes=list(self.notes),
		)

	def to_dict(self) -> dict[str, Any]:
		return {
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
		}


@dataclass(frozen=True)
class AnalysisError(EsmShiftError):
	"""The export shape cannot be determined statically (or the source does not parse)."""

	code: str = "analysis-error"


@dataclass(frozen=True)
class CycleError(EsmShiftError):
	"""Resolution order cannot be established because a shape depends on a cyclic import."""

	code: str = "cycle-error"


@dataclass(frozen=True)
class LinkError(EsmShiftError):
	"""A named import does not statically exist in the producer's export set."""

	code: str = "link-error"


@dataclass(frozen=True)
class AmbiguityError(EsmShiftError):
	"""The synthesizer cannot pick between competing default re-export sources."""

	code: str = "ambiguous-default"
	severity: str = WARNING


@dataclass(frozen=True)
class ConfigError(EsmShiftError):
	"""Invalid configuration file or command line combination."""

	code: str = "config-error"


__all__ = [
	"EsmShiftError",
	"AnalysisError",
	"CycleError",
	"LinkError",
	"AmbiguityError",
	"ConfigError",
]
