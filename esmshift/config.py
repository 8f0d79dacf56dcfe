# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Analyzer configuration.

Loaded from a JSON object (`esmshift.json` by default); command line flags
override file values. Unknown keys are rejected so a typo never silently
falls back to a default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from esmshift.core.diagnostics import ERROR, WARNING
from esmshift.core.span import Span
from esmshift.errors import ConfigError

DEFAULT_CONFIG_NAME = "esmshift.json"

DYNAMIC_DEFAULT_MODES = ("live", "snapshot")
FAIL_ON_LEVELS = (ERROR, WARNING)


@dataclass(frozen=True)
class AnalyzerConfig:
	# Thread pool size for each pipeline phase (1 runs inline).
	workers: int = 1
	# DynamicConditional default export: getter-based live object or frozen snapshot.
	dynamic_default: str = "live"
	# Lowest severity that makes the verdict unsafe.
	fail_on: str = ERROR
	emit_info: bool = True
	create_require_fallback: bool = True
	rewrite_context_locals: bool = True
	json_import_attributes: bool = True

	def __post_init__(self) -> None:
		if not isinstance(self.workers, int) or isinstance(self.workers, bool) or self.workers < 1:
			raise ConfigError(f"workers must be a positive integer, got {self.workers!r}")
		if self.dynamic_default not in DYNAMIC_DEFAULT_MODES:
			raise ConfigError(f"dynamic_default must be one of {', '.join(DYNAMIC_DEFAULT_MODES)}, got {self.dynamic_default!r}")
		if self.fail_on not in FAIL_ON_LEVELS:
			raise ConfigError(f"fail_on must be one of {', '.join(FAIL_ON_LEVELS)}, got {self.fail_on!r}")
		for f in fields(self):
			if f.type in ("bool", bool) and not isinstance(getattr(self, f.name), bool):
				raise ConfigError(f"{f.name} must be true or false, got {getattr(self, f.name)!r}")

	@classmethod
	def from_mapping(cls, data: Mapping[str, Any], origin: Optional[str] = None) -> "AnalyzerConfig":
		known = {f.name for f in fields(cls)}
		unknown = sorted(set(data) - known)
		if unknown:
			raise ConfigError(f"unknown configuration key(s): {', '.join(unknown)}", span=Span(file=origin))
		try:
			return cls(**dict(data))
		except ConfigError as exc:
			raise replace(exc, span=Span(file=origin)) from None

	def merged(self, **overrides: Any) -> "AnalyzerConfig":
		"""Copy with every non-None override applied."""
		changes = {k: v for k, v in overrides.items() if v is not None}
		return replace(self, **changes) if changes else self

	def to_dict(self) -> dict[str, Any]:
		return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Optional[Path] = None, *, cwd: Optional[Path] = None) -> AnalyzerConfig:
	"""
	Read a config file. Without `path`, `esmshift.json` in `cwd` is used when
	present and defaults otherwise.
	"""
	if path is None:
		candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_NAME
		if not candidate.is_file():
			return AnalyzerConfig()
		path = candidate
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except OSError as exc:
		raise ConfigError(f"cannot read config: {exc}", span=Span(file=str(path))) from None
	except json.JSONDecodeError as exc:
		raise ConfigError(f"invalid JSON: {exc.msg}", span=Span(file=str(path), line=exc.lineno, column=exc.colno)) from None
	if not isinstance(data, dict):
		raise ConfigError("config must be a JSON object", span=Span(file=str(path)))
	return AnalyzerConfig.from_mapping(data, origin=str(path))


__all__ = ["AnalyzerConfig", "DEFAULT_CONFIG_NAME", "DYNAMIC_DEFAULT_MODES", "FAIL_ON_LEVELS", "load_config"]
