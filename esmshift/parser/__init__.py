# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
esmshift JavaScript front-end.

Parses CommonJS and ES module sources into the dataclass AST in `.ast`.
`parse_module` raises; `parse_file` reports failures as diagnostics so a
graph-wide run can keep going past one unparsable module.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from esmshift.core.diagnostics import Diagnostic
from esmshift.core.span import Span
from esmshift.errors import AnalysisError

from . import ast
from .parser import decode_string, parse_program

logger = logging.getLogger(__name__)


def parse_module(source: str, file: Optional[str] = None) -> ast.Program:
	"""Parse one module's source text. Raises AnalysisError(code="parse-error")."""
	return parse_program(source, file)


def parse_file(path: Path) -> Tuple[Optional[ast.Program], list[Diagnostic]]:
	"""Read and parse `path`, returning (program, diagnostics)."""
	try:
		source = path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as exc:
		return None, [
			Diagnostic(
				message=f"cannot read module: {exc}",
				code="read-error",
				phase="parse",
				span=Span(file=str(path)),
			)
		]
	try:
		program = parse_program(source, str(path))
	except AnalysisError as exc:
		logger.debug("parse failed for %s: %s", path, exc)
		return None, [exc.to_diagnostic("parse")]
	return program, []


__all__ = ["ast", "parse_module", "parse_file", "decode_string"]
