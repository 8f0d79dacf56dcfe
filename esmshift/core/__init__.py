"""
esmshift.core: shared span/diagnostic primitives used by every stage.

Modules:
  - span: source locations attached to AST nodes and diagnostics
  - diagnostics: Diagnostic record + severity helpers
"""

__all__ = [
	"span",
	"diagnostics",
]
