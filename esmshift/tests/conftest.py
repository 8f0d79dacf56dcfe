# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import Callable, Dict, Optional

import pytest

from esmshift.graph import Module, ModuleGraph, ModuleKind
from esmshift.pipeline import analyze_module


def _build(sources: Dict[str, str], kinds: Optional[Dict[str, ModuleKind]] = None, *, analyzed: bool = True) -> ModuleGraph:
	kinds = kinds or {}
	graph = ModuleGraph()
	for specifier, source in sources.items():
		kind = kinds.get(specifier)
		if kind is None:
			kind = ModuleKind.ESM if specifier.endswith(".mjs") else ModuleKind.COMMONJS
		graph.add_module(Module(specifier, source, kind))
	if analyzed:
		for module in graph:
			analyze_module(module)
	return graph


@pytest.fixture
def make_graph() -> Callable[..., ModuleGraph]:
	"""Build (and by default phase-1 analyze) a graph from `specifier -> source`."""
	return _build
