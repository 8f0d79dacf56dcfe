# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
esmshift: static CommonJS to ESM interop analysis and migration.

The public entry points are re-exported here; see `esmshift.pipeline` for the
graph-wide driver and `esmshift.cli` for the command line.
"""

from __future__ import annotations

from esmshift.config import AnalyzerConfig, load_config
from esmshift.core.diagnostics import Diagnostic
from esmshift.core.span import Span
from esmshift.equivalence import check, is_safe
from esmshift.errors import AmbiguityError, AnalysisError, ConfigError, CycleError, EsmShiftError, LinkError
from esmshift.graph import ImportEdge, Module, ModuleGraph, ModuleKind
from esmshift.inference import infer
from esmshift.pipeline import GraphReport, ModuleReport, analyze_graph, analyze_sources
from esmshift.resolver import BindingKind, ConsumerBindingRecord, resolve
from esmshift.rewrite import render
from esmshift.shapes import ExportShapeDescriptor, ShapeTag
from esmshift.synthesizer import CompatibilityPlan, synthesize

__version__ = "0.1.0"

__all__ = [
	"AmbiguityError",
	"AnalysisError",
	"AnalyzerConfig",
	"BindingKind",
	"CompatibilityPlan",
	"ConfigError",
	"ConsumerBindingRecord",
	"CycleError",
	"Diagnostic",
	"EsmShiftError",
	"ExportShapeDescriptor",
	"GraphReport",
	"ImportEdge",
	"LinkError",
	"Module",
	"ModuleGraph",
	"ModuleKind",
	"ModuleReport",
	"ShapeTag",
	"Span",
	"analyze_graph",
	"analyze_sources",
	"check",
	"infer",
	"is_safe",
	"load_config",
	"render",
	"resolve",
	"synthesize",
]
