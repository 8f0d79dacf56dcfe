# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from esmshift.config import DYNAMIC_DEFAULT_MODES, FAIL_ON_LEVELS, AnalyzerConfig, load_config
from esmshift.core.diagnostics import INFO, severity_rank
from esmshift.errors import ConfigError
from esmshift.graph import ModuleGraph
from esmshift.loader import graph_from_files, graph_from_manifest
from esmshift.pipeline import GraphReport, analyze_graph, analyze_module, iter_outputs

logger = logging.getLogger(__name__)

EXIT_SAFE = 0
EXIT_UNSAFE = 1
EXIT_USAGE = 2


def _add_common(p: argparse.ArgumentParser) -> None:
	p.add_argument("files", nargs="*", type=Path, help="JavaScript module files making up the graph")
	p.add_argument("--manifest", type=Path, default=None, help="JSON graph manifest (instead of files)")
	p.add_argument("--root", type=Path, default=None, help="Directory module specifiers are relative to (default: common parent)")
	p.add_argument("--config", type=Path, default=None, help="Config file (default: ./esmshift.json when present)")
	p.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	p.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (-vv for debug output)")
	p.add_argument("--workers", type=int, default=None, help="Worker threads per phase")
	p.add_argument("--fail-on", choices=FAIL_ON_LEVELS, default=None, help="Lowest severity that makes the verdict unsafe")
	p.add_argument("--quiet-info", action="store_true", help="Drop info diagnostics")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="esmshift", description="Static CommonJS to ESM interop analysis and migration")
	sub = p.add_subparsers(dest="cmd", required=True)

	analyze = sub.add_parser("analyze", help="Infer shapes, resolve bindings and check a migration without rewriting")
	_add_common(analyze)
	analyze.add_argument("--dynamic-default", choices=DYNAMIC_DEFAULT_MODES, default=None, help="Default export form for conditional modules")

	migrate = sub.add_parser("migrate", help="Rewrite CommonJS modules to ESM")
	_add_common(migrate)
	migrate.add_argument("--dynamic-default", choices=DYNAMIC_DEFAULT_MODES, default=None, help="Default export form for conditional modules")
	out = migrate.add_mutually_exclusive_group()
	out.add_argument("--out-dir", type=Path, default=None, help="Write rewritten modules under this directory")
	out.add_argument("--write", action="store_true", help="Rewrite input files in place")
	migrate.add_argument("--force", action="store_true", help="Write output even when the verdict is unsafe")
	migrate.add_argument(
		"--no-create-require",
		dest="create_require_fallback",
		action="store_false",
		default=None,
		help="Leave remaining require() calls without a createRequire fallback",
	)

	shape = sub.add_parser("shape", help="Print the inferred export shape of each module")
	_add_common(shape)
	return p


def _configure_logging(verbosity: int) -> None:
	level = logging.WARNING
	if verbosity == 1:
		level = logging.INFO
	elif verbosity >= 2:
		level = logging.DEBUG
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_graph(args: argparse.Namespace) -> ModuleGraph:
	if args.manifest is not None:
		if args.files:
			raise ConfigError("pass either files or --manifest, not both")
		return graph_from_manifest(args.manifest)
	return graph_from_files(args.files, args.root)


def _load_config(args: argparse.Namespace) -> AnalyzerConfig:
	config = load_config(args.config)
	return config.merged(
		workers=args.workers,
		fail_on=args.fail_on,
		emit_info=False if args.quiet_info else None,
		dynamic_default=getattr(args, "dynamic_default", None),
		create_require_fallback=getattr(args, "create_require_fallback", None),
	)


def _print_diagnostics(report: GraphReport) -> None:
	ordered = sorted(report.diagnostics, key=lambda d: -severity_rank(d.severity))
	for diagnostic in ordered:
		print(diagnostic.format_human(), file=sys.stderr)


def _print_summary(report: GraphReport) -> None:
	counts = {}
	for diagnostic in report.diagnostics:
		counts[diagnostic.severity] = counts.get(diagnostic.severity, 0) + 1
	detail = ", ".join(f"{n} {sev}" for sev, n in sorted(counts.items(), key=lambda kv: -severity_rank(kv[0])))
	verdict = "safe" if report.safe else "unsafe"
	print(f"verdict: {verdict} ({len(report.modules)} module(s)" + (f"; {detail}" if detail else "") + ")")


def _cmd_analyze(args: argparse.Namespace, graph: ModuleGraph, config: AnalyzerConfig) -> int:
	report = analyze_graph(graph, config, render_output=False)
	if args.json:
		print(report.to_json())
	else:
		for module in report.modules:
			tag = module.descriptor.tag.value if module.descriptor is not None else "unanalyzed"
			print(f"{module.specifier}: {tag}")
		_print_diagnostics(report)
		_print_summary(report)
	return EXIT_SAFE if report.safe else EXIT_UNSAFE


def _cmd_migrate(args: argparse.Namespace, graph: ModuleGraph, config: AnalyzerConfig) -> int:
	report = analyze_graph(graph, config)
	write = report.safe or args.force
	if args.write and any(graph.get(m.specifier).path is None for m in iter_outputs(report)):  # type: ignore[union-attr]
		raise ConfigError("--write needs file inputs; use --out-dir with a manifest")
	written = []
	if write and (args.out_dir is not None or args.write):
		for module in iter_outputs(report):
			source = graph.get(module.specifier)
			assert source is not None and module.output is not None
			target = args.out_dir / module.specifier if args.out_dir is not None else source.path
			assert target is not None
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_text(module.output, encoding="utf-8")
			written.append(str(target))
			logger.info("wrote %s", target)
	if args.json:
		payload = report.to_dict()
		payload["written"] = written
		print(json.dumps(payload, indent=2))
	else:
		if args.out_dir is None and not args.write:
			for module in iter_outputs(report):
				print(f"// ---- {module.specifier} ----")
				print(module.output, end="")
		elif not write:
			print("not writing output: the migration is unsafe (use --force to override)", file=sys.stderr)
		_print_diagnostics(report)
		_print_summary(report)
	return EXIT_SAFE if report.safe else EXIT_UNSAFE


def _cmd_shape(args: argparse.Namespace, graph: ModuleGraph, config: AnalyzerConfig) -> int:
	failed = False
	shapes = {}
	for module in graph:
		analyze_module(module)
		if module.descriptor is None:
			failed = True
		shapes[module.specifier] = {
			"kind": module.effective_kind.value if module.effective_kind is not None else None,
			"shape": module.descriptor.to_dict() if module.descriptor is not None else None,
			"diagnostics": [d.to_dict() for d in module.diagnostics if config.emit_info or d.severity != INFO],
		}
	if args.json:
		print(json.dumps(shapes, indent=2))
	else:
		for spec, entry in shapes.items():
			shape = entry["shape"]
			if shape is None:
				print(f"{spec}: unanalyzed")
			else:
				names = ", ".join(b["name"] for b in shape["named"]) or "-"
				print(f"{spec}: {shape['tag']} named=[{names}] default={shape['default']['kind']}")
		for module in graph:
			for diagnostic in module.diagnostics:
				if config.emit_info or diagnostic.severity != INFO:
					print(diagnostic.format_human(), file=sys.stderr)
	return EXIT_UNSAFE if failed else EXIT_SAFE


_COMMANDS = {"analyze": _cmd_analyze, "migrate": _cmd_migrate, "shape": _cmd_shape}


def main(argv: Optional[list[str]] = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	_configure_logging(args.verbose)
	try:
		config = _load_config(args)
		graph = _load_graph(args)
		return _COMMANDS[args.cmd](args, graph, config)
	except ConfigError as err:
		if args.json:
			print(json.dumps({"exit_code": EXIT_USAGE, "diagnostics": [err.to_diagnostic("config").to_dict()]}))
		else:
			print(f"esmshift: error: {err.format_human()}", file=sys.stderr)
		return EXIT_USAGE


if __name__ == "__main__":
	sys.exit(main())
