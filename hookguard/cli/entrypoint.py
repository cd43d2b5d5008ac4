from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys
from typing import Any

from pydantic import ValidationError
from rich.console import Console

from hookguard.core.config import PipelineConfig, load_config
from hookguard.core.error_handler import PipelineErrorHandler
from hookguard.core.hooks.adapter import normalize
from hookguard.core.hooks.executor import execute_hook
from hookguard.core.hooks.manager import HookPipeline
from hookguard.core.hooks.priority import (
    classify,
    describe_batches,
    hook_statistics,
    validate_descriptor,
)
from hookguard.core.hooks.registry import HookRegistry
from hookguard.core.hooks.reporter import emit, render_summary, report, report_legacy
from hookguard.core.hooks.types import (
    AggregatedResult,
    ExecutionStrategy,
    HookDescriptor,
    HookRegistryError,
)

logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hookguard",
        description="Run file-operation hooks in parallel priority batches.",
    )
    parser.add_argument(
        "--pipeline-config",
        type=Path,
        default=None,
        help="Pipeline settings file (TOML or JSON with a [pipeline] table)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Report progress, hook errors and a run summary on stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Read a tool call from stdin and run the registered hooks"
    )
    run_parser.add_argument("phase", nargs="?", default=None, help="e.g. PreToolUse")
    run_parser.add_argument(
        "tool_matcher", nargs="?", default=None, help="e.g. 'Write|Edit|MultiEdit'"
    )
    run_parser.add_argument(
        "--config", dest="hooks_config_path", default=None, help="Hook registry file"
    )
    run_parser.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Also print the decision as JSON on stdout",
    )

    adapt_parser = subparsers.add_parser(
        "adapt", help="Normalize stdin and run a single hook command"
    )
    adapt_parser.add_argument("--timeout", type=float, default=None)
    adapt_parser.add_argument("hook_command", nargs=argparse.REMAINDER)

    stats_parser = subparsers.add_parser("stats", help="Show registry statistics")
    stats_parser.add_argument(
        "--config", dest="hooks_config_path", default=None, help="Hook registry file"
    )

    classify_parser = subparsers.add_parser(
        "classify", help="Show the priority batches for a list of hooks"
    )
    classify_parser.add_argument("file", type=Path)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate hook entries from a list of hooks"
    )
    validate_parser.add_argument("file", type=Path)

    return parser.parse_args(argv)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _read_stdin() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def _load_hook_entries(path: Path) -> list[dict[str, Any]]:
    """Read hook entries from a JSON list or from a registry file."""
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, list):
        return [entry for entry in data if isinstance(entry, dict)]
    registry = HookRegistry.from_data(data, source=str(path))
    return [
        {"matcher": group.matcher, **entry}
        for groups in registry.groups.values()
        for group in groups
        for entry in group.hooks
    ]


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _run_pipeline(
    config: PipelineConfig, raw_input: str, phase: str | None, tool_matcher: str | None
) -> AggregatedResult:
    pipeline = HookPipeline(config=config)
    return await pipeline.run(raw_input, phase, tool_matcher)


def cmd_run(args: argparse.Namespace, config: PipelineConfig) -> int:
    if config.bypass_all:
        if config.verbose:
            PipelineErrorHandler.display_info(
                f"Hook pipeline bypassed: {config.bypass_reason}", "Bypass"
            )
        return 0

    raw_input = _read_stdin()
    result = asyncio.run(
        _run_pipeline(config, raw_input, args.phase, args.tool_matcher)
    )
    protocol = report(result, verbose=config.verbose)

    if config.verbose:
        render_summary(result, Console(stderr=True))
        if result.errors and not result.blocked:
            PipelineErrorHandler.display_warning(
                f"{len(result.errors)} hooks had errors but operation will continue",
                "Hook errors",
            )
    if args.json:
        _print_json(report_legacy(result))
    return emit(protocol)


def cmd_adapt(args: argparse.Namespace, config: PipelineConfig) -> int:
    command = " ".join(part for part in args.hook_command if part != "--")
    if not command:
        PipelineErrorHandler.display_warning(
            "No hook command provided. Usage: hookguard adapt <command>", "Adapter"
        )
        return 1

    payload = normalize(_read_stdin())
    hook = HookDescriptor(command=command, timeout=args.timeout)
    outcome = asyncio.run(execute_hook(hook, payload))
    result = AggregatedResult(strategy=ExecutionStrategy.SEQUENTIAL)
    result.merge([outcome])

    if outcome.stdout and not outcome.blocked:
        sys.stdout.write(outcome.stdout)
    if config.verbose and outcome.errored:
        PipelineErrorHandler.display_warning(outcome.error or "unknown error", "Hook error")
    return emit(report(result, verbose=config.verbose))


def cmd_stats(args: argparse.Namespace, config: PipelineConfig) -> int:
    registry = HookRegistry.load(config.hooks_config_path)
    _print_json(hook_statistics(registry.all_hooks()))
    return 0


def cmd_classify(args: argparse.Namespace, config: PipelineConfig) -> int:
    hooks: list[HookDescriptor] = []
    for entry in _load_hook_entries(args.file):
        try:
            hooks.append(HookDescriptor.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid hook entry {entry!r}: {e}")
    _print_json(describe_batches(classify(hooks)))
    return 0


def cmd_validate(args: argparse.Namespace, config: PipelineConfig) -> int:
    reports = []
    all_valid = True
    for entry in _load_hook_entries(args.file):
        validation = validate_descriptor(entry)
        all_valid = all_valid and validation.valid
        reports.append(
            {
                "command": entry.get("command"),
                "valid": validation.valid,
                "errors": validation.errors,
                "warnings": validation.warnings,
            }
        )
    _print_json(reports)
    return 0 if all_valid else 1


COMMANDS = {
    "run": cmd_run,
    "adapt": cmd_adapt,
    "stats": cmd_stats,
    "classify": cmd_classify,
    "validate": cmd_validate,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv)

    overrides: dict[str, Any] = {
        "verbose": args.verbose,
        "hooks_config_path": getattr(args, "hooks_config_path", None),
    }
    try:
        config = load_config(
            cli_overrides=overrides, config_path=args.pipeline_config
        )
    except (OSError, ValueError) as e:
        # Broken configuration must not block the tool call
        if args.verbose:
            PipelineErrorHandler.display_error(e, "Configuration")
        config = PipelineConfig(verbose=bool(args.verbose))

    _setup_logging(config.verbose)

    if args.command == "run":
        try:
            code = cmd_run(args, config)
        except Exception as e:
            # Any failure inside the pipeline allows the operation
            if config.verbose:
                PipelineErrorHandler.display_error(
                    e, "Hook pipeline", show_traceback=True
                )
            code = 0
        sys.exit(code)

    try:
        code = COMMANDS[args.command](args, config)
    except (OSError, ValueError, HookRegistryError) as e:
        PipelineErrorHandler.display_error(e, args.command)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
