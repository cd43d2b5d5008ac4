"""Result reporter.

Maps an ``AggregatedResult`` onto the orchestrator's exit protocol: exit 2 with
the blocking hook's message on stderr, exit 0 otherwise.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

from rich.console import Console
from rich.table import Table

from hookguard.core.hooks.engine import ParallelExecutor
from hookguard.core.hooks.executor import (
    DEFAULT_BLOCK_MESSAGE,
    EXIT_CODE_BLOCKING_ERROR,
)
from hookguard.core.hooks.types import AggregatedResult, Decision, ExitProtocol

logger = logging.getLogger(__name__)

EXIT_CODE_ALLOW = 0


def report(result: AggregatedResult, verbose: bool = False) -> ExitProtocol:
    """Translate an aggregated result into an exit protocol.

    The first block wins: blocks are recorded in batch order and, within a
    batch, in declaration order.
    """
    block = result.first_block
    if block is not None:
        return ExitProtocol(
            decision=Decision.BLOCK,
            exit_code=EXIT_CODE_BLOCKING_ERROR,
            message=block.message or DEFAULT_BLOCK_MESSAGE,
        )

    if result.errors and verbose:
        logger.warning(
            f"{len(result.errors)} hooks had errors but operation will continue"
        )
        for outcome in result.errors:
            logger.warning(f"  - {outcome.hook.name}: {outcome.error}")

    return ExitProtocol(decision=Decision.ALLOW, exit_code=EXIT_CODE_ALLOW)


def report_legacy(result: AggregatedResult) -> dict[str, Any]:
    """Render the result in the JSON-on-stdout convention."""
    protocol = report(result)
    if protocol.decision == Decision.BLOCK:
        return {"status": "blocked", "message": protocol.message.rstrip("\n")}
    return {"status": "ok"}


def emit(protocol: ExitProtocol, stream: TextIO | None = None) -> int:
    """Write the protocol message and return the exit code to use.

    The message is written newline-terminated.
    """
    if protocol.message:
        out = stream or sys.stderr
        out.write(protocol.message)
        if not protocol.message.endswith("\n"):
            out.write("\n")
        out.flush()
    return protocol.exit_code


def render_summary(result: AggregatedResult, console: Console | None = None) -> None:
    """Print a summary table of a run (verbose mode)."""
    con = console or Console(stderr=True)
    stats = ParallelExecutor.performance_stats(result)

    table = Table(title=f"Hook execution ({result.strategy})", show_header=True)
    table.add_column("Hook")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Detail")

    for outcome in result.outcomes:
        detail = outcome.error or (outcome.message or "").strip()
        table.add_row(
            outcome.hook.name,
            outcome.hook.priority.value,
            outcome.status.value,
            f"{outcome.duration * 1000:.0f}ms",
            detail[:80],
        )

    con.print(table)
    con.print(
        f"Total hooks: {result.total_hooks}  "
        f"Successful: {len(result.successful)}  "
        f"Blocked: {len(result.blocks)}  "
        f"Errors: {len(result.errors)}  "
        f"Parallel efficiency: {result.parallel_efficiency}"
    )
    for priority, data in stats["by_priority"].items():
        average = data["duration"] / data["count"] * 1000 if data["count"] else 0
        con.print(f"  {priority}: {data['count']} hooks, {average:.0f}ms avg")
