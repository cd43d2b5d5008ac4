"""Parallel hook execution engine.

Runs hooks batch by batch in priority order. Hooks inside a batch run
concurrently; a batch that produces a block stops the run before any
lower-priority batch starts.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from hookguard.core.hooks.executor import (
    HookInvoker,
    execute_hook,
    execute_hooks_parallel,
)
from hookguard.core.hooks.priority import classify, prioritized
from hookguard.core.hooks.types import (
    AggregatedResult,
    ExecutionStrategy,
    HookDescriptor,
    HookOutcome,
    OperationPayload,
)

logger = logging.getLogger(__name__)


class ParallelExecutor:
    """Executes hook sets concurrently within priority batches.

    Args:
        cwd: Working directory for hook processes.
        max_concurrency: Upper bound on simultaneously running hooks per
            batch. ``None`` runs a whole batch at once.
        invoker: Coroutine function running a single hook. Defaults to the
            process-based ``execute_hook``.
    """

    def __init__(
        self,
        cwd: str | None = None,
        max_concurrency: int | None = None,
        invoker: HookInvoker = execute_hook,
    ) -> None:
        self.cwd = cwd
        self.max_concurrency = max_concurrency
        self.invoker = invoker

    async def run_parallel(
        self, hooks: list[HookDescriptor], payload: OperationPayload
    ) -> AggregatedResult:
        """Run hooks in priority batches, concurrently within each batch."""
        start_time = time.perf_counter()
        result = AggregatedResult(strategy=ExecutionStrategy.PARALLEL)

        for batch in classify(hooks):
            logger.debug(
                f"Executing {len(batch.hooks)} {batch.priority} priority hooks in parallel"
            )
            outcomes = await execute_hooks_parallel(
                batch.hooks,
                payload,
                cwd=self.cwd,
                max_concurrency=self.max_concurrency,
                invoker=self.invoker,
            )
            result.merge(outcomes)
            result.batches_executed += 1

            if result.blocked:
                logger.debug(f"{batch.priority} priority hook blocked, stopping execution")
                break

        result.wall_clock = time.perf_counter() - start_time
        return result

    async def run_sequential(
        self, hooks: list[HookDescriptor], payload: OperationPayload
    ) -> AggregatedResult:
        """Run hooks one at a time in priority order, stopping at the first block."""
        start_time = time.perf_counter()
        result = AggregatedResult(strategy=ExecutionStrategy.SEQUENTIAL)

        for hook in prioritized(hooks):
            try:
                outcome = await self.invoker(hook, payload, self.cwd)
            except Exception as e:
                logger.warning(f"Hook {hook.name} failed: {e}")
                outcome = HookOutcome.failure(hook, str(e))
            result.merge([outcome])

            if outcome.blocked:
                logger.debug(f"Hook {hook.name} blocked operation")
                break

        result.batches_executed = len(
            {outcome.hook.priority for outcome in result.outcomes}
        )
        result.wall_clock = time.perf_counter() - start_time
        return result

    @staticmethod
    def performance_stats(result: AggregatedResult) -> dict[str, Any]:
        """Summarize a result per priority tier."""
        total = result.total_hooks
        stats: dict[str, Any] = {
            "total_hooks": total,
            "total_duration": round(result.total_duration, 4),
            "max_duration": round(result.max_duration, 4),
            "wall_clock": round(result.wall_clock, 4),
            "parallel_efficiency": result.parallel_efficiency,
            "average_duration": round(result.total_duration / total, 4) if total else 0.0,
            "success_rate": f"{len(result.successful) / total * 100:.1f}%" if total else "100.0%",
        }

        by_priority: dict[str, dict[str, float]] = {}
        for outcome in result.outcomes:
            entry = by_priority.setdefault(
                outcome.hook.priority.value,
                {"count": 0, "duration": 0.0, "success": 0},
            )
            entry["count"] += 1
            entry["duration"] += outcome.duration
            if not outcome.blocked and not outcome.errored:
                entry["success"] += 1

        stats["by_priority"] = by_priority
        return stats
