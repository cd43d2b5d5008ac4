"""Fallback chain around the parallel executor.

Tier 1 runs hooks in parallel batches. If the orchestration itself raises,
Tier 2 reruns the same hooks sequentially. If that raises too, Tier 3 hands
the hooks to the emergency executor, which uses blocking ``subprocess``
calls instead of the asyncio machinery. When every tier fails, the operation
is allowed.

Blocks and hook errors reported by a tier are normal outcomes and never
trigger the next tier.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
import json
import logging
import os
from pathlib import Path
import signal
import subprocess
import time

from hookguard.core.hooks.engine import ParallelExecutor
from hookguard.core.hooks.executor import KILL_GRACE_PERIOD, interpret_exit
from hookguard.core.hooks.registry import HookRegistry
from hookguard.core.hooks.types import (
    AggregatedResult,
    ExecutionStrategy,
    HookDescriptor,
    HookOutcome,
    HookPhase,
    HookRegistryError,
    OperationPayload,
)

logger = logging.getLogger(__name__)

HookFilter = Callable[[list[HookDescriptor], OperationPayload], list[HookDescriptor]]


def _kill_group(process: subprocess.Popen[bytes]) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


class EmergencyExecutor:
    """Last-resort sequential executor.

    Runs hooks in declaration order with plain blocking subprocesses, turns
    every per-hook exception into an errored outcome and stops at the first
    block. When ``backup_path`` points to an existing registry, its hooks for
    ``phase`` and ``tool_matcher`` replace the hooks it is given, after
    passing through ``hook_filter`` (the same selection the pipeline applies
    to its own registry).
    """

    def __init__(
        self,
        backup_path: str | None = None,
        phase: str = HookPhase.PRE_TOOL_USE,
        tool_matcher: str = "Write|Edit|MultiEdit",
        cwd: str | None = None,
        hook_filter: HookFilter | None = None,
    ) -> None:
        self.backup_path = backup_path
        self.phase = phase
        self.tool_matcher = tool_matcher
        self.cwd = cwd
        self.hook_filter = hook_filter

    def _backup_hooks(self, payload: OperationPayload) -> list[HookDescriptor] | None:
        if not self.backup_path or not Path(self.backup_path).exists():
            return None
        try:
            registry = HookRegistry.load(self.backup_path)
        except HookRegistryError as e:
            logger.warning(f"Ignoring unreadable backup configuration: {e}")
            return None
        hooks = registry.hooks_for(self.phase, self.tool_matcher)
        if self.hook_filter is not None:
            hooks = self.hook_filter(hooks, payload)
        return hooks

    def execute_hook(
        self, hook: HookDescriptor, payload: OperationPayload
    ) -> HookOutcome:
        start_time = time.perf_counter()
        timeout = hook.effective_timeout
        if not hook.command.strip():
            return HookOutcome.failure(hook, "No command specified")
        with subprocess.Popen(
            hook.command,
            shell=True,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=self.cwd or payload.cwd or None,
            start_new_session=True,
        ) as process:
            try:
                stdout, stderr = process.communicate(
                    input=json.dumps(payload.to_hook_input()).encode(),
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired:
                _kill_group(process)
                # Descendants that left the group may still hold the pipes
                with suppress(subprocess.TimeoutExpired):
                    process.communicate(timeout=KILL_GRACE_PERIOD)
                return HookOutcome.failure(
                    hook,
                    f"Hook timed out after {timeout}s",
                    duration=time.perf_counter() - start_time,
                    timed_out=True,
                )

        return interpret_exit(
            hook,
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            time.perf_counter() - start_time,
        )

    def execute(
        self, hooks: list[HookDescriptor], payload: OperationPayload
    ) -> AggregatedResult:
        backup = self._backup_hooks(payload)
        if backup is not None:
            logger.warning(f"Emergency executor using backup configuration {self.backup_path}")
            hooks = backup

        result = AggregatedResult(strategy=ExecutionStrategy.EMERGENCY)
        start_time = time.perf_counter()

        for hook in hooks:
            try:
                outcome = self.execute_hook(hook, payload)
            except Exception as e:
                outcome = HookOutcome.failure(hook, str(e))
            result.merge([outcome])
            if outcome.blocked:
                break

        result.wall_clock = time.perf_counter() - start_time
        return result


class FallbackChain:
    """Runs hooks through the descending fallback tiers. Never raises."""

    def __init__(
        self,
        executor: ParallelExecutor | None = None,
        emergency: EmergencyExecutor | None = None,
    ) -> None:
        self.executor = executor or ParallelExecutor()
        self.emergency = emergency or EmergencyExecutor(cwd=self.executor.cwd)

    async def execute(
        self, hooks: list[HookDescriptor], payload: OperationPayload
    ) -> AggregatedResult:
        if not hooks:
            return AggregatedResult()

        try:
            return await self.executor.run_parallel(hooks, payload)
        except Exception as parallel_error:
            logger.warning(
                f"Parallel execution failed, falling back to sequential: {parallel_error}",
                exc_info=True,
            )

        try:
            return await self.executor.run_sequential(hooks, payload)
        except Exception as sequential_error:
            logger.warning(
                f"Sequential fallback also failed, using emergency executor: {sequential_error}",
                exc_info=True,
            )

        try:
            return await asyncio.to_thread(self.emergency.execute, hooks, payload)
        except Exception as emergency_error:
            logger.warning(
                f"Emergency fallback failed, allowing operation: {emergency_error}",
                exc_info=True,
            )

        return AggregatedResult.fail_open()
