"""Hook pipeline.

Provides the single entry point the CLI uses: check the bypass toggles, look
up the registered hooks, normalize the input and run the fallback chain.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

from hookguard.core.config import PipelineConfig
from hookguard.core.error_handler import PipelineErrorHandler
from hookguard.core.hooks.adapter import normalize
from hookguard.core.hooks.engine import ParallelExecutor
from hookguard.core.hooks.executor import HookInvoker, execute_hook
from hookguard.core.hooks.fallback import EmergencyExecutor, FallbackChain
from hookguard.core.hooks.registry import HookRegistry, filter_hooks_by_tool
from hookguard.core.hooks.types import (
    AggregatedResult,
    HookDescriptor,
    HookRegistryError,
    OperationPayload,
)

logger = logging.getLogger(__name__)


class HookPipeline:
    """Runs the registered hooks for one pending tool call.

    This class never raises from ``run``: the orchestrator only ever sees an
    allow or a block.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        registry: HookRegistry | None = None,
        registry_loader: Callable[[str], HookRegistry] = HookRegistry.load,
        cwd: str | None = None,
        invoker: HookInvoker = execute_hook,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Pipeline configuration resolved at startup.
            registry: Static registry (for testing); loaded from
                ``config.hooks_config_path`` when omitted.
            registry_loader: Callable loading a registry from a path.
            cwd: Working directory for hook processes.
            invoker: Coroutine function running a single hook.
        """
        self.config = config or PipelineConfig()
        self._registry = registry
        self._registry_loader = registry_loader
        self.cwd = cwd
        self.invoker = invoker

    @property
    def enabled(self) -> bool:
        return not self.config.bypass_all

    def _load_registry(self) -> HookRegistry:
        if self._registry is not None:
            return self._registry
        try:
            return self._registry_loader(self.config.hooks_config_path)
        except HookRegistryError as e:
            logger.warning(
                PipelineErrorHandler.format_error_message(e, "Hook registry")
            )
            return HookRegistry()

    def applicable_hooks(
        self, hooks: list[HookDescriptor], payload: OperationPayload
    ) -> list[HookDescriptor]:
        """Hooks matching the payload's tool that survive every toggle."""
        matching = filter_hooks_by_tool(hooks, payload.tool_name)
        enabled = [
            hook
            for hook in matching
            if self.config.hook_enabled(hook.command, hook.family)
        ]
        if len(enabled) < len(matching):
            logger.debug(
                f"Filtered out {len(matching) - len(enabled)} hooks due to family or folder toggles"
            )
        return enabled

    def select_hooks(
        self, phase: str, tool_matcher: str, payload: OperationPayload
    ) -> list[HookDescriptor]:
        """Registered hooks that apply to this call, after all toggles."""
        registry = self._load_registry()
        return self.applicable_hooks(registry.hooks_for(phase, tool_matcher), payload)

    def build_chain(self, phase: str, tool_matcher: str) -> FallbackChain:
        executor = ParallelExecutor(
            cwd=self.cwd,
            max_concurrency=self.config.max_concurrency,
            invoker=self.invoker,
        )
        emergency = EmergencyExecutor(
            backup_path=self.config.backup_config_path,
            phase=phase,
            tool_matcher=tool_matcher,
            cwd=self.cwd,
            hook_filter=self.applicable_hooks,
        )
        return FallbackChain(executor=executor, emergency=emergency)

    async def run(
        self,
        raw_input: str | bytes | dict[str, Any] | None,
        phase: str | None = None,
        tool_matcher: str | None = None,
    ) -> AggregatedResult:
        """Run the pipeline for one tool call.

        Args:
            raw_input: Hook input as received on stdin.
            phase: Lifecycle phase, e.g. "PreToolUse".
            tool_matcher: Tool matcher the pipeline was registered under.

        Returns:
            AggregatedResult of the run. Bypassed runs return an empty result.
        """
        if self.config.bypass_all:
            logger.debug(f"Hook pipeline bypassed: {self.config.bypass_reason}")
            return AggregatedResult.bypassed()

        phase = phase or self.config.default_phase
        tool_matcher = tool_matcher or self.config.default_tool_matcher

        try:
            payload = normalize(raw_input)
            if payload.is_empty:
                logger.debug("Empty hook input, nothing to validate")
                return AggregatedResult()

            hooks = self.select_hooks(phase, tool_matcher, payload)
            if not hooks:
                logger.debug(f"No hooks configured for {phase}")
                return AggregatedResult()

            logger.debug(f"Starting parallel execution of {len(hooks)} hooks")
            return await self.build_chain(phase, tool_matcher).execute(hooks, payload)
        except Exception as e:
            logger.warning(
                f"All fallback mechanisms exhausted - allowing operation: {e}",
                exc_info=True,
            )
            return AggregatedResult.fail_open()
