"""Tests for hooks executor module."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import json
import os
from pathlib import Path
import shlex

import pytest

from hookguard.core.hooks.executor import (
    DEFAULT_BLOCK_MESSAGE,
    execute_hook,
    execute_hooks_parallel,
    interpret_exit,
)
from hookguard.core.hooks.types import (
    HookDescriptor,
    HookOutcome,
    OperationPayload,
    OutcomeStatus,
)

PAYLOAD = OperationPayload(tool_name="Write", file_path="src/app.ts", content="x")


class TestExecuteHook:
    @pytest.mark.asyncio
    async def test_exit_zero_allows(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(command=hook_script("cat > /dev/null\nexit 0"))

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.status == OutcomeStatus.ALLOWED
        assert outcome.exit_code == 0
        assert outcome.error is None
        assert outcome.duration > 0

    @pytest.mark.asyncio
    async def test_exit_two_blocks_with_stderr_verbatim(
        self, hook_script: Callable[..., str]
    ) -> None:
        hook = HookDescriptor(
            command=hook_script(
                "cat > /dev/null\nprintf 'env files protected\\n' >&2\nexit 2"
            )
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.blocked
        assert outcome.exit_code == 2
        assert outcome.message == "env files protected\n"

    @pytest.mark.asyncio
    async def test_block_message_falls_back_to_stdout(
        self, hook_script: Callable[..., str]
    ) -> None:
        hook = HookDescriptor(command=hook_script("cat > /dev/null\necho 'from stdout'\nexit 2"))

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.blocked
        assert outcome.message == "from stdout\n"

    @pytest.mark.asyncio
    async def test_block_message_default(self) -> None:
        hook = HookDescriptor(command="exit 2")

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.blocked
        assert outcome.message == DEFAULT_BLOCK_MESSAGE

    @pytest.mark.asyncio
    async def test_other_exit_codes_are_errors(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(
            command=hook_script("cat > /dev/null\necho 'crashed' >&2\nexit 1")
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.errored
        assert not outcome.blocked
        assert outcome.exit_code == 1
        assert outcome.error == "crashed"
        assert outcome.raw_stderr == "crashed\n"

    @pytest.mark.asyncio
    async def test_legacy_json_block(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(
            command=hook_script(
                "cat > /dev/null\n"
                "echo '{\"status\": \"blocked\", \"message\": \"no root files\"}'"
            )
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.blocked
        assert outcome.exit_code == 0
        assert outcome.message == "no root files"

    @pytest.mark.asyncio
    async def test_non_json_stdout_is_ignored(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(command=hook_script("cat > /dev/null\necho '{looks like json'"))

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.status == OutcomeStatus.ALLOWED

    @pytest.mark.asyncio
    async def test_hook_receives_json_input(
        self, hook_script: Callable[..., str], tmp_path: Path
    ) -> None:
        received = tmp_path / "received.json"
        hook = HookDescriptor(command=hook_script(f"cat > {shlex.quote(str(received))}"))

        await execute_hook(hook, PAYLOAD)

        data = json.loads(received.read_text())
        assert data["file_path"] == "src/app.ts"
        assert data["tool_input"]["file_path"] == "src/app.ts"
        assert data["tool_name"] == "Write"

    @pytest.mark.asyncio
    async def test_hook_environment(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(
            command=hook_script(
                "cat > /dev/null\nprintf '%s/%s' \"$HOOKGUARD_HOOK_PRIORITY\" \"$HOOKGUARD_HOOK_FAMILY\""
            ),
            priority="high",
            family="security",
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.stdout == "high/security"

    @pytest.mark.asyncio
    async def test_hook_runs_in_cwd(
        self, hook_script: Callable[..., str], tmp_path: Path
    ) -> None:
        hook = HookDescriptor(command=hook_script("cat > /dev/null\npwd"))

        outcome = await execute_hook(hook, PAYLOAD, str(tmp_path))

        assert os.path.realpath((outcome.stdout or "").strip()) == os.path.realpath(tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.timeout(15)
    async def test_hook_timeout(self) -> None:
        hook = HookDescriptor(command="sleep 10", timeout=0.5)

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.errored
        assert outcome.timed_out is True
        assert outcome.exit_code == -1
        assert "timed out" in (outcome.error or "").lower()
        assert outcome.duration < 5

    @pytest.mark.asyncio
    @pytest.mark.timeout(15)
    async def test_slow_blocker_never_blocks(self, hook_script: Callable[..., str]) -> None:
        hook = HookDescriptor(
            command=hook_script("sleep 10\necho 'too late' >&2\nexit 2"), timeout=0.5
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert not outcome.blocked
        assert outcome.timed_out

    @pytest.mark.asyncio
    @pytest.mark.timeout(15)
    async def test_timeout_kills_background_children(
        self, hook_script: Callable[..., str]
    ) -> None:
        hook = HookDescriptor(
            command=hook_script("cat > /dev/null\nsleep 10 &\nsleep 10 &\nwait"),
            timeout=0.5,
        )

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.timed_out
        assert outcome.duration < 5

    @pytest.mark.asyncio
    async def test_missing_command_is_error(self) -> None:
        outcome = await execute_hook(HookDescriptor(command=""), PAYLOAD)

        assert outcome.errored
        assert "No command specified" in (outcome.error or "")

    @pytest.mark.asyncio
    async def test_command_not_found_is_error(self) -> None:
        hook = HookDescriptor(command="definitely-not-a-real-hook-binary-xyz")

        outcome = await execute_hook(hook, PAYLOAD)

        assert outcome.errored
        assert outcome.exit_code == 127


class TestInterpretExit:
    def test_blank_stderr_uses_stdout(self) -> None:
        outcome = interpret_exit(HookDescriptor(command="x"), 2, "out\n", "  \n", 0.1)

        assert outcome.message == "out\n"

    def test_legacy_ok_allows(self) -> None:
        outcome = interpret_exit(HookDescriptor(command="x"), 0, '{"status": "ok"}', "", 0.1)

        assert outcome.status == OutcomeStatus.ALLOWED

    def test_legacy_block_without_message(self) -> None:
        outcome = interpret_exit(
            HookDescriptor(command="x"), 0, '{"status": "blocked"}', "", 0.1
        )

        assert outcome.blocked
        assert outcome.message == DEFAULT_BLOCK_MESSAGE

    def test_error_without_stderr(self) -> None:
        outcome = interpret_exit(HookDescriptor(command="x"), 3, "", "", 0.1)

        assert outcome.error == "Hook exited with code 3"


class TestExecuteHooksParallel:
    @pytest.mark.asyncio
    async def test_outcomes_in_declaration_order(self) -> None:
        delays = {"slow": 0.2, "fast": 0.0, "medium": 0.1}

        async def invoker(
            hook: HookDescriptor, payload: OperationPayload, cwd: str | None
        ) -> HookOutcome:
            await asyncio.sleep(delays[hook.command])
            return HookOutcome(hook=hook, status=OutcomeStatus.ALLOWED)

        hooks = [HookDescriptor(command=name) for name in ("slow", "fast", "medium")]

        outcomes = await execute_hooks_parallel(hooks, PAYLOAD, invoker=invoker)

        assert [o.hook.command for o in outcomes] == ["slow", "fast", "medium"]

    @pytest.mark.asyncio
    async def test_runs_concurrently(self) -> None:
        running = 0
        peak = 0

        async def invoker(
            hook: HookDescriptor, payload: OperationPayload, cwd: str | None
        ) -> HookOutcome:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            running -= 1
            return HookOutcome(hook=hook, status=OutcomeStatus.ALLOWED)

        hooks = [HookDescriptor(command=f"hook-{i}") for i in range(5)]

        await execute_hooks_parallel(hooks, PAYLOAD, invoker=invoker)

        assert peak == 5

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_running_hooks(self) -> None:
        running = 0
        peak = 0

        async def invoker(
            hook: HookDescriptor, payload: OperationPayload, cwd: str | None
        ) -> HookOutcome:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            running -= 1
            return HookOutcome(hook=hook, status=OutcomeStatus.ALLOWED)

        hooks = [HookDescriptor(command=f"hook-{i}") for i in range(6)]

        outcomes = await execute_hooks_parallel(
            hooks, PAYLOAD, max_concurrency=2, invoker=invoker
        )

        assert peak == 2
        assert len(outcomes) == 6

    @pytest.mark.asyncio
    async def test_escaping_exception_becomes_error(self) -> None:
        async def invoker(
            hook: HookDescriptor, payload: OperationPayload, cwd: str | None
        ) -> HookOutcome:
            if hook.command == "broken":
                raise RuntimeError("invoker exploded")
            return HookOutcome(hook=hook, status=OutcomeStatus.ALLOWED)

        hooks = [HookDescriptor(command="ok"), HookDescriptor(command="broken")]

        outcomes = await execute_hooks_parallel(hooks, PAYLOAD, invoker=invoker)

        assert outcomes[0].status == OutcomeStatus.ALLOWED
        assert outcomes[1].errored
        assert outcomes[1].error == "invoker exploded"

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        assert await execute_hooks_parallel([], PAYLOAD) == []

    @pytest.mark.asyncio
    async def test_real_processes(self, hook_script: Callable[..., str]) -> None:
        hooks = [
            HookDescriptor(command=hook_script("cat > /dev/null\nexit 0", name="allow.sh")),
            HookDescriptor(
                command=hook_script("cat > /dev/null\necho 'stop' >&2\nexit 2", name="block.sh")
            ),
        ]

        outcomes = await execute_hooks_parallel(hooks, PAYLOAD)

        assert outcomes[0].status == OutcomeStatus.ALLOWED
        assert outcomes[1].blocked
        assert outcomes[1].message == "stop\n"
