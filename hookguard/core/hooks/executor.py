"""Hook executor module.

Responsible for executing hook commands as shell processes, passing the
operation payload as JSON via stdin and turning the exit status and output
into a ``HookOutcome``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
import json
import logging
import os
import signal
import time

from pydantic import BaseModel, ValidationError

from hookguard.core.hooks.types import (
    HookDescriptor,
    HookExecutionError,
    HookOutcome,
    OperationPayload,
    OutcomeStatus,
)
from hookguard.utils.async_helpers import batch_execute

logger = logging.getLogger(__name__)

# Exit code 2 signals a blocking decision from hooks
EXIT_CODE_BLOCKING_ERROR = 2

DEFAULT_BLOCK_MESSAGE = "Operation blocked by hook validation"

HookInvoker = Callable[
    [HookDescriptor, OperationPayload, str | None], Awaitable[HookOutcome]
]

# Seconds to wait for a killed hook to be reaped before abandoning it
KILL_GRACE_PERIOD = 1.0


class LegacyHookOutput(BaseModel):
    """JSON some hooks print on stdout instead of using exit code 2."""

    status: str
    message: str | None = None


def _parse_legacy_output(stdout: str) -> LegacyHookOutput | None:
    if not stdout.startswith("{"):
        return None

    try:
        data = json.loads(stdout)
        return LegacyHookOutput.model_validate(data)
    except json.JSONDecodeError:
        logger.debug(f"Hook output is not valid JSON, ignoring: {stdout[:100]}")
        return None
    except ValidationError:
        return None


def interpret_exit(
    hook: HookDescriptor,
    exit_code: int,
    stdout: str,
    stderr: str,
    duration: float,
) -> HookOutcome:
    """Translate a finished hook process into an outcome.

    Both wire conventions end up here: exit code 2 with the message on stderr,
    and exit code 0 with ``{"status": "blocked", "message": ...}`` on stdout.
    """
    if exit_code == EXIT_CODE_BLOCKING_ERROR:
        if stderr.strip():
            message = stderr
        elif stdout.strip():
            message = stdout
        else:
            message = DEFAULT_BLOCK_MESSAGE
        return HookOutcome(
            hook=hook,
            status=OutcomeStatus.BLOCKED,
            message=message,
            raw_stderr=stderr,
            stdout=stdout,
            exit_code=exit_code,
            duration=duration,
        )

    if exit_code != 0:
        return HookOutcome.failure(
            hook,
            stderr.strip() or f"Hook exited with code {exit_code}",
            duration=duration,
            exit_code=exit_code,
            raw_stderr=stderr,
        )

    legacy = _parse_legacy_output(stdout.strip())
    if legacy is not None and legacy.status == "blocked":
        return HookOutcome(
            hook=hook,
            status=OutcomeStatus.BLOCKED,
            message=legacy.message or DEFAULT_BLOCK_MESSAGE,
            raw_stderr=stderr,
            stdout=stdout,
            exit_code=exit_code,
            duration=duration,
        )

    return HookOutcome(
        hook=hook,
        status=OutcomeStatus.ALLOWED,
        raw_stderr=stderr or None,
        stdout=stdout or None,
        exit_code=exit_code,
        duration=duration,
    )


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    # Hooks run through the shell; killing the group also stops grandchildren
    # that would otherwise keep the pipes open.
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


def _hook_env(hook: HookDescriptor) -> dict[str, str]:
    env = os.environ.copy()
    env["HOOKGUARD_HOOK_PRIORITY"] = hook.priority.value
    env["HOOKGUARD_HOOK_FAMILY"] = hook.family
    return env


async def _spawn(
    hook: HookDescriptor, cwd: str
) -> asyncio.subprocess.Process:
    if not hook.command.strip():
        raise HookExecutionError(hook.name, "No command specified")

    return await asyncio.create_subprocess_shell(
        hook.command,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
        env=_hook_env(hook),
        start_new_session=True,
    )


async def execute_hook(
    hook: HookDescriptor,
    payload: OperationPayload,
    cwd: str | None = None,
) -> HookOutcome:
    """Execute a single hook command.

    Args:
        hook: The hook configuration.
        payload: The operation payload passed to the hook via stdin.
        cwd: Working directory for the hook command.

    Returns:
        HookOutcome describing the decision. Never raises: every failure is
        reported as an errored outcome.
    """
    start_time = time.perf_counter()
    effective_cwd = cwd or payload.cwd or os.getcwd()
    timeout = hook.effective_timeout

    try:
        input_json = json.dumps(payload.to_hook_input())
        process = await _spawn(hook, effective_cwd)

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(input=input_json.encode()),
                timeout=timeout,
            )
        except TimeoutError:
            _kill_process_group(process)
            with suppress(TimeoutError):
                await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_PERIOD)
            execution_time = time.perf_counter() - start_time
            logger.warning(f"Hook '{hook.name}' timed out after {timeout}s")
            return HookOutcome.failure(
                hook,
                f"Hook timed out after {timeout}s",
                duration=execution_time,
                timed_out=True,
            )

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        exit_code = process.returncode or 0
        execution_time = time.perf_counter() - start_time

        outcome = interpret_exit(hook, exit_code, stdout, stderr, execution_time)
        if outcome.errored:
            logger.warning(
                f"Hook '{hook.name}' exited with code {exit_code}: {outcome.error}"
            )
        else:
            logger.debug(
                f"Hook completed: {hook.name} ({execution_time:.3f}s, exit: {exit_code})"
            )
        return outcome

    except Exception as e:
        execution_time = time.perf_counter() - start_time
        logger.warning(f"Error executing hook '{hook.name}': {e}")
        return HookOutcome.failure(
            hook,
            str(e),
            duration=execution_time,
            raw_stderr=getattr(e, "stderr", None),
        )


async def execute_hooks_parallel(
    hooks: list[HookDescriptor],
    payload: OperationPayload,
    cwd: str | None = None,
    max_concurrency: int | None = None,
    invoker: HookInvoker = execute_hook,
) -> list[HookOutcome]:
    """Execute multiple hooks in parallel.

    Args:
        hooks: Hook configurations to execute.
        payload: The operation payload passed to each hook.
        cwd: Working directory for the hook commands.
        max_concurrency: Upper bound on simultaneously running hooks.
        invoker: Coroutine function used to run a single hook.

    Returns:
        One HookOutcome per hook, in the order the hooks were given.
    """
    if not hooks:
        return []

    tasks = [lambda h=hook: invoker(h, payload, cwd) for hook in hooks]
    results = await batch_execute(tasks, max_concurrent=max_concurrency)

    outcomes: list[HookOutcome] = []
    for hook, result in zip(hooks, results, strict=True):
        if isinstance(result, BaseException):
            logger.warning(f"Hook execution failed: {result}")
            outcomes.append(HookOutcome.failure(hook, str(result)))
        else:
            outcomes.append(result)

    return outcomes
