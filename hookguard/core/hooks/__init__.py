"""Hook pipeline for hookguard.

Runs file-operation validators ("hooks") around an assistant's
Write/Edit/MultiEdit tool calls. Each hook is a shell command that receives
the pending operation as JSON on stdin and answers by exit status:

    0  allow (or ``{"status": "blocked", "message": ...}`` on stdout)
    2  block, with the message on stderr
    *  error, never blocks

Example registry (.claude/hooks-config.json):

    {
      "hooks": {
        "PreToolUse": [
          {
            "matcher": "Write|Edit|MultiEdit",
            "hooks": [
              {"command": "node tools/hooks/project-boundaries/block-root-mess.js",
               "priority": "critical", "family": "file_hygiene", "timeout": 2},
              {"command": "node tools/hooks/security/security-scan.js",
               "priority": "high", "family": "security", "timeout": 4}
            ]
          }
        ]
      }
    }

Hooks run concurrently within a priority tier; tiers run in the order
critical, high, medium, low, and the first tier producing a block ends the run.
"""

from __future__ import annotations

from hookguard.core.hooks.adapter import normalize
from hookguard.core.hooks.engine import ParallelExecutor
from hookguard.core.hooks.executor import execute_hook, execute_hooks_parallel
from hookguard.core.hooks.fallback import EmergencyExecutor, FallbackChain
from hookguard.core.hooks.manager import HookPipeline
from hookguard.core.hooks.priority import classify
from hookguard.core.hooks.registry import HookRegistry
from hookguard.core.hooks.reporter import report, report_legacy
from hookguard.core.hooks.types import (
    AggregatedResult,
    Decision,
    ExecutionBatch,
    ExecutionStrategy,
    ExitProtocol,
    HookDescriptor,
    HookExecutionError,
    HookOutcome,
    HookPhase,
    HookPriority,
    HookRegistryError,
    OperationPayload,
    OutcomeStatus,
)

__all__ = [
    "AggregatedResult",
    "Decision",
    "EmergencyExecutor",
    "ExecutionBatch",
    "ExecutionStrategy",
    "ExitProtocol",
    "FallbackChain",
    "HookDescriptor",
    "HookExecutionError",
    "HookOutcome",
    "HookPhase",
    "HookPipeline",
    "HookPriority",
    "HookRegistry",
    "HookRegistryError",
    "OperationPayload",
    "OutcomeStatus",
    "ParallelExecutor",
    "classify",
    "execute_hook",
    "execute_hooks_parallel",
    "normalize",
    "report",
    "report_legacy",
]
