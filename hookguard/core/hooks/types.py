"""Type definitions for the hook pipeline.

Hooks are independent validator processes invoked around file-operation tool
calls. They receive an operation payload as JSON on stdin and answer allow,
block (with a message) or fail.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field


class HookPhase(StrEnum):
    """Lifecycle points hooks can be registered for."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"


class HookPriority(StrEnum):
    """Priority tiers, executed in declaration order of this enum."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OutcomeStatus(StrEnum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    ERRORED = "errored"


class ExecutionStrategy(StrEnum):
    """Which path produced an aggregated result."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    EMERGENCY = "emergency"
    BYPASS = "bypass"
    FAIL_OPEN = "fail_open"


class Decision(StrEnum):
    ALLOW = "allow"
    BLOCK = "block"


# Per-tier timeouts in seconds, used when a hook declares none.
DEFAULT_TIER_TIMEOUTS: dict[HookPriority, float] = {
    HookPriority.CRITICAL: 2.0,
    HookPriority.HIGH: 4.0,
    HookPriority.MEDIUM: 3.0,
    HookPriority.LOW: 2.0,
}


class HookDescriptor(BaseModel):
    """Static configuration for a single hook.

    Attributes:
        type: The type of hook (only "command" is supported).
        command: The shell command to execute.
        matcher: Regex pattern over tool names, e.g. "Write|Edit|MultiEdit".
            Use "*" to match all tools.
        priority: Priority tier used to order execution batches.
        family: Logical grouping tag, e.g. "security".
        timeout: Maximum execution time in seconds. Falls back to the
            tier default when unset.
        description: Free-form description used in reports.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["command"] = "command"
    command: str = Field(default="", description="Shell command to execute")
    matcher: str = Field(
        default="*",
        description="Regex pattern to match tool names. Use '*' for all tools.",
    )
    priority: HookPriority = HookPriority.MEDIUM
    family: str = "unknown"
    timeout: float | None = Field(default=None, gt=0.0, le=600.0)
    description: str | None = None

    @property
    def name(self) -> str:
        return self.command or self.description or "unknown"

    @property
    def effective_timeout(self) -> float:
        if self.timeout is not None:
            return self.timeout
        return DEFAULT_TIER_TIMEOUTS[self.priority]


class OperationPayload(BaseModel):
    """Canonical description of the pending file operation.

    Shared read-only by every hook of a run.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    tool_name: str | None = Field(
        default=None, validation_alias=AliasChoices("tool_name", "toolName")
    )
    file_path: str | None = Field(
        default=None, validation_alias=AliasChoices("file_path", "filePath")
    )
    content: str | None = None
    old_string: str | None = Field(
        default=None, validation_alias=AliasChoices("old_string", "oldString")
    )
    new_string: str | None = Field(
        default=None, validation_alias=AliasChoices("new_string", "newString")
    )
    edits: tuple[dict[str, Any], ...] = ()
    session_id: str | None = None
    cwd: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.tool_name
            or self.file_path
            or self.content
            or self.old_string
            or self.new_string
            or self.edits
        )

    def tool_input(self) -> dict[str, Any]:
        fields = {
            "file_path": self.file_path,
            "content": self.content,
            "old_string": self.old_string,
            "new_string": self.new_string,
        }
        data: dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        if self.edits:
            data["edits"] = [dict(edit) for edit in self.edits]
        return data

    def to_hook_input(self) -> dict[str, Any]:
        """Build the JSON object written to each hook's stdin.

        Both the flattened fields and the nested ``tool_input`` are present so
        hooks written against either input shape can read it.
        """
        tool_input = self.tool_input()
        data: dict[str, Any] = dict(tool_input)
        data["tool_input"] = tool_input
        if self.tool_name is not None:
            data["tool_name"] = self.tool_name
        if self.session_id is not None:
            data["session_id"] = self.session_id
        if self.cwd is not None:
            data["cwd"] = self.cwd
        return data


class HookOutcome(BaseModel):
    """Result of running one hook."""

    hook: HookDescriptor
    status: OutcomeStatus
    message: str | None = None
    error: str | None = None
    raw_stderr: str | None = None
    stdout: str | None = None
    exit_code: int = 0
    duration: float = 0.0
    timed_out: bool = False

    @property
    def blocked(self) -> bool:
        return self.status == OutcomeStatus.BLOCKED

    @property
    def errored(self) -> bool:
        return self.status == OutcomeStatus.ERRORED

    @classmethod
    def failure(
        cls,
        hook: HookDescriptor,
        error: str,
        *,
        duration: float = 0.0,
        exit_code: int = -1,
        raw_stderr: str | None = None,
        timed_out: bool = False,
    ) -> HookOutcome:
        return cls(
            hook=hook,
            status=OutcomeStatus.ERRORED,
            error=error,
            raw_stderr=raw_stderr,
            exit_code=exit_code,
            duration=duration,
            timed_out=timed_out,
        )


class ExecutionBatch(BaseModel):
    """Hooks sharing one priority tier, run concurrently together."""

    priority: HookPriority
    hooks: list[HookDescriptor] = Field(default_factory=list)


class AggregatedResult(BaseModel):
    """Merge of every hook outcome produced by one pipeline run.

    Attributes:
        successful: Outcomes that allowed the operation.
        blocks: Outcomes that blocked it, in batch then declaration order.
        errors: Outcomes that failed (crash, timeout, bad exit status).
        strategy: Execution path that produced this result.
        batches_executed: Number of priority batches started.
        total_duration: Sum of individual hook durations, in seconds.
        max_duration: Longest individual hook duration, in seconds.
        wall_clock: Time actually spent running, in seconds.
    """

    successful: list[HookOutcome] = Field(default_factory=list)
    blocks: list[HookOutcome] = Field(default_factory=list)
    errors: list[HookOutcome] = Field(default_factory=list)
    strategy: ExecutionStrategy = ExecutionStrategy.PARALLEL
    batches_executed: int = 0
    total_duration: float = 0.0
    max_duration: float = 0.0
    wall_clock: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_hooks(self) -> int:
        return len(self.successful) + len(self.blocks) + len(self.errors)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def parallel_efficiency(self) -> float:
        if self.total_hooks == 0 or self.wall_clock <= 0:
            return 1.0
        return round(self.total_duration / self.wall_clock, 2)

    @property
    def blocked(self) -> bool:
        return bool(self.blocks)

    @property
    def first_block(self) -> HookOutcome | None:
        return self.blocks[0] if self.blocks else None

    @property
    def outcomes(self) -> list[HookOutcome]:
        return [*self.successful, *self.blocks, *self.errors]

    def merge(self, outcomes: list[HookOutcome]) -> None:
        for outcome in outcomes:
            if outcome.status == OutcomeStatus.BLOCKED:
                self.blocks.append(outcome)
            elif outcome.status == OutcomeStatus.ERRORED:
                self.errors.append(outcome)
            else:
                self.successful.append(outcome)
            self.total_duration += outcome.duration
            self.max_duration = max(self.max_duration, outcome.duration)

    @classmethod
    def fail_open(cls) -> AggregatedResult:
        return cls(strategy=ExecutionStrategy.FAIL_OPEN)

    @classmethod
    def bypassed(cls) -> AggregatedResult:
        return cls(strategy=ExecutionStrategy.BYPASS)


class ExitProtocol(BaseModel):
    """Exit status and stderr text handed back to the orchestrator."""

    decision: Decision
    exit_code: int
    message: str = ""


class HookMatcherGroup(BaseModel):
    """Hooks registered under one tool matcher."""

    matcher: str = "*"
    hooks: list[dict[str, Any]] = Field(default_factory=list)


class HooksRegistryConfig(BaseModel):
    """Top-level registry file, hooks grouped by lifecycle phase."""

    model_config = ConfigDict(extra="ignore")

    hooks: dict[str, list[HookMatcherGroup]] = Field(default_factory=dict)


class HookExecutionError(Exception):
    """Raised when a hook fails to execute properly."""

    def __init__(
        self, hook_command: str, message: str, stderr: str | None = None
    ) -> None:
        self.hook_command = hook_command
        self.stderr = stderr
        super().__init__(f"Hook '{hook_command}' failed: {message}")


class HookRegistryError(Exception):
    """Raised when a hook registry file cannot be parsed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Invalid hook registry '{path}': {message}")
