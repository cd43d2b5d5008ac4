"""Hook priority classification.

Hooks are grouped into priority tiers which run in a fixed order, so that
critical checks (infrastructure protection, file hygiene) get the chance to
block before cosmetic checks spend any time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from hookguard.core.hooks.types import (
    DEFAULT_TIER_TIMEOUTS,
    ExecutionBatch,
    HookDescriptor,
    HookPriority,
)

EXECUTION_ORDER: tuple[HookPriority, ...] = (
    HookPriority.CRITICAL,
    HookPriority.HIGH,
    HookPriority.MEDIUM,
    HookPriority.LOW,
)

HOOK_PRIORITY_VALUES = frozenset(p.value for p in HookPriority)


class TierInfo(BaseModel):
    level: int
    timeout: float
    description: str
    max_parallelism: int


class FamilyInfo(BaseModel):
    priority: HookPriority
    description: str
    blocking_behavior: str


PRIORITY_TIERS: dict[HookPriority, TierInfo] = {
    HookPriority.CRITICAL: TierInfo(
        level=1,
        timeout=DEFAULT_TIER_TIMEOUTS[HookPriority.CRITICAL],
        description="Must complete, blocks all subsequent hooks on failure",
        max_parallelism=1,
    ),
    HookPriority.HIGH: TierInfo(
        level=2,
        timeout=DEFAULT_TIER_TIMEOUTS[HookPriority.HIGH],
        description="Important validations",
        max_parallelism=3,
    ),
    HookPriority.MEDIUM: TierInfo(
        level=3,
        timeout=DEFAULT_TIER_TIMEOUTS[HookPriority.MEDIUM],
        description="Standard validations",
        max_parallelism=5,
    ),
    HookPriority.LOW: TierInfo(
        level=4,
        timeout=DEFAULT_TIER_TIMEOUTS[HookPriority.LOW],
        description="Nice-to-have validations",
        max_parallelism=10,
    ),
}

HOOK_FAMILIES: dict[str, FamilyInfo] = {
    "file_hygiene": FamilyInfo(
        priority=HookPriority.CRITICAL,
        description="Prevents file system pollution",
        blocking_behavior="hard-block",
    ),
    "infrastructure_protection": FamilyInfo(
        priority=HookPriority.CRITICAL,
        description="Protects project infrastructure",
        blocking_behavior="hard-block",
    ),
    "security": FamilyInfo(
        priority=HookPriority.HIGH,
        description="Security and vulnerability scanning",
        blocking_behavior="soft-block",
    ),
    "validation": FamilyInfo(
        priority=HookPriority.HIGH,
        description="Data and context validation",
        blocking_behavior="soft-block",
    ),
    "architecture": FamilyInfo(
        priority=HookPriority.HIGH,
        description="Architectural pattern enforcement",
        blocking_behavior="soft-block",
    ),
    "pattern_enforcement": FamilyInfo(
        priority=HookPriority.MEDIUM,
        description="Development pattern enforcement",
        blocking_behavior="warning",
    ),
    "performance": FamilyInfo(
        priority=HookPriority.MEDIUM,
        description="Performance monitoring",
        blocking_behavior="warning",
    ),
    "testing": FamilyInfo(
        priority=HookPriority.MEDIUM,
        description="Test-related validations",
        blocking_behavior="warning",
    ),
    "data_hygiene": FamilyInfo(
        priority=HookPriority.MEDIUM,
        description="Database and data structure validation",
        blocking_behavior="warning",
    ),
    "code_cleanup": FamilyInfo(
        priority=HookPriority.LOW,
        description="Code cleanup and formatting",
        blocking_behavior="none",
    ),
    "documentation": FamilyInfo(
        priority=HookPriority.LOW,
        description="Documentation enforcement",
        blocking_behavior="none",
    ),
}


def classify(hooks: Iterable[HookDescriptor]) -> list[ExecutionBatch]:
    """Group hooks into priority-ordered batches.

    Only non-empty batches are returned. Configuration order is preserved
    within a tier.
    """
    groups: dict[HookPriority, list[HookDescriptor]] = {
        priority: [] for priority in EXECUTION_ORDER
    }
    for hook in hooks:
        groups[hook.priority].append(hook)

    return [
        ExecutionBatch(priority=priority, hooks=groups[priority])
        for priority in EXECUTION_ORDER
        if groups[priority]
    ]


def prioritized(hooks: Iterable[HookDescriptor]) -> list[HookDescriptor]:
    """Flatten hooks into priority order (stable within a tier)."""
    return [hook for batch in classify(hooks) for hook in batch.hooks]


def describe_batches(batches: Iterable[ExecutionBatch]) -> dict[str, dict[str, Any]]:
    """Batches keyed by priority, with the tier each one runs under."""
    return {
        batch.priority.value: {
            **PRIORITY_TIERS[batch.priority].model_dump(),
            "hooks": [hook.model_dump(mode="json") for hook in batch.hooks],
        }
        for batch in batches
    }


def blocking_behavior(family: str) -> str:
    info = HOOK_FAMILIES.get(family)
    return info.blocking_behavior if info else "warning"


@dataclass
class DescriptorValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_descriptor(raw: Mapping[str, Any]) -> DescriptorValidation:
    """Check a raw hook entry from a registry file."""
    errors: list[str] = []
    warnings: list[str] = []

    if not raw.get("command"):
        errors.append("Hook command is required")

    priority = raw.get("priority")
    if not priority:
        warnings.append("Hook priority not specified, defaulting to medium")
    elif priority not in HOOK_PRIORITY_VALUES:
        errors.append(f"Invalid priority: {priority}")

    family = raw.get("family")
    if not family:
        warnings.append("Hook family not specified, defaulting to unknown")
    elif family not in HOOK_FAMILIES:
        warnings.append(f"Unknown family: {family}")
    elif priority in HOOK_PRIORITY_VALUES and priority != HOOK_FAMILIES[family].priority:
        warnings.append(
            f"Priority {priority} differs from the {family} family default "
            f"({HOOK_FAMILIES[family].priority.value})"
        )

    timeout = raw.get("timeout")
    if isinstance(timeout, int | float) and timeout < 1:
        warnings.append("Hook timeout is very low, may cause premature failures")

    return DescriptorValidation(valid=not errors, errors=errors, warnings=warnings)


def hook_statistics(hooks: Iterable[HookDescriptor]) -> dict[str, Any]:
    by_priority: dict[str, int] = {}
    by_family: dict[str, int] = {}
    total_timeout = 0.0
    count = 0

    for hook in hooks:
        count += 1
        by_priority[hook.priority.value] = by_priority.get(hook.priority.value, 0) + 1
        by_family[hook.family] = by_family.get(hook.family, 0) + 1
        total_timeout += hook.effective_timeout

    return {
        "total": count,
        "by_priority": by_priority,
        "by_family": by_family,
        "total_timeout": total_timeout,
        "average_timeout": round(total_timeout / count, 2) if count else 0.0,
        "blocking_behavior": {family: blocking_behavior(family) for family in by_family},
    }
