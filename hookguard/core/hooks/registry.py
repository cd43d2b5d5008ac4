"""Hook registry.

Loads hook descriptors from a settings-style file::

    {
      "hooks": {
        "PreToolUse": [
          {
            "matcher": "Write|Edit|MultiEdit",
            "hooks": [
              {"type": "command", "command": "node tools/hooks/security/scan.js",
               "timeout": 4, "priority": "high", "family": "security"}
            ]
          }
        ]
      }
    }

TOML files use the same layout (``[[hooks.PreToolUse]]`` tables).
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
import re
import tomllib

from pydantic import ValidationError

from hookguard.core.hooks.types import (
    HookDescriptor,
    HookMatcherGroup,
    HookRegistryError,
    HooksRegistryConfig,
)

logger = logging.getLogger(__name__)


def _split_tools(matcher: str) -> set[str]:
    return {tool.strip() for tool in matcher.split("|") if tool.strip()}


def matchers_overlap(group_matcher: str, tool_matcher: str) -> bool:
    """Whether a group registered for ``group_matcher`` applies to ``tool_matcher``."""
    group_tools = _split_tools(group_matcher)
    current_tools = _split_tools(tool_matcher)
    if "*" in group_tools or "*" in current_tools:
        return True
    return bool(group_tools & current_tools)


_matcher_cache: dict[str, re.Pattern[str]] = {}


def _get_matcher_pattern(matcher: str) -> re.Pattern[str]:
    """Compile and cache a matcher pattern."""
    if matcher not in _matcher_cache:
        if matcher == "*":
            pattern = re.compile(r".*")
        else:
            try:
                pattern = re.compile(rf"(?:{matcher})\Z", re.IGNORECASE)
            except re.error:
                logger.warning(f"Invalid matcher pattern: {matcher}")
                pattern = re.compile(re.escape(matcher), re.IGNORECASE)
        _matcher_cache[matcher] = pattern
    return _matcher_cache[matcher]


def filter_hooks_by_tool(
    hooks: list[HookDescriptor], tool_name: str | None
) -> list[HookDescriptor]:
    """Keep hooks whose matcher accepts ``tool_name``.

    Without a tool name (flat test payloads) every hook applies.
    """
    if not tool_name:
        return list(hooks)
    return [hook for hook in hooks if _get_matcher_pattern(hook.matcher).match(tool_name)]


@dataclass
class HookRegistry:
    """Hook descriptors grouped by lifecycle phase."""

    groups: dict[str, list[HookMatcherGroup]] = field(default_factory=dict)
    source: str | None = None

    @classmethod
    def load(cls, path: str | Path) -> HookRegistry:
        """Load a registry file.

        A missing file yields an empty registry. A file that cannot be parsed
        raises ``HookRegistryError``.
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"Hooks configuration file not found: {path}")
            return cls(source=str(path))

        try:
            if path.suffix == ".toml":
                with path.open("rb") as handle:
                    data = tomllib.load(handle)
            else:
                with path.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
        except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise HookRegistryError(str(path), str(e)) from e

        return cls.from_data(data, source=str(path))

    @classmethod
    def from_data(cls, data: object, source: str | None = None) -> HookRegistry:
        if not isinstance(data, dict):
            raise HookRegistryError(source or "<memory>", "top level must be an object")
        try:
            config = HooksRegistryConfig.model_validate(data)
        except ValidationError as e:
            raise HookRegistryError(source or "<memory>", str(e)) from e
        return cls(groups=config.hooks, source=source)

    def hooks_for(self, phase: str, tool_matcher: str = "*") -> list[HookDescriptor]:
        """Descriptors registered for ``phase`` whose group matches ``tool_matcher``.

        Invalid entries are logged and skipped.
        """
        hooks: list[HookDescriptor] = []
        for group in self.groups.get(phase, []):
            if not matchers_overlap(group.matcher, tool_matcher):
                continue
            for entry in group.hooks:
                try:
                    hooks.append(
                        HookDescriptor.model_validate({"matcher": group.matcher, **entry})
                    )
                except ValidationError as e:
                    logger.warning(f"Skipping invalid hook entry {entry!r}: {e}")
        return hooks

    def all_hooks(self) -> list[HookDescriptor]:
        return [hook for phase in self.groups for hook in self.hooks_for(phase)]
