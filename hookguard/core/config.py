"""Pipeline configuration.

Configuration is resolved once at startup and passed explicitly into the
pipeline. Precedence: CLI > environment > config file > defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
import os
from pathlib import Path
import re
import tomllib
from typing import Any

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

PIPELINE_CONFIG_FILENAMES = ("pipeline.toml", "pipeline.json")
DEFAULT_CONFIG_DIR = Path.home() / ".hookguard"

# HOOK_<FOLDER>=true|false toggles hooks living under .../hooks/<folder>/
FOLDER_ENV_PREFIX = "HOOK_"
_RESERVED_HOOK_VARS = {"HOOK_VERBOSE", "HOOK_DEVELOPMENT"}
_HOOK_FOLDER_RE = re.compile(r"hooks/([^/\s]+)/")


def folder_env_key(folder: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", folder).upper()


def hook_folder(command: str) -> str | None:
    match = _HOOK_FOLDER_RE.search(command)
    return match.group(1) if match else None


class PipelineConfig(BaseModel):
    """Configuration for the hook pipeline."""

    enabled: bool = Field(default=True, description="Run hooks at all")

    testing_mode: bool = Field(
        default=False, description="Bypass all hooks (testing mode)"
    )

    development_mode: bool = Field(
        default=False, description="Bypass all hooks (hook development mode)"
    )

    verbose: bool = Field(
        default=False, description="Report progress and errors on stderr"
    )

    hooks_config_path: str = Field(
        default=".claude/hooks-config.json",
        description="Registry file listing hooks per phase and matcher",
    )

    backup_config_path: str | None = Field(
        default=".claude/settings.json.backup",
        description="Registry used by the emergency executor when present",
    )

    default_phase: str = Field(default="PreToolUse")

    default_tool_matcher: str = Field(default="Write|Edit|MultiEdit")

    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Upper bound on hooks running at once within a batch",
    )

    disabled_families: list[str] = Field(
        default_factory=list, description="Hook families never run"
    )

    folder_toggles: dict[str, bool] = Field(
        default_factory=dict,
        description="Per hook folder enable flags keyed by HOOK_<FOLDER> suffix",
    )

    @property
    def bypass_all(self) -> bool:
        return not self.enabled or self.testing_mode or self.development_mode

    @property
    def bypass_reason(self) -> str:
        if self.testing_mode:
            return "HOOKS_TESTING_MODE=true"
        if self.development_mode:
            return "HOOK_DEVELOPMENT=true"
        if not self.enabled:
            return "pipeline disabled"
        return "unknown"

    def hook_enabled(self, command: str, family: str) -> bool:
        """Whether a hook survives the family and folder toggles."""
        if family in self.disabled_families:
            return False
        folder = hook_folder(command)
        if folder is None:
            return True
        return self.folder_toggles.get(folder_env_key(folder), True)


class EnvironSettingsSource(EnvSettingsSource):
    """Environment source reading an explicit mapping instead of os.environ."""

    def __init__(
        self, settings_cls: type[BaseSettings], environ: Mapping[str, str]
    ) -> None:
        self.environ = environ
        super().__init__(settings_cls)

    def _load_env_vars(self) -> Mapping[str, str | None]:
        if self.case_sensitive:
            return dict(self.environ)
        return {name.lower(): value for name, value in self.environ.items()}


class PipelineSettings(BaseSettings):
    """Settings loaded from environment variables.

    Values come only from the mapping given to ``from_environ``. A ``.env``
    file belongs to the project the hooks are guarding, so it never
    configures the pipeline.
    """

    model_config = SettingsConfigDict(env_prefix="HOOKGUARD_", extra="ignore")

    enabled: bool | None = Field(
        default=None, description="Run hooks (HOOKGUARD_ENABLED)"
    )

    testing_mode: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("HOOKGUARD_TESTING_MODE", "HOOKS_TESTING_MODE"),
    )

    development_mode: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("HOOKGUARD_DEVELOPMENT_MODE", "HOOK_DEVELOPMENT"),
    )

    verbose: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("HOOKGUARD_VERBOSE", "HOOK_VERBOSE"),
    )

    hooks_config_path: str | None = Field(
        default=None, description="Registry path (HOOKGUARD_HOOKS_CONFIG_PATH)"
    )

    backup_config_path: str | None = Field(
        default=None, description="Backup registry (HOOKGUARD_BACKUP_CONFIG_PATH)"
    )

    max_concurrency: int | None = Field(
        default=None, description="Concurrency bound (HOOKGUARD_MAX_CONCURRENCY)"
    )

    disabled_families: list[str] | None = Field(
        default=None,
        description="JSON list of families (HOOKGUARD_DISABLED_FAMILIES)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> PipelineSettings:
        return cls(**EnvironSettingsSource(cls, environ)())


def _load_config_file(path: Path) -> dict[str, Any]:
    """Load the [pipeline] table from a TOML or JSON config file"""
    if not path.exists():
        return {}

    if path.suffix == ".toml":
        with path.open("rb") as handle:
            return tomllib.load(handle).get("pipeline", {})

    if path.suffix == ".json":
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return data.get("pipeline", {}) if isinstance(data, dict) else {}

    logger.warning("Unsupported pipeline config format: %s", path)
    return {}


def _collect_folder_toggles(environ: Mapping[str, str]) -> dict[str, bool]:
    toggles: dict[str, bool] = {}
    for name, value in environ.items():
        if not name.startswith(FOLDER_ENV_PREFIX) or name in _RESERVED_HOOK_VARS:
            continue
        lowered = value.strip().lower()
        if lowered in {"true", "false"}:
            toggles[name[len(FOLDER_ENV_PREFIX):]] = lowered == "true"
    return toggles


def _apply_overrides(
    config: PipelineConfig, overrides: Mapping[str, Any] | None
) -> PipelineConfig:
    if not overrides:
        return config
    values = config.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PipelineConfig.model_validate(values)


def load_config(
    *,
    cli_overrides: dict[str, Any] | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Load configuration following priority: CLI > env > config file > defaults"""

    selected_path = config_path
    if selected_path is None:
        for candidate in PIPELINE_CONFIG_FILENAMES:
            candidate_path = DEFAULT_CONFIG_DIR / candidate
            if candidate_path.exists():
                selected_path = candidate_path
                break

    file_values: dict[str, Any] = {}
    if selected_path:
        file_values = _load_config_file(selected_path)

    config = PipelineConfig(**file_values)

    if environ is None:
        environ = os.environ
    env_overrides = PipelineSettings.from_environ(environ).model_dump(exclude_none=True)
    env_toggles = _collect_folder_toggles(environ)
    if env_toggles:
        env_overrides["folder_toggles"] = {**config.folder_toggles, **env_toggles}

    config = _apply_overrides(config, env_overrides)
    return _apply_overrides(config, cli_overrides)
