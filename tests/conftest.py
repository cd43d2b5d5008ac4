from __future__ import annotations

from collections.abc import Callable
import os
from pathlib import Path
import shlex

import pytest

_TOGGLE_PREFIXES = ("HOOKGUARD_", "HOOK_")
_TOGGLE_NAMES = {"HOOKS_TESTING_MODE"}


@pytest.fixture(autouse=True)
def _isolated_hook_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep toggles from the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith(_TOGGLE_PREFIXES) or name in _TOGGLE_NAMES:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def hook_script(tmp_path: Path) -> Callable[..., str]:
    """Write a /bin/sh hook script into tmp_path and return its command line."""

    def _write(body: str, name: str = "hook.sh") -> str:
        script = tmp_path / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(0o755)
        return shlex.quote(str(script))

    return _write
