"""hookguard: parallel execution engine for file-operation hooks."""

from __future__ import annotations

__version__ = "0.1.0"
