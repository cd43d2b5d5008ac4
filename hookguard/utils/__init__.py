"""Reusable utilities.

- async_helpers: bounded concurrent execution
"""

from __future__ import annotations

from hookguard.utils.async_helpers import batch_execute

__all__ = ["batch_execute"]
