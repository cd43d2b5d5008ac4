"""Hook input adapter.

The orchestrator sends an envelope such as::

    {"session_id": "...", "tool_name": "Write",
     "tool_input": {"file_path": "src/app.ts", "content": "..."}}

while tests and older hooks use the flat shape ``{"file_path": ..., ...}``.
Both are normalized here into one ``OperationPayload``.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import Any

from pydantic import ValidationError

from hookguard.core.hooks.types import OperationPayload

logger = logging.getLogger(__name__)

ENVELOPE_CONTEXT_KEYS = ("tool_name", "session_id", "cwd")


def _decode(raw: str | bytes | Mapping[str, Any] | None) -> Any:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw.strip()
    if not text:
        return {}
    return json.loads(text)


def normalize(raw: str | bytes | Mapping[str, Any] | None) -> OperationPayload:
    """Normalize raw hook input into an ``OperationPayload``.

    Never raises. Anything that cannot be understood yields an empty payload,
    which downstream treats as "nothing to validate".
    """
    try:
        data = _decode(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.debug(f"Hook input is not valid JSON, using empty payload: {e}")
        return OperationPayload()

    if not isinstance(data, dict):
        logger.debug(f"Hook input is not a JSON object: {type(data).__name__}")
        return OperationPayload()

    if "tool_input" in data:
        tool_input = data["tool_input"]
        if not isinstance(tool_input, dict):
            logger.debug("Envelope tool_input is not an object, using empty payload")
            return OperationPayload()
        fields = dict(tool_input)
        for key in ENVELOPE_CONTEXT_KEYS:
            if data.get(key) is not None:
                fields[key] = data[key]
    else:
        fields = data

    try:
        return OperationPayload.model_validate(fields)
    except ValidationError as e:
        logger.debug(f"Hook input failed validation, using empty payload: {e}")
        return OperationPayload()
