"""Structured-export parser: JSON arrays of conversation turns.

Two shapes are understood, tried in order:

* parts shape (Gemini API history): ``[{"role": "model", "parts": [...]}]``
* content shape (already unified): ``[{"role": "assistant", "content": "..."}]``

Anything else raises ``UnrecognizedFormatError`` so callers can tell an
unknown file apart from an empty conversation.
"""
from __future__ import annotations

import json
from typing import Any, Callable

from agentreplay.errors import UnrecognizedFormatError
from agentreplay.model import Role, ToolCall, ToolResult, UnifiedMessage


def stringify_arg(value: Any) -> str:
    """Coerce a tool argument to the string form shown on tool-call cards."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def stringify_args(args: Any) -> dict[str, str]:
    if not isinstance(args, dict):
        return {}
    return {str(k): stringify_arg(v) for k, v in args.items()}


# ── Shape decoders ────────────────────────────────────────────────────

def _decode_parts(items: list) -> list[UnifiedMessage] | None:
    if not all(isinstance(i, dict) and "role" in i and isinstance(i.get("parts"), list) for i in items):
        return None
    result: list[UnifiedMessage] = []
    for item in items:
        text_role = Role.ASSISTANT if item["role"] == "model" else Role.USER
        for part in item["parts"]:
            if not isinstance(part, dict):
                continue
            call = part.get("functionCall")
            response = part.get("functionResponse")
            if isinstance(call, dict):
                name = str(call.get("name", ""))
                result.append(UnifiedMessage(
                    role=Role.TOOL_CALL,
                    content=name,
                    tool_call=ToolCall(name=name, args=stringify_args(call.get("args"))),
                ))
            elif isinstance(response, dict):
                body = response.get("response")
                output = body.get("output", "") if isinstance(body, dict) else ""
                output = output if isinstance(output, str) else stringify_arg(output)
                result.append(UnifiedMessage(
                    role=Role.TOOL_RESULT,
                    content=output,
                    tool_result=ToolResult(name=str(response.get("name", "")), output=output),
                ))
            elif part.get("text"):
                result.append(UnifiedMessage(role=text_role, content=str(part["text"])))
    return result


def _decode_content(items: list) -> list[UnifiedMessage] | None:
    if not all(isinstance(i, dict) and "role" in i and isinstance(i.get("content"), str) for i in items):
        return None
    try:
        return [UnifiedMessage.from_dict(i) for i in items]
    except (ValueError, KeyError, AttributeError, TypeError):
        return None


DECODERS: tuple[Callable[[list], list[UnifiedMessage] | None], ...] = (
    _decode_parts,
    _decode_content,
)


def parse_export(data: Any) -> list[UnifiedMessage]:
    if not isinstance(data, list):
        raise UnrecognizedFormatError("Unrecognized conversation format: expected a JSON array")
    if not data:
        return []
    for decode in DECODERS:
        messages = decode(data)
        if messages is not None:
            return messages
    raise UnrecognizedFormatError("Unrecognized conversation format")


def parse_export_text(text: str) -> list[UnifiedMessage]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise UnrecognizedFormatError(f"Invalid JSON: {e}") from e
    return parse_export(data)
