"""Line-delimited event-log parser (Cursor ``agent-transcripts/*.jsonl``)."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator

from agentreplay.model import Role, UnifiedMessage
from agentreplay.parsers.extract import extract_user_content
from agentreplay.paths import read_text

logger = logging.getLogger(__name__)


def iter_json_lines(lines: Iterable[str]) -> Iterator[dict]:
    """Yield parsed JSON objects, skipping blank and malformed lines."""
    for lineno, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        try:
            rec = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSONL line %d", lineno)
            continue
        if isinstance(rec, dict):
            yield rec


def _text_blocks(rec: dict) -> list[str]:
    message = rec.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [
        block["text"] for block in content
        if isinstance(block, dict) and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    ]


def parse_jsonl(text: str) -> list[UnifiedMessage]:
    """Parse an event log into unified messages, one per record with text."""
    messages: list[UnifiedMessage] = []
    for rec in iter_json_lines(text.splitlines()):
        role = Role.ASSISTANT if rec.get("role") == "assistant" else Role.USER
        parts = _text_blocks(rec)
        if not parts:
            continue
        body = "\n".join(parts)
        if role is Role.USER:
            body = extract_user_content(body)
        if body.strip():
            messages.append(UnifiedMessage(role=role, content=body))
    return messages


def parse_jsonl_file(path: Path) -> list[UnifiedMessage]:
    try:
        text = read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read JSONL file %s: %s", path, e)
        return []
    return parse_jsonl(text)
