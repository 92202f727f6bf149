"""Gemini CLI session files (``~/.gemini/tmp/<project-hash>/chats/*.json``)."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from agentreplay.model import ConversationSummary, ProjectInfo, Role, ToolCall, ToolResult, UnifiedMessage
from agentreplay.parsers.blocks import COMPLETED_PLACEHOLDER
from agentreplay.parsers.export import stringify_arg, stringify_args
from agentreplay.paths import created_ms, gemini_tmp_dir, modified_ms, read_text, truncate_title

logger = logging.getLogger(__name__)


def _iso_to_ms(value: Any) -> float | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000
    except ValueError:
        return None


def _text_from_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for block in content:
            if isinstance(block, dict) and isinstance(block.get("text"), str):
                texts.append(block["text"])
        return "\n".join(texts)
    return ""


def normalize_session(session: dict) -> list[UnifiedMessage]:
    """Map a Gemini CLI session document onto unified messages."""
    result: list[UnifiedMessage] = []
    messages = session.get("messages")
    if not isinstance(messages, list):
        return result
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        ts = _iso_to_ms(msg.get("timestamp"))
        mtype = msg.get("type")
        content = _text_from_content(msg.get("content"))

        if mtype == "user":
            if content:
                result.append(UnifiedMessage(role=Role.USER, content=content, timestamp=ts))

        elif mtype == "gemini":
            thoughts = msg.get("thoughts")
            for thought in thoughts if isinstance(thoughts, list) else []:
                if not isinstance(thought, dict):
                    continue
                text = thought.get("description") or thought.get("subject")
                if text:
                    result.append(UnifiedMessage(role=Role.THINKING, content=str(text), timestamp=ts))
            if content:
                result.append(UnifiedMessage(role=Role.ASSISTANT, content=content, timestamp=ts))

        elif mtype == "tool_use":
            name = str(msg.get("toolName") or content or "tool")
            result.append(UnifiedMessage(
                role=Role.TOOL_CALL,
                content=name,
                tool_call=ToolCall(name=name, args=stringify_args(msg.get("args"))),
                timestamp=ts,
            ))

        elif mtype == "tool_result":
            output = msg.get("output") or content or COMPLETED_PLACEHOLDER
            if not isinstance(output, str):
                output = stringify_arg(output)
            result.append(UnifiedMessage(
                role=Role.TOOL_RESULT,
                content=output,
                tool_result=ToolResult(name=str(msg.get("toolName") or ""), output=output),
                timestamp=ts,
            ))

        # "error" and unknown types are not replayed
    return result


class GeminiAdapter:
    id = "gemini"
    name = "Gemini CLI"

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or gemini_tmp_dir()

    def list_projects(self) -> list[ProjectInfo]:
        if not self.base_dir.is_dir():
            logger.warning("Gemini CLI directory not found: %s", self.base_dir)
            return []
        try:
            entries = sorted(self.base_dir.iterdir())
        except OSError as e:
            logger.error("Failed to list Gemini projects in %s: %s", self.base_dir, e)
            return []
        projects = [
            ProjectInfo(id=entry.name, name=f"{entry.name[:8]}...", path=entry.name)
            for entry in entries
            if entry.name != "bin" and (entry / "chats").is_dir()
        ]
        projects.sort(key=lambda p: p.name)
        return projects

    def _read_session(self, path: Path) -> dict:
        data = json.loads(read_text(path))
        if not isinstance(data, dict):
            raise ValueError(f"Not a Gemini session document: {path}")
        if not isinstance(data.get("messages", []), list):
            raise ValueError(f"Session messages are not a list: {path}")
        return data

    def list_conversations(self, project_id: str | None = None) -> list[ConversationSummary]:
        if not project_id:
            return []
        chats_dir = self.base_dir / project_id / "chats"
        try:
            files = sorted(f for f in chats_dir.iterdir() if f.suffix == ".json")
        except OSError as e:
            logger.warning("Could not read chats directory %s: %s", chats_dir, e)
            return []

        conversations = []
        for path in files:
            try:
                session = self._read_session(path)
                created, updated = created_ms(path), modified_ms(path)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.debug("Skipping unreadable session file %s: %s", path, e)
                continue
            messages = [m for m in session.get("messages") or [] if isinstance(m, dict)]
            first_user = next((m for m in messages if m.get("type") == "user"), None)
            first_text = _text_from_content(first_user.get("content")) if first_user else ""
            conversations.append(ConversationSummary(
                id=path.stem,
                title=truncate_title(first_text) if first_text else path.stem,
                source_id=self.id,
                project_id=project_id,
                created_at=_iso_to_ms(session.get("startTime")) or created,
                updated_at=_iso_to_ms(session.get("lastUpdated")) or updated,
                message_count=len(messages),
            ))

        conversations.sort(key=lambda c: c.updated_at or 0, reverse=True)
        return conversations

    def load_conversation(self, conversation_id: str,
                          project_id: str | None = None) -> list[UnifiedMessage]:
        if not project_id:
            return []
        path = self.base_dir / project_id / "chats" / f"{conversation_id}.json"
        try:
            session = self._read_session(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read session file %s: %s", path, e)
            return []
        except ValueError as e:
            logger.error("Failed to parse session %s: %s", path, e)
            return []
        return normalize_session(session)
