"""Claude Code session transcripts (``<config>/projects/<project>/<id>.jsonl``).

Subagent runs live beside the session in ``<id>/subagents/agent-*.jsonl``
and are spliced in with the shared placement rule.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from agentreplay.adapters.subagents import load_subagents, place_subagents
from agentreplay.model import ConversationSummary, ProjectInfo, Role, ToolCall, ToolResult, UnifiedMessage
from agentreplay.parsers.blocks import COMPLETED_PLACEHOLDER
from agentreplay.parsers.export import stringify_args
from agentreplay.parsers.extract import extract_user_content
from agentreplay.parsers.jsonl import iter_json_lines
from agentreplay.paths import claude_projects_dir, created_ms, modified_ms, read_text

logger = logging.getLogger(__name__)


def parse_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def clean_project(name: str) -> str:
    """Strip the encoded home prefix from project directory names."""
    # Projects are encoded as -home-user-path
    cleaned = re.sub(r"^-(home|Users)-[^-]+-", "", name)
    return cleaned or name


# ── Noise detection ───────────────────────────────────────────────────

def is_noise_user_content(text: str) -> bool:
    if not text:
        return True
    if text.startswith("<") and "system-reminder" in text[:80]:
        return True
    if re.match(r"^/\w+(\s+\w+)?\s*$", text):
        return True
    if "<command-name>" in text[:30]:
        return True
    if "<local-command-stdout>" in text[:30]:
        cleaned = re.sub(r"<[^>]+>", "", text).strip()
        if not cleaned:
            return True
    if "local-command-caveat" in text[:50] and len(text) < 500:
        cleaned = re.sub(r"<[^>]+>", "", text).strip()
        if not cleaned or cleaned.startswith("Caveat:"):
            return True
    return False


# ── Record ────────────────────────────────────────────────────────────

class Record:
    """Thin wrapper over a raw JSONL dict with typed property accessors."""

    __slots__ = ("raw",)

    def __init__(self, raw: dict):
        self.raw = raw

    @property
    def type(self) -> str:
        return self.raw.get("type", "")

    @property
    def timestamp(self) -> datetime | None:
        return parse_ts(self.raw.get("timestamp"))

    @property
    def timestamp_ms(self) -> float | None:
        ts = self.timestamp
        return ts.timestamp() * 1000 if ts else None

    @property
    def message(self) -> dict:
        msg = self.raw.get("message")
        return msg if isinstance(msg, dict) else {}

    @property
    def content(self) -> Any:
        return self.message.get("content")

    @property
    def is_meta(self) -> bool:
        return bool(self.raw.get("isMeta"))

    @property
    def content_text(self) -> str:
        c = self.content
        if isinstance(c, str):
            return c
        if isinstance(c, list):
            parts = []
            for block in c:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get("type") == "text":
                    parts.append(str(block.get("text", "")))
            return "\n".join(parts)
        return ""

    def blocks(self) -> list[dict]:
        c = self.content
        if isinstance(c, str):
            return [{"type": "text", "text": c}]
        if isinstance(c, list):
            return [
                {"type": "text", "text": b} if isinstance(b, str) else b
                for b in c if isinstance(b, (str, dict))
            ]
        return []


def iter_records(path: Path) -> Iterator[Record]:
    for raw in iter_json_lines(read_text(path).splitlines()):
        yield Record(raw)


def _tool_result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict) and isinstance(c.get("text"), str):
                parts.append(c["text"])
            elif isinstance(c, str):
                parts.append(c)
        return "\n".join(parts)
    return ""


def normalize_records(records: Iterator[Record]) -> list[UnifiedMessage]:
    """Flatten Claude Code records into unified messages, block by block."""
    result: list[UnifiedMessage] = []
    tool_names: dict[str, str] = {}

    for rec in records:
        if rec.type not in ("user", "assistant") or rec.is_meta:
            continue
        ts = rec.timestamp_ms
        for block in rec.blocks():
            btype = block.get("type")
            if btype == "text":
                text = block.get("text")
                if not isinstance(text, str):
                    continue
                if rec.type == "user":
                    if is_noise_user_content(text.strip()):
                        continue
                    text = extract_user_content(text)
                else:
                    text = text.strip()
                if text:
                    role = Role.USER if rec.type == "user" else Role.ASSISTANT
                    result.append(UnifiedMessage(role=role, content=text, timestamp=ts))
            elif btype == "thinking":
                text = block.get("thinking")
                text = text.strip() if isinstance(text, str) else ""
                if text:
                    result.append(UnifiedMessage(role=Role.THINKING, content=text, timestamp=ts))
            elif btype == "tool_use":
                name = block.get("name") or "tool"
                if block.get("id"):
                    tool_names[block["id"]] = name
                result.append(UnifiedMessage(
                    role=Role.TOOL_CALL,
                    content=name,
                    tool_call=ToolCall(name=name, args=stringify_args(block.get("input"))),
                    timestamp=ts,
                ))
            elif btype == "tool_result":
                output = _tool_result_text(block.get("content")) or COMPLETED_PLACEHOLDER
                result.append(UnifiedMessage(
                    role=Role.TOOL_RESULT,
                    content=output,
                    tool_result=ToolResult(name=tool_names.get(block.get("tool_use_id", ""), ""), output=output),
                    timestamp=ts,
                ))
    return result


def parse_session_file(path: Path) -> list[UnifiedMessage]:
    try:
        return normalize_records(iter_records(path))
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read session file %s: %s", path, e)
        return []


def first_user_message(records: list[Record]) -> str:
    """Extract the first real user message text."""
    for rec in records:
        if rec.type != "user" or rec.is_meta:
            continue
        text = rec.content_text.strip()
        if not text or is_noise_user_content(text):
            continue
        text = extract_user_content(text)
        if text.startswith("<"):
            text = re.sub(r"<[^>]+>", " ", text).strip()
        text = re.sub(r"\x1b\[[0-9;]*m", "", text)
        text = re.sub(r"\s+", " ", text).strip()
        if text:
            return text[:80]
    return ""


class ClaudeCodeAdapter:
    id = "claude"
    name = "Claude Code"

    def __init__(self, projects_dir: Path | None = None):
        self.projects_dir = projects_dir or claude_projects_dir()

    def list_projects(self) -> list[ProjectInfo]:
        if not self.projects_dir.is_dir():
            logger.warning("Claude Code projects directory not found: %s", self.projects_dir)
            return []
        try:
            entries = sorted(self.projects_dir.iterdir())
        except OSError as e:
            logger.error("Failed to list Claude Code projects in %s: %s", self.projects_dir, e)
            return []
        projects = [
            ProjectInfo(id=entry.name, name=clean_project(entry.name), path=entry.name)
            for entry in entries
            if entry.is_dir() and any(entry.glob("*.jsonl"))
        ]
        projects.sort(key=lambda p: p.name)
        return projects

    def list_conversations(self, project_id: str | None = None) -> list[ConversationSummary]:
        if not project_id:
            return []
        project_dir = self.projects_dir / project_id
        try:
            files = sorted(f for f in project_dir.iterdir() if f.suffix == ".jsonl" and f.is_file())
        except OSError as e:
            logger.warning("Could not read project directory %s: %s", project_dir, e)
            return []

        conversations = []
        for path in files:
            try:
                records = list(iter_records(path))
                created, updated = created_ms(path), modified_ms(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Skipping unreadable session %s: %s", path, e)
                continue
            count = sum(1 for r in records if r.type in ("user", "assistant"))
            if count == 0:
                continue
            stamps = [r.timestamp_ms for r in records if r.timestamp_ms is not None]
            conversations.append(ConversationSummary(
                id=path.stem,
                title=first_user_message(records) or path.stem,
                source_id=self.id,
                project_id=project_id,
                project_name=clean_project(project_id),
                created_at=stamps[0] if stamps else created,
                updated_at=stamps[-1] if stamps else updated,
                message_count=count,
            ))

        conversations.sort(key=lambda c: c.updated_at or 0, reverse=True)
        return conversations

    def load_conversation(self, conversation_id: str,
                          project_id: str | None = None) -> list[UnifiedMessage]:
        if not project_id:
            return []
        project_dir = self.projects_dir / project_id
        path = project_dir / f"{conversation_id}.jsonl"
        if not path.is_file():
            logger.warning("No session file found for %s in %s", conversation_id, project_dir)
            return []
        messages = parse_session_file(path)

        sub_dir = project_dir / conversation_id / "subagents"
        if sub_dir.is_dir():
            try:
                files = sorted(f for f in sub_dir.iterdir() if f.suffix == ".jsonl")
            except OSError as e:
                logger.warning("Could not read subagents directory %s: %s", sub_dir, e)
                files = []
            subagents = load_subagents(
                files, parse_session_file,
                id_for=lambda p: p.stem.removeprefix("agent-"),
            )
            if subagents:
                messages = place_subagents(messages, subagents)
        return messages
