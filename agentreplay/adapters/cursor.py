"""Cursor IDE agent transcripts.

Layout::

    ~/.cursor/projects/<slug>/agent-transcripts/
        <id>.txt                         block transcript
        <id>/<id>.jsonl                  event log (preferred)
        <id>/subagents/<sub-id>.jsonl    subagent event logs

Conversation titles and exact times live in Cursor's workspace state
database (``workspaceStorage/<hash>/state.vscdb``); reading it is
best-effort.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from urllib.parse import unquote

from agentreplay.adapters.subagents import load_subagents, place_subagents
from agentreplay.model import ConversationSummary, ProjectInfo, SubagentConversation, UnifiedMessage
from agentreplay.parsers.blocks import parse_blocks_file
from agentreplay.parsers.jsonl import parse_jsonl_file
from agentreplay.paths import created_ms, cursor_projects_dir, cursor_workspace_storage_dir, modified_ms, short_id

logger = logging.getLogger(__name__)

TRANSCRIPTS_DIRNAME = "agent-transcripts"
COMPOSER_KEY = "composer.composerData"


def slug_to_display_name(slug: str) -> str:
    """``Users-me-Code-my-app`` -> ``my-app``; otherwise the last three parts."""
    parts = slug.split("-")
    if "Code" in parts:
        idx = parts.index("Code")
        if idx < len(parts) - 1:
            return "-".join(parts[idx + 1:])
    return "-".join(parts[-3:])


def path_to_slug(fs_path: str) -> str:
    slug = "".join("-" if c in "/\\_. " else c for c in fs_path)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.removeprefix("-")


def _timestamp(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class ConversationMeta:
    __slots__ = ("name", "created_at", "updated_at")

    def __init__(self, name: str, created_at: float | None, updated_at: float | None):
        self.name = name
        self.created_at = created_at
        self.updated_at = updated_at


class CursorAdapter:
    id = "cursor"
    name = "Cursor IDE"

    def __init__(self, projects_dir: Path | None = None, workspace_storage_dir: Path | None = None):
        self.projects_dir = projects_dir or cursor_projects_dir()
        self.workspace_storage_dir = workspace_storage_dir or cursor_workspace_storage_dir()

    def _transcripts_dir(self, project_id: str) -> Path:
        return self.projects_dir / project_id / TRANSCRIPTS_DIRNAME

    # ── Projects ──────────────────────────────────────────────────────

    def list_projects(self) -> list[ProjectInfo]:
        if not self.projects_dir.is_dir():
            logger.warning("Cursor projects directory not found: %s", self.projects_dir)
            return []
        try:
            entries = sorted(self.projects_dir.iterdir())
        except OSError as e:
            logger.error("Failed to list Cursor projects in %s: %s", self.projects_dir, e)
            return []
        projects = [
            ProjectInfo(id=entry.name, name=slug_to_display_name(entry.name), path=entry.name)
            for entry in entries
            if (entry / TRANSCRIPTS_DIRNAME).is_dir()
        ]
        projects.sort(key=lambda p: p.name)
        return projects

    # ── Conversations ─────────────────────────────────────────────────

    def list_conversations(self, project_id: str | None = None) -> list[ConversationSummary]:
        if not project_id:
            return []
        transcripts_dir = self._transcripts_dir(project_id)
        try:
            metadata = self.conversation_metadata(project_id)
        except (OSError, sqlite3.Error, ValueError) as e:
            logger.warning("Could not load metadata for %s, continuing without titles: %s", project_id, e)
            metadata = {}

        try:
            entries = sorted(transcripts_dir.iterdir())
        except OSError as e:
            logger.warning("Could not read transcripts directory %s: %s", transcripts_dir, e)
            return []

        conversations = []
        for entry in entries:
            try:
                if entry.is_dir():
                    conv_id = entry.name
                    path = entry / f"{conv_id}.jsonl"
                elif entry.suffix == ".txt":
                    conv_id = entry.stem
                    path = entry
                else:
                    continue
                created, updated = created_ms(path), modified_ms(path)
            except OSError:
                # Individual conversation not accessible
                continue
            meta = metadata.get(conv_id)
            conversations.append(ConversationSummary(
                id=conv_id,
                title=(meta.name if meta and meta.name else f"{short_id(conv_id)}..."),
                source_id=self.id,
                project_id=project_id,
                project_name=slug_to_display_name(project_id),
                created_at=(meta.created_at if meta and meta.created_at else created),
                updated_at=(meta.updated_at if meta and meta.updated_at else updated),
            ))

        conversations.sort(key=lambda c: c.updated_at or 0, reverse=True)
        return conversations

    def load_conversation(self, conversation_id: str,
                          project_id: str | None = None) -> list[UnifiedMessage]:
        if not project_id:
            return []
        transcripts_dir = self._transcripts_dir(project_id)
        jsonl_path = transcripts_dir / conversation_id / f"{conversation_id}.jsonl"
        txt_path = transcripts_dir / f"{conversation_id}.txt"

        if jsonl_path.is_file():
            messages = parse_jsonl_file(jsonl_path)
        elif txt_path.is_file():
            messages = parse_blocks_file(txt_path)
        else:
            logger.warning("No readable transcript found for %s in %s", conversation_id, transcripts_dir)
            return []

        subagents = self.subagents(transcripts_dir, conversation_id)
        if subagents:
            messages = place_subagents(messages, subagents)
        return messages

    def subagents(self, transcripts_dir: Path, conversation_id: str) -> list[SubagentConversation]:
        sub_dir = transcripts_dir / conversation_id / "subagents"
        if not sub_dir.is_dir():
            return []
        try:
            files = sorted(f for f in sub_dir.iterdir() if f.suffix == ".jsonl")
        except OSError as e:
            logger.warning("Could not read subagents directory %s: %s", sub_dir, e)
            return []
        return load_subagents(files, parse_jsonl_file)

    # ── Metadata ──────────────────────────────────────────────────────

    def conversation_metadata(self, project_id: str) -> dict[str, ConversationMeta]:
        """Titles and times from the workspace database, or ``{}`` on any failure."""
        workspace_hash = self.find_workspace_hash(project_id)
        if not workspace_hash:
            return {}

        db_path = self.workspace_storage_dir / workspace_hash / "state.vscdb"
        if not db_path.is_file():
            logger.warning("Workspace database not found: %s", db_path)
            return {}

        try:
            with closing(sqlite3.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True, timeout=5)) as db:
                row = db.execute(
                    "SELECT value FROM ItemTable WHERE key = ?", (COMPOSER_KEY,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Could not read metadata from %s: %s", db_path, e)
            return {}
        if not row:
            return {}

        try:
            raw = row[0].decode("utf-8") if isinstance(row[0], bytes) else row[0]
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
            logger.warning("Malformed composer metadata in %s: %s", db_path, e)
            return {}

        metadata: dict[str, ConversationMeta] = {}
        composers = data.get("allComposers") if isinstance(data, dict) else None
        if not isinstance(composers, list):
            return {}
        for composer in composers:
            if not isinstance(composer, dict):
                continue
            cid = composer.get("composerId")
            if not isinstance(cid, str) or not cid:
                continue
            name = composer.get("name")
            metadata[cid] = ConversationMeta(
                name=name if isinstance(name, str) and name else cid,
                created_at=_timestamp(composer.get("createdAt")),
                updated_at=_timestamp(composer.get("lastUpdatedAt")),
            )
        return metadata

    def find_workspace_hash(self, project_id: str) -> str | None:
        """Match a project slug against each workspace's ``folder`` URI."""
        try:
            entries = sorted(self.workspace_storage_dir.iterdir())
        except OSError:
            return None
        for entry in entries:
            try:
                with open(entry / "workspace.json", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError):
                continue
            folder = data.get("folder", "") if isinstance(data, dict) else ""
            if not isinstance(folder, str) or not folder:
                continue
            folder_path = unquote(folder.removeprefix("file://"))
            if path_to_slug(folder_path) == project_id:
                return entry.name
        return None
