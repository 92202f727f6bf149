"""Bundled sample conversations: a flat directory of structured-export files."""
from __future__ import annotations

import logging
import re
from pathlib import Path

from agentreplay.errors import UnrecognizedFormatError
from agentreplay.model import ConversationSummary, ProjectInfo, UnifiedMessage
from agentreplay.parsers.export import parse_export_text
from agentreplay.paths import created_ms, modified_ms, read_text, samples_dir

logger = logging.getLogger(__name__)

PROJECT_ID = "samples"
PROJECT_NAME = "Samples"


def format_title(stem: str) -> str:
    """``debug-session_two`` -> ``Debug Session Two``."""
    spaced = re.sub(r"[-_]", " ", stem)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


class SamplesAdapter:
    id = "samples"
    name = "Sample Conversations"

    def __init__(self, directory: Path | None = None, project_root: Path | None = None):
        self.directory = directory or samples_dir(project_root)

    def list_projects(self) -> list[ProjectInfo]:
        if not self.directory.is_dir():
            logger.warning("Samples directory not found: %s", self.directory)
            return []
        return [ProjectInfo(id=PROJECT_ID, name=PROJECT_NAME)]

    def list_conversations(self, project_id: str | None = None) -> list[ConversationSummary]:
        try:
            files = sorted(f for f in self.directory.iterdir() if f.suffix == ".json")
        except OSError as e:
            logger.warning("Could not read samples directory %s: %s", self.directory, e)
            return []

        conversations = []
        for path in files:
            try:
                created, updated = created_ms(path), modified_ms(path)
            except OSError:
                continue
            conversations.append(ConversationSummary(
                id=path.stem,
                title=format_title(path.stem),
                source_id=self.id,
                project_id=PROJECT_ID,
                project_name=PROJECT_NAME,
                created_at=created,
                updated_at=updated,
            ))

        conversations.sort(key=lambda c: c.title)
        return conversations

    def load_conversation(self, conversation_id: str,
                          project_id: str | None = None) -> list[UnifiedMessage]:
        path = self.directory / f"{conversation_id}.json"
        try:
            text = read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read sample %s: %s", path, e)
            return []
        try:
            return parse_export_text(text)
        except UnrecognizedFormatError as e:
            logger.warning("Skipping sample %s: %s", path, e)
            return []
