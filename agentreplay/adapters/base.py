"""
Source adapter protocol.

Every transcript origin (Cursor, Gemini CLI, Claude Code, bundled samples)
is exposed through the same three operations so the registry and the API
can treat them uniformly.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from agentreplay.model import ConversationSummary, ProjectInfo, UnifiedMessage


@runtime_checkable
class SourceAdapter(Protocol):
    """
    Protocol for transcript sources.

    Implementations must never raise for missing or unreadable storage:
    listing operations degrade to an empty list and ``load_conversation``
    to an empty message list, logging a diagnostic instead.
    """

    id: str
    name: str

    def list_projects(self) -> list[ProjectInfo]:
        """
        Discover the logical groupings of conversations on disk.

        Returns:
            Projects sorted by display name; empty when the root is missing
        """
        ...

    def list_conversations(self, project_id: str | None = None) -> list[ConversationSummary]:
        """
        Summarize the transcripts in a project.

        Args:
            project_id: Project to list; sources with a single synthetic
                project may ignore it

        Returns:
            Summaries with best-effort titles and timestamps
        """
        ...

    def load_conversation(self, conversation_id: str,
                          project_id: str | None = None) -> list[UnifiedMessage]:
        """
        Load one transcript as unified messages.

        Args:
            conversation_id: Conversation identifier from ``list_conversations``
            project_id: Owning project

        Returns:
            Messages in recorded order, subagents spliced in; empty if nothing
            parseable was found
        """
        ...
