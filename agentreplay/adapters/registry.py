"""Registry of transcript sources, keyed by adapter id."""
from __future__ import annotations

from pathlib import Path

from agentreplay.adapters.base import SourceAdapter
from agentreplay.adapters.claude import ClaudeCodeAdapter
from agentreplay.adapters.cursor import CursorAdapter
from agentreplay.adapters.gemini import GeminiAdapter
from agentreplay.adapters.samples import SamplesAdapter


class AdapterRegistry:
    def __init__(self, adapters: list[SourceAdapter] | None = None):
        self._adapters: dict[str, SourceAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    @classmethod
    def default(cls, project_root: Path | None = None) -> AdapterRegistry:
        """All built-in sources at their standard locations."""
        return cls([
            SamplesAdapter(project_root=project_root),
            CursorAdapter(),
            GeminiAdapter(),
            ClaudeCodeAdapter(),
        ])

    def register(self, adapter: SourceAdapter) -> None:
        self._adapters[adapter.id] = adapter

    def get(self, source_id: str) -> SourceAdapter | None:
        return self._adapters.get(source_id)

    def sources(self) -> list[dict]:
        return [{"id": a.id, "name": a.name} for a in self._adapters.values()]
