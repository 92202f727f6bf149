"""Read-only query surface over the adapter registry.

Every call returns an ``ApiResponse`` whose body is plain JSON-ready data,
so a web layer (or the CLI) can hand it straight to a serializer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from agentreplay.adapters.base import SourceAdapter
from agentreplay.adapters.registry import AdapterRegistry

logger = logging.getLogger(__name__)

NOT_FOUND = {"error": "Not found"}


@dataclass
class ApiResponse:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return self.status == 200


class ReplayAPI:
    def __init__(self, registry: AdapterRegistry):
        self.registry = registry

    def list_sources(self) -> ApiResponse:
        return ApiResponse(200, self.registry.sources())

    def list_projects(self, source_id: str) -> ApiResponse:
        return self._with_adapter(
            source_id,
            lambda a: [p.to_dict() for p in a.list_projects()],
        )

    def list_conversations(self, source_id: str, project_id: str | None = None) -> ApiResponse:
        return self._with_adapter(
            source_id,
            lambda a: [c.to_dict() for c in a.list_conversations(project_id)],
        )

    def load_conversation(self, source_id: str, conversation_id: str,
                          project_id: str | None = None) -> ApiResponse:
        return self._with_adapter(
            source_id,
            lambda a: [m.to_dict() for m in a.load_conversation(conversation_id, project_id)],
        )

    def _with_adapter(self, source_id: str,
                      fn: Callable[[SourceAdapter], Any]) -> ApiResponse:
        adapter = self.registry.get(source_id)
        if adapter is None:
            return ApiResponse(404, dict(NOT_FOUND))
        try:
            return ApiResponse(200, fn(adapter))
        except Exception as e:
            logger.exception("Request to source %r failed", source_id)
            return ApiResponse(500, {"error": str(e) or type(e).__name__})
