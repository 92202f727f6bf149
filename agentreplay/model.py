"""Unified message model shared by every adapter, plus the playback superset."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SUBAGENT = "subagent"
    # playback-only
    APPROVAL = "approval"
    THINKING_ANIMATION = "thinking_animation"


UNIFIED_ROLES = frozenset({
    Role.USER, Role.ASSISTANT, Role.THINKING,
    Role.TOOL_CALL, Role.TOOL_RESULT, Role.SUBAGENT,
})

APPROVAL_STATUSES = ("pending", "approved", "rejected", "ended")
APPROVAL_ACTIONS = ("yes", "no", "end")


# ── Payloads ──────────────────────────────────────────────────────────

@dataclass
class ToolCall:
    name: str
    args: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"name": self.name, "args": dict(self.args)}

    @classmethod
    def from_dict(cls, raw: dict) -> ToolCall:
        args = raw.get("args") or {}
        return cls(name=str(raw.get("name", "")), args={str(k): str(v) for k, v in args.items()})


@dataclass
class ToolResult:
    name: str
    output: str

    def to_dict(self) -> dict:
        return {"name": self.name, "output": self.output}

    @classmethod
    def from_dict(cls, raw: dict) -> ToolResult:
        return cls(name=str(raw.get("name", "")), output=str(raw.get("output", "")))


@dataclass
class ApprovalState:
    status: str = "pending"
    action: str | None = None

    def __post_init__(self):
        if self.status not in APPROVAL_STATUSES:
            raise ValueError(f"Unknown approval status: {self.status!r}")
        if self.action is not None and self.action not in APPROVAL_ACTIONS:
            raise ValueError(f"Unknown approval action: {self.action!r}")

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"status": self.status}
        if self.action:
            d["action"] = self.action
        return d


@dataclass
class SubagentConversation:
    """A nested conversation, owned by exactly one parent ``subagent`` message."""

    id: str
    messages: list[UnifiedMessage] = field(default_factory=list)
    created_at: float | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "messages": [m.to_dict() for m in self.messages]}
        if self.created_at is not None:
            d["createdAt"] = self.created_at
        return d

    @classmethod
    def from_dict(cls, raw: dict) -> SubagentConversation:
        return cls(
            id=str(raw.get("id", "")),
            messages=[UnifiedMessage.from_dict(m) for m in raw.get("messages") or []],
            created_at=raw.get("createdAt"),
        )


# ── Messages ──────────────────────────────────────────────────────────

_PAYLOAD_ROLES = {
    "tool_call": Role.TOOL_CALL,
    "tool_result": Role.TOOL_RESULT,
    "subagent": Role.SUBAGENT,
}


@dataclass
class UnifiedMessage:
    """One conversational turn, independent of where it was recorded.

    ``timestamp`` (epoch ms) is informational only; list order is the
    only ordering that matters.
    """

    role: Role
    content: str
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    subagent: SubagentConversation | None = None
    timestamp: float | None = None

    allowed_roles = UNIFIED_ROLES

    def __post_init__(self):
        self.role = Role(self.role)
        if self.role not in self.allowed_roles:
            raise ValueError(f"Role {self.role.value!r} is not valid on {type(self).__name__}")
        self._check_payload()

    def _check_payload(self) -> None:
        for attr, role in _PAYLOAD_ROLES.items():
            if getattr(self, attr) is not None and self.role is not role:
                raise ValueError(f"{attr} payload is not allowed on a {self.role.value} message")

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_call is not None:
            d["toolCall"] = self.tool_call.to_dict()
        if self.tool_result is not None:
            d["toolResult"] = self.tool_result.to_dict()
        if self.subagent is not None:
            d["subagent"] = self.subagent.to_dict()
        if self.timestamp is not None:
            d["timestamp"] = self.timestamp
        return d

    @classmethod
    def from_dict(cls, raw: dict) -> UnifiedMessage:
        tc = raw.get("toolCall")
        tr = raw.get("toolResult")
        sub = raw.get("subagent")
        return cls(
            role=Role(raw["role"]),
            content=raw.get("content", ""),
            tool_call=ToolCall.from_dict(tc) if isinstance(tc, dict) else None,
            tool_result=ToolResult.from_dict(tr) if isinstance(tr, dict) else None,
            subagent=SubagentConversation.from_dict(sub) if isinstance(sub, dict) else None,
            timestamp=raw.get("timestamp"),
        )


@dataclass
class PlaybackMessage(UnifiedMessage):
    """A unified message, or one of the synthetic animation steps around it."""

    approval: ApprovalState | None = None

    allowed_roles = frozenset(Role)

    def _check_payload(self) -> None:
        # approval steps carry the tool call they gate
        if self.role is Role.APPROVAL:
            if self.tool_result is not None or self.subagent is not None:
                raise ValueError("approval steps only carry a tool call")
            return
        if self.role is Role.THINKING_ANIMATION and self.tool_call is not None:
            raise ValueError("thinking_animation steps never carry a tool call")
        super()._check_payload()
        if self.approval is not None:
            raise ValueError("approval state is only allowed on approval steps")

    def with_approval(self, status: str, action: str | None = None) -> PlaybackMessage:
        return replace(self, approval=ApprovalState(status, action))

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.approval is not None:
            d["approval"] = self.approval.to_dict()
        return d

    @classmethod
    def from_unified(cls, msg: UnifiedMessage) -> PlaybackMessage:
        return cls(
            role=msg.role,
            content=msg.content,
            tool_call=msg.tool_call,
            tool_result=msg.tool_result,
            subagent=msg.subagent,
            timestamp=msg.timestamp,
        )


# ── Browsing ──────────────────────────────────────────────────────────

@dataclass
class ProjectInfo:
    id: str
    name: str
    path: str | None = None

    def to_dict(self) -> dict:
        d = {"id": self.id, "name": self.name}
        if self.path is not None:
            d["path"] = self.path
        return d


@dataclass
class ConversationSummary:
    id: str
    title: str
    source_id: str
    project_id: str | None = None
    project_name: str | None = None
    created_at: float | None = None
    updated_at: float | None = None
    message_count: int | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "title": self.title, "sourceId": self.source_id}
        optional = {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messageCount": self.message_count,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        return d
