"""Expand unified messages into the playback step sequence."""
from __future__ import annotations

from agentreplay.model import ApprovalState, PlaybackMessage, Role, UnifiedMessage
from agentreplay.settings import DisplaySettings


def is_visible(msg: UnifiedMessage, settings: DisplaySettings) -> bool:
    if msg.role is Role.THINKING:
        return settings.show_thinking
    if msg.role is Role.TOOL_CALL:
        return settings.show_tool_calls
    if msg.role is Role.TOOL_RESULT:
        return settings.show_tool_results
    return True


def to_playback(messages: list[UnifiedMessage], settings: DisplaySettings) -> list[PlaybackMessage]:
    """Filter by visibility, then expand into animation steps.

    Every assistant message becomes a ``thinking_animation`` placeholder
    followed by the message itself; every tool call becomes a pending
    ``approval`` gate followed by the call. Everything else is one step.
    """
    steps: list[PlaybackMessage] = []
    for msg in messages:
        if not is_visible(msg, settings):
            continue
        step = PlaybackMessage.from_unified(msg)
        if msg.role is Role.ASSISTANT:
            steps.append(PlaybackMessage(role=Role.THINKING_ANIMATION, content=""))
        elif msg.role is Role.TOOL_CALL:
            steps.append(PlaybackMessage(
                role=Role.APPROVAL,
                content="",
                tool_call=msg.tool_call,
                approval=ApprovalState("pending"),
            ))
        steps.append(step)
    return steps
