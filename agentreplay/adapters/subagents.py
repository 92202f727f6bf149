"""Subagent discovery helpers and placement into the parent sequence."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from agentreplay.model import Role, SubagentConversation, UnifiedMessage
from agentreplay.paths import created_ms, short_id

logger = logging.getLogger(__name__)

REFERENCE_WORD = "subagent"
_ANCHOR_ROLES = (Role.USER, Role.ASSISTANT)


def load_subagents(paths: Iterable[Path],
                   parse: Callable[[Path], list[UnifiedMessage]],
                   id_for: Callable[[Path], str] = lambda p: p.stem) -> list[SubagentConversation]:
    """Parse each sub-transcript independently, ordered by creation time.

    Files that vanish or cannot be stat'ed are skipped.
    """
    found: list[SubagentConversation] = []
    for path in paths:
        try:
            created = created_ms(path)
        except OSError as e:
            logger.warning("Skipping unreadable subagent file %s: %s", path, e)
            continue
        found.append(SubagentConversation(id=id_for(path), messages=parse(path), created_at=created))
    found.sort(key=lambda s: (s.created_at or 0, s.id))
    return found


def subagent_message(sub: SubagentConversation) -> UnifiedMessage:
    return UnifiedMessage(
        role=Role.SUBAGENT,
        content=f"Subagent: {short_id(sub.id)}",
        subagent=sub,
    )


def place_subagents(messages: list[UnifiedMessage],
                    subagents: list[SubagentConversation]) -> list[UnifiedMessage]:
    """Splice one ``subagent`` message per conversation into ``messages``.

    Each goes right before the first user/assistant message mentioning
    "subagent" that no earlier subagent has claimed, or at the end when no
    such message is left. Subagents are placed in the order given.
    """
    result = list(messages)
    used: set[int] = set()  # id() of anchor messages already claimed

    for sub in subagents:
        wrapped = subagent_message(sub)
        insert_at = None
        for idx, msg in enumerate(result):
            if msg.role not in _ANCHOR_ROLES or id(msg) in used:
                continue
            if REFERENCE_WORD in msg.content.lower():
                insert_at = idx
                break
        if insert_at is None:
            result.append(wrapped)
        else:
            used.add(id(result[insert_at]))
            result.insert(insert_at, wrapped)
    return result
