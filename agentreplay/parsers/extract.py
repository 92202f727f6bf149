"""User content extraction shared by the event-log and block parsers.

Cursor wraps the real user prompt in a pile of context tags (open files,
rules, reminders). When a ``<user_query>`` region exists it is the message;
otherwise the known wrapper regions are cut out whole and the rest kept.
"""
from __future__ import annotations

import re

WRAPPER_TAGS = (
    "external_links", "manually_attached_skills", "open_and_recently_viewed_files",
    "system_reminder", "git_status", "user_info", "rules", "agent_skills",
    "agent_transcripts", "mcp_file_system", "tool_calling", "making_code_changes",
    "citing_code", "inline_line_numbers", "terminal_files_information",
    "task_management", "tone_and_style", "system-communication",
)

_USER_QUERY_RE = re.compile(r"<user_query>\s*(.*?)\s*</user_query>", re.DOTALL)
_WRAPPER_RES = [
    re.compile(rf"<{re.escape(tag)}>.*?</{re.escape(tag)}>", re.DOTALL)
    for tag in WRAPPER_TAGS
]


def _extract_once(text: str) -> str:
    m = _USER_QUERY_RE.search(text)
    if m:
        return m.group(1).strip()
    cleaned = text
    for regex in _WRAPPER_RES:
        cleaned = regex.sub("", cleaned)
    return cleaned.strip()


def extract_user_content(text: str) -> str:
    """Return the human-authored part of a raw user message.

    Applied until nothing changes, so calling it on its own output is a no-op.
    """
    current = text
    while True:
        nxt = _extract_once(current)
        if nxt == current:
            return nxt
        current = nxt
