"""Shared fixtures for agentreplay tests."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from agentreplay.model import Role, ToolCall, ToolResult, UnifiedMessage


class FakeHandle:
    def __init__(self, clock: FakeScheduler, due: float, callback):
        self.clock = clock
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: callbacks only run when ``advance`` moves time past them."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback) -> FakeHandle:
        handle = FakeHandle(self, self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target

    def run_all(self, limit: int = 10_000) -> None:
        for _ in range(limit):
            if not self.pending:
                return
            handle = min(self.pending, key=lambda h: h.due)
            self.advance(handle.due - self.now)
        raise AssertionError("scheduler did not drain")


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def write_file(tmp_path):
    """Factory: write text to ``tmp_path / name`` (parents created), return path."""
    def _make(name: str, text: str) -> Path:
        p = tmp_path / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
        return p
    return _make


@pytest.fixture
def tmp_jsonl(tmp_path):
    """Factory: write a list of dicts as a JSONL file, return path."""
    def _make(records: list[dict], name: str = "session.jsonl") -> Path:
        p = tmp_path / name
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w", encoding="utf-8") as f:
            for rec in records:
                f.write(json.dumps(rec) + "\n")
        return p
    return _make


@pytest.fixture
def sample_messages():
    """A conversation touching every unified role except subagent."""
    return [
        UnifiedMessage(role=Role.USER, content="Fix the failing test"),
        UnifiedMessage(role=Role.THINKING, content="Probably an off-by-one"),
        UnifiedMessage(role=Role.ASSISTANT, content="Let me look at the file."),
        UnifiedMessage(
            role=Role.TOOL_CALL, content="Read",
            tool_call=ToolCall(name="Read", args={"path": "/src/app.py"}),
        ),
        UnifiedMessage(
            role=Role.TOOL_RESULT, content="def add(a, b): ...",
            tool_result=ToolResult(name="Read", output="def add(a, b): ..."),
        ),
        UnifiedMessage(role=Role.ASSISTANT, content="Fixed it."),
    ]
