"""Block-transcript parser (Cursor ``agent-transcripts/*.txt``).

The format is plain text::

    user:
    <user_query>fix the build</user_query>
    assistant:
    [Thinking] Looking at the error
    The import is wrong.
    [Tool call] Read
      path: /src/app.ts
    [Tool result] Read
    Fixed it.

Parsing is a small state machine: the outer state is the current block
(``ROOT``/``USER``/``ASSISTANT``), the inner state the accumulation mode of
an assistant block (``PLAIN_TEXT``/``THINKING``/``TOOL_CALL``). Every line is
classified on its own and dispatched through ``TRANSITIONS``.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Callable

from agentreplay.model import Role, ToolCall, ToolResult, UnifiedMessage
from agentreplay.parsers.extract import extract_user_content
from agentreplay.paths import read_text

logger = logging.getLogger(__name__)

COMPLETED_PLACEHOLDER = "(completed)"

THINKING_TAG = "[Thinking]"
TOOL_CALL_TAG = "[Tool call]"
TOOL_RESULT_TAG = "[Tool result]"

_PARAM_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Block(Enum):
    ROOT = "root"
    USER = "user"
    ASSISTANT = "assistant"


class Mode(Enum):
    PLAIN_TEXT = "plain_text"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"


class LineKind(Enum):
    USER_HEADER = "user_header"
    ASSISTANT_HEADER = "assistant_header"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TEXT = "text"


def classify(line: str) -> LineKind:
    if line == "user:":
        return LineKind.USER_HEADER
    if line == "assistant:":
        return LineKind.ASSISTANT_HEADER
    if line.startswith(THINKING_TAG):
        return LineKind.THINKING
    if line.startswith(TOOL_CALL_TAG):
        return LineKind.TOOL_CALL
    if line.startswith(TOOL_RESULT_TAG):
        return LineKind.TOOL_RESULT
    return LineKind.TEXT


class BlockParser:
    """Feed lines one at a time, then call ``finish()`` for the messages."""

    def __init__(self):
        self.block = Block.ROOT
        self.mode = Mode.PLAIN_TEXT
        self.messages: list[UnifiedMessage] = []
        self._buffer: list[str] = []
        self._tool_name = ""
        self._args: dict[str, str] = {}
        self._active_key = ""

    def feed(self, line: str) -> None:
        handler = TRANSITIONS[(self.block, classify(line))]
        handler(self, line)

    def finish(self) -> list[UnifiedMessage]:
        self._close_block()
        return self.messages

    # ── Block transitions ─────────────────────────────────────────────

    def _open_user(self, line: str) -> None:
        self._close_block()
        self.block = Block.USER

    def _open_assistant(self, line: str) -> None:
        self._close_block()
        self.block = Block.ASSISTANT
        self.mode = Mode.PLAIN_TEXT

    def _close_block(self) -> None:
        if self.block is Block.USER:
            text = extract_user_content("\n".join(self._buffer).strip())
            if text:
                self._emit(UnifiedMessage(role=Role.USER, content=text))
        elif self.block is Block.ASSISTANT:
            self._flush_mode()
        self._buffer = []
        self.block = Block.ROOT

    def _ignore(self, line: str) -> None:
        pass

    def _user_text(self, line: str) -> None:
        self._buffer.append(line)

    # ── Assistant modes ───────────────────────────────────────────────

    def _start_thinking(self, line: str) -> None:
        self._flush_mode()
        self.mode = Mode.THINKING
        label = line[len(THINKING_TAG):].strip()
        if label:
            self._buffer.append(label)

    def _start_tool_call(self, line: str) -> None:
        self._flush_mode()
        self.mode = Mode.TOOL_CALL
        self._tool_name = line[len(TOOL_CALL_TAG):].strip()
        self._args = {}
        self._active_key = ""

    def _tool_result(self, line: str) -> None:
        self._flush_mode()
        name = line[len(TOOL_RESULT_TAG):].strip()
        self._emit(UnifiedMessage(
            role=Role.TOOL_RESULT,
            content=name or COMPLETED_PLACEHOLDER,
            tool_result=ToolResult(name=name, output=COMPLETED_PLACEHOLDER),
        ))

    def _assistant_text(self, line: str) -> None:
        MODE_TEXT[self.mode](self, line)

    def _accumulate(self, line: str) -> None:
        self._buffer.append(line)

    def _param_line(self, line: str) -> None:
        if not line.startswith("  "):
            if not line.strip():
                self._active_key = ""
            return
        param = line[2:]
        key, sep, value = param.partition(": ")
        if sep and _PARAM_KEY_RE.match(key):
            self._active_key = key
            self._args[key] = value
        elif self._active_key:
            self._args[self._active_key] += "\n" + param

    def _flush_mode(self) -> None:
        if self.mode is Mode.TOOL_CALL:
            self._emit(UnifiedMessage(
                role=Role.TOOL_CALL,
                content=self._tool_name,
                tool_call=ToolCall(name=self._tool_name, args=self._args),
            ))
            self._args = {}
            self._active_key = ""
        else:
            text = "\n".join(self._buffer).strip()
            if text:
                role = Role.THINKING if self.mode is Mode.THINKING else Role.ASSISTANT
                self._emit(UnifiedMessage(role=role, content=text))
        self._buffer = []
        self.mode = Mode.PLAIN_TEXT

    def _emit(self, msg: UnifiedMessage) -> None:
        self.messages.append(msg)


Handler = Callable[[BlockParser, str], None]

TRANSITIONS: dict[tuple[Block, LineKind], Handler] = {
    (Block.ROOT, LineKind.USER_HEADER): BlockParser._open_user,
    (Block.ROOT, LineKind.ASSISTANT_HEADER): BlockParser._open_assistant,
    (Block.ROOT, LineKind.THINKING): BlockParser._ignore,
    (Block.ROOT, LineKind.TOOL_CALL): BlockParser._ignore,
    (Block.ROOT, LineKind.TOOL_RESULT): BlockParser._ignore,
    (Block.ROOT, LineKind.TEXT): BlockParser._ignore,

    (Block.USER, LineKind.USER_HEADER): BlockParser._open_user,
    (Block.USER, LineKind.ASSISTANT_HEADER): BlockParser._open_assistant,
    (Block.USER, LineKind.THINKING): BlockParser._user_text,
    (Block.USER, LineKind.TOOL_CALL): BlockParser._user_text,
    (Block.USER, LineKind.TOOL_RESULT): BlockParser._user_text,
    (Block.USER, LineKind.TEXT): BlockParser._user_text,

    (Block.ASSISTANT, LineKind.USER_HEADER): BlockParser._open_user,
    (Block.ASSISTANT, LineKind.ASSISTANT_HEADER): BlockParser._open_assistant,
    (Block.ASSISTANT, LineKind.THINKING): BlockParser._start_thinking,
    (Block.ASSISTANT, LineKind.TOOL_CALL): BlockParser._start_tool_call,
    (Block.ASSISTANT, LineKind.TOOL_RESULT): BlockParser._tool_result,
    (Block.ASSISTANT, LineKind.TEXT): BlockParser._assistant_text,
}

MODE_TEXT: dict[Mode, Handler] = {
    Mode.PLAIN_TEXT: BlockParser._accumulate,
    Mode.THINKING: BlockParser._accumulate,
    Mode.TOOL_CALL: BlockParser._param_line,
}


def parse_blocks(text: str) -> list[UnifiedMessage]:
    parser = BlockParser()
    for line in text.splitlines():
        parser.feed(line)
    return parser.finish()


def parse_blocks_file(path: Path) -> list[UnifiedMessage]:
    try:
        text = read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read block transcript %s: %s", path, e)
        return []
    return parse_blocks(text)
