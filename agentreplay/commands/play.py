"""Drive a playback on the asyncio loop until it finishes."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from agentreplay.model import UnifiedMessage
from agentreplay.playback.engine import PlaybackEngine, PlaybackStatus
from agentreplay.playback.scheduler import AsyncioScheduler
from agentreplay.settings import DisplaySettings

logger = logging.getLogger(__name__)


def playback_frame(engine: PlaybackEngine) -> dict:
    """Canonical snapshot of what the engine currently shows."""
    return {
        "status": engine.status.value,
        "cursor": engine.cursor,
        "total": engine.total,
        "speed": engine.settings.playback_speed,
        "slots": [m.to_dict() for m in engine.displayed],
    }


# Keys as textual names them, mapped to engine operations
PLAYBACK_KEYS = {
    "space": "toggle",
    "right": "step_forward",
    "l": "step_forward",
    "left": "step_backward",
    "h": "step_backward",
    "r": "restart",
}

KEYS_HINT = "space play/pause  left/right step  r restart  q quit"


def handle_key(engine: PlaybackEngine, key: str) -> bool:
    """Apply the control bound to ``key``. Returns False for unbound keys."""
    operation = PLAYBACK_KEYS.get(key)
    if operation is None:
        return False
    logger.debug("Key %r -> %s", key, operation)
    getattr(engine, operation)()
    return True


async def play_conversation(messages: list[UnifiedMessage], settings: DisplaySettings,
                            on_frame: Callable[[dict], None]) -> PlaybackEngine:
    """Play ``messages`` from the start, reporting every change to ``on_frame``."""
    finished = asyncio.Event()

    def changed(engine: PlaybackEngine) -> None:
        on_frame(playback_frame(engine))
        if engine.status is PlaybackStatus.FINISHED:
            finished.set()

    engine = PlaybackEngine(AsyncioScheduler(), settings, on_change=changed)
    engine.load(messages)
    engine.play()
    try:
        if engine.status is PlaybackStatus.PLAYING:
            await finished.wait()
    finally:
        engine.close()
    logger.debug("Playback ended at step %d/%d", engine.cursor, engine.total)
    return engine
