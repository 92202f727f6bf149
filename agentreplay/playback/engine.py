"""Playback engine: a cancelable, timer-driven state machine over playback steps.

No I/O and no threads. The engine asks a ``Scheduler`` for delayed
continuations; every continuation carries the generation number it was
scheduled under and does nothing if the engine has moved on since (paused,
stepped, restarted, or loaded a different conversation).

Progress is a single cursor into ``steps``. What is on screen is always the
resolved prefix ``steps[:cursor]`` (each placeholder/result pair shown as
its result) plus, while a pair is animating, one transient slot holding the
placeholder or the pending/approved approval.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from agentreplay.model import PlaybackMessage, Role, UnifiedMessage
from agentreplay.playback.scheduler import Scheduler, TimerHandle
from agentreplay.playback.transform import to_playback
from agentreplay.settings import DisplaySettings

logger = logging.getLogger(__name__)


class PlaybackStatus(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


# Waits in milliseconds at 1x speed
THINKING_ANIMATION_MS = 2000
ASSISTANT_SETTLE_MS = 1000
APPROVAL_PENDING_MS = 2500
APPROVAL_APPROVED_MS = 2000
APPROVAL_SETTLE_MS = 500
DEFAULT_STEP_MS = 500
STEP_DELAYS_MS: dict[Role, int] = {
    Role.USER: 800,
    Role.ASSISTANT: 1000,
    Role.THINKING: 1500,
    Role.TOOL_RESULT: 300,
}

PAIR_PARTNERS = {
    Role.THINKING_ANIMATION: Role.ASSISTANT,
    Role.APPROVAL: Role.TOOL_CALL,
}


def is_pair_at(steps: list[PlaybackMessage], index: int) -> bool:
    """True if ``steps[index]`` is a placeholder immediately followed by its result."""
    if index + 1 >= len(steps):
        return False
    partner = PAIR_PARTNERS.get(steps[index].role)
    return partner is not None and steps[index + 1].role is partner


def resolve_prefix(steps: list[PlaybackMessage], cursor: int) -> list[PlaybackMessage]:
    """The slots shown for ``steps[:cursor]``, each complete pair collapsed to its result."""
    shown: list[PlaybackMessage] = []
    i = 0
    while i < cursor:
        if is_pair_at(steps, i) and i + 1 < cursor:
            shown.append(steps[i + 1])
            i += 2
        else:
            shown.append(steps[i])
            i += 1
    return shown


class PlaybackEngine:
    """Drives the playback steps of one conversation at a time."""

    def __init__(self, scheduler: Scheduler, settings: DisplaySettings | None = None,
                 on_change: Callable[[PlaybackEngine], None] | None = None):
        self._scheduler = scheduler
        self._settings = settings or DisplaySettings()
        self._on_change = on_change
        self._messages: list[UnifiedMessage] = []
        self._steps: list[PlaybackMessage] = []
        self._cursor = 0
        self._status = PlaybackStatus.IDLE
        self._generation = 0
        self._timer: TimerHandle | None = None
        self._transient: PlaybackMessage | None = None

    # -- Properties -----------------------------------------------------------

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def total(self) -> int:
        return len(self._steps)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def settings(self) -> DisplaySettings:
        return self._settings

    @property
    def steps(self) -> list[PlaybackMessage]:
        return list(self._steps)

    @property
    def displayed(self) -> list[PlaybackMessage]:
        shown = resolve_prefix(self._steps, self._cursor)
        if self._transient is not None:
            shown.append(self._transient)
        return shown

    # -- Inputs ---------------------------------------------------------------

    def load(self, messages: list[UnifiedMessage]) -> None:
        """Switch to a new conversation, superseding any running playback."""
        self._messages = list(messages)
        self._recompute()

    def update_settings(self, settings: DisplaySettings) -> None:
        """Apply new settings; visibility changes reset playback, speed does not."""
        previous = self._settings
        self._settings = settings
        if settings.visibility() != previous.visibility():
            self._recompute()

    def _recompute(self) -> None:
        self._cancel()
        self._steps = to_playback(self._messages, self._settings)
        self._cursor = 0
        self._transient = None
        self._status = PlaybackStatus.IDLE
        logger.debug("Playback recomputed: %d steps", len(self._steps))
        self._notify()

    # -- Playback control -----------------------------------------------------

    def play(self) -> None:
        """Start from the beginning, or resume if paused."""
        if self._status is PlaybackStatus.PLAYING:
            return
        if self._status is PlaybackStatus.PAUSED:
            self.resume()
            return
        self.restart()

    def pause(self) -> None:
        if self._status is not PlaybackStatus.PLAYING:
            return
        self._halt()
        self._status = PlaybackStatus.PAUSED
        self._notify()

    def resume(self) -> None:
        if self._status is not PlaybackStatus.PAUSED:
            return
        if self._cursor >= len(self._steps):
            self._status = PlaybackStatus.FINISHED
            self._notify()
            return
        self._status = PlaybackStatus.PLAYING
        self._advance()

    def toggle(self) -> None:
        if self._status is PlaybackStatus.PLAYING:
            self.pause()
        elif self._status is PlaybackStatus.PAUSED:
            self.resume()
        else:
            self.restart()

    def restart(self) -> None:
        self._cancel()
        self._cursor = 0
        self._transient = None
        self._status = PlaybackStatus.IDLE
        if not self._steps:
            self._notify()
            return
        self._status = PlaybackStatus.PLAYING
        self._advance()

    def close(self) -> None:
        """Drop any pending continuation; the engine stays usable."""
        self._halt()
        if self._status is PlaybackStatus.PLAYING:
            self._status = PlaybackStatus.PAUSED

    # -- Stepping -------------------------------------------------------------

    def step_forward(self) -> None:
        """Show one more slot, resolving a pair straight to its result."""
        if self._status is PlaybackStatus.PLAYING:
            self._halt()
            self._status = PlaybackStatus.PAUSED
        if self._cursor >= len(self._steps):
            if self._steps and self._status is not PlaybackStatus.FINISHED:
                self._status = PlaybackStatus.FINISHED
                self._notify()
            return
        self._cursor += 2 if is_pair_at(self._steps, self._cursor) else 1
        self._settle_status()
        self._notify()

    def step_backward(self) -> None:
        """Remove the last slot; a resolved pair is rewound as a unit."""
        if self._transient is not None:
            self._halt()
        elif self._cursor == 0:
            return
        else:
            if self._status is PlaybackStatus.PLAYING:
                self._halt()
            if self._cursor >= 2 and is_pair_at(self._steps, self._cursor - 2):
                self._cursor -= 2
            else:
                self._cursor -= 1
        if self._cursor == 0:
            self._status = PlaybackStatus.IDLE
        else:
            self._status = PlaybackStatus.PAUSED
        self._notify()

    def _settle_status(self) -> None:
        if self._cursor >= len(self._steps):
            self._status = PlaybackStatus.FINISHED
        else:
            self._status = PlaybackStatus.PAUSED

    # -- Timer chain ----------------------------------------------------------

    def _advance(self) -> None:
        if self._cursor >= len(self._steps):
            self._status = PlaybackStatus.FINISHED
            self._notify()
            return

        step = self._steps[self._cursor]
        if is_pair_at(self._steps, self._cursor):
            self._transient = step
            self._notify()
            if step.role is Role.THINKING_ANIMATION:
                self._wait(THINKING_ANIMATION_MS, self._reveal_assistant)
            else:
                self._wait(APPROVAL_PENDING_MS, self._approve)
            return

        self._cursor += 1
        self._notify()
        self._wait(STEP_DELAYS_MS.get(step.role, DEFAULT_STEP_MS), self._advance)

    def _reveal_assistant(self) -> None:
        self._transient = None
        self._cursor += 2
        self._notify()
        self._wait(ASSISTANT_SETTLE_MS, self._advance)

    def _approve(self) -> None:
        self._transient = self._steps[self._cursor].with_approval("approved", "yes")
        self._notify()
        self._wait(APPROVAL_APPROVED_MS, self._reveal_tool_call)

    def _reveal_tool_call(self) -> None:
        self._transient = None
        self._cursor += 2
        self._notify()
        self._wait(APPROVAL_SETTLE_MS, self._advance)

    def _wait(self, ms: int, continuation: Callable[[], None]) -> None:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation or self._status is not PlaybackStatus.PLAYING:
                return
            self._timer = None
            continuation()

        delay = ms / self._settings.playback_speed / 1000
        self._timer = self._scheduler.call_later(delay, fire)

    def _cancel(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _halt(self) -> None:
        self._cancel()
        self._transient = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
