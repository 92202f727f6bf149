"""Interactive playback in the terminal, with keyboard controls."""
from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Static

from agentreplay.commands.play import KEYS_HINT, PLAYBACK_KEYS, handle_key, playback_frame
from agentreplay.formatters.human import render_playback
from agentreplay.model import UnifiedMessage
from agentreplay.playback.engine import PlaybackEngine
from agentreplay.playback.scheduler import AsyncioScheduler
from agentreplay.settings import DisplaySettings

logger = logging.getLogger(__name__)


class PlaybackApp(App):
    """Replays one conversation; space, arrows and r drive the engine."""

    CSS = """
    #stage {
        height: 1fr;
    }
    """

    BINDINGS = [Binding("q", "quit", "Quit")] + [
        Binding(key, f"control('{key}')", operation, show=False, priority=True)
        for key, operation in PLAYBACK_KEYS.items()
    ]

    def __init__(self, messages: list[UnifiedMessage], settings: DisplaySettings,
                 title: str = "agentreplay"):
        super().__init__()
        self.messages = messages
        self.settings = settings
        self.title = title
        self.engine: PlaybackEngine | None = None

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="stage"):
            yield Static(id="playback")

    def on_mount(self) -> None:
        logger.debug("Interactive playback of %d messages", len(self.messages))
        self.engine = PlaybackEngine(AsyncioScheduler(), self.settings, on_change=self.show)
        self.engine.load(self.messages)
        self.engine.play()

    def on_unmount(self) -> None:
        if self.engine is not None:
            self.engine.close()

    def action_control(self, key: str) -> None:
        if self.engine is not None:
            handle_key(self.engine, key)

    def show(self, engine: PlaybackEngine) -> None:
        frame = playback_frame(engine)
        self.query_one("#playback", Static).update(render_playback(
            frame["slots"], frame["status"], frame["cursor"], frame["total"], frame["speed"],
            hint=KEYS_HINT,
        ))
        self.query_one("#stage", VerticalScroll).scroll_end(animate=False)
