"""Display settings and their persistence.

The playback core only ever sees a ``DisplaySettings`` value; where it came
from (defaults, CLI flags, the settings file) is the caller's business.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from agentreplay.paths import settings_file

logger = logging.getLogger(__name__)

STORAGE_KEY = "agentreplay.displaySettings"
THEME_MODES = ("dark", "light")
MIN_SPEED = 0.25
MAX_SPEED = 4.0


@dataclass(frozen=True)
class DisplaySettings:
    show_thinking: bool = True
    show_tool_calls: bool = True
    show_tool_results: bool = True
    playback_speed: float = 1.0
    theme_mode: str = "dark"

    def __post_init__(self):
        if not self.playback_speed > 0:
            raise ValueError(f"playback_speed must be positive, got {self.playback_speed!r}")
        if self.theme_mode not in THEME_MODES:
            raise ValueError(f"Unknown theme mode: {self.theme_mode!r}")

    def visibility(self) -> tuple[bool, bool, bool]:
        return (self.show_thinking, self.show_tool_calls, self.show_tool_results)

    def to_dict(self) -> dict:
        return {
            "showThinking": self.show_thinking,
            "showToolCalls": self.show_tool_calls,
            "showToolResults": self.show_tool_results,
            "playbackSpeed": self.playback_speed,
            "themeMode": self.theme_mode,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> DisplaySettings:
        """Build settings from stored JSON, keeping defaults for bad fields."""
        settings = cls()
        if not isinstance(raw, dict):
            return settings
        for key, attr in (("showThinking", "show_thinking"),
                          ("showToolCalls", "show_tool_calls"),
                          ("showToolResults", "show_tool_results")):
            if isinstance(raw.get(key), bool):
                settings = replace(settings, **{attr: raw[key]})
        speed = raw.get("playbackSpeed")
        if isinstance(speed, (int, float)) and not isinstance(speed, bool) and speed > 0:
            settings = replace(settings, playback_speed=float(speed))
        if raw.get("themeMode") in THEME_MODES:
            settings = replace(settings, theme_mode=raw["themeMode"])
        return settings


class SettingsStore:
    """A flat key/value JSON file holding the settings under ``STORAGE_KEY``."""

    def __init__(self, path: Path | None = None):
        self.path = path or settings_file()

    def _read_all(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug("Ignoring unreadable settings file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> DisplaySettings:
        return DisplaySettings.from_dict(self._read_all().get(STORAGE_KEY))

    def save(self, settings: DisplaySettings) -> None:
        data = self._read_all()
        data[STORAGE_KEY] = settings.to_dict()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
