"""Filesystem locations for every transcript source, plus small file helpers."""
from __future__ import annotations

import os
import re
import sys
from pathlib import Path


# ── Paths ─────────────────────────────────────────────────────────────

def claude_config_dir() -> Path:
    env = os.environ.get("CLAUDE_CONFIG_DIR")
    if env:
        return Path(env)
    # Check both common locations
    xdg = Path.home() / ".config" / "claude"
    if xdg.exists():
        return xdg
    dot = Path.home() / ".claude"
    if dot.exists():
        return dot
    return dot  # default


def claude_projects_dir() -> Path:
    return claude_config_dir() / "projects"


def cursor_projects_dir() -> Path:
    env = os.environ.get("AGENT_REPLAY_CURSOR_PROJECTS_DIR")
    if env:
        return Path(env)
    return Path.home() / ".cursor" / "projects"


def cursor_workspace_storage_dir() -> Path:
    """Cursor's per-workspace state directory, which differs per platform."""
    env = os.environ.get("AGENT_REPLAY_CURSOR_WORKSPACE_DIR")
    if env:
        return Path(env)
    home = Path.home()
    if sys.platform == "darwin":
        base = home / "Library" / "Application Support"
    elif sys.platform == "win32":
        base = Path(os.environ.get("APPDATA") or home / "AppData" / "Roaming")
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
    return base / "Cursor" / "User" / "workspaceStorage"


def gemini_tmp_dir() -> Path:
    env = os.environ.get("AGENT_REPLAY_GEMINI_DIR")
    if env:
        return Path(env)
    return Path.home() / ".gemini" / "tmp"


def samples_dir(project_root: Path | None = None) -> Path:
    env = os.environ.get("AGENT_REPLAY_SAMPLES_DIR")
    if env:
        return Path(env)
    return (project_root or Path.cwd()) / "samples"


def settings_file() -> Path:
    env = os.environ.get("AGENT_REPLAY_SETTINGS_FILE")
    if env:
        return Path(env)
    base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / "agentreplay" / "settings.json"


# ── File helpers ──────────────────────────────────────────────────────

def read_text(path: Path) -> str:
    """Read a transcript as UTF-8. Raises OSError / UnicodeDecodeError."""
    with open(path, encoding="utf-8") as f:
        return f.read()


def created_ms(path: Path) -> float:
    """Creation time in epoch ms; falls back to ctime where birth time is unknown."""
    st = path.stat()
    birth = getattr(st, "st_birthtime", None)
    return (birth if birth is not None else st.st_ctime) * 1000


def modified_ms(path: Path) -> float:
    return path.stat().st_mtime * 1000


# ── Formatting helpers ────────────────────────────────────────────────

def short_id(full_id: str) -> str:
    return full_id[:8]


def truncate_title(text: str, limit: int = 60) -> str:
    cleaned = re.sub(r"\s+", " ", text).strip()
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[:limit - 3] + "..."
