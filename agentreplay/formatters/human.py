"""Human formatter: Rich terminal output."""
from __future__ import annotations

import os
import sys
from datetime import datetime

from rich.box import ASCII as ASCII_BOX, ROUNDED
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentreplay.paths import short_id

# ── Module state ──────────────────────────────────────────────────────

USE_ASCII = False
console = Console()


def init(ascii_mode: bool = False, force_color: bool = False):
    global USE_ASCII, console
    USE_ASCII = ascii_mode
    if force_color:
        console = Console(force_terminal=True)
    else:
        console = Console()


def detect_ascii() -> bool:
    encoding = getattr(sys.stdout, "encoding", "") or ""
    if encoding.lower().replace("-", "") not in ("utf8", "utf16", "utf32"):
        return True
    lang = os.environ.get("LANG", "") + os.environ.get("LC_ALL", "")
    if lang and "utf" not in lang.lower():
        return True
    return False


def box_style():
    return ASCII_BOX if USE_ASCII else ROUNDED


def table_box():
    if USE_ASCII:
        return ASCII_BOX
    from rich.box import HEAVY_HEAD
    return HEAVY_HEAD


def truncate_lines(text: str, max_lines: int = 3) -> str:
    lines = text.splitlines()
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def _format_ms(ms: float | None) -> str:
    if ms is None:
        return ""
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _panel_width() -> int:
    return min(console.width, 120)


# ── Listings ──────────────────────────────────────────────────────────

def format_sources(data: list[dict]) -> None:
    table = Table(title="Sources", padding=(0, 1), box=table_box())
    table.add_column("ID", style="bold cyan", no_wrap=True)
    table.add_column("Name")
    for s in data:
        table.add_row(s["id"], escape(s["name"]))
    console.print(table)


def format_projects(data: list[dict], source_id: str) -> None:
    if not data:
        console.print(f"[yellow]No projects found for source '{escape(source_id)}'.[/]")
        return
    table = Table(title=f"Projects ({escape(source_id)})", padding=(0, 1), box=table_box())
    table.add_column("ID", style="bold cyan", no_wrap=True, overflow="ellipsis", max_width=40)
    table.add_column("Name", overflow="ellipsis")
    for p in data:
        table.add_row(escape(p["id"]), escape(p["name"]))
    console.print(table)
    console.print(f"\n[dim]{len(data)} projects[/]")


def format_conversations(data: list[dict]) -> None:
    w = _panel_width()
    table = Table(title="Conversations", padding=(0, 1), width=w, box=table_box())
    table.add_column("ID", style="bold cyan", no_wrap=True, min_width=8)
    table.add_column("Updated", style="green", no_wrap=True, justify="right", min_width=16)
    table.add_column("Msgs", justify="right", no_wrap=True)
    table.add_column("Title", no_wrap=True, overflow="ellipsis", ratio=1)

    for c in data:
        count = c.get("messageCount")
        table.add_row(
            short_id(c["id"]),
            _format_ms(c.get("updatedAt")),
            "" if count is None else str(count),
            escape(c["title"]),
        )

    console.print(table)
    console.print(f"\n[dim]{len(data)} conversations[/]")


# ── Messages ──────────────────────────────────────────────────────────

def _compact_args(args: dict, max_len: int = 100) -> str:
    s = ", ".join(f"{k}={v}" for k, v in args.items())
    s = " ".join(s.split())
    return s if len(s) <= max_len else s[:max_len - 3] + "..."


def _tool_line(tool_call: dict, label: str, style: str) -> Text:
    t = Text()
    t.append(f"  [{label}] ", style=style)
    t.append(tool_call.get("name", "?"), style=f"bold {style}")
    t.append(f"({_compact_args(tool_call.get('args') or {})})", style=f"dim {style}")
    return t


def render_message(msg: dict) -> RenderableType:
    """Render one message dict (unified or playback) as a Rich renderable."""
    role = msg.get("role")
    content = msg.get("content", "")

    if role == "user":
        return Panel(
            Markdown(content) if len(content) < 5000 else Text(truncate_lines(content, 20)),
            title="User", title_align="left",
            border_style="cyan", width=_panel_width(),
            padding=(0, 1), box=box_style(),
        )

    if role == "assistant":
        return Panel(
            Markdown(content) if len(content) < 8000 else Text(truncate_lines(content, 30)),
            title="Assistant", title_align="left",
            border_style="green", width=_panel_width(),
            padding=(0, 1), box=box_style(),
        )

    if role == "thinking":
        t = Text()
        t.append("  [thinking] ", style="dim italic magenta")
        t.append(truncate_lines(content, 5), style="dim italic")
        return t

    if role == "tool_call":
        return _tool_line(msg.get("toolCall") or {"name": content}, "tool", "yellow")

    if role == "tool_result":
        t = Text()
        t.append("  [result] ", style="dim")
        t.append(truncate_lines(content, 3), style="dim")
        return t

    if role == "subagent":
        sub = msg.get("subagent") or {}
        nested = [render_message(m) for m in sub.get("messages", [])]
        return Panel(
            Group(*nested) if nested else Text("(empty)", style="dim"),
            title=f"Subagent {short_id(sub.get('id', ''))}", title_align="left",
            border_style="magenta", width=_panel_width(),
            padding=(0, 1), box=box_style(),
        )

    if role == "thinking_animation":
        return Text("  Thinking...", style="italic dim green")

    if role == "approval":
        status = (msg.get("approval") or {}).get("status", "pending")
        style = "green" if status == "approved" else "yellow"
        t = _tool_line(msg.get("toolCall") or {}, "approve?", style)
        t.append(f"  {status}", style=f"bold {style}")
        return t

    return Text(f"  [{role}] {content}", style="dim")


def format_messages(data: list[dict], title: str | None = None) -> None:
    if title:
        console.print(Panel(escape(title), style="bold cyan", box=box_style()))
    if not data:
        console.print("[yellow]No messages in this conversation.[/]")
        return
    for msg in data:
        console.print(render_message(msg))
    console.print(f"\n[dim]{len(data)} messages[/]")


# ── Playback ──────────────────────────────────────────────────────────

def render_playback(slots: list[dict], status: str, cursor: int, total: int,
                    speed: float, max_slots: int = 12, hint: str = "") -> RenderableType:
    """The Live view: the most recent slots plus a status footer."""
    hidden = max(0, len(slots) - max_slots)
    parts: list[RenderableType] = []
    if hidden:
        parts.append(Text(f"  ... {hidden} earlier", style="dim"))
    parts.extend(render_message(m) for m in slots[hidden:])
    footer = Text()
    footer.append(f"[{status}] ", style="bold cyan")
    footer.append(f"step {cursor}/{total}", style="dim")
    footer.append(f"  {speed:g}x", style="dim")
    if hint:
        footer.append(f"  {hint}", style="dim")
    parts.append(footer)
    return Group(*parts)
