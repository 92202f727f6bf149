"""CLI entry point for agentreplay."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from agentreplay.adapters.registry import AdapterRegistry
from agentreplay.api import ApiResponse, ReplayAPI
from agentreplay.errors import ReplayError
from agentreplay.model import UnifiedMessage
from agentreplay.settings import MAX_SPEED, MIN_SPEED, DisplaySettings, SettingsStore


def _speed(value: str) -> float:
    try:
        speed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid speed: {value!r}")
    if not MIN_SPEED <= speed <= MAX_SPEED:
        raise argparse.ArgumentTypeError(f"speed must be between {MIN_SPEED:g} and {MAX_SPEED:g}")
    return speed


def _build_parser() -> argparse.ArgumentParser:
    # Shared global options, inherited by every subcommand
    global_opts = argparse.ArgumentParser(add_help=False)
    global_opts.add_argument("--format", "-f", choices=["human", "json"],
                             default=None, help="Output format (default: auto-detect)")
    global_opts.add_argument("--ascii", action="store_true",
                             help="Force ASCII output (no Unicode box drawing)")
    global_opts.add_argument("--color", action="store_true",
                             help="Force color output (for piping to less -R)")
    global_opts.add_argument("--verbose", "-v", action="store_true",
                             help="Log debug details to stderr")

    # Playback options shared by play and play-file
    play_opts = argparse.ArgumentParser(add_help=False)
    play_opts.add_argument("--speed", type=_speed, metavar="X",
                           help=f"Playback speed multiplier ({MIN_SPEED:g}-{MAX_SPEED:g})")
    play_opts.add_argument("--no-thinking", action="store_true", help="Hide thinking messages")
    play_opts.add_argument("--no-tools", action="store_true", help="Hide tool calls")
    play_opts.add_argument("--no-results", action="store_true", help="Hide tool results")
    play_opts.add_argument("--save", action="store_true",
                           help="Remember these display settings for next time")

    parser = argparse.ArgumentParser(
        prog="agentreplay",
        description="Replay AI coding-agent conversations",
        parents=[global_opts],
    )
    parser.add_argument("--version", action="version", version="agentreplay 0.1.0")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("sources", parents=[global_opts], help="List transcript sources")

    p_projects = sub.add_parser("projects", parents=[global_opts], help="List projects of a source")
    p_projects.add_argument("source", help="Source ID (see `agentreplay sources`)")

    p_convs = sub.add_parser("conversations", parents=[global_opts],
                             help="List conversations of a source")
    p_convs.add_argument("source", help="Source ID")
    p_convs.add_argument("--project", "-p", metavar="ID", help="Project ID")

    p_show = sub.add_parser("show", parents=[global_opts], help="Print a whole conversation")
    p_show.add_argument("source", help="Source ID")
    p_show.add_argument("conversation", help="Conversation ID")
    p_show.add_argument("--project", "-p", metavar="ID", help="Project ID")

    p_play = sub.add_parser("play", parents=[global_opts, play_opts],
                            help="Animate a conversation")
    p_play.add_argument("source", help="Source ID")
    p_play.add_argument("conversation", help="Conversation ID")
    p_play.add_argument("--project", "-p", metavar="ID", help="Project ID")

    p_file = sub.add_parser("play-file", parents=[global_opts, play_opts],
                            help="Animate an exported .json conversation file")
    p_file.add_argument("path", help="Path to a .json export")

    return parser


def _get_format(args) -> str:
    """Determine output format from args + TTY detection."""
    if args.format:
        return args.format
    if not sys.stdout.isatty():
        return "json"
    return "human"


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _effective_settings(args) -> DisplaySettings:
    store = SettingsStore()
    settings = store.load()
    changes = {}
    if args.speed is not None:
        changes["playback_speed"] = args.speed
    if args.no_thinking:
        changes["show_thinking"] = False
    if args.no_tools:
        changes["show_tool_calls"] = False
    if args.no_results:
        changes["show_tool_results"] = False
    settings = replace(settings, **changes)
    if args.save:
        store.save(settings)
    return settings


def _fail(message: str) -> None:
    from agentreplay.formatters.human import console
    console.print(f"[red]{message}[/]")
    sys.exit(1)


def _check(response: ApiResponse, what: str) -> None:
    if response.status == 404:
        _fail(f"No {what} (try `agentreplay sources`)")
    if not response.ok:
        _fail(f"Error: {response.body.get('error', 'unknown error')}")


def _play(messages: list[UnifiedMessage], settings: DisplaySettings, fmt: str,
          title: str = "agentreplay") -> None:
    from agentreplay.commands.play import play_conversation

    if fmt == "json":
        from agentreplay.formatters.json import format_json
        frames: list[dict] = []
        asyncio.run(play_conversation(messages, settings, frames.append))
        format_json(frames[-1] if frames else {})
        return

    if sys.stdin.isatty() and sys.stdout.isatty():
        from agentreplay.tui import PlaybackApp
        PlaybackApp(messages, settings, title=title).run()
        return

    # No keyboard to read from: run once to the end
    from rich.live import Live
    from agentreplay.formatters.human import console, render_playback

    def show(frame: dict) -> None:
        live.update(render_playback(
            frame["slots"], frame["status"], frame["cursor"], frame["total"], frame["speed"],
        ))

    with Live(console=console, refresh_per_second=10) as live:
        try:
            asyncio.run(play_conversation(messages, settings, show))
        except KeyboardInterrupt:
            console.print("[dim]Playback interrupted[/]")


def main():
    parser = _build_parser()
    args = parser.parse_args()
    _setup_logging(args.verbose)

    # Init human formatter
    from agentreplay.formatters.human import init as init_human, detect_ascii
    ascii_mode = args.ascii or detect_ascii()
    init_human(ascii_mode=ascii_mode, force_color=args.color)

    fmt = _get_format(args)
    api = ReplayAPI(AdapterRegistry.default())

    if not args.command or args.command == "sources":
        data = api.list_sources().body
        if fmt == "json":
            from agentreplay.formatters.json import format_json
            format_json(data)
        else:
            from agentreplay.formatters.human import format_sources
            format_sources(data)
        return

    if args.command == "projects":
        response = api.list_projects(args.source)
        _check(response, f"source '{args.source}'")
        if fmt == "json":
            from agentreplay.formatters.json import format_json
            format_json(response.body)
        else:
            from agentreplay.formatters.human import format_projects
            format_projects(response.body, args.source)
        return

    if args.command == "conversations":
        response = api.list_conversations(args.source, args.project)
        _check(response, f"source '{args.source}'")
        if fmt == "json":
            from agentreplay.formatters.json import format_json
            format_json(response.body)
        else:
            from agentreplay.formatters.human import format_conversations
            format_conversations(response.body)
        return

    if args.command == "show":
        response = api.load_conversation(args.source, args.conversation, args.project)
        _check(response, f"source '{args.source}'")
        if fmt == "json":
            from agentreplay.formatters.json import format_json
            format_json(response.body)
        else:
            from agentreplay.formatters.human import format_messages
            format_messages(response.body, title=f"{args.source} / {args.conversation}")
        return

    if args.command == "play":
        response = api.load_conversation(args.source, args.conversation, args.project)
        _check(response, f"source '{args.source}'")
        messages = [UnifiedMessage.from_dict(m) for m in response.body]
        if not messages:
            _fail(f"No messages found for conversation '{args.conversation}'")
        _play(messages, _effective_settings(args), fmt, title=f"{args.source} / {args.conversation}")
        return

    if args.command == "play-file":
        from agentreplay.ingest import load_dropped_file
        try:
            messages = load_dropped_file(args.path)
        except (ReplayError, OSError, UnicodeDecodeError) as e:
            _fail(f"Could not load {args.path}: {e}")
        _play(messages, _effective_settings(args), fmt, title=args.path)
        return


if __name__ == "__main__":
    main()
