"""Command-line interface for managing a trackloop playlist."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import __version__
from .app import TrackloopSession
from .events import PlaybackFinished, PlayerStateChanged, TrackChanged
from .logging_utils import setup_logging
from .paths import db_path, log_dir, state_path
from .runtime_config import resolve_log_level
from .services.fake_backend import FakeMediaBackend
from .services.track_store import StorageError, TrackInput
from .version import build_help_epilog

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trackloop",
        description="Persistent ordered playlist with looping playback.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--db", help="Track database path (default: user data dir)")
    parser.add_argument(
        "--state", help="Settings file path (default: user config dir)"
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.add_parser("list", help="Show the playlist in order")

    add = commands.add_parser("add", help="Append audio files to the playlist")
    add.add_argument("files", nargs="+", type=Path)

    remove = commands.add_parser("remove", help="Remove the track at a position")
    remove.add_argument("index", type=int)

    commands.add_parser("clear", help="Remove every track")

    loop = commands.add_parser("loop", help="Toggle per-track loop")
    loop.add_argument("index", type=int)

    up = commands.add_parser("up", help="Move a track one position up")
    up.add_argument("index", type=int)

    down = commands.add_parser("down", help="Move a track one position down")
    down.add_argument("index", type=int)

    move = commands.add_parser("move", help="Relocate a track (drag-drop)")
    move.add_argument("src", type=int)
    move.add_argument("dest", type=int)

    volume = commands.add_parser("volume", help="Show or set volume (0.0-1.0)")
    volume.add_argument("value", type=float, nargs="?")

    playlist_loop = commands.add_parser(
        "playlist-loop", help="Show or set playlist-level loop"
    )
    playlist_loop.add_argument("mode", choices=("on", "off"), nargs="?")

    simulate = commands.add_parser(
        "simulate", help="Run the playlist through a simulated player"
    )
    simulate.add_argument("--start", type=int, default=0, help="Index to start at")
    simulate.add_argument(
        "--track-ms", type=int, default=200, help="Simulated length of every track"
    )
    simulate.add_argument(
        "--max-seconds",
        type=float,
        default=10.0,
        help="Stop after this long even if playback keeps looping",
    )
    return parser


def render_playlist(session: TrackloopSession, console: Console) -> None:
    table = Table(title=f"Playlist ({len(session.playlist)} tracks)")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Loop", justify="center")
    table.add_column("Size", justify="right")
    table.add_column("Id", style="dim")
    for track in session.playlist.tracks:
        table.add_row(
            str(track.order),
            track.name,
            "on" if track.loop else "",
            f"{len(track.content)} B",
            track.id,
        )
    console.print(table)


async def run_command(args: argparse.Namespace, console: Console) -> int:
    backend = None
    if args.command == "simulate":
        backend = FakeMediaBackend(tick_interval_ms=20, duration_ms=args.track_ms)
    session = TrackloopSession(
        db_path=Path(args.db) if args.db else db_path(),
        state_path=Path(args.state) if args.state else state_path(),
        backend=backend,
    )
    await session.start()
    try:
        return await _dispatch_command(session, args, console)
    finally:
        await session.shutdown()


async def _dispatch_command(
    session: TrackloopSession, args: argparse.Namespace, console: Console
) -> int:
    command = args.command or "list"
    playlist = session.playlist
    if command == "list":
        render_playlist(session, console)
        return 0
    if command == "add":
        items = [TrackInput.from_path(path) for path in args.files]
        added = await playlist.add(items)
        console.print(f"Added {len(added)} track(s).")
        return 0
    if command == "clear":
        removed = await playlist.clear()
        console.print(f"Removed {removed} track(s).")
        return 0
    if command == "volume":
        if args.value is not None:
            await session.set_volume(args.value)
        console.print(f"Volume: {session.settings.volume:.2f}")
        return 0
    if command == "playlist-loop":
        if args.mode is not None:
            await session.set_playlist_loop(args.mode == "on")
        console.print(
            f"Playlist loop: {'on' if session.settings.playlist_loop else 'off'}"
        )
        return 0
    if command == "simulate":
        return await _simulate(session, args, console)

    # Index-addressed edits report a no-op instead of failing.
    if command == "remove":
        changed = await playlist.remove(args.index) is not None
    elif command == "loop":
        changed = await playlist.toggle_loop(args.index) is not None
    elif command == "up":
        changed = await playlist.move_up(args.index)
    elif command == "down":
        changed = await playlist.move_down(args.index)
    elif command == "move":
        changed = await playlist.relocate(args.src, args.dest)
    else:  # pragma: no cover - argparse restricts choices
        raise ValueError(f"Unknown command: {command}")
    if not changed:
        console.print("Nothing changed (index out of range or at boundary).")
    render_playlist(session, console)
    return 0


async def _simulate(
    session: TrackloopSession, args: argparse.Namespace, console: Console
) -> int:
    done = asyncio.Event()

    async def on_event(event: object) -> None:
        if isinstance(event, PlaybackFinished):
            done.set()
        elif isinstance(event, PlayerStateChanged) and event.state.status == "error":
            console.print(event.state.error or "Playback failed.")
            done.set()
        elif isinstance(event, TrackChanged):
            if event.track is None:
                done.set()
            else:
                console.print(f"> {event.index + 1}. {event.track.name}")

    session.subscribe(on_event)
    try:
        if not await session.controller.play_at(args.start):
            if not done.is_set():
                console.print("Nothing to play.")
            return 0
        await asyncio.wait_for(done.wait(), timeout=args.max_seconds)
    except asyncio.TimeoutError:
        console.print("Stopped after time limit.")
    finally:
        session.unsubscribe(on_event)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Starting trackloop CLI command=%s", args.command or "list")
        return asyncio.run(run_command(args, console))
    except StorageError as exc:
        logger.error("Storage failure: %s", exc)
        print(f"Playlist storage failed: {exc.detail}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
