"""Entry point for ``python -m chat_sync``.

Provides a CLI around the synchronization engine.  Uses stdlib
:mod:`argparse` for argument parsing.

Subcommands:
    segment -- Default. Segment a transcript file and print the messages.
    watch   -- Run the periodic sync until interrupted.
    wait    -- Wait for the reply to a prompt to stabilize and print it.

Exit codes:
    0 -- Command completed successfully.
    1 -- An error occurred (file not found, config error, no reply).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import shlex
import sys
from pathlib import Path

from chat_sync.capture import CaptureChannel
from chat_sync.config import ConfigError, Settings, load_settings
from chat_sync.engine import SyncEngine
from chat_sync.log import setup_logging
from chat_sync.output import print_messages
from chat_sync.publisher import CallbackPublisher, HttpPublisher, Publisher, StreamPublisher
from chat_sync.scheduler import SyncScheduler
from chat_sync.segmenter import MessageSegmenter
from chat_sync.sources import CommandTranscriptSource, FileTranscriptSource, TranscriptSource

_SUBCOMMANDS = {"segment", "watch", "wait"}


def _add_verbose(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--file",
        type=str,
        default=None,
        help="Transcript file that an exporter keeps overwriting.",
    )
    group.add_argument(
        "--command",
        dest="shell_command",
        type=str,
        default=None,
        help="Shell-style command whose stdout is the full transcript.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands.

    Returns:
        Configured :class:`argparse.ArgumentParser` with ``segment``,
        ``watch`` and ``wait`` subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="chat-sync",
        description="Synchronize a live chat transcript to a remote subscriber.",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- "segment" subcommand (default) -------------------------------
    segment_parser = subparsers.add_parser(
        "segment",
        help="Segment a transcript file and print the messages.",
    )
    segment_parser.add_argument(
        "transcript_file",
        type=str,
        help="Path to the transcript text file.",
    )
    segment_parser.add_argument(
        "--last",
        type=int,
        default=None,
        help="Only print the last N messages.",
    )
    _add_verbose(segment_parser)

    # --- "watch" subcommand -------------------------------------------
    watch_parser = subparsers.add_parser(
        "watch",
        help="Run the periodic sync until interrupted.",
    )
    _add_source_options(watch_parser)
    watch_parser.add_argument(
        "--publish",
        action="store_true",
        default=False,
        help="Push batches to the message broker instead of printing them.",
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (defaults to SYNC_INTERVAL from config).",
    )
    _add_verbose(watch_parser)

    # --- "wait" subcommand --------------------------------------------
    wait_parser = subparsers.add_parser(
        "wait",
        help="Wait for the reply to PROMPT to stabilize and print it.",
    )
    wait_parser.add_argument(
        "prompt",
        type=str,
        help="The prompt whose reply is awaited.",
    )
    _add_source_options(wait_parser)
    _add_verbose(wait_parser)

    return parser


def _resolve_command(
    parser: argparse.ArgumentParser,
    argv: list[str],
) -> argparse.Namespace | None:
    """Parse *argv* with an implicit ``segment`` subcommand.

    If the first token is not a known subcommand, ``segment`` is prepended
    so that ``python -m chat_sync transcript.txt`` works.

    Args:
        parser: The top-level argument parser.
        argv: Command-line arguments.

    Returns:
        Parsed :class:`argparse.Namespace`, or ``None`` when *argv* is
        empty (the caller prints help).
    """
    if not argv:
        return None
    if argv[0] not in _SUBCOMMANDS and argv[0] not in {"-h", "--help"}:
        argv = ["segment", *argv]

    return parser.parse_args(argv)


def _load_settings(args: argparse.Namespace, require_publisher: bool = False) -> Settings | None:
    """Load settings and apply LOG_LEVEL unless --verbose was given.

    Prints the error and returns ``None`` on a configuration problem.
    """
    try:
        settings = load_settings(require_publisher=require_publisher)
        if not args.verbose:
            setup_logging(settings.log_level)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return None
    return settings


def _build_source(args: argparse.Namespace) -> TranscriptSource:
    if args.file is not None:
        return FileTranscriptSource(args.file)
    return CommandTranscriptSource(shlex.split(args.shell_command))


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _handle_segment(args: argparse.Namespace) -> int:
    """Execute the ``segment`` subcommand.

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    transcript_path = Path(args.transcript_file)

    if not transcript_path.exists():
        print(f"Error: File not found: {transcript_path}", file=sys.stderr)
        return 1

    if not transcript_path.is_file():
        print(f"Error: Not a file: {transcript_path}", file=sys.stderr)
        return 1

    try:
        text = transcript_path.read_text(encoding="utf-8")
    except (PermissionError, UnicodeDecodeError) as exc:
        print(f"Error: Cannot read {transcript_path}: {exc}", file=sys.stderr)
        return 1

    segmenter = MessageSegmenter()
    if args.last is not None:
        messages = segmenter.recent(text, args.last)
    else:
        messages = segmenter.segment(text)

    print_messages(messages, source=str(transcript_path))
    return 0


async def _run_watch(channel: CaptureChannel, publisher: Publisher, settings: Settings) -> None:
    scheduler = SyncScheduler(
        channel,
        publisher,
        interval=settings.sync_interval,
        recent_messages=settings.recent_messages,
    )
    async with await scheduler.start():
        await _wait_for_interrupt()


async def _wait_for_interrupt() -> None:
    await asyncio.Event().wait()


def _handle_watch(args: argparse.Namespace) -> int:
    """Execute the ``watch`` subcommand.

    Runs until interrupted with Ctrl-C, which is a normal exit.

    Returns:
        Exit code: ``0`` on interrupt, ``1`` on configuration error.
    """
    settings = _load_settings(args, require_publisher=args.publish)
    if settings is None:
        return 1

    if args.interval is not None:
        if args.interval <= 0:
            print("Error: --interval must be positive", file=sys.stderr)
            return 1
        settings = dataclasses.replace(settings, sync_interval=args.interval)

    publisher: Publisher
    if args.publish:
        publisher = HttpPublisher(
            settings.api_url,  # type: ignore[arg-type]
            settings.pairing_code,  # type: ignore[arg-type]
            settings.device_token,  # type: ignore[arg-type]
            timeout=settings.publish_timeout,
        )
    else:
        publisher = StreamPublisher()

    channel = CaptureChannel(_build_source(args), timeout=settings.capture_timeout)
    try:
        asyncio.run(_run_watch(channel, publisher, settings))
    except KeyboardInterrupt:
        print("Stopped.", file=sys.stderr)
    return 0


async def _run_wait(source: TranscriptSource, prompt: str, settings: Settings) -> str | None:
    publisher = CallbackPublisher(lambda batch: None)
    async with SyncEngine(source, publisher, settings=settings) as engine:
        session = await engine.start_session(prompt, continuous=False)
        return await engine.await_response(session)


def _handle_wait(args: argparse.Namespace) -> int:
    """Execute the ``wait`` subcommand.

    Returns:
        Exit code: ``0`` when a reply was captured, ``1`` otherwise.
    """
    settings = _load_settings(args)
    if settings is None:
        return 1

    try:
        response = asyncio.run(_run_wait(_build_source(args), args.prompt, settings))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 1

    if response is None:
        print("Error: No reply captured", file=sys.stderr)
        return 1

    sys.stdout.write(response + "\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the chat-sync CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``
            when ``None`` (the normal case).

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    parser = build_parser()
    args = _resolve_command(parser, argv if argv is not None else sys.argv[1:])
    if args is None:
        parser.print_help()
        return 0

    log_level = "DEBUG" if getattr(args, "verbose", False) else "INFO"
    setup_logging(log_level)

    if args.command == "watch":
        return _handle_watch(args)
    if args.command == "wait":
        return _handle_wait(args)

    return _handle_segment(args)


if __name__ == "__main__":
    raise SystemExit(main())
