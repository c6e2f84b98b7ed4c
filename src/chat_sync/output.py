"""Console formatting for segmented messages.

The primary entry point is :func:`format_messages`, which returns the
formatted string.  :func:`print_messages` is a convenience wrapper that
writes directly to stdout.
"""

from __future__ import annotations

import sys

from chat_sync.models.message import ExtractedMessage, Role

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH

_ROLE_TAGS = {
    Role.USER: "USER",
    Role.ASSISTANT: "ASSISTANT",
    Role.UNKNOWN: "UNKNOWN",
}


def format_messages(messages: list[ExtractedMessage], source: str = "<string>") -> str:
    """Render *messages* as a banner, one block per message, and a summary.

    Args:
        messages: Messages in transcript order.
        source: Label for where the transcript came from.

    Returns:
        A multi-line string ready for console display.
    """
    lines: list[str] = [_SEPARATOR, "  TRANSCRIPT MESSAGES", _SEPARATOR, f"  Source: {source}"]

    if not messages:
        lines.append("")
        lines.append("  No messages found in this transcript.")

    for idx, message in enumerate(messages, start=1):
        lines.append("")
        lines.append(f"  [{idx}] {_ROLE_TAGS[message.role]}")
        for content_line in message.content.split("\n"):
            lines.append(f"    {content_line}".rstrip())

    lines.append("")
    lines.append("--- SUMMARY ---")
    counts = {role: sum(1 for m in messages if m.role is role) for role in Role}
    lines.append(f"  Messages: {len(messages)}")
    lines.append(
        f"  user={counts[Role.USER]}  assistant={counts[Role.ASSISTANT]}  unknown={counts[Role.UNKNOWN]}"
    )
    lines.append(_SEPARATOR)

    return "\n".join(lines)


def print_messages(messages: list[ExtractedMessage], source: str = "<string>") -> None:
    """Format and print *messages* to stdout."""
    sys.stdout.write(format_messages(messages, source=source) + "\n")
