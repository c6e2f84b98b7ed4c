"""Message segmentation for exported chat transcripts.

Splits a block of transcript text into ordered, role-tagged
:class:`~chat_sync.models.message.ExtractedMessage` objects using a
line-oriented state machine:

- A line a :class:`~chat_sync.classify.RoleClassifier` rule claims is a
  *message start*: the open message (if any) is closed and a new one opens,
  seeded with the text after the speaker prefix.
- Any other line is appended verbatim to the open message.
- With no open message, a line that reads like assistant prose opens one
  implicitly; anything else is dropped.
- Requester echo lines are dropped before classification.

Messages are emitted in the order they were opened; nothing is sorted by role.
"""

from __future__ import annotations

import logging

from chat_sync.classify import RequesterEchoFilter, RoleClassifier, looks_like_response
from chat_sync.models.message import ExtractedMessage, Role

logger = logging.getLogger(__name__)


class MessageSegmenter:
    """Converts transcript text into role-tagged messages.

    Args:
        classifier: Speaker-marker rules.  Defaults to the built-in rules.
        echo_filter: Requester-echo detection.  The prompt passed to
            :meth:`segment` is layered on top of it.
        implicit_role: Role given to a message opened by unmarked prose.
    """

    def __init__(
        self,
        classifier: RoleClassifier | None = None,
        echo_filter: RequesterEchoFilter | None = None,
        implicit_role: Role = Role.UNKNOWN,
    ) -> None:
        self.classifier = classifier or RoleClassifier()
        self.echo_filter = echo_filter or RequesterEchoFilter()
        self.implicit_role = implicit_role

    def segment(self, text: str, original_prompt: str | None = None) -> list[ExtractedMessage]:
        """Segment *text* into messages.

        Args:
            text: Transcript text (a diff suffix or a whole transcript).
            original_prompt: Prompt whose echo lines should be dropped.

        Returns:
            Messages in the order they were opened.  Messages whose content
            is empty once stripped are not emitted.
        """
        if not text or not text.strip():
            return []

        echo = self.echo_filter.for_prompt(original_prompt) if original_prompt else self.echo_filter
        messages: list[ExtractedMessage] = []

        cur_role: Role | None = None
        cur_parts: list[str] = []
        cur_raw_line = ""
        dropped = 0

        def _flush() -> None:
            if cur_role is None:
                return
            content = "\n".join(cur_parts).strip()
            if content:
                messages.append(
                    ExtractedMessage(role=cur_role, content=content, raw_line=cur_raw_line)
                )

        for line in text.split("\n"):
            line = line.rstrip("\r")

            if echo.is_echo(line):
                continue

            classification = self.classifier.classify(line)

            if classification.is_message_start:
                _flush()
                cur_role = classification.role
                cur_parts = [classification.content] if classification.content else []
                cur_raw_line = line
            elif cur_role is not None:
                cur_parts.append(line)
            elif looks_like_response(line):
                cur_role = self.implicit_role
                cur_parts = [line.strip()]
                cur_raw_line = line
            elif line.strip():
                dropped += 1

        _flush()

        if dropped:
            logger.debug("Dropped %d orphan line(s) before the first message", dropped)
        logger.debug("Segmented %d chars into %d message(s)", len(text), len(messages))
        return messages

    def recent(self, text: str, count: int) -> list[ExtractedMessage]:
        """Segment *text* and keep only the last *count* messages."""
        if count <= 0:
            return []
        return self.segment(text)[-count:]
