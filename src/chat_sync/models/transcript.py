"""Transcript snapshot data models.

These dataclasses hold raw transcript state.  They are intentionally simple
stdlib dataclasses (not Pydantic): they never leave the process, and a
snapshot is rebuilt on every capture.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class TranscriptSnapshot:
    """The full text of a conversation as returned by one export call.

    Attributes:
        text: The exported transcript text, verbatim.
        captured_at: When the capture completed.
    """

    text: str
    captured_at: datetime = field(default_factory=utcnow)

    @property
    def length(self) -> int:
        """Length of :attr:`text` in characters."""
        return len(self.text)

    @property
    def is_empty(self) -> bool:
        return not self.text

    @classmethod
    def empty(cls) -> TranscriptSnapshot:
        """Build a zero-length snapshot (source had nothing to export)."""
        return cls(text="")


# A baseline is a snapshot designated as "already synchronized"; it is a
# role, not a different shape.
Baseline = TranscriptSnapshot


@dataclass
class StabilizationState:
    """Mutable bookkeeping for one stabilization run.

    Attributes:
        last_extracted_length: Length of the candidate seen on the previous
            productive poll.
        stable_count: Consecutive polls that saw an identical candidate and
            identical full snapshot.
        best_candidate: Most recent non-empty extraction, returned on timeout.
        last_full_snapshot: Full transcript text of the previous productive poll.
        polls: Number of captures attempted.
        no_progress: Polls that produced no extractable content.
    """

    last_extracted_length: int = 0
    stable_count: int = 0
    best_candidate: str | None = None
    last_full_snapshot: str = ""
    polls: int = 0
    no_progress: int = 0
