"""Baseline tracking: the last transcript snapshot treated as "already seen"."""

from __future__ import annotations

import logging

from chat_sync.capture import CaptureChannel
from chat_sync.models.transcript import Baseline, TranscriptSnapshot

logger = logging.getLogger(__name__)


class BaselineTracker:
    """Holds exactly one active baseline per synchronization session.

    The baseline is replaced wholesale whenever a cycle commits new content;
    it is never merged or appended to.

    Args:
        channel: Capture channel used by :meth:`capture`.
    """

    def __init__(self, channel: CaptureChannel) -> None:
        self._channel = channel
        self._baseline: Baseline | None = None

    async def capture(self) -> Baseline:
        """Capture a fresh snapshot and adopt it as the baseline.

        Raises:
            CaptureError: Propagated from the channel; the previous
                baseline is kept.
        """
        snapshot = await self._channel.capture()
        self.adopt(snapshot)
        logger.info("Baseline captured (%d chars)", snapshot.length)
        return snapshot

    def current(self) -> Baseline | None:
        """Return the active baseline, or ``None`` before the first capture."""
        return self._baseline

    def adopt(self, snapshot: TranscriptSnapshot) -> Baseline:
        """Replace the baseline with *snapshot*."""
        self._baseline = snapshot
        return snapshot

    def check_reset(self, snapshot: TranscriptSnapshot) -> bool:
        """Adopt *snapshot* if the transcript shrank below the baseline.

        An empty snapshot is content-poor, not a rewrite, and never counts
        as a reset.

        Returns:
            ``True`` if a reset happened (caller must emit nothing this cycle).
        """
        baseline = self._baseline
        if baseline is None or snapshot.is_empty or snapshot.length >= baseline.length:
            return False
        logger.warning(
            "Transcript shrank from %d to %d chars; adopting it as a fresh baseline",
            baseline.length,
            snapshot.length,
        )
        self.adopt(snapshot)
        return True
