"""Single-owner access point to a transcript source.

Capturing is stateful and exclusive (exporting the transcript can race with
a concurrent export), so every component that needs a snapshot -- the
baseline tracker, the stabilization monitor, the periodic scheduler -- goes
through one :class:`CaptureChannel`.  Concurrent callers queue on an
:class:`asyncio.Lock` rather than interleave.
"""

from __future__ import annotations

import asyncio
import logging

from chat_sync.exceptions import CaptureError
from chat_sync.models.transcript import TranscriptSnapshot
from chat_sync.sources import TranscriptSource

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0  # seconds


class CaptureChannel:
    """Serializes capture calls to one :class:`TranscriptSource`.

    Args:
        source: The underlying transcript source.
        timeout: Seconds before a single capture is abandoned.
    """

    def __init__(self, source: TranscriptSource, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.source = source
        self.timeout = timeout
        self._lock = asyncio.Lock()
        self.captures = 0
        self.failures = 0

    @property
    def busy(self) -> bool:
        """Whether a capture is currently in flight."""
        return self._lock.locked()

    async def capture(self) -> TranscriptSnapshot:
        """Capture one snapshot, waiting for any in-flight capture first.

        Returns:
            The snapshot produced by the source.

        Raises:
            CaptureError: If the source raised or did not answer within
                :attr:`timeout` seconds.
        """
        async with self._lock:
            self.captures += 1
            try:
                snapshot = await asyncio.wait_for(self.source.capture(), timeout=self.timeout)
            except asyncio.CancelledError:
                raise
            except TimeoutError as exc:
                self.failures += 1
                raise CaptureError(
                    f"Capture from {self.source.name} timed out after {self.timeout:.1f}s",
                    source_name=self.source.name,
                ) from exc
            except Exception as exc:
                self.failures += 1
                raise CaptureError(
                    f"Capture from {self.source.name} failed: {exc}",
                    source_name=self.source.name,
                ) from exc

        logger.debug("Captured %d chars from %s", snapshot.length, self.source.name)
        return snapshot
