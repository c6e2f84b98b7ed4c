"""Continuous background synchronization of the whole transcript.

Every tick captures a snapshot, skips it if it is byte-identical to the last
synchronized one, otherwise segments the **entire** transcript and pushes the
most recent messages.  The loop runs until its :class:`SyncHandle` is
stopped; there is no idle timeout.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from chat_sync.capture import CaptureChannel
from chat_sync.exceptions import CaptureError
from chat_sync.models.message import SyncBatch
from chat_sync.models.transcript import TranscriptSnapshot
from chat_sync.publisher import Publisher
from chat_sync.segmenter import MessageSegmenter

logger = logging.getLogger(__name__)

_DEFAULT_INTERVAL = 5.0  # seconds
_DEFAULT_RECENT_MESSAGES = 15


class SyncHandle:
    """Owned handle to a running :class:`SyncScheduler` loop.

    :meth:`stop` is the only teardown path.  The handle is also an async
    context manager, so ``async with await scheduler.start():`` scopes the
    loop to a block.
    """

    def __init__(self, scheduler: SyncScheduler, task: asyncio.Task[None]) -> None:
        self._scheduler = scheduler
        self._task = task

    @property
    def running(self) -> bool:
        return not self._task.done()

    @property
    def scheduler(self) -> SyncScheduler:
        return self._scheduler

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish.  Idempotent."""
        if self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic sync stopped after %d tick(s)", self._scheduler.ticks)

    async def __aenter__(self) -> SyncHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


class SyncScheduler:
    """Periodically pushes the latest transcript messages to a publisher.

    Args:
        channel: Capture channel shared with every other component.
        publisher: Receives one :class:`SyncBatch` per changed snapshot.
        segmenter: Message segmenter.
        interval: Seconds between ticks.
        recent_messages: How many trailing messages each batch carries.
        session_id: Stamped on every batch's metadata.
    """

    def __init__(
        self,
        channel: CaptureChannel,
        publisher: Publisher,
        segmenter: MessageSegmenter | None = None,
        interval: float = _DEFAULT_INTERVAL,
        recent_messages: int = _DEFAULT_RECENT_MESSAGES,
        session_id: str | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._channel = channel
        self._publisher = publisher
        self._segmenter = segmenter or MessageSegmenter()
        self.interval = interval
        self.recent_messages = recent_messages
        self.session_id = session_id
        self._last_synced: TranscriptSnapshot | None = None
        self._handle: SyncHandle | None = None
        self.ticks = 0
        self.pushes = 0

    @property
    def last_synced(self) -> TranscriptSnapshot | None:
        """Snapshot behind the last successful push."""
        return self._last_synced

    async def start(self) -> SyncHandle:
        """Run one tick immediately, then keep ticking in the background.

        Starting an already running scheduler stops the previous loop first.

        Returns:
            The handle that owns the background loop.
        """
        if self._handle is not None:
            await self._handle.stop()

        await self.tick()
        task = asyncio.create_task(self._loop(), name="chat-sync-periodic")
        self._handle = SyncHandle(self, task)
        logger.info("Periodic sync started (interval=%.1fs)", self.interval)
        return self._handle

    async def tick(self) -> SyncBatch | None:
        """Run one synchronization cycle.

        Returns:
            The pushed batch, or ``None`` when the tick was skipped (capture
            failed, transcript empty, unchanged, or the push failed).
        """
        self.ticks += 1

        try:
            snapshot = await self._channel.capture()
        except CaptureError as exc:
            logger.warning("Tick %d: capture failed, retrying next tick: %s", self.ticks, exc)
            return None

        if snapshot.is_empty:
            logger.debug("Tick %d: transcript empty", self.ticks)
            return None

        if self._last_synced is not None and snapshot.text == self._last_synced.text:
            logger.debug("Tick %d: transcript unchanged (%d chars)", self.ticks, snapshot.length)
            return None

        messages = self._segmenter.recent(snapshot.text, self.recent_messages)
        batch = SyncBatch.build(
            messages,
            content_length=snapshot.length,
            method="periodic_sync",
            session_id=self.session_id,
        )

        try:
            await self._publisher.push(batch)
        except Exception as exc:
            logger.error("Tick %d: failed to push %d message(s): %s", self.ticks, len(messages), exc)
            return None

        self._last_synced = snapshot
        self.pushes += 1
        logger.info(
            "Tick %d: pushed %d message(s) from %d chars",
            self.ticks,
            len(messages),
            snapshot.length,
        )
        return batch

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic sync tick error (continuing)")
