"""Session orchestrator for the transcript synchronization engine.

Wires the components together behind the session interface the
orchestration layer uses:

1. :meth:`SyncEngine.start_session` -- capture a baseline, open a session,
   and (optionally) start the periodic scheduler.
2. :meth:`SyncEngine.await_response` -- wait for the reply to the session's
   prompt to stabilize and publish it.
3. :meth:`SyncEngine.collect_new_messages` -- diff and segment whatever was
   appended since the last commit.
4. :meth:`SyncEngine.stop_session` -- tear the session down.

Every component shares one :class:`~chat_sync.capture.CaptureChannel`, so
the monitor and the scheduler never capture concurrently.
"""

from __future__ import annotations

import logging
from types import TracebackType

from chat_sync.baseline import BaselineTracker
from chat_sync.capture import CaptureChannel
from chat_sync.config import Settings
from chat_sync.diff import DiffExtractor
from chat_sync.exceptions import CaptureError
from chat_sync.models.message import ExtractedMessage, Role, SyncBatch
from chat_sync.models.session import SessionStatus, SyncSession
from chat_sync.models.transcript import TranscriptSnapshot
from chat_sync.monitor import StabilizationMonitor
from chat_sync.publisher import Publisher
from chat_sync.scheduler import SyncHandle, SyncScheduler
from chat_sync.segmenter import MessageSegmenter
from chat_sync.sources import TranscriptSource

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs synchronization sessions against one transcript source.

    Args:
        source: The transcript source (wrapped in a capture channel), or an
            existing :class:`CaptureChannel` to share.
        publisher: Receives every batch the engine produces.
        settings: Timing configuration.  Defaults to :class:`Settings`
            defaults.
        segmenter: Message segmenter shared by all paths.
        extractor: Diff extractor used by the monitor and incremental
            collection.
        monitor: Stabilization monitor.  Built from the channel and
            extractor when omitted.
    """

    def __init__(
        self,
        source: TranscriptSource | CaptureChannel,
        publisher: Publisher,
        settings: Settings | None = None,
        segmenter: MessageSegmenter | None = None,
        extractor: DiffExtractor | None = None,
        monitor: StabilizationMonitor | None = None,
    ) -> None:
        self.settings = settings or Settings()
        if isinstance(source, CaptureChannel):
            self.channel = source
        else:
            self.channel = CaptureChannel(source, timeout=self.settings.capture_timeout)
        self.publisher = publisher
        self.segmenter = segmenter or MessageSegmenter()
        self.extractor = extractor or DiffExtractor()
        self.monitor = monitor or StabilizationMonitor(self.channel, self.extractor)
        self.tracker = BaselineTracker(self.channel)
        self._session: SyncSession | None = None
        self._sync_handles: dict[str, SyncHandle] = {}

    # ------------------------------------------------------------------
    # Session interface
    # ------------------------------------------------------------------

    @property
    def active_session(self) -> SyncSession | None:
        return self._session

    @property
    def sync_handle(self) -> SyncHandle | None:
        """Scheduler handle of the active session, if it runs one."""
        if self._session is None:
            return None
        return self._sync_handles.get(self._session.session_id)

    async def start_session(self, original_prompt: str, continuous: bool = True) -> SyncSession:
        """Open a session for *original_prompt*.

        Any previous session is stopped first; there is exactly one active
        session and one periodic scheduler per engine.  A failed baseline
        capture does not abort the session: the empty baseline makes the
        whole transcript count as new, and the prompt-based extraction
        strategies still apply.

        Args:
            original_prompt: The prompt the requester is about to submit.
            continuous: Whether to start the periodic scheduler.

        Returns:
            The new running :class:`SyncSession`.
        """
        if self._session is not None:
            await self.stop_session(self._session)

        try:
            baseline = await self.tracker.capture()
        except CaptureError as exc:
            logger.warning("Could not capture baseline, starting from empty: %s", exc)
            baseline = self.tracker.adopt(TranscriptSnapshot.empty())

        session = SyncSession(original_prompt=original_prompt, baseline=baseline)
        self._session = session
        logger.info(
            "Session %s started (baseline %d chars)",
            session.session_id,
            baseline.length,
        )

        if continuous:
            scheduler = SyncScheduler(
                self.channel,
                self.publisher,
                segmenter=self.segmenter,
                interval=self.settings.sync_interval,
                recent_messages=self.settings.recent_messages,
                session_id=session.session_id,
            )
            self._sync_handles[session.session_id] = await scheduler.start()

        return session

    async def await_response(self, session: SyncSession) -> str | None:
        """Wait for the reply to *session*'s prompt and publish it.

        Sets the session's terminal status: ``stabilized`` when the reply
        stopped growing, ``timed_out`` when only a partial candidate was
        found, ``failed`` when nothing was captured.

        Returns:
            The reply text, or ``None``.
        """
        if session.is_terminal:
            logger.warning("Session %s already %s", session.session_id, session.status.value)
            return session.response

        result = await self.monitor.run(
            session.original_prompt,
            session.baseline,
            max_duration=self.settings.max_wait,
            poll_interval=self.settings.poll_interval,
            stable_threshold=self.settings.stable_threshold,
            initial_delay=self.settings.initial_delay,
        )

        if result.content is None:
            session.finish(SessionStatus.FAILED, error="No reply captured before timeout")
            logger.warning("Session %s: no reply captured", session.session_id)
            return None

        session.finish(result.status, response=result.content)

        message = ExtractedMessage(
            role=Role.ASSISTANT,
            content=result.content,
            raw_line=result.content.split("\n", 1)[0],
        )
        batch = SyncBatch.build(
            [message],
            content_length=len(result.content),
            method="stabilization",
            session_id=session.session_id,
        )
        await self._publish(batch)
        return result.content

    async def collect_new_messages(self, session: SyncSession) -> list[ExtractedMessage]:
        """Segment whatever was appended since the last committed baseline.

        Advances the tracker's baseline on success.  A transcript that
        shrank is adopted as the new baseline and yields no messages.

        Returns:
            New messages in transcript order (possibly empty).
        """
        try:
            snapshot = await self.channel.capture()
        except CaptureError as exc:
            logger.warning("Incremental capture failed: %s", exc)
            return []

        if self.tracker.check_reset(snapshot):
            return []

        baseline = self.tracker.current()
        base_length = baseline.length if baseline is not None else 0
        if snapshot.length <= base_length:
            return []

        suffix = snapshot.text[base_length:]
        messages = self.segmenter.segment(suffix, original_prompt=session.original_prompt)
        self.tracker.adopt(snapshot)

        if messages:
            batch = SyncBatch.build(
                messages,
                content_length=snapshot.length,
                method="incremental",
                session_id=session.session_id,
            )
            await self._publish(batch)
        return messages

    async def stop_session(self, session: SyncSession) -> None:
        """Stop *session* and the scheduler it owns.  Idempotent.

        Only *session*'s own scheduler is stopped, so stopping an older
        session never disturbs the active one.
        """
        handle = self._sync_handles.pop(session.session_id, None)
        if handle is not None:
            await handle.stop()

        if self._session is session:
            self._session = None
        elif handle is None and session.is_terminal:
            return

        session.finish(SessionStatus.FAILED, error="stopped")
        logger.info("Session %s stopped (%s)", session.session_id, session.status.value)

    async def close(self) -> None:
        """Stop the active session and any scheduler still running."""
        if self._session is not None:
            await self.stop_session(self._session)
        while self._sync_handles:
            _, handle = self._sync_handles.popitem()
            await handle.stop()

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _publish(self, batch: SyncBatch) -> bool:
        try:
            await self.publisher.push(batch)
        except Exception as exc:
            logger.error(
                "Failed to publish %s batch (%d message(s)): %s",
                batch.metadata.method,
                batch.metadata.message_count,
                exc,
            )
            return False
        return True
