"""Tests for the periodic sync scheduler."""

from __future__ import annotations

import asyncio

import pytest

from chat_sync.capture import CaptureChannel
from chat_sync.exceptions import PublishError
from chat_sync.models.message import Role, SyncBatch
from chat_sync.models.transcript import TranscriptSnapshot
from chat_sync.publisher import CallbackPublisher
from chat_sync.scheduler import SyncScheduler
from chat_sync.sources import StaticTranscriptSource

_TRANSCRIPT = "You: first question\nCopilot: first answer\nYou: second question\nCopilot: second answer\n"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FlakyPublisher:
    """Fails until ``fail`` is switched off."""

    def __init__(self) -> None:
        self.fail = True
        self.batches: list[SyncBatch] = []

    async def push(self, batch: SyncBatch) -> None:
        if self.fail:
            raise PublishError("broker down", status_code=503)
        self.batches.append(batch)


class _FailingSource:
    name = "failing"

    async def capture(self) -> TranscriptSnapshot:
        raise RuntimeError("export failed")


def _scheduler(
    source: StaticTranscriptSource,
    pushed: list[SyncBatch],
    **kwargs,
) -> SyncScheduler:
    return SyncScheduler(CaptureChannel(source), CallbackPublisher(pushed.append), **kwargs)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestTick:
    """One synchronization cycle."""

    @pytest.mark.asyncio
    async def test_first_tick_pushes_recent_messages(self) -> None:
        pushed: list[SyncBatch] = []
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), pushed, session_id="s-1")

        batch = await scheduler.tick()

        assert batch is not None
        assert pushed == [batch]
        assert [m.role for m in batch.messages] == [Role.USER, Role.ASSISTANT, Role.USER, Role.ASSISTANT]
        assert batch.metadata.method == "periodic_sync"
        assert batch.metadata.session_id == "s-1"
        assert batch.metadata.content_length == len(_TRANSCRIPT)
        assert batch.metadata.message_count == 4

    @pytest.mark.asyncio
    async def test_identical_snapshot_not_pushed_again(self) -> None:
        pushed: list[SyncBatch] = []
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), pushed)

        await scheduler.tick()
        second = await scheduler.tick()

        assert second is None
        assert len(pushed) == 1
        assert scheduler.ticks == 2
        assert scheduler.pushes == 1

    @pytest.mark.asyncio
    async def test_changed_snapshot_pushed(self) -> None:
        pushed: list[SyncBatch] = []
        source = StaticTranscriptSource(_TRANSCRIPT)
        scheduler = _scheduler(source, pushed)

        await scheduler.tick()
        source.append("You: third question\n")
        batch = await scheduler.tick()

        assert batch is not None
        assert batch.messages[-1].content == "third question"
        assert len(pushed) == 2

    @pytest.mark.asyncio
    async def test_recent_messages_limit(self) -> None:
        pushed: list[SyncBatch] = []
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), pushed, recent_messages=1)

        batch = await scheduler.tick()

        assert batch is not None
        assert [m.content for m in batch.messages] == ["second answer"]

    @pytest.mark.asyncio
    async def test_empty_transcript_skipped(self) -> None:
        pushed: list[SyncBatch] = []
        scheduler = _scheduler(StaticTranscriptSource(""), pushed)

        assert await scheduler.tick() is None
        assert pushed == []

    @pytest.mark.asyncio
    async def test_capture_failure_skipped(self) -> None:
        scheduler = SyncScheduler(CaptureChannel(_FailingSource()), CallbackPublisher(lambda b: None))

        assert await scheduler.tick() is None
        assert scheduler.last_synced is None

    @pytest.mark.asyncio
    async def test_failed_push_does_not_advance_pointer(self) -> None:
        publisher = _FlakyPublisher()
        scheduler = SyncScheduler(CaptureChannel(StaticTranscriptSource(_TRANSCRIPT)), publisher)

        assert await scheduler.tick() is None
        assert scheduler.last_synced is None

        publisher.fail = False
        batch = await scheduler.tick()

        assert batch is not None
        assert publisher.batches == [batch]
        assert scheduler.last_synced is not None
        assert scheduler.last_synced.text == _TRANSCRIPT


class TestLifecycle:
    """Starting and stopping the background loop."""

    def test_non_positive_interval_rejected(self) -> None:
        with pytest.raises(ValueError, match="interval"):
            _scheduler(StaticTranscriptSource(), [], interval=0)

    @pytest.mark.asyncio
    async def test_start_runs_immediate_tick(self) -> None:
        pushed: list[SyncBatch] = []
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), pushed, interval=60)

        handle = await scheduler.start()
        try:
            assert handle.running
            assert handle.scheduler is scheduler
            assert len(pushed) == 1
        finally:
            await handle.stop()

        assert not handle.running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self) -> None:
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), [], interval=60)

        handle = await scheduler.start()
        await handle.stop()
        await handle.stop()

        assert not handle.running

    @pytest.mark.asyncio
    async def test_restart_replaces_previous_loop(self) -> None:
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), [], interval=60)

        first = await scheduler.start()
        second = await scheduler.start()
        try:
            assert not first.running
            assert second.running
        finally:
            await second.stop()

    @pytest.mark.asyncio
    async def test_loop_keeps_ticking(self) -> None:
        scheduler = _scheduler(StaticTranscriptSource(_TRANSCRIPT), [], interval=0.01)

        async with await scheduler.start() as handle:
            await asyncio.sleep(0.1)
            assert handle.running

        assert scheduler.ticks > 1
        assert not handle.running
