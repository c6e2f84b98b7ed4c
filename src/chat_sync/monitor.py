"""Wait for a reply to stop growing.

The generation process exposes no completion signal, so "the reply is done"
is approximated by stabilization: the extracted reply and the full
transcript are unchanged for ``stable_threshold`` consecutive polls.  On
timeout the best partial candidate is returned rather than discarded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from chat_sync.capture import CaptureChannel
from chat_sync.diff import DiffExtractor
from chat_sync.exceptions import CaptureError, TranscriptResetError
from chat_sync.models.session import SessionStatus
from chat_sync.models.transcript import Baseline, StabilizationState

logger = logging.getLogger(__name__)

_DEFAULT_MAX_DURATION = 15.0  # seconds
_DEFAULT_POLL_INTERVAL = 0.8  # seconds
_DEFAULT_STABLE_THRESHOLD = 2


@dataclass(frozen=True)
class MonitorResult:
    """Outcome of one stabilization run.

    Attributes:
        content: The stabilized reply, the best partial candidate on
            timeout, or ``None`` if nothing was ever extracted.
        status: ``STABILIZED`` or ``TIMED_OUT``.
        polls: Number of captures attempted.
        elapsed: Seconds the run took, by the monitor's clock.
    """

    content: str | None
    status: SessionStatus
    polls: int
    elapsed: float

    @property
    def stabilized(self) -> bool:
        return self.status is SessionStatus.STABILIZED


class StabilizationMonitor:
    """Polls a capture channel until the extracted reply stops changing.

    Args:
        channel: Capture channel shared with every other component.
        extractor: Diff extractor.  Defaults to the standard strategy chain.
        clock: Monotonic clock, injectable for tests.
        sleep: Coroutine used between polls, injectable for tests.
    """

    def __init__(
        self,
        channel: CaptureChannel,
        extractor: DiffExtractor | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._channel = channel
        self._extractor = extractor or DiffExtractor()
        self._clock = clock
        self._sleep = sleep

    async def monitor(
        self,
        original_prompt: str,
        baseline: Baseline | None,
        max_duration: float = _DEFAULT_MAX_DURATION,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
        stable_threshold: int = _DEFAULT_STABLE_THRESHOLD,
    ) -> str | None:
        """Return the stabilized reply (or best candidate), or ``None``."""
        result = await self.run(
            original_prompt,
            baseline,
            max_duration=max_duration,
            poll_interval=poll_interval,
            stable_threshold=stable_threshold,
        )
        return result.content

    async def run(
        self,
        original_prompt: str,
        baseline: Baseline | None,
        max_duration: float = _DEFAULT_MAX_DURATION,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
        stable_threshold: int = _DEFAULT_STABLE_THRESHOLD,
        initial_delay: float = 0.0,
    ) -> MonitorResult:
        """Run the poll loop until stabilization or *max_duration*.

        Each iteration sleeps *poll_interval*, captures, and extracts
        against *baseline*.  Sleeps and captures are cut short at the
        deadline, so the run never outlasts *max_duration*.  Capture
        failures and empty extractions count as "no progress".  A shrunken
        transcript replaces the local baseline and yields nothing for that
        poll.

        Args:
            original_prompt: Prompt whose reply is awaited.
            baseline: Transcript state from before the prompt was sent.
            max_duration: Hard bound on the run, in seconds.  Includes
                *initial_delay*.
            poll_interval: Seconds to sleep before each capture.
            stable_threshold: Consecutive identical polls (after the first
                sighting) that terminate the run.
            initial_delay: Seconds to wait before the first poll, giving the
                generator time to start.

        Raises:
            ValueError: If *max_duration* or *poll_interval* is negative or
                *stable_threshold* is below 1.
        """
        if max_duration < 0 or poll_interval < 0:
            raise ValueError("max_duration and poll_interval must not be negative")
        if stable_threshold < 1:
            raise ValueError("stable_threshold must be at least 1")

        state = StabilizationState()
        start = self._clock()

        logger.info(
            "Waiting for reply (max %.1fs, poll %.1fs, threshold %d)",
            max_duration,
            poll_interval,
            stable_threshold,
        )

        if initial_delay > 0:
            await self._sleep(min(initial_delay, max_duration))

        while True:
            remaining = max_duration - (self._clock() - start)
            if remaining <= 0:
                break
            await self._sleep(min(poll_interval, remaining))
            elapsed = self._clock() - start
            remaining = max_duration - elapsed
            if remaining <= 0:
                break
            state.polls += 1

            try:
                async with asyncio.timeout(remaining):
                    snapshot = await self._channel.capture()
            except TimeoutError:
                logger.warning("[%.1fs] Capture still running at the deadline", self._clock() - start)
                break
            except CaptureError as exc:
                state.no_progress += 1
                logger.warning("[%.1fs] Capture failed, retrying next poll: %s", elapsed, exc)
                continue

            try:
                content = self._extractor.extract_new(snapshot, baseline, original_prompt)
            except TranscriptResetError as exc:
                state.no_progress += 1
                state.stable_count = 0
                baseline = snapshot
                logger.warning("[%.1fs] %s; baseline reset", elapsed, exc)
                continue

            if content is None:
                state.no_progress += 1
                logger.debug("[%.1fs] Waiting for new content...", elapsed)
                continue

            if len(content) == state.last_extracted_length and snapshot.text == state.last_full_snapshot:
                state.stable_count += 1
                logger.debug("[%.1fs] Reply stable for %d poll(s)", elapsed, state.stable_count)
                if state.stable_count >= stable_threshold:
                    logger.info(
                        "[%.1fs] Reply complete after %d stable poll(s) (%d chars)",
                        elapsed,
                        state.stable_count,
                        len(content),
                    )
                    return MonitorResult(
                        content=content,
                        status=SessionStatus.STABILIZED,
                        polls=state.polls,
                        elapsed=elapsed,
                    )
            else:
                state.stable_count = 0
                state.last_extracted_length = len(content)
                state.last_full_snapshot = snapshot.text
                state.best_candidate = content
                logger.debug("[%.1fs] Reply growing: %d chars", elapsed, len(content))

        elapsed = self._clock() - start
        if state.best_candidate is not None:
            logger.info(
                "[%.1fs] Timed out; returning best candidate (%d chars)",
                elapsed,
                len(state.best_candidate),
            )
        else:
            logger.warning("[%.1fs] Timed out with no reply captured", elapsed)

        return MonitorResult(
            content=state.best_candidate,
            status=SessionStatus.TIMED_OUT,
            polls=state.polls,
            elapsed=elapsed,
        )
