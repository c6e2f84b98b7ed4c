"""Synchronization session model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from chat_sync.models.transcript import Baseline, utcnow


class SessionStatus(str, Enum):
    """Lifecycle status of a :class:`SyncSession`."""

    RUNNING = "running"
    STABILIZED = "stabilized"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class SyncSession:
    """One prompt/response synchronization session.

    Created by :meth:`chat_sync.engine.SyncEngine.start_session`; terminal
    once it reaches stabilization, timeout, or failure.

    Attributes:
        original_prompt: The prompt whose reply is being awaited.
        baseline: Transcript state captured before the prompt was submitted.
        session_id: Opaque identifier, also stamped on published batches.
        started_at: When the session was created.
        status: Current lifecycle status.
        response: The captured reply, once known.
        error: Failure description for ``failed`` sessions.
    """

    original_prompt: str
    baseline: Baseline
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=utcnow)
    status: SessionStatus = SessionStatus.RUNNING
    response: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not SessionStatus.RUNNING

    def finish(
        self,
        status: SessionStatus,
        response: str | None = None,
        error: str | None = None,
    ) -> None:
        """Move the session to a terminal *status*.

        Terminal sessions never change again; later calls are ignored.

        Raises:
            ValueError: If *status* is ``RUNNING``.
        """
        if status is SessionStatus.RUNNING:
            raise ValueError("finish() requires a terminal status")
        if self.is_terminal:
            return
        self.status = status
        self.response = response
        self.error = error
