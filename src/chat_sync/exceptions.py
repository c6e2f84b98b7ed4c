"""Custom exceptions for the transcript synchronization engine.

Exception hierarchy::

    ChatSyncError
    +-- CaptureError           (transcript source raised or timed out)
    +-- TranscriptResetError   (snapshot shorter than the baseline)
    +-- PublishError           (subscriber push failed)
        +-- PublishAuthError   (HTTP 401 / 403)
        +-- PublishRejectedError (broker answered ``success: false``)

None of these are fatal to the hosting process; the engine catches them
at its loop boundaries and treats the cycle as "nothing new".
"""

from __future__ import annotations


class ChatSyncError(Exception):
    """Base class for all chat-sync errors."""


class CaptureError(ChatSyncError):
    """Raised when a transcript snapshot could not be captured.

    Attributes:
        source_name: Human-readable name of the transcript source.
    """

    def __init__(self, message: str, source_name: str = "") -> None:
        super().__init__(message)
        self.source_name = source_name


class TranscriptResetError(ChatSyncError):
    """Raised when a snapshot is shorter than the current baseline.

    The transcript is append-only as far as the engine is concerned, so a
    shrink means the source was cleared or rewritten.  Callers adopt the
    new snapshot as a fresh baseline and emit nothing for that cycle.

    Attributes:
        baseline_length: Length of the baseline that was being diffed against.
        snapshot_length: Length of the (shorter) new snapshot.
    """

    def __init__(self, baseline_length: int, snapshot_length: int) -> None:
        super().__init__(
            f"Transcript shrank from {baseline_length} to {snapshot_length} chars"
        )
        self.baseline_length = baseline_length
        self.snapshot_length = snapshot_length


class PublishError(ChatSyncError):
    """Raised when a batch could not be delivered to the subscriber.

    Attributes:
        status_code: HTTP status code, or ``None`` if the failure did not
            come from an HTTP response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PublishAuthError(PublishError):
    """Raised when the message broker refuses the device credentials."""

    def __init__(self, message: str = "Publisher authentication failed", status_code: int = 401) -> None:
        super().__init__(message, status_code=status_code)


class PublishRejectedError(PublishError):
    """Raised when the broker accepted the request but reported failure."""
