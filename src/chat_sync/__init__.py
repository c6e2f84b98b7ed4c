"""chat-sync: live transcript synchronization.

Watches a growing chat transcript, segments it into role-attributed
messages, detects when a reply has finished streaming, and pushes new
messages to a remote subscriber.
"""

from __future__ import annotations

from chat_sync.classify import RequesterEchoFilter, RoleClassifier
from chat_sync.diff import DiffExtractor
from chat_sync.engine import SyncEngine
from chat_sync.exceptions import (
    CaptureError,
    ChatSyncError,
    PublishAuthError,
    PublishError,
    PublishRejectedError,
    TranscriptResetError,
)
from chat_sync.models import (
    Baseline,
    ExtractedMessage,
    Role,
    SessionStatus,
    SyncBatch,
    SyncMetadata,
    SyncSession,
    TranscriptSnapshot,
)
from chat_sync.monitor import StabilizationMonitor
from chat_sync.publisher import CallbackPublisher, HttpPublisher, StreamPublisher
from chat_sync.scheduler import SyncHandle, SyncScheduler
from chat_sync.segmenter import MessageSegmenter
from chat_sync.sources import CommandTranscriptSource, FileTranscriptSource, StaticTranscriptSource

__version__ = "0.1.0"

__all__ = [
    "Baseline",
    "CallbackPublisher",
    "CaptureError",
    "ChatSyncError",
    "CommandTranscriptSource",
    "DiffExtractor",
    "ExtractedMessage",
    "FileTranscriptSource",
    "HttpPublisher",
    "MessageSegmenter",
    "PublishAuthError",
    "PublishError",
    "PublishRejectedError",
    "RequesterEchoFilter",
    "Role",
    "RoleClassifier",
    "SessionStatus",
    "StabilizationMonitor",
    "StaticTranscriptSource",
    "StreamPublisher",
    "SyncBatch",
    "SyncEngine",
    "SyncHandle",
    "SyncMetadata",
    "SyncScheduler",
    "SyncSession",
    "TranscriptResetError",
    "TranscriptSnapshot",
]
