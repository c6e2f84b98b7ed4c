"""Data models for chat-sync."""

from __future__ import annotations

from chat_sync.models.message import ExtractedMessage, Role, SyncBatch, SyncMetadata
from chat_sync.models.session import SessionStatus, SyncSession
from chat_sync.models.transcript import Baseline, StabilizationState, TranscriptSnapshot

__all__ = [
    "Baseline",
    "ExtractedMessage",
    "Role",
    "SessionStatus",
    "StabilizationState",
    "SyncBatch",
    "SyncMetadata",
    "SyncSession",
    "TranscriptSnapshot",
]
