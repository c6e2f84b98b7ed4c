"""Publishers deliver message batches to the remote subscriber.

From the engine's perspective a push is fire-and-forget: it awaits
:meth:`Publisher.push`, logs a failure, and never retries or buffers.

- :class:`HttpPublisher` -- posts to the pairing message broker via httpx.
- :class:`CallbackPublisher` -- hands batches to a local callable.
- :class:`StreamPublisher` -- writes one JSON line per batch (CLI use).
"""

from __future__ import annotations

import inspect
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import IO, Any, Protocol, runtime_checkable

import httpx

from chat_sync.exceptions import PublishAuthError, PublishError, PublishRejectedError
from chat_sync.models.message import SyncBatch

logger = logging.getLogger(__name__)

_SEND_ENDPOINT = "/api/v1/messages/send"
_DEFAULT_TIMEOUT = 10.0  # seconds


@runtime_checkable
class Publisher(Protocol):
    """Receives batches of extracted messages."""

    async def push(self, batch: SyncBatch) -> None: ...


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def _classify_status_error(error: httpx.HTTPStatusError) -> PublishError:
    """Map an HTTP error response to the matching publish exception."""
    status = error.response.status_code
    if status in (401, 403):
        return PublishAuthError(f"Broker refused credentials (HTTP {status})", status_code=status)
    return PublishError(f"Broker returned HTTP {status}", status_code=status)


class HttpPublisher:
    """Pushes batches to the message broker for a paired device.

    Args:
        api_url: Broker base URL.
        pairing_code: Pairing code of the subscriber device.
        device_token: Bearer token of this device.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use
            :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        api_url: str,
        pairing_code: str,
        device_token: str,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.pairing_code = pairing_code
        self._device_token = device_token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._device_token}",
        }

    def build_payload(self, batch: SyncBatch) -> dict[str, Any]:
        """Wrap *batch* in the broker's message envelope."""
        data = batch.to_payload()
        data.update({"success": True, "sender": "chat-sync"})
        return {
            "target_pairing_code": self.pairing_code,
            "type": "chatHistorySync",
            "command": "vscode_response",
            "data": data,
        }

    async def push(self, batch: SyncBatch) -> None:
        """POST *batch* to the broker.

        Raises:
            PublishAuthError: On HTTP 401 / 403.
            PublishRejectedError: If the broker answers ``success: false``.
            PublishError: On any other HTTP error or a network failure.
        """
        url = f"{self.api_url}{_SEND_ENDPOINT}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(url, headers=self._headers(), json=self.build_payload(batch))
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise _classify_status_error(exc) from exc
            except httpx.RequestError as exc:
                raise PublishError(f"Broker request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("success") is False:
            raise PublishRejectedError(
                f"Broker rejected batch: {body.get('error', 'unknown error')}",
                status_code=response.status_code,
            )

        logger.debug(
            "Pushed %d message(s) to %s",
            batch.metadata.message_count,
            self.pairing_code,
        )


# ---------------------------------------------------------------------------
# Local publishers
# ---------------------------------------------------------------------------


class CallbackPublisher:
    """Hands each batch to *callback*, which may be plain or async."""

    def __init__(self, callback: Callable[[SyncBatch], Awaitable[None] | None]) -> None:
        self._callback = callback

    async def push(self, batch: SyncBatch) -> None:
        result = self._callback(batch)
        if inspect.isawaitable(result):
            await result


class StreamPublisher:
    """Writes each batch as one JSON line to *stream* (stdout by default)."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        self._stream = stream

    async def push(self, batch: SyncBatch) -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(batch.to_payload(), ensure_ascii=False) + "\n")
        stream.flush()
