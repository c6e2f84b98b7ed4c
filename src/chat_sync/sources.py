"""Transcript sources: the only way the engine obtains a snapshot.

A source exposes one coroutine, ``capture()``, that exports the whole
conversation as text.  The engine never calls a source directly; all calls
go through :class:`~chat_sync.capture.CaptureChannel`, which serializes them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from chat_sync.models.transcript import TranscriptSnapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class TranscriptSource(Protocol):
    """Anything that can export the full conversation on demand."""

    name: str

    async def capture(self) -> TranscriptSnapshot:
        """Export the current transcript.

        May return an empty or truncated snapshot; that is valid, just
        content-poor.  May raise on transport failure.
        """
        ...


class FileTranscriptSource:
    """Reads the transcript from a file that an exporter keeps overwriting.

    A missing file is treated as an empty transcript (nothing exported yet).

    Args:
        path: File holding the latest export.
        encoding: Text encoding of the file.
    """

    def __init__(self, path: str | Path, encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self.name = f"file:{self.path}"

    async def capture(self) -> TranscriptSnapshot:
        text = await asyncio.to_thread(self._read)
        return TranscriptSnapshot(text=text)

    def _read(self) -> str:
        if not self.path.exists():
            logger.debug("Transcript file %s does not exist yet", self.path)
            return ""
        return self.path.read_text(encoding=self.encoding)


class CommandTranscriptSource:
    """Runs an export command and treats its stdout as the transcript.

    Typical commands read a clipboard the chat UI was told to copy into
    (``xclip -o -selection clipboard``, ``pbpaste``, ``wl-paste``).

    Args:
        command: Program and arguments, executed without a shell.
    """

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.name = f"command:{self.command[0]}"

    async def capture(self) -> TranscriptSnapshot:
        process = await asyncio.create_subprocess_exec(
            *self.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except (asyncio.CancelledError, TimeoutError):
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise RuntimeError(
                f"{self.command[0]} exited with {process.returncode}: {message}"
            )
        return TranscriptSnapshot(text=stdout.decode("utf-8", errors="replace"))


class StaticTranscriptSource:
    """In-memory source whose text is set by the caller.

    Useful for embedding the engine behind another exporter and for replaying
    recorded transcripts.
    """

    def __init__(self, text: str = "", name: str = "static") -> None:
        self.text = text
        self.name = name

    def append(self, text: str) -> None:
        self.text += text

    async def capture(self) -> TranscriptSnapshot:
        return TranscriptSnapshot(text=self.text)
