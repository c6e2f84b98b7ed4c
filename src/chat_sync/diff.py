"""Isolate the text a new transcript snapshot added since a baseline.

Capturing the baseline is lossy (there is no atomic export), so no single
way of locating "the new part" is reliable on its own.  The extractor holds
an ordered chain of :class:`ExtractionStrategy` objects and tries them
lazily; the first candidate that survives :func:`clean_response` and the
length threshold wins.

Default chain:

1. ``suffix`` -- everything past ``baseline.length``.
2. ``last_prompt`` -- everything after the last occurrence of the prompt.
3. ``partial_prompt`` -- everything after the last occurrence of the
   prompt's first five words.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

from chat_sync.classify import (
    MarkerKind,
    RequesterEchoFilter,
    RoleClassifier,
    looks_like_response,
)
from chat_sync.exceptions import TranscriptResetError
from chat_sync.models.transcript import Baseline, TranscriptSnapshot

logger = logging.getLogger(__name__)

MIN_RESPONSE_LENGTH = 10
PARTIAL_PROMPT_WORDS = 5

Locator = Callable[[TranscriptSnapshot, Baseline | None, str], str | None]


@dataclass(frozen=True)
class ExtractionStrategy:
    """A named way of locating candidate new text in a snapshot."""

    name: str
    locate: Locator


@dataclass(frozen=True)
class Extraction:
    """A successful extraction and the strategy that produced it."""

    strategy: str
    content: str


# ---------------------------------------------------------------------------
# Locators
# ---------------------------------------------------------------------------


def _locate_suffix(full: TranscriptSnapshot, baseline: Baseline | None, prompt: str) -> str | None:
    base_length = baseline.length if baseline is not None else 0
    if full.length <= base_length:
        return None
    return full.text[base_length:].strip()


def _text_after_last(text: str, needle: str) -> str | None:
    if not needle:
        return None
    index = text.rfind(needle)
    if index < 0:
        return None
    return text[index + len(needle):].strip()


def _locate_after_prompt(full: TranscriptSnapshot, baseline: Baseline | None, prompt: str) -> str | None:
    return _text_after_last(full.text, prompt.strip())


def _locate_after_partial_prompt(
    full: TranscriptSnapshot, baseline: Baseline | None, prompt: str
) -> str | None:
    head = " ".join(prompt.split()[:PARTIAL_PROMPT_WORDS])
    return _text_after_last(full.text, head)


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("suffix", _locate_suffix),
    ExtractionStrategy("last_prompt", _locate_after_prompt),
    ExtractionStrategy("partial_prompt", _locate_after_partial_prompt),
)


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------


def clean_response(
    content: str,
    original_prompt: str | None,
    classifier: RoleClassifier | None = None,
    echo_filter: RequesterEchoFilter | None = None,
) -> str | None:
    """Strip requester lines from *content* and keep the response part.

    - Leading blank lines are dropped.
    - Requester echo and known-user-marker lines are dropped.
    - An assistant marker line starts the response and contributes the
      text after its marker.
    - Other lines are kept once the response has started, or when they
      read like assistant prose (which also starts the response).

    Returns:
        The cleaned, stripped response, or ``None`` if nothing is left.
    """
    if not content or not content.strip():
        return None

    classifier = classifier or RoleClassifier()
    echo = (echo_filter or RequesterEchoFilter()).for_prompt(original_prompt)

    kept: list[str] = []
    in_response = False

    for line in content.split("\n"):
        stripped = line.strip()

        if not kept and not stripped:
            continue

        if echo.is_echo(stripped):
            logger.debug("Skipping requester line: %.50s", stripped)
            continue

        classification = classifier.classify(stripped)

        if classification.kind is MarkerKind.KNOWN_USER_MARKER:
            continue

        if classification.kind is MarkerKind.KNOWN_ASSISTANT_MARKER:
            in_response = True
            if classification.content:
                kept.append(classification.content)
            continue

        if in_response or looks_like_response(stripped):
            kept.append(line)
            in_response = True

    response = "\n".join(kept).strip()
    return response or None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class DiffExtractor:
    """Extracts new response text from a snapshot relative to a baseline.

    Args:
        classifier: Rules used while cleaning candidates.
        echo_filter: Requester-echo detection used while cleaning.
        strategies: Ordered strategy chain.  Defaults to
            :data:`DEFAULT_STRATEGIES`.
        min_length: Cleaned candidates must be strictly longer than this.
    """

    def __init__(
        self,
        classifier: RoleClassifier | None = None,
        echo_filter: RequesterEchoFilter | None = None,
        strategies: Sequence[ExtractionStrategy] | None = None,
        min_length: int = MIN_RESPONSE_LENGTH,
    ) -> None:
        self.classifier = classifier or RoleClassifier()
        self.echo_filter = echo_filter or RequesterEchoFilter()
        self.strategies: tuple[ExtractionStrategy, ...] = tuple(
            DEFAULT_STRATEGIES if strategies is None else strategies
        )
        self.min_length = min_length

    def extract_new(
        self,
        full: TranscriptSnapshot,
        baseline: Baseline | None,
        original_prompt: str,
    ) -> str | None:
        """Return the cleaned new text, or ``None`` if nothing qualifies.

        Raises:
            TranscriptResetError: If a non-empty *full* is shorter than
                *baseline* (the source was cleared or rewritten).
        """
        extraction = self.extract(full, baseline, original_prompt)
        return extraction.content if extraction is not None else None

    def extract(
        self,
        full: TranscriptSnapshot,
        baseline: Baseline | None,
        original_prompt: str,
    ) -> Extraction | None:
        """Like :meth:`extract_new`, but also reports the winning strategy."""
        if baseline is not None and not full.is_empty and full.length < baseline.length:
            raise TranscriptResetError(baseline.length, full.length)

        for extraction in self._candidates(full, baseline, original_prompt):
            logger.debug(
                "Extracted %d chars via %s strategy",
                len(extraction.content),
                extraction.strategy,
            )
            return extraction

        logger.debug("All extraction strategies failed")
        return None

    def _candidates(
        self,
        full: TranscriptSnapshot,
        baseline: Baseline | None,
        original_prompt: str,
    ) -> Iterator[Extraction]:
        for strategy in self.strategies:
            try:
                raw = strategy.locate(full, baseline, original_prompt)
                if not raw:
                    continue
                cleaned = clean_response(raw, original_prompt, self.classifier, self.echo_filter)
            except Exception:
                logger.warning("Extraction strategy %r raised, trying next", strategy.name, exc_info=True)
                continue
            if cleaned is not None and len(cleaned) > self.min_length:
                yield Extraction(strategy=strategy.name, content=cleaned)
