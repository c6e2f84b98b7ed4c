"""Line classification for exported chat transcripts.

The export format carries no contract, so speaker attribution is heuristic.
The heuristics live here as *data*: an ordered tuple of :class:`MarkerRule`
objects, each a compiled pattern plus the role it implies.  The first rule
that matches a line wins; a line no rule matches is ``UNMARKED``.

Default rule order::

    KNOWN_ASSISTANT_MARKER   "GitHub Copilot: ...", "assistant: ...", bare "Copilot"
    KNOWN_USER_MARKER        "user: ...", "you: ...", bare "You", "@workspace ..."
    GENERIC_PREFIXED         "<name>: ..." where <name> is not an assistant alias
    UNMARKED                 everything else

:class:`RequesterEchoFilter` is separate: it recognises lines that merely
echo what the requester typed and should be dropped rather than attributed.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from rapidfuzz import fuzz

from chat_sync.models.message import Role


class MarkerKind(str, Enum):
    """How a line announced its speaker."""

    KNOWN_ASSISTANT_MARKER = "known_assistant_marker"
    KNOWN_USER_MARKER = "known_user_marker"
    GENERIC_PREFIXED = "generic_prefixed"
    UNMARKED = "unmarked"


@dataclass(frozen=True)
class LineClassification:
    """Result of classifying one transcript line.

    Attributes:
        kind: Which marker family matched.
        role: Role implied by the marker.
        content: Line text with the speaker prefix removed.
        speaker: The speaker label as written, if the line had one.
    """

    kind: MarkerKind
    role: Role
    content: str
    speaker: str | None = None

    @property
    def is_message_start(self) -> bool:
        return self.kind is not MarkerKind.UNMARKED


@dataclass(frozen=True)
class MarkerRule:
    """One speaker-marker pattern.

    The pattern may define ``speaker`` and ``content`` named groups.  A
    match whose speaker contains any of *excluded_speaker_words*
    (case-insensitive) is rejected so a later rule can claim the line.
    """

    kind: MarkerKind
    role: Role
    pattern: re.Pattern[str]
    excluded_speaker_words: frozenset[str] = frozenset()

    def match(self, line: str) -> LineClassification | None:
        found = self.pattern.match(line)
        if found is None:
            return None
        groups = found.groupdict()
        speaker = (groups.get("speaker") or "").strip() or None
        if speaker and self.excluded_speaker_words:
            lowered = speaker.lower()
            if any(word in lowered for word in self.excluded_speaker_words):
                return None
        content = (groups.get("content") or "").strip()
        return LineClassification(kind=self.kind, role=self.role, content=content, speaker=speaker)


# ---------------------------------------------------------------------------
# Default rules
# ---------------------------------------------------------------------------

ASSISTANT_ALIASES: frozenset[str] = frozenset({"copilot", "assistant"})
DIRECTIVE_MARKERS: tuple[str, ...] = ("@workspace", "@terminal", "@vscode", "@github")

# "Copilot:", "assistant:", "GitHub Copilot:" (vendor name + copilot).
_ASSISTANT_PREFIX_RE = re.compile(
    r"^\s*(?P<speaker>(?:[A-Za-z][\w.-]*\s+)?(?:copilot|assistant))\s*:\s*(?P<content>.*)$",
    re.IGNORECASE,
)
# Export variant where the speaker sits alone on a header line.
_ASSISTANT_HEADER_RE = re.compile(
    r"^\s*(?P<speaker>github copilot|copilot|assistant)\s*$",
    re.IGNORECASE,
)
_USER_PREFIX_RE = re.compile(
    r"^\s*(?P<speaker>user|you|human)\s*:\s*(?P<content>.*)$",
    re.IGNORECASE,
)
_USER_HEADER_RE = re.compile(r"^\s*(?P<speaker>you|user|human)\s*$", re.IGNORECASE)
# One to three word-like tokens, then a colon followed by whitespace or EOL.
# "https://..." does not qualify because the colon is followed by "/".
_GENERIC_PREFIX_RE = re.compile(
    r"^\s*(?P<speaker>[A-Za-z][\w.'-]*(?: [A-Za-z][\w.'-]*){0,2})\s*:(?:\s+(?P<content>.*))?$"
)


def directive_rule(markers: Iterable[str] = DIRECTIVE_MARKERS) -> MarkerRule:
    """Build the rule that treats ``@agent ...`` directive lines as user turns."""
    alternation = "|".join(re.escape(marker) for marker in markers)
    return MarkerRule(
        kind=MarkerKind.KNOWN_USER_MARKER,
        role=Role.USER,
        pattern=re.compile(rf"^\s*(?P<content>(?:{alternation})\b.*)$", re.IGNORECASE),
    )


DEFAULT_RULES: tuple[MarkerRule, ...] = (
    MarkerRule(MarkerKind.KNOWN_ASSISTANT_MARKER, Role.ASSISTANT, _ASSISTANT_PREFIX_RE),
    MarkerRule(MarkerKind.KNOWN_ASSISTANT_MARKER, Role.ASSISTANT, _ASSISTANT_HEADER_RE),
    MarkerRule(MarkerKind.KNOWN_USER_MARKER, Role.USER, _USER_PREFIX_RE),
    MarkerRule(MarkerKind.KNOWN_USER_MARKER, Role.USER, _USER_HEADER_RE),
    directive_rule(),
    MarkerRule(
        MarkerKind.GENERIC_PREFIXED,
        Role.USER,
        _GENERIC_PREFIX_RE,
        excluded_speaker_words=ASSISTANT_ALIASES,
    ),
)


class RoleClassifier:
    """Evaluates an ordered list of :class:`MarkerRule` objects.

    Args:
        rules: Rules in priority order.  Defaults to :data:`DEFAULT_RULES`.
    """

    def __init__(self, rules: Sequence[MarkerRule] | None = None) -> None:
        self.rules: tuple[MarkerRule, ...] = tuple(DEFAULT_RULES if rules is None else rules)

    def with_rules(self, extra: Iterable[MarkerRule]) -> RoleClassifier:
        """Return a classifier that tries *extra* before the current rules."""
        return RoleClassifier((*extra, *self.rules))

    def classify(self, line: str) -> LineClassification:
        for rule in self.rules:
            result = rule.match(line)
            if result is not None:
                return result
        return LineClassification(kind=MarkerKind.UNMARKED, role=Role.UNKNOWN, content=line.strip())

    def detect_role(self, line: str) -> Role:
        """Return the role implied by *line* (``UNKNOWN`` if unmarked)."""
        return self.classify(line).role

    def is_message_start(self, line: str) -> bool:
        return self.classify(line).is_message_start


# ---------------------------------------------------------------------------
# Response / echo heuristics
# ---------------------------------------------------------------------------

RESPONSE_TOKENS: tuple[str, ...] = (
    "i'll",
    "let me",
    "made changes",
    "perfect",
    "excellent",
    "now",
    "here",
    "the",
)

_RESPONSE_MIN_LENGTH = 10
_PROMPT_HEAD_LENGTH = 20


def looks_like_response(line: str) -> bool:
    """Whether an unmarked line reads like assistant prose."""
    stripped = line.strip()
    if len(stripped) <= _RESPONSE_MIN_LENGTH:
        return False
    lowered = stripped.lower()
    return any(token in lowered for token in RESPONSE_TOKENS)


@dataclass(frozen=True)
class RequesterEchoFilter:
    """Recognises lines that only echo what the requester sent.

    Attributes:
        original_prompt: The prompt being answered, if known.
        directive_markers: Agent directives the requester types
            (``@workspace`` and friends).
        requester_names: Display names whose ``"<name>:"`` lines belong to
            the requester.
        similarity_threshold: Minimum :func:`rapidfuzz.fuzz.ratio` between a
            line and the prompt for the line to count as an echo.  Exports
            are lossy, so exact matching alone misses re-wrapped echoes.
    """

    original_prompt: str | None = None
    directive_markers: tuple[str, ...] = DIRECTIVE_MARKERS
    requester_names: tuple[str, ...] = ()
    similarity_threshold: float = 90.0

    def for_prompt(self, prompt: str | None) -> RequesterEchoFilter:
        return dataclasses.replace(self, original_prompt=prompt)

    def is_echo(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped:
            return False
        lowered = stripped.lower()

        if any(lowered.startswith(marker.lower()) for marker in self.directive_markers):
            return True

        for name in self.requester_names:
            if lowered.startswith(f"{name.lower()}:"):
                return True

        prompt = (self.original_prompt or "").strip().lower()
        if not prompt:
            return False
        if prompt[:_PROMPT_HEAD_LENGTH] in lowered:
            return True
        return fuzz.ratio(lowered, prompt) >= self.similarity_threshold
