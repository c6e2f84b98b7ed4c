"""Tests for line classification and requester-echo detection."""

from __future__ import annotations

import re

import pytest

from chat_sync.classify import (
    MarkerKind,
    MarkerRule,
    RequesterEchoFilter,
    RoleClassifier,
    looks_like_response,
)
from chat_sync.models.message import Role


@pytest.fixture()
def classifier() -> RoleClassifier:
    return RoleClassifier()


class TestAssistantMarkers:
    """Lines announcing the assistant."""

    @pytest.mark.parametrize(
        "line",
        [
            "GitHub Copilot: Sure thing",
            "copilot: Sure thing",
            "Assistant:   Sure thing",
        ],
    )
    def test_prefixed_assistant_lines(self, classifier: RoleClassifier, line: str) -> None:
        result = classifier.classify(line)

        assert result.kind is MarkerKind.KNOWN_ASSISTANT_MARKER
        assert result.role is Role.ASSISTANT
        assert result.content == "Sure thing"

    def test_vendor_prefix_kept_as_speaker(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("GitHub Copilot: hello")

        assert result.speaker == "GitHub Copilot"

    def test_bare_header_line(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("GitHub Copilot")

        assert result.role is Role.ASSISTANT
        assert result.content == ""
        assert result.is_message_start


class TestUserMarkers:
    """Lines announcing the requester."""

    @pytest.mark.parametrize("line", ["You: fix the bug", "user: fix the bug", "HUMAN: fix the bug"])
    def test_prefixed_user_lines(self, classifier: RoleClassifier, line: str) -> None:
        result = classifier.classify(line)

        assert result.kind is MarkerKind.KNOWN_USER_MARKER
        assert result.role is Role.USER
        assert result.content == "fix the bug"

    def test_bare_you_header(self, classifier: RoleClassifier) -> None:
        assert classifier.detect_role("You") is Role.USER

    def test_directive_line_keeps_whole_line(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("@workspace fix the tests")

        assert result.kind is MarkerKind.KNOWN_USER_MARKER
        assert result.content == "@workspace fix the tests"


class TestGenericPrefix:
    """``Name: text`` lines with an arbitrary speaker."""

    def test_named_speaker_is_user(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("Alice: hello there")

        assert result.kind is MarkerKind.GENERIC_PREFIXED
        assert result.role is Role.USER
        assert result.speaker == "Alice"
        assert result.content == "hello there"

    def test_speaker_containing_assistant_alias_is_not_user(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("My Copilot Bot: hi")

        assert result.kind is MarkerKind.UNMARKED

    def test_url_is_not_a_speaker(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("https://example.com/docs")

        assert result.kind is MarkerKind.UNMARKED

    def test_long_sentence_with_colon_is_not_a_speaker(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("Here is the full plan: refactor first")

        assert result.kind is MarkerKind.UNMARKED


class TestUnmarked:
    def test_plain_line(self, classifier: RoleClassifier) -> None:
        result = classifier.classify("  just some text  ")

        assert result.kind is MarkerKind.UNMARKED
        assert result.role is Role.UNKNOWN
        assert result.content == "just some text"
        assert not classifier.is_message_start("just some text")


class TestCustomRules:
    def test_with_rules_takes_priority(self, classifier: RoleClassifier) -> None:
        bot_rule = MarkerRule(
            MarkerKind.KNOWN_ASSISTANT_MARKER,
            Role.ASSISTANT,
            re.compile(r"^\s*(?P<speaker>Bot)>\s*(?P<content>.*)$"),
        )
        custom = classifier.with_rules([bot_rule])

        assert custom.detect_role("Bot> done") is Role.ASSISTANT
        assert classifier.detect_role("Bot> done") is Role.UNKNOWN

    def test_empty_rule_list_marks_nothing(self) -> None:
        assert RoleClassifier(rules=[]).classify("You: hi").kind is MarkerKind.UNMARKED


class TestLooksLikeResponse:
    @pytest.mark.parametrize(
        "line",
        ["Here is the fix for you", "Let me check that file", "I'll update the config"],
    )
    def test_prose_detected(self, line: str) -> None:
        assert looks_like_response(line)

    @pytest.mark.parametrize("line", ["", "ok the end", "Compile error 42"])
    def test_short_or_tokenless_lines_rejected(self, line: str) -> None:
        assert not looks_like_response(line)


class TestRequesterEchoFilter:
    """Lines that only echo the requester."""

    def test_directive_is_echo(self) -> None:
        assert RequesterEchoFilter().is_echo("@workspace do the thing")

    def test_requester_name_is_echo(self) -> None:
        echo = RequesterEchoFilter(requester_names=("Alice",))

        assert echo.is_echo("alice: can you help?")
        assert not echo.is_echo("Bob: can you help?")

    def test_prompt_head_is_echo(self) -> None:
        echo = RequesterEchoFilter().for_prompt("Refactor the parser module please")

        assert echo.is_echo("You: Refactor the parser module please")

    def test_near_identical_prompt_is_echo(self) -> None:
        echo = RequesterEchoFilter().for_prompt("refactor the parser module please")

        assert echo.is_echo("Refactr the parser modul please")

    def test_unrelated_line_is_not_echo(self) -> None:
        echo = RequesterEchoFilter().for_prompt("Refactor the parser module please")

        assert not echo.is_echo("The build passes now")

    def test_blank_line_is_not_echo(self) -> None:
        assert not RequesterEchoFilter().for_prompt("anything").is_echo("   ")

    def test_no_prompt_means_no_prompt_matching(self) -> None:
        assert not RequesterEchoFilter().is_echo("Refactor the parser module please")
