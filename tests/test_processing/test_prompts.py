"""Tests for variable substitution and email content formatting."""

from collections.abc import Callable

from mailprompt.imap.types import NormalizedMessage
from mailprompt.processing.prompts import (
    EMAIL_SEPARATOR,
    build_combined_content,
    build_individual_content,
    format_email,
    substitute_variables,
)
from mailprompt.processing.types import PromptVariable


class TestSubstituteVariables:
    def test_unknown_placeholder_left_verbatim(self) -> None:
        result = substitute_variables(
            "Hello {NAME}, see {MISSING}", [PromptVariable("NAME", "Alice")]
        )
        assert result == "Hello Alice, see {MISSING}"

    def test_partial_key_never_matches(self) -> None:
        result = substitute_variables("{USER} / {USERNAME}", [PromptVariable("USERNAME", "bob")])
        assert result == "{USER} / bob"

    def test_case_sensitive(self) -> None:
        assert substitute_variables("{name}", [PromptVariable("NAME", "Alice")]) == "{name}"

    def test_every_occurrence_replaced(self) -> None:
        result = substitute_variables("{A}{A} {A}", [PromptVariable("A", "x")])
        assert result == "xx x"

    def test_regex_characters_in_key_are_literal(self) -> None:
        variables = [PromptVariable("a.b+", "dot"), PromptVariable("(x)", "paren")]
        assert substitute_variables("{a.b+} {aXb+} {(x)}", variables) == "dot {aXb+} paren"

    def test_no_variables(self) -> None:
        assert substitute_variables("plain {TEXT}", []) == "plain {TEXT}"


class TestFormatEmail:
    def test_layout(self, make_message: Callable[..., NormalizedMessage]) -> None:
        text = format_email(make_message(sender="alice@example.com", subject="Hi", body="Body"))
        assert text == (
            "From: alice@example.com\nSubject: Hi\nDate: 2024-03-01 09:00 UTC\n\nBody"
        )

    def test_missing_fields(self, make_message: Callable[..., NormalizedMessage]) -> None:
        text = format_email(make_message(sender="", subject="", body=""))
        assert "From: N/A" in text
        assert "Subject: N/A" in text
        assert text.endswith("(Body not fetched/available)")


class TestBuildContent:
    def test_individual_prefix(self, make_message: Callable[..., NormalizedMessage]) -> None:
        assert build_individual_content(make_message()).startswith("Here is the email content:\n\n")

    def test_combined_joins_with_separator(
        self, make_message: Callable[..., NormalizedMessage]
    ) -> None:
        msgs = [make_message(id="1", subject="One"), make_message(id="2", subject="Two")]
        content = build_combined_content(msgs)
        assert content.startswith("Here are the relevant emails:\n\n")
        assert content.count(EMAIL_SEPARATOR) == 1
        assert content.index("Subject: One") < content.index("Subject: Two")
