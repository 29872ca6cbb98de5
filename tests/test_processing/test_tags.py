"""Tests for inline tag marker extraction."""

from unittest.mock import patch

import pytest

from mailprompt.processing.tags import ExtractionFault, _remove_marker, extract_tags, make_marker
from mailprompt.processing.types import TagDefinition


def tag(name: str) -> TagDefinition:
    return TagDefinition(name=name, marker=make_marker(name))


URGENT = tag("Urgent")
ACTION = tag("Action Item")


class TestMakeMarker:
    def test_wraps_trimmed_name(self) -> None:
        assert make_marker("  Follow Up ") == "[[Follow Up]]"


class TestExtractTags:
    def test_repeated_marker_removed_and_reported_once(self) -> None:
        cleaned, matched = extract_tags(
            "Task found [[Urgent]] please review [[Urgent]] soon", [URGENT]
        )
        assert cleaned == "Task found  please review  soon"
        assert matched == ["Urgent"]

    def test_case_insensitive_match(self) -> None:
        cleaned, matched = extract_tags("Heads up [[URGENT]]!", [URGENT])
        assert cleaned == "Heads up !"
        assert matched == ["Urgent"]

    def test_definition_order_not_text_order(self) -> None:
        _, matched = extract_tags("[[Action Item]] then [[Urgent]]", [URGENT, ACTION])
        assert matched == ["Urgent", "Action Item"]

    def test_no_match_returns_text_unchanged(self) -> None:
        assert extract_tags("Nothing to see", [URGENT, ACTION]) == ("Nothing to see", [])

    def test_no_tags_defined(self) -> None:
        assert extract_tags("Text [[Urgent]]", []) == ("Text [[Urgent]]", [])

    def test_marker_formed_by_removal_is_also_removed(self) -> None:
        cleaned, _ = extract_tags("[[Urg[[Urgent]]ent]]", [URGENT])
        assert cleaned == ""

    def test_idempotent_on_cleaned_text(self) -> None:
        cleaned, _ = extract_tags("[[Urgent]] A [[action item]] B", [URGENT, ACTION])
        assert extract_tags(cleaned, [URGENT, ACTION]) == (cleaned, [])

    def test_fault_keeps_text_and_continues(self) -> None:
        calls: list[str] = []

        def flaky(text: str, marker: str) -> str:
            calls.append(marker)
            if marker == URGENT.marker:
                raise ExtractionFault("no progress", partial=text)
            return text.replace(marker, "")

        with patch("mailprompt.processing.tags._remove_marker", side_effect=flaky):
            cleaned, matched = extract_tags("[[Urgent]] x [[Action Item]]", [URGENT, ACTION])

        assert matched == ["Urgent", "Action Item"]
        assert cleaned == "[[Urgent]] x "
        assert calls == [URGENT.marker, ACTION.marker]

    def test_fault_keeps_occurrences_already_removed(self) -> None:
        def stuck_after_first(text: str, marker: str) -> str:
            raise ExtractionFault("no progress", partial=text.replace(marker, "", 1))

        with patch("mailprompt.processing.tags._remove_marker", side_effect=stuck_after_first):
            cleaned, matched = extract_tags("a [[Urgent]] b [[Urgent]] c", [URGENT])

        assert matched == ["Urgent"]
        assert cleaned == "a  b [[Urgent]] c"

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("İstanbul [[Urgent]] trip", "İstanbul  trip"),
            ("İİİ [[URGENT]] x [[urgent]]", "İİİ  x "),
            ("Straße [[Urgent]]", "Straße "),
        ],
    )
    def test_non_ascii_text_before_marker(self, text: str, expected: str) -> None:
        assert extract_tags(text, [URGENT]) == (expected, ["Urgent"])


class TestRemoveMarker:
    def test_empty_marker_is_a_fault(self) -> None:
        with pytest.raises(ExtractionFault):
            _remove_marker("some text", "")

    def test_removes_all_occurrences(self) -> None:
        assert _remove_marker("a[[X]]b[[x]]c", "[[X]]") == "abc"

    def test_fault_carries_partial_text(self) -> None:
        with pytest.raises(ExtractionFault) as exc_info:
            _remove_marker("unchanged", "")
        assert exc_info.value.partial == "unchanged"
