"""Tests for persisted record serialisers."""

from collections.abc import Callable
from datetime import date, datetime, timezone

from mailprompt.imap.types import FetchFilters, NormalizedMessage, ReadStatus
from mailprompt.processing.types import CompletedResult, FailedResult
from mailprompt.storage.models import (
    filters_from_dict,
    filters_to_dict,
    message_from_dict,
    message_to_dict,
    result_from_dict,
    result_to_dict,
)

WHEN = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestResultSerialisation:
    def test_failed_variant_restored_from_error_field(self) -> None:
        failed = FailedResult("INBOX:1", "s", "f", WHEN, "(Error processing email 1: x)", "x")
        assert result_from_dict(result_to_dict(failed)) == failed

    def test_completed_variant_has_null_error(self) -> None:
        done = CompletedResult("INBOX:1", "s", "f", WHEN, "text", ("Urgent",))
        data = result_to_dict(done)
        assert data["error"] is None
        assert isinstance(result_from_dict(data), CompletedResult)


class TestFilterSerialisation:
    def test_dates_and_status_as_plain_values(self) -> None:
        filters = FetchFilters(
            folder="Archive",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            status=ReadStatus.UNREAD,
            max_results=50,
        )
        data = filters_to_dict(filters)
        assert data["start_date"] == "2024-01-01"
        assert data["status"] == "unread"
        assert filters_from_dict(data) == filters

    def test_missing_fields_use_defaults(self) -> None:
        assert filters_from_dict({}) == FetchFilters()


class TestMessageSerialisation:
    def test_keeps_timezone_and_folders(self, make_message: Callable[..., NormalizedMessage]) -> None:
        message = make_message(flags=("\\Seen", "Work"))
        restored = message_from_dict(message_to_dict(message))
        assert restored == message
        assert restored.date.tzinfo is not None
        assert restored.key == message.key
