"""Shared pytest fixtures."""

from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from mailprompt.imap.types import NormalizedMessage
from mailprompt.storage.db import AppDatabase


@pytest.fixture
def db(tmp_path: Path) -> Iterator[AppDatabase]:
    database = AppDatabase(db_path=tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def make_message() -> Callable[..., NormalizedMessage]:
    """Factory for NormalizedMessage with sensible defaults."""

    def _make(
        id: str = "1",
        folder: str = "INBOX",
        subject: str = "Q2 budget review",
        sender: str = "alice@example.com",
        day: int = 1,
        hour: int = 9,
        thread_id: str | None = None,
        flags: tuple[str, ...] = (),
        body: str = "Please review the budget figures by Friday.",
    ) -> NormalizedMessage:
        return NormalizedMessage(
            id=id,
            folder=folder,
            sender=sender,
            subject=subject,
            date=datetime(2024, 3, day, hour, 0, tzinfo=timezone.utc),
            read="\\Seen" in flags,
            body=body,
            thread_id=thread_id,
            flags=flags,
        )

    return _make
