"""Query history — fixed-size, newest-first log of query runs."""

import logging

from mailprompt.storage.db import AppDatabase
from mailprompt.storage.models import (
    HISTORY_KEY,
    QueryHistoryEntry,
    entry_from_dict,
    entry_to_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20


class QueryHistory:
    """Persisted list of QueryHistoryEntry, newest first.

    Appending beyond ``capacity`` drops the oldest entries.  Entries are
    immutable; the only removals are capacity eviction and ``clear()``.
    """

    def __init__(self, db: AppDatabase, capacity: int = DEFAULT_CAPACITY) -> None:
        self._db = db
        self._capacity = capacity
        self._entries: list[QueryHistoryEntry] | None = None

    def entries(self) -> list[QueryHistoryEntry]:
        """Return all entries, newest first."""
        return list(self._load())

    def get(self, history_id: str) -> QueryHistoryEntry | None:
        """Return the entry with ``history_id`` or a unique prefix of it."""
        entries = self._load()
        exact = next((e for e in entries if e.history_id == history_id), None)
        if exact is not None:
            return exact
        matches = [e for e in entries if e.history_id.startswith(history_id)]
        return matches[0] if len(matches) == 1 else None

    def append(self, entry: QueryHistoryEntry) -> None:
        entries = [entry, *self._load()]
        evicted = len(entries) - self._capacity
        if evicted > 0:
            logger.debug("History full — evicting %d oldest entr(ies)", evicted)
        self._entries = entries[: self._capacity]
        self._save()

    def clear(self) -> None:
        self._entries = []
        self._db.delete_collection(HISTORY_KEY)
        logger.info("Query history cleared")

    # ── Private ─────────────────────────────────────────────────────────────────

    def _load(self) -> list[QueryHistoryEntry]:
        if self._entries is None:
            raw = self._db.get_collection(HISTORY_KEY, default=[])
            entries: list[QueryHistoryEntry] = []
            for item in raw:
                try:
                    entries.append(entry_from_dict(item))
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Dropping unreadable history entry: %s", exc)
            self._entries = entries
        return self._entries

    def _save(self) -> None:
        self._db.set_collection(HISTORY_KEY, [entry_to_dict(e) for e in self._load()])
