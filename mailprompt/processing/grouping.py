"""Conversation grouping — collapse messages of one thread into a representative."""

import re
from collections.abc import Iterable
from dataclasses import replace

from mailprompt.imap.types import NormalizedMessage

_REPLY_PREFIX = re.compile(r"^(re|fw|fwd):\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

NO_SUBJECT_KEY = "(no subject)"


def normalize_subject(subject: str) -> str:
    """Strip one leading Re:/Fw:/Fwd:, collapse whitespace, trim and lowercase."""
    stripped = _REPLY_PREFIX.sub("", subject or "")
    return _WHITESPACE.sub(" ", stripped).strip().lower()


def group_key(message: NormalizedMessage) -> str:
    """Server thread ID when present, otherwise the normalised subject."""
    if message.thread_id:
        return f"thread:{message.thread_id}"
    return f"subject:{normalize_subject(message.subject) or NO_SUBJECT_KEY}"


def _rank(message: NormalizedMessage) -> tuple[object, ...]:
    # Newest wins; key breaks timestamp ties.
    return (message.date, message.key)


def group_messages(messages: Iterable[NormalizedMessage]) -> list[NormalizedMessage]:
    """Collapse each conversation into its newest message.

    The representative's ``flags`` and ``folders`` become the sorted union
    over the whole group.  Output is ordered newest first.  The reduction
    is order-independent and idempotent: permuting the input, or grouping an
    already grouped list, yields the same result.
    """
    groups: dict[str, list[NormalizedMessage]] = {}
    for message in messages:
        groups.setdefault(group_key(message), []).append(message)

    merged: list[NormalizedMessage] = []
    for members in groups.values():
        newest = max(members, key=_rank)
        flags = sorted({flag for m in members for flag in m.flags})
        folders = sorted({folder for m in members for folder in m.folders})
        merged.append(replace(newest, flags=tuple(flags), folders=tuple(folders)))

    merged.sort(key=_rank, reverse=True)
    return merged
