"""Per-folder search and fetch — criteria building and raw message parsing."""

import logging
from datetime import date, datetime, timedelta, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Any

from imapclient.exceptions import IMAPClientError

from mailprompt.imap.connection import MailboxSession
from mailprompt.imap.types import NormalizedMessage, ReadStatus, SearchCriteria

logger = logging.getLogger(__name__)

HTML_ONLY_BODY = "[HTML content only]"
NO_BODY = "(no text body found)"
NO_SENDER = "(no sender)"
NO_SUBJECT = "(no subject)"
PARSE_ERROR = "(parse error)"

_SEEN = "\\Seen"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# BODY.PEEK[] leaves \Seen untouched; the response key is BODY[].
_FETCH_ITEMS = ["BODY.PEEK[]", "FLAGS", "INTERNALDATE"]
_GMAIL_FETCH_ITEMS = ["X-GM-LABELS", "X-GM-THRID"]


class FolderError(Exception):
    """Raised when a folder cannot be opened, searched or fetched."""

    def __init__(self, folder: str, message: str) -> None:
        super().__init__(f"{folder}: {message}")
        self.folder = folder
        self.reason = message


# ── Search criteria ────────────────────────────────────────────────────────────


def since_bound(day: date) -> datetime:
    """UTC midnight at the start of ``day``."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def before_bound(day: date) -> datetime:
    """UTC midnight at the end of ``day``, making the end date inclusive."""
    return since_bound(day) + timedelta(hours=24)


def build_search_criteria(criteria: SearchCriteria) -> list[Any]:
    """Translate user filters into an IMAPClient search criteria list.

    Returns ``["ALL"]`` when no filter is set.  Date bounds are datetimes;
    IMAPClient renders them as IMAP day-granular dates.
    """
    terms: list[Any] = []
    if criteria.status == ReadStatus.UNREAD:
        terms.append("UNSEEN")
    elif criteria.status == ReadStatus.READ:
        terms.append("SEEN")
    if criteria.since is not None:
        terms.extend(["SINCE", since_bound(criteria.since)])
    if criteria.before is not None:
        terms.extend(["BEFORE", before_bound(criteria.before)])
    subject = criteria.subject.strip()
    if subject:
        terms.extend(["SUBJECT", subject])
    return terms or ["ALL"]


# ── Message parsing ────────────────────────────────────────────────────────────


def _decode(value: bytes | str | int) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _as_utc(value: object) -> datetime | None:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _extract_body(message: EmailMessage) -> str:
    plain = message.get_body(preferencelist=("plain",))
    if plain is not None:
        return str(plain.get_content())
    if message.get_body(preferencelist=("html",)) is not None:
        return HTML_ONLY_BODY
    return NO_BODY


def parse_message(uid: int | str, folder: str, data: dict[bytes, Any]) -> NormalizedMessage:
    """Build a NormalizedMessage from one IMAPClient fetch entry.

    A message whose content cannot be decoded is still returned, with
    ``(parse error)`` sender/subject and the reason in the body, so a bad
    message never disappears from the result count.
    """
    raw = data.get(b"BODY[]") or data.get(b"RFC822") or b""
    system_flags = tuple(_decode(f) for f in data.get(b"FLAGS", ()))
    labels = tuple(_decode(label) for label in data.get(b"X-GM-LABELS", ()))
    thread_raw = data.get(b"X-GM-THRID")
    timestamp = _as_utc(data.get(b"INTERNALDATE"))

    try:
        message = BytesParser(policy=policy.default).parsebytes(raw)
        sender = str(message.get("From", "")).strip() or NO_SENDER
        subject = str(message.get("Subject", "")).strip() or NO_SUBJECT
        body = _extract_body(message)  # type: ignore[arg-type]
        if timestamp is None:
            timestamp = _as_utc(getattr(message.get("Date"), "datetime", None))
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to parse message %s in %s: %s", uid, folder, exc)
        sender = subject = PARSE_ERROR
        body = f"(parse error: {exc})"

    return NormalizedMessage(
        id=str(uid),
        folder=folder,
        thread_id=str(thread_raw) if thread_raw else None,
        sender=sender,
        subject=subject,
        date=timestamp or _EPOCH,
        read=_SEEN in system_flags,
        flags=tuple(dict.fromkeys(system_flags + labels)),
        body=body,
    )


# ── Folder fetch ───────────────────────────────────────────────────────────────


async def fetch_folder(
    session: MailboxSession,
    folder: str,
    criteria: SearchCriteria,
    per_folder_limit: int,
) -> list[NormalizedMessage]:
    """Search one folder and return up to ``per_folder_limit`` parsed messages.

    The highest UIDs are taken as the most recent.  That only holds while the
    server assigns UIDs in arrival order; messages moved or copied into the
    folder later get new, higher UIDs regardless of their date.

    Raises:
        FolderError: if the folder cannot be selected, searched or fetched.
    """
    if per_folder_limit <= 0:
        return []

    subject = criteria.subject.strip()
    try:
        status = await session.select_folder(folder, readonly=True)
        total = int(status.get(b"EXISTS", 0))
        if total == 0:
            logger.info("Folder %s is empty — skipping search", folder)
            return []

        search = build_search_criteria(criteria)
        charset = None if subject.isascii() else "UTF-8"
        logger.info("Searching %s (%d messages) with %s", folder, total, search)
        uids = await session.search(search, charset)
        if not uids:
            logger.info("Folder %s: 0 matches", folder)
            return []

        selected = sorted(uids)[-per_folder_limit:]
        items = list(_FETCH_ITEMS)
        if await session.is_gmail():
            items.extend(_GMAIL_FETCH_ITEMS)
        logger.info(
            "Folder %s: %d matches, fetching %d (limit %d)",
            folder,
            len(uids),
            len(selected),
            per_folder_limit,
        )
        response = await session.fetch(selected, items)
    except (IMAPClientError, OSError) as exc:
        logger.error("Folder %s failed: %s", folder, exc)
        raise FolderError(folder, str(exc) or type(exc).__name__) from exc

    messages: list[NormalizedMessage] = []
    for uid in selected:
        data = response.get(uid)
        if data is None:
            logger.warning("No fetch data returned for UID %s in %s", uid, folder)
            continue
        messages.append(parse_message(uid, folder, data))
    return messages
