"""Multi-folder fetch — limit planning, sequential folder traversal, aggregation."""

import logging
import math
from dataclasses import dataclass, field

from imapclient.exceptions import IMAPClientError

from mailprompt.imap.connection import MailboxSession, mailbox_session
from mailprompt.imap.folders import build_folder_tree, flatten_folders, is_skipped_folder
from mailprompt.imap.search import FolderError, fetch_folder
from mailprompt.imap.types import FetchFilters, MailboxCredentials, NormalizedMessage

logger = logging.getLogger(__name__)

#: Overall ceiling when every folder is queried, whatever the caller asked for.
ALL_FOLDERS_MAX_RESULTS = 100
#: Floor for the per-folder limit in all-folders mode.
MIN_PER_FOLDER_LIMIT = 10
# Over-fetch factor so the global newest-N survives the final truncation.
_PER_FOLDER_HEADROOM = 1.5


@dataclass(frozen=True)
class FetchResult:
    """Aggregated fetch output.

    ``folder_errors`` maps folders skipped in all-folders mode to the error
    that caused the skip.
    """

    messages: list[NormalizedMessage]
    folders: list[str] = field(default_factory=list)
    folder_errors: dict[str, str] = field(default_factory=dict)


def plan_limits(max_results: int, fetch_all_folders: bool, folder_count: int = 1) -> tuple[int, int]:
    """Return ``(effective_max_results, per_folder_limit)`` for a query.

    Single folder: both equal ``max_results``.  All folders: the overall
    count is capped at ``ALL_FOLDERS_MAX_RESULTS`` and each folder is asked
    for ``max(10, ceil(effective * 1.5 / folder_count))``.
    """
    if not fetch_all_folders:
        return max_results, max_results
    effective = min(max_results, ALL_FOLDERS_MAX_RESULTS)
    per_folder = math.ceil(effective * _PER_FOLDER_HEADROOM / max(folder_count, 1))
    return effective, max(MIN_PER_FOLDER_LIMIT, per_folder)


def newest_first(messages: list[NormalizedMessage], limit: int) -> list[NormalizedMessage]:
    """Sort by timestamp descending and keep the first ``limit``."""
    return sorted(messages, key=lambda m: m.date, reverse=True)[:limit]


async def list_selectable_folders(session: MailboxSession) -> list[str]:
    """Return every selectable mail folder, minus known container folders.

    Raises:
        FolderError: if the folder list cannot be retrieved.
    """
    try:
        listing = await session.list_folders()
    except (IMAPClientError, OSError) as exc:
        raise FolderError("(folder list)", str(exc) or type(exc).__name__) from exc
    paths = flatten_folders(build_folder_tree(listing))
    return [p for p in paths if not is_skipped_folder(p)]


async def fetch_messages(session: MailboxSession, filters: FetchFilters) -> FetchResult:
    """Run a fetch against an already-open session.

    Folders are visited one at a time: selecting a folder is session state,
    so concurrent per-folder fetches on one session are not possible.

    Raises:
        FolderError: in single-folder mode, or when the folder list itself
            cannot be read.  In all-folders mode per-folder failures are
            logged, recorded in ``folder_errors`` and skipped.
        ValueError: if ``max_results`` is below 1.
    """
    if filters.max_results < 1:
        raise ValueError(f"max_results must be at least 1, got {filters.max_results}")
    criteria = filters.criteria()

    if not filters.fetch_all_folders:
        effective, per_folder = plan_limits(filters.max_results, False)
        messages = await fetch_folder(session, filters.folder, criteria, per_folder)
        return FetchResult(newest_first(messages, effective), [filters.folder])

    folders = await list_selectable_folders(session)
    effective, per_folder = plan_limits(filters.max_results, True, len(folders))
    logger.info(
        "Fetching from %d folder(s): per-folder limit %d, overall limit %d",
        len(folders),
        per_folder,
        effective,
    )

    collected: list[NormalizedMessage] = []
    errors: dict[str, str] = {}
    for folder in folders:
        try:
            collected.extend(await fetch_folder(session, folder, criteria, per_folder))
        except FolderError as exc:
            logger.warning("Skipping folder %s: %s", folder, exc.reason)
            errors[folder] = exc.reason

    result = newest_first(collected, effective)
    logger.info("Fetched %d message(s), returning %d", len(collected), len(result))
    return FetchResult(result, folders, errors)


async def fetch_emails(credentials: MailboxCredentials, filters: FetchFilters) -> FetchResult:
    """Connect, fetch, and disconnect.

    Raises:
        MailboxConnectionError: if the session cannot be established.
        FolderError: see ``fetch_messages``.
    """
    async with mailbox_session(credentials) as session:
        return await fetch_messages(session, filters)
