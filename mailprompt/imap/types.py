"""Data types shared across the mailbox modules."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

#: Implicit-TLS port; any other port is treated as plain IMAP.
IMAPS_PORT = 993

DEFAULT_FOLDER = "INBOX"
DEFAULT_MAX_RESULTS = 20


class ReadStatus(str, Enum):
    """Read-state filter applied to a mailbox search."""

    ALL = "all"
    READ = "read"
    UNREAD = "unread"


@dataclass(frozen=True)
class MailboxCredentials:
    """Connection details for a single IMAP account. Supplied per request."""

    host: str
    port: int
    account: str
    secret: str = field(repr=False)

    @property
    def uses_tls(self) -> bool:
        return int(self.port) == IMAPS_PORT


@dataclass
class FolderNode:
    """One node of a server folder hierarchy.

    ``attributes`` holds the raw LIST flags (e.g. ``\\Noselect``,
    ``\\HasChildren``); ``children`` keep the order the server reported.
    """

    name: str
    delimiter: str = "/"
    attributes: frozenset[str] = frozenset()
    children: list["FolderNode"] = field(default_factory=list)

    @property
    def selectable(self) -> bool:
        return not ({a.lower() for a in self.attributes} & {"\\noselect", "\\nonexistent"})


@dataclass(frozen=True)
class SearchCriteria:
    """User filter criteria for one query. Empty criteria match everything."""

    status: ReadStatus = ReadStatus.ALL
    since: date | None = None
    before: date | None = None  # inclusive end date, as entered by the user
    subject: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            self.status == ReadStatus.ALL
            and self.since is None
            and self.before is None
            and not self.subject.strip()
        )


@dataclass(frozen=True)
class FetchFilters:
    """Everything a fetch request carries apart from the credentials.

    Persisted verbatim in query history so a query can be re-run later
    against the current credentials.
    """

    folder: str = DEFAULT_FOLDER
    fetch_all_folders: bool = False
    start_date: date | None = None
    end_date: date | None = None
    status: ReadStatus = ReadStatus.ALL
    subject_search_term: str = ""
    max_results: int = DEFAULT_MAX_RESULTS

    def criteria(self) -> SearchCriteria:
        return SearchCriteria(
            status=self.status,
            since=self.start_date,
            before=self.end_date,
            subject=self.subject_search_term,
        )


@dataclass(frozen=True)
class NormalizedMessage:
    """A fetched message, independent of the wire format it arrived in.

    ``id`` is the server UID, unique only within ``folder`` for one session,
    so ``key`` (folder + UID) is what results are correlated on.
    ``folders`` lists every folder the message was seen in; it holds just
    ``folder`` until thread grouping merges siblings.
    """

    id: str
    folder: str
    sender: str
    subject: str
    date: datetime
    read: bool
    body: str
    thread_id: str | None = None
    flags: tuple[str, ...] = ()
    folders: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.folders:
            object.__setattr__(self, "folders", (self.folder,))

    @property
    def key(self) -> str:
        return f"{self.folder}:{self.id}"
