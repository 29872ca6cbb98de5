"""IMAP session management — wraps a blocking IMAPClient behind an async API."""

import asyncio
import logging
import ssl
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError
from imapclient.imapclient import SocketTimeout

from mailprompt.imap.types import MailboxCredentials

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT_SECONDS = 10.0
_READ_TIMEOUT_SECONDS = 30.0

# Capability advertised by Gmail; enables X-GM-LABELS / X-GM-THRID fetch items.
_GMAIL_CAPABILITY = "X-GM-EXT-1"


class MailboxConnectionError(ConnectionError):
    """Raised when a mailbox session cannot be established or authenticated.

    Covers network timeouts, TLS negotiation failures and rejected logins
    alike; the message carries the underlying error text unchanged.
    """


class MailboxSession:
    """One authenticated IMAP session.

    Every IMAPClient call runs in a worker thread via ``asyncio.to_thread`` so
    the event loop stays free while the server responds.  A session is owned
    by a single query: the selected folder is session state, so calls must
    not be interleaved from concurrent tasks.

    Use ``mailbox_session()`` rather than constructing this directly.
    """

    def __init__(self, client: IMAPClient, account: str) -> None:
        self._client = client
        self._account = account
        self._closed = False
        self._gmail: bool | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Public API ─────────────────────────────────────────────────────────────

    async def list_folders(self) -> list[tuple[tuple[bytes, ...], bytes | None, str]]:
        """Return the raw LIST response: ``(flags, delimiter, name)`` triples."""
        return await asyncio.to_thread(self._client.list_folders)

    async def select_folder(self, folder: str, readonly: bool = True) -> dict[bytes, Any]:
        return await asyncio.to_thread(self._client.select_folder, folder, readonly)

    async def search(self, criteria: list[Any], charset: str | None = None) -> list[int]:
        return await asyncio.to_thread(self._client.search, criteria, charset)

    async def fetch(self, uids: list[int], items: list[str]) -> dict[int, dict[bytes, Any]]:
        return await asyncio.to_thread(self._client.fetch, uids, items)

    async def is_gmail(self) -> bool:
        """True when the server supports Gmail's label and thread extensions."""
        if self._gmail is None:
            self._gmail = bool(
                await asyncio.to_thread(self._client.has_capability, _GMAIL_CAPABILITY)
            )
        return self._gmail

    async def close(self) -> None:
        """Log out and release the transport.

        Idempotent: the first call tears the connection down, later calls
        are no-ops.  Never raises.
        """
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(_close_quietly, self._client)
        logger.info("IMAP session closed (%s)", self._account)


def _close_quietly(client: IMAPClient) -> None:
    """Logout, falling back to a raw socket shutdown if logout fails."""
    try:
        client.logout()
        return
    except (IMAPClientError, OSError) as exc:
        logger.debug("IMAP logout failed: %s — shutting down socket", exc)
    try:
        client.shutdown()
    except (IMAPClientError, OSError) as exc:
        logger.debug("IMAP socket shutdown failed: %s", exc)


def _connect_sync(credentials: MailboxCredentials) -> MailboxSession:
    logger.info(
        "Connecting to IMAP server %s:%s as %s (tls=%s)",
        credentials.host,
        credentials.port,
        credentials.account,
        credentials.uses_tls,
    )
    client: IMAPClient | None = None
    try:
        client = IMAPClient(
            host=credentials.host,
            port=int(credentials.port),
            ssl=credentials.uses_tls,
            # Default context verifies the certificate against ``host``.
            ssl_context=ssl.create_default_context() if credentials.uses_tls else None,
            timeout=SocketTimeout(connect=_CONNECT_TIMEOUT_SECONDS, read=_READ_TIMEOUT_SECONDS),
        )
        # Keep INTERNALDATE timezone-aware so results sort correctly across folders.
        client.normalise_times = False
        client.login(credentials.account, credentials.secret)
    except (IMAPClientError, OSError) as exc:
        if client is not None:
            _close_quietly(client)
        message = str(exc) or type(exc).__name__
        logger.error("IMAP connection to %s failed: %s", credentials.host, message)
        raise MailboxConnectionError(message) from exc

    logger.info("Logged in to %s as %s", credentials.host, credentials.account)
    return MailboxSession(client, credentials.account)


async def connect(credentials: MailboxCredentials) -> MailboxSession:
    """Open an authenticated session.

    Raises:
        MailboxConnectionError: if the server cannot be reached, TLS fails,
            or the login is rejected.
    """
    return await asyncio.to_thread(_connect_sync, credentials)


@asynccontextmanager
async def mailbox_session(credentials: MailboxCredentials) -> AsyncIterator[MailboxSession]:
    """Async context manager yielding a connected session, closed exactly once on exit.

    Example::

        async with mailbox_session(creds) as session:
            folders = await session.list_folders()
    """
    session = await connect(credentials)
    try:
        yield session
    finally:
        await session.close()


@dataclass(frozen=True)
class ConnectionCheck:
    """Outcome of a connection test: ``success`` or the raw error text."""

    success: bool
    error: str | None = None


async def check_connection(credentials: MailboxCredentials) -> ConnectionCheck:
    """Connect, authenticate and immediately disconnect. Never raises."""
    try:
        async with mailbox_session(credentials):
            pass
    except MailboxConnectionError as exc:
        return ConnectionCheck(success=False, error=str(exc))
    return ConnectionCheck(success=True)
