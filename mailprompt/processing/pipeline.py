"""Query pipeline — fetch, group, substitute, dispatch, correlate, record."""

import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from mailprompt.imap.connection import MailboxConnectionError
from mailprompt.imap.fetcher import FetchResult, fetch_emails
from mailprompt.imap.search import FolderError
from mailprompt.imap.types import FetchFilters, MailboxCredentials, NormalizedMessage
from mailprompt.processing.dispatcher import DEFAULT_MODEL, Completer, EmailDispatcher
from mailprompt.processing.grouping import group_messages
from mailprompt.processing.prompts import substitute_variables
from mailprompt.processing.types import (
    DispatchError,
    ProcessedResult,
    PromptVariable,
    QueryState,
    TagDefinition,
)
from mailprompt.storage.history import QueryHistory
from mailprompt.storage.models import QueryHistoryEntry

logger = logging.getLogger(__name__)

#: Signature of the fetch step; swapped out in tests.
FetchFn = Callable[[MailboxCredentials, FetchFilters], Awaitable[FetchResult]]

#: Query failures that are recorded in history before being re-raised.
QUERY_ERRORS = (MailboxConnectionError, FolderError, DispatchError)


@dataclass(frozen=True)
class QueryRequest:
    """Everything one query run needs besides credentials and collaborators."""

    filters: FetchFilters
    prompt: str
    process_individually: bool = False
    group_by_subject: bool = False
    model: str = DEFAULT_MODEL
    temperature: float | None = None
    prompt_name: str | None = None


class QueryRunner:
    """Runs one query at a time and records every attempt in history.

    ``state`` walks IDLE → FETCHING → DISPATCHING → CORRELATING → DONE, or
    ends in FAILED.  Correlation only happens in individual mode; combined
    mode goes straight from DISPATCHING to DONE.

    Usage::

        runner = QueryRunner(AnthropicCompleter(), history, tags=lib.tags())
        entry = await runner.run(credentials, QueryRequest(filters, "Summarise"))
    """

    def __init__(
        self,
        completer: Completer,
        history: QueryHistory,
        tags: Sequence[TagDefinition] = (),
        variables: Sequence[PromptVariable] = (),
        fetch: FetchFn = fetch_emails,
    ) -> None:
        self._completer = completer
        self._history = history
        self._tags = list(tags)
        self._variables = list(variables)
        self._fetch = fetch
        self.state = QueryState.IDLE

    async def run(self, credentials: MailboxCredentials, request: QueryRequest) -> QueryHistoryEntry:
        """Execute ``request`` and return the recorded history entry.

        Raises:
            MailboxConnectionError: the mailbox could not be reached.
            FolderError: a single-folder fetch failed.
            DispatchError: the combined-mode completion failed.
        """
        messages: list[NormalizedMessage] = []
        folder_errors: dict[str, str] = {}
        try:
            self.state = QueryState.FETCHING
            fetched = await self._fetch(credentials, request.filters)
            folder_errors = dict(fetched.folder_errors)
            messages = fetched.messages
            if request.group_by_subject:
                messages = group_messages(messages)
                logger.info("Grouped %d message(s) into %d", len(fetched.messages), len(messages))

            prompt = substitute_variables(request.prompt, self._variables)
            dispatcher = EmailDispatcher(self._completer, request.model, request.temperature)

            self.state = QueryState.DISPATCHING
            results: list[ProcessedResult] = []
            combined: str | None = None
            if request.process_individually:
                outcomes = await dispatcher.dispatch_individually(messages, prompt)
                self.state = QueryState.CORRELATING
                results = dispatcher.correlate(messages, outcomes, self._tags)
            else:
                combined = await dispatcher.process_combined(messages, prompt)
        except QUERY_ERRORS as exc:
            self.state = QueryState.FAILED
            logger.error("Query failed: %s", exc)
            self._record(request, messages, folder_errors=folder_errors, error=str(exc))
            raise

        self.state = QueryState.DONE
        failed = sum(1 for r in results if r.error is not None)
        if failed:
            logger.warning("%d of %d email(s) failed to process", failed, len(results))
        return self._record(
            request,
            messages,
            results=results,
            combined_result=combined,
            folder_errors=folder_errors,
        )

    # ── Private ─────────────────────────────────────────────────────────────────

    def _record(
        self,
        request: QueryRequest,
        messages: list[NormalizedMessage],
        results: list[ProcessedResult] | None = None,
        combined_result: str | None = None,
        folder_errors: dict[str, str] | None = None,
        error: str | None = None,
    ) -> QueryHistoryEntry:
        entry = QueryHistoryEntry(
            history_id=uuid.uuid4().hex,
            timestamp=datetime.now(timezone.utc),
            filters=request.filters,
            prompt=request.prompt,
            model=request.model,
            process_individually=request.process_individually,
            group_by_subject=request.group_by_subject,
            prompt_name=request.prompt_name,
            messages=list(messages),
            results=list(results or []),
            combined_result=combined_result,
            folder_errors=dict(folder_errors or {}),
            error=error,
        )
        self._history.append(entry)
        return entry
