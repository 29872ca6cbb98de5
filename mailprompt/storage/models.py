"""SQLite schema, persisted record types, and their JSON (de)serialisers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from mailprompt.imap.types import FetchFilters, NormalizedMessage, ReadStatus
from mailprompt.processing.types import (
    CompletedResult,
    FailedResult,
    ProcessedResult,
    PromptVariable,
    TagDefinition,
)


# ── DDL ────────────────────────────────────────────────────────────────────────

_CREATE_COLLECTIONS = """
CREATE TABLE IF NOT EXISTS collections (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

#: All DDL statements in creation order.
ALL_TABLES: list[str] = [_CREATE_COLLECTIONS]

# Collection keys
HISTORY_KEY = "query-history"
TAGS_KEY = "tags"
VARIABLES_KEY = "prompt-variables"
PROMPTS_KEY = "saved-prompts"


# ── Records ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SavedPrompt:
    """A named prompt in the prompt library."""

    name: str
    prompt: str


@dataclass(frozen=True)
class QueryHistoryEntry:
    """One completed or failed query, with everything needed to replay its results.

    ``prompt`` is the text before variable substitution.  ``filters`` never
    include credentials.  Exactly one of ``results`` (individual mode) or
    ``combined_result`` (combined mode) is populated on success; ``error``
    carries the raw failure text otherwise.
    """

    history_id: str
    timestamp: datetime
    filters: FetchFilters
    prompt: str
    model: str
    process_individually: bool = False
    group_by_subject: bool = False
    prompt_name: str | None = None
    messages: list[NormalizedMessage] = field(default_factory=list)
    results: list[ProcessedResult] = field(default_factory=list)
    combined_result: str | None = None
    folder_errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# ── Serialisers ────────────────────────────────────────────────────────────────


def _date_or_none(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def filters_to_dict(filters: FetchFilters) -> dict[str, Any]:
    return {
        "folder": filters.folder,
        "fetch_all_folders": filters.fetch_all_folders,
        "start_date": filters.start_date.isoformat() if filters.start_date else None,
        "end_date": filters.end_date.isoformat() if filters.end_date else None,
        "status": filters.status.value,
        "subject_search_term": filters.subject_search_term,
        "max_results": filters.max_results,
    }


def filters_from_dict(data: dict[str, Any]) -> FetchFilters:
    return FetchFilters(
        folder=str(data.get("folder", "INBOX")),
        fetch_all_folders=bool(data.get("fetch_all_folders", False)),
        start_date=_date_or_none(data.get("start_date")),
        end_date=_date_or_none(data.get("end_date")),
        status=ReadStatus(data.get("status", ReadStatus.ALL.value)),
        subject_search_term=str(data.get("subject_search_term", "")),
        max_results=int(data.get("max_results", 20)),
    )


def message_to_dict(message: NormalizedMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "folder": message.folder,
        "thread_id": message.thread_id,
        "sender": message.sender,
        "subject": message.subject,
        "date": message.date.isoformat(),
        "read": message.read,
        "flags": list(message.flags),
        "body": message.body,
        "folders": list(message.folders),
    }


def message_from_dict(data: dict[str, Any]) -> NormalizedMessage:
    return NormalizedMessage(
        id=str(data["id"]),
        folder=str(data["folder"]),
        thread_id=data.get("thread_id"),
        sender=str(data.get("sender", "")),
        subject=str(data.get("subject", "")),
        date=datetime.fromisoformat(data["date"]),
        read=bool(data.get("read", False)),
        flags=tuple(data.get("flags", [])),
        body=str(data.get("body", "")),
        folders=tuple(data.get("folders", [])),
    )


def result_to_dict(result: ProcessedResult) -> dict[str, Any]:
    return {
        "message_key": result.message_key,
        "subject": result.subject,
        "sender": result.sender,
        "date": result.date.isoformat(),
        "content": result.content,
        "tags": list(result.tags),
        "error": result.error,
    }


def result_from_dict(data: dict[str, Any]) -> ProcessedResult:
    common: dict[str, Any] = {
        "message_key": str(data["message_key"]),
        "subject": str(data.get("subject", "")),
        "sender": str(data.get("sender", "")),
        "date": datetime.fromisoformat(data["date"]),
        "content": str(data.get("content", "")),
        "tags": tuple(data.get("tags", [])),
    }
    if data.get("error") is not None:
        return FailedResult(error=str(data["error"]), **common)
    return CompletedResult(**common)


def entry_to_dict(entry: QueryHistoryEntry) -> dict[str, Any]:
    return {
        "history_id": entry.history_id,
        "timestamp": entry.timestamp.isoformat(),
        "filters": filters_to_dict(entry.filters),
        "prompt": entry.prompt,
        "model": entry.model,
        "process_individually": entry.process_individually,
        "group_by_subject": entry.group_by_subject,
        "prompt_name": entry.prompt_name,
        "messages": [message_to_dict(m) for m in entry.messages],
        "results": [result_to_dict(r) for r in entry.results],
        "combined_result": entry.combined_result,
        "folder_errors": dict(entry.folder_errors),
        "error": entry.error,
    }


def entry_from_dict(data: dict[str, Any]) -> QueryHistoryEntry:
    return QueryHistoryEntry(
        history_id=str(data["history_id"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
        filters=filters_from_dict(data.get("filters", {})),
        prompt=str(data.get("prompt", "")),
        model=str(data.get("model", "")),
        process_individually=bool(data.get("process_individually", False)),
        group_by_subject=bool(data.get("group_by_subject", False)),
        prompt_name=data.get("prompt_name"),
        messages=[message_from_dict(m) for m in data.get("messages", [])],
        results=[result_from_dict(r) for r in data.get("results", [])],
        combined_result=data.get("combined_result"),
        folder_errors=dict(data.get("folder_errors", {})),
        error=data.get("error"),
    )


def tag_to_dict(tag: TagDefinition) -> dict[str, str]:
    return {"name": tag.name, "marker": tag.marker, "color": tag.color}


def tag_from_dict(data: dict[str, Any]) -> TagDefinition:
    return TagDefinition(
        name=str(data["name"]),
        marker=str(data["marker"]),
        color=str(data.get("color", "#cccccc")),
    )


def variable_to_dict(variable: PromptVariable) -> dict[str, str]:
    return {"key": variable.key, "value": variable.value}


def variable_from_dict(data: dict[str, Any]) -> PromptVariable:
    return PromptVariable(key=str(data["key"]), value=str(data.get("value", "")))


def prompt_to_dict(prompt: SavedPrompt) -> dict[str, str]:
    return {"name": prompt.name, "prompt": prompt.prompt}


def prompt_from_dict(data: dict[str, Any]) -> SavedPrompt:
    return SavedPrompt(name=str(data["name"]), prompt=str(data.get("prompt", "")))
