"""Types for the prompt-processing pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DispatchError(Exception):
    """Raised when an LLM completion request fails."""


class QueryState(str, Enum):
    """Lifecycle of a single query run."""

    IDLE = "idle"
    FETCHING = "fetching"
    DISPATCHING = "dispatching"
    CORRELATING = "correlating"
    DONE = "done"
    FAILED = "failed"


# ── Definitions ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TagDefinition:
    """A user-defined tag the model can emit as an inline marker, e.g. ``[[Urgent]]``."""

    name: str
    marker: str
    color: str = "#cccccc"


@dataclass(frozen=True)
class PromptVariable:
    """A ``{KEY}`` placeholder and its replacement value."""

    key: str
    value: str


# ── Per-message results ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CompletedResult:
    """Model output for one message, with tag markers removed.

    ``message_key`` is the originating ``NormalizedMessage.key``; the display
    fields are copied so results can be shown without re-joining.
    """

    message_key: str
    subject: str
    sender: str
    date: datetime
    content: str
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def error(self) -> None:
        return None


@dataclass(frozen=True)
class FailedResult:
    """Dispatch failure for one message.

    ``content`` holds a readable error line so a failed item renders like any
    other; ``error`` holds the raw provider message.
    """

    message_key: str
    subject: str
    sender: str
    date: datetime
    content: str
    error: str
    tags: tuple[str, ...] = field(default_factory=tuple)


ProcessedResult = CompletedResult | FailedResult
