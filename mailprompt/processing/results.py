"""Result views — re-join results onto messages, filter by tag/flag, export."""

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from mailprompt.imap.types import NormalizedMessage
from mailprompt.processing.prompts import EMAIL_SEPARATOR
from mailprompt.processing.types import ProcessedResult

CSV_COLUMNS = ["subject", "sender", "date", "folders", "flags", "tags", "content", "error"]


@dataclass(frozen=True)
class UnifiedResult:
    """A fetched message together with its processed result, if any."""

    message: NormalizedMessage
    result: ProcessedResult | None = None

    @property
    def processed(self) -> bool:
        return self.result is not None

    @property
    def tags(self) -> tuple[str, ...]:
        return self.result.tags if self.result is not None else ()

    @property
    def error(self) -> str | None:
        return self.result.error if self.result is not None else None


def unify_results(
    messages: Sequence[NormalizedMessage], results: Iterable[ProcessedResult]
) -> list[UnifiedResult]:
    """Pair each message with the result carrying its key; order follows ``messages``."""
    by_key = {r.message_key: r for r in results}
    return [UnifiedResult(m, by_key.get(m.key)) for m in messages]


def filter_results(
    items: Iterable[UnifiedResult],
    tags: Iterable[str] = (),
    flags: Iterable[str] = (),
) -> list[UnifiedResult]:
    """Keep items matching any selected tag AND any selected flag.

    An empty selection does not filter.
    """
    wanted_tags = set(tags)
    wanted_flags = set(flags)
    kept: list[UnifiedResult] = []
    for item in items:
        if wanted_tags and not wanted_tags & set(item.tags):
            continue
        if wanted_flags and not wanted_flags & set(item.message.flags):
            continue
        kept.append(item)
    return kept


def available_tags(items: Iterable[UnifiedResult]) -> list[str]:
    return sorted({tag for item in items for tag in item.tags})


def available_flags(items: Iterable[UnifiedResult]) -> list[str]:
    return sorted({flag for item in items for flag in item.message.flags})


def combined_content(items: Iterable[UnifiedResult]) -> str:
    """All processed contents joined with the email separator."""
    return EMAIL_SEPARATOR.join(
        item.result.content for item in items if item.result is not None and item.result.content
    )


def results_to_csv(items: Iterable[UnifiedResult]) -> str:
    """Render items as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for item in items:
        m = item.message
        writer.writerow(
            [
                m.subject,
                m.sender,
                m.date.isoformat(),
                "; ".join(m.folders),
                "; ".join(m.flags),
                "; ".join(item.tags),
                item.result.content if item.result is not None else "",
                item.error or "",
            ]
        )
    return buffer.getvalue()
