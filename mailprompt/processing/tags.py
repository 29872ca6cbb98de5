"""Tag extraction — find inline ``[[Tag]]`` markers in model output and strip them."""

import logging
import re
from collections.abc import Sequence

from mailprompt.processing.types import TagDefinition

logger = logging.getLogger(__name__)


class ExtractionFault(Exception):
    """Raised when a marker removal pass fails to shorten the text.

    ``partial`` holds the text with the occurrences removed before the fault.
    """

    def __init__(self, message: str, partial: str) -> None:
        super().__init__(message)
        self.partial = partial


def make_marker(name: str) -> str:
    """Derive the marker token for a tag name."""
    return f"[[{name.strip()}]]"


def _marker_pattern(marker: str) -> re.Pattern[str]:
    return re.compile(re.escape(marker), re.IGNORECASE)


def _remove_marker(text: str, marker: str) -> str:
    """Remove every case-insensitive occurrence of ``marker`` from ``text``.

    Loops until no occurrence remains, so a removal that brings a new
    occurrence together is handled too.  Offsets come from matching the
    original text; lowercasing can change string length.

    Raises:
        ExtractionFault: if a pass leaves the text no shorter, or the loop
            runs more times than the text has characters.
    """
    pattern = _marker_pattern(marker)
    for _ in range(len(text) + 1):
        match = pattern.search(text)
        if match is None:
            return text
        shorter = text[: match.start()] + text[match.end() :]
        if len(shorter) >= len(text):
            raise ExtractionFault(
                f"removing {marker!r} made no progress at offset {match.start()}", partial=text
            )
        text = shorter
    raise ExtractionFault(f"removing {marker!r} did not terminate", partial=text)


def extract_tags(text: str, tags: Sequence[TagDefinition]) -> tuple[str, list[str]]:
    """Return ``(cleaned_text, matched_tag_names)``.

    A tag matches when its marker occurs at least once, compared
    case-insensitively.  Names are reported once each, in definition order.
    When removing a marker faults, the text cleaned so far is kept, the tag
    still counts as matched, and the remaining tags are processed normally.
    """
    cleaned = text
    matched: list[str] = []
    for tag in tags:
        if _marker_pattern(tag.marker).search(cleaned) is None:
            continue
        matched.append(tag.name)
        try:
            cleaned = _remove_marker(cleaned, tag.marker)
        except ExtractionFault as exc:
            logger.warning("Tag %r: %s — leaving remaining markers in place", tag.name, exc)
            cleaned = exc.partial
    return cleaned, matched
