"""Prompt building — variable substitution and per-email user content."""

from collections.abc import Iterable, Sequence

from mailprompt.imap.types import NormalizedMessage
from mailprompt.processing.types import PromptVariable

EMAIL_SEPARATOR = "\n\n---\n\n"

_MISSING = "N/A"
_MISSING_BODY = "(Body not fetched/available)"


def substitute_variables(template: str, variables: Iterable[PromptVariable]) -> str:
    """Replace every literal ``{KEY}`` with its value.

    Matching is exact and case-sensitive, so ``{USER}`` is untouched by a
    variable named ``USERNAME``.  Keys are never interpreted as patterns and
    unknown placeholders are left as they are.
    """
    text = template
    for variable in variables:
        text = text.replace("{" + variable.key + "}", variable.value)
    return text


def format_email(message: NormalizedMessage) -> str:
    """Render one message as the plain-text block the model sees."""
    return (
        f"From: {message.sender or _MISSING}\n"
        f"Subject: {message.subject or _MISSING}\n"
        f"Date: {message.date.strftime('%Y-%m-%d %H:%M %Z').strip()}\n"
        "\n"
        f"{message.body or _MISSING_BODY}"
    )


def build_individual_content(message: NormalizedMessage) -> str:
    """User content for a per-message completion."""
    return "Here is the email content:\n\n" + format_email(message)


def build_combined_content(messages: Sequence[NormalizedMessage]) -> str:
    """User content for one completion covering every message."""
    return "Here are the relevant emails:\n\n" + EMAIL_SEPARATOR.join(
        format_email(m) for m in messages
    )
