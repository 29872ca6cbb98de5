"""LLM dispatch — one combined completion or one per message, correlated by message key."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import anthropic
from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from mailprompt.imap.types import NormalizedMessage
from mailprompt.processing.prompts import build_combined_content, build_individual_content
from mailprompt.processing.tags import extract_tags
from mailprompt.processing.types import (
    CompletedResult,
    DispatchError,
    FailedResult,
    ProcessedResult,
    TagDefinition,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-6"
_MAX_TOKENS = 4096

#: Models that accept a sampling temperature.  Requests to any other model
#: carry no temperature argument at all.
TEMPERATURE_MODELS: frozenset[str] = frozenset(
    {
        "claude-sonnet-4-6",
        "claude-sonnet-4-5",
        "claude-haiku-4-5-20251001",
        "claude-opus-4-1",
    }
)

NO_EMAILS_RESPONSE = "No emails to process"
NO_COMBINED_RESPONSE = "No response from AI."

#: Completion outcome per message key: response text, or the error it raised.
Outcomes = dict[str, str | DispatchError]


def supports_temperature(model: str) -> bool:
    return model in TEMPERATURE_MODELS


# ── Completion backend ─────────────────────────────────────────────────────────


@runtime_checkable
class Completer(Protocol):
    """Text-in / text-out completion backend."""

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        model: str,
        temperature: float | None = None,
    ) -> str:
        """Return the model's text response.

        Raises:
            DispatchError: if the provider call fails.
        """
        ...


class AnthropicCompleter:
    """Completer backed by the Anthropic Messages API.

    Usage::

        completer = AnthropicCompleter()
        text = await completer.complete("Summarise.", "From: ...", DEFAULT_MODEL)
    """

    def __init__(self, api_key: str | None = None, max_tokens: int = _MAX_TOKENS) -> None:
        self._client = AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._max_tokens = max_tokens

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        model: str,
        temperature: float | None = None,
    ) -> str:
        extra: dict[str, float] = {}
        if temperature is not None:
            extra["temperature"] = temperature
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=self._max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_content}],
                **extra,  # type: ignore[arg-type]
            )
        except anthropic.APIError as exc:
            raise DispatchError(str(exc)) from exc

        return "".join(
            block.text for block in response.content if isinstance(block, TextBlock)
        ).strip()


# ── Dispatcher ─────────────────────────────────────────────────────────────────


class EmailDispatcher:
    """Sends fetched messages through a prompt and maps responses back to messages.

    Combined mode makes a single request and fails as a whole.  Individual
    mode fires one request per message concurrently; a failing request
    becomes a FailedResult for that message and never affects its siblings.
    """

    def __init__(
        self,
        completer: Completer,
        model: str = DEFAULT_MODEL,
        temperature: float | None = None,
    ) -> None:
        self._completer = completer
        self._model = model
        self._temperature = temperature if supports_temperature(model) else None

    @property
    def temperature(self) -> float | None:
        """Temperature actually sent, or None when the model does not take one."""
        return self._temperature

    async def process_combined(self, messages: Sequence[NormalizedMessage], prompt: str) -> str:
        """Return the single response covering every message.

        Raises:
            DispatchError: if the completion fails.
        """
        if not messages:
            return NO_EMAILS_RESPONSE
        logger.info("Dispatching %d email(s) in one request to %s", len(messages), self._model)
        try:
            text = await self._completer.complete(
                prompt, build_combined_content(messages), self._model, self._temperature
            )
        except DispatchError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise DispatchError(str(exc) or type(exc).__name__) from exc
        return text or NO_COMBINED_RESPONSE

    async def dispatch_individually(
        self, messages: Sequence[NormalizedMessage], prompt: str
    ) -> Outcomes:
        """Send one request per message and wait for all of them.

        Returns a map from message key to response text or DispatchError.
        Never raises for a per-message failure.
        """
        total = len(messages)

        async def _one(index: int, message: NormalizedMessage) -> tuple[str, str | DispatchError]:
            try:
                text = await self._completer.complete(
                    prompt,
                    build_individual_content(message),
                    self._model,
                    self._temperature,
                )
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Completion failed for email %d/%d (%s): %s", index, total, message.key, exc
                )
                error = exc if isinstance(exc, DispatchError) else DispatchError(str(exc))
                return message.key, error
            logger.debug("Completion received for email %d/%d (%s)", index, total, message.key)
            return message.key, text or f"(No response for email {index})"

        logger.info("Dispatching %d email(s) individually to %s", total, self._model)
        pairs = await asyncio.gather(*(_one(i, m) for i, m in enumerate(messages, start=1)))
        return dict(pairs)

    @staticmethod
    def correlate(
        messages: Sequence[NormalizedMessage],
        outcomes: Outcomes,
        tags: Sequence[TagDefinition] = (),
    ) -> list[ProcessedResult]:
        """Join outcomes back onto their messages by key, extracting tags.

        Exactly one result per message, in message order.  A message with no
        outcome is reported as failed rather than dropped.
        """
        results: list[ProcessedResult] = []
        for index, message in enumerate(messages, start=1):
            outcome = outcomes.get(message.key)
            if isinstance(outcome, str):
                content, matched = extract_tags(outcome, tags)
                results.append(
                    CompletedResult(
                        message_key=message.key,
                        subject=message.subject,
                        sender=message.sender,
                        date=message.date,
                        content=content,
                        tags=tuple(matched),
                    )
                )
                continue
            error = str(outcome) if outcome is not None else "no completion returned"
            results.append(
                FailedResult(
                    message_key=message.key,
                    subject=message.subject,
                    sender=message.sender,
                    date=message.date,
                    content=f"(Error processing email {index}: {error})",
                    error=error,
                )
            )
        return results

    async def process_individually(
        self,
        messages: Sequence[NormalizedMessage],
        prompt: str,
        tags: Sequence[TagDefinition] = (),
    ) -> list[ProcessedResult]:
        """Dispatch per message and correlate in one step."""
        outcomes = await self.dispatch_individually(messages, prompt)
        return self.correlate(messages, outcomes, tags)
