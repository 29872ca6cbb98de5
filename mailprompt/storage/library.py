"""User libraries — tags, prompt variables, and saved prompts."""

import logging
import re

from mailprompt.processing.tags import make_marker
from mailprompt.processing.types import PromptVariable, TagDefinition
from mailprompt.storage.db import AppDatabase
from mailprompt.storage.models import (
    PROMPTS_KEY,
    TAGS_KEY,
    VARIABLES_KEY,
    SavedPrompt,
    prompt_from_dict,
    prompt_to_dict,
    tag_from_dict,
    tag_to_dict,
    variable_from_dict,
    variable_to_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_TAG_COLOR = "#cccccc"
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

DEFAULT_TAGS: list[TagDefinition] = [
    TagDefinition("Action Item", make_marker("Action Item"), "#4CAF50"),
    TagDefinition("Urgent", make_marker("Urgent"), "#f44336"),
    TagDefinition("Follow Up", make_marker("Follow Up"), "#2196F3"),
]

DEFAULT_VARIABLES: list[PromptVariable] = [
    PromptVariable("USERNAME", "Your Name"),
    PromptVariable("EMAIL", "your.email@example.com"),
]

DEFAULT_PROMPTS: list[SavedPrompt] = [
    SavedPrompt(
        "Extract Action Items",
        "Analyze the provided emails and extract every action item or task assigned "
        "to {USERNAME} ({EMAIL}), either directly by name or implied by context "
        "(e.g. a forwarded thread that ends with a request to {USERNAME}). Ignore "
        "suggestions, questions and general discussion. For each task give the email "
        "context, the task, who assigned it, the due date and priority if mentioned. "
        "Use markdown. If there are no tasks for {USERNAME}, respond only with "
        '"**No Tasks**".',
    ),
    SavedPrompt(
        "Summarize Meetings",
        "Find and summarize all upcoming meetings and events from these emails. "
        "Include the date, time, participants, and main purpose of each meeting.",
    ),
]


class LibraryError(ValueError):
    """Raised when a library change would break a uniqueness or format rule."""


# ── Tags ───────────────────────────────────────────────────────────────────────


class TagLibrary:
    """Tag definitions, seeded with defaults on first use.

    Names and markers are unique case-insensitively.  Two tags whose markers
    differ only by case are rejected here, since extraction could not tell
    them apart.
    """

    def __init__(self, db: AppDatabase) -> None:
        self._db = db

    def tags(self) -> list[TagDefinition]:
        if not self._db.has_collection(TAGS_KEY):
            self._save(DEFAULT_TAGS)
            return list(DEFAULT_TAGS)
        return [tag_from_dict(t) for t in self._db.get_collection(TAGS_KEY, default=[])]

    def add(self, name: str, color: str = DEFAULT_TAG_COLOR) -> TagDefinition:
        tag = self._validated(name, color, self.tags())
        self._save([*self.tags(), tag])
        logger.info("Added tag %r (%s)", tag.name, tag.marker)
        return tag

    def update(
        self, name: str, new_name: str | None = None, color: str | None = None
    ) -> TagDefinition:
        current = self.tags()
        existing = _find(current, name, key=lambda t: t.name)
        if existing is None:
            raise LibraryError(f"Tag {name!r} not found")
        others = [t for t in current if t is not existing]
        tag = self._validated(new_name or existing.name, color or existing.color, others)
        self._save([tag if t is existing else t for t in current])
        return tag

    def remove(self, name: str) -> None:
        current = self.tags()
        existing = _find(current, name, key=lambda t: t.name)
        if existing is None:
            raise LibraryError(f"Tag {name!r} not found")
        self._save([t for t in current if t is not existing])

    @staticmethod
    def _validated(name: str, color: str, others: list[TagDefinition]) -> TagDefinition:
        name = name.strip()
        if not name:
            raise LibraryError("Tag name cannot be empty")
        if not _COLOR_RE.match(color):
            raise LibraryError(f"Tag color must look like #rrggbb, got {color!r}")
        marker = make_marker(name)
        if any(t.name.lower() == name.lower() for t in others):
            raise LibraryError(f"Tag name {name!r} already exists")
        if any(t.marker.lower() == marker.lower() for t in others):
            raise LibraryError(f"Tag marker {marker!r} already exists")
        return TagDefinition(name=name, marker=marker, color=color)

    def _save(self, tags: list[TagDefinition]) -> None:
        self._db.set_collection(TAGS_KEY, [tag_to_dict(t) for t in tags])


# ── Prompt variables ───────────────────────────────────────────────────────────


class VariableLibrary:
    """``{KEY}`` substitution values. Keys are unique case-insensitively."""

    def __init__(self, db: AppDatabase) -> None:
        self._db = db

    def variables(self) -> list[PromptVariable]:
        if not self._db.has_collection(VARIABLES_KEY):
            self._save(DEFAULT_VARIABLES)
            return list(DEFAULT_VARIABLES)
        return [variable_from_dict(v) for v in self._db.get_collection(VARIABLES_KEY, default=[])]

    def set(self, key: str, value: str) -> PromptVariable:
        """Add a variable, or update the value of the one with exactly this key."""
        key = key.strip()
        if not key:
            raise LibraryError("Variable key cannot be empty")
        current = self.variables()
        variable = PromptVariable(key=key, value=value)
        if any(v.key == key for v in current):
            self._save([variable if v.key == key else v for v in current])
            return variable
        clash = _find(current, key, key=lambda v: v.key)
        if clash is not None:
            raise LibraryError(f"Variable {clash.key!r} already exists")
        self._save([*current, variable])
        return variable

    def remove(self, key: str) -> None:
        current = self.variables()
        existing = _find(current, key, key=lambda v: v.key)
        if existing is None:
            raise LibraryError(f"Variable {key!r} not found")
        self._save([v for v in current if v is not existing])

    def _save(self, variables: list[PromptVariable]) -> None:
        self._db.set_collection(VARIABLES_KEY, [variable_to_dict(v) for v in variables])


# ── Saved prompts ──────────────────────────────────────────────────────────────


class PromptLibrary:
    """Named prompts. Names are unique case-insensitively."""

    def __init__(self, db: AppDatabase) -> None:
        self._db = db

    def prompts(self) -> list[SavedPrompt]:
        if not self._db.has_collection(PROMPTS_KEY):
            self._save(DEFAULT_PROMPTS)
            return list(DEFAULT_PROMPTS)
        return [prompt_from_dict(p) for p in self._db.get_collection(PROMPTS_KEY, default=[])]

    def get(self, name: str) -> SavedPrompt | None:
        return _find(self.prompts(), name, key=lambda p: p.name)

    def add(self, name: str, prompt: str) -> SavedPrompt:
        name = name.strip()
        if not name:
            raise LibraryError("Prompt name cannot be empty")
        if not prompt.strip():
            raise LibraryError("Prompt text cannot be empty")
        current = self.prompts()
        if _find(current, name, key=lambda p: p.name) is not None:
            raise LibraryError(f"Prompt {name!r} already exists")
        saved = SavedPrompt(name=name, prompt=prompt)
        self._save([*current, saved])
        return saved

    def remove(self, name: str) -> None:
        current = self.prompts()
        existing = _find(current, name, key=lambda p: p.name)
        if existing is None:
            raise LibraryError(f"Prompt {name!r} not found")
        self._save([p for p in current if p is not existing])

    def _save(self, prompts: list[SavedPrompt]) -> None:
        self._db.set_collection(PROMPTS_KEY, [prompt_to_dict(p) for p in prompts])


def _find(items, name, key):  # type: ignore[no-untyped-def]
    """First item whose ``key(item)`` equals ``name`` case-insensitively."""
    wanted = name.strip().lower()
    return next((item for item in items if key(item).lower() == wanted), None)
