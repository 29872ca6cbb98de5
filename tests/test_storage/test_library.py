"""Tests for the tag, variable and saved-prompt libraries."""

import pytest

from mailprompt.storage.db import AppDatabase
from mailprompt.storage.library import (
    DEFAULT_TAG_COLOR,
    LibraryError,
    PromptLibrary,
    TagLibrary,
    VariableLibrary,
)
from mailprompt.storage.models import TAGS_KEY


# ── Tags ───────────────────────────────────────────────────────────────────────


class TestTagLibrary:
    def test_seeded_with_defaults(self, db: AppDatabase) -> None:
        tags = TagLibrary(db).tags()
        assert [(t.name, t.marker, t.color) for t in tags] == [
            ("Action Item", "[[Action Item]]", "#4CAF50"),
            ("Urgent", "[[Urgent]]", "#f44336"),
            ("Follow Up", "[[Follow Up]]", "#2196F3"),
        ]
        assert db.has_collection(TAGS_KEY)

    def test_removing_all_defaults_does_not_reseed(self, db: AppDatabase) -> None:
        lib = TagLibrary(db)
        for name in ("Action Item", "Urgent", "Follow Up"):
            lib.remove(name)
        assert TagLibrary(db).tags() == []

    def test_add_derives_marker_and_default_color(self, db: AppDatabase) -> None:
        tag = TagLibrary(db).add("  Waiting On ")
        assert tag.name == "Waiting On"
        assert tag.marker == "[[Waiting On]]"
        assert tag.color == DEFAULT_TAG_COLOR
        assert TagLibrary(db).tags()[-1] == tag

    @pytest.mark.parametrize("name", ["urgent", "URGENT", " Urgent "])
    def test_duplicate_name_rejected_case_insensitively(self, db: AppDatabase, name: str) -> None:
        with pytest.raises(LibraryError, match="already exists"):
            TagLibrary(db).add(name)

    def test_empty_name_rejected(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError):
            TagLibrary(db).add("   ")

    @pytest.mark.parametrize("color", ["red", "#fff", "#12345g", "4CAF50"])
    def test_bad_color_rejected(self, db: AppDatabase, color: str) -> None:
        with pytest.raises(LibraryError, match="#rrggbb"):
            TagLibrary(db).add("Later", color)

    def test_update_renames_and_recolors(self, db: AppDatabase) -> None:
        lib = TagLibrary(db)
        tag = lib.update("urgent", new_name="ASAP", color="#000000")
        assert (tag.name, tag.marker, tag.color) == ("ASAP", "[[ASAP]]", "#000000")
        assert [t.name for t in lib.tags()] == ["Action Item", "ASAP", "Follow Up"]

    def test_update_cannot_collide(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError):
            TagLibrary(db).update("Urgent", new_name="follow up")

    def test_update_keeping_own_name_is_allowed(self, db: AppDatabase) -> None:
        tag = TagLibrary(db).update("Urgent", color="#111111")
        assert tag.name == "Urgent"

    def test_remove_unknown(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError, match="not found"):
            TagLibrary(db).remove("Nope")


# ── Variables ──────────────────────────────────────────────────────────────────


class TestVariableLibrary:
    def test_defaults(self, db: AppDatabase) -> None:
        variables = VariableLibrary(db).variables()
        assert [(v.key, v.value) for v in variables] == [
            ("USERNAME", "Your Name"),
            ("EMAIL", "your.email@example.com"),
        ]

    def test_set_updates_existing_key(self, db: AppDatabase) -> None:
        lib = VariableLibrary(db)
        lib.set("USERNAME", "Alice")
        assert [v.value for v in lib.variables() if v.key == "USERNAME"] == ["Alice"]
        assert len(lib.variables()) == 2

    def test_set_adds_new_key(self, db: AppDatabase) -> None:
        lib = VariableLibrary(db)
        lib.set(" TEAM ", "Platform")
        assert lib.variables()[-1].key == "TEAM"

    def test_key_differing_only_by_case_rejected(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError, match="USERNAME"):
            VariableLibrary(db).set("username", "bob")

    def test_empty_key_rejected(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError):
            VariableLibrary(db).set("", "x")

    def test_remove(self, db: AppDatabase) -> None:
        lib = VariableLibrary(db)
        lib.remove("email")
        assert [v.key for v in lib.variables()] == ["USERNAME"]


# ── Prompts ────────────────────────────────────────────────────────────────────


class TestPromptLibrary:
    def test_seeded_examples(self, db: AppDatabase) -> None:
        names = [p.name for p in PromptLibrary(db).prompts()]
        assert names == ["Extract Action Items", "Summarize Meetings"]

    def test_get_is_case_insensitive(self, db: AppDatabase) -> None:
        saved = PromptLibrary(db).get("summarize meetings")
        assert saved is not None
        assert "meetings" in saved.prompt

    def test_add_and_remove(self, db: AppDatabase) -> None:
        lib = PromptLibrary(db)
        lib.add("Receipts", "List every receipt with its total.")
        assert lib.get("Receipts") is not None
        lib.remove("receipts")
        assert lib.get("Receipts") is None

    def test_duplicate_rejected(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError):
            PromptLibrary(db).add("extract action items", "x")

    def test_empty_text_rejected(self, db: AppDatabase) -> None:
        with pytest.raises(LibraryError):
            PromptLibrary(db).add("Blank", "  ")
