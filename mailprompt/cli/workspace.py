"""Workspace — settings and stores shared by every CLI command."""

from mailprompt.config import Settings
from mailprompt.processing.dispatcher import AnthropicCompleter, Completer
from mailprompt.processing.pipeline import QueryRunner
from mailprompt.storage.db import AppDatabase
from mailprompt.storage.history import QueryHistory
from mailprompt.storage.library import PromptLibrary, TagLibrary, VariableLibrary


class Workspace:
    """Holds the database and the libraries built on it behind one object.

    All stores are public attributes so commands can use them directly.

    Usage::

        ws = Workspace(Settings.from_env())
        runner = ws.runner()
        entry = await runner.run(ws.settings.credentials(), request)
    """

    def __init__(self, settings: Settings, db: AppDatabase | None = None) -> None:
        self.settings = settings
        self.db = db or AppDatabase(db_path=settings.db_path)
        self.history = QueryHistory(self.db)
        self.tags = TagLibrary(self.db)
        self.variables = VariableLibrary(self.db)
        self.prompts = PromptLibrary(self.db)

    def close(self) -> None:
        """Release the database connection."""
        self.db.close()

    def completer(self) -> Completer:
        return AnthropicCompleter(api_key=self.settings.anthropic_api_key or None)

    def runner(self, completer: Completer | None = None) -> QueryRunner:
        """Build a QueryRunner bound to the current tags and variables."""
        return QueryRunner(
            completer or self.completer(),
            self.history,
            tags=self.tags.tags(),
            variables=self.variables.variables(),
        )
