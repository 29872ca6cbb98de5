"""Runtime settings read from the environment (and ``.env`` via python-dotenv)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from mailprompt.imap.types import IMAPS_PORT, MailboxCredentials
from mailprompt.processing.dispatcher import DEFAULT_MODEL

logger = logging.getLogger(__name__)

_DEFAULT_HOST = "imap.gmail.com"
_DEFAULT_TEMPERATURE = 0.7


@dataclass
class Settings:
    """Connection, model, and storage settings.

    The core engines never read these directly; the CLI turns them into
    explicit credentials, completers and stores.
    """

    imap_host: str = _DEFAULT_HOST
    imap_port: int = IMAPS_PORT
    imap_email: str = ""
    imap_password: str = field(default="", repr=False)
    anthropic_api_key: str = field(default="", repr=False)
    model: str = DEFAULT_MODEL
    temperature: float = _DEFAULT_TEMPERATURE
    db_path: Path = field(default_factory=lambda: Path("data/mailprompt.db"))
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables."""
        return cls(
            imap_host=os.environ.get("IMAP_HOST", _DEFAULT_HOST),
            imap_port=_int_env("IMAP_PORT", IMAPS_PORT),
            imap_email=os.environ.get("IMAP_EMAIL", ""),
            imap_password=os.environ.get("IMAP_PASSWORD", ""),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            model=os.environ.get("MAILPROMPT_MODEL", DEFAULT_MODEL),
            temperature=_float_env("MAILPROMPT_TEMPERATURE", _DEFAULT_TEMPERATURE),
            db_path=Path(os.environ.get("MAILPROMPT_DB_PATH", "data/mailprompt.db")),
            log_level=os.environ.get("MAILPROMPT_LOG_LEVEL", "WARNING").upper(),
        )

    def credentials(self) -> MailboxCredentials:
        """Return mailbox credentials.

        Raises:
            ValueError: if host, account or password is not configured.
        """
        missing = [
            name
            for name, value in (
                ("IMAP_HOST", self.imap_host),
                ("IMAP_EMAIL", self.imap_email),
                ("IMAP_PASSWORD", self.imap_password),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Email not connected: set {', '.join(missing)}")
        return MailboxCredentials(
            host=self.imap_host,
            port=self.imap_port,
            account=self.imap_email,
            secret=self.imap_password,
        )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %d", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
