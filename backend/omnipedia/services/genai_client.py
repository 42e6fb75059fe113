"""Gemini client wrapper using the google-genai SDK.

Credentials are an explicit object handed to every stage rather than
module-level state. The key can be persisted in a single-string key file
so it survives restarts (the only persisted state).

Usage:
    from omnipedia.services.genai_client import ApiCredentials

    credentials = ApiCredentials.from_environment()
    client = credentials.client()
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from google import genai

from omnipedia.config import settings
from omnipedia.errors import MissingApiKeyError

# Load .env so GEMINI_API_KEY is visible to from_environment()
load_dotenv()

logger = logging.getLogger(__name__)


class CredentialStore:
    """Persist a single API key string in a key file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or settings.gemini.credential_file).expanduser()

    def load(self) -> Optional[str]:
        """Return the persisted key, or None if nothing is stored."""
        if not self.path.is_file():
            return None
        key = self.path.read_text(encoding="utf-8").strip()
        return key or None

    def save(self, key: str) -> None:
        """Persist ``key``, readable only by the current user."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(key, encoding="utf-8")
        self.path.chmod(0o600)
        logger.info("API key saved to %s", self.path)

    def clear(self) -> None:
        """Remove the persisted key if present."""
        if self.path.exists():
            self.path.unlink()
            logger.info("API key removed from %s", self.path)


class ApiCredentials:
    """Single source of truth for the Gemini API key.

    The client is created lazily and rebuilt whenever the key changes.
    When a CredentialStore is attached, set() and clear() write through.
    """

    def __init__(self, api_key: Optional[str] = None, store: Optional[CredentialStore] = None):
        self._api_key = api_key or None
        self._store = store
        self._client: Optional[genai.Client] = None

    @classmethod
    def from_environment(cls, store: Optional[CredentialStore] = None) -> "ApiCredentials":
        """Resolve the key: persisted key file, then settings/env, then unset."""
        store = store or CredentialStore()
        key = (
            store.load()
            or settings.gemini.api_key
            or os.environ.get("GEMINI_API_KEY")
        )
        if not key:
            logger.info("No API key configured")
        return cls(api_key=key, store=store)

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def set(self, key: str) -> None:
        """Replace the key (and persist it when a store is attached)."""
        key = key.strip()
        if not key:
            raise ValueError("API key must not be empty")
        self._api_key = key
        self._client = None
        if self._store is not None:
            self._store.save(key)

    def clear(self) -> None:
        """Forget the key (and remove the persisted copy)."""
        self._api_key = None
        self._client = None
        if self._store is not None:
            self._store.clear()

    def client(self) -> genai.Client:
        """Return a client bound to the current key.

        Raises:
            MissingApiKeyError: If no key is configured.
        """
        if not self._api_key:
            raise MissingApiKeyError()
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client
