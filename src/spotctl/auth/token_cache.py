"""Persistent storage for the Spotify OAuth token.

The session talks to any object implementing the :class:`TokenCache`
protocol. :class:`FileTokenCache` is the default and stores the token in
``~/.local/share/spotctl/spotify_token.json`` (XDG) or the
platform-equivalent directory. Writes go through
:func:`~spotctl.config.atomic_write` with ``0o600`` permissions so the
refresh token is never world-readable, even momentarily.

:class:`MemoryTokenCache` keeps the record in process, for embedding the
library without touching disk and for tests.

Failures are reported as :class:`~spotctl.exceptions.TokenCacheError`, so a
broken cache can be told apart from an empty one (``load()`` returning
``None``).
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from spotctl.config import atomic_write, get_data_dir
from spotctl.exceptions import TokenCacheError
from spotctl.models import TokenRecord

TOKEN_FILENAME = "spotify_token.json"


class TokenCache(Protocol):
    """Load/save/clear interface used by :class:`~spotctl.session.Session`."""

    def load(self) -> Optional[TokenRecord]: ...

    def save(self, record: TokenRecord) -> None: ...

    def clear(self) -> None: ...


def default_token_path() -> Path:
    """Return the default token file location under the data directory."""
    return get_data_dir() / TOKEN_FILENAME


class FileTokenCache:
    """JSON-file token cache.

    Args:
        path: Token file. Defaults to :func:`default_token_path`.

    Example::

        cache = FileTokenCache()
        cache.save(record)
        assert cache.load() == record
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path if path is not None else default_token_path()

    @property
    def path(self) -> Path:
        """The filesystem path of the token file."""
        return self._path

    def load(self) -> Optional[TokenRecord]:
        """Read the stored token.

        Returns:
            The stored :class:`~spotctl.models.TokenRecord`, or ``None`` if
            no token file exists.

        Raises:
            TokenCacheError: If the file cannot be read or does not contain
                a valid token record.
        """
        if not self._path.is_file():
            return None
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TokenCacheError(f"Cannot read token cache {self._path}: {exc}") from exc
        try:
            return TokenRecord.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise TokenCacheError(f"Corrupt token cache {self._path}: {exc}") from exc

    def save(self, record: TokenRecord) -> None:
        """Persist *record* atomically, replacing any prior token.

        Raises:
            TokenCacheError: If the file cannot be written.
        """
        text = json.dumps(record.model_dump(mode="json"), indent=2) + "\n"
        try:
            atomic_write(self._path, text, mode=0o600)
        except OSError as exc:
            raise TokenCacheError(f"Cannot write token cache {self._path}: {exc}") from exc

    def clear(self) -> None:
        """Delete the token file. Succeeds if the file is already gone.

        Raises:
            TokenCacheError: If an existing file cannot be removed.
        """
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise TokenCacheError(f"Cannot remove token cache {self._path}: {exc}") from exc


class MemoryTokenCache:
    """In-process token cache."""

    def __init__(self, record: Optional[TokenRecord] = None) -> None:
        self._record = record
        self._lock = threading.Lock()
        self.saves = 0

    def load(self) -> Optional[TokenRecord]:
        with self._lock:
            return self._record

    def save(self, record: TokenRecord) -> None:
        with self._lock:
            self._record = record
            self.saves += 1

    def clear(self) -> None:
        with self._lock:
            self._record = None
