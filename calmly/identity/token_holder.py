"""Client-side holders for the opaque bearer credential.

Holders are plain local state and are handed to the client explicitly, so
tests can swap in a fresh in-memory holder.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class TokenHolder(Protocol):
    def read(self) -> Optional[str]: ...
    def set(self, token: str) -> None: ...
    def clear(self) -> None: ...

    @property
    def is_authenticated(self) -> bool: ...


class InMemoryTokenHolder:
    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    def read(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        self._token = token

    def clear(self) -> None:
        self._token = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None


class FileTokenHolder:
    """Keeps the token in a small file so it survives restarts."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def read(self) -> Optional[str]:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(token, encoding="utf-8")
        try:
            os.chmod(self._path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self._path)

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass

    @property
    def is_authenticated(self) -> bool:
        return self.read() is not None
