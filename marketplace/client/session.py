"""Client-side session persistence.

A session is held as three string entries (access token, refresh token,
absolute expiry) in a key-value store. The expiry entry doubles as the commit
marker: it is removed before any token is written and written only after both
tokens are in place, and a read that does not find all three reports no
session. An interrupted save or clear therefore never reads back as a
usable session.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol

from jose import JWTError, jwt

logger = logging.getLogger("client.session")

ACCESS_KEY = "access_token"
REFRESH_KEY = "refresh_token"
EXPIRES_KEY = "expires_at"
DEFAULT_LIFETIME = 3600  # seconds; provider default

_ACCESS_NAMES = ("access_token", "accessToken", "token")
_REFRESH_NAMES = ("refresh_token", "refreshToken")
_EXPIRES_AT_NAMES = ("expires_at", "expiresAt")
_EXPIRES_IN_NAMES = ("expires_in", "expiresIn")


@dataclass(frozen=True)
class SessionRecord:
    """Canonical session shape; the only one used past ``normalize_session``."""

    access_token: str
    refresh_token: str
    expires_at: int  # epoch seconds
    expires_in: Optional[int] = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def _pick(raw: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = raw.get(name)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def token_expiry(token: str) -> Optional[int]:
    """``exp`` claim of a JWT, read without verification."""
    try:
        exp = jwt.get_unverified_claims(token).get("exp")
    except JWTError:
        return None
    return _as_int(exp)


def normalize_session(raw: Optional[Mapping[str, Any]], now: Optional[float] = None) -> Optional[SessionRecord]:
    """Turn any session payload variant into a ``SessionRecord``.

    Expiry resolution order: absolute ``expires_at``; ``now + expires_in``;
    the access token's ``exp`` claim; ``now + DEFAULT_LIFETIME``. Returns
    ``None`` when either token is missing.
    """
    if not raw:
        return None
    access = _pick(raw, _ACCESS_NAMES)
    refresh = _pick(raw, _REFRESH_NAMES)
    if not access or not refresh:
        return None
    current = int(now if now is not None else time.time())
    expires_in = _as_int(_pick(raw, _EXPIRES_IN_NAMES))
    expires_at = _as_int(_pick(raw, _EXPIRES_AT_NAMES))
    if not expires_at or expires_at <= 0:
        if expires_in and expires_in > 0:
            expires_at = current + expires_in
        else:
            expires_at = token_expiry(str(access)) or current + DEFAULT_LIFETIME
    return SessionRecord(str(access), str(refresh), expires_at, expires_in)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """Entries kept in one JSON file, rewritten through a temp file + rename."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("session file unreadable path=%s: %s", self.path, e)
            return {}
        return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SessionStore:
    """Reads and writes the token triple; ``storage=None`` means not hydrated."""

    def __init__(self, storage: Optional[KeyValueStorage], clock: Callable[[], float] = time.time) -> None:
        self._storage = storage
        self._clock = clock

    @property
    def hydrated(self) -> bool:
        return self._storage is not None

    def attach(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def load(self) -> Optional[SessionRecord]:
        if self._storage is None:
            return None
        access = self._storage.get(ACCESS_KEY)
        refresh = self._storage.get(REFRESH_KEY)
        expires = self._storage.get(EXPIRES_KEY)
        expires_at = _as_int(expires)
        if not (access and refresh and expires_at):
            if access or refresh or expires:
                logger.info("discarding incomplete session entries")
                self.clear()
            return None
        return SessionRecord(access, refresh, expires_at)

    def save(self, record: SessionRecord) -> None:
        if self._storage is None:
            logger.debug("session save skipped: storage not hydrated")
            return
        self._storage.remove(EXPIRES_KEY)
        self._storage.set(ACCESS_KEY, record.access_token)
        self._storage.set(REFRESH_KEY, record.refresh_token)
        self._storage.set(EXPIRES_KEY, str(record.expires_at))

    def clear(self) -> None:
        if self._storage is None:
            return
        self._storage.remove(EXPIRES_KEY)
        self._storage.remove(ACCESS_KEY)
        self._storage.remove(REFRESH_KEY)

    @property
    def access_token(self) -> Optional[str]:
        record = self.load()
        return record.access_token if record else None

    def is_authenticated(self) -> bool:
        """Local check only: a complete triple whose expiry is in the future."""
        record = self.load()
        return record is not None and not record.is_expired(self._clock())
