"""Client-side token storage that survives process restarts."""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredSession:
    """Tokens and the identity they were issued for. Empty when logged out."""

    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    email: str | None = None
    role: str | None = None

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token)


class TokenStore(Protocol):
    def load(self) -> StoredSession: ...

    def save(self, session: StoredSession) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Process-local store; tokens are lost on exit."""

    def __init__(self, session: StoredSession | None = None) -> None:
        self._session = session or StoredSession()

    def load(self) -> StoredSession:
        return self._session

    def save(self, session: StoredSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = StoredSession()


class FileTokenStore:
    """
    JSON file store, readable only by the owner.

    Writes go to a temp file in the same directory and are renamed into place, so a
    crash mid-write leaves the previous session intact.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoredSession:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return StoredSession()
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self._path, e)
            return StoredSession()
        if not isinstance(raw, dict):
            return StoredSession()
        known = {f.name for f in fields(StoredSession)}
        return StoredSession(**{k: v for k, v in raw.items() if k in known and isinstance(v, str)})

    def save(self, session: StoredSession) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".session-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(asdict(session), f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
