"""Key-value stores used to persist user state such as holdings."""

import logging
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from marketpulse.models import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal string key-value store the core reads and writes."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store; contents are lost on restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """Store backed by the ``kv_entries`` table.

    Each call uses its own short session so writes are committed immediately.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> str | None:
        with self._session() as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session() as db:
            try:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    db.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                db.commit()
            except Exception:
                db.rollback()
                raise
        logger.debug("Stored key %s", key)

    def delete(self, key: str) -> None:
        with self._session() as db:
            entry = db.get(KeyValueEntry, key)
            if entry is not None:
                db.delete(entry)
                db.commit()
