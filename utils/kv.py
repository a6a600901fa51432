from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, Optional, Protocol

from models import AppState

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store used by tests and scripts.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state without going through ``set``.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so the memory store rejects what the SQL store would
        self._data[key] = json.loads(json.dumps(value))

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class SqlKeyValueStore:
    """JSON values persisted one row per key through Flask-SQLAlchemy.

    Must be used inside an application context. Each ``set``/``remove``
    commits on its own, so a collection is always written wholesale.
    """

    def __init__(self, db):
        self.db = db

    def _row(self, key: str):
        return self.db.session.get(AppState, key)

    def get(self, key: str, default: Any = None) -> Any:
        row = self._row(key)
        if row is None or row.value is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError:
            logger.exception("Stored value for %s is not valid JSON; ignoring it", key)
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        row = self._row(key)
        try:
            if row is None:
                self.db.session.add(AppState(key=key, value=payload))
            else:
                row.value = payload
            self.db.session.commit()
        except Exception:
            self.db.session.rollback()
            raise

    def remove(self, key: str) -> None:
        row = self._row(key)
        if row is None:
            return
        try:
            self.db.session.delete(row)
            self.db.session.commit()
        except Exception:
            self.db.session.rollback()
            raise
