from __future__ import annotations

import json
from typing import Any

from sqlalchemy.orm import Session

from emtrack.domain.errors import StorageFailure
from emtrack.infrastructure.storage.kv_store import KeyValueStore


class JsonCollectionRepository:
    """JSON (de)serialisation of whole collections stored under one key."""

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self.store = store or KeyValueStore()

    def load(self, session: Session, key: str) -> list[dict[str, Any]]:
        raw = self.store.get(session, key)
        if raw is None:
            return []
        data = self._decode(key, raw)
        if not isinstance(data, list):
            raise StorageFailure(f"Stored value for '{key}' is not a list")
        return data

    def save(self, session: Session, key: str, rows: list[dict[str, Any]]) -> None:
        self.store.set(session, key, self._encode(key, rows))

    def load_object(self, session: Session, key: str) -> dict[str, Any] | None:
        raw = self.store.get(session, key)
        if raw is None:
            return None
        data = self._decode(key, raw)
        if not isinstance(data, dict):
            raise StorageFailure(f"Stored value for '{key}' is not an object")
        return data

    def save_object(self, session: Session, key: str, value: dict[str, Any]) -> None:
        self.store.set(session, key, self._encode(key, value))

    def remove(self, session: Session, key: str) -> None:
        self.store.remove(session, key)

    def _encode(self, key: str, value: Any) -> str:
        try:
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise StorageFailure(f"Cannot serialise value for '{key}'") from exc

    def _decode(self, key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageFailure(f"Stored value for '{key}' is not valid JSON") from exc
