"""
Хранилище ключ-значение для состояния таймера.
Значения - JSON-совместимые структуры; запись атомарна (всё или ничего).
"""
import copy
import json
import threading
from typing import Any, Dict, Optional

from google.cloud import firestore

from utils.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    """Интерфейс хранилища: get/set/set_many"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: Dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """
    In-memory реализация для работы без Firestore.
    Значения хранятся сериализованными, как в localStorage: чтение
    всегда отдаёт свежую копию, а битый JSON воспроизводим в тестах.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self._data[key] = value if isinstance(value, str) else json.dumps(value)
        logger.info("MemoryStore initialized", extra={"keys": len(self._data)})

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_raw(self, key: str, raw: str) -> None:
        with self._lock:
            self._data[key] = raw

    def set_many(self, values: Dict[str, Any]) -> None:
        # сериализуем заранее: ошибка не должна оставить запись частично применённой
        encoded = {key: None if value is None else json.dumps(value) for key, value in values.items()}
        with self._lock:
            for key, raw in encoded.items():
                if raw is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = raw
        logger.debug("Store write", extra={"keys": sorted(values)})

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class FirestoreStore(KeyValueStore):
    """
    Хранилище в Firestore: один документ на ключ, значение в поле "value".
    Запись нескольких ключей идёт одним batch-коммитом.
    """

    def __init__(self, db: firestore.Client, collection_name: str = "pomodoro_store"):
        self.db = db
        self.collection_name = collection_name

    def _doc(self, key: str):
        return self.db.collection(self.collection_name).document(key)

    def get(self, key: str) -> Optional[Any]:
        doc = self._doc(key).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        value = data.get("value")
        if isinstance(value, str):
            # значение хранится JSON-строкой, чтобы Firestore не менял типы ключей
            return json.loads(value)
        return copy.deepcopy(value)

    def set_many(self, values: Dict[str, Any]) -> None:
        batch = self.db.batch()
        for key, value in values.items():
            if value is None:
                batch.delete(self._doc(key))
            else:
                batch.set(
                    self._doc(key),
                    {"value": json.dumps(value), "updated_at": firestore.SERVER_TIMESTAMP},
                )
        batch.commit()
        logger.debug(
            "Store write",
            extra={"keys": sorted(values), "collection": self.collection_name},
        )
