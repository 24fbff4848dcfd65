from unittest.mock import MagicMock

import pytest
from google.cloud import firestore

from database.store import FirestoreStore, MemoryStore


def test_memory_store_roundtrip_returns_copies():
    store = MemoryStore()
    value = {"sessions": [{"mode": "work", "timestamp": 1}]}
    store.set("pomodoro", value)

    loaded = store.get("pomodoro")
    loaded["sessions"].clear()

    assert store.get("pomodoro") == value
    assert store.get("missing") is None


def test_memory_store_set_many_is_all_or_nothing():
    """Тест: несериализуемое значение -> ни один ключ не записан"""
    store = MemoryStore({"a": 1})

    with pytest.raises(TypeError):
        store.set_many({"a": 2, "b": object()})

    assert store.get("a") == 1
    assert store.get("b") is None


def test_memory_store_none_deletes_key():
    store = MemoryStore({"taskProgress": {"date": "2024-01-01"}, "keep": 1})

    store.set_many({"taskProgress": None, "keep": 2})

    assert store.keys() == ["keep"]
    assert store.get("keep") == 2


def test_memory_store_malformed_raw_raises():
    store = MemoryStore()
    store.set_raw("pomodoro", "{broken")

    assert store.get_raw("pomodoro") == "{broken"
    with pytest.raises(ValueError):
        store.get("pomodoro")


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.batch.return_value = MagicMock()
    return db


def test_firestore_store_get_missing(mock_db):
    mock_db.collection.return_value.document.return_value.get.return_value = MagicMock(exists=False)
    store = FirestoreStore(mock_db, "pomodoro_store")

    assert store.get("pomodoro") is None
    mock_db.collection.assert_called_with("pomodoro_store")


def test_firestore_store_get_decodes_json(mock_db):
    doc = MagicMock(exists=True)
    doc.to_dict.return_value = {"value": '{"A_2024-01-15": 30}'}
    mock_db.collection.return_value.document.return_value.get.return_value = doc
    store = FirestoreStore(mock_db)

    assert store.get("allTaskProgress") == {"A_2024-01-15": 30}


def test_firestore_store_set_many_single_commit(mock_db):
    """Тест: несколько ключей и удаление идут одним batch-коммитом"""
    store = FirestoreStore(mock_db)
    batch = mock_db.batch.return_value

    store.set_many({"allTaskProgress": {"A_2024-01-15": 1}, "dailyTotals": {"2024-01-15": 1}, "taskProgress": None})

    assert batch.set.call_count == 2
    batch.delete.assert_called_once()
    batch.commit.assert_called_once()
    payload = batch.set.call_args_list[0].args[1]
    assert payload["value"] == '{"A_2024-01-15": 1}'
    assert payload["updated_at"] is firestore.SERVER_TIMESTAMP


def test_firestore_store_set_single_key(mock_db):
    store = FirestoreStore(mock_db)

    store.set("pomodoro", {"work": 1500})

    mock_db.batch.return_value.commit.assert_called_once()
