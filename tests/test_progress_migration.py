from database.progress_db import LEGACY_PROGRESS_KEY, PROGRESS_KEY, TOTALS_KEY, ProgressDB
from database.store import MemoryStore
from tasks.progress_migration import migration_pass
from utils.logging import get_request_id


def test_no_legacy_key_is_noop():
    store = MemoryStore()

    assert migration_pass(ProgressDB(store)) == 0
    assert store.keys() == []


def test_legacy_entry_moved_and_key_removed():
    """Тест: старый taskProgress переносится в allTaskProgress и удаляется"""
    store = MemoryStore(
        {LEGACY_PROGRESS_KEY: {"date": "2024-01-15", "task": {"id": 1700000000000}, "workedSec": 120}}
    )

    migrated = migration_pass(ProgressDB(store))

    assert migrated == 1
    assert store.get(LEGACY_PROGRESS_KEY) is None
    assert store.get(PROGRESS_KEY) == {"1700000000000_2024-01-15": 120}
    assert store.get(TOTALS_KEY) == {"2024-01-15": 120}


def test_legacy_does_not_double_count():
    store = MemoryStore(
        {
            PROGRESS_KEY: {"A_2024-01-15": 300, "B_2024-01-15": 60},
            LEGACY_PROGRESS_KEY: {"date": "2024-01-15", "task": {"id": "A"}, "workedSec": 200},
        }
    )

    migration_pass(ProgressDB(store))

    assert store.get(PROGRESS_KEY) == {"A_2024-01-15": 300, "B_2024-01-15": 60}
    assert store.get(TOTALS_KEY) == {"2024-01-15": 360}


def test_unreadable_legacy_is_dropped():
    store = MemoryStore({LEGACY_PROGRESS_KEY: {"date": "2024-01-15"}})

    assert migration_pass(ProgressDB(store)) == 0
    assert store.get(LEGACY_PROGRESS_KEY) is None


def test_malformed_legacy_json_is_dropped():
    store = MemoryStore()
    store.set_raw(LEGACY_PROGRESS_KEY, "{oops")

    assert migration_pass(ProgressDB(store)) == 0
    assert store.get_raw(LEGACY_PROGRESS_KEY) is None


def test_second_pass_is_noop():
    store = MemoryStore(
        {LEGACY_PROGRESS_KEY: {"date": "2024-01-15", "task": {"id": "A"}, "workedSec": 50}}
    )
    db = ProgressDB(store)

    migration_pass(db)
    assert migration_pass(db) == 0
    assert get_request_id() is None


def test_non_finite_legacy_seconds_are_dropped():
    store = MemoryStore()
    store.set_raw(LEGACY_PROGRESS_KEY, '{"date": "2024-01-15", "task": {"id": "A"}, "workedSec": Infinity}')

    assert migration_pass(ProgressDB(store)) == 0
    assert store.get_raw(LEGACY_PROGRESS_KEY) is None
    assert store.get(PROGRESS_KEY) == {}
