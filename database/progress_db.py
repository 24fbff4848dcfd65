"""
Прогресс по задачам: канонический (task_id, date) -> секунды
и производная карта date -> секунды
"""
import math
from typing import Any, Dict, Optional, Tuple

from database.store import KeyValueStore
from utils.logging import get_logger

logger = get_logger(__name__)

PROGRESS_KEY = "allTaskProgress"
TOTALS_KEY = "dailyTotals"
LEGACY_PROGRESS_KEY = "taskProgress"

ProgressKey = Tuple[str, str]


def progress_key(task_id: str, day: str) -> str:
    return f"{task_id}_{day}"


def split_progress_key(key: str) -> ProgressKey:
    """'{task_id}_{YYYY-MM-DD}' -> (task_id, date); ID может содержать '_'"""
    task_id, sep, day = key.rpartition("_")
    if not sep or not task_id or len(day) != 10:
        raise ValueError(f"Некорректный ключ прогресса: {key!r}")
    return task_id, day


def totals_from(progress: Dict[ProgressKey, int]) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for (_, day), seconds in progress.items():
        totals[day] = totals.get(day, 0) + seconds
    return totals


class ProgressDB:
    """Загрузка и сохранение карт прогресса"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _get_map(self, key: str) -> Dict[str, Any]:
        try:
            value = self.store.get(key)
        except ValueError as e:
            logger.warning("Malformed progress map, starting empty", extra={"key": key, "error": str(e)})
            return {}
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning("Unexpected progress map type", extra={"key": key, "type": type(value).__name__})
            return {}
        return value

    def load_progress(self) -> Dict[ProgressKey, int]:
        progress: Dict[ProgressKey, int] = {}
        skipped = 0
        for raw_key, seconds in self._get_map(PROGRESS_KEY).items():
            try:
                key = split_progress_key(raw_key)
            except ValueError:
                skipped += 1
                continue
            if (
                isinstance(seconds, bool)
                or not isinstance(seconds, (int, float))
                or not math.isfinite(seconds)
                or seconds < 0
            ):
                skipped += 1
                continue
            progress[key] = int(seconds)
        if skipped:
            logger.warning("Skipped malformed progress entries", extra={"skipped": skipped})
        return progress

    def load(self) -> Tuple[Dict[ProgressKey, int], Dict[str, int]]:
        """
        Возвращает (progress, totals).
        Итоги всегда пересчитываются из прогресса: сохранённая карта только кэш.
        """
        progress = self.load_progress()
        totals = totals_from(progress)
        if self._get_map(TOTALS_KEY) != totals:
            logger.info("Daily totals rebuilt from progress", extra={"days": len(totals)})
        return progress, totals

    def save(self, progress: Dict[ProgressKey, int], totals: Dict[str, int]) -> None:
        self.store.set_many(
            {
                PROGRESS_KEY: {progress_key(task_id, day): seconds for (task_id, day), seconds in progress.items()},
                TOTALS_KEY: dict(totals),
            }
        )

    # === Миграция старого формата ===

    def load_legacy(self) -> Optional[Dict[str, Any]]:
        """Старый ключ с прогрессом одной задачи: {date, task: {id}, workedSec}"""
        try:
            value = self.store.get(LEGACY_PROGRESS_KEY)
        except ValueError as e:
            logger.warning("Malformed legacy progress, ignoring", extra={"error": str(e)})
            return {}
        return value

    def save_migrated(self, progress: Dict[ProgressKey, int], totals: Dict[str, int]) -> None:
        """Запись канонических карт и удаление старого ключа одним коммитом"""
        self.store.set_many(
            {
                PROGRESS_KEY: {progress_key(task_id, day): seconds for (task_id, day), seconds in progress.items()},
                TOTALS_KEY: dict(totals),
                LEGACY_PROGRESS_KEY: None,
            }
        )
