"""
Учёт отработанного времени по задачам и дням.
Каждая рабочая секунда начисляется активной задаче на текущую календарную дату.
"""
from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, Iterator, Optional, Tuple, Union

from database.progress_db import ProgressDB, ProgressKey, totals_from
from models.task import Task
from utils.logging import get_logger, set_task_context

logger = get_logger(__name__)

DateLike = Union[date, str]


def _day(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else value


class ProgressTracker:
    """
    Счётчики (task_id, date) -> секунды и производные итоги по дням.
    После каждой мутации daily_total(d) == сумме прогресса за d.
    """

    def __init__(self, progress_db: ProgressDB, today: Callable[[], date]):
        """
        Args:
            progress_db: хранилище карт прогресса
            today: источник текущей локальной даты (обычно Scheduler.today)
        """
        self.db = progress_db
        self._today = today
        self._progress, self._totals = progress_db.load()
        self._active_task_id: Optional[str] = None
        self._batch_depth = 0
        self._dirty = False

    # === Выбор задачи ===

    @property
    def active_task_id(self) -> Optional[str]:
        return self._active_task_id

    def select_task(self, task_id: Optional[Union[str, int]], day: Optional[DateLike] = None) -> int:
        """
        Делает задачу активной и возвращает её счётчик на дату (0 если записи нет).
        Несохранённых секунд нет: каждая секунда уже записана в момент тика.
        """
        self._active_task_id = None if task_id is None else str(task_id)
        set_task_context(self._active_task_id)
        if self._active_task_id is None:
            logger.info("Task deselected")
            return 0
        worked = self.worked_seconds(self._active_task_id, day)
        logger.info("Task selected", extra={"worked_seconds": worked})
        return worked

    # === Тики ===

    def on_work_tick(self) -> None:
        """+1 секунда активной задаче на сегодняшнюю дату"""
        if self._active_task_id is None:
            return
        # дата определяется на каждом тике: сессия может пересечь полночь
        day = _day(self._today())
        key: ProgressKey = (self._active_task_id, day)
        self._progress[key] = self._progress.get(key, 0) + 1
        self._totals[day] = self._sum_for_day(day)
        self._dirty = True
        if self._batch_depth == 0:
            self.flush()

    @contextmanager
    def batch(self) -> Iterator["ProgressTracker"]:
        """Группирует несколько тиков в одну запись хранилища"""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self.flush()

    def flush(self) -> None:
        if not self._dirty:
            return
        self.db.save(self._progress, self._totals)
        self._dirty = False

    # === Удаление задачи ===

    def remove_task(self, task_id: Union[str, int]) -> int:
        """
        Удаляет все записи задачи и пересчитывает затронутые дни.
        Возвращает число удалённых записей.
        """
        task_id = str(task_id)
        affected = {day for (tid, day) in self._progress if tid == task_id}
        for day in affected:
            del self._progress[(task_id, day)]
        for day in affected:
            total = self._sum_for_day(day)
            if total:
                self._totals[day] = total
            else:
                self._totals.pop(day, None)

        if self._active_task_id == task_id:
            self._active_task_id = None
            set_task_context(None)

        if affected:
            self.db.save(self._progress, self._totals)
        logger.info("Task progress removed", extra={"removed_task_id": task_id, "entries": len(affected)})
        return len(affected)

    # === Чтение ===

    def worked_seconds(self, task_id: Union[str, int], day: Optional[DateLike] = None) -> int:
        day = _day(day) if day is not None else _day(self._today())
        return self._progress.get((str(task_id), day), 0)

    def daily_total(self, day: DateLike) -> int:
        return self._totals.get(_day(day), 0)

    def daily_totals(self) -> Dict[str, int]:
        return dict(self._totals)

    def progress(self) -> Dict[ProgressKey, int]:
        return dict(self._progress)

    def worked_breakdown(self, task_id: Union[str, int], day: Optional[DateLike] = None) -> Tuple[int, int]:
        """(часы, минуты) отработанного времени"""
        seconds = self.worked_seconds(task_id, day)
        return seconds // 3600, (seconds % 3600) // 60

    def percent_complete(self, task: Task, day: Optional[DateLike] = None) -> float:
        """Процент дневной цели задачи, не больше 100"""
        target = task.daily_target_seconds
        if target <= 0:
            return 0
        return min(self.worked_seconds(task.id, day) / target * 100, 100)

    def check_consistency(self) -> bool:
        return totals_from(self._progress) == {d: s for d, s in self._totals.items() if s}

    def _sum_for_day(self, day: str) -> int:
        return sum(seconds for (_, d), seconds in self._progress.items() if d == day)
