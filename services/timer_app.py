"""
Сборка ядра: хранилище -> журнал, трекер, движок, аналитика
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from database.progress_db import ProgressDB
from database.store import KeyValueStore
from database.timer_db import TimerDB
from models.task import Task
from models.timer import TimerConfig
from services.analytics import MIN_VISIBLE, AnalyticsAggregator
from services.progress_tracker import ProgressTracker
from services.session_log import SessionLog, persist_with_config
from services.timer_engine import Notify, TimerEngine
from utils.logging import get_logger
from utils.scheduler import Scheduler

logger = get_logger(__name__)


@dataclass
class TimerApp:
    """Экземпляр ядра; никаких глобальных объектов, каждый тест может собрать свой"""
    engine: TimerEngine
    tracker: ProgressTracker
    session_log: SessionLog
    analytics: AnalyticsAggregator
    timer_db: TimerDB
    progress_db: ProgressDB
    tasks: Dict[str, Task] = field(default_factory=dict)

    @property
    def active_task(self) -> Optional[Task]:
        task_id = self.tracker.active_task_id
        return self.tasks.get(task_id) if task_id else None

    def select_task(self, task: Optional[Task]) -> int:
        if task is None:
            return self.tracker.select_task(None)
        self.tasks[task.id] = task
        return self.tracker.select_task(task.id)

    def remove_task(self, task_id: Union[str, int]) -> int:
        self.tasks.pop(str(task_id), None)
        return self.tracker.remove_task(task_id)

    def close(self) -> None:
        self.engine.close()
        self.tracker.flush()


def build_timer_app(
    store: KeyValueStore,
    scheduler: Scheduler,
    notify: Notify,
    default_config: TimerConfig = TimerConfig(),
    tick_interval_ms: int = 500,
    min_visible: float = MIN_VISIBLE,
) -> TimerApp:
    """Загружает сохранённое состояние и связывает компоненты"""
    timer_db = TimerDB(store, default_config=default_config)
    progress_db = ProgressDB(store)

    config, sessions = timer_db.load()
    tracker = ProgressTracker(progress_db, today=scheduler.today)

    # журнал пишет общий блоб вместе с актуальным конфигом движка
    session_log = SessionLog(sessions, persist=persist_with_config(timer_db, lambda: engine.config))
    engine = TimerEngine(
        scheduler=scheduler,
        session_log=session_log,
        notify=notify,
        config=config,
        progress=tracker,
        timer_db=timer_db,
        tick_interval_ms=tick_interval_ms,
    )

    analytics = AnalyticsAggregator(tracker.daily_totals, min_visible=min_visible)
    logger.info(
        "Timer app built",
        extra={"sessions": len(session_log), "days_tracked": len(tracker.daily_totals())},
    )
    return TimerApp(
        engine=engine,
        tracker=tracker,
        session_log=session_log,
        analytics=analytics,
        timer_db=timer_db,
        progress_db=progress_db,
    )
