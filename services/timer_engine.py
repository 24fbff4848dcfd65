"""
Движок Pomodoro: обратный отсчёт работа/перерыв.

Остаток всегда вычисляется от фиксированного дедлайна (deadline - now),
а не декрементом счётчика, поэтому дрожание интервала тиков и сон
системы не накапливают ошибку.
"""
import functools
import math
from collections.abc import Mapping
from typing import Callable, Optional, Tuple, Union

from database.timer_db import TimerDB
from models.timer import InvalidConfig, SessionRecord, TimerConfig, TimerMode, TimerState
from services.progress_tracker import ProgressTracker
from services.session_log import SessionLog
from utils.logging import get_logger
from utils.scheduler import ScheduleHandle, Scheduler

logger = get_logger(__name__)

Notify = Callable[[str], None]
RunToken = Tuple[int, float]

EXPIRY_MESSAGES = {
    TimerMode.WORK: "⏰ Pomodoro завершён! Время для перерыва.",
    TimerMode.SHORT_BREAK: "☕ Перерыв окончен! Пора за работу.",
    TimerMode.LONG_BREAK: "☕ Перерыв окончен! Пора за работу.",
}


def round_half_up(value: float) -> int:
    """Округление .5 вверх (round() в Python округляет к чётному)"""
    return int(math.floor(value + 0.5))


def next_mode(mode: TimerMode) -> TimerMode:
    """Авто-переход после истечения. Длинный перерыв автоматически не наступает."""
    return TimerMode.SHORT_BREAK if mode == TimerMode.WORK else TimerMode.WORK


class TimerEngine:
    """
    Машина состояний таймера.
    Всё изменяемое состояние живёт в экземпляре, глобальных таймеров нет.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        session_log: SessionLog,
        notify: Notify,
        config: TimerConfig = TimerConfig(),
        progress: Optional[ProgressTracker] = None,
        timer_db: Optional[TimerDB] = None,
        tick_interval_ms: int = 500,
    ):
        """
        Args:
            scheduler: источник времени и тиков
            session_log: журнал завершённых периодов
            notify: приёмник уведомлений (fire-and-forget)
            config: начальные длительности
            progress: учёт рабочих секунд по задачам (опционально)
            timer_db: куда сохранять конфиг при configure() (опционально)
            tick_interval_ms: период тиков
        """
        self.scheduler = scheduler
        self.session_log = session_log
        self.progress = progress
        self.timer_db = timer_db
        self.tick_interval_ms = tick_interval_ms
        self._notify = notify
        self._config = config

        self._mode = TimerMode.WORK
        self._remaining: float = config.duration(TimerMode.WORK)
        self._running = False
        self._deadline: Optional[float] = None
        self._handle: Optional[ScheduleHandle] = None
        # (номер запуска, дедлайн) текущего отсчёта и отсчёта, истечение которого уже обработано
        self._runs = 0
        self._run_token: Optional[RunToken] = None
        self._expired_token: Optional[RunToken] = None
        # целый остаток, до которого рабочие секунды уже начислены
        self._credited_whole = round_half_up(self._remaining)

    # ---- Свойства ----

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def mode(self) -> TimerMode:
        return self._mode

    @property
    def running(self) -> bool:
        return self._running

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def remaining_seconds(self) -> int:
        return max(0, round_half_up(self._remaining))

    @property
    def state(self) -> TimerState:
        return TimerState(
            mode=self._mode,
            remaining_seconds=self.remaining_seconds,
            running=self._running,
            deadline=self._deadline,
        )

    # ---- Управление ----

    def configure(self, config: Union[TimerConfig, Mapping[str, int]]) -> None:
        """
        Обновляет длительности. Журнал не затрагивается.

        Идущий отсчёт не перебазируется: новые значения применяются
        со следующего reset()/смены режима/истечения.

        Raises:
            InvalidConfig: отрицательные или нечисловые длительности;
                прежний конфиг остаётся в силе
        """
        if isinstance(config, Mapping):
            try:
                config = TimerConfig(**config)
            except TypeError as e:
                raise InvalidConfig(str(e)) from e
        if not isinstance(config, TimerConfig):
            raise InvalidConfig(f"Ожидался TimerConfig, получено: {type(config).__name__}")

        if self.timer_db is not None:
            self.timer_db.save(config, self.session_log.records())
        self._config = config

        if not self._running:
            self._set_remaining(config.duration(self._mode))
        logger.info(
            "Timer configured",
            extra={**config.to_dict(), "applied_now": not self._running},
        )

    def start(self) -> None:
        if self._running:
            return
        now = self.scheduler.now()
        self._running = True
        self._deadline = now + self._remaining
        self._runs += 1
        self._run_token = (self._runs, self._deadline)
        self._credited_whole = self.remaining_seconds
        self._handle = self.scheduler.schedule(
            functools.partial(self._on_tick, self._run_token),
            self.tick_interval_ms,
        )
        logger.info(
            "Timer started",
            extra={"mode": self._mode.value, "remaining_seconds": self.remaining_seconds, "deadline": self._deadline},
        )

    def pause(self) -> None:
        if not self._running:
            return
        now = self.scheduler.now()
        self._stop_ticking()
        self._remaining = max(0.0, self._deadline - now)
        self._credit_work_seconds(self.remaining_seconds)
        self._running = False
        self._deadline = None
        self._run_token = None
        logger.info("Timer paused", extra={"mode": self._mode.value, "remaining_seconds": self.remaining_seconds})

    def reset(self) -> None:
        self.pause()
        self._set_remaining(self._config.duration(self._mode))
        logger.info("Timer reset", extra={"mode": self._mode.value})

    def switch_mode(self, mode: TimerMode) -> None:
        """Ручная смена режима. Запись в журнал не добавляется."""
        mode = TimerMode(mode)
        self.pause()
        self._mode = mode
        self._set_remaining(self._config.duration(mode))
        logger.info("Mode switched", extra={"mode": mode.value})

    def close(self) -> None:
        """Остановка при завершении приложения; после возврата состояние не меняется"""
        if self._running:
            self.pause()
        self._stop_ticking()

    # ---- Тик ----

    def _on_tick(self, token: RunToken) -> None:
        # тик от старого потока (другой запуск/дедлайн) игнорируется
        if not self._running or token != self._run_token:
            logger.debug("Stale tick ignored", extra={"tick_deadline": token[1]})
            return

        now = self.scheduler.now()
        self._remaining = max(0, round_half_up(self._deadline - now))
        self._credit_work_seconds(self.remaining_seconds)

        if self._remaining == 0:
            self._expire(token, now)

    def _expire(self, token: RunToken, now: float) -> None:
        if self._expired_token == token:
            logger.debug("Duplicate expiry suppressed", extra={"deadline": token[1]})
            return
        # переход фиксируется до побочных эффектов: повторный вход его уже видит
        self._expired_token = token
        deadline = token[1]

        finished = self._mode
        self._stop_ticking()
        self._running = False
        self._deadline = None
        self._run_token = None

        self._mode = next_mode(finished)
        self._set_remaining(self._config.duration(self._mode))

        # переход уже завершён: сбой записи журнала не должен вернуть истёкший отсчёт
        try:
            self.session_log.append(SessionRecord(mode=finished, completed_at=now))
        except Exception as e:
            logger.error(
                "Session persist failed",
                extra={"mode": finished.value, "error": str(e)},
                exc_info=True,
            )
        self._send(EXPIRY_MESSAGES[finished])
        logger.info(
            "Session completed",
            extra={"mode": finished.value, "next_mode": self._mode.value, "deadline": deadline},
        )

    # ---- Внутреннее ----

    def _set_remaining(self, seconds: float) -> None:
        self._remaining = seconds
        self._credited_whole = self.remaining_seconds

    def _credit_work_seconds(self, whole_remaining: int) -> None:
        """Передаёт трекеру каждую целую секунду, на которую уменьшился рабочий отсчёт"""
        elapsed = self._credited_whole - whole_remaining
        self._credited_whole = whole_remaining
        if elapsed <= 0 or self._mode != TimerMode.WORK or self.progress is None:
            return
        with self.progress.batch():
            for _ in range(elapsed):
                self.progress.on_work_tick()

    def _stop_ticking(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def _send(self, message: str) -> None:
        try:
            self._notify(message)
        except Exception as e:
            logger.error("Notification failed", extra={"error": str(e)})
