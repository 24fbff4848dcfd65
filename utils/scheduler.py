"""
Часы и планировщик тиков.
Абстрагирует таймеры хоста: реальный asyncio-цикл или виртуальное время в тестах.
"""
import asyncio
import itertools
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from utils.logging import get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], None]


@dataclass(eq=False)
class ScheduleHandle:
    """Дескриптор подписки на тики"""
    id: int
    interval_ms: int
    callback: TickCallback
    cancelled: bool = False
    next_fire: float = 0.0
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class Scheduler:
    """Базовый интерфейс: schedule/cancel/now/today"""

    def __init__(self):
        self._ids = itertools.count(1)
        self._handles: Dict[int, ScheduleHandle] = {}

    def now(self) -> float:
        raise NotImplementedError

    def today(self) -> date:
        """Календарная дата в локальной зоне"""
        return datetime.fromtimestamp(self.now()).date()

    def schedule(self, callback: TickCallback, interval_ms: int) -> ScheduleHandle:
        raise NotImplementedError

    def cancel(self, handle: Optional[ScheduleHandle]) -> None:
        """
        Отменяет подписку. После возврата callback больше не вызывается.
        """
        if handle is None or handle.cancelled:
            return
        handle.cancelled = True
        self._handles.pop(handle.id, None)
        self._on_cancel(handle)

    def _on_cancel(self, handle: ScheduleHandle) -> None:
        pass

    def active_handles(self) -> List[ScheduleHandle]:
        return list(self._handles.values())

    def _new_handle(self, callback: TickCallback, interval_ms: int) -> ScheduleHandle:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms должен быть положительным, получено: {interval_ms}")
        handle = ScheduleHandle(id=next(self._ids), interval_ms=interval_ms, callback=callback)
        self._handles[handle.id] = handle
        return handle


class AsyncioScheduler(Scheduler):
    """
    Планировщик на asyncio: одна задача на подписку.
    Использует wall-clock time.time(), т.к. дедлайны переживают сон системы.
    """

    def now(self) -> float:
        return time.time()

    def schedule(self, callback: TickCallback, interval_ms: int) -> ScheduleHandle:
        handle = self._new_handle(callback, interval_ms)
        handle.task = asyncio.get_running_loop().create_task(self._run(handle))
        logger.debug("Tick stream scheduled", extra={"handle_id": handle.id, "interval_ms": interval_ms})
        return handle

    def _on_cancel(self, handle: ScheduleHandle) -> None:
        if handle.task and not handle.task.done():
            handle.task.cancel()
        logger.debug("Tick stream cancelled", extra={"handle_id": handle.id})

    async def aclose(self) -> None:
        """Отменяет все подписки и дожидается завершения задач"""
        handles = list(self._handles.values())
        for handle in handles:
            self.cancel(handle)
        for handle in handles:
            if handle.task is None:
                continue
            try:
                await handle.task
            except asyncio.CancelledError:
                pass

    async def _run(self, handle: ScheduleHandle) -> None:
        interval = handle.interval_ms / 1000
        try:
            while not handle.cancelled:
                await asyncio.sleep(interval)
                # флаг проверяется после сна: отмена могла прийти во время ожидания
                if handle.cancelled:
                    break
                try:
                    handle.callback()
                except Exception as e:
                    logger.error(
                        "Tick callback failed",
                        extra={"handle_id": handle.id, "error": str(e)},
                        exc_info=True,
                    )
        except asyncio.CancelledError:
            pass


class ManualScheduler(Scheduler):
    """
    Планировщик с виртуальными часами для тестов.

    advance() двигает время и вызывает все подписки по порядку,
    jump() имитирует разрыв часов (сон ноутбука): время прыгает без тиков.
    """

    def __init__(self, start: Optional[float] = None):
        super().__init__()
        self._now = start if start is not None else datetime(2024, 1, 1, 9, 0).timestamp()

    def now(self) -> float:
        return self._now

    def schedule(self, callback: TickCallback, interval_ms: int) -> ScheduleHandle:
        handle = self._new_handle(callback, interval_ms)
        handle.next_fire = self._now + interval_ms / 1000
        return handle

    def advance(self, seconds: float) -> int:
        """Сдвигает время вперёд; возвращает число вызванных callback'ов"""
        target = self._now + seconds
        fired = 0
        while True:
            due = [h for h in self._handles.values() if h.next_fire <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.next_fire, h.id))
            self._now = max(self._now, handle.next_fire)
            handle.next_fire += handle.interval_ms / 1000
            handle.callback()
            fired += 1
        self._now = target
        return fired

    def jump(self, seconds: float) -> None:
        """Разрыв часов: пропущенные тики не доставляются"""
        self._now += seconds
        for handle in self._handles.values():
            handle.next_fire = self._now + handle.interval_ms / 1000

    def fire(self, handle: ScheduleHandle) -> None:
        """Внеочередная доставка тика (повторный/наложившийся callback)"""
        if not handle.cancelled:
            handle.callback()
