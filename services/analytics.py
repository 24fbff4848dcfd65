"""
Агрегация отработанного времени: ряды по дням/неделям/месяцам
и календарная сетка для тепловой карты.

Все функции считают заново от текущих дневных итогов и ничего не кэшируют.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from models.timer import SessionRecord

MIN_VISIBLE = 0.083  # часы, ~5 минут
GRID_WINDOW_DAYS = 30


@dataclass(frozen=True)
class SeriesPoint:
    """Точка ряда: ключ периода (YYYY-MM-DD или YYYY-MM) и часы"""
    key: str
    hours: float


@dataclass(frozen=True)
class CalendarCell:
    date: str
    worked_seconds: int

    @property
    def hours(self) -> float:
        return self.worked_seconds / 3600


def weekday_monday0(day: date) -> int:
    """Номер дня недели, понедельник = 0"""
    # из соглашения "воскресенье = 0": (native + 6) % 7
    native = day.isoweekday() % 7
    return (native + 6) % 7


def week_start(day: date) -> date:
    return day - timedelta(days=weekday_monday0(day))


def intensity(value: float, min_visible: float = MIN_VISIBLE) -> float:
    """
    Насыщенность ячейки тепловой карты по часам за день.

    0 для нуля, 0.2 для ненулевых значений ниже порога видимости,
    иначе value / 2 с ограничением сверху 1.
    """
    if value == 0:
        return 0
    if 0 < value < min_visible:
        return 0.2
    return min(value / 2, 1)


def session_intensity(count: int) -> float:
    """Насыщенность дня по числу завершённых сессий (5 и больше = 1)"""
    return min(count / 5, 1)


def _parse_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


class AnalyticsAggregator:
    """Ряды и сетки поверх дневных итогов ProgressTracker"""

    def __init__(self, daily_totals: Callable[[], Dict[str, int]], min_visible: float = MIN_VISIBLE):
        """
        Args:
            daily_totals: функция, возвращающая date(ISO) -> секунды
            min_visible: порог видимости для intensity(), часы
        """
        self._daily_totals = daily_totals
        self.min_visible = min_visible

    def daily_series(self, window: int, ending_date) -> List[SeriesPoint]:
        """N точек по дням, заканчивая ending_date включительно"""
        if window < 0:
            raise ValueError(f"window должно быть неотрицательным, получено: {window}")
        end = _parse_day(ending_date)
        totals = self._daily_totals()
        points = []
        for offset in range(window - 1, -1, -1):
            day = (end - timedelta(days=offset)).isoformat()
            points.append(SeriesPoint(key=day, hours=totals.get(day, 0) / 3600))
        return points

    @staticmethod
    def weekly_series(daily: Iterable[SeriesPoint]) -> List[SeriesPoint]:
        """Группировка по ISO-неделям; ключ - понедельник недели"""
        weeks: Dict[str, float] = {}
        for point in daily:
            key = week_start(_parse_day(point.key)).isoformat()
            weeks[key] = weeks.get(key, 0) + point.hours
        return [SeriesPoint(key=key, hours=weeks[key]) for key in sorted(weeks)]

    @staticmethod
    def monthly_series(daily: Iterable[SeriesPoint]) -> List[SeriesPoint]:
        """Группировка по префиксу YYYY-MM"""
        months: Dict[str, float] = {}
        for point in daily:
            key = point.key[:7]
            months[key] = months.get(key, 0) + point.hours
        return [SeriesPoint(key=key, hours=months[key]) for key in sorted(months)]

    def calendar_grid(self, ending_date, window: int = GRID_WINDOW_DAYS) -> List[Optional[CalendarCell]]:
        """
        Сетка по неделям (понедельник - первый столбец) за последние window дней.
        None - пустые ячейки выравнивания. Длина всегда кратна 7.
        """
        end = _parse_day(ending_date)
        start = end - timedelta(days=window - 1)
        totals = self._daily_totals()

        blanks_before = weekday_monday0(start)
        cells: List[Optional[CalendarCell]] = [None] * blanks_before
        for offset in range(window):
            day = (start + timedelta(days=offset)).isoformat()
            cells.append(CalendarCell(date=day, worked_seconds=totals.get(day, 0)))
        blanks_after = (7 - (blanks_before + window) % 7) % 7
        cells.extend([None] * blanks_after)
        return cells

    def cell_intensity(self, cell: Optional[CalendarCell]) -> float:
        if cell is None:
            return 0
        return intensity(cell.hours, self.min_visible)

    @staticmethod
    def sessions_by_day(records: Iterable[SessionRecord]) -> Dict[str, int]:
        """Число завершённых сессий по локальной дате"""
        counts: Dict[str, int] = {}
        for record in records:
            day = record.completed_datetime.date().isoformat()
            counts[day] = counts.get(day, 0) + 1
        return counts


def month_weeks(year: int, month: int) -> List[List[date]]:
    """
    Недели месяца для календаря (воскресенье - первый столбец),
    с днями соседних месяцев по краям.
    """
    return calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month)
