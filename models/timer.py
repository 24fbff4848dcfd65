import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class InvalidConfig(ValueError):
    """Недопустимые длительности таймера."""


class TimerMode(str, Enum):
    """Режимы таймера (значения совпадают с сохранённым форматом)."""

    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


@dataclass(frozen=True)
class TimerConfig:
    """Длительности периодов в секундах."""

    work_seconds: int = 25 * 60
    short_break_seconds: int = 5 * 60
    long_break_seconds: int = 15 * 60

    def __post_init__(self):
        for name in ("work_seconds", "short_break_seconds", "long_break_seconds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfig(f"{name} должно быть числом, получено: {value!r}")
            if not math.isfinite(value) or value < 0:
                raise InvalidConfig(f"{name} должно быть неотрицательным, получено: {value!r}")
            if value != int(value):
                raise InvalidConfig(f"{name} должно быть целым, получено: {value!r}")
            object.__setattr__(self, name, int(value))

    def duration(self, mode: TimerMode) -> int:
        if mode == TimerMode.WORK:
            return self.work_seconds
        if mode == TimerMode.SHORT_BREAK:
            return self.short_break_seconds
        return self.long_break_seconds

    @classmethod
    def from_minutes_seconds(
        cls,
        work: tuple[int, int],
        short_break: tuple[int, int],
        long_break: tuple[int, int],
    ) -> "TimerConfig":
        """Собирает конфиг из пар (минуты, секунды), как в форме настроек."""
        return cls(
            work_seconds=work[0] * 60 + work[1],
            short_break_seconds=short_break[0] * 60 + short_break[1],
            long_break_seconds=long_break[0] * 60 + long_break[1],
        )

    def to_dict(self) -> dict:
        return {
            "work": self.work_seconds,
            "shortBreak": self.short_break_seconds,
            "longBreak": self.long_break_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimerConfig":
        return cls(
            work_seconds=data["work"],
            short_break_seconds=data["shortBreak"],
            long_break_seconds=data["longBreak"],
        )


@dataclass(frozen=True)
class TimerState:
    """Снимок состояния таймера."""

    mode: TimerMode
    remaining_seconds: int
    running: bool
    deadline: Optional[float] = None  # epoch seconds, только пока running


@dataclass(frozen=True)
class SessionRecord:
    """Завершённый (истёкший) период."""

    mode: TimerMode
    completed_at: float  # epoch seconds

    @property
    def completed_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.completed_at)

    def to_dict(self) -> dict:
        # timestamp хранится в миллисекундах
        return {"mode": self.mode.value, "timestamp": int(round(self.completed_at * 1000))}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        timestamp = data["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or not math.isfinite(timestamp):
            raise ValueError(f"Некорректный timestamp: {timestamp!r}")
        return cls(mode=TimerMode(data["mode"]), completed_at=timestamp / 1000)


def format_clock(seconds: float) -> str:
    """Форматирует остаток как MM:SS."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"
