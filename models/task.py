"""
Модель задачи, к которой привязывается отработанное время
"""
from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """Задача с дневной целью по времени"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Уникальный ID задачи")
    title: str = Field("", description="Название задачи")
    description: str = Field("", description="Описание задачи")
    daily_hours: int = Field(0, ge=0, description="Цель на день: часы")
    daily_minutes: int = Field(0, ge=0, description="Цель на день: минуты")
    deadline: Optional[date] = Field(None, description="Дедлайн")

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Union[str, int]) -> str:
        # ID из старых данных приходят числами (timestamp создания)
        return str(value)

    @field_validator("daily_hours", "daily_minutes", mode="before")
    @classmethod
    def _empty_to_zero(cls, value):
        # в сохранённых задачах пустая цель хранится как null или ""
        if value is None or value == "":
            return 0
        return value

    @property
    def daily_target_seconds(self) -> int:
        return self.daily_hours * 3600 + self.daily_minutes * 60

    def calendar_event(self) -> Optional[dict]:
        """Данные события для внешнего календаря (по дедлайну)."""
        if self.deadline is None:
            return None
        return {
            "title": self.title,
            "description": self.description,
            "date": self.deadline.isoformat(),
        }
