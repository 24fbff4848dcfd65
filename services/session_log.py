from typing import Callable, Iterator, List, Optional

from models.timer import SessionRecord, TimerConfig
from utils.logging import get_logger

logger = get_logger(__name__)


class SessionLog:
    """Журнал завершённых периодов. Только добавление, порядок = хронология."""

    def __init__(
        self,
        records: Optional[List[SessionRecord]] = None,
        persist: Optional[Callable[[List[SessionRecord]], None]] = None,
    ):
        self._records: List[SessionRecord] = list(records or [])
        self._persist = persist

    def append(self, record: SessionRecord) -> None:
        self._records.append(record)
        if self._persist is not None:
            self._persist(list(self._records))
        logger.info(
            "Session recorded",
            extra={"mode": record.mode.value, "completed_at": record.completed_at, "total": len(self._records)},
        )

    def records(self) -> List[SessionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(list(self._records))


def persist_with_config(timer_db, config_getter: Callable[[], TimerConfig]):
    """Сохранение журнала вместе с текущим конфигом в общий блоб"""

    def persist(records: List[SessionRecord]) -> None:
        timer_db.save(config_getter(), records)

    return persist
