"""
Настройки таймера и журнал сессий (ключ "pomodoro")
"""
from typing import Any, Dict, List, Tuple

from database.store import KeyValueStore
from models.timer import InvalidConfig, SessionRecord, TimerConfig
from utils.logging import get_logger

logger = get_logger(__name__)

POMODORO_KEY = "pomodoro"


class TimerDB:
    """Чтение/запись блоба {work, shortBreak, longBreak, sessions}"""

    def __init__(self, store: KeyValueStore, default_config: TimerConfig = TimerConfig()):
        self.store = store
        self.default_config = default_config

    def _load_blob(self) -> Dict[str, Any]:
        try:
            blob = self.store.get(POMODORO_KEY)
        except ValueError as e:
            logger.warning("Malformed pomodoro blob, using defaults", extra={"error": str(e)})
            return {}
        if blob is None:
            return {}
        if not isinstance(blob, dict):
            logger.warning("Unexpected pomodoro blob type", extra={"type": type(blob).__name__})
            return {}
        return blob

    def load(self) -> Tuple[TimerConfig, List[SessionRecord]]:
        """
        Загружает конфиг и журнал.
        Повреждённые части заменяются значениями по умолчанию.
        """
        blob = self._load_blob()
        return self._parse_config(blob), self._parse_sessions(blob)

    def save(self, config: TimerConfig, sessions: List[SessionRecord]) -> None:
        blob = config.to_dict()
        blob["sessions"] = [record.to_dict() for record in sessions]
        self.store.set(POMODORO_KEY, blob)

    def _parse_config(self, blob: Dict[str, Any]) -> TimerConfig:
        if not blob:
            return self.default_config
        try:
            return TimerConfig.from_dict(blob)
        except (KeyError, TypeError, InvalidConfig) as e:
            logger.warning("Invalid stored config, using defaults", extra={"error": str(e)})
            return self.default_config

    def _parse_sessions(self, blob: Dict[str, Any]) -> List[SessionRecord]:
        raw = blob.get("sessions") or []
        if not isinstance(raw, list):
            logger.warning("Invalid stored sessions, starting empty log")
            return []

        sessions = []
        skipped = 0
        for item in raw:
            try:
                sessions.append(SessionRecord.from_dict(item))
            except (KeyError, TypeError, ValueError):
                skipped += 1
        if skipped:
            logger.warning("Skipped malformed session records", extra={"skipped": skipped})
        return sessions
