from database.progress_db import ProgressDB, totals_from
from utils.logging import get_logger, set_request_context

logger = get_logger(__name__)


def migration_pass(progress_db: ProgressDB) -> int:
    """
    Единоразовый перенос старого ключа taskProgress в каноническую карту.
    Старый ключ удаляется в той же записи. Возвращает число перенесённых записей.
    """
    set_request_context(request_id="progress-migration")
    try:
        legacy = progress_db.load_legacy()
        if legacy is None:
            return 0

        progress = progress_db.load_progress()
        migrated = 0
        try:
            task_id = str(legacy["task"]["id"])
            day = str(legacy["date"])
            seconds = int(legacy.get("workedSec") or 0)
        except (KeyError, TypeError, ValueError, OverflowError):
            logger.warning("Legacy progress unreadable, dropping it")
        else:
            if seconds > 0 and len(day) == 10:
                key = (task_id, day)
                # старый и новый ключ вели один и тот же счётчик: не складываем
                progress[key] = max(progress.get(key, 0), seconds)
                migrated = 1

        progress_db.save_migrated(progress, totals_from(progress))
        logger.info("Legacy progress migrated", extra={"migrated": migrated})
        return migrated
    finally:
        set_request_context(request_id=None, user_id=None)
