"""Конфигурация таймера"""
import os

from utils.env_loader import load_env

load_env()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} должно быть целым числом, получено: {value!r}")


# Telegram используется только как канал уведомлений и пульт управления
BOT_TOKEN = os.getenv("BOT_TOKEN")
NOTIFY_CHAT_ID = os.getenv("NOTIFY_CHAT_ID")

GOOGLE_APPLICATION_CREDENTIALS = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
STORE_COLLECTION = os.getenv("STORE_COLLECTION", "pomodoro_store")
USE_FIRESTORE = os.getenv("USE_FIRESTORE", "1") == "1"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Интервал тиков планировщика, мс
TICK_INTERVAL_MS = _int_env("TICK_INTERVAL_MS", 500)

DEFAULT_WORK_SECONDS = _int_env("DEFAULT_WORK_SECONDS", 25 * 60)
DEFAULT_SHORT_BREAK_SECONDS = _int_env("DEFAULT_SHORT_BREAK_SECONDS", 5 * 60)
DEFAULT_LONG_BREAK_SECONDS = _int_env("DEFAULT_LONG_BREAK_SECONDS", 15 * 60)

# Порог "видимости" дня на тепловой карте, часы (~5 минут)
MIN_VISIBLE_HOURS = float(os.getenv("MIN_VISIBLE_HOURS", "0.083"))
