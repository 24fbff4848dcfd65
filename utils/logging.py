import json
import logging
import re
import sys
from contextvars import ContextVar

# Контекстные переменные для correlation
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
_task_id_var: ContextVar[str | None] = ContextVar("task_id", default=None)

_SECRET_KEYS = {"token", "password", "secret", "api_key"}

_RESERVED = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


class JSONFormatter(logging.Formatter):
    """JSON formatter для структурированных логов."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_secrets(record.getMessage()),
            "request_id": _request_id_var.get(),
            "user_id": _user_id_var.get(),
            "task_id": _task_id_var.get(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED or key.startswith("_"):
                continue
            log_obj[key] = "***" if key.lower() in _SECRET_KEYS else value

        # Убираем None значения
        log_obj = {k: v for k, v in log_obj.items() if v is not None}

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Настройка системы логирования."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Удаляем существующие handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    # Убираем лишнее логирование от библиотек
    logging.getLogger("aiogram").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Получить logger для модуля."""
    return logging.getLogger(name)


def set_request_context(request_id: str | None = None, user_id: str | None = None) -> None:
    """Устанавливает контекст для текущего апдейта/тика."""
    _request_id_var.set(request_id)
    _user_id_var.set(user_id)


def set_task_context(task_id: str | None) -> None:
    """Привязывает активную задачу к последующим записям лога."""
    _task_id_var.set(task_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def get_user_id() -> str | None:
    return _user_id_var.get()


def get_task_id() -> str | None:
    return _task_id_var.get()


_SECRET_RE = re.compile(r"(token|password|secret|api_key)=([^\s]+)", re.IGNORECASE)


def _redact_secrets(message: str) -> str:
    return _SECRET_RE.sub(lambda m: f"{m.group(1)}=***", message)
