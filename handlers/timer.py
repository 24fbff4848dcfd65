"""
Команды управления таймером через Telegram.
Ядро передаётся через workflow data диспетчера (dp["app"]).
"""
from typing import Tuple

from aiogram import Router, html
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from models.task import Task
from models.timer import InvalidConfig, TimerConfig, TimerMode, format_clock
from services.timer_app import TimerApp
from utils.logging import get_logger

logger = get_logger(__name__)
router = Router()

MODE_ALIASES = {
    "work": TimerMode.WORK,
    "short": TimerMode.SHORT_BREAK,
    "long": TimerMode.LONG_BREAK,
}

MODE_NAMES = {
    TimerMode.WORK: "Работа",
    TimerMode.SHORT_BREAK: "Короткий перерыв",
    TimerMode.LONG_BREAK: "Длинный перерыв",
}


def _format_hm(seconds: int) -> str:
    return _format_breakdown(seconds // 3600, (seconds % 3600) // 60)


def _format_breakdown(hours: int, minutes: int) -> str:
    return f"{hours}ч {minutes}м"


def format_status(app: TimerApp) -> str:
    """Текст текущего состояния таймера и прогресса задачи"""
    engine = app.engine
    state = "▶️ идёт" if engine.running else "⏸ на паузе"
    lines = [
        f"⏱ <b>{format_clock(engine.remaining_seconds)}</b>",
        f"{MODE_NAMES[engine.mode]}, {state}",
    ]

    task = app.active_task
    if task is not None:
        worked = _format_breakdown(*app.tracker.worked_breakdown(task.id))
        lines.append(f"\n📌 {html.quote(task.title or task.id)}")
        if task.daily_target_seconds > 0:
            pct = app.tracker.percent_complete(task)
            lines.append(
                f"Прогресс: {worked} / {_format_hm(task.daily_target_seconds)} ({pct:.0f}%)"
            )
        else:
            lines.append(f"Отработано сегодня: {worked}")
    return "\n".join(lines)


def format_stats(app: TimerApp) -> str:
    """Сводка: сегодня, последние 7 дней, недели и месяцы за 30 дней"""
    today = app.engine.scheduler.today()
    analytics = app.analytics

    week = analytics.daily_series(7, today)
    month = analytics.daily_series(30, today)
    sessions_today = analytics.sessions_by_day(app.session_log).get(today.isoformat(), 0)

    lines = [
        "📊 <b>Статистика</b>",
        f"Сегодня: {_format_hm(app.tracker.daily_total(today))}, сессий: {sessions_today}",
        "",
        "<b>7 дней:</b>",
    ]
    lines += [f"{point.key}: {point.hours:.2f} ч" for point in week]
    lines += ["", "<b>По неделям:</b>"]
    lines += [f"с {point.key}: {point.hours:.2f} ч" for point in analytics.weekly_series(month)]
    lines += ["", "<b>По месяцам:</b>"]
    lines += [f"{point.key}: {point.hours:.2f} ч" for point in analytics.monthly_series(month)]
    return "\n".join(lines)


def parse_duration(value: str) -> Tuple[int, int]:
    """'25' -> (25, 0), '25:30' -> (25, 30): минуты и секунды"""
    minutes, _, seconds = value.partition(":")
    return int(minutes), int(seconds or 0)


@router.message(Command("timer"))
async def cmd_timer(message: Message, app: TimerApp):
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("go"))
async def cmd_go(message: Message, app: TimerApp):
    app.engine.start()
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("pause"))
async def cmd_pause(message: Message, app: TimerApp):
    app.engine.pause()
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("reset"))
async def cmd_reset(message: Message, app: TimerApp):
    app.engine.reset()
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("mode"))
async def cmd_mode(message: Message, command: CommandObject, app: TimerApp):
    mode = MODE_ALIASES.get((command.args or "").strip().lower())
    if mode is None:
        await message.answer("Использование: /mode work|short|long")
        return
    app.engine.switch_mode(mode)
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("task"))
async def cmd_task(message: Message, command: CommandObject, app: TimerApp):
    """/task <id> [часы] [минуты] - выбрать задачу и её дневную цель"""
    parts = (command.args or "").split()
    if not parts:
        app.select_task(None)
        await message.answer("Задача снята")
        return
    try:
        task = Task(
            id=parts[0],
            title=parts[0],
            daily_hours=int(parts[1]) if len(parts) > 1 else 0,
            daily_minutes=int(parts[2]) if len(parts) > 2 else 0,
        )
    except ValueError:
        await message.answer("Использование: /task <id> [часы] [минуты]")
        return
    app.select_task(task)
    await message.answer(format_status(app), parse_mode="HTML")


@router.message(Command("drop_task"))
async def cmd_drop_task(message: Message, command: CommandObject, app: TimerApp):
    task_id = (command.args or "").strip()
    if not task_id:
        await message.answer("Использование: /drop_task <id>")
        return
    removed = app.remove_task(task_id)
    await message.answer(f"🗑 Удалено записей прогресса: {removed}")


@router.message(Command("durations"))
async def cmd_durations(message: Message, command: CommandObject, app: TimerApp):
    """/durations <работа> <короткий> <длинный>, значения в минутах или мм:сс"""
    parts = (command.args or "").split()
    try:
        if len(parts) != 3:
            raise ValueError("нужно три значения")
        work, short_break, long_break = (parse_duration(p) for p in parts)
        app.engine.configure(TimerConfig.from_minutes_seconds(work, short_break, long_break))
    except InvalidConfig as e:
        logger.warning("Rejected timer config", extra={"error": str(e)})
        await message.answer(f"❌ Недопустимые длительности: {e}")
        return
    except ValueError:
        await message.answer("Использование: /durations <работа> <короткий> <длинный>")
        return
    await message.answer("✅ Настройки сохранены\n\n" + format_status(app), parse_mode="HTML")


@router.message(Command("stats"))
async def cmd_stats(message: Message, app: TimerApp):
    await message.answer(format_stats(app), parse_mode="HTML")
